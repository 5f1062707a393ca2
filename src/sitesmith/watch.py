"""Watch sessions: re-run pipelines when watched sources change.

watchdog observer threads only put changed paths on a queue. A single
dispatcher loop drains the queue, waits a short settle window so one save
that touches several files produces one dispatch, and then runs every
matching binding's pipeline synchronously, in binding order. Pipelines
therefore never overlap, and each sees the outputs of the previous one.

A match on a reload binding (the configuration file) ends the session and
asks the caller to start a new one from a freshly loaded configuration. The
other paths of that batch are handed to the new session, so edits saved
together with the configuration still get built.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .definitions import WatchBinding
from .errors import BuildError
from .global_config import WATCH_POLL_S, WATCH_SETTLE_S
from .utils.globs import match_any

logger = logging.getLogger(__name__)

Dispatch = Callable[[str], Any]


class WatchState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"
    DISPATCHING = "dispatching"


@dataclass
class DispatchOutcome:
    """What one batch of changes did."""

    dispatched: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    reload: bool = False
    pending: list[str] = field(default_factory=list)


class _QueueingHandler(FileSystemEventHandler):
    def __init__(self, events: queue.Queue[str]) -> None:
        super().__init__()
        self.events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.events.put(str(event.src_path))
        dest = getattr(event, "dest_path", None)
        if dest:
            self.events.put(str(dest))


class WatchSession:
    """Monitor the project tree and dispatch bound pipelines on change.

    Args:
        root: Project root; binding globs are relative to it.
        bindings: Watch bindings, in dispatch order.
        dispatch: Runs a pipeline by name; exceptions derived from
            `BuildError` are logged and do not end the session.
        settle_s: Time to keep collecting events after the first one.
        observer_factory: Creates the filesystem observer (watchdog's by default).
    """

    def __init__(
        self,
        root: Path,
        bindings: Iterable[WatchBinding],
        dispatch: Dispatch,
        *,
        settle_s: float = WATCH_SETTLE_S,
        poll_s: float = WATCH_POLL_S,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self.root = root
        self.bindings = list(bindings)
        self.dispatch = dispatch
        self.settle_s = settle_s
        self.poll_s = poll_s
        self.observer_factory = observer_factory
        self.events: queue.Queue[str] = queue.Queue()
        self.pending: list[str] = []
        self.state = WatchState.IDLE
        self._stop = threading.Event()

    def enqueue(self, path: str | Path) -> None:
        self.events.put(str(path))

    def stop(self) -> None:
        """Ask the dispatcher loop to finish after the current dispatch."""
        self._stop.set()

    def _relative(self, path: str) -> str | None:
        candidate = Path(path)
        if not candidate.is_absolute():
            return candidate.as_posix()
        try:
            return candidate.resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return None

    def matching(self, paths: Iterable[str]) -> list[WatchBinding]:
        """Return the bindings matched by any of the paths, in binding order."""
        relative = [rel for rel in (self._relative(p) for p in paths) if rel]
        return [b for b in self.bindings if any(match_any(rel, b.globs) for rel in relative)]

    def handle(self, paths: Iterable[str]) -> DispatchOutcome:
        """Dispatch the pipelines bound to a batch of changed paths.

        When a reload binding matches nothing is dispatched; the paths no
        reload binding claims are returned in `pending` instead.
        """
        paths = list(paths)
        outcome = DispatchOutcome()
        matched = self.matching(paths)
        if any(binding.reload for binding in matched):
            logger.info("Configuration changed; reloading watch session")
            outcome.reload = True
            outcome.pending = [p for p in paths if not any(b.reload for b in self.matching([p]))]
            return outcome

        for binding in matched:
            self.state = WatchState.DISPATCHING
            logger.info("Change matched %s; running %s", binding.name, binding.pipeline)
            try:
                self.dispatch(binding.pipeline)
            except BuildError:
                logger.exception("Watch dispatch for %s failed", binding.name)
                outcome.failed.append(binding.pipeline)
            else:
                outcome.dispatched.append(binding.pipeline)
            finally:
                self.state = WatchState.WATCHING
        return outcome

    def _next_batch(self) -> list[str]:
        try:
            first = self.events.get(timeout=self.poll_s)
        except queue.Empty:
            return []
        batch = [first]
        deadline = time.monotonic() + self.settle_s
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                batch.append(self.events.get(timeout=remaining))
            except queue.Empty:
                break
        return list(dict.fromkeys(batch))

    def run(self) -> bool:
        """Watch until stopped or a reload binding fires.

        Returns:
            True if the session ended because the configuration changed;
            the batch paths left undispatched are then in `pending`.
        """
        observer = self.observer_factory()
        observer.schedule(_QueueingHandler(self.events), str(self.root), recursive=True)
        observer.start()
        self.state = WatchState.WATCHING
        logger.info("Watching %s (%d bindings)", self.root, len(self.bindings))
        try:
            while not self._stop.is_set():
                batch = self._next_batch()
                if not batch:
                    continue
                outcome = self.handle(batch)
                if outcome.reload:
                    self.pending = outcome.pending
                    return True
            return False
        finally:
            observer.stop()
            observer.join()
            self.state = WatchState.IDLE


def run_watch(
    root: Path,
    config_file: Path | None = None,
    *,
    observer_factory: Callable[[], Any] = Observer,
    settle_s: float = WATCH_SETTLE_S,
) -> int:
    """Run watch sessions, reloading the configuration whenever it changes.

    Returns:
        Number of sessions started.
    """
    from .composer import Composer
    from .config import load_config

    sessions = 0
    carried: list[str] = []
    while True:
        config = load_config(root, config_file)
        composer = Composer(config)
        session = WatchSession(
            config.root,
            config.watch,
            composer.run,
            settle_s=settle_s,
            observer_factory=observer_factory,
        )
        for path in carried:
            session.enqueue(path)
        sessions += 1
        try:
            reload = session.run()
        except KeyboardInterrupt:
            logger.info("Watch session interrupted")
            return sessions
        if not reload:
            return sessions
        carried = session.pending
