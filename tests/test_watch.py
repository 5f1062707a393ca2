"""Tests for watch sessions and change dispatch."""

from __future__ import annotations

import queue
from pathlib import Path

import pytest
from watchdog.events import DirModifiedEvent, FileModifiedEvent, FileMovedEvent

from sitesmith.config import BuildConfig
from sitesmith.errors import MissingInputError, PipelineError
from sitesmith.watch import WatchSession, WatchState, _QueueingHandler, run_watch


class FakeObserver:
    """Stands in for a watchdog observer; `on_start` runs when started."""

    def __init__(self, on_start=None) -> None:
        self.on_start = on_start
        self.handler = None
        self.stopped = False
        self.joined = False

    def schedule(self, handler, path: str, recursive: bool = False) -> None:
        self.handler = handler
        self.path = path

    def start(self) -> None:
        if self.on_start is not None:
            self.on_start(self)

    def stop(self) -> None:
        self.stopped = True

    def join(self) -> None:
        self.joined = True


@pytest.fixture
def dispatched() -> list[str]:
    return []


@pytest.fixture
def session(config: BuildConfig, dispatched: list[str]) -> WatchSession:
    return WatchSession(config.root, config.watch, dispatched.append, settle_s=0.01, poll_s=0.01)


@pytest.mark.unit
class TestHandle:
    def test_dispatch_in_binding_order(self, session: WatchSession, dispatched: list[str]) -> None:
        outcome = session.handle(["src/js/a.js", "src/less/main.less"])

        assert dispatched == ["styles", "scripts"]
        assert outcome.dispatched == ["styles", "scripts"]
        assert outcome.reload is False

    def test_each_binding_dispatches_once_per_batch(self, session: WatchSession, dispatched: list[str]) -> None:
        session.handle(["src/js/a.js", "src/js/b.js"])
        assert dispatched == ["scripts"]

    def test_config_change_requests_reload(self, session: WatchSession, dispatched: list[str]) -> None:
        outcome = session.handle(["sitesmith.yaml", "src/js/a.js"])

        assert outcome.reload is True
        assert dispatched == []
        assert outcome.pending == ["src/js/a.js"]

    def test_absolute_paths_are_relativized(self, session: WatchSession, dispatched: list[str], project_root: Path) -> None:
        session.handle([str(project_root / "src/site/include/header.html")])
        assert dispatched == ["includes"]

    def test_paths_outside_root_are_ignored(self, session: WatchSession, dispatched: list[str], tmp_path: Path) -> None:
        session.handle([str(tmp_path / "elsewhere/src/js/a.js")])
        assert dispatched == []

    def test_unbound_changes_are_ignored(self, session: WatchSession, dispatched: list[str]) -> None:
        outcome = session.handle(["dist/index.html", "README.md"])
        assert outcome.dispatched == [] and dispatched == []

    def test_failed_dispatch_does_not_stop_the_batch(self, config: BuildConfig) -> None:
        calls: list[str] = []

        def dispatch(name: str) -> None:
            calls.append(name)
            if name == "styles":
                raise PipelineError(name, "cssflow:build", MissingInputError("src/less/main.less"))

        session = WatchSession(config.root, config.watch, dispatch)
        outcome = session.handle(["src/less/main.less", "src/js/a.js"])

        assert calls == ["styles", "scripts"]
        assert outcome.failed == ["styles"]
        assert outcome.dispatched == ["scripts"]
        assert session.state is WatchState.WATCHING


@pytest.mark.unit
class TestRun:
    def test_stops_when_asked(self, config: BuildConfig) -> None:
        observers: list[FakeObserver] = []

        def factory() -> FakeObserver:
            observers.append(FakeObserver())
            return observers[-1]

        session: WatchSession

        def dispatch(name: str) -> None:
            session.stop()

        session = WatchSession(config.root, config.watch, dispatch, settle_s=0.01, poll_s=0.01, observer_factory=factory)
        session.enqueue("src/js/a.js")

        assert session.run() is False
        assert observers[0].stopped and observers[0].joined
        assert observers[0].path == str(config.root)
        assert session.state is WatchState.IDLE

    def test_config_change_ends_session(self, session: WatchSession) -> None:
        session.observer_factory = FakeObserver
        session.enqueue("sitesmith.yaml")

        assert session.run() is True

    def test_run_watch_reloads_until_interrupted(self, project_root: Path) -> None:
        started: list[FakeObserver] = []

        def on_start(observer: FakeObserver) -> None:
            started.append(observer)
            if len(started) == 1:
                observer.handler.events.put(str(project_root / "sitesmith.yaml"))
            else:
                raise KeyboardInterrupt

        sessions = run_watch(project_root, observer_factory=lambda: FakeObserver(on_start), settle_s=0.01)

        assert sessions == 2
        assert len(started) == 2

    def test_changes_saved_with_config_run_after_reload(
        self, project_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        ran: list[str] = []
        started: list[FakeObserver] = []

        def run(composer, name: str) -> None:
            ran.append(name)
            raise KeyboardInterrupt

        def on_start(observer: FakeObserver) -> None:
            started.append(observer)
            if len(started) == 1:
                observer.handler.events.put(str(project_root / "sitesmith.yaml"))
                observer.handler.events.put(str(project_root / "src/js/a.js"))

        monkeypatch.setattr("sitesmith.composer.Composer.run", run)

        sessions = run_watch(project_root, observer_factory=lambda: FakeObserver(on_start), settle_s=0.01)

        assert sessions == 2
        assert ran == ["scripts"]


@pytest.mark.unit
class TestQueueingHandler:
    def test_file_events_are_queued(self) -> None:
        handler = _QueueingHandler(queue.Queue())
        handler.dispatch(FileModifiedEvent("/p/src/js/a.js"))
        handler.dispatch(FileMovedEvent("/p/src/js/tmp.js", "/p/src/js/b.js"))
        handler.dispatch(DirModifiedEvent("/p/src/js"))

        queued = [handler.events.get_nowait() for _ in range(handler.events.qsize())]

        assert queued == ["/p/src/js/a.js", "/p/src/js/tmp.js", "/p/src/js/b.js"]
