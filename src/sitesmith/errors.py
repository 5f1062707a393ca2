"""Build-specific exception types for the project."""

from __future__ import annotations

from pathlib import Path


class BuildError(Exception):
    """Base exception for build-related errors."""


class ConfigurationError(BuildError):
    """Raised when paths, globs, task options or pipelines are malformed.

    Configuration errors are detected at load time; nothing executes.
    """


class MissingInputError(BuildError):
    """Raised when a referenced source file or include fragment does not exist."""

    def __init__(self, name: str | Path, *, referrer: str | Path | None = None) -> None:
        self.name = str(name)
        self.referrer = str(referrer) if referrer is not None else None
        if self.referrer:
            message = f"missing input '{self.name}' referenced by {self.referrer}"
        else:
            message = f"missing input '{self.name}'"
        super().__init__(message)


class ExternalToolError(BuildError):
    """Raised when a delegated compiler, minifier or encoder reports a failure."""

    def __init__(
        self,
        tool: str,
        message: str,
        *,
        file: str | Path | None = None,
        line: int | None = None,
    ) -> None:
        self.tool = tool
        self.detail = message
        self.file = str(file) if file is not None else None
        self.line = line
        location = ""
        if self.file and line is not None:
            location = f" ({self.file}, line {line})"
        elif self.file:
            location = f" ({self.file})"
        elif line is not None:
            location = f" (line {line})"
        super().__init__(f"{tool}: {message}{location}")


class LintViolationError(BuildError):
    """Raised when lint violations are escalated to a fatal result."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = list(violations)
        super().__init__(f"{len(self.violations)} lint violation(s): " + "; ".join(self.violations))


class PipelineError(BuildError):
    """Raised when a step aborts a pipeline.

    Carries the pipeline name, the failing step (``kind:target``) and the
    underlying cause.
    """

    def __init__(self, pipeline: str, step: str, cause: BaseException) -> None:
        self.pipeline = pipeline
        self.step = step
        self.cause = cause
        super().__init__(f"pipeline '{pipeline}' failed at step '{step}': {cause}")
