from __future__ import annotations


class SitebuildError(Exception):
    """Base class for build toolchain errors."""


class ConfigError(SitebuildError):
    pass


class TransformError(SitebuildError):
    """A compiler/renderer rejected its input (syntax error, bad reference...).

    `location` is a free-form `path:line` string when the tool reports one.
    """

    def __init__(self, message: str, location: str | None = None):
        self.message = message
        self.location = location
        super().__init__(f"{location}: {message}" if location else message)


class BuildError(SitebuildError):
    """Raised by the runner to abort a pipeline."""

    def __init__(self, task_name: str, cause: BaseException):
        self.task_name = task_name
        self.cause = cause
        super().__init__(f"Task '{task_name}' failed: {cause}")


class ValidationToolError(SitebuildError):
    """The external markup checker could not be reached or answered garbage."""
