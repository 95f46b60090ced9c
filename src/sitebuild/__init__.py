"""Static-site build orchestrator.

Provides task and pipeline primitives, a sequence/parallel runner, a file
watcher with live reload, and a Typer CLI.
"""

from .core import (  # re-export for convenience
    Pipeline,
    Runner,
    TaskContext,
    TaskRegistry,
    TaskResult,
    TaskSpec,
    parallel,
    sequence,
    task,
)
from .errors import BuildError, ConfigError, TransformError, ValidationToolError
from .variants import ErrorPolicy, Profile

__all__ = [
    "Pipeline",
    "Runner",
    "TaskContext",
    "TaskRegistry",
    "TaskResult",
    "TaskSpec",
    "parallel",
    "sequence",
    "task",
    "BuildError",
    "ConfigError",
    "TransformError",
    "ValidationToolError",
    "ErrorPolicy",
    "Profile",
]
