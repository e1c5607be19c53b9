#!/usr/bin/env python3
"""Exceptions raised while orchestrating Igor jobs.

These describe failures of igorjobs itself. Problems in the *compiled* game
(syntax errors, runner crashes) are diagnostic records, see
``igorjobs.job.diagnostics``.
"""

from typing import Optional


class IgorJobsError(Exception):
    """Base exception for igorjobs failures"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}\n  Caused by: {self.cause}"


class ConfigurationError(IgorJobsError):
    """The job settings are incomplete, e.g. a remote device is required but missing.

    Raised before any process is spawned. The user fixes this by supplying the
    missing configuration; it is never retried automatically.
    """

    def __init__(self, message: str, hint: str = ""):
        super().__init__(message)
        self.hint = hint

    def __str__(self) -> str:
        if not self.hint:
            return self.message
        return f"{self.message}\n  Hint: {self.hint}"


class BuildDirectoryError(IgorJobsError):
    """The per-job build directory could not be created."""


class SpawnError(IgorJobsError):
    """The OS failed to create the Igor process."""


class ProcessTerminationError(IgorJobsError):
    """Stopping a process tree failed. Best-effort only, never blocks a stop."""

    def __init__(
        self, message: str, pid: int, cause: Optional[BaseException] = None
    ):
        super().__init__(message, cause)
        self.pid = pid


class VersionParseError(IgorJobsError, ValueError):
    """A runtime or project version string is malformed."""


class RuntimeNotFoundError(IgorJobsError):
    """No installed runtime is compatible with the project."""

    def __init__(self, message: str, reason: str, channel: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.channel = channel


class ScriptNameError(IgorJobsError, ValueError):
    """A ``gml_*`` script identifier could not be decoded."""


class ConfigError(IgorJobsError):
    """The igorjobs configuration file is invalid."""
