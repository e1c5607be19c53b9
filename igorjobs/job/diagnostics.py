#!/usr/bin/env python3
"""Diagnostic records extracted from Igor output.

A diagnostic describes a problem in the game being compiled or run, not a
failure of igorjobs, so these are plain frozen dataclasses rather than
exceptions.
"""

from dataclasses import dataclass
from typing import Union

from igorjobs.job.script_names import ScriptLocation, parse_script_name


@dataclass(frozen=True)
class JobCompilationError:
    """A generic compile-time error, ``Error : <message>``."""

    message: str

    def describe(self) -> str:
        return f"Compilation Error: {self.message}"


@dataclass(frozen=True)
class JobPermissionsError:
    """Igor hit a file-system or execution permission problem."""

    message: str

    def describe(self) -> str:
        return f"Igor Permission Error: {self.message}"


@dataclass(frozen=True)
class JobSyntaxError:
    """A compile error pinned to a script and line.

    Attributes:
        script_type: ``GlobalScript``, ``Object``, ...
        script: Script identifier after the type, e.g. ``obj_player_Step_0``
        line: 1-based line number (Igor reports 0-based)
        message: Compiler message
    """

    script_type: str
    script: str
    line: int
    message: str

    def location(self) -> ScriptLocation:
        """Decode the script identifier. Raises ScriptNameError if it is not understood."""
        return parse_script_name(f"gml_{self.script_type}_{self.script}")

    def describe(self) -> str:
        return f"Syntax Error in {self.script} ({self.script_type}), line {self.line}: {self.message}"


@dataclass(frozen=True)
class JobRuntimeError:
    """The game runner crashed with an unhandled error.

    Attributes:
        object: Object whose event raised the error (``<undefined>`` for scripts)
        event: Event name, e.g. ``Step Event0``
        script: Innermost ``gml_*`` script of the stack trace
        line: Line within ``script``
        stack_trace: Full ``gml_*`` stack trace, one frame per line
        exception: Error text printed by the runner
    """

    object: str
    event: str
    script: str
    line: int
    stack_trace: str
    exception: str

    @property
    def frames(self) -> list[str]:
        return [frame for frame in self.stack_trace.splitlines() if frame]

    def location(self) -> ScriptLocation:
        return parse_script_name(self.script)

    def describe(self) -> str:
        return (
            "Runner Error:\n\n"
            f"On line {self.line} of script {self.script},\n"
            f"In {self.event} of object {self.object}:\n\n"
            f"{self.exception}"
        )


DiagnosticRecord = Union[
    JobCompilationError, JobPermissionsError, JobSyntaxError, JobRuntimeError
]
