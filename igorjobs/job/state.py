"""Lifecycle states of a job.

    Running --(process exits)--------------------> Stopped(FINISHED | FAILED)
    Running --stop()--> Stopping --(process exits)--> Stopped(STOPPED)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from igorjobs.errors import ProcessTerminationError
from igorjobs.job.diagnostics import DiagnosticRecord, JobRuntimeError


class StopKind(Enum):
    FINISHED = "Finished"
    FAILED = "Failed"
    STOPPED = "Stopped"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Running:
    def __str__(self) -> str:
        return "Running"


@dataclass(frozen=True)
class Stopping:
    def __str__(self) -> str:
        return "Stopping"


@dataclass(frozen=True)
class Stopped:
    kind: StopKind
    exit_code: int | None = None

    def __str__(self) -> str:
        return str(self.kind)


JobState = Union[Running, Stopping, Stopped]


@dataclass(frozen=True)
class JobResult:
    """Terminal outcome of a job, delivered with the stopped notification.

    Attributes:
        state: The Stopped state the job ended in
        diagnostics: Records extracted from the full output, in stream order
        termination_error: Set if stopping the process tree partly failed
    """

    state: Stopped
    diagnostics: tuple[DiagnosticRecord, ...] = ()
    termination_error: ProcessTerminationError | None = None

    @property
    def kind(self) -> StopKind:
        return self.state.kind

    @property
    def exit_code(self) -> int | None:
        return self.state.exit_code


def natural_stop_kind(exit_code: int, diagnostics: tuple[DiagnosticRecord, ...]) -> StopKind:
    """Classify a process that exited without being asked to.

    A runner crash counts as a failure even when Igor reports exit code 0.
    """
    if exit_code != 0:
        return StopKind.FAILED
    if any(isinstance(record, JobRuntimeError) for record in diagnostics):
        return StopKind.FAILED
    return StopKind.FINISHED
