#!/usr/bin/env python3
"""Process tree termination for Igor jobs.

Igor spawns the game runner as a child, which may in turn spawn more
processes. Stopping a job therefore has to take down the whole tree, and how
that is done depends on the host OS:

- Linux/POSIX: Igor is spawned in its own session, so the whole tree shares a
  process group and one signal to the group reaches everything.
- Windows: there is no graceful group kill, ``taskkill /T /F`` is used
  unconditionally.
- macOS: the group trick does not reliably reach the runner, so descendants
  are walked with psutil and signalled children-first.

Two special cases sit on top of the strategies:

- Android builds leave a Gradle daemon running after Igor exits. It is asked
  to stop synchronously before the tree is killed.
- On macOS the game runner detaches from Igor entirely, so it is not in the
  tree at all. We look for processes whose command line mentions the job's
  ``debug.log`` path (unique per build directory) and kill those. This is a
  heuristic and may miss processes or, in theory, hit an unrelated process
  that shares the path.

Nothing in here raises to the caller: failures come back in a
``TerminationResult`` and are logged.
"""

import logging
import os
import signal
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Protocol

import psutil

from igorjobs.compiler.settings import JobSettings, Platform
from igorjobs.errors import ProcessTerminationError
from igorjobs.util.disk_io import DiskIO, LocalDiskIO


logger = logging.getLogger(__name__)

SIGKILL: int = getattr(signal, "SIGKILL", signal.SIGTERM)

# Seconds to allow a synchronous helper command (taskkill, gradle --stop).
HELPER_COMMAND_TIMEOUT = 30.0

# Hosts where the game runner detaches from Igor's process tree.
DETACHED_RUNNER_HOSTS = frozenset({"darwin"})


class ProcessControl(Protocol):
    """The OS operations termination strategies are allowed to use.

    Implementations raise ``ProcessLookupError`` when a pid no longer exists.
    """

    def signal_group(self, pgid: int, sig: int) -> None: ...

    def signal(self, pid: int, sig: int) -> None: ...

    def children(self, pid: int) -> list[int]: ...

    def run(self, command: list[str], cwd: Path | None = None) -> None: ...

    def find_by_command_line(self, fragment: str) -> list[int]: ...


class PsutilProcessControl:
    """ProcessControl backed by psutil, os and subprocess."""

    def signal_group(self, pgid: int, sig: int) -> None:
        os.killpg(pgid, sig)  # type: ignore[attr-defined]

    def signal(self, pid: int, sig: int) -> None:
        try:
            psutil.Process(pid).send_signal(sig)
        except psutil.NoSuchProcess as e:
            raise ProcessLookupError(f"Process {pid} no longer exists") from e

    def children(self, pid: int) -> list[int]:
        try:
            return [child.pid for child in psutil.Process(pid).children()]
        except psutil.NoSuchProcess:
            return []

    def run(self, command: list[str], cwd: Path | None = None) -> None:
        subprocess.run(
            command,
            cwd=str(cwd) if cwd is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=True,
            timeout=HELPER_COMMAND_TIMEOUT,
        )

    def find_by_command_line(self, fragment: str) -> list[int]:
        # Never match ourselves or anything above us in the tree.
        protected_pids = {os.getpid()}
        try:
            parent = psutil.Process(os.getpid()).parent()
            while parent:
                protected_pids.add(parent.pid)
                parent = parent.parent()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass

        matches: list[int] = []
        for proc in psutil.process_iter(["pid", "cmdline"]):
            try:
                cmdline = proc.info.get("cmdline") or []
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if proc.pid in protected_pids:
                continue
            if fragment in " ".join(cmdline):
                matches.append(proc.pid)
        return matches


class TerminationStrategy(ABC):
    """One way of terminating a process and all of its descendants."""

    def __init__(self, control: ProcessControl) -> None:
        self.control = control

    @abstractmethod
    def terminate_tree(self, pid: int, force: bool) -> None:
        """Terminate ``pid`` and its descendants.

        Raises:
            ProcessLookupError: If the process is already gone
            OSError, subprocess.SubprocessError: If termination failed
        """
        pass


class ProcessGroupStrategy(TerminationStrategy):
    """Signal the process group. Requires the root to lead its own session."""

    def terminate_tree(self, pid: int, force: bool) -> None:
        sig = SIGKILL if force else signal.SIGTERM
        logger.debug(f"Sending signal {sig} to process group {pid}")
        self.control.signal_group(pid, sig)


class TaskkillStrategy(TerminationStrategy):
    """Forceful tree kill via ``taskkill``. Windows has no graceful equivalent."""

    def terminate_tree(self, pid: int, force: bool) -> None:
        logger.debug(f"Running taskkill on process tree {pid}")
        self.control.run(["taskkill", "/PID", str(pid), "/T", "/F"])


class RecursiveSignalStrategy(TerminationStrategy):
    """Walk the tree and signal children before their parents."""

    def terminate_tree(self, pid: int, force: bool) -> None:
        sig = SIGKILL if force else signal.SIGTERM

        for child in self.control.children(pid):
            try:
                self.terminate_tree(child, force)
            except ProcessLookupError:
                logger.debug(f"Child process {child} already terminated")

        logger.debug(f"Sending signal {sig} to process {pid}")
        self.control.signal(pid, sig)


def default_strategy(control: ProcessControl, host: str = sys.platform) -> TerminationStrategy:
    if host == "win32":
        return TaskkillStrategy(control)
    if host == "darwin":
        return RecursiveSignalStrategy(control)
    return ProcessGroupStrategy(control)


def _gradle_stop_command(
    settings: JobSettings, host: str, disk_io: DiskIO
) -> tuple[list[str], Path] | None:
    # Igor writes the Gradle project into output/ or one level below it.
    script_name = "gradlew.bat" if host == "win32" else "gradlew"
    output_dir = settings.output_dir
    if not disk_io.is_dir(output_dir):
        return None
    candidates = [output_dir] + [output_dir / name for name in disk_io.list_dir(output_dir)]
    for directory in candidates:
        wrapper = directory / script_name
        if disk_io.exists(wrapper):
            return [str(wrapper), "--stop"], directory
    return None


# Targets whose build leaves a daemon running after Igor exits, mapped to a
# function producing the command (and working directory) that stops it.
DAEMON_STOP_COMMANDS: dict[
    Platform, Callable[[JobSettings, str, DiskIO], tuple[list[str], Path] | None]
] = {
    Platform.ANDROID: _gradle_stop_command,
}


@dataclass
class TerminationResult:
    """Outcome of a best-effort tree termination.

    Attributes:
        ok: True if every step succeeded (an already-exited process counts)
        error: Combined error when any step failed
        killed_runner_pids: Detached runner processes found by command line
    """

    ok: bool
    error: ProcessTerminationError | None = None
    killed_runner_pids: list[int] = field(default_factory=list)


class ProcessTreeTerminator:
    """Stops a job's process tree using the strategy for the host OS."""

    def __init__(
        self,
        control: ProcessControl | None = None,
        host: str = sys.platform,
        strategy: TerminationStrategy | None = None,
        disk_io: DiskIO | None = None,
    ) -> None:
        self.control: ProcessControl = control or PsutilProcessControl()
        self.host = host
        self.strategy = strategy or default_strategy(self.control, host)
        self.disk_io: DiskIO = disk_io or LocalDiskIO()

    def stop(self, pid: int, settings: JobSettings, force: bool = False) -> TerminationResult:
        """Terminate ``pid`` and everything it spawned.

        Args:
            pid: Root process of the job (Igor)
            settings: Settings of the job, used for the special cases
            force: Kill outright instead of asking the processes to exit

        Returns:
            TerminationResult; never raises
        """
        failures: list[str] = []
        first_cause: BaseException | None = None

        if not force:
            try:
                self._stop_daemon(settings)
            except Exception as e:
                logger.warning(f"Failed to stop {settings.platform} build daemon: {e}")
                failures.append(f"build daemon: {e}")
                first_cause = first_cause or e

        try:
            self.strategy.terminate_tree(pid, force)
        except ProcessLookupError:
            logger.debug(f"Process {pid} already terminated")
        except Exception as e:
            logger.warning(f"Failed to terminate process tree {pid}: {e}")
            failures.append(f"process tree: {e}")
            first_cause = first_cause or e

        runner_pids: list[int] = []
        if self.host in DETACHED_RUNNER_HOSTS:
            try:
                runner_pids = self._stop_detached_runners(settings, force)
            except Exception as e:
                logger.warning(f"Failed stopping detached runner processes: {e}")
                failures.append(f"detached runner: {e}")
                first_cause = first_cause or e

        if not failures:
            return TerminationResult(ok=True, killed_runner_pids=runner_pids)

        return TerminationResult(
            ok=False,
            error=ProcessTerminationError(
                f"Failed to stop the process tree of PID {pid} ({'; '.join(failures)})",
                pid=pid,
                cause=first_cause,
            ),
            killed_runner_pids=runner_pids,
        )

    def _stop_daemon(self, settings: JobSettings) -> None:
        command_for = DAEMON_STOP_COMMANDS.get(settings.platform)
        if command_for is None:
            return

        command = command_for(settings, self.host, self.disk_io)
        if command is None:
            logger.debug(f"No {settings.platform} build daemon found to stop")
            return

        argv, cwd = command
        logger.info(f"Stopping {settings.platform} build daemon: {subprocess.list2cmdline(argv)}")
        self.control.run(argv, cwd=cwd)

    def _stop_detached_runners(self, settings: JobSettings, force: bool) -> list[int]:
        log_path = str(settings.debug_log_path)
        pids = self.control.find_by_command_line(log_path)

        killed: list[int] = []
        for runner_pid in pids:
            try:
                self.strategy.terminate_tree(runner_pid, force)
                killed.append(runner_pid)
            except ProcessLookupError:
                pass

        if killed:
            logger.info(f"Stopped detached runner processes {killed} matching {log_path}")
        return killed
