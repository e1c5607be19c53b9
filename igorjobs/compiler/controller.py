#!/usr/bin/env python3
"""Starts Igor jobs for one project and keeps track of the live ones."""

import logging
import subprocess
import sys
import threading
from concurrent.futures import wait
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from igorjobs.compiler.flags import build_flags, requires_remote_device
from igorjobs.compiler.igor_paths import HOST_PLATFORM
from igorjobs.compiler.runtime_version import FormatTag
from igorjobs.compiler.runtimes import RuntimeInfo, find_compatible_runtime
from igorjobs.compiler.settings import JobSettings, Platform, Project
from igorjobs.compiler.users import UserInfo
from igorjobs.errors import BuildDirectoryError, ConfigurationError, SpawnError
from igorjobs.job.job import STOP_GRACE_PERIOD, Job
from igorjobs.job.state import JobResult
from igorjobs.util.disk_io import DiskIO, LocalDiskIO
from igorjobs.util.process_killer import ProcessTreeTerminator


logger = logging.getLogger(__name__)

PopenFactory = Callable[..., "subprocess.Popen[bytes]"]


def _spawn_options(cwd: Path) -> dict[str, Any]:
    options: dict[str, Any] = {
        "cwd": str(cwd),
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.PIPE,
        "stderr": subprocess.PIPE,
    }
    # The tree terminators rely on Igor leading its own group.
    if sys.platform == "win32":
        options["creationflags"] = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
    else:
        options["start_new_session"] = True
    return options


class CompileController:
    """Job registry for a single project.

    Job ids are the lowest non-negative integer no live job holds, and each
    job builds into ``<build path>/<platform>/<id>``. Parallel jobs therefore
    never share a build directory, and the set of directories stays small.
    """

    def __init__(
        self,
        project: Project,
        disk_io: DiskIO | None = None,
        terminator: ProcessTreeTerminator | None = None,
        popen_factory: PopenFactory | None = None,
        host: Platform = HOST_PLATFORM,
        grace_period: float = STOP_GRACE_PERIOD,
    ) -> None:
        self.project = project
        self.disk_io: DiskIO = disk_io or LocalDiskIO()
        self.terminator = terminator or ProcessTreeTerminator(disk_io=self.disk_io)
        self.popen_factory: PopenFactory = popen_factory or subprocess.Popen
        self.host = host
        self.grace_period = grace_period

        self._lock = threading.RLock()
        self._jobs: list[Job] = []
        # Ids handed out by start() whose job is not registered yet.
        self._reserved: set[int] = set()

    @property
    def live_jobs(self) -> list[Job]:
        """Jobs that have not stopped yet."""
        with self._lock:
            return [job for job in self._jobs if not job.finished.done()]

    def job(self, job_id: int) -> Job | None:
        with self._lock:
            return next((job for job in self._jobs if job.id == job_id), None)

    def start(
        self,
        runtime: RuntimeInfo,
        user: UserInfo,
        settings: JobSettings,
        job_id: int | None = None,
    ) -> Job:
        """Spawn Igor to perform ``settings.task``.

        Args:
            runtime: Runtime to build with
            user: User whose license and devices are used
            settings: What to build; ``build_path`` is the root build directory
            job_id: Reuse a specific id, stopping the job holding it first

        Returns:
            The running job

        Raises:
            ConfigurationError: The target needs a remote device and none is set
            BuildDirectoryError: The job's build directory cannot be created
            SpawnError: The OS failed to start Igor
        """
        if settings.device is None and requires_remote_device(
            settings.task, settings.platform, self.host
        ):
            raise ConfigurationError(
                f"To build for {settings.platform.value}, you need to pick a remote "
                "device to execute the process on.",
                hint="Add a remote device in the IDE, then select it for this job.",
            )

        job_id = self._reserve_id(job_id)
        try:
            return self._start_reserved(runtime, user, settings, job_id)
        finally:
            with self._lock:
                self._reserved.discard(job_id)

    def _start_reserved(
        self, runtime: RuntimeInfo, user: UserInfo, settings: JobSettings, job_id: int
    ) -> Job:
        settings = settings.with_build_path(
            settings.build_path / settings.platform.value / str(job_id)
        )
        self._ensure_build_directory(settings.build_path)

        stale = self.job(job_id)
        if stale is not None:
            logger.info(f"Stopping job {job_id} before reusing its id")
            stale.stop().result()

        argv = [str(runtime.igor_path)] + build_flags(
            self.project, runtime.path, user.path, settings
        )
        logger.info(f"Starting job {job_id}: {subprocess.list2cmdline(argv)}")

        try:
            process = self.popen_factory(argv, **_spawn_options(self.project.directory))
        except (OSError, ValueError) as e:
            raise SpawnError(
                "While trying to create the Igor process, the spawn call failed unexpectedly",
                e,
            ) from e

        job = Job(
            job_id,
            settings,
            process,
            self.project,
            self.terminator,
            started_at=datetime.now(),
            grace_period=self.grace_period,
        )
        with self._lock:
            self._jobs.append(job)
        # Runs immediately if the job already finished.
        job.finished.add_done_callback(lambda _future: self._remove_job(job))
        return job

    def _ensure_build_directory(self, build_path: Path) -> None:
        if self.disk_io.is_dir(build_path):
            return
        try:
            self.disk_io.create_dir(build_path, recursive=True)
        except OSError as e:
            raise BuildDirectoryError(
                f"Failed to create the build directory '{build_path}' for project output. "
                "Ensure the path is valid and writable.",
                e,
            ) from e

    def _reserve_id(self, requested: int | None) -> int:
        with self._lock:
            if requested is None:
                requested = self._allocate_id()
            self._reserved.add(requested)
            return requested

    def _allocate_id(self) -> int:
        # A stopped job still in the list is only waiting for its removal callback.
        held = {job.id for job in self.live_jobs} | self._reserved
        job_id = 0
        while job_id in held:
            job_id += 1
        return job_id

    def _remove_job(self, job: Job) -> None:
        with self._lock:
            if job in self._jobs:
                self._jobs.remove(job)
        logger.debug(f"Job {job.id} removed from the live set")

    def stop_all(self, timeout: float | None = None) -> list[JobResult]:
        """Stop every live job and wait for all of them to exit.

        Call before deleting or rewriting build output a running job may
        still hold open.
        """
        futures = [job.stop() for job in self.live_jobs]
        if not futures:
            return []
        done, not_done = wait(futures, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} jobs did not stop within {timeout}s")
        return [future.result() for future in futures if future in done]

    def destroy(self) -> None:
        self.stop_all()
        with self._lock:
            self._jobs.clear()

    @staticmethod
    def find_compatible_runtime(
        runtimes: Iterable[RuntimeInfo], project_format: FormatTag
    ) -> RuntimeInfo | None:
        return find_compatible_runtime(runtimes, project_format)
