#!/usr/bin/env python3
"""A single running Igor process and its accumulated output.

Output is drained by one reader thread per pipe so Igor never blocks on a
full pipe. A watcher thread waits for the process to exit, parses the complete
output once and publishes the terminal ``JobResult``.
"""

import codecs
import logging
import subprocess
import threading
from concurrent.futures import Future
from datetime import datetime
from typing import IO, Callable

from igorjobs.compiler.settings import JobSettings, Project
from igorjobs.errors import ProcessTerminationError
from igorjobs.job.diagnostics import DiagnosticRecord
from igorjobs.job.output_parser import extract_diagnostics
from igorjobs.job.state import (
    JobResult,
    JobState,
    Running,
    Stopped,
    Stopping,
    StopKind,
    natural_stop_kind,
)
from igorjobs.util.events import Signal
from igorjobs.util.process_killer import ProcessTreeTerminator, TerminationResult


logger = logging.getLogger(__name__)

# Seconds a graceful stop may take before the tree is killed outright.
STOP_GRACE_PERIOD = 2.0

# Seconds to keep draining pipes after the process exits. A surviving
# grandchild (e.g. a build daemon) can hold a pipe open indefinitely.
READER_DRAIN_TIMEOUT = 5.0

_READ_CHUNK_SIZE = 4096


class PipeReader:
    """Drains one process pipe and forwards decoded text chunks.

    Chunks are forwarded as soon as they are read, not per line, so partial
    lines such as progress output reach listeners immediately.
    """

    def __init__(self, stream: IO[bytes], on_chunk: Callable[[str], None]) -> None:
        self._stream = stream
        self._on_chunk = on_chunk
        # A multi-byte character may be split across two reads.
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def _read(self) -> bytes:
        read1 = getattr(self._stream, "read1", None)
        if read1 is not None:
            return read1(_READ_CHUNK_SIZE)
        return self._stream.read(_READ_CHUNK_SIZE)

    def run(self) -> None:
        try:
            while True:
                data = self._read()
                if not data:
                    break
                text = self._decoder.decode(data)
                if text:
                    self._on_chunk(text)
        except (ValueError, OSError) as e:
            # Closed file descriptors are the normal way a killed pipe ends.
            logger.debug(f"Pipe reader stopped: {e}")
        finally:
            tail = self._decoder.decode(b"", final=True)
            if tail:
                self._on_chunk(tail)
            try:
                self._stream.close()
            except (ValueError, OSError) as e:
                logger.debug(f"Failed to close pipe: {e}")


class Job:
    """An Igor process started by ``CompileController``.

    Observers connect to three signals:

    - ``output_updated(text)``: the complete output so far, after every chunk
    - ``stopping(None)``: a stop was requested and is in progress
    - ``stopped(result)``: the process has exited, exactly once

    ``finished`` is a future resolving to the same ``JobResult``; unlike the
    signal it can be waited on, and callbacks added after the fact still run.
    """

    def __init__(
        self,
        job_id: int,
        settings: JobSettings,
        process: "subprocess.Popen[bytes]",
        project: Project,
        terminator: ProcessTreeTerminator,
        started_at: datetime | None = None,
        grace_period: float = STOP_GRACE_PERIOD,
    ) -> None:
        self.id = job_id
        self.settings = settings
        self.project = project
        self.started_at = started_at or datetime.now()
        self._process = process
        self._terminator = terminator
        self._grace_period = grace_period

        self.output_updated: Signal[str] = Signal("output_updated")
        self.stopping: Signal[None] = Signal("stopping")
        self.stopped: Signal[JobResult] = Signal("stopped")
        self.finished: "Future[JobResult]" = Future()

        self._state_lock = threading.Lock()
        self._state: JobState = Running()
        self._escalated = False
        self._termination_error: ProcessTerminationError | None = None
        self._exited = threading.Event()

        self._output_lock = threading.Lock()
        # Serialises append-and-emit so listeners see buffers in append order.
        # Never held together with _output_lock while a listener runs.
        self._emit_lock = threading.Lock()
        self._output = self.command_line + "\n\n"
        self._output_closed = False

        self._reader_threads: list[threading.Thread] = []
        for name, stream in (("stdout", process.stdout), ("stderr", process.stderr)):
            if stream is None:
                continue
            reader = PipeReader(stream, self._append_output)
            thread = threading.Thread(
                target=reader.run, name=f"Job{job_id}-{name}", daemon=True
            )
            self._reader_threads.append(thread)

        self._watcher_thread = threading.Thread(
            target=self._watch, name=f"Job{job_id}-watcher", daemon=True
        )
        for thread in self._reader_threads:
            thread.start()
        self._watcher_thread.start()

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def command_line(self) -> str:
        args = self._process.args
        if isinstance(args, (str, bytes)):
            return args if isinstance(args, str) else args.decode(errors="replace")
        return subprocess.list2cmdline([str(arg) for arg in args])

    @property
    def state(self) -> JobState:
        with self._state_lock:
            return self._state

    @property
    def output(self) -> str:
        with self._output_lock:
            return self._output

    @property
    def diagnostics(self) -> tuple[DiagnosticRecord, ...]:
        """Records found in the output. Empty until the job has stopped."""
        if not self.finished.done():
            return ()
        return self.finished.result().diagnostics

    def wait(self, timeout: float | None = None) -> JobResult:
        """Block until the job stops.

        Raises:
            concurrent.futures.TimeoutError: If ``timeout`` elapses first
        """
        return self.finished.result(timeout=timeout)

    def stop(self) -> "Future[JobResult]":
        """Stop the job.

        The first call asks the process tree to exit and kills it if it has
        not done so within the grace period. A second call while stopping
        kills it immediately. Calls after the job has stopped do nothing.

        Returns:
            ``finished``, the future of the job's terminal result
        """
        with self._state_lock:
            state = self._state
            if isinstance(state, Stopped):
                return self.finished
            if isinstance(state, Stopping):
                if self._escalated:
                    return self.finished
                self._escalated = True
                graceful = False
            else:
                self._state = Stopping()
                graceful = True

        if graceful:
            logger.info(f"Stopping job {self.id} (PID {self.pid})")
            self.stopping.emit(None)
        else:
            logger.info(f"Killing job {self.id} (PID {self.pid})")

        target = self._stop_gracefully if graceful else self._kill
        threading.Thread(target=target, name=f"Job{self.id}-stop", daemon=True).start()
        return self.finished

    def _stop_gracefully(self) -> None:
        self._record_termination(self._terminator.stop(self.pid, self.settings))

        if self._exited.wait(timeout=self._grace_period):
            return

        with self._state_lock:
            if self._escalated:
                return
            self._escalated = True

        logger.warning(
            f"Job {self.id} did not exit within {self._grace_period}s, killing it"
        )
        self._kill()

    def _kill(self) -> None:
        result = self._terminator.stop(self.pid, self.settings, force=True)
        self._record_termination(result)
        if result.ok:
            return

        # Make sure the root process dies even if the tree could not be walked.
        try:
            self._process.kill()
        except OSError as e:
            logger.debug(f"Failed to kill job {self.id} root process: {e}")

    def _record_termination(self, result: TerminationResult) -> None:
        if result.error is None:
            return
        logger.warning(f"Job {self.id}: {result.error}")
        with self._state_lock:
            if self._termination_error is None:
                self._termination_error = result.error

    def _append_output(self, text: str) -> None:
        text = text.replace("\r", "")
        if not text:
            return
        with self._emit_lock:
            with self._output_lock:
                if self._output_closed:
                    return
                self._output += text
                output = self._output
            # Listeners may read job.output, so the buffer lock is released here.
            self.output_updated.emit(output)

    def _watch(self) -> None:
        exit_code = self._process.wait()
        self._exited.set()
        logger.debug(f"Job {self.id} process exited with code {exit_code}")

        for thread in self._reader_threads:
            thread.join(timeout=READER_DRAIN_TIMEOUT)
            if thread.is_alive():
                logger.warning(
                    f"Job {self.id}: {thread.name} still open {READER_DRAIN_TIMEOUT}s after exit, "
                    "output may be incomplete"
                )

        with self._output_lock:
            self._output_closed = True
            output = self._output

        diagnostics = tuple(extract_diagnostics(output))

        with self._state_lock:
            if isinstance(self._state, Stopping):
                kind = StopKind.STOPPED
            else:
                kind = natural_stop_kind(exit_code, diagnostics)
            stopped = Stopped(kind, exit_code)
            self._state = stopped
            result = JobResult(
                state=stopped,
                diagnostics=diagnostics,
                termination_error=self._termination_error,
            )

        logger.info(f"Job {self.id} {kind.value.lower()} (exit code {exit_code})")
        self.finished.set_result(result)
        self.stopped.emit(result)
