"""Subprocess-based runner for ``codex exec`` mapping jobs."""

from __future__ import annotations

import json
import logging
import subprocess
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import IO

from codex_mapper.config import RunConfiguration
from codex_mapper.orchestrator.backend.base import JobRunResult
from codex_mapper.orchestrator.logsink import JobLogSink, LogMultiplexer
from codex_mapper.orchestrator.models import JobInstance, LogLine, StreamName
from codex_mapper.orchestrator.prompts import build_prompt

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
DEFAULT_SANDBOX = "workspace-write"
NETWORK_ACCESS_OVERRIDE = "sandbox_workspace_write.network_access=true"
PROMPT_PLACEHOLDER = '"<prompt>"'
KILL_GRACE_SECONDS = 2


class JobRunError(RuntimeError):
    """Job failure surfaced to the scheduler."""

    def __init__(self, job_id: str, message: str) -> None:
        super().__init__(message)
        self.job_id = job_id


class ProcessSpawnError(JobRunError):
    """The executable could not be started at all."""

    def __init__(self, job_id: str, cause: OSError) -> None:
        super().__init__(job_id, f"{job_id} failed to start: {cause}")
        self.cause = cause


class LogFileError(JobRunError):
    """The per-job log file could not be opened."""

    def __init__(self, job_id: str, path: Path, cause: OSError) -> None:
        super().__init__(job_id, f"{job_id} could not open log {path}: {cause}")
        self.path = path
        self.cause = cause


class ProcessExitError(JobRunError):
    """The child process exited with a non-zero status."""

    def __init__(self, job_id: str, code: int, message: str | None = None) -> None:
        super().__init__(job_id, message or f"{job_id} failed with exit code {code}")
        self.code = code


class ProcessTimeoutError(ProcessExitError):
    """The child process outlived the configured per-job timeout."""

    def __init__(self, job_id: str, timeout_seconds: int) -> None:
        super().__init__(
            job_id,
            TIMEOUT_EXIT_CODE,
            f"{job_id} timed out after {timeout_seconds}s",
        )
        self.timeout_seconds = timeout_seconds


@dataclass(slots=True)
class _ProcessOutcome:
    exit_code: int
    timed_out: bool


class CodexExecBackend:
    """Run one catalog group as a single ``codex exec`` child process."""

    def __init__(
        self,
        *,
        config: RunConfiguration,
        multiplexer: LogMultiplexer,
        cwd: Path | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._multiplexer = multiplexer
        self._cwd = cwd
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def build_argv(self, job: JobInstance) -> list[str]:
        prompt = build_prompt(
            job.descriptor,
            planning_dir=self._config.planning_dir,
            templates_dir=self._config.templates_dir,
            network_access=self._config.network_access,
        )
        return [
            *self._config.codex_command,
            *build_codex_args(
                self._config.passthrough_args,
                network_access=self._config.network_access,
            ),
            prompt,
        ]

    def run(self, job: JobInstance) -> JobRunResult:
        argv = self.build_argv(job)
        timeout_seconds = self._config.timeout_seconds

        try:
            sink = self._multiplexer.open_sink(job)
        except OSError as error:
            raise LogFileError(job.job_id, job.log_path, error) from error

        with sink:
            sink.write_header(self._clock())
            try:
                outcome = _run_streaming(
                    argv=argv,
                    job_id=job.job_id,
                    sink=sink,
                    cwd=self._cwd,
                    timeout_seconds=timeout_seconds,
                )
            except OSError as error:
                logger.debug("Job %s could not start %s: %s", job.job_id, argv[0], error)
                sink.write_note(f"failed to start {argv[0]}: {error}")
                sink.write_footer(None, self._clock())
                raise ProcessSpawnError(job.job_id, error) from error
            sink.write_footer(outcome.exit_code, self._clock())

        logger.debug("Job %s exited with %s", job.job_id, outcome.exit_code)
        if outcome.timed_out and timeout_seconds is not None:
            raise ProcessTimeoutError(job.job_id, timeout_seconds)
        if outcome.exit_code != 0:
            raise ProcessExitError(job.job_id, outcome.exit_code)
        return JobRunResult(job_id=job.job_id, exit_code=0, log_path=job.log_path)


def build_codex_args(user_args: Sequence[str], *, network_access: bool = False) -> list[str]:
    """Arguments for ``codex exec`` that always run non-interactively and sandboxed."""

    args = ["exec"]
    has_full_auto = any(arg == "--full-auto" or arg.startswith("--full-auto=") for arg in user_args)
    has_sandbox = any(arg == "--sandbox" or arg.startswith("--sandbox=") for arg in user_args)
    if not has_full_auto:
        args.append("--full-auto")
    if not has_sandbox:
        args.extend(["--sandbox", DEFAULT_SANDBOX])
        if network_access:
            args.extend(["-c", NETWORK_ACCESS_OVERRIDE])
    args.extend(user_args)
    return args


def format_command_preview(
    codex_command: Sequence[str],
    user_args: Sequence[str],
    *,
    network_access: bool = False,
) -> str:
    """Human-readable command line with the instruction text elided."""

    parts = [*codex_command, *build_codex_args(user_args, network_access=network_access)]
    rendered = " ".join(json.dumps(part) if " " in part else part for part in parts)
    return f"{rendered} {PROMPT_PLACEHOLDER}"


def _run_streaming(
    *,
    argv: list[str],
    job_id: str,
    sink: JobLogSink,
    cwd: Path | None,
    timeout_seconds: int | None,
) -> _ProcessOutcome:
    process = subprocess.Popen(  # noqa: S603
        argv,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=cwd,
        text=True,
        encoding="utf-8",
        errors="replace",
        bufsize=1,
    )
    logger.debug("Job %s started pid=%s", job_id, process.pid)
    readers = [
        _start_reader(process.stdout, StreamName.STDOUT, job_id, sink),
        _start_reader(process.stderr, StreamName.STDERR, job_id, sink),
    ]

    timed_out = False
    try:
        returncode = process.wait(timeout=timeout_seconds)
    except subprocess.TimeoutExpired:
        timed_out = True
        sink.write_note(f"timed out after {timeout_seconds}s, terminating")
        _terminate_process(process)
        returncode = TIMEOUT_EXIT_CODE

    # An unkillable child keeps its pipes open; do not wait on its readers forever.
    join_timeout = KILL_GRACE_SECONDS if timed_out else None
    for reader in readers:
        reader.join(timeout=join_timeout)
    return _ProcessOutcome(exit_code=returncode, timed_out=timed_out)


def _start_reader(
    stream: IO[str] | None,
    name: StreamName,
    job_id: str,
    sink: JobLogSink,
) -> threading.Thread:
    thread = threading.Thread(
        target=_pump_lines,
        args=(stream, name, job_id, sink),
        daemon=True,
        name=f"{job_id}-{name.value}",
    )
    thread.start()
    return thread


def _pump_lines(
    stream: IO[str] | None,
    name: StreamName,
    job_id: str,
    sink: JobLogSink,
) -> None:
    if stream is None:
        return
    with stream:
        for raw in stream:
            sink.write(LogLine(job_id=job_id, stream=name, text=raw.rstrip("\r\n")))


def _terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        try:
            process.wait(timeout=KILL_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning("Process %s did not exit after kill", process.pid)
