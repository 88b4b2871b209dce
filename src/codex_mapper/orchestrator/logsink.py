"""Fan-out of child output to per-job log files and the shared console."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from typing import TextIO

import rich_click as click

from codex_mapper.orchestrator.models import JobInstance, LogLine

ConsoleWriter = Callable[[str], None]

HEADER_PREFIX = "=== "
FOOTER_PREFIX = "=== "


class JobLogSink:
    """Append-only log file for one job, truncated when opened.

    Lines are flushed as they arrive so an external ``tail -f`` keeps up.
    The footer is the last thing written before the file is closed.
    """

    def __init__(
        self,
        *,
        job: JobInstance,
        handle: TextIO,
        echo: bool,
        console: ConsoleWriter,
        console_lock: threading.Lock,
    ) -> None:
        self.job = job
        self.path = job.log_path
        self._handle = handle
        self._echo = echo
        self._console = console
        self._console_lock = console_lock
        self._file_lock = threading.Lock()
        self._prefix = f"[{job.job_id}] "

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def write_header(self, started_at: datetime) -> None:
        descriptor = self.job.descriptor
        self._write_raw(
            f"{HEADER_PREFIX}{descriptor.label} ({descriptor.id}) "
            f"started {started_at.isoformat()}",
        )

    def write(self, line: LogLine) -> None:
        self._write_raw(line.text)
        if self._echo:
            with self._console_lock:
                self._console(f"{self._prefix}{line.text}")

    def write_note(self, text: str) -> None:
        """Record a runner-side message (spawn errors, timeouts) in the log."""

        self._write_raw(f"{HEADER_PREFIX}{text}")
        if self._echo:
            with self._console_lock:
                self._console(f"{self._prefix}{text}")

    def write_footer(self, exit_code: int | None, ended_at: datetime) -> None:
        code = "none" if exit_code is None else str(exit_code)
        self._write_raw(f"{FOOTER_PREFIX}exit code {code} at {ended_at.isoformat()}")

    def close(self) -> None:
        with self._file_lock:
            if not self._handle.closed:
                self._handle.flush()
                self._handle.close()

    def _write_raw(self, text: str) -> None:
        with self._file_lock:
            if self._handle.closed:
                return
            self._handle.write(text.rstrip("\r\n") + "\n")
            self._handle.flush()

    def __enter__(self) -> JobLogSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class LogMultiplexer:
    """Opens per-job sinks that share one console and one console lock."""

    def __init__(
        self,
        *,
        echo: bool,
        console: ConsoleWriter | None = None,
    ) -> None:
        self.echo = echo
        self._console = console or click.echo
        self._console_lock = threading.Lock()

    def console_line(self, text: str) -> None:
        """Write a runner-level line without interleaving job output."""

        with self._console_lock:
            self._console(text)

    def open_sink(self, job: JobInstance) -> JobLogSink:
        job.log_path.parent.mkdir(parents=True, exist_ok=True)
        handle = job.log_path.open("w", encoding="utf-8")
        return JobLogSink(
            job=job,
            handle=handle,
            echo=self.echo,
            console=self._console,
            console_lock=self._console_lock,
        )
