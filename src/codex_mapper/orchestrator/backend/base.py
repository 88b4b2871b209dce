"""Backend interface for mapping job execution."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from codex_mapper.orchestrator.models import JobInstance


@dataclass(slots=True)
class JobRunResult:
    """Execution outcome of one successful child process."""

    job_id: str
    exit_code: int
    log_path: Path


class JobBackend(Protocol):
    """Protocol implemented by job runners."""

    def run(self, job: JobInstance) -> JobRunResult:
        """Run one job to completion; raise ``JobRunError`` on failure."""
