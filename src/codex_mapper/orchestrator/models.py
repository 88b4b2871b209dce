"""Domain models for mapping job execution."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from codex_mapper.orchestrator.catalog import JobDescriptor


class JobState(str, Enum):
    """Per-run job lifecycle states."""

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.DONE, JobState.FAILED})

ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.QUEUED: frozenset({JobState.RUNNING}),
    JobState.RUNNING: frozenset({JobState.DONE, JobState.FAILED}),
    JobState.DONE: frozenset(),
    JobState.FAILED: frozenset(),
}


class StreamName(str, Enum):
    """Child process output stream a log line came from."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(slots=True)
class JobInstance:
    """One execution attempt of a descriptor within a single run."""

    descriptor: JobDescriptor
    log_path: Path
    state: JobState = JobState.QUEUED
    started_at: datetime | None = None
    ended_at: datetime | None = None
    error: str | None = None

    @property
    def job_id(self) -> str:
        return self.descriptor.id


@dataclass(frozen=True, slots=True)
class JobStatusView:
    """Immutable copy of one tracker entry for rendering."""

    job_id: str
    label: str
    state: JobState
    started_at: datetime | None
    ended_at: datetime | None
    log_path: Path
    error: str | None = None

    def elapsed_seconds(self, now: datetime) -> float | None:
        """Seconds spent running; frozen once the job is terminal."""

        if self.started_at is None:
            return None
        end = self.ended_at if self.ended_at is not None else now
        return max(0.0, (end - self.started_at).total_seconds())


@dataclass(frozen=True, slots=True)
class LogLine:
    """A single line of child output tagged with its origin."""

    job_id: str
    stream: StreamName
    text: str
