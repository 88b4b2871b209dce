"""In-memory lifecycle table shared by the scheduler and the renderer."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path

from codex_mapper.orchestrator.catalog import JobDescriptor
from codex_mapper.orchestrator.models import (
    ALLOWED_TRANSITIONS,
    JobInstance,
    JobState,
    JobStatusView,
)

logger = logging.getLogger(__name__)

TrackerListener = Callable[[JobStatusView], None]


class InvalidTransitionError(RuntimeError):
    """Attempted lifecycle transition that the state machine forbids."""

    def __init__(self, job_id: str, current: JobState, requested: JobState) -> None:
        super().__init__(
            f"Illegal transition for {job_id}: {current.value} -> {requested.value}",
        )
        self.job_id = job_id
        self.current = current
        self.requested = requested


class StatusTracker:
    """Holds exactly one entry per admitted descriptor for the whole run.

    Writes go through :meth:`mark_running`, :meth:`mark_done` and
    :meth:`mark_failed`; every write and every :meth:`snapshot` takes the
    same lock, so readers never observe a half-updated entry.
    """

    def __init__(
        self,
        descriptors: Iterable[JobDescriptor],
        *,
        log_dir: Path,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._entries: dict[str, JobInstance] = {}
        self._listeners: list[TrackerListener] = []
        for descriptor in descriptors:
            if descriptor.id in self._entries:
                raise ValueError(f"Duplicate job id: {descriptor.id}")
            self._entries[descriptor.id] = JobInstance(
                descriptor=descriptor,
                log_path=log_path_for(log_dir, descriptor.id),
            )

    @property
    def jobs(self) -> list[JobInstance]:
        """Entries in admission order. Read-only by contract."""

        return list(self._entries.values())

    def get(self, job_id: str) -> JobStatusView:
        with self._lock:
            return _view(self._entries[job_id])

    def subscribe(self, listener: TrackerListener) -> None:
        self._listeners.append(listener)

    def mark_running(self, job_id: str) -> JobStatusView:
        return self._transition(job_id, JobState.RUNNING)

    def mark_done(self, job_id: str) -> JobStatusView:
        return self._transition(job_id, JobState.DONE)

    def mark_failed(self, job_id: str, error: str | None = None) -> JobStatusView:
        return self._transition(job_id, JobState.FAILED, error=error)

    def snapshot(self) -> list[JobStatusView]:
        with self._lock:
            return [_view(entry) for entry in self._entries.values()]

    def count(self, state: JobState) -> int:
        with self._lock:
            return sum(1 for entry in self._entries.values() if entry.state is state)

    def _transition(
        self,
        job_id: str,
        target: JobState,
        *,
        error: str | None = None,
    ) -> JobStatusView:
        with self._lock:
            entry = self._entries[job_id]
            if target not in ALLOWED_TRANSITIONS[entry.state]:
                raise InvalidTransitionError(job_id, entry.state, target)
            now = self._clock()
            if target is JobState.RUNNING:
                entry.started_at = now
            else:
                entry.ended_at = now
                entry.error = error
            entry.state = target
            view = _view(entry)

        logger.debug("Job %s -> %s", job_id, target.value)
        for listener in list(self._listeners):
            listener(view)
        return view


def log_path_for(log_dir: Path, job_id: str) -> Path:
    return log_dir / f"{job_id}.log"


def _view(entry: JobInstance) -> JobStatusView:
    return JobStatusView(
        job_id=entry.job_id,
        label=entry.descriptor.label,
        state=entry.state,
        started_at=entry.started_at,
        ended_at=entry.ended_at,
        log_path=entry.log_path,
        error=entry.error,
    )
