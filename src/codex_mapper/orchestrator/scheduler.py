"""Bounded pool that admits mapping jobs in order and stops on first failure."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass

from codex_mapper.config import InvalidConfigurationError
from codex_mapper.orchestrator.models import JobInstance
from codex_mapper.orchestrator.tracker import StatusTracker

logger = logging.getLogger(__name__)

RunJob = Callable[[JobInstance], object]


@dataclass(slots=True)
class BatchSummary:
    """Aggregate counters for CLI reporting."""

    total: int = 0
    admitted: int = 0
    succeeded: int = 0
    failed: int = 0
    max_running: int = 0

    @property
    def never_admitted(self) -> int:
        return self.total - self.admitted


class BoundedScheduler:
    """Runs one batch with at most ``concurrency`` jobs in flight.

    Jobs are admitted strictly in list order. A job is marked running at
    admission, just before it is submitted to the pool, so its recorded
    start time is the admission time rather than the process start.

    Completions are handled on the calling thread one at a time, so
    ``index``, ``active`` and ``failed`` plus every tracker write happen in
    a single thread; worker threads only execute ``run_job``.

    The first failure stops admission. Jobs already running are allowed to
    finish, and the failure is raised once none is left running. An instance
    runs exactly one batch.
    """

    def __init__(self, *, concurrency: int, tracker: StatusTracker) -> None:
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise InvalidConfigurationError(
                f"Concurrency must be a positive integer, got {concurrency!r}.",
            )
        self.concurrency = concurrency
        self.summary = BatchSummary()
        self._tracker = tracker
        self._index = 0
        self._active = 0
        self._failed = False
        self._first_error: BaseException | None = None
        self._used = False

    @property
    def active(self) -> int:
        return self._active

    @property
    def first_error(self) -> BaseException | None:
        return self._first_error

    def run(self, jobs: Sequence[JobInstance], run_job: RunJob) -> BatchSummary:
        """Execute ``jobs``; raise the first captured failure after quiescence."""

        if self._used:
            raise RuntimeError("BoundedScheduler instances run a single batch.")
        self._used = True
        self.summary.total = len(jobs)
        if not jobs:
            return self.summary

        workers = min(self.concurrency, len(jobs))
        in_flight: dict[Future[object], JobInstance] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mapper-job") as pool:
            self._admit(pool, jobs, run_job, in_flight)
            while in_flight:
                done, _pending = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in [item for item in in_flight if item in done]:
                    job = in_flight.pop(future)
                    self._settle(job, future)
                self._admit(pool, jobs, run_job, in_flight)

        if self._first_error is not None:
            raise self._first_error
        return self.summary

    def _admit(
        self,
        pool: ThreadPoolExecutor,
        jobs: Sequence[JobInstance],
        run_job: RunJob,
        in_flight: dict[Future[object], JobInstance],
    ) -> None:
        while not self._failed and self._active < self.concurrency and self._index < len(jobs):
            job = jobs[self._index]
            self._index += 1
            self._active += 1
            self.summary.admitted += 1
            self.summary.max_running = max(self.summary.max_running, self._active)
            self._tracker.mark_running(job.job_id)
            logger.debug("Admitted %s (%d/%d running)", job.job_id, self._active, self.concurrency)
            in_flight[pool.submit(run_job, job)] = job

    def _settle(self, job: JobInstance, future: Future[object]) -> None:
        self._active -= 1
        error = future.exception()
        if error is None:
            self.summary.succeeded += 1
            self._tracker.mark_done(job.job_id)
            logger.debug("Job %s done", job.job_id)
            return

        self.summary.failed += 1
        self._tracker.mark_failed(job.job_id, error=str(error))
        if self._failed:
            logger.warning("Job %s also failed: %s", job.job_id, error)
            return
        self._failed = True
        self._first_error = error
        logger.warning(
            "Job %s failed, no further jobs will be admitted (%d still running): %s",
            job.job_id,
            self._active,
            error,
        )
