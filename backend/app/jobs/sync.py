"""Polling state machine that follows a generation job to completion.

Per job: idle -> started -> polling -> draft* -> complete | error.

- "started" fires once per (job, generation), including when a poll reveals
  a new generation for the same job (regeneration)
- a draft plan is applied at most once per generation and never after that
  generation completed
- completion is applied once per generation, stops polling, and persists
  the plan to its trip when a writer is configured
- error stops polling; poll failures are reported but keep the loop going
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from backend.app.config import Settings, get_settings
from backend.app.jobs.client import JobStatusClient, JobStatusError
from backend.app.jobs.commit import CompletedPlanWriter
from backend.app.jobs.guards import GenerationGuards
from backend.app.models.job import GenerationJob, JobStatus
from backend.app.trips.errors import TripPlanPersistenceError
from backend.app.utils.metrics import plan_metrics

logger = logging.getLogger(__name__)

DEFAULT_JOB_ERROR = "Failed to build itinerary."


class JobSyncListener(Protocol):
    """Receives the transitions a view applies."""

    def on_started(self, job_id: str, generation_id: str | None) -> None: ...

    def on_progress(self, job: GenerationJob) -> None: ...

    def on_draft(self, job: GenerationJob) -> None: ...

    def on_complete(self, job: GenerationJob) -> None: ...

    def on_error(self, job_id: str, message: str) -> None: ...

    def on_poll_error(self, job_id: str, error: JobStatusError) -> None: ...

    def on_persist_error(self, job: GenerationJob, error: TripPlanPersistenceError | SQLAlchemyError) -> None: ...


@dataclass
class _TrackedJob:
    job_id: str
    generation_id: str | None = None
    trip_id: str | None = None
    in_flight: bool = False


class GenerationJobSync:
    """Follows generation jobs and applies their transitions exactly once.

    ``guards`` outlives any one poller; pass the same instance to a
    re-created sync to keep its one-shot transitions from firing again.
    """

    def __init__(
        self,
        client: JobStatusClient,
        listener: JobSyncListener,
        *,
        guards: GenerationGuards | None = None,
        view_trip_id: str | None = None,
        plan_writer: CompletedPlanWriter | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._listener = listener
        self.guards = guards or GenerationGuards()
        self._view_trip_id = view_trip_id
        self._writer = plan_writer
        self._settings = settings or get_settings()
        self._sleep = sleep
        self._jobs: dict[str, _TrackedJob] = {}

    def set_view_trip(self, trip_id: str | None) -> None:
        """Change the trip being viewed; results for other trips are not applied."""
        self._view_trip_id = trip_id

    def track(self, job_id: str, *, generation_id: str | None = None, trip_id: str | None = None) -> None:
        """Start following a job. Emits "started" at once when the generation is known."""
        tracked = self._jobs.setdefault(job_id, _TrackedJob(job_id=job_id))
        if generation_id:
            tracked.generation_id = generation_id
        if trip_id:
            tracked.trip_id = trip_id

        if generation_id and self._in_view(tracked.trip_id):
            self._start(job_id, generation_id)

    def untrack(self, job_id: str) -> None:
        """Stop following a job. Guard state is kept."""
        self._jobs.pop(job_id, None)

    def is_tracking(self, job_id: str) -> bool:
        return job_id in self._jobs

    def _in_view(self, trip_id: str | None) -> bool:
        return self._view_trip_id is None or trip_id is None or trip_id == self._view_trip_id

    def _start(self, job_id: str, generation_id: str | None) -> None:
        if self.guards.claim_start(job_id, generation_id):
            logger.info(
                f"Generation started: job={job_id} generation={generation_id}",
                extra={"structured": {"job_id": job_id, "generation_id": generation_id}},
            )
            plan_metrics.inc_transition("started")
            self._listener.on_started(job_id, generation_id)

    async def handle_snapshot(self, job: GenerationJob) -> None:
        """Apply one job snapshot."""
        tracked = self._jobs.get(job.id)
        if tracked is not None:
            if job.generation_id:
                tracked.generation_id = job.generation_id
            if job.trip_id:
                tracked.trip_id = job.trip_id

        generation_id = job.generation_id or (tracked.generation_id if tracked else None)
        trip_id = job.trip_id or (tracked.trip_id if tracked else None)
        in_view = self._in_view(trip_id)

        if not in_view:
            logger.debug(
                f"Ignoring job {job.id} for trip {trip_id}; viewing {self._view_trip_id}",
                extra={"structured": {"job_id": job.id, "trip_id": trip_id}},
            )
        else:
            self._start(job.id, generation_id)

        if job.status == JobStatus.error:
            if in_view:
                plan_metrics.inc_transition("error")
                self._listener.on_error(job.id, job.error or DEFAULT_JOB_ERROR)
            return

        if job.status == JobStatus.complete:
            if in_view and self.guards.claim_completion(job.id, generation_id):
                plan_metrics.inc_transition("complete")
                self._listener.on_complete(job)
            await self._persist(job, generation_id, trip_id)
            return

        if job.plan is not None and in_view and self.guards.claim_draft(job.id, generation_id):
            plan_metrics.inc_transition("draft")
            self._listener.on_draft(job)

        if job.progress is not None and in_view:
            self._listener.on_progress(job)

    async def _persist(self, job: GenerationJob, generation_id: str | None, trip_id: str | None) -> None:
        if self._writer is None or job.plan is None or not trip_id:
            return
        if not self.guards.claim_persist(job.id, generation_id):
            return

        job = job.model_copy(update={"trip_id": trip_id, "generation_id": generation_id})
        try:
            await asyncio.to_thread(self._writer.write, job)
        except TripPlanPersistenceError as e:
            logger.warning(
                f"Failed to persist plan for job {job.id}: {e.code}",
                extra={"structured": {"job_id": job.id, "trip_id": trip_id, "code": e.code}},
            )
            self._listener.on_persist_error(job, e)
        except SQLAlchemyError as e:
            # Nothing was committed; the next snapshot of this generation retries
            self.guards.release_persist(job.id, generation_id)
            logger.error(
                f"Database error persisting plan for job {job.id}: {e}",
                extra={"structured": {"job_id": job.id, "trip_id": trip_id, "generation_id": generation_id}},
            )
            self._listener.on_persist_error(job, e)

    async def poll_once(self, job_id: str) -> GenerationJob | None:
        """Poll a tracked job once.

        Returns None when the tick is dropped (a poll is already in flight or
        the job is not tracked) or when the poll failed.
        """
        tracked = self._jobs.get(job_id)
        if tracked is None or tracked.in_flight:
            return None

        tracked.in_flight = True
        try:
            try:
                job = await self._client.fetch_job(job_id)
            except JobStatusError as e:
                plan_metrics.inc_poll("error")
                logger.warning(
                    f"Job poll failed: job={job_id}: {e}",
                    extra={"structured": {"job_id": job_id, "status_code": e.status_code}},
                )
                self._listener.on_poll_error(job_id, e)
                return None

            plan_metrics.inc_poll("ok")
            await self.handle_snapshot(job)
            return job
        finally:
            tracked.in_flight = False

    async def run(
        self, job_id: str, *, generation_id: str | None = None, trip_id: str | None = None
    ) -> GenerationJob | None:
        """Poll a job on a fixed interval until it completes or errors.

        Stops early only when ``job_poll_max_duration_seconds`` is set and
        elapses.

        Returns:
            The terminal snapshot, or None if the deadline passed first
        """
        self.track(job_id, generation_id=generation_id, trip_id=trip_id)
        interval = self._settings.job_poll_interval_ms / 1000
        max_duration = self._settings.job_poll_max_duration_seconds
        loop = asyncio.get_running_loop()
        started_at = loop.time()

        try:
            while True:
                job = await self.poll_once(job_id)
                if job is not None and job.is_terminal:
                    return job

                if max_duration is not None and loop.time() - started_at >= max_duration:
                    logger.warning(
                        f"Stopped polling job {job_id} after {max_duration}s",
                        extra={"structured": {"job_id": job_id}},
                    )
                    self._listener.on_poll_error(
                        job_id, JobStatusError(job_id, f"Polling stopped after {max_duration}s")
                    )
                    return None

                await self._sleep(interval)
        finally:
            self.untrack(job_id)
