"""Persist the plan of a completed generation job."""

import logging

from backend.app.itinerary.converter import plan_to_write_payload
from backend.app.itinerary.titles import generate_trip_title
from backend.app.models.common import RevisionSource
from backend.app.models.job import GenerationJob
from backend.app.models.revisions import WriteAudit
from backend.app.models.trip_plan import PlanWriteResult
from backend.app.trips.persistence import save_trip_plan_internal
from backend.app.trips.store import TripPlanStore

logger = logging.getLogger(__name__)

JOB_ACTOR = "generation-job"
JOB_REASON = "generation_job_complete"


class CompletedPlanWriter:
    """Writes a finished job's plan to its trip as a trusted internal write."""

    def __init__(
        self,
        store: TripPlanStore,
        *,
        actor: str = JOB_ACTOR,
        expected_trip_owner_user_id: str | None = None,
    ) -> None:
        self._store = store
        self._actor = actor
        self._expected_owner = expected_trip_owner_user_id

    def write(self, job: GenerationJob) -> PlanWriteResult | None:
        """Persist ``job.plan`` to ``job.trip_id``.

        Returns:
            The write result, or None when the job has no trip or plan

        Raises:
            TripPlanPersistenceError: If the write is rejected or conflicts
        """
        if not job.trip_id or job.plan is None:
            return None

        plan = job.plan
        payload = plan_to_write_payload(plan, title=generate_trip_title(plan))

        result = save_trip_plan_internal(
            self._store,
            trip_id=job.trip_id,
            payload=payload,
            actor=self._actor,
            reason=JOB_REASON,
            expected_trip_owner_user_id=self._expected_owner,
            audit=WriteAudit(
                source=RevisionSource.planner,
                actor=self._actor,
                job_id=job.id,
                generation_id=job.generation_id,
            ),
        )
        logger.info(
            f"Persisted plan for job {job.id} to trip {job.trip_id} as v{result.version}",
            extra={"structured": {"job_id": job.id, "generation_id": job.generation_id}},
        )
        return result
