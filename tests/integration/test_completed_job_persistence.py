"""Integration tests: polling a generation job through to a persisted trip plan."""

from typing import Any

import httpx
import pytest
from sqlalchemy.exc import SQLAlchemyError

from backend.app.config import Settings
from backend.app.jobs.client import JobStatusClient
from backend.app.jobs.commit import JOB_ACTOR, JOB_REASON, CompletedPlanWriter
from backend.app.jobs.guards import GenerationGuards
from backend.app.jobs.sync import GenerationJobSync
from backend.app.models.common import RevisionSource
from backend.app.models.job import GenerationJob
from backend.app.trips import persistence
from backend.app.trips.errors import TripPlanPersistenceError
from backend.app.trips.inmemory import InMemoryTripPlanStore

BASE_URL = "http://jobs.test"
OWNER = "user-owner"


def _wire_job(status: str, generation_id: str, trip_id: str, title: str | None = "Roman Week") -> dict[str, Any]:
    """Job snapshot as the status endpoint serves it (camelCase)."""
    return {
        "id": "job-1",
        "status": status,
        "generationId": generation_id,
        "tripId": trip_id,
        "progress": {"stage": "hosts", "message": "Finding hosts"},
        "plan": {
            "title": title,
            "stops": [
                {
                    "title": "Rome",
                    "type": "CITY",
                    "locations": [{"name": "Rome", "lat": 41.9, "lng": 12.5, "placeId": "place-rome"}],
                    "days": [
                        {
                            "dayIndex": 1,
                            "items": [
                                {"type": "sight", "title": "Colosseum", "placeId": "gp-colosseum"},
                                {"type": "MEAL", "title": "Trattoria", "placeId": "unknown"},
                            ],
                        },
                        {"dayIndex": 2, "items": [{"type": "SIGHT", "title": "Vatican"}]},
                    ],
                }
            ],
        },
    }


class RecordingListener:
    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def on_started(self, job_id: str, generation_id: str | None) -> None:
        self.events.append(("started", generation_id))

    def on_progress(self, job: GenerationJob) -> None:
        self.events.append(("progress", job.status.value))

    def on_draft(self, job: GenerationJob) -> None:
        self.events.append(("draft", job.generation_id))

    def on_complete(self, job: GenerationJob) -> None:
        self.events.append(("complete", job.generation_id))

    def on_error(self, job_id: str, message: str) -> None:
        self.events.append(("error", message))

    def on_poll_error(self, job_id: str, error: Exception) -> None:
        self.events.append(("poll_error", str(error)))

    def on_persist_error(self, job: GenerationJob, error: TripPlanPersistenceError | SQLAlchemyError) -> None:
        self.events.append(("persist_error", error.code))


def _client(snapshots: list[dict[str, Any]]) -> JobStatusClient:
    queue = list(snapshots)

    def handler(request: httpx.Request) -> httpx.Response:
        job = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(200, json={"success": True, "job": job})

    return JobStatusClient(
        settings=Settings(job_status_base_url=BASE_URL),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL),
    )


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def store() -> InMemoryTripPlanStore:
    return InMemoryTripPlanStore()


@pytest.mark.asyncio
async def test_completed_job_is_persisted_once(store: InMemoryTripPlanStore) -> None:
    trip_id = store.create_trip(OWNER, "Untitled")
    listener = RecordingListener()
    sync = GenerationJobSync(
        _client(
            [
                _wire_job("running", "g1", trip_id),
                _wire_job("draft", "g1", trip_id),
                _wire_job("complete", "g1", trip_id),
            ]
        ),
        listener,
        view_trip_id=trip_id,
        plan_writer=CompletedPlanWriter(store, expected_trip_owner_user_id=OWNER),
        settings=Settings(),
        sleep=_no_sleep,
    )

    job = await sync.run("job-1")
    await sync.handle_snapshot(job)  # a late duplicate must not write again

    assert job is not None and job.is_terminal
    assert [kind for kind, _ in listener.events] == ["started", "draft", "progress", "progress", "complete"]

    history = persistence.list_trip_revisions(store, user_id=OWNER, trip_id=trip_id)
    assert [r.version for r in history.revisions] == [1]
    revision = history.revisions[0]
    assert revision.source == RevisionSource.planner
    assert revision.actor == JOB_ACTOR
    assert revision.reason == JOB_REASON
    assert revision.job_id == "job-1"
    assert revision.generation_id == "g1"

    snapshot = persistence.load_trip_plan_snapshot(store, user_id=OWNER, trip_id=trip_id)
    assert snapshot is not None
    assert snapshot.trip.title == "2-Day Rome Adventure"
    stop = snapshot.stops[0]
    # Synthetic and sentinel place ids never reach storage
    assert stop.locations[0].place_id is None
    assert [item.place_id for item in stop.days[0].items] == ["gp-colosseum", None]
    assert [day.day_index for day in stop.days] == [1, 2]


@pytest.mark.asyncio
async def test_regeneration_writes_a_new_version(store: InMemoryTripPlanStore) -> None:
    trip_id = store.create_trip(OWNER, "Untitled")
    guards = GenerationGuards()
    writer = CompletedPlanWriter(store)

    for generation_id in ("g1", "g2"):
        sync = GenerationJobSync(
            _client([_wire_job("complete", generation_id, trip_id)]),
            RecordingListener(),
            guards=guards,
            plan_writer=writer,
            settings=Settings(),
            sleep=_no_sleep,
        )
        await sync.run("job-1")

    history = persistence.list_trip_revisions(store, user_id=OWNER, trip_id=trip_id)
    assert [(r.version, r.generation_id) for r in history.revisions] == [(2, "g2"), (1, "g1")]


def test_untitled_plan_gets_generated_title(store: InMemoryTripPlanStore) -> None:
    trip_id = store.create_trip(OWNER, "Untitled")
    writer = CompletedPlanWriter(store)
    job = GenerationJob.model_validate(
        {
            "id": "job-1",
            "status": "complete",
            "generation_id": "g1",
            "trip_id": trip_id,
            "plan": {
                "title": "  ",
                "stops": [
                    {
                        "title": "Rome",
                        "locations": [{"name": "Rome", "lat": 41.9, "lng": 12.5}],
                        "days": [{"day_index": 1, "items": []}],
                    }
                ],
            },
        }
    )

    result = writer.write(job)

    assert result is not None and result.version == 1
    snapshot = persistence.load_trip_plan_snapshot(store, user_id=OWNER, trip_id=trip_id)
    assert snapshot is not None
    assert snapshot.trip.title == "1-Day Rome Adventure"


def test_generic_plan_title_gives_way_to_derived_title(store: InMemoryTripPlanStore) -> None:
    trip_id = store.create_trip(OWNER, "Untitled")
    writer = CompletedPlanWriter(store)
    job = GenerationJob.model_validate(
        {
            "id": "job-1",
            "status": "complete",
            "trip_id": trip_id,
            "plan": {
                "title": "Trip",
                "request": "5 days Italian road trip",
                "stops": [
                    {
                        "title": "Rome",
                        "locations": [{"name": "Rome", "lat": 41.9, "lng": 12.5}],
                        "days": [{"day_index": 1, "items": []}],
                    }
                ],
            },
        }
    )

    writer.write(job)

    snapshot = persistence.load_trip_plan_snapshot(store, user_id=OWNER, trip_id=trip_id)
    assert snapshot is not None
    assert snapshot.trip.title == "5-Day Italian Road Trip"


@pytest.mark.asyncio
async def test_owner_mismatch_is_reported_to_listener(store: InMemoryTripPlanStore) -> None:
    trip_id = store.create_trip(OWNER, "Untitled")
    listener = RecordingListener()
    sync = GenerationJobSync(
        _client([_wire_job("complete", "g1", trip_id)]),
        listener,
        view_trip_id=trip_id,
        plan_writer=CompletedPlanWriter(store, expected_trip_owner_user_id="someone-else"),
        settings=Settings(),
        sleep=_no_sleep,
    )

    await sync.run("job-1")

    assert ("persist_error", "OWNER_MISMATCH") in listener.events
    assert persistence.get_trip_current_version(store, user_id=OWNER, trip_id=trip_id) == 0


def test_job_without_trip_or_plan_is_skipped(store: InMemoryTripPlanStore) -> None:
    writer = CompletedPlanWriter(store)

    assert writer.write(GenerationJob.model_validate({"id": "job-1", "status": "complete"})) is None
