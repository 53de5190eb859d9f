"""Tests for the generation job polling state machine."""

import asyncio
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from backend.app.config import Settings
from backend.app.jobs.client import JobStatusError
from backend.app.jobs.guards import GenerationGuards
from backend.app.jobs.sync import DEFAULT_JOB_ERROR, GenerationJobSync
from backend.app.models.job import GenerationJob
from backend.app.trips.errors import TripPlanPersistenceError


def _plan(title: str) -> dict[str, Any]:
    return {
        "title": title,
        "stops": [
            {
                "title": "Rome",
                "locations": [{"name": "Rome", "lat": 41.9, "lng": 12.5}],
                "days": [{"day_index": 1, "items": [{"title": f"{title} item"}]}],
            }
        ],
    }


def _job(status: str, generation_id: str | None, plan: str | None = None, **extra: Any) -> GenerationJob:
    values: dict[str, Any] = {"id": "job-1", "status": status, "generation_id": generation_id}
    if plan is not None:
        values["plan"] = _plan(plan)
    values.update(extra)
    return GenerationJob.model_validate(values)


class RecordingListener:
    """Collects transitions as (kind, detail) tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def on_started(self, job_id: str, generation_id: str | None) -> None:
        self.events.append(("started", generation_id))

    def on_progress(self, job: GenerationJob) -> None:
        self.events.append(("progress", job.progress.stage.value if job.progress else None))

    def on_draft(self, job: GenerationJob) -> None:
        self.events.append(("draft", job.plan.title if job.plan else None))

    def on_complete(self, job: GenerationJob) -> None:
        self.events.append(("complete", job.plan.title if job.plan else None))

    def on_error(self, job_id: str, message: str) -> None:
        self.events.append(("error", message))

    def on_poll_error(self, job_id: str, error: JobStatusError) -> None:
        self.events.append(("poll_error", str(error)))

    def on_persist_error(self, job: GenerationJob, error: TripPlanPersistenceError | SQLAlchemyError) -> None:
        self.events.append(("persist_error", error.code))

    def kinds(self, *wanted: str) -> list[tuple[str, Any]]:
        return [event for event in self.events if event[0] in wanted]


class ScriptedClient:
    """Returns queued snapshots (or raises queued errors) in order."""

    def __init__(self, *responses: GenerationJob | JobStatusError) -> None:
        self.responses = list(responses)
        self.calls = 0

    async def fetch_job(self, job_id: str) -> GenerationJob:
        self.calls += 1
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, JobStatusError):
            raise response
        return response


class RecordingWriter:
    def __init__(self, error: TripPlanPersistenceError | None = None) -> None:
        self.jobs: list[GenerationJob] = []
        self.error = error

    def write(self, job: GenerationJob) -> None:
        self.jobs.append(job)
        if self.error is not None:
            raise self.error


async def _no_sleep(seconds: float) -> None:
    return None


def _sync(client: Any, listener: RecordingListener, **kwargs: Any) -> GenerationJobSync:
    return GenerationJobSync(client, listener, settings=Settings(), sleep=_no_sleep, **kwargs)


@pytest.mark.asyncio
async def test_regeneration_scenario_transition_sequence() -> None:
    """draft(g1) -> complete(g1) -> draft(g2) yields one start and one completion per generation."""
    listener = RecordingListener()
    sync = _sync(ScriptedClient(_job("draft", "g1")), listener)

    for snapshot in [
        _job("draft", "g1", "P1"),
        _job("complete", "g1", "P2"),
        _job("draft", "g2", "P3"),
    ]:
        await sync.handle_snapshot(snapshot)

    assert listener.kinds("started", "draft", "complete") == [
        ("started", "g1"),
        ("draft", "P1"),
        ("complete", "P2"),
        ("started", "g2"),
        ("draft", "P3"),
    ]


@pytest.mark.asyncio
async def test_duplicate_snapshots_do_not_refire() -> None:
    listener = RecordingListener()
    sync = _sync(ScriptedClient(_job("draft", "g1")), listener)

    for _ in range(3):
        await sync.handle_snapshot(_job("draft", "g1", "P1"))
    for _ in range(3):
        await sync.handle_snapshot(_job("complete", "g1", "P2"))
    # A stale draft after completion must not regress the finished plan
    await sync.handle_snapshot(_job("draft", "g1", "P1"))

    assert listener.kinds("started", "draft", "complete") == [
        ("started", "g1"),
        ("draft", "P1"),
        ("complete", "P2"),
    ]


@pytest.mark.asyncio
async def test_shared_guards_survive_remount() -> None:
    guards = GenerationGuards()
    first = RecordingListener()
    await _sync(ScriptedClient(_job("draft", "g1")), first, guards=guards).handle_snapshot(
        _job("complete", "g1", "P2")
    )

    second = RecordingListener()
    remounted = _sync(ScriptedClient(_job("draft", "g1")), second, guards=guards)
    remounted.track("job-1", generation_id="g1")
    await remounted.handle_snapshot(_job("complete", "g1", "P2"))

    assert first.kinds("started", "complete") == [("started", "g1"), ("complete", "P2")]
    assert second.kinds("started", "complete", "draft") == []


@pytest.mark.asyncio
async def test_track_with_known_generation_starts_immediately() -> None:
    listener = RecordingListener()
    sync = _sync(ScriptedClient(_job("draft", "g1")), listener)

    sync.track("job-1", generation_id="g1", trip_id="trip-1")
    sync.track("job-1", generation_id="g1", trip_id="trip-1")

    assert listener.events == [("started", "g1")]
    assert sync.is_tracking("job-1")


@pytest.mark.asyncio
async def test_other_trip_results_are_not_applied_but_still_persisted() -> None:
    listener = RecordingListener()
    writer = RecordingWriter()
    sync = _sync(ScriptedClient(_job("draft", "g1")), listener, view_trip_id="trip-B", plan_writer=writer)

    await sync.handle_snapshot(_job("draft", "g1", "P1", trip_id="trip-A"))
    await sync.handle_snapshot(_job("complete", "g1", "P2", trip_id="trip-A"))

    assert listener.events == []
    assert [job.trip_id for job in writer.jobs] == ["trip-A"]


@pytest.mark.asyncio
async def test_completion_persists_once_per_generation() -> None:
    listener = RecordingListener()
    writer = RecordingWriter()
    sync = _sync(ScriptedClient(_job("draft", "g1")), listener, plan_writer=writer)
    sync.track("job-1", trip_id="trip-1")

    await sync.handle_snapshot(_job("complete", "g1", "P2"))
    await sync.handle_snapshot(_job("complete", "g1", "P2"))

    assert len(writer.jobs) == 1
    assert writer.jobs[0].trip_id == "trip-1"
    assert writer.jobs[0].generation_id == "g1"


@pytest.mark.asyncio
async def test_persist_failure_is_reported() -> None:
    listener = RecordingListener()
    writer = RecordingWriter(error=TripPlanPersistenceError("boom", code="NOT_FOUND"))
    sync = _sync(ScriptedClient(_job("draft", "g1")), listener, plan_writer=writer)

    await sync.handle_snapshot(_job("complete", "g1", "P2", trip_id="trip-1"))

    assert ("persist_error", "NOT_FOUND") in listener.events


class FlakyWriter:
    """Raises a database error on the first write, then succeeds."""

    def __init__(self) -> None:
        self.jobs: list[GenerationJob] = []

    def write(self, job: GenerationJob) -> None:
        self.jobs.append(job)
        if len(self.jobs) == 1:
            raise OperationalError("INSERT INTO trip_revision", {}, Exception("database is locked"))


@pytest.mark.asyncio
async def test_database_failure_is_retried_by_remounted_sync() -> None:
    guards = GenerationGuards()
    writer = FlakyWriter()
    first = RecordingListener()
    complete = _job("complete", "g1", "P2", trip_id="trip-1")

    job = await _sync(ScriptedClient(complete), first, guards=guards, plan_writer=writer).run("job-1")

    assert job is not None and job.is_terminal
    assert len(first.kinds("persist_error")) == 1

    second = RecordingListener()
    await _sync(ScriptedClient(complete), second, guards=guards, plan_writer=writer).run("job-1")

    assert len(writer.jobs) == 2
    # Completion was already applied by the first view
    assert second.events == []


@pytest.mark.asyncio
async def test_run_stops_on_complete() -> None:
    listener = RecordingListener()
    client = ScriptedClient(
        _job("running", "g1", progress={"stage": "routing", "message": "Routing"}),
        _job("draft", "g1", "P1", progress={"stage": "hosts"}),
        _job("complete", "g1", "P2"),
    )
    sync = _sync(client, listener)

    job = await sync.run("job-1")

    assert job is not None and job.status.value == "complete"
    assert client.calls == 3
    assert listener.events == [
        ("started", "g1"),
        ("progress", "routing"),
        ("draft", "P1"),
        ("progress", "hosts"),
        ("complete", "P2"),
    ]
    assert not sync.is_tracking("job-1")


@pytest.mark.asyncio
async def test_run_keeps_polling_through_poll_errors_and_stops_on_error_status() -> None:
    listener = RecordingListener()
    client = ScriptedClient(
        JobStatusError("job-1", "connection refused"),
        _job("running", "g1"),
        _job("error", "g1"),
    )
    sync = _sync(client, listener)

    job = await sync.run("job-1")

    assert job is not None and job.is_terminal
    assert client.calls == 3
    assert listener.kinds("poll_error", "error") == [
        ("poll_error", "connection refused"),
        ("error", DEFAULT_JOB_ERROR),
    ]


@pytest.mark.asyncio
async def test_run_honours_max_duration() -> None:
    listener = RecordingListener()
    client = ScriptedClient(_job("running", "g1"))
    sync = GenerationJobSync(
        client,
        listener,
        settings=Settings(job_poll_interval_ms=1, job_poll_max_duration_seconds=0.0),
    )

    job = await sync.run("job-1")

    assert job is None
    assert client.calls == 1
    assert listener.kinds("poll_error") == [("poll_error", "Polling stopped after 0.0s")]


@pytest.mark.asyncio
async def test_in_flight_poll_drops_concurrent_tick() -> None:
    release = asyncio.Event()

    class SlowClient:
        calls = 0

        async def fetch_job(self, job_id: str) -> GenerationJob:
            SlowClient.calls += 1
            await release.wait()
            return _job("running", "g1")

    sync = _sync(SlowClient(), RecordingListener())
    sync.track("job-1")

    first = asyncio.create_task(sync.poll_once("job-1"))
    await asyncio.sleep(0)
    dropped = await sync.poll_once("job-1")
    release.set()
    completed = await first

    assert dropped is None
    assert completed is not None
    assert SlowClient.calls == 1
