"""Tests for the job status HTTP client."""

import httpx
import pytest

from backend.app.config import Settings
from backend.app.jobs.client import JobStatusClient, JobStatusError, snake_keys
from backend.app.models.job import JobStage, JobStatus

BASE_URL = "http://jobs.test"


def _client(handler) -> JobStatusClient:  # type: ignore[no-untyped-def]
    transport = httpx.MockTransport(handler)
    return JobStatusClient(
        settings=Settings(job_status_base_url=BASE_URL),
        client=httpx.AsyncClient(transport=transport, base_url=BASE_URL),
    )


@pytest.mark.asyncio
async def test_fetch_job_parses_camel_case_snapshot() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "success": True,
                "job": {
                    "id": "job-1",
                    "status": "complete",
                    "generationId": "g1",
                    "generationMode": "refine",
                    "tripId": "trip-1",
                    "progress": {"stage": "warp", "message": "", "current": 3, "total": 3},
                    "plan": {
                        "title": "Rome",
                        "stops": [
                            {
                                "title": "Rome",
                                "locations": [{"name": "Rome", "lat": 41.9, "lng": 12.5, "placeId": "gp-rome"}],
                                "days": [
                                    {
                                        "dayIndex": 1,
                                        "suggestedHosts": [],
                                        "items": [{"type": "SIGHT", "title": "Colosseum", "orderIndex": 0}],
                                    }
                                ],
                            }
                        ],
                    },
                    "hostMarkers": [{"hostId": "h1"}],
                },
            },
        )

    client = _client(handler)
    job = await client.fetch_job("job-1")

    assert seen[0].url.path == "/api/orchestrator"
    assert seen[0].url.params["jobId"] == "job-1"
    assert job.status == JobStatus.complete
    assert job.generation_id == "g1"
    assert job.trip_id == "trip-1"
    assert job.progress is not None
    assert job.progress.stage == JobStage.geocoding
    assert job.progress.message == "Working..."
    assert job.plan is not None
    assert job.plan.stops[0].days[0].day_index == 1
    assert job.plan.stops[0].locations[0].place_id == "gp-rome"
    assert job.host_markers == [{"host_id": "h1"}]


@pytest.mark.asyncio
async def test_unsuccessful_envelope_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"success": False, "error": "Job not found"})

    with pytest.raises(JobStatusError) as exc_info:
        await _client(handler).fetch_job("missing")

    assert exc_info.value.status_code == 404
    assert exc_info.value.job_id == "missing"
    assert "Job not found" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_error_raises_job_status_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(JobStatusError) as exc_info:
        await _client(handler).fetch_job("job-1")

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_non_json_body_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad gateway</html>")

    with pytest.raises(JobStatusError) as exc_info:
        await _client(handler).fetch_job("job-1")

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_invalid_job_payload_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "job": {"status": "exploded"}})

    with pytest.raises(JobStatusError):
        await _client(handler).fetch_job("job-1")


def test_snake_keys_is_recursive() -> None:
    assert snake_keys({"dayIndex": 1, "items": [{"orderIndex": 2}]}) == {
        "day_index": 1,
        "items": [{"order_index": 2}],
    }
