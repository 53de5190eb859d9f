"""HTTP client for the generation job status endpoint."""

from typing import Any

import httpx
from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from backend.app.config import Settings, get_settings
from backend.app.models.job import GenerationJob


class JobStatusError(Exception):
    """A poll could not produce a job snapshot. Never terminal for polling."""

    def __init__(self, job_id: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.job_id = job_id
        self.status_code = status_code


def snake_keys(value: Any) -> Any:
    """Recursively convert camelCase mapping keys to snake_case."""
    if isinstance(value, dict):
        return {to_snake(key) if isinstance(key, str) else key: snake_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [snake_keys(item) for item in value]
    return value


class JobStatusClient:
    """Reads job snapshots from ``GET <base>/<path>?jobId=<id>``.

    The endpoint answers ``{"success": bool, "job": {...}, "error": str}``
    with camelCase job fields.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._settings.job_status_base_url,
                timeout=self._settings.job_poll_request_timeout_seconds,
            )
        return self._client

    async def fetch_job(self, job_id: str) -> GenerationJob:
        """Fetch the current snapshot of a job.

        Args:
            job_id: Job ID

        Returns:
            Parsed job snapshot (unknown progress stages normalized)

        Raises:
            JobStatusError: On transport failure, non-2xx status, an
                unsuccessful envelope, or an unparseable job
        """
        client = await self._get_client()
        try:
            response = await client.get(self._settings.job_status_path, params={"jobId": job_id})
        except httpx.HTTPError as e:
            raise JobStatusError(job_id, f"Job status request failed: {type(e).__name__}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400 or not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise JobStatusError(
                job_id,
                error or f"Job status request failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        raw_job = data.get("job")
        if not isinstance(raw_job, dict):
            raise JobStatusError(job_id, "Job status response has no job", status_code=response.status_code)

        try:
            return GenerationJob.model_validate({"id": job_id, **snake_keys(raw_job)})
        except ValidationError as e:
            raise JobStatusError(job_id, f"Invalid job payload: {e.error_count()} error(s)") from e

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
