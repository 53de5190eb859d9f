"""Generation job models - the polled view of an asynchronous planning job."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator

from backend.app.models.plan import Plan


class JobStatus(str, Enum):
    """Lifecycle status of a planning job."""

    draft = "draft"
    running = "running"
    complete = "complete"
    error = "error"


class JobStage(str, Enum):
    """Progress stage reported by a planning job."""

    draft = "draft"
    geocoding = "geocoding"
    routing = "routing"
    hosts = "hosts"
    final = "final"
    complete = "complete"
    error = "error"


class GenerationMode(str, Enum):
    draft = "draft"
    refine = "refine"


DEFAULT_STAGE = JobStage.geocoding
DEFAULT_PROGRESS_MESSAGE = "Working..."


class JobProgress(BaseModel):
    """Progress of the current generation."""

    stage: JobStage = DEFAULT_STAGE
    message: str = DEFAULT_PROGRESS_MESSAGE
    current: int | None = None
    total: int | None = None

    @field_validator("stage", mode="before")
    @classmethod
    def _normalize_stage(cls, value: Any) -> JobStage:
        # Unknown stages must not leak through to the view
        try:
            return JobStage(value)
        except ValueError:
            return DEFAULT_STAGE

    @field_validator("message", mode="before")
    @classmethod
    def _default_message(cls, value: Any) -> str:
        if isinstance(value, str) and value:
            return value
        return DEFAULT_PROGRESS_MESSAGE


class GenerationJob(BaseModel):
    """Snapshot of a planning job as returned by the job status endpoint."""

    id: str
    status: JobStatus
    generation_id: str | None = None
    generation_mode: GenerationMode | None = None
    trip_id: str | None = None
    progress: JobProgress | None = None
    plan: Plan | None = None
    host_markers: list[dict[str, Any]] | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.complete, JobStatus.error)
