from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class Job(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source_image_path: str | None = None
    output_url: str | None = None
    output_path: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def check_outcome_fields(self) -> "Job":
        """Outcome fields must agree with the status."""
        if self.status == JobStatus.COMPLETED:
            if self.output_url is None or self.error is not None:
                raise ValueError("completed job needs output_url and no error")
        elif self.status == JobStatus.FAILED:
            if self.error is None or self.output_url is not None:
                raise ValueError("failed job needs error and no output_url")
        elif self.output_url is not None or self.error is not None:
            raise ValueError(f"{self.status.value} job cannot carry output_url or error")
        return self


class JobSummary(BaseModel):
    """Public view of a job as returned by the polling API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    status: JobStatus
    created_at: datetime
    output_url: str | None = None
    error: str | None = None

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        return cls(
            id=job.id,
            status=job.status,
            created_at=job.created_at,
            output_url=job.output_url,
            error=job.error,
        )


class JobCreated(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    status: JobStatus
