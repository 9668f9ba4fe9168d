import threading
from typing import Any, Callable

from meshgen.errors import InvalidTransitionError, JobNotFoundError, JobStoreError
from meshgen.models.job import ALLOWED_TRANSITIONS, Job, JobStatus

JobMutator = Callable[[Job], dict[str, Any]]


class JobManager:
    """In-memory job table.

    Records are never mutated in place. Every update builds a new validated
    ``Job`` and swaps it in under the lock, so readers see either the old or
    the new record and never a half-written one.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def create_job(self, **fields: Any) -> Job:
        job = Job(**fields)
        with self._lock:
            if job.id in self._jobs:
                raise JobStoreError(f"Job {job.id} already exists")
            self._jobs[job.id] = job
        return job

    def get_job(self, job_id: str) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> list[Job]:
        # dicts keep insertion order, which is creation order here
        with self._lock:
            return list(self._jobs.values())

    def update_job(
        self, job_id: str, mutator: JobMutator | None = None, **fields: Any
    ) -> Job | None:
        """Apply ``fields`` (and whatever ``mutator`` returns) atomically.

        Status changes must go through :meth:`transition`.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            changes = dict(mutator(job)) if mutator is not None else {}
            changes.update(fields)
            if "status" in changes and changes["status"] != job.status:
                raise InvalidTransitionError(
                    f"use transition() to change status of job {job_id}"
                )
            return self._replace(job, changes)

    def transition(self, job_id: str, status: JobStatus, **fields: Any) -> Job:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            if status not in ALLOWED_TRANSITIONS[job.status]:
                raise InvalidTransitionError(
                    f"Job {job_id}: {job.status.value} -> {status.value} not allowed"
                )
            return self._replace(job, {**fields, "status": status})

    def _replace(self, job: Job, changes: dict[str, Any]) -> Job:
        # model_copy skips validation, so rebuild to enforce the invariants
        updated = Job.model_validate({**job.model_dump(), **changes})
        self._jobs[job.id] = updated
        return updated
