"""Exception hierarchy for the mesh generation backend.

Every failure a job can hit while talking to the remote generation service
maps onto one of these classes. The pipeline records ``"<ClassName>: message"``
on the failed job, so the class name is part of what callers see when polling.
"""

from __future__ import annotations

from typing import Any, Optional

__all__ = [
    "MeshgenError",
    "TransportError",
    "RemoteConnectionError",
    "RemoteTimeoutError",
    "RemoteStatusError",
    "ProtocolError",
    "RemoteGenerationError",
    "ValidationError",
    "StorageError",
    "JobStoreError",
    "JobNotFoundError",
    "InvalidTransitionError",
]


class MeshgenError(RuntimeError):
    """Base exception for job pipeline failures."""


class TransportError(MeshgenError):
    """Raised when an HTTP exchange with the remote service fails."""


class RemoteConnectionError(TransportError):
    """Raised when the remote service cannot be reached."""


class RemoteTimeoutError(TransportError):
    """Raised when a request or stream drain exceeds its deadline."""


class RemoteStatusError(TransportError):
    """Raised when the remote service answers with a non-2xx status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(MeshgenError):
    """Raised when a remote response does not have the expected shape."""


class RemoteGenerationError(MeshgenError):
    """Raised when the remote event stream reports an explicit error event."""

    def __init__(self, message: str, *, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class ValidationError(MeshgenError):
    """Raised when a resolved artifact URL is not reachable."""


class StorageError(MeshgenError):
    """Raised when writing to local storage fails."""


class JobStoreError(MeshgenError):
    """Base class for job table misuse."""


class JobNotFoundError(JobStoreError):
    """Raised when a job id is not present in the store."""


class InvalidTransitionError(JobStoreError):
    """Raised when a status change is not allowed by the job state machine."""
