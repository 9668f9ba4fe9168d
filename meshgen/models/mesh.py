from dataclasses import dataclass


@dataclass(frozen=True)
class MeshFile:
    """One mesh produced by the generation call."""

    url: str  # as served by the remote service
    path: str  # server-local path, fed back into the export call


@dataclass(frozen=True)
class MeshPaths:
    white_mesh: MeshFile
    textured_mesh: MeshFile


@dataclass(frozen=True)
class RemoteCallHandle:
    name: str
    event_id: str
