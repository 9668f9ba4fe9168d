"""Runs one job through the remote generation service.

Stages, each strictly after the previous one succeeded::

    upload -> generation_all -> lambda_4..6 -> on_export_click -> download

Any failure marks the job ``failed`` with ``"<ErrorClass>: message"``. Only the
download stage retries (inside :class:`Downloader`).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from uuid import uuid4

from meshgen.errors import MeshgenError, ProtocolError, StorageError, ValidationError
from meshgen.models.job import JobStatus
from meshgen.models.mesh import MeshFile, MeshPaths
from meshgen.services.artifact_resolver import ArtifactResolver, normalize_url
from meshgen.services.downloader import Downloader
from meshgen.services.event_stream import EventStreamProtocol
from meshgen.services.job_manager import JobManager
from meshgen.services.remote_client import RemoteCallClient

logger = logging.getLogger(__name__)

GENERATION_CALL = "generation_all"
AUXILIARY_CALLS = ("lambda_4", "lambda_5", "lambda_6")
EXPORT_CALL = "on_export_click"

# Positional inputs of generation_all after the image slot
GENERATION_STEPS = 30
GUIDANCE_SCALE = 5
SEED = 1234
OCTREE_RESOLUTION = 256
REMOVE_BACKGROUND = True
NUM_CHUNKS = 8000
RANDOMIZE_SEED = True

EXPORT_FORMAT = "glb"
EXPORT_TEXTURE = False
REDUCE_FACES = True
TARGET_FACE_COUNT = 10000

ARTIFACT_FILENAME = "textured_mesh.glb"


def parse_mesh_paths(payload: Any) -> MeshPaths:
    """Read ``[{value: {path, url}}, {value: {path, url}}]`` from the generation call."""
    try:
        white, textured = payload[0]["value"], payload[1]["value"]
        return MeshPaths(
            white_mesh=MeshFile(url=normalize_url(white["url"]), path=white["path"]),
            textured_mesh=MeshFile(url=normalize_url(textured["url"]), path=textured["path"]),
        )
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        logger.error("Unexpected generation payload: %r", payload)
        raise ProtocolError(f"Generation payload is missing mesh paths: {exc!r}") from exc


class PipelineOrchestrator:
    def __init__(
        self,
        store: JobManager,
        client: RemoteCallClient,
        output_dir: Path,
        *,
        protocol: EventStreamProtocol | None = None,
        resolver: ArtifactResolver | None = None,
        downloader: Downloader | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.output_dir = output_dir
        self.protocol = protocol or EventStreamProtocol(client)
        self.resolver = resolver or ArtifactResolver(client)
        self.downloader = downloader or Downloader(client)

    def run(self, job_id: str) -> None:
        job = self.store.transition(job_id, JobStatus.PROCESSING)
        logger.info("Job %s processing", job_id)
        try:
            if job.source_image_path is None:
                raise StorageError("Job has no stored source image")
            output_path = self._execute(job_id, Path(job.source_image_path))
        except MeshgenError as exc:
            logger.error("Job %s failed: %s", job_id, exc)
            self._fail(job_id, exc)
            return
        except Exception as exc:
            logger.exception("Job %s failed unexpectedly", job_id)
            self._fail(job_id, exc)
            return

        self.store.transition(
            job_id,
            JobStatus.COMPLETED,
            output_url=f"/api/jobs/{job_id}/file",
            output_path=str(output_path),
        )
        logger.info("Job %s completed: %s", job_id, output_path)

    def _fail(self, job_id: str, exc: Exception) -> None:
        self.store.transition(job_id, JobStatus.FAILED, error=f"{type(exc).__name__}: {exc}")

    def _execute(self, job_id: str, image_path: Path) -> Path:
        descriptor = self.upload(image_path)
        mesh_paths = self.generate(descriptor)
        for name in AUXILIARY_CALLS:
            logger.info("Calling %s", name)
            self.protocol.call(name, [])
        url = self.export(mesh_paths)

        destination = self.output_dir / job_id / ARTIFACT_FILENAME
        self.downloader.download(url, destination)
        return destination

    def upload(self, image_path: Path) -> str:
        upload_id = uuid4().hex[:10]
        logger.info("Uploading %s as %s", image_path.name, upload_id)
        try:
            body = self.client.upload(upload_id, image_path)
        except OSError as exc:
            raise StorageError(f"Cannot read source image {image_path}: {exc}") from exc
        except ValueError as exc:
            raise ProtocolError(f"Upload response is not JSON: {exc}") from exc
        if not isinstance(body, list) or not body or not isinstance(body[0], str):
            raise ProtocolError(f"Upload response has no file descriptor: {body!r:.200}")
        return body[0]

    def generate(self, descriptor: str) -> MeshPaths:
        logger.info("Generating mesh from %s", descriptor)
        payload = self.protocol.call(
            GENERATION_CALL,
            [
                "",
                {"path": descriptor},
                None,
                None,
                None,
                None,
                GENERATION_STEPS,
                GUIDANCE_SCALE,
                SEED,
                OCTREE_RESOLUTION,
                REMOVE_BACKGROUND,
                NUM_CHUNKS,
                RANDOMIZE_SEED,
            ],
        )
        mesh_paths = parse_mesh_paths(payload)
        logger.info("Generated meshes: %s", mesh_paths)
        return mesh_paths

    def export(self, mesh_paths: MeshPaths) -> str:
        logger.info("Exporting %s", mesh_paths.textured_mesh.path)
        payload = self.protocol.call(
            EXPORT_CALL,
            [
                {"path": mesh_paths.white_mesh.path},
                {"path": mesh_paths.textured_mesh.path},
                EXPORT_FORMAT,
                EXPORT_TEXTURE,
                REDUCE_FACES,
                TARGET_FACE_COUNT,
            ],
        )
        url = self.resolver.derive_download_url(payload)
        if not self.resolver.validate(url):
            raise ValidationError(f"Output URL is not accessible: {url}")
        return url
