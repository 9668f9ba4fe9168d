"""Pytest configuration and shared fixtures for the mesh generation backend tests."""

import json
import threading
import time
from pathlib import Path

import httpx
import pytest

from meshgen.config import Settings
from meshgen.services.job_manager import JobManager
from meshgen.services.remote_client import RemoteCallClient

BASE_URL = "http://remote.test:42004"
ARTIFACT_ID = "3f2a9c1e-0b7d-4e55-9a61-2c8d5f7e1b40"
ARTIFACT_BYTES = b"glTF\x02\x00\x00\x00" + bytes(range(256)) * 8

GENERATION_RESULT = [
    {
        "value": {
            "path": "/tmp/gradio/abc/white_mesh.glb",
            "url": "http://remote.test:42004/file=\\tmp\\gradio\\abc\\white_mesh.glb",
        }
    },
    {
        "value": {
            "path": "/tmp/gradio/abc/textured_mesh.glb",
            "url": "http://remote.test:42004/file=\\tmp\\gradio\\abc\\textured_mesh.glb",
        }
    },
]

EXPORT_RESULT = [
    f'<iframe src="\\static\\{ARTIFACT_ID}\\textured_mesh.html" height="650" width="100%"></iframe>'
]


def complete_frame(payload) -> str:
    return f"event: generating\ndata: null\n\nevent: complete\ndata: {json.dumps(payload)}\n\n"


class FakeRemoteService:
    """In-process stand-in for the remote generation service.

    Tests tweak ``streams`` (call name -> stream body), ``download_failures``
    (how many artifact GETs answer 500 first) or ``delay`` to shape behaviour.
    """

    def __init__(self) -> None:
        self.streams = {
            "generation_all": complete_frame(GENERATION_RESULT),
            "lambda_4": complete_frame([None]),
            "lambda_5": complete_frame([None]),
            "lambda_6": complete_frame([None]),
            "on_export_click": complete_frame(EXPORT_RESULT),
        }
        self.submit_body: dict[str, str] = {}
        self.download_failures = 0
        self.head_status = 200
        self.delay = 0.0
        self.calls: list[tuple[str, str]] = []
        self.payloads: dict[str, dict] = {}
        self.upload_ids: list[str] = []
        self.download_attempts = 0
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        with self._lock:
            self.calls.append((request.method, path))
        if self.delay:
            time.sleep(self.delay)

        if request.method == "POST" and path == "/upload":
            with self._lock:
                self.upload_ids.append(request.url.params["upload_id"])
            return httpx.Response(200, json=["/tmp/gradio/abc/image.png"])

        if request.method == "POST" and path.startswith("/call/"):
            name = path.split("/")[2]
            with self._lock:
                self.payloads[name] = json.loads(request.content)
            body = self.submit_body.get(name, json.dumps({"event_id": f"ev-{name}"}))
            return httpx.Response(200, text=body)

        if request.method == "GET" and path.startswith("/call/"):
            name = path.split("/")[2]
            return httpx.Response(200, text=self.streams[name])

        if path == f"/static/{ARTIFACT_ID}/textured_mesh.glb":
            if request.method == "HEAD":
                return httpx.Response(self.head_status)
            with self._lock:
                self.download_attempts += 1
                attempt = self.download_attempts
            if attempt <= self.download_failures:
                return httpx.Response(500, text="busy")
            return httpx.Response(200, content=ARTIFACT_BYTES)

        return httpx.Response(404)


@pytest.fixture
def remote():
    return FakeRemoteService()


@pytest.fixture
def client(remote):
    client = RemoteCallClient(BASE_URL, transport=httpx.MockTransport(remote.handler))
    yield client
    client.close()


@pytest.fixture
def store():
    return JobManager()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        UPLOAD_DIR=tmp_path / "uploads",
        OUTPUT_DIR=tmp_path / "outputs",
        REMOTE_BASE_URL=BASE_URL,
        DOWNLOAD_BACKOFF_SECONDS=0.0,
        STREAM_TIMEOUT_SECONDS=5.0,
    )


@pytest.fixture
def image_file(tmp_path: Path) -> Path:
    path = tmp_path / "source.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\nfake image")
    return path


@pytest.fixture
def timeout():
    """Standard timeout for tests (seconds)."""
    return 5.0
