"""HTTP client for the remote mesh generation service.

All traffic to the generation service goes through :class:`RemoteCallClient`.
The TLS relaxation (``REMOTE_VERIFY_TLS=false``) is applied to this client's
own ``httpx.Client`` only, so no other HTTP call in the process inherits it.
httpx exceptions are translated into the :mod:`meshgen.errors` transport
hierarchy at this boundary.
"""

from __future__ import annotations

import logging
import mimetypes
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping

import httpx

from meshgen.errors import (
    RemoteConnectionError,
    RemoteStatusError,
    RemoteTimeoutError,
    TransportError,
)

logger = logging.getLogger(__name__)


class RemoteCallClient:
    def __init__(
        self,
        base_url: str,
        *,
        verify_tls: bool = True,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        if not verify_tls:
            logger.warning("TLS verification disabled for %s", self.base_url)
        self._client = httpx.Client(
            base_url=self.base_url,
            verify=verify_tls,
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "*/*",
                "Origin": self.base_url,
                "Referer": f"{self.base_url}/",
            },
        )

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RemoteCallClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def post(
        self,
        url: str,
        *,
        json: Any = None,
        files: Any = None,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        return self._send("POST", url, json=json, files=files, params=params, headers=headers)

    def get(self, url: str) -> httpx.Response:
        return self._send("GET", url)

    def head(self, url: str) -> httpx.Response:
        return self._send("HEAD", url)

    def upload(self, upload_id: str, image_path: Path) -> Any:
        """Send one image as multipart field ``files`` and return the decoded body."""
        content_type = mimetypes.guess_type(image_path.name)[0] or "application/octet-stream"
        with image_path.open("rb") as fh:
            response = self.post(
                "/upload",
                params={"upload_id": upload_id},
                files={"files": (image_path.name, fh, content_type)},
            )
        return response.json()

    @contextmanager
    def stream(self, url: str) -> Iterator[httpx.Response]:
        """Open a streaming GET; the body is read by the caller."""
        try:
            with self._client.stream("GET", url) as response:
                self._raise_for_status(response)
                yield response
        except httpx.HTTPError as exc:
            raise self._translate(exc, "GET", url) from exc

    def drain(self, url: str, *, timeout: float) -> str:
        """Read a chunked response to its end, giving up after ``timeout`` seconds."""
        deadline = time.monotonic() + timeout
        chunks: list[str] = []
        with self.stream(url) as response:
            try:
                for chunk in response.iter_text():
                    chunks.append(chunk)
                    logger.debug("stream chunk from %s: %r", url, chunk)
                    if time.monotonic() > deadline:
                        raise RemoteTimeoutError(
                            f"GET {url}: stream still open after {timeout:.0f}s"
                        )
            except httpx.HTTPError as exc:
                raise self._translate(exc, "GET", url) from exc
        return "".join(chunks)

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise self._translate(exc, method, url) from exc
        self._raise_for_status(response)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        request = response.request
        raise RemoteStatusError(
            f"{request.method} {request.url} returned {response.status_code}",
            status_code=response.status_code,
        )

    @staticmethod
    def _translate(exc: httpx.HTTPError, method: str, url: str) -> TransportError:
        if isinstance(exc, httpx.TimeoutException):
            return RemoteTimeoutError(f"{method} {url} timed out: {exc}")
        return RemoteConnectionError(f"{method} {url} failed: {exc}")
