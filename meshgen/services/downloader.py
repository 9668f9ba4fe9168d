import logging
import time
from pathlib import Path
from typing import Callable

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from meshgen.errors import StorageError, TransportError
from meshgen.services.artifact_resolver import normalize_url
from meshgen.services.remote_client import RemoteCallClient

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Download attempt %d failed: %s; retrying in %.1fs",
        retry_state.attempt_number,
        exc,
        retry_state.next_action.sleep if retry_state.next_action else 0.0,
    )


class Downloader:
    """Streams remote artifacts to disk with a fixed-backoff retry."""

    def __init__(
        self,
        client: RemoteCallClient,
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.client = client
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def download(self, url: str, destination: Path, max_attempts: int | None = None) -> None:
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        url = normalize_url(url)
        partial = destination.with_name(destination.name + ".part")

        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(self.backoff_seconds),
            retry=retry_if_exception_type((TransportError, StorageError)),
            sleep=self.sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            retrying(self._fetch, url, partial)
            partial.replace(destination)
        except BaseException:
            if partial.exists():
                partial.unlink()
            raise
        logger.info("Saved %s to %s", url, destination)

    def _fetch(self, url: str, partial: Path) -> None:
        logger.info("Downloading %s", url)
        try:
            partial.parent.mkdir(parents=True, exist_ok=True)
            fh = partial.open("wb")
        except OSError as exc:
            raise StorageError(f"Cannot open {partial} for writing: {exc}") from exc

        with fh, self.client.stream(url) as response:
            for chunk in response.iter_bytes(CHUNK_SIZE):
                try:
                    fh.write(chunk)
                except OSError as exc:
                    raise StorageError(f"Write to {partial} failed: {exc}") from exc
