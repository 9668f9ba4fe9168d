"""Submit-then-stream call convention of the remote generation service.

Every remote function is invoked in two requests:

1. ``POST {base}/call/{name}`` with ``{"data": [...]}`` answers with an event id.
2. ``GET {base}/call/{name}/{event_id}`` streams frames until the call ends,
   e.g. ``event: complete\\ndata: [...]`` or ``event: error\\ndata: ...``.

The shape of the submit response varies between service versions, so the
event id is located by trying :data:`EVENT_ID_STRATEGIES` in order.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Optional

from meshgen.errors import ProtocolError, RemoteGenerationError
from meshgen.models.mesh import RemoteCallHandle
from meshgen.services.remote_client import RemoteCallClient

logger = logging.getLogger(__name__)

COMPLETE_MARKER = "event: complete\ndata: "
ERROR_MARKER = "event: error"

_QUOTED_TOKEN = re.compile(r'"([^"]+)"')


def event_id_from_field(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        value = body.get("event_id")
        if isinstance(value, str) and value:
            return value
    return None


def event_id_from_first_element(body: Any) -> Optional[str]:
    if not isinstance(body, list) or not body:
        return None
    first = body[0]
    if isinstance(first, str) and first:
        return first
    # bool is an int subclass but never an id
    if isinstance(first, int) and not isinstance(first, bool):
        return str(first)
    return None


def event_id_from_quoted_token(body: Any) -> Optional[str]:
    if isinstance(body, str):
        match = _QUOTED_TOKEN.search(body)
        if match:
            return match.group(1)
    return None


EVENT_ID_STRATEGIES: tuple[Callable[[Any], Optional[str]], ...] = (
    event_id_from_field,
    event_id_from_first_element,
    event_id_from_quoted_token,
)


def decode_body(text: str) -> Any:
    """JSON-decode ``text``; a decoded string is decoded once more if it can be."""
    try:
        body = json.loads(text)
    except ValueError:
        return text
    if isinstance(body, str):
        try:
            return json.loads(body)
        except ValueError:
            return body
    return body


def extract_event_id(text: str) -> str:
    body = decode_body(text)
    for strategy in EVENT_ID_STRATEGIES:
        event_id = strategy(body)
        if event_id:
            logger.debug("event id %s found by %s", event_id, strategy.__name__)
            return event_id
    raise ProtocolError(f"Could not extract event id from response: {text[:200]!r}")


def parse_stream(buffer: str) -> Any:
    """Return the decoded payload of the completion event in ``buffer``."""
    if ERROR_MARKER in buffer:
        raw = buffer.split(ERROR_MARKER, 1)[1]
        payload = raw.split("data:", 1)[1].strip() if "data:" in raw else raw.strip()
        raise RemoteGenerationError(
            f"Remote service reported an error: {payload or '<no details>'}",
            payload=payload,
        )
    if COMPLETE_MARKER not in buffer:
        raise ProtocolError("Incomplete response: stream ended without a complete event")
    data = buffer.split(COMPLETE_MARKER, 1)[1].split("\n", 1)[0].strip()
    try:
        return json.loads(data)
    except ValueError as exc:
        logger.error("Undecodable completion payload: %r", data[:500])
        raise ProtocolError(f"Completion payload is not valid JSON: {exc}") from exc


class EventStreamProtocol:
    def __init__(self, client: RemoteCallClient, *, stream_timeout: float = 900.0) -> None:
        self.client = client
        self.stream_timeout = stream_timeout

    def submit(self, name: str, data: list[Any]) -> RemoteCallHandle:
        response = self.client.post(f"/call/{name}", json={"data": data})
        event_id = extract_event_id(response.text)
        logger.info("%s submitted, event id %s", name, event_id)
        return RemoteCallHandle(name=name, event_id=event_id)

    def complete(self, handle: RemoteCallHandle) -> Any:
        buffer = self.client.drain(
            f"/call/{handle.name}/{handle.event_id}", timeout=self.stream_timeout
        )
        logger.debug("%s stream finished (%d chars)", handle.name, len(buffer))
        return parse_stream(buffer)

    def call(self, name: str, data: list[Any]) -> Any:
        return self.complete(self.submit(name, data))
