import logging
import re
from typing import Any

from meshgen.errors import ProtocolError
from meshgen.services.remote_client import RemoteCallClient

logger = logging.getLogger(__name__)

_BACKSLASHES = re.compile(r"\\+")
_VIEWER_SRC = re.compile(r'src="/static/([0-9a-f-]+)/textured_mesh\.html"')


def normalize_url(url: str) -> str:
    """Remote paths can come back with Windows separators."""
    return url.replace("\\", "/")


class ArtifactResolver:
    def __init__(self, client: RemoteCallClient) -> None:
        self.client = client

    def derive_download_url(self, payload: Any) -> str:
        """Build the ``.glb`` URL from the viewer iframe returned by the export call."""
        markup = payload[0] if isinstance(payload, list) and payload else payload
        if not isinstance(markup, str):
            raise ProtocolError(f"Export payload has no viewer markup: {payload!r:.200}")

        match = _VIEWER_SRC.search(_BACKSLASHES.sub("/", markup))
        if not match:
            raise ProtocolError("Could not extract artifact id from export viewer markup")
        return normalize_url(self.client.url(f"/static/{match.group(1)}/textured_mesh.glb"))

    def validate(self, url: str) -> bool:
        url = normalize_url(url)
        try:
            response = self.client.head(url)
        except Exception as exc:
            logger.warning("URL validation failed for %s: %s", url, exc)
            return False
        logger.info("URL validation for %s: status %s", url, response.status_code)
        return response.status_code == 200
