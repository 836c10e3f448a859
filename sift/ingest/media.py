"""
Media Resolver

Loads the bytes behind a dump's media reference so they can be handed to
the model inline. References are either paths under the media root or
http(s) URLs.
"""

import logging
from pathlib import Path
from typing import Optional

import httpx

from ..common.llm_client import MediaPart

logger = logging.getLogger("sift.ingest.media")

MIME_TYPES = {
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
}
DEFAULT_MIME_TYPE = "image/jpeg"


def guess_mime_type(ref: str) -> str:
    suffix = Path(ref.split("?", 1)[0]).suffix.lower()
    return MIME_TYPES.get(suffix, DEFAULT_MIME_TYPE)


class MediaResolver:
    def __init__(self, media_root: Path, timeout: float = 20.0, client: Optional[httpx.Client] = None):
        self._media_root = Path(media_root).expanduser()
        self._timeout = timeout
        self._client = client

    def resolve(self, ref: Optional[str]) -> Optional[MediaPart]:
        """Fetch media bytes; None if the reference is empty or unreadable"""
        if not ref:
            return None

        try:
            if ref.startswith(("http://", "https://")):
                return self._fetch_remote(ref)
            return self._read_local(ref)
        except (OSError, httpx.HTTPError) as e:
            logger.warning("Could not load media %s: %s", ref, e)
            return None

    def _read_local(self, ref: str) -> Optional[MediaPart]:
        # References are always relative to the media root, /uploads/x.png included
        root = self._media_root.resolve()
        path = (root / ref.lstrip("/")).resolve()
        try:
            path.relative_to(root)
        except ValueError:
            logger.warning("Media reference %s escapes the media root, ignoring", ref)
            return None
        if not path.is_file():
            logger.warning("Media file not found at %s", path)
            return None
        return MediaPart(data=path.read_bytes(), mime_type=guess_mime_type(path.name))

    def _fetch_remote(self, url: str) -> MediaPart:
        if self._client is not None:
            response = self._client.get(url)
        else:
            response = httpx.get(url, timeout=self._timeout, follow_redirects=True)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "").split(";", 1)[0].strip()
        mime_type = content_type if content_type.startswith(("image/", "application/pdf")) else guess_mime_type(url)
        return MediaPart(data=response.content, mime_type=mime_type)
