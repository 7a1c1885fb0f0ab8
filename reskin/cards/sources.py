"""Image source loading and the async composer used by composite jobs."""

import asyncio
import base64
import binascii
import logging
import re
from typing import Optional

import requests

from reskin.cards.composite import CardCompositor
from reskin.errors import ProviderError

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(r"^data:[^;]+;base64,(?P<payload>.+)$", re.DOTALL)


class ImageFetchError(ProviderError):
    """An image source could not be loaded."""
    pass


def decode_data_url(source: str) -> Optional[bytes]:
    match = DATA_URL_RE.match(source)
    if not match:
        return None
    try:
        return base64.b64decode(match.group("payload"), validate=False)
    except (binascii.Error, ValueError):
        return None


def load_image_bytes(source: str, label: str, *, timeout_s: float = 30.0) -> bytes:
    """Bytes for a ``data:`` URL or an http(s) image reference."""
    source = (source or "").strip()
    if not source:
        raise ImageFetchError(f"{label}: image source is empty.")

    inline = decode_data_url(source)
    if inline is not None:
        return inline

    try:
        response = requests.get(source, headers={"Accept": "image/*"}, timeout=timeout_s)
    except requests.RequestException as e:
        raise ImageFetchError(f"{label}: failed to fetch image ({e}).") from e
    if not response.ok:
        raise ImageFetchError(f"{label}: failed to fetch image ({response.status_code}).")
    return response.content


class CardComposer:
    """Fetches both images and runs the compositor off the event loop."""

    def __init__(self, compositor: Optional[CardCompositor] = None, timeout_s: float = 30.0):
        self.compositor = compositor or CardCompositor()
        self.timeout_s = timeout_s

    def _load(self, source: str, label: str) -> bytes:
        # One request per load; both loads run on worker threads
        return load_image_bytes(source, label, timeout_s=self.timeout_s)

    async def __call__(self, base_card_url: str, themed_art_url: str, themed_name: str) -> str:
        frame_bytes, art_bytes = await asyncio.gather(
            asyncio.to_thread(self._load, base_card_url, "base-card-image"),
            asyncio.to_thread(self._load, themed_art_url, "themed-art-image"),
        )
        logger.debug(f"Compositing {themed_name!r}")
        return await asyncio.to_thread(self.compositor.compose_data_url, frame_bytes, art_bytes, themed_name)
