"""Scryfall card lookup client.

Resolves card names to oracle metadata and to the base frame image used
for compositing. Lookups are exact-name and unauthenticated.
"""

import asyncio
import logging
import time
from typing import Optional

import requests

from reskin.decks.types import CardDetails, ResolvedCardImage
from reskin.errors import ProviderError

logger = logging.getLogger(__name__)

SCRYFALL_API_BASE = "https://api.scryfall.com"
USER_AGENT = "reskin-tools/0.1"

FACE_SEPARATOR = "\n//\n"


class ScryfallError(ProviderError):
    """Scryfall API error."""
    pass


def extract_image_url(card: dict) -> Optional[str]:
    """Single-face ``normal`` image, else the first face that has one."""
    normal = (card.get("image_uris") or {}).get("normal")
    if normal:
        return normal
    for face in card.get("card_faces") or []:
        normal = (face.get("image_uris") or {}).get("normal")
        if normal:
            return normal
    return None


def extract_details(card: dict) -> CardDetails:
    faces = card.get("card_faces") or []

    oracle_text = card.get("oracle_text")
    if oracle_text is None and faces:
        oracle_text = FACE_SEPARATOR.join(face.get("oracle_text", "") for face in faces)

    mana_cost = card.get("mana_cost")
    if not mana_cost and faces:
        mana_cost = faces[0].get("mana_cost")

    type_line = card.get("type_line") or ""
    normalized = type_line.lower()

    return CardDetails(
        oracle_text=oracle_text or "",
        type_line=type_line,
        mana_cost=mana_cost or None,
        is_legendary="legendary" in normalized,
        is_basic_land="basic" in normalized and "land" in normalized,
        scryfall_id=card.get("id"),
    )


class ScryfallClient:
    """Client for the Scryfall REST API."""

    def __init__(self, timeout_s: float = 30.0, retry_count: int = 3):
        """Initialize Scryfall client.

        Args:
            timeout_s: Per-request timeout in seconds
            retry_count: Attempts per request on connection errors and 429/5xx
        """
        self.timeout_s = timeout_s
        self.retry_count = retry_count
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json", "User-Agent": USER_AGENT})

    def _request(self, endpoint: str, params: Optional[dict] = None) -> Optional[dict]:
        """GET with retry. Returns None on 404.

        Args:
            endpoint: API endpoint (e.g., "/cards/named")
            params: Query parameters

        Returns:
            JSON response dict, or None if the resource does not exist
        """
        url = f"{SCRYFALL_API_BASE}{endpoint}"
        delay = 1
        last_error = None

        for attempt in range(self.retry_count):
            try:
                response = self._session.get(url, params=params, timeout=self.timeout_s)
                if response.status_code == 404:
                    return None
                if response.status_code == 429 or response.status_code >= 500:
                    raise requests.HTTPError(f"HTTP {response.status_code}", response=response)
                if not response.ok:
                    raise ScryfallError(f"Scryfall request failed with status {response.status_code}.")
                return response.json()

            except requests.RequestException as e:
                last_error = e
                logger.warning(f"Scryfall request failed (attempt {attempt + 1}/{self.retry_count}): {e}")
                if attempt < self.retry_count - 1:
                    time.sleep(delay)
                    delay *= 2

        raise ScryfallError(f"Scryfall request failed after {self.retry_count} attempts: {last_error}")

    def named_card(self, name: str) -> Optional[dict]:
        return self._request("/cards/named", params={"exact": name})

    def resolve_card(self, name: str) -> Optional[ResolvedCardImage]:
        card = self.named_card(name)
        if card is None:
            return None
        return ResolvedCardImage(scryfall_id=card.get("id"), image_url=extract_image_url(card))

    def resolve_details(self, name: str) -> Optional[CardDetails]:
        card = self.named_card(name)
        if card is None:
            return None
        return extract_details(card)


class ScryfallResolver:
    """Async MetadataResolver and CardImageResolver over a ScryfallClient."""

    def __init__(self, client: Optional[ScryfallClient] = None):
        self.client = client or ScryfallClient()

    async def resolve_metadata(self, name: str) -> Optional[CardDetails]:
        return await asyncio.to_thread(self.client.resolve_details, name)

    async def resolve_image(self, name: str) -> Optional[ResolvedCardImage]:
        return await asyncio.to_thread(self.client.resolve_card, name)
