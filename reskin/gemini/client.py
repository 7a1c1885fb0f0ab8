"""Shared Gemini client construction and retry loop."""

import asyncio
import logging
import random
from typing import Callable, Optional

from google import genai
from google.genai import errors, types

from reskin.errors import ProviderError

logger = logging.getLogger(__name__)

RETRIABLE_STATUS_CODES = (429, 500, 502, 503, 504)

ApiKeyProvider = Callable[[], Optional[str]]


class GeminiError(ProviderError):
    """Gemini request failed or returned an unusable response."""
    pass


def make_client(api_key: Optional[str]) -> genai.Client:
    api_key = (api_key or "").strip()
    if not api_key:
        raise GeminiError("Missing Gemini API key. Set GEMINI_API_KEY or run `reskin settings set-key`.")
    return genai.Client(api_key=api_key)


async def generate_content(
    client: genai.Client,
    *,
    model: str,
    contents,
    config: types.GenerateContentConfig,
    max_attempts: int = 6,
    base_delay_s: float = 2.0,
) -> types.GenerateContentResponse:
    """Call generate_content, retrying rate limits and server errors.

    Args:
        client: Gemini client
        model: Model name
        contents: Prompt contents
        config: Generation config
        max_attempts: Total attempts including the first
        base_delay_s: First backoff delay; doubles each attempt, plus jitter

    Returns:
        The model response

    Raises:
        GeminiError: On a non-retriable error or when attempts run out.
    """
    last_error: Optional[Exception] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await client.aio.models.generate_content(model=model, contents=contents, config=config)
        except errors.APIError as e:
            retriable = e.code in RETRIABLE_STATUS_CODES
            if not retriable:
                raise GeminiError(f"Gemini request failed with HTTP {e.code}: {e.message}") from e
            last_error = e
            if attempt < max_attempts:
                delay = base_delay_s * (2 ** (attempt - 1)) + random.random()
                logger.warning(
                    f"Gemini request failed with HTTP {e.code}. Retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{max_attempts})."
                )
                await asyncio.sleep(delay)

    raise GeminiError(f"Gemini request failed after {max_attempts} attempts: {last_error}") from last_error
