"""Themed art generation with a Gemini image model.

Returns the image inline as a ``data:`` URL so no object storage is needed.
"""

import base64
import logging

from google.genai import types

from reskin.gemini.client import ApiKeyProvider, GeminiError, generate_content, make_client

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "gemini-3-pro-image-preview"

# Matches the art box of a standard frame closely enough for a cover crop
DEFAULT_ASPECT_RATIO = "4:3"


def image_from_response(response: types.GenerateContentResponse) -> tuple[bytes, str]:
    """Pull the first inline image out of a response.

    Returns:
        (image bytes, mime type)
    """
    if not response.candidates:
        raise GeminiError("No candidates returned from Gemini.")

    candidate = response.candidates[0]
    parts = candidate.content.parts if candidate.content and candidate.content.parts else []

    for part in parts:
        if part.inline_data and (part.inline_data.mime_type or "").startswith("image/"):
            data = part.inline_data.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            if data:
                return data, part.inline_data.mime_type

    raise GeminiError("No image data found in Gemini response.")


class GeminiArtModel:
    """ArtModel backed by a Gemini image model."""

    def __init__(
        self,
        api_key_provider: ApiKeyProvider,
        *,
        model: str = DEFAULT_IMAGE_MODEL,
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
        max_attempts: int = 6,
        base_delay_s: float = 2.0,
    ):
        self.api_key_provider = api_key_provider
        self.model = model
        self.aspect_ratio = aspect_ratio
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s

    async def generate_art(self, prompt: str) -> str:
        client = make_client(self.api_key_provider())
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio=self.aspect_ratio),
        )

        logger.debug(f"Generating art with {self.model}: {prompt[:80]}")
        response = await generate_content(
            client,
            model=self.model,
            contents=prompt,
            config=config,
            max_attempts=self.max_attempts,
            base_delay_s=self.base_delay_s,
        )
        image_bytes, mime_type = image_from_response(response)
        return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"
