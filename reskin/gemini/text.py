"""Deck theming through a Gemini text model.

One request per deck: the prompt carries every candidate card and the model
answers with strict JSON ``{"cards": [...]}``.
"""

import json
import logging
from typing import Optional

from google.genai import types

from reskin.decks.prompts import SYSTEM_INSTRUCTION, build_theming_prompt
from reskin.decks.types import GeneratedThemedCard, ThemingInputCard
from reskin.gemini.client import ApiKeyProvider, GeminiError, generate_content, make_client

logger = logging.getLogger(__name__)

DEFAULT_TEXT_MODEL = "gemini-3-pro-preview"

STRING_FIELDS = {
    "originalCardName": "original_name",
    "themedName": "themed_name",
    "themedFlavorText": "themed_flavor_text",
    "themedConcept": "themed_concept",
    "themedImagePrompt": "themed_image_prompt",
}

THEMED_CARDS_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "cards": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    **{key: types.Schema(type=types.Type.STRING) for key in STRING_FIELDS},
                    "constraintsApplied": types.Schema(
                        type=types.Type.ARRAY,
                        items=types.Schema(type=types.Type.STRING),
                    ),
                },
                required=[*STRING_FIELDS, "constraintsApplied"],
            ),
        ),
    },
    required=["cards"],
)


def parse_themed_cards_payload(raw: Optional[str]) -> list[GeneratedThemedCard]:
    """Parse and shape-check the model's JSON answer."""
    if not raw or not raw.strip():
        raise GeminiError("Gemini returned empty content.")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise GeminiError("Gemini returned invalid themed card payload.") from e

    cards = payload.get("cards") if isinstance(payload, dict) else None
    if not isinstance(cards, list):
        raise GeminiError("Gemini returned invalid themed card payload.")

    result = []
    for card in cards:
        if not isinstance(card, dict):
            raise GeminiError("Gemini returned invalid themed card payload.")
        if not all(isinstance(card.get(key), str) for key in STRING_FIELDS):
            raise GeminiError("Gemini returned invalid themed card payload.")
        constraints = card.get("constraintsApplied")
        if not isinstance(constraints, list) or not all(isinstance(c, str) for c in constraints):
            raise GeminiError("Gemini returned invalid themed card payload.")

        values = {attr: card[key] for key, attr in STRING_FIELDS.items()}
        result.append(GeneratedThemedCard(**values, constraints_applied=list(constraints)))
    return result


class GeminiDeckThemer:
    """TextThemingModel backed by Gemini structured JSON output."""

    def __init__(
        self,
        api_key_provider: ApiKeyProvider,
        *,
        model: str = DEFAULT_TEXT_MODEL,
        max_attempts: int = 6,
        base_delay_s: float = 2.0,
        temperature: float = 0.2,
    ):
        self.api_key_provider = api_key_provider
        self.model = model
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s
        self.temperature = temperature

    async def theme_cards(
        self,
        theme_universe: str,
        art_style_brief: str,
        cards: list[ThemingInputCard],
    ) -> list[GeneratedThemedCard]:
        client = make_client(self.api_key_provider())
        prompt = build_theming_prompt(theme_universe, art_style_brief, cards)

        config = types.GenerateContentConfig(
            system_instruction=SYSTEM_INSTRUCTION,
            temperature=self.temperature,
            response_mime_type="application/json",
            response_schema=THEMED_CARDS_SCHEMA,
        )

        logger.info(f"Requesting themes for {len(cards)} cards from {self.model}")
        response = await generate_content(
            client,
            model=self.model,
            contents=prompt,
            config=config,
            max_attempts=self.max_attempts,
            base_delay_s=self.base_delay_s,
        )
        return parse_themed_cards_payload(response.text)
