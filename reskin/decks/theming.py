"""Deck theming runs.

A run resolves metadata for every deck card, keeps basic lands unchanged,
sends all other cards to the text theming model in one batched call and
writes one themed card row per deck card. Per-card problems mark only that
row failed; a run-level fault marks the deck failed and is re-raised.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from reskin.decks.models import (
    BASIC_LAND_CONSTRAINT,
    ThemedCardStatus,
    ThemingStatus,
    blank_themed_card_values,
    utc_now,
)
from reskin.decks.store import DeckStore
from reskin.decks.types import (
    CardDetails,
    GeneratedThemedCard,
    MetadataResolver,
    TextThemingModel,
    ThemingInputCard,
)
from reskin.decks.validation import require_deck_id, require_flag, require_text
from reskin.errors import PreconditionError, ThemingFailedError, error_message

logger = logging.getLogger(__name__)

CONCEPT_MAX_WORDS = 30
IMAGE_PROMPT_MAX_WORDS = 35

LEGENDARY_CONSTRAINT = "legendary-source"

# First match wins.
TYPE_CONSTRAINT_KEYWORDS = (
    "artifact",
    "enchantment",
    "creature",
    "planeswalker",
    "instant",
    "sorcery",
    "land",
)

METADATA_UNAVAILABLE = "Scryfall metadata unavailable."
MODEL_OUTPUT_MISSING = "Model output missing card."
BASIC_LAND_CONCEPT = "Basic land kept unchanged."


@dataclass
class ThemingRunResult:
    deck_id: str
    theming_status: str

    def to_dict(self) -> dict:
        return {"deckId": self.deck_id, "themingStatus": self.theming_status}


@dataclass
class _Candidate:
    original_name: str
    quantity: int
    details: CardDetails


def limit_words(value: str, max_words: int) -> str:
    """Keep at most max_words whitespace-delimited words."""
    words = value.split()
    if len(words) <= max_words:
        return value
    return " ".join(words[:max_words])


def type_constraint(type_line: Optional[str]) -> Optional[str]:
    if not type_line:
        return None
    normalized = type_line.lower()
    for keyword in TYPE_CONSTRAINT_KEYWORDS:
        if keyword in normalized:
            return f"type-{keyword}"
    return None


def normalize_generated_card(generated: GeneratedThemedCard, details: CardDetails) -> GeneratedThemedCard:
    """Trim model text, clamp concept/prompt length and add derived constraint tags."""
    constraints: list[str] = []
    for tag in generated.constraints_applied:
        tag = tag.strip()
        if tag and tag not in constraints:
            constraints.append(tag)

    derived = [LEGENDARY_CONSTRAINT] if details.is_legendary else []
    type_tag = type_constraint(details.type_line)
    if type_tag:
        derived.append(type_tag)
    for tag in derived:
        if tag not in constraints:
            constraints.append(tag)

    return GeneratedThemedCard(
        original_name=generated.original_name.strip(),
        themed_name=generated.themed_name.strip(),
        themed_flavor_text=generated.themed_flavor_text.strip(),
        themed_concept=limit_words(generated.themed_concept.strip(), CONCEPT_MAX_WORDS),
        themed_image_prompt=limit_words(generated.themed_image_prompt.strip(), IMAGE_PROMPT_MAX_WORDS),
        constraints_applied=constraints,
    )


class ThemingOrchestrator:
    """Runs one full theming pass over a deck."""

    def __init__(self, store: DeckStore, resolver: MetadataResolver, themer: TextThemingModel):
        self.store = store
        self.resolver = resolver
        self.themer = themer

    async def start_run(
        self,
        deck_id: str,
        theme_universe: str,
        art_style_brief: str,
        confirm_discard_previous: bool,
    ) -> ThemingRunResult:
        deck_id = require_deck_id(deck_id)
        theme_universe = require_text(theme_universe, "invalid-theme-universe", "Theme universe is required.")
        art_style_brief = require_text(art_style_brief, "invalid-art-style-brief", "Art style brief is required.")
        confirm = require_flag(
            confirm_discard_previous, "invalid-confirm-discard", "Confirm discard flag must be a boolean."
        )

        deck = self.store.get_deck(deck_id)
        if deck is None:
            raise PreconditionError("deck-not-found", "Deck not found.")
        if deck.theming_status == ThemingStatus.running.value:
            raise PreconditionError(
                "theming-already-running", "Deck theming is already running for this deck."
            )

        has_previous = self.store.count_themed_cards(deck_id) > 0
        if has_previous and not confirm:
            raise PreconditionError(
                "theming-confirmation-required",
                "Confirm discarding previous themed cards before re-theming.",
            )

        now = utc_now()
        self.store.update_deck(
            deck_id,
            theming_status=ThemingStatus.running.value,
            theme_universe=theme_universe,
            art_style_brief=art_style_brief,
            theming_started_at=now,
            theming_completed_at=None,
            theming_error=None,
            updated_at=now,
        )
        logger.info(f"Theming deck {deck_id} as {theme_universe!r}")

        try:
            if has_previous:
                removed = self.store.delete_themed_cards(deck_id)
                logger.info(f"Discarded {removed} previous themed cards for deck {deck_id}")
            await self._run(deck_id, theme_universe, art_style_brief)
        except Exception as e:
            message = error_message(e, "Unknown theming error.")
            logger.warning(f"Theming run for deck {deck_id} failed: {message}")
            self.store.update_deck(
                deck_id,
                theming_status=ThemingStatus.failed.value,
                theming_error=message,
                theming_completed_at=None,
            )
            raise ThemingFailedError(message) from e

        self.store.update_deck(
            deck_id,
            theming_status=ThemingStatus.completed.value,
            theming_completed_at=utc_now(),
            theming_error=None,
        )
        logger.info(f"Theming deck {deck_id} completed")
        return ThemingRunResult(deck_id=deck_id, theming_status=ThemingStatus.completed.value)

    async def _run(self, deck_id: str, theme_universe: str, art_style_brief: str) -> None:
        deck_cards = self.store.list_deck_cards(deck_id)
        if not deck_cards:
            raise PreconditionError("empty-deck", "Cannot theme an empty deck.")

        candidates: list[_Candidate] = []
        for card in deck_cards:
            details = await self._resolve(card.name)
            row = {
                **blank_themed_card_values(),
                "deck_id": deck_id,
                "original_name": card.name,
                "quantity": card.quantity,
                "is_basic_land": False,
                "error_message": None,
            }

            if details is None:
                row.update(status=ThemedCardStatus.failed.value, error_message=METADATA_UNAVAILABLE)
            elif details.is_basic_land:
                row.update(
                    status=ThemedCardStatus.skipped.value,
                    is_basic_land=True,
                    themed_name=card.name,
                    themed_concept=BASIC_LAND_CONCEPT,
                    constraints_applied=[BASIC_LAND_CONSTRAINT],
                )
            else:
                row.update(status=ThemedCardStatus.pending.value)
                candidates.append(_Candidate(card.name, card.quantity, details))

            self.store.add_themed_card(**row)

        logger.info(f"Deck {deck_id}: {len(candidates)} of {len(deck_cards)} cards sent for theming")
        if not candidates:
            return

        generated = await self.themer.theme_cards(
            theme_universe,
            art_style_brief,
            [
                ThemingInputCard(
                    original_name=c.original_name,
                    quantity=c.quantity,
                    oracle_text=c.details.oracle_text or "",
                    type_line=c.details.type_line or "",
                    mana_cost=c.details.mana_cost,
                    is_legendary=c.details.is_legendary,
                )
                for c in candidates
            ],
        )

        output_by_name: dict[str, GeneratedThemedCard] = {}
        for entry in generated:
            output_by_name.setdefault(entry.original_name, entry)

        for candidate in candidates:
            entry = output_by_name.get(candidate.original_name)
            if entry is None:
                logger.warning(f"Model output missing card {candidate.original_name!r}")
                self.store.update_themed_card(
                    deck_id,
                    candidate.original_name,
                    **blank_themed_card_values(),
                    status=ThemedCardStatus.failed.value,
                    error_message=MODEL_OUTPUT_MISSING,
                )
                continue

            normalized = normalize_generated_card(entry, candidate.details)
            self.store.update_themed_card(
                deck_id,
                candidate.original_name,
                status=ThemedCardStatus.generated.value,
                themed_name=normalized.themed_name,
                themed_flavor_text=normalized.themed_flavor_text,
                themed_concept=normalized.themed_concept,
                themed_image_prompt=normalized.themed_image_prompt,
                constraints_applied=normalized.constraints_applied,
                error_message=None,
            )

    async def _resolve(self, name: str) -> Optional[CardDetails]:
        try:
            return await self.resolver.resolve_metadata(name)
        except Exception as e:
            logger.warning(f"Metadata lookup failed for {name!r}: {e}")
            return None
