"""Deck creation and deletion."""

import logging
from dataclasses import dataclass, field

from reskin.decks.parser import parse_decklist
from reskin.decks.store import DeckStore
from reskin.decks.types import CardImageResolver
from reskin.decks.validation import require_deck_id, require_text
from reskin.errors import PreconditionError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class CreateDeckResult:
    deck_id: str
    card_count: int
    unresolved_card_names: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "deckId": self.deck_id,
            "cardCount": self.card_count,
            "unresolvedCardNames": list(self.unresolved_card_names),
        }


class DeckService:
    """Creates decks from decklist text and removes them."""

    def __init__(self, store: DeckStore, image_resolver: CardImageResolver):
        self.store = store
        self.image_resolver = image_resolver

    async def create_deck(self, title: str, decklist_text: str) -> CreateDeckResult:
        """Parse a decklist, resolve each card's base frame image and store the deck.

        Cards whose image cannot be resolved are still stored, without an
        image; their names are reported back so the caller can fix them.
        """
        title = require_text(title, "invalid-title", "Title is required.")
        decklist_text = require_text(decklist_text, "invalid-decklist", "Deck list text is required.")

        parsed = parse_decklist(decklist_text)
        if not parsed.cards:
            raise ValidationError("invalid-decklist", "No parseable cards found in deck list.")
        if parsed.invalid_lines:
            logger.warning(f"Ignoring {len(parsed.invalid_lines)} unparseable decklist lines")

        deck = self.store.add_deck(title)
        unresolved: list[str] = []

        for card in parsed.cards:
            try:
                resolved = await self.image_resolver.resolve_image(card.name)
            except Exception as e:
                logger.warning(f"Image lookup failed for {card.name!r}: {e}")
                resolved = None

            if resolved is None:
                unresolved.append(card.name)

            self.store.add_deck_card(
                deck.id,
                card.name,
                card.quantity,
                image_url=resolved.image_url if resolved else None,
                scryfall_id=resolved.scryfall_id if resolved else None,
            )

        logger.info(f"Created deck {deck.id} {title!r} with {len(parsed.cards)} cards, {len(unresolved)} unresolved")
        return CreateDeckResult(deck_id=deck.id, card_count=parsed.card_count, unresolved_card_names=unresolved)

    def delete_deck(self, deck_id: str) -> None:
        deck_id = require_deck_id(deck_id)
        if not self.store.delete_deck(deck_id):
            raise PreconditionError("deck-not-found", "Deck not found.")
        logger.info(f"Deleted deck {deck_id}")
