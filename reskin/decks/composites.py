"""Themed card composites: generated art and title laid over the base frame."""

import logging
from dataclasses import dataclass

from reskin.decks.models import AssetStatus, Stage, ThemedCardStatus, ThemingStatus, utc_now
from reskin.decks.store import DeckStore
from reskin.decks.types import CardComposer
from reskin.decks.validation import require_card_name, require_deck_id, require_force_flag, require_themed_name
from reskin.errors import PreconditionError, error_message
from reskin.jobs import BackgroundJobs

logger = logging.getLogger(__name__)

UNKNOWN_COMPOSITE_ERROR = "Unknown themed card composite generation error."
BASE_IMAGE_MISSING = "Missing base Scryfall card image."
THEMED_ART_MISSING = "Generate themed art before creating a themed card image."


@dataclass
class CompositeJob:
    deck_id: str
    original_name: str
    base_card_url: str
    themed_art_url: str
    themed_name: str


@dataclass
class CompositeResult:
    deck_id: str
    original_name: str
    started: bool

    def to_dict(self) -> dict:
        return {"deckId": self.deck_id, "originalCardName": self.original_name, "started": self.started}


class CompositeOrchestrator:
    """Starts background composite jobs for themed cards."""

    def __init__(self, store: DeckStore, composer: CardComposer, jobs: BackgroundJobs):
        self.store = store
        self.composer = composer
        self.jobs = jobs

    async def generate_composite(
        self,
        deck_id: str,
        original_name: str,
        themed_name: str,
        force_regenerate: bool,
    ) -> CompositeResult:
        deck_id = require_deck_id(deck_id)
        original_name = require_card_name(original_name)
        themed_name = require_themed_name(themed_name)
        force_regenerate = require_force_flag(force_regenerate)

        deck = self.store.get_deck(deck_id)
        if deck is None:
            raise PreconditionError("deck-not-found", "Deck not found.")
        if deck.theming_status != ThemingStatus.completed.value:
            raise PreconditionError(
                "theming-not-complete", "Deck theming must be completed before generating themed cards."
            )

        card = self.store.get_themed_card(deck_id, original_name)
        if card is None:
            raise PreconditionError("themed-card-not-found", "Themed card not found.")
        if card.status != ThemedCardStatus.generated.value:
            raise PreconditionError(
                "themed-card-not-ready",
                "Card theming must be generated before creating a themed card image.",
            )

        title_changed = (card.themed_name or "").strip() != themed_name
        self.store.update_themed_card(deck_id, original_name, themed_name=themed_name)

        not_started = CompositeResult(deck_id, original_name, started=False)
        if card.composite_status == AssetStatus.generating.value:
            return not_started
        if (
            not force_regenerate
            and not title_changed
            and card.composite_status == AssetStatus.generated.value
            and card.composite_url
        ):
            return not_started

        deck_card = self.store.get_deck_card(deck_id, original_name)
        base_card_url = deck_card.image_url if deck_card else None
        if not base_card_url:
            self._mark_failed(deck_id, original_name, BASE_IMAGE_MISSING)
            raise PreconditionError("base-image-missing", BASE_IMAGE_MISSING)

        themed_art_url = card.image_url
        if not themed_art_url or card.image_status != AssetStatus.generated.value:
            self._mark_failed(deck_id, original_name, THEMED_ART_MISSING)
            raise PreconditionError("themed-art-missing", THEMED_ART_MISSING)

        if not self.store.claim(deck_id, original_name, Stage.composite):
            return not_started

        job = CompositeJob(deck_id, original_name, base_card_url, themed_art_url, themed_name)
        self.jobs.spawn(self._run_job(job), label=f"composite:{deck_id}:{original_name}")
        return CompositeResult(deck_id, original_name, started=True)

    async def _run_job(self, job: CompositeJob) -> None:
        try:
            image_url = await self.composer(job.base_card_url, job.themed_art_url, job.themed_name)
        except Exception as e:
            message = error_message(e, UNKNOWN_COMPOSITE_ERROR)
            logger.warning(f"Composite failed for {job.original_name!r}: {message}")
            self._mark_failed(job.deck_id, job.original_name, message)
        else:
            self.store.update_themed_card(
                job.deck_id,
                job.original_name,
                composite_status=AssetStatus.generated.value,
                composite_url=image_url,
                composite_error=None,
                composite_updated_at=utc_now(),
            )
            logger.info(f"Composited themed card for {job.original_name!r}")
        finally:
            self.store.touch_deck(job.deck_id)

    def _mark_failed(self, deck_id: str, original_name: str, message: str) -> None:
        self.store.update_themed_card(
            deck_id,
            original_name,
            composite_status=AssetStatus.failed.value,
            composite_error=message,
            composite_updated_at=utc_now(),
        )
