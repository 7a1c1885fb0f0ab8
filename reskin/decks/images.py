"""Themed art generation for deck cards.

Bulk calls claim every eligible row up front and hand the claimed rows to a
small per-deck worker pool that runs in the background. Single-card calls
claim one row and run its job directly. The claim (a conditional UPDATE on
``image_status``) is the only thing that keeps two jobs off the same row.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from reskin.decks.models import AssetStatus, Stage, ThemedCard, ThemedCardStatus, ThemingStatus, utc_now
from reskin.decks.store import DeckStore
from reskin.decks.types import ArtModel
from reskin.decks.validation import (
    require_card_name,
    require_deck_id,
    require_force_flag,
    require_text,
    require_themed_name,
)
from reskin.errors import PreconditionError, error_message
from reskin.jobs import BackgroundJobs

logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 3

UNKNOWN_IMAGE_ERROR = "Unknown image generation error."


@dataclass
class ImageJob:
    deck_id: str
    original_name: str
    prompt: str


@dataclass
class BulkImageResult:
    deck_id: str
    started_count: int = 0
    already_generating_count: int = 0
    skipped_count: int = 0

    def to_dict(self) -> dict:
        return {
            "deckId": self.deck_id,
            "startedCount": self.started_count,
            "alreadyGeneratingCount": self.already_generating_count,
            "skippedCount": self.skipped_count,
        }


@dataclass
class SingleImageResult:
    deck_id: str
    original_name: str
    started: bool
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "deckId": self.deck_id,
            "originalCardName": self.original_name,
            "started": self.started,
            "imageUrl": self.image_url,
        }


def should_generate(card: ThemedCard, force_regenerate: bool, prompt: Optional[str] = None) -> bool:
    """Whether a themed card is eligible for art generation.

    Args:
        card: The themed card row.
        force_regenerate: Regenerate even if art already exists.
        prompt: Prompt to check instead of the stored one (pending edits).
    """
    if card.status != ThemedCardStatus.generated.value:
        return False
    prompt = card.themed_image_prompt if prompt is None else prompt
    if not prompt or not prompt.strip():
        return False
    if force_regenerate:
        return True
    return not card.image_url


class ImageGenerationScheduler:
    """Starts art generation jobs for themed cards."""

    def __init__(self, store: DeckStore, art_model: ArtModel, jobs: BackgroundJobs,
                 pool_size: int = DEFAULT_POOL_SIZE):
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.store = store
        self.art_model = art_model
        self.jobs = jobs
        self.pool_size = pool_size

    def _require_completed_deck(self, deck_id: str) -> None:
        deck = self.store.get_deck(deck_id)
        if deck is None:
            raise PreconditionError("deck-not-found", "Deck not found.")
        if deck.theming_status != ThemingStatus.completed.value:
            raise PreconditionError(
                "theming-not-complete", "Deck theming must be completed before generating images."
            )

    async def generate_all(self, deck_id: str, force_regenerate: bool) -> BulkImageResult:
        deck_id = require_deck_id(deck_id)
        force_regenerate = require_force_flag(force_regenerate)
        self._require_completed_deck(deck_id)

        themed_cards = self.store.list_themed_cards(deck_id)
        if not themed_cards:
            raise PreconditionError("themed-cards-missing", "No themed cards found for this deck.")

        result = BulkImageResult(deck_id=deck_id)
        queued: list[ImageJob] = []

        for card in themed_cards:
            if card.image_status == AssetStatus.generating.value:
                result.already_generating_count += 1
                continue
            if not should_generate(card, force_regenerate):
                result.skipped_count += 1
                continue
            if not self.store.claim(deck_id, card.original_name, Stage.image):
                # Lost the race to another caller between read and claim.
                result.already_generating_count += 1
                continue
            queued.append(ImageJob(deck_id, card.original_name, card.themed_image_prompt.strip()))

        result.started_count = len(queued)
        logger.info(
            f"Deck {deck_id}: {result.started_count} image jobs started, "
            f"{result.already_generating_count} already generating, {result.skipped_count} skipped"
        )

        if queued:
            self.jobs.spawn(self._run_pool(queued), label=f"images:{deck_id}")
        return result

    async def _run_pool(self, jobs: list[ImageJob]) -> None:
        queue: asyncio.Queue[ImageJob] = asyncio.Queue()
        for job in jobs:
            queue.put_nowait(job)

        worker_count = min(self.pool_size, len(jobs))
        workers = [asyncio.create_task(self._worker(queue)) for _ in range(worker_count)]
        await asyncio.gather(*workers)

    async def _worker(self, queue: "asyncio.Queue[ImageJob]") -> None:
        while True:
            try:
                job = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                await self._run_job(job)
            except Exception:
                logger.error(f"Image job for {job.original_name!r} crashed", exc_info=True)
            finally:
                queue.task_done()

    async def _run_job(self, job: ImageJob) -> None:
        try:
            image_url = await self.art_model.generate_art(job.prompt)
        except Exception as e:
            message = error_message(e, UNKNOWN_IMAGE_ERROR)
            logger.warning(f"Image generation failed for {job.original_name!r}: {message}")
            self.store.update_themed_card(
                job.deck_id,
                job.original_name,
                image_status=AssetStatus.failed.value,
                image_error=message,
                image_updated_at=utc_now(),
            )
        else:
            # New art invalidates any earlier composite.
            self.store.update_themed_card(
                job.deck_id,
                job.original_name,
                image_status=AssetStatus.generated.value,
                image_url=image_url,
                image_error=None,
                image_updated_at=utc_now(),
                composite_status=AssetStatus.idle.value,
                composite_url=None,
                composite_error=None,
                composite_updated_at=None,
            )
            logger.info(f"Generated art for {job.original_name!r}")
        finally:
            self.store.touch_deck(job.deck_id)

    async def generate_one(
        self,
        deck_id: str,
        original_name: str,
        themed_name: str,
        themed_image_prompt: str,
        force_regenerate: bool,
    ) -> SingleImageResult:
        deck_id = require_deck_id(deck_id)
        original_name = require_card_name(original_name)
        themed_name = require_themed_name(themed_name)
        themed_image_prompt = require_text(
            themed_image_prompt, "invalid-image-prompt", "Image prompt is required."
        )
        force_regenerate = require_force_flag(force_regenerate)
        self._require_completed_deck(deck_id)

        card = self.store.get_themed_card(deck_id, original_name)
        if card is None:
            raise PreconditionError("themed-card-not-found", "Themed card not found.")

        edits = {"themed_name": themed_name, "themed_image_prompt": themed_image_prompt}

        if not should_generate(card, force_regenerate, prompt=themed_image_prompt):
            self.store.update_unless_generating(deck_id, original_name, Stage.image, **edits)
            return SingleImageResult(deck_id, original_name, started=False, image_url=card.image_url)

        # Edits land with the claim so the job always runs the latest prompt.
        if not self.store.claim(deck_id, original_name, Stage.image, **edits):
            logger.info(f"Image for {original_name!r} is already generating")
            return SingleImageResult(deck_id, original_name, started=False, image_url=card.image_url)

        job = ImageJob(deck_id, original_name, themed_image_prompt)
        self.jobs.spawn(self._run_job(job), label=f"image:{deck_id}:{original_name}")
        return SingleImageResult(deck_id, original_name, started=True)
