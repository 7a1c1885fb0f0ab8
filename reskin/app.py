"""Application wiring.

``ReskinApp`` builds the store, the background job runner and the provider
adapters from a Config and exposes the request/response entry points. Every
entry point returns a plain dict with camelCase keys.
"""

import logging
from typing import Optional

from reskin.cards.composite import CardCompositor
from reskin.cards.sources import CardComposer
from reskin.config import Config, load_config
from reskin.decks.composites import CompositeOrchestrator
from reskin.decks.images import ImageGenerationScheduler
from reskin.decks.service import DeckService
from reskin.decks.settings import AppSettingsService
from reskin.decks.store import DeckStore
from reskin.decks.theming import ThemingOrchestrator
from reskin.decks.types import (
    ArtModel,
    CardImageResolver,
    MetadataResolver,
    TextThemingModel,
)
from reskin.decks.types import CardComposer as CardComposerType
from reskin.gemini.image import GeminiArtModel
from reskin.gemini.text import GeminiDeckThemer
from reskin.jobs import BackgroundJobs
from reskin.scryfall.client import ScryfallClient, ScryfallResolver

logger = logging.getLogger(__name__)


class ReskinApp:
    """Entry points over one store and one background job runner.

    Collaborators default to the Scryfall, Gemini and Pillow adapters; tests
    pass fakes instead.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        store: Optional[DeckStore] = None,
        metadata_resolver: Optional[MetadataResolver] = None,
        image_resolver: Optional[CardImageResolver] = None,
        themer: Optional[TextThemingModel] = None,
        art_model: Optional[ArtModel] = None,
        composer: Optional[CardComposerType] = None,
    ):
        self.config = config or load_config()
        self.store = store or DeckStore(self.config.database_url)
        self.store.create_all()
        self.jobs = BackgroundJobs()
        self.settings = AppSettingsService(self.store, fallback_api_key=self.config.gemini_api_key)

        if metadata_resolver is None or image_resolver is None:
            scryfall = ScryfallResolver(ScryfallClient(timeout_s=self.config.http_timeout_s))
            metadata_resolver = metadata_resolver or scryfall
            image_resolver = image_resolver or scryfall

        themer = themer or GeminiDeckThemer(
            self.settings.runtime_api_key,
            model=self.config.text_model,
            max_attempts=self.config.max_attempts,
            base_delay_s=self.config.retry_base_delay_s,
        )
        art_model = art_model or GeminiArtModel(
            self.settings.runtime_api_key,
            model=self.config.image_model,
            max_attempts=self.config.max_attempts,
            base_delay_s=self.config.retry_base_delay_s,
        )
        composer = composer or CardComposer(
            CardCompositor(font_path=self.config.title_font),
            timeout_s=self.config.http_timeout_s,
        )

        self.decks = DeckService(self.store, image_resolver)
        self.theming = ThemingOrchestrator(self.store, metadata_resolver, themer)
        self.images = ImageGenerationScheduler(
            self.store, art_model, self.jobs, pool_size=self.config.image_workers
        )
        self.composites = CompositeOrchestrator(self.store, composer, self.jobs)

    # Decks

    async def create_deck(self, title: str, decklist_text: str) -> dict:
        return (await self.decks.create_deck(title, decklist_text)).to_dict()

    def delete_deck(self, deck_id: str) -> dict:
        self.decks.delete_deck(deck_id)
        return {"deckId": deck_id.strip(), "deleted": True}

    # Theming and generation

    async def start_theming(self, deck_id: str, theme_universe: str, art_style_brief: str,
                            confirm_discard_previous: bool) -> dict:
        result = await self.theming.start_run(deck_id, theme_universe, art_style_brief, confirm_discard_previous)
        return result.to_dict()

    async def generate_images(self, deck_id: str, force_regenerate: bool) -> dict:
        return (await self.images.generate_all(deck_id, force_regenerate)).to_dict()

    async def generate_image_for_card(self, deck_id: str, original_name: str, themed_name: str,
                                      themed_image_prompt: str, force_regenerate: bool) -> dict:
        result = await self.images.generate_one(
            deck_id, original_name, themed_name, themed_image_prompt, force_regenerate
        )
        return result.to_dict()

    async def generate_composite(self, deck_id: str, original_name: str, themed_name: str,
                                 force_regenerate: bool) -> dict:
        result = await self.composites.generate_composite(deck_id, original_name, themed_name, force_regenerate)
        return result.to_dict()

    # Settings

    def set_api_key(self, api_key: str) -> dict:
        return self.settings.set_api_key(api_key).to_dict()

    def clear_api_key(self) -> dict:
        return self.settings.clear_api_key().to_dict()

    def public_settings(self) -> dict:
        return self.settings.public_settings().to_dict()

    async def drain(self) -> None:
        """Wait for all background image and composite jobs."""
        if self.jobs.active_count:
            logger.info(f"Waiting for {self.jobs.active_count} background jobs")
        await self.jobs.drain()
