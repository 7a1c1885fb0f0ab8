import asyncio
from typing import Optional

import pytest

from reskin.decks.models import AssetStatus, ThemedCardStatus, ThemingStatus
from reskin.decks.store import DeckStore
from reskin.decks.types import CardDetails, GeneratedThemedCard, ResolvedCardImage
from reskin.jobs import BackgroundJobs


def creature(name: str = "", *, legendary: bool = False) -> CardDetails:
    type_line = "Legendary Creature — Elf" if legendary else "Creature — Elf"
    return CardDetails(
        oracle_text=f"{name} does elf things.",
        type_line=type_line,
        mana_cost="{1}{G}",
        is_legendary=legendary,
        is_basic_land=False,
    )


def basic_land() -> CardDetails:
    return CardDetails(
        oracle_text="({T}: Add {G}.)",
        type_line="Basic Land — Forest",
        mana_cost=None,
        is_legendary=False,
        is_basic_land=True,
    )


def themed(name: str, **overrides) -> GeneratedThemedCard:
    values = {
        "original_name": name,
        "themed_name": f"Themed {name}",
        "themed_flavor_text": "A line of flavor.",
        "themed_concept": "A concept.",
        "themed_image_prompt": f"Painting of {name}",
        "constraints_applied": [],
    }
    values.update(overrides)
    return GeneratedThemedCard(**values)


class FakeResolver:
    """MetadataResolver/CardImageResolver over fixed answers.

    A value that is an Exception instance is raised instead of returned.
    """

    def __init__(self, details: Optional[dict] = None, images: Optional[dict] = None):
        self.details = details or {}
        self.images = images or {}
        self.metadata_calls: list[str] = []

    async def resolve_metadata(self, name):
        self.metadata_calls.append(name)
        value = self.details.get(name)
        if isinstance(value, Exception):
            raise value
        return value

    async def resolve_image(self, name):
        value = self.images.get(name)
        if isinstance(value, Exception):
            raise value
        return value


class FakeThemer:
    def __init__(self, cards=None, error: Optional[Exception] = None):
        self.cards = cards or []
        self.error = error
        self.calls = []

    async def theme_cards(self, theme_universe, art_style_brief, cards):
        self.calls.append((theme_universe, art_style_brief, list(cards)))
        if self.error:
            raise self.error
        return list(self.cards)


class FakeArtModel:
    """Records prompts and peak concurrency; can hold jobs until released."""

    def __init__(self, fail_prompts=(), hold: bool = False):
        self.fail_prompts = set(fail_prompts)
        self.prompts: list[str] = []
        self.active = 0
        self.peak = 0
        self.release = asyncio.Event() if hold else None

    async def generate_art(self, prompt):
        self.prompts.append(prompt)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.release is not None:
                await self.release.wait()
            else:
                await asyncio.sleep(0)
            if prompt in self.fail_prompts:
                raise RuntimeError(f"art failed for {prompt}")
            return f"https://art.example/{len(self.prompts)}.png"
        finally:
            self.active -= 1


class FakeComposer:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = []

    async def __call__(self, base_card_url, themed_art_url, themed_name):
        self.calls.append((base_card_url, themed_art_url, themed_name))
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return "data:image/png;base64,Y29tcG9zZWQ="


@pytest.fixture
def store():
    deck_store = DeckStore("sqlite://")
    deck_store.create_all()
    yield deck_store
    deck_store.engine.dispose()


@pytest.fixture
def jobs():
    return BackgroundJobs()


@pytest.fixture
def themed_deck(store):
    """Completed deck whose cards have themed text but no art yet."""

    def _themed_deck(names=("Elvish Mystic", "Llanowar Elves"), *, with_images: bool = True):
        deck = store.add_deck("Elves")
        store.update_deck(deck.id, theming_status=ThemingStatus.completed.value)
        for name in names:
            store.add_deck_card(
                deck.id,
                name,
                1,
                image_url=f"https://frames.example/{name}.jpg" if with_images else None,
            )
            store.add_themed_card(
                deck_id=deck.id,
                original_name=name,
                quantity=1,
                status=ThemedCardStatus.generated.value,
                themed_name=f"Themed {name}",
                themed_image_prompt=f"Painting of {name}",
                constraints_applied=["type-creature"],
                image_status=AssetStatus.idle.value,
                composite_status=AssetStatus.idle.value,
            )
        return deck.id

    return _themed_deck


@pytest.fixture
def resolved_image():
    def _resolved(name: str) -> ResolvedCardImage:
        return ResolvedCardImage(scryfall_id=f"id-{name}", image_url=f"https://frames.example/{name}.jpg")

    return _resolved
