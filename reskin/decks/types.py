"""Value types and collaborator interfaces used by the deck pipelines."""

from dataclasses import dataclass, field
from typing import Optional, Protocol


@dataclass
class CardDetails:
    """Card metadata from the card database."""
    oracle_text: str
    type_line: str
    mana_cost: Optional[str]
    is_legendary: bool
    is_basic_land: bool
    scryfall_id: Optional[str] = None


@dataclass
class ResolvedCardImage:
    scryfall_id: Optional[str]
    image_url: Optional[str]


@dataclass
class ThemingInputCard:
    """Descriptor sent to the text theming model for one card."""
    original_name: str
    quantity: int
    oracle_text: str
    type_line: str
    mana_cost: Optional[str]
    is_legendary: bool

    def to_payload(self) -> dict:
        return {
            "originalCardName": self.original_name,
            "quantity": self.quantity,
            "oracleText": self.oracle_text,
            "typeLine": self.type_line,
            "manaCost": self.mana_cost,
            "isLegendary": self.is_legendary,
        }


@dataclass
class GeneratedThemedCard:
    """One entry of the text theming model's response."""
    original_name: str
    themed_name: str
    themed_flavor_text: str
    themed_concept: str
    themed_image_prompt: str
    constraints_applied: list[str] = field(default_factory=list)


class MetadataResolver(Protocol):
    async def resolve_metadata(self, name: str) -> Optional[CardDetails]: ...


class CardImageResolver(Protocol):
    async def resolve_image(self, name: str) -> Optional[ResolvedCardImage]: ...


class TextThemingModel(Protocol):
    async def theme_cards(
        self,
        theme_universe: str,
        art_style_brief: str,
        cards: list[ThemingInputCard],
    ) -> list[GeneratedThemedCard]: ...


class ArtModel(Protocol):
    async def generate_art(self, prompt: str) -> str: ...


class CardComposer(Protocol):
    async def __call__(self, base_card_url: str, themed_art_url: str, themed_name: str) -> str: ...
