"""Decks, themed cards and the theming, art and composite pipelines."""

from reskin.decks.composites import CompositeOrchestrator
from reskin.decks.images import ImageGenerationScheduler, should_generate
from reskin.decks.parser import parse_decklist
from reskin.decks.service import DeckService
from reskin.decks.store import DeckStore
from reskin.decks.theming import ThemingOrchestrator

__all__ = [
    "CompositeOrchestrator",
    "DeckService",
    "DeckStore",
    "ImageGenerationScheduler",
    "ThemingOrchestrator",
    "parse_decklist",
    "should_generate",
]
