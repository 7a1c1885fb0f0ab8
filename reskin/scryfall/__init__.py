"""Scryfall card lookups."""

from .client import ScryfallClient, ScryfallError, ScryfallResolver

__all__ = [
    "ScryfallClient",
    "ScryfallError",
    "ScryfallResolver",
]
