"""Gemini adapters for deck theming and art generation."""

from reskin.gemini.client import GeminiError
from reskin.gemini.image import GeminiArtModel
from reskin.gemini.text import GeminiDeckThemer

__all__ = [
    "GeminiArtModel",
    "GeminiDeckThemer",
    "GeminiError",
]
