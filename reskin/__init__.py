"""Reskin - re-theme Magic decks with themed text, generated art and composited frames."""

__version__ = "0.1.0"
