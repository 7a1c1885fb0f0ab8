"""SQLAlchemy models for decks, deck cards and themed deck cards.

Uses SQLAlchemy 2.0 declarative style with Mapped and mapped_column.
Statuses are closed string enumerations stored as their values.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def generate_id() -> str:
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ThemingStatus(str, Enum):
    """Deck theming run status.

    Lifecycle: idle -> running -> completed/failed
    """

    idle = "idle"
    running = "running"
    completed = "completed"
    failed = "failed"


class ThemedCardStatus(str, Enum):
    """Text theming outcome for a single card."""

    pending = "pending"
    generated = "generated"
    failed = "failed"
    skipped = "skipped"


class AssetStatus(str, Enum):
    """Status of an image stage (generated art or composite) on a themed card."""

    idle = "idle"
    generating = "generating"
    generated = "generated"
    failed = "failed"


class Stage(str, Enum):
    """Image stages that can be claimed on a themed card."""

    image = "image"
    composite = "composite"


BASIC_LAND_CONSTRAINT = "basic-land-unchanged"


class Base(DeclarativeBase):
    pass


class Deck(Base):
    __tablename__ = "decks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    title: Mapped[str] = mapped_column(String(200))
    theming_status: Mapped[str] = mapped_column(String(16), default=ThemingStatus.idle.value)
    theme_universe: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    art_style_brief: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    theming_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    theming_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    theming_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __repr__(self) -> str:
        return f"<Deck {self.id} {self.title!r} {self.theming_status}>"


class DeckCard(Base):
    """A card line of a deck. Immutable after creation."""

    __tablename__ = "deck_cards"
    __table_args__ = (UniqueConstraint("deck_id", "name", name="uq_deck_cards_deck_name"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    deck_id: Mapped[str] = mapped_column(ForeignKey("decks.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    scryfall_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class ThemedCard(Base):
    """Themed text plus art and composite sub-states for one deck card."""

    __tablename__ = "themed_deck_cards"
    __table_args__ = (UniqueConstraint("deck_id", "original_name", name="uq_themed_cards_deck_name"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    deck_id: Mapped[str] = mapped_column(ForeignKey("decks.id", ondelete="CASCADE"), index=True)
    original_name: Mapped[str] = mapped_column(String(200))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    is_basic_land: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(16), default=ThemedCardStatus.pending.value)
    themed_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    themed_flavor_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    themed_concept: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    themed_image_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    constraints_applied: Mapped[list] = mapped_column(JSON, default=list)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    image_status: Mapped[str] = mapped_column(String(16), default=AssetStatus.idle.value)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    composite_status: Mapped[str] = mapped_column(String(16), default=AssetStatus.idle.value)
    composite_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    composite_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    composite_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __repr__(self) -> str:
        return f"<ThemedCard {self.original_name!r} {self.status} image={self.image_status} composite={self.composite_status}>"


class AppSetting(Base):
    """Single-row application settings."""

    __tablename__ = "app_settings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    gemini_api_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


def blank_themed_card_values() -> dict:
    """Column values that reset a themed card's text and both image stages."""
    return {
        "themed_name": None,
        "themed_flavor_text": None,
        "themed_concept": None,
        "themed_image_prompt": None,
        "constraints_applied": [],
        "image_status": AssetStatus.idle.value,
        "image_url": None,
        "image_error": None,
        "image_updated_at": None,
        "composite_status": AssetStatus.idle.value,
        "composite_url": None,
        "composite_error": None,
        "composite_updated_at": None,
    }
