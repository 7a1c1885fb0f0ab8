"""Persistence for decks and themed cards.

All writes are short single-statement transactions so that progress is
visible incrementally. The only mutual-exclusion primitive is ``claim``:
one conditional UPDATE that flips a stage status to ``generating`` unless
it already is, reporting whether a row matched.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, delete, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from reskin.decks.models import (
    AppSetting,
    AssetStatus,
    Base,
    Deck,
    DeckCard,
    Stage,
    ThemedCard,
    utc_now,
)

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def make_engine(url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across the process."""
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if _is_memory_sqlite(url):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


def _status_column(stage: Stage):
    return ThemedCard.image_status if stage == Stage.image else ThemedCard.composite_status


class DeckStore:
    """Deck, deck card, themed card and settings persistence."""

    def __init__(self, url: Optional[str] = None, *, engine: Optional[Engine] = None):
        if engine is None:
            if not url:
                raise ValueError("DeckStore needs a database url or an engine")
            engine = make_engine(url)
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # Decks

    def add_deck(self, title: str) -> Deck:
        deck = Deck(title=title)
        with self.session() as s:
            s.add(deck)
        return deck

    def get_deck(self, deck_id: str) -> Optional[Deck]:
        with self.session() as s:
            return s.get(Deck, deck_id)

    def list_decks(self) -> list[Deck]:
        with self.session() as s:
            return list(s.scalars(select(Deck).order_by(Deck.created_at)))

    def update_deck(self, deck_id: str, **values) -> int:
        values.setdefault("updated_at", utc_now())
        with self.session() as s:
            result = s.execute(update(Deck).where(Deck.id == deck_id).values(**values))
            return result.rowcount

    def touch_deck(self, deck_id: str) -> None:
        self.update_deck(deck_id)

    def delete_deck(self, deck_id: str) -> bool:
        with self.session() as s:
            s.execute(delete(ThemedCard).where(ThemedCard.deck_id == deck_id))
            s.execute(delete(DeckCard).where(DeckCard.deck_id == deck_id))
            result = s.execute(delete(Deck).where(Deck.id == deck_id))
            return result.rowcount > 0

    # Deck cards

    def add_deck_card(self, deck_id: str, name: str, quantity: int, *,
                      image_url: Optional[str] = None, scryfall_id: Optional[str] = None) -> DeckCard:
        card = DeckCard(deck_id=deck_id, name=name, quantity=quantity, image_url=image_url, scryfall_id=scryfall_id)
        with self.session() as s:
            s.add(card)
        return card

    def list_deck_cards(self, deck_id: str) -> list[DeckCard]:
        with self.session() as s:
            stmt = select(DeckCard).where(DeckCard.deck_id == deck_id).order_by(DeckCard.name)
            return list(s.scalars(stmt))

    def get_deck_card(self, deck_id: str, name: str) -> Optional[DeckCard]:
        with self.session() as s:
            stmt = select(DeckCard).where(DeckCard.deck_id == deck_id, DeckCard.name == name)
            return s.scalars(stmt).first()

    # Themed cards

    def add_themed_card(self, **values) -> ThemedCard:
        now = utc_now()
        values.setdefault("created_at", now)
        values.setdefault("updated_at", now)
        card = ThemedCard(**values)
        with self.session() as s:
            s.add(card)
        return card

    def list_themed_cards(self, deck_id: str) -> list[ThemedCard]:
        with self.session() as s:
            stmt = select(ThemedCard).where(ThemedCard.deck_id == deck_id).order_by(ThemedCard.original_name)
            return list(s.scalars(stmt))

    def count_themed_cards(self, deck_id: str) -> int:
        with self.session() as s:
            stmt = select(func.count()).select_from(ThemedCard).where(ThemedCard.deck_id == deck_id)
            return s.scalar(stmt) or 0

    def get_themed_card(self, deck_id: str, original_name: str) -> Optional[ThemedCard]:
        with self.session() as s:
            stmt = select(ThemedCard).where(
                ThemedCard.deck_id == deck_id,
                ThemedCard.original_name == original_name,
            )
            return s.scalars(stmt).first()

    def delete_themed_cards(self, deck_id: str) -> int:
        with self.session() as s:
            result = s.execute(delete(ThemedCard).where(ThemedCard.deck_id == deck_id))
            return result.rowcount

    def update_themed_card(self, deck_id: str, original_name: str, **values) -> int:
        values.setdefault("updated_at", utc_now())
        with self.session() as s:
            stmt = (
                update(ThemedCard)
                .where(ThemedCard.deck_id == deck_id, ThemedCard.original_name == original_name)
                .values(**values)
            )
            return s.execute(stmt).rowcount

    def update_unless_generating(self, deck_id: str, original_name: str, stage: Stage, **values) -> bool:
        """Apply values only if the stage is not currently generating."""
        values.setdefault("updated_at", utc_now())
        status = _status_column(stage)
        with self.session() as s:
            stmt = (
                update(ThemedCard)
                .where(
                    ThemedCard.deck_id == deck_id,
                    ThemedCard.original_name == original_name,
                    status != AssetStatus.generating.value,
                )
                .values(**values)
            )
            return s.execute(stmt).rowcount == 1

    def claim(self, deck_id: str, original_name: str, stage: Stage, **values) -> bool:
        """Atomically move a stage to generating; False if it was already generating."""
        now = utc_now()
        values[status_field(stage)] = AssetStatus.generating.value
        values[f"{stage.value}_error"] = None
        values[f"{stage.value}_updated_at"] = now
        values["updated_at"] = now
        claimed = self.update_unless_generating(deck_id, original_name, stage, **values)
        logger.debug(f"Claim {stage.value} for {original_name!r} in deck {deck_id}: {claimed}")
        return claimed

    # Settings

    def get_setting(self, setting_id: str) -> Optional[AppSetting]:
        with self.session() as s:
            return s.get(AppSetting, setting_id)

    def upsert_setting(self, setting_id: str, **values) -> AppSetting:
        with self.session() as s:
            setting = s.get(AppSetting, setting_id)
            if setting is None:
                setting = AppSetting(id=setting_id)
                s.add(setting)
            for key, value in values.items():
                setattr(setting, key, value)
        return setting


def status_field(stage: Stage) -> str:
    return f"{stage.value}_status"
