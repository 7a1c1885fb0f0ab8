"""Stored provider API key.

One settings row (id ``global``) holds the Gemini API key entered through the
CLI. The key itself is never returned to callers, only a masked form.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from reskin.decks.models import AppSetting, utc_now
from reskin.decks.store import DeckStore
from reskin.errors import ValidationError

logger = logging.getLogger(__name__)

GLOBAL_SETTINGS_ID = "global"
MASK_PREFIX = "••••••••"


def mask_api_key(key: str) -> str:
    key = key.strip()
    if not key:
        return ""
    return f"{MASK_PREFIX}{key[-4:]}"


@dataclass
class PublicSettings:
    has_api_key: bool
    masked_api_key: Optional[str]
    updated_at: Optional[datetime]

    @classmethod
    def from_setting(cls, setting: Optional[AppSetting]) -> "PublicSettings":
        key = ((setting.gemini_api_key if setting else None) or "").strip()
        return cls(
            has_api_key=bool(key),
            masked_api_key=mask_api_key(key) if key else None,
            updated_at=setting.updated_at if setting else None,
        )

    def to_dict(self) -> dict:
        return {
            "hasApiKey": self.has_api_key,
            "maskedApiKey": self.masked_api_key,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class AppSettingsService:
    def __init__(self, store: DeckStore, fallback_api_key: Optional[str] = None):
        self.store = store
        self.fallback_api_key = fallback_api_key

    def public_settings(self) -> PublicSettings:
        return PublicSettings.from_setting(self.store.get_setting(GLOBAL_SETTINGS_ID))

    def set_api_key(self, api_key) -> PublicSettings:
        if not isinstance(api_key, str):
            raise ValidationError("invalid-api-key", "Gemini API key must be a string.")
        api_key = api_key.strip()
        if not api_key:
            raise ValidationError("invalid-api-key", "Gemini API key is required.")

        setting = self.store.upsert_setting(GLOBAL_SETTINGS_ID, gemini_api_key=api_key, updated_at=utc_now())
        logger.info("Stored Gemini API key")
        return PublicSettings.from_setting(setting)

    def clear_api_key(self) -> PublicSettings:
        setting = self.store.upsert_setting(GLOBAL_SETTINGS_ID, gemini_api_key=None, updated_at=utc_now())
        logger.info("Cleared stored Gemini API key")
        return PublicSettings.from_setting(setting)

    def runtime_api_key(self) -> Optional[str]:
        """Stored key first, then the configured one."""
        setting = self.store.get_setting(GLOBAL_SETTINGS_ID)
        saved = ((setting.gemini_api_key if setting else None) or "").strip()
        if saved:
            return saved
        fallback = (self.fallback_api_key or "").strip()
        return fallback or None
