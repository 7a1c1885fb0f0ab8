"""Input checks shared by the deck entry points."""

from reskin.errors import ValidationError


def require_text(value, code: str, reason: str) -> str:
    """Return the trimmed string or raise ValidationError if missing/blank."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(code, reason)
    return value.strip()


def require_flag(value, code: str, reason: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(code, reason)
    return value


def require_deck_id(value) -> str:
    return require_text(value, "invalid-deck-id", "Deck id is required.")


def require_card_name(value) -> str:
    return require_text(value, "invalid-card-name", "Original card name is required.")


def require_themed_name(value) -> str:
    return require_text(value, "invalid-themed-name", "Themed card title is required.")


def require_force_flag(value) -> bool:
    return require_flag(value, "invalid-force-regenerate", "Force regenerate flag must be a boolean.")
