"""Runtime configuration for reskin.

Values come from built-in defaults, then an optional YAML file
(``RESKIN_CONFIG`` or ``./reskin.yml``), then environment variables.
A ``.env`` file is loaded first so it can supply any of the env vars.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from reskin.errors import ValidationError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_NAME = "reskin.yml"


class ConfigError(ValidationError):
    """Invalid configuration value."""

    def __init__(self, reason: str):
        super().__init__("invalid-config", reason)


@dataclass
class Config:
    database_url: str = "sqlite:///reskin.db"
    gemini_api_key: Optional[str] = None
    text_model: str = "gemini-3-pro-preview"
    image_model: str = "gemini-3-pro-image-preview"
    max_attempts: int = 6
    retry_base_delay_s: float = 2.0
    http_timeout_s: float = 30.0
    image_workers: int = 3
    title_font: Optional[str] = None


# field name -> env vars checked in order
ENV_VARS = {
    "database_url": ("RESKIN_DATABASE_URL",),
    "gemini_api_key": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "text_model": ("GEMINI_TEXT_MODEL",),
    "image_model": ("GEMINI_IMAGE_MODEL",),
    "max_attempts": ("GEMINI_MAX_ATTEMPTS",),
    "retry_base_delay_s": ("GEMINI_RETRY_BASE_DELAY_S",),
    "http_timeout_s": ("RESKIN_HTTP_TIMEOUT_S",),
    "image_workers": ("RESKIN_IMAGE_WORKERS",),
    "title_font": ("RESKIN_TITLE_FONT",),
}


def load_env_file() -> None:
    """Load .env from the working directory, else from the project root."""
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        env_path = PROJECT_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.debug(f"Loaded environment from {env_path}")


def _read_yaml(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping.")
    return data


def _coerce(name: str, raw, target_type):
    if raw is None:
        return None
    try:
        if target_type is int:
            value = int(raw)
            if value < 1:
                raise ValueError(raw)
            return value
        if target_type is float:
            value = float(raw)
            if value < 0:
                raise ValueError(raw)
            return value
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from None
    value = str(raw).strip()
    return value or None


def load_config(path: Optional[str] = None) -> Config:
    """Build a Config from defaults, YAML file and environment."""
    load_env_file()

    config_path = Path(path or os.environ.get("RESKIN_CONFIG") or Path.cwd() / DEFAULT_CONFIG_NAME)
    values: dict = {}
    if config_path.exists():
        values.update(_read_yaml(config_path))
        logger.debug(f"Loaded config file {config_path}")
    elif path:
        raise ConfigError(f"Config file not found: {config_path}")

    for name, env_names in ENV_VARS.items():
        for env_name in env_names:
            raw = os.environ.get(env_name)
            if raw is not None and raw.strip() != "":
                values[name] = raw
                break

    config = Config()
    types = {"max_attempts": int, "image_workers": int, "retry_base_delay_s": float, "http_timeout_s": float}
    known = {f.name for f in fields(Config)}
    for name, raw in values.items():
        if name not in known:
            logger.warning(f"Ignoring unknown config key: {name}")
            continue
        value = _coerce(name, raw, types.get(name, str))
        if value is not None or name in ("gemini_api_key", "title_font"):
            setattr(config, name, value)
    return config
