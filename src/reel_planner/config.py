"""Environment-backed settings — API key, model ids and output caps."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_VISION_MODEL = "grok-4-1-fast-reasoning"
DEFAULT_SEQUENCE_MODEL = "grok-4-1-fast-non-reasoning"
DEFAULT_VISION_MAX_TOKENS = 800
DEFAULT_SEQUENCE_MAX_TOKENS = 1200


class Settings(BaseModel):
    api_key: str | None = None
    vision_model: str = DEFAULT_VISION_MODEL
    sequence_model: str = DEFAULT_SEQUENCE_MODEL
    vision_max_tokens: int = Field(default=DEFAULT_VISION_MAX_TOKENS, gt=0)
    sequence_max_tokens: int = Field(default=DEFAULT_SEQUENCE_MAX_TOKENS, gt=0)


_cached_settings: Settings | None = None


def _first_env(*names: str) -> str | None:
    """Return the first non-empty environment variable among *names*."""
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def _read_env() -> dict[str, str]:
    raw: dict[str, str | None] = {
        "api_key": _first_env("GROK_API_KEY", "XAI_API_KEY"),
        "vision_model": _first_env("GROK_VISION_MODEL", "GROK_MODEL"),
        "sequence_model": _first_env("GROK_SEQUENCE_MODEL", "GROK_MODEL"),
        "vision_max_tokens": _first_env("GROK_VISION_MAX_TOKENS"),
        "sequence_max_tokens": _first_env("GROK_SEQUENCE_MAX_TOKENS"),
    }
    return {k: v for k, v in raw.items() if v is not None}


def load_settings() -> Settings:
    """Load settings from ``.env`` and the environment.

    Model ids resolve endpoint override → global ``GROK_MODEL`` → built-in
    default. Results are cached until :func:`clear_cache`. Invalid numeric
    overrides are logged and replaced by defaults; this never raises.
    """
    global _cached_settings

    if _cached_settings is not None:
        return _cached_settings

    load_dotenv()
    raw = _read_env()

    try:
        settings = Settings.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Invalid settings in environment (%s) — using defaults", exc)
        settings = Settings(
            **{
                k: raw[k]
                for k in ("api_key", "vision_model", "sequence_model")
                if k in raw
            }
        )

    logger.info(
        "Loaded settings — vision_model=%s, sequence_model=%s, api_key=%s",
        settings.vision_model,
        settings.sequence_model,
        "set" if settings.api_key else "missing",
    )
    _cached_settings = settings
    return settings


def clear_cache() -> None:
    """Reset the cached settings (useful for testing or hot-reload)."""
    global _cached_settings
    _cached_settings = None
