"""Tolerant parsing of free-form model output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_OPEN_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_CLOSE_FENCE = re.compile(r"\n?```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang fence and a trailing ``` fence, if present."""
    cleaned = text.strip()
    cleaned = _OPEN_FENCE.sub("", cleaned, count=1)
    cleaned = _CLOSE_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def safe_parse_json(text: Any, fallback: Any) -> Any:
    """Parse *text* as JSON, returning *fallback* unmodified on any failure.

    Markdown code fences around the payload are tolerated. Never raises.
    """
    if not isinstance(text, str):
        logger.warning("JSON parse skipped: expected str, got %s", type(text).__name__)
        return fallback
    try:
        return json.loads(strip_code_fences(text))
    except (ValueError, RecursionError) as exc:
        logger.warning("JSON parse error: %s", exc)
        return fallback
