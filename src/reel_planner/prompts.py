"""Prompt builders -- pure functions, one per model call."""

from __future__ import annotations

import json
from typing import Any

# ─── Vision: per-image analysis ────────────────────────────


def vision_user_prompt(filename: str) -> str:
    return (
        f"Analyze the attached image ({filename}) for a cinematic memory video "
        f"and answer with the JSON object described above. "
        f"Output ONLY valid JSON, no markdown, no code fences."
    )


def image_data_url(mime_type: str, base64_data: str) -> str:
    return f"data:{mime_type};base64,{base64_data}"


# ─── Sequence: narrative ordering ──────────────────────────


def sequence_user_message(prompt_text: str, compact: list[dict[str, Any]]) -> str:
    """User turn for the planner: the creative brief plus the compact items."""
    return (
        f"Order ALL images into a story (do NOT drop any).\n"
        f"User prompt: {prompt_text or '(none)'}\n"
        f"images = {json.dumps(compact, ensure_ascii=False)}\n\n"
        f"Return orderedIds containing every id exactly once "
        f"(length == {len(compact)}) and beats with roles "
        f"(opening/build/turn/climax/resolution)."
    )
