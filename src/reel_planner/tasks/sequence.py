"""Sequence planning — analysis results to a validated narrative ordering."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from reel_planner.client import (
    MODEL_TIMEOUT_SECONDS,
    SEQUENCE_TEMPERATURE,
    ModelClient,
    complete_with_timeout,
)
from reel_planner.config import Settings, load_settings
from reel_planner.ordering import (
    assemble_plan,
    fallback_order,
    fallback_plan,
    is_valid_selection,
)
from reel_planner.parsing import safe_parse_json
from reel_planner.prompts import sequence_user_message
from reel_planner.schemas import EmotionBeat, FinalPlan, Item, ItemAnalysis

logger = logging.getLogger(__name__)

DEFAULT_VISUAL_ENERGY = 5.0

SYSTEM_PROMPT = (
    "You are a professional video editor planning the shot order of a cinematic "
    "memory video built from still images.\n\n"
    "Order ALL provided images into a story. Never omit an image.\n\n"
    "Answer with a single JSON object:\n"
    "{\n"
    '  "orderedIds": ["idA", "idB", ...],\n'
    '  "theme": "short theme description",\n'
    '  "emotion_arc": [{"beat": "opening|build|turn|climax|resolution", "ids": ["idA"]}],\n'
    '  "beats": [{"id": "idA", "role": "opening|build|turn|climax|resolution", '
    '"reason": "short reason"}]\n'
    "}\n\n"
    "Hard constraints:\n"
    "1) Use only the provided ids.\n"
    "2) orderedIds contains every id (orderedIds.length == images.length).\n"
    "3) Each id appears exactly once.\n"
    "4) Avoid placing near-duplicates (similar mood or composition) next to each other.\n"
    "5) Keep the upload order only if it truly is the best story.\n\n"
    "Return valid JSON only, no markdown, no code fences."
)


class PlannerState(str, Enum):
    BUILDING_REQUEST = "building_request"
    AWAITING_MODEL = "awaiting_model"
    PARSING = "parsing"
    VALIDATING = "validating"
    ASSEMBLING = "assembling"
    TIMEOUT = "timeout"
    ERROR = "error"
    FALLBACK_ASSEMBLING = "fallback_assembling"
    DONE = "done"


StateCallback = Callable[[PlannerState], None]


def _enter(state: PlannerState, on_state: StateCallback | None) -> None:
    """Log a transition and notify the observer without letting it crash the planner."""
    logger.debug("Sequence planner → %s", state.value)
    if on_state is None:
        return
    try:
        on_state(state)
    except Exception:
        logger.warning("State callback failed for %s", state.value, exc_info=True)


# ─── Input normalization ─────────────────────────────────────


def _first_present(entry: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def _visual_energy(raw: Any) -> float:
    """Coerce to 1–10; missing, non-numeric, non-finite or zero gives 5."""
    if raw is None or isinstance(raw, bool):
        return DEFAULT_VISUAL_ENERGY
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_VISUAL_ENERGY
    if not math.isfinite(value) or value == 0:
        return DEFAULT_VISUAL_ENERGY
    return min(10.0, max(1.0, value))


def normalize_items(analysis_results: Sequence[Any]) -> list[Item]:
    """Turn loosely-shaped analysis results into Items.

    The id is the provided ``id``, else the filename, else the position.
    """
    items: list[Item] = []
    for idx, raw in enumerate(analysis_results):
        entry = raw if isinstance(raw, dict) else {}
        item_id = _first_present(entry, "id", "filename")
        mood = entry.get("mood")
        best_role = entry.get("best_role")
        items.append(
            Item(
                id=str(item_id if item_id is not None else idx),
                filename=str(entry.get("filename") or f"image_{idx}"),
                analysis=ItemAnalysis(
                    subject=str(entry.get("subject") or entry.get("caption") or ""),
                    mood=mood if isinstance(mood, list) else [],
                    composition=entry.get("composition") or {},
                    visual_energy=_visual_energy(
                        _first_present(entry, "visual_energy", "visualWeight")
                    ),
                    best_role=best_role if isinstance(best_role, list) else [],
                ),
            )
        )
    return items


def compact_items(items: Sequence[Item]) -> list[dict[str, Any]]:
    """Only the fields the planner needs, to bound the prompt size."""
    return [
        {
            "id": item.id,
            "subject": item.analysis.subject,
            "mood": item.analysis.mood,
            "composition": item.analysis.composition,
            "visual_energy": item.analysis.visual_energy,
            "best_role": item.analysis.best_role,
        }
        for item in items
    ]


def _project_emotion_arc(raw: Any) -> list[EmotionBeat]:
    if not isinstance(raw, list):
        return []
    arc: list[EmotionBeat] = []
    for entry in raw:
        if not isinstance(entry, dict) or not isinstance(entry.get("beat"), str):
            continue
        ids = entry.get("ids")
        arc.append(
            EmotionBeat(
                beat=entry["beat"],
                ids=[str(i) for i in ids] if isinstance(ids, list) else [],
            )
        )
    return arc


# ─── Planner ──────────────────────────────────────────────────


def _fallback(
    items: Sequence[Item],
    on_state: StateCallback | None,
    error: str | None = None,
) -> FinalPlan:
    _enter(PlannerState.FALLBACK_ASSEMBLING, on_state)
    plan = fallback_plan(items, error=error)
    _enter(PlannerState.DONE, on_state)
    return plan


async def plan_sequence(
    analysis_results: Sequence[Any],
    prompt_text: str = "",
    *,
    client: ModelClient,
    settings: Settings | None = None,
    timeout: float = MODEL_TIMEOUT_SECONDS,
    on_state: StateCallback | None = None,
) -> FinalPlan:
    """Plan a narrative ordering of every analyzed image.

    Exactly one model call is made, bounded by *timeout*. Timeouts, upstream
    errors, unparseable output and orderings that are not a permutation of
    the input ids all end in the deterministic fallback plan (original
    order, ``usedPlanner="fallback"``). Only upstream errors attach an
    ``error`` message. This coroutine does not raise for model problems.
    """
    settings = settings or load_settings()

    _enter(PlannerState.BUILDING_REQUEST, on_state)
    items = normalize_items(analysis_results)
    target_count = len(items)
    if target_count == 0:
        logger.warning("Sequence planner called with no items")
        return _fallback(items, on_state)
    user_message = sequence_user_message(prompt_text, compact_items(items))

    logger.info(
        "Sequence planning starting — model=%s, items=%d, prompt=%r",
        settings.sequence_model,
        target_count,
        prompt_text[:120],
    )

    _enter(PlannerState.AWAITING_MODEL, on_state)
    try:
        content = await complete_with_timeout(
            client,
            user_message,
            timeout=timeout,
            model=settings.sequence_model,
            max_tokens=settings.sequence_max_tokens,
            temperature=SEQUENCE_TEMPERATURE,
            system_prompt=SYSTEM_PROMPT,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Sequence model timed out after %.1fs, using deterministic fallback",
            timeout,
        )
        _enter(PlannerState.TIMEOUT, on_state)
        return _fallback(items, on_state)
    except Exception as exc:
        logger.error("Sequence model call failed: %s", exc, exc_info=True)
        _enter(PlannerState.ERROR, on_state)
        return _fallback(items, on_state, error=str(exc) or type(exc).__name__)

    _enter(PlannerState.PARSING, on_state)
    fallback_shape: dict[str, Any] = {
        "orderedIds": fallback_order(items, target_count),
        "theme": "",
        "emotion_arc": [],
        "beats": [],
    }
    raw = safe_parse_json(content, fallback_shape)
    if raw is fallback_shape or not isinstance(raw, dict):
        logger.warning("Sequence model output unparseable, using deterministic fallback")
        return _fallback(items, on_state)

    ordered_ids = _first_present(raw, "orderedIds", "ordered_ids")
    if ordered_ids is None:
        ordered_ids = []

    _enter(PlannerState.VALIDATING, on_state)
    if not is_valid_selection(ordered_ids, items, target_count):
        logger.warning(
            "Sequence model ordering invalid (%s for %d items), "
            "using deterministic fallback",
            f"{len(ordered_ids)} ids" if isinstance(ordered_ids, list) else "not a list",
            target_count,
        )
        return _fallback(items, on_state)

    _enter(PlannerState.ASSEMBLING, on_state)
    beats = raw.get("beats")
    theme = raw.get("theme")
    plan = assemble_plan(
        ordered_ids,
        items,
        used_planner="ai",
        beats=beats if isinstance(beats, list) else [],
        theme=theme if isinstance(theme, str) else "",
        emotion_arc=_project_emotion_arc(raw.get("emotion_arc")),
    )
    _enter(PlannerState.DONE, on_state)

    logger.info(
        "Sequence planning complete — theme=%r, shots=%d",
        plan.theme,
        len(plan.shots),
    )
    return plan
