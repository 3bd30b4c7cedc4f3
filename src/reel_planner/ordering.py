"""Deterministic ordering, validation and shot assembly for sequence plans."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from typing import Any

from reel_planner.client import SHOT_DURATION, TRANSITION
from reel_planner.schemas import FinalPlan, Item, Shot

logger = logging.getLogger(__name__)

# (upper bound as a fraction of the sequence, role)
ROLE_THRESHOLDS = (
    (0.2, "opening"),
    (0.6, "build"),
    (0.9, "turn"),
)
FINAL_ROLE = "resolution"


def fallback_order(items: Sequence[Item], target_count: int) -> list[str]:
    """Ids of the first *target_count* items in their original order."""
    return [item.id for item in items[:target_count]]


def is_valid_selection(
    ordered_ids: Any,
    items: Sequence[Item],
    target_count: int,
) -> bool:
    """Check a candidate ordering against the item set.

    The candidate must be a list of exactly *target_count* ids, every id
    must belong to the item set (string comparison), and no id may appear
    more often than it does among the items.
    """
    if not isinstance(ordered_ids, list) or len(ordered_ids) != target_count:
        return False

    candidate = [str(i) for i in ordered_ids]
    known = Counter(item.id for item in items)
    if any(i not in known for i in candidate):
        return False
    return all(known[i] >= n for i, n in Counter(candidate).items())


def role_for_position(index: int, total: int) -> str:
    for fraction, role in ROLE_THRESHOLDS:
        if index < total * fraction:
            return role
    return FINAL_ROLE


def _beat_lookup(beats: Sequence[Any]) -> dict[str, dict[str, Any]]:
    """First beat per id; malformed entries are skipped."""
    lookup: dict[str, dict[str, Any]] = {}
    for beat in beats:
        if isinstance(beat, dict) and "id" in beat:
            lookup.setdefault(str(beat["id"]), beat)
    return lookup


def build_shots(ordered_ids: Sequence[str], beats: Sequence[Any] = ()) -> list[Shot]:
    """One shot per id; roles and reasons come from beats when present."""
    lookup = _beat_lookup(beats)
    total = len(ordered_ids)
    shots: list[Shot] = []
    for idx, shot_id in enumerate(ordered_ids):
        beat = lookup.get(shot_id, {})
        role = beat.get("role")
        reason = beat.get("reason")
        shots.append(
            Shot(
                id=shot_id,
                role=str(role) if role else role_for_position(idx, total),
                reason=str(reason) if reason else "",
            )
        )
    return shots


def _resolve_indices(ids: Sequence[str], items: Sequence[Item]) -> list[int]:
    positions: dict[str, list[int]] = {}
    for idx, item in enumerate(items):
        positions.setdefault(item.id, []).append(idx)

    selected: list[int] = []
    unknown: list[str] = []
    for shot_id in ids:
        free = positions.get(shot_id)
        if free:
            selected.append(free.pop(0))
        else:
            unknown.append(shot_id)
            selected.append(0)
    if unknown:
        logger.error("Assembling plan with unknown ids %s; mapping them to 0", unknown)
    return selected


def assemble_plan(
    ordered_ids: Sequence[str],
    items: Sequence[Item],
    *,
    used_planner: str,
    beats: Sequence[Any] = (),
    theme: str = "",
    emotion_arc: Sequence[Any] = (),
    error: str | None = None,
    selected: Sequence[int] | None = None,
) -> FinalPlan:
    """Build the FinalPlan for an already-validated ordering.

    Without explicit *selected* indices, each id maps to the position of
    its first unused occurrence among *items*, so repeated ids still
    resolve to distinct images.
    """
    ids = [str(i) for i in ordered_ids]
    if selected is None:
        selected = _resolve_indices(ids, items)

    count = len(ids)
    return FinalPlan(
        theme=theme,
        emotion_arc=list(emotion_arc),
        ordered_ids=ids,
        shots=build_shots(ids, beats),
        selected=list(selected),
        order=list(range(count)),
        durations=[SHOT_DURATION] * count,
        transitions=[TRANSITION] * max(0, count - 1),
        usedPlanner=used_planner,
        error=error,
    )


def fallback_plan(items: Sequence[Item], error: str | None = None) -> FinalPlan:
    """Terminal safety net: original order, positional roles, no narrative."""
    ids = fallback_order(items, len(items))
    return assemble_plan(
        ids,
        items,
        used_planner="fallback",
        error=error,
        selected=range(len(ids)),
    )
