"""Pydantic data models — contracts between the endpoints and the planners."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# ═══════════════════════════════════════════════════════════════
# VISION: request photos + per-image analysis
# ═══════════════════════════════════════════════════════════════


class Photo(BaseModel):
    """One uploaded photo in a /vision request."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    data: str = Field(description="Base64 payload, optionally a full data: URL")
    mime_type: str | None = Field(default=None, alias="mimeType")


class RoleScore(BaseModel):
    role: str
    score: float = 0.0


class ImageAnalysis(BaseModel):
    """Cinematic attributes of one image.

    Every field carries the neutral default used for the canned fallback,
    so a partial model answer is completed rather than rejected. Extra
    keys the model adds are kept.
    """

    model_config = ConfigDict(extra="allow")

    filename: str = ""
    subject: str = "unknown"
    composition: dict[str, Any] = Field(
        default_factory=lambda: {
            "framing": "medium",
            "symmetry": "medium",
            "leading_lines": False,
            "negative_space": "medium",
        }
    )
    light: dict[str, Any] = Field(
        default_factory=lambda: {
            "key": "mid-key",
            "contrast": "medium",
            "directionality": "ambient",
        }
    )
    mood: list[str] = Field(default_factory=list)
    visual_energy: float = 5
    emotion_vector: dict[str, float] = Field(
        default_factory=lambda: {
            "calm": 0.5,
            "tension": 0.5,
            "mystery": 0.5,
            "intimacy": 0.5,
            "awe": 0.5,
        }
    )
    motion_safe_zones: dict[str, bool] = Field(
        default_factory=lambda: {
            "center": True,
            "left": True,
            "right": True,
            "top": True,
            "bottom": True,
        }
    )
    recommended_move_types: list[str] = Field(default_factory=lambda: ["hold"])
    do_not: list[str] = Field(default_factory=list)
    best_role: list[RoleScore] = Field(default_factory=list)


def fallback_analysis(filename: str) -> ImageAnalysis:
    """Canned analysis substituted whenever a real one cannot be produced."""
    return ImageAnalysis(filename=filename)


# ═══════════════════════════════════════════════════════════════
# SEQUENCE: normalized items + final plan
# ═══════════════════════════════════════════════════════════════


class ItemAnalysis(BaseModel):
    subject: str = ""
    mood: list[Any] = Field(default_factory=list)
    composition: Any = Field(default_factory=dict)
    visual_energy: float = 5
    best_role: list[Any] = Field(default_factory=list)


class Item(BaseModel):
    """An image under planning. Immutable for the duration of a request."""

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    analysis: ItemAnalysis


class Shot(BaseModel):
    id: str
    role: str
    reason: str = ""


class EmotionBeat(BaseModel):
    beat: str
    ids: list[str] = Field(default_factory=list)


class FinalPlan(BaseModel):
    """Validated, always-complete ordering returned to the caller.

    ``ordered_ids`` is a permutation of the request's item ids; ``shots``
    and ``durations`` have one entry per id and ``transitions`` one per
    adjacent pair.
    """

    model_config = ConfigDict(populate_by_name=True)

    theme: str = ""
    emotion_arc: list[EmotionBeat] = Field(default_factory=list)
    ordered_ids: list[str]
    shots: list[Shot]
    selected: list[int]
    order: list[int]
    durations: list[float]
    transitions: list[str]
    used_planner: Literal["ai", "fallback"] = Field(alias="usedPlanner")
    error: str | None = None

    def to_response(self) -> dict[str, Any]:
        """Wire shape: ``usedPlanner`` camel-case, ``error`` only when set."""
        return self.model_dump(by_alias=True, exclude_none=True)
