"""Vision analysis — one model call per photo, canned fallback on failure."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from pydantic import ValidationError

from reel_planner.client import (
    INTER_CALL_DELAY_SECONDS,
    MAX_IMAGE_BASE64_CHARS,
    MODEL_TIMEOUT_SECONDS,
    VISION_TEMPERATURE,
    ModelClient,
    complete_with_timeout,
)
from reel_planner.config import Settings, load_settings
from reel_planner.parsing import safe_parse_json
from reel_planner.prompts import image_data_url, vision_user_prompt
from reel_planner.schemas import ImageAnalysis, Photo, fallback_analysis

logger = logging.getLogger(__name__)

_MIME_BY_EXTENSION = {
    "png": "image/png",
    "webp": "image/webp",
}
DEFAULT_MIME = "image/jpeg"

ANALYZE_PROMPT = (
    "You are a professional cinematographer analyzing a still image for a "
    "cinematic memory video. Answer with one JSON object containing:\n"
    "- subject: what the image is about (architecture/person/object/landscape/abstract)\n"
    "- composition: {framing: wide|medium|close, symmetry: high|medium|low, "
    "leading_lines: boolean, negative_space: high|medium|low}\n"
    "- light: {key: high-key|low-key|mid-key, contrast: high|medium|low, "
    "directionality: front|side|back|ambient}\n"
    "- mood: 3-5 mood tags, e.g. [\"solitude\", \"calm\"]\n"
    "- visual_energy: 1-10 (1 = very still, 10 = very dynamic)\n"
    "- emotion_vector: values 0-1 for {calm, tension, mystery, intimacy, awe}\n"
    "- motion_safe_zones: booleans for {center, left, right, top, bottom}\n"
    "- recommended_move_types: e.g. [\"slow_push_in\", \"drift_left\", \"hold\"]\n"
    "- do_not: forbidden moves, e.g. [\"fast_zoom\", \"heavy_shake\"]\n"
    "- best_role: [{\"role\": \"opener\", \"score\": 0.8}, ...]\n\n"
    "Rules:\n"
    "- Only suggest motion the composition supports.\n"
    "- If the subject sits near a frame edge, forbid pans toward that edge.\n"
    "- If text or signage is visible, keep movement slow enough to stay legible.\n"
    "- With high symmetry prefer straight push/pull over sideways drift.\n"
    "- Without depth, do not suggest parallax moves."
)


def detect_mime_type(photo: Photo) -> str:
    """Explicit mimeType wins, otherwise guess from the file extension."""
    if photo.mime_type:
        return photo.mime_type
    _, dot, ext = photo.filename.rpartition(".")
    return _MIME_BY_EXTENSION.get(ext.lower() if dot else "", DEFAULT_MIME)


def strip_data_url(data: str) -> str:
    """Drop a ``data:<mime>;base64,`` prefix if present."""
    _, comma, payload = data.partition(",")
    return payload if comma else data


async def analyze_image(
    base64_data: str,
    filename: str,
    mime_type: str,
    *,
    client: ModelClient,
    settings: Settings | None = None,
    timeout: float = MODEL_TIMEOUT_SECONDS,
) -> ImageAnalysis:
    """Analyze one image; a timeout, an error or a non-object answer gives the
    canned fallback. Fields that fail validation take their neutral defaults
    while the rest of the answer is kept.
    """
    settings = settings or load_settings()

    try:
        content = await complete_with_timeout(
            client,
            vision_user_prompt(filename),
            timeout=timeout,
            model=settings.vision_model,
            max_tokens=settings.vision_max_tokens,
            temperature=VISION_TEMPERATURE,
            system_prompt=ANALYZE_PROMPT,
            image_url=image_data_url(mime_type, base64_data),
        )
    except asyncio.TimeoutError:
        logger.warning("Timeout analyzing %s", filename)
        return fallback_analysis(filename)
    except Exception as exc:
        logger.error("Error analyzing %s: %s", filename, exc)
        return fallback_analysis(filename)

    parsed = safe_parse_json(content, None)
    if not isinstance(parsed, dict):
        logger.warning("Unusable analysis for %s, using fallback", filename)
        return fallback_analysis(filename)

    payload = {**parsed, "filename": filename}
    try:
        return ImageAnalysis.model_validate(payload)
    except ValidationError as exc:
        invalid = {err["loc"][0] for err in exc.errors() if err["loc"]}
        logger.warning(
            "Analysis for %s has invalid fields %s, using defaults for them",
            filename,
            sorted(map(str, invalid)),
        )

    salvaged = {k: v for k, v in payload.items() if k not in invalid}
    try:
        return ImageAnalysis.model_validate(salvaged)
    except ValidationError:
        logger.warning("Analysis for %s unrecoverable, using fallback", filename)
        return fallback_analysis(filename)


async def analyze_photos(
    photos: Sequence[Photo],
    *,
    client: ModelClient,
    settings: Settings | None = None,
    timeout: float = MODEL_TIMEOUT_SECONDS,
    delay: float = INTER_CALL_DELAY_SECONDS,
) -> list[ImageAnalysis]:
    """Analyze photos strictly one at a time, pausing *delay* between calls.

    Always returns exactly one result per photo.
    """
    settings = settings or load_settings()
    total = len(photos)
    results: list[ImageAnalysis] = []

    for i, photo in enumerate(photos):
        base64_data = strip_data_url(photo.data)
        if len(base64_data) > MAX_IMAGE_BASE64_CHARS:
            logger.warning(
                "Image too large: %s (%d chars), using fallback",
                photo.filename,
                len(base64_data),
            )
            results.append(fallback_analysis(photo.filename))
            continue

        logger.info(
            "Analyzing %d/%d: %s (%dKB)",
            i + 1,
            total,
            photo.filename,
            round(len(base64_data) / 1024),
        )
        results.append(
            await analyze_image(
                base64_data,
                photo.filename,
                detect_mime_type(photo),
                client=client,
                settings=settings,
                timeout=timeout,
            )
        )
        if i < total - 1 and delay > 0:
            await asyncio.sleep(delay)

    logger.info(
        "Vision batch complete — %d/%d analyzed", len(results), total
    )
    return results
