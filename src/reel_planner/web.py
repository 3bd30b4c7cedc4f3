"""FastAPI app — /vision and /sequence endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from reel_planner.client import (
    MAX_PHOTOS,
    MAX_SEQUENCE_ITEMS,
    ConfigurationError,
    ModelClient,
    get_client,
)
from reel_planner.config import load_settings
from reel_planner.ratelimit import RateLimiter, client_ip
from reel_planner.schemas import Photo
from reel_planner.tasks.sequence import plan_sequence
from reel_planner.tasks.vision import analyze_photos

logger = logging.getLogger(__name__)

app = FastAPI(title="Reel Planner")

# ─── Globals shared with CLI bootstrap ────────────────────────

vision_limiter = RateLimiter()
sequence_limiter = RateLimiter()
_model_client: ModelClient | None = None


def get_model_client() -> ModelClient:
    """Get or create the shared model client.

    Raises:
        ConfigurationError: If no API key is configured.
    """
    global _model_client
    if _model_client is None:
        logger.info("Auto-initialising model client (was None)")
        _model_client = get_client()
    return _model_client


def set_model_client(client: ModelClient | None) -> None:
    """Allow CLI and tests to inject a pre-built client."""
    global _model_client
    _model_client = client
    logger.debug("Model client injected via set_model_client()")


# ─── Response helpers ─────────────────────────────────────────


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _rate_limited(limiter: RateLimiter) -> JSONResponse:
    return JSONResponse(
        {
            "error": "Rate limit exceeded",
            "message": "Too many requests. Please try again later.",
        },
        status_code=429,
        headers={
            "X-RateLimit-Remaining": "0",
            "Retry-After": str(limiter.window_seconds),
        },
    )


def _server_failure(exc: Exception) -> JSONResponse:
    return JSONResponse(
        {"ok": False, "error": str(exc) or "Unknown error"}, status_code=500
    )


def _batch(body: Any, key: str) -> Any:
    return body.get(key) if isinstance(body, dict) else None


# ─── Health check ─────────────────────────────────────────────


@app.get("/health")
async def health():
    return {"status": "ok"}


# ─── Vision analysis ─────────────────────────────────────────


@app.post("/vision")
async def vision(request: Request):
    decision = vision_limiter.check(client_ip(request))
    if not decision.allowed:
        return _rate_limited(vision_limiter)

    try:
        body = await request.json()
        raw_photos = _batch(body, "photos")
        if not isinstance(raw_photos, list):
            return _error(400, "photos array required")
        if not raw_photos:
            return _error(400, "photos array cannot be empty")
        if len(raw_photos) > MAX_PHOTOS:
            return _error(400, f"Too many photos (max {MAX_PHOTOS})")

        try:
            photos = [Photo.model_validate(p) for p in raw_photos]
        except ValidationError as exc:
            logger.info("Rejected vision request: %d invalid fields", exc.error_count())
            return _error(400, "each photo requires string filename and data")

        try:
            client = get_model_client()
        except ConfigurationError as exc:
            logger.error("Vision unavailable: %s", exc)
            return _error(500, "Server configuration error")

        logger.info("Vision request: %d photo(s)", len(photos))
        results = await analyze_photos(photos, client=client, settings=load_settings())

        if len(results) != len(photos):
            return _error(
                500,
                f"Analysis incomplete: {len(results)}/{len(photos)} images analyzed",
            )

        return JSONResponse(
            {
                "ok": True,
                "results": [r.model_dump() for r in results],
                "count": len(results),
            },
            headers={"X-RateLimit-Remaining": str(decision.remaining)},
        )
    except Exception as exc:
        logger.error("Vision request failed: %s", exc, exc_info=True)
        return _server_failure(exc)


# ─── Sequence planning ───────────────────────────────────────


@app.post("/sequence")
async def sequence(request: Request):
    decision = sequence_limiter.check(client_ip(request))
    if not decision.allowed:
        return _rate_limited(sequence_limiter)

    try:
        body = await request.json()
        analysis_results = _batch(body, "analysisResults")
        if not isinstance(analysis_results, list):
            return _error(400, "analysisResults array required")
        if not analysis_results:
            return _error(400, "analysisResults array cannot be empty")
        if len(analysis_results) > MAX_SEQUENCE_ITEMS:
            return _error(400, f"Too many images (max {MAX_SEQUENCE_ITEMS})")

        prompt_text = _batch(body, "promptText")
        prompt_text = prompt_text.strip() if isinstance(prompt_text, str) else ""

        try:
            client = get_model_client()
        except ConfigurationError as exc:
            logger.error("Sequence planning unavailable: %s", exc)
            return _error(500, "Server configuration error")

        plan = await plan_sequence(
            analysis_results,
            prompt_text,
            client=client,
            settings=load_settings(),
        )
        logger.info(
            "Sequence request: %d item(s), planner=%s",
            len(analysis_results),
            plan.used_planner,
        )
        return JSONResponse(
            {"ok": True, "plan": plan.to_response()},
            headers={"X-RateLimit-Remaining": str(decision.remaining)},
        )
    except Exception as exc:
        logger.error("Sequence request failed: %s", exc, exc_info=True)
        return _server_failure(exc)
