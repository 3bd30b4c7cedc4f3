"""xAI SDK wrapper, model-call protocol and deployment constants."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

from reel_planner.config import Settings, load_settings

logger = logging.getLogger(__name__)

# ─── Constants ────────────────────────────────────────────────

MODEL_TIMEOUT_SECONDS = 30.0
MAX_PHOTOS = 36
MAX_SEQUENCE_ITEMS = 200
MAX_IMAGE_BASE64_CHARS = 13_300_000  # ~10 MB decoded
INTER_CALL_DELAY_SECONDS = 0.05

SHOT_DURATION = 3.8
TRANSITION = "crossfade"

VISION_TEMPERATURE = 0.3
SEQUENCE_TEMPERATURE = 0.4

RATE_LIMIT_WINDOW_SECONDS = 600
RATE_LIMIT_MAX_REQUESTS = 30


class ConfigurationError(RuntimeError):
    """Raised when the service cannot reach the model provider as configured."""


# ─── Model call protocol ──────────────────────────────────────


@runtime_checkable
class ModelClient(Protocol):
    """Opaque text-completion call: prompt in, raw text out."""

    async def complete(
        self,
        user_text: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str | None = None,
        image_url: str | None = None,
    ) -> str:
        """Return the model's raw text answer, or raise on failure."""
        ...


class XaiModelClient:
    """ModelClient backed by ``xai_sdk.AsyncClient``."""

    def __init__(self, api_key: str) -> None:
        from xai_sdk import AsyncClient

        self._client = AsyncClient(api_key=api_key)

    async def complete(
        self,
        user_text: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str | None = None,
        image_url: str | None = None,
    ) -> str:
        from xai_sdk.chat import image, system, user

        chat = self._client.chat.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        if system_prompt:
            chat.append(system(system_prompt))
        if image_url:
            chat.append(user(user_text, image(image_url)))
        else:
            chat.append(user(user_text))

        response = await chat.sample()
        content = (response.content or "").strip()
        logger.debug("Model %s answered %d chars", model, len(content))
        return content


# ─── Client factory ──────────────────────────────────────────


def get_client(settings: Settings | None = None) -> ModelClient:
    """Return a configured ModelClient.

    Raises:
        ConfigurationError: If neither GROK_API_KEY nor XAI_API_KEY is set.
    """
    settings = settings or load_settings()
    if not settings.api_key:
        logger.error("No API key found in GROK_API_KEY or XAI_API_KEY")
        raise ConfigurationError(
            "No API key found. Set GROK_API_KEY in .env or environment."
        )
    logger.debug("Creating xAI client")
    return XaiModelClient(settings.api_key)


async def complete_with_timeout(
    client: ModelClient,
    user_text: str,
    *,
    timeout: float = MODEL_TIMEOUT_SECONDS,
    **kwargs,
) -> str:
    """Run one model call bounded by *timeout* seconds.

    On expiry the in-flight call is cancelled and ``asyncio.TimeoutError``
    is raised; the call's late result, if any, is never observed.
    """
    return await asyncio.wait_for(client.complete(user_text, **kwargs), timeout=timeout)
