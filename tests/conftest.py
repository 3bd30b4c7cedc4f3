"""Shared fixtures: a scripted fake model client and clean settings."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from reel_planner import config
from reel_planner.config import Settings


class FakeModelClient:
    """ModelClient that replays scripted answers.

    Each script entry is a string (returned), an exception (raised) or a
    float (seconds to sleep before returning ``"{}"``).
    """

    def __init__(self, *script: Any) -> None:
        self.script = list(script)
        self.calls: list[dict[str, Any]] = []

    async def complete(self, user_text: str, **kwargs: Any) -> str:
        self.calls.append({"user_text": user_text, **kwargs})
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, float):
            await asyncio.sleep(step)
            return "{}"
        return step


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch):
    """Isolate every test from the developer's environment and .env file."""
    for name in (
        "GROK_API_KEY",
        "XAI_API_KEY",
        "GROK_MODEL",
        "GROK_VISION_MODEL",
        "GROK_SEQUENCE_MODEL",
        "GROK_VISION_MAX_TOKENS",
        "GROK_SEQUENCE_MAX_TOKENS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda *a, **kw: False)
    config.clear_cache()
    yield
    config.clear_cache()


@pytest.fixture()
def settings():
    return Settings(api_key="test-key")


def make_results(*ids: str) -> list[dict[str, Any]]:
    return [
        {
            "id": i,
            "filename": f"{i}.jpg",
            "subject": f"subject {i}",
            "mood": ["calm"],
            "visual_energy": 4,
        }
        for i in ids
    ]
