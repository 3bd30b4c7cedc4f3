"""Unit tests for client helpers and constants."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import FakeModelClient

from reel_planner.client import (
    INTER_CALL_DELAY_SECONDS,
    MAX_IMAGE_BASE64_CHARS,
    MAX_PHOTOS,
    MAX_SEQUENCE_ITEMS,
    MODEL_TIMEOUT_SECONDS,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    SHOT_DURATION,
    TRANSITION,
    ConfigurationError,
    ModelClient,
    XaiModelClient,
    complete_with_timeout,
    get_client,
)
from reel_planner.config import Settings


def test_constants():
    assert MODEL_TIMEOUT_SECONDS == 30
    assert MAX_PHOTOS == 36
    assert MAX_SEQUENCE_ITEMS == 200
    assert MAX_IMAGE_BASE64_CHARS == 13_300_000
    assert INTER_CALL_DELAY_SECONDS == 0.05
    assert SHOT_DURATION == 3.8
    assert TRANSITION == "crossfade"
    assert RATE_LIMIT_WINDOW_SECONDS == 600
    assert RATE_LIMIT_MAX_REQUESTS == 30


def test_get_client_without_key_raises():
    with pytest.raises(ConfigurationError):
        get_client(Settings())


def test_fake_client_satisfies_protocol():
    assert isinstance(FakeModelClient("{}"), ModelClient)


def test_complete_with_timeout_returns_text():
    client = FakeModelClient("hello")
    text = asyncio.run(complete_with_timeout(client, "hi", timeout=1, model="m"))
    assert text == "hello"
    assert client.calls == [{"user_text": "hi", "model": "m"}]


def test_complete_with_timeout_cancels_slow_call():
    cancelled = False

    class _Slow:
        async def complete(self, user_text, **kwargs):
            nonlocal cancelled
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled = True
                raise
            return "late"

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(complete_with_timeout(_Slow(), "hi", timeout=0.01))
    assert cancelled


def test_xai_client_builds_chat():
    response = MagicMock(content='  {"ok": true}  ')
    chat = MagicMock()
    chat.sample = AsyncMock(return_value=response)
    sdk_client = MagicMock()
    sdk_client.chat.create.return_value = chat

    with patch("xai_sdk.AsyncClient", return_value=sdk_client) as async_client:
        client = get_client(Settings(api_key="secret"))
        assert isinstance(client, XaiModelClient)
        text = asyncio.run(
            client.complete(
                "describe",
                model="grok-test",
                max_tokens=100,
                temperature=0.3,
                system_prompt="be precise",
                image_url="data:image/png;base64,AAAA",
            )
        )

    assert text == '{"ok": true}'
    async_client.assert_called_once_with(api_key="secret")
    sdk_client.chat.create.assert_called_once_with(
        model="grok-test", max_tokens=100, temperature=0.3
    )
    assert chat.append.call_count == 2


def test_xai_client_text_only():
    chat = MagicMock()
    chat.sample = AsyncMock(return_value=MagicMock(content=None))
    sdk_client = MagicMock()
    sdk_client.chat.create.return_value = chat

    with patch("xai_sdk.AsyncClient", return_value=sdk_client):
        client = XaiModelClient("secret")
        text = asyncio.run(
            client.complete("plan", model="m", max_tokens=10, temperature=0.4)
        )

    assert text == ""
    assert chat.append.call_count == 1
