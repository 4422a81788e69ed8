"""Completion provider tests — Gemini over a mocked transport, registry."""

import httpx
import pytest

from auratask.ai import get_provider, list_providers, register_provider
from auratask.ai.base import CompletionError
from auratask.ai.gemini import GeminiProvider
from auratask.services.ai_service import parse_json_answer, scale_score
from conftest import FakeProvider


def _provider(handler) -> GeminiProvider:
    return GeminiProvider(
        model="gemini-test",
        base_url="https://gemini.test/v1beta/",
        transport=httpx.MockTransport(handler),
    )


def _answer(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.mark.asyncio
async def test_generate_posts_prompt_with_key():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_answer("💼"))

    text = await _provider(handler).generate("AIzaCaller", "Pick an emoji")

    assert text == "💼"
    assert seen[0].url.path == "/v1beta/models/gemini-test:generateContent"
    assert seen[0].url.params["key"] == "AIzaCaller"
    assert b"Pick an emoji" in seen[0].content


@pytest.mark.asyncio
async def test_http_error_status_raises():
    provider = _provider(lambda request: httpx.Response(429, json={}))

    with pytest.raises(CompletionError, match="429"):
        await provider.generate("AIzaCaller", "hi")


@pytest.mark.asyncio
async def test_transport_error_hides_key():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(CompletionError) as exc_info:
        await _provider(handler).generate("AIzaSecret", "hi")

    assert "AIzaSecret" not in str(exc_info.value)


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"candidates": []}, _answer("   ")])
async def test_missing_text_raises(body):
    provider = _provider(lambda request: httpx.Response(200, json=body))

    with pytest.raises(CompletionError):
        await provider.generate("AIzaCaller", "hi")


def test_provider_registry():
    assert "gemini" in list_providers()
    assert isinstance(get_provider("gemini"), GeminiProvider)

    register_provider("fake", FakeProvider)
    assert get_provider("fake").name == "fake"

    with pytest.raises(ValueError):
        get_provider("nope")


def test_parse_json_answer_strips_fences():
    assert parse_json_answer('```json\n{"emoji": "🧹"}\n```') == {"emoji": "🧹"}
    with pytest.raises(ValueError):
        parse_json_answer("[1, 2]")


@pytest.mark.parametrize("value,weight,expected", [
    (10, 1.0, 10),
    (7, 1.5, 11),   # 10.5 rounds up
    (15, 2.0, 20),  # clamped high
    (3, 0.1, 1),    # clamped low
    ("12", 1.0, 12),
])
def test_scale_score(value, weight, expected):
    assert scale_score(value, weight) == expected
