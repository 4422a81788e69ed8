"""Gemini provider — generateContent over the REST API with httpx."""

from typing import Optional

import httpx

from auratask.ai.base import CompletionError, CompletionProvider
from auratask.config import settings


class GeminiProvider(CompletionProvider):
    """Google Gemini via `models/{model}:generateContent`."""

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_api_base).rstrip("/")
        self.timeout = timeout or settings.gemini_timeout_seconds
        self._transport = transport

    @property
    def name(self) -> str:
        return "gemini"

    async def generate(self, api_key: str, prompt: str) -> str:
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": settings.gemini_temperature,
                "maxOutputTokens": settings.gemini_max_output_tokens,
            },
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    f"{self.base_url}/models/{self.model}:generateContent",
                    params={"key": api_key},
                    json=body,
                )
        except httpx.HTTPError as e:
            raise CompletionError(f"Gemini request failed: {type(e).__name__}") from e

        if resp.status_code != 200:
            raise CompletionError(f"Gemini API error: {resp.status_code}")

        try:
            data = resp.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionError("Gemini response had no text") from e

        if not isinstance(text, str) or not text.strip():
            raise CompletionError("Gemini response had no text")
        return text
