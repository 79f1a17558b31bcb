"""Gemini backend — Google Generative Language REST API via httpx."""

from __future__ import annotations

import base64
import logging

import httpx

from veritas.backends.base import GenerationRequest
from veritas.config import settings

logger = logging.getLogger(__name__)


class GeminiBackend:
    """LLM backend using Gemini's ``generateContent`` endpoint."""

    name: str = "Gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.google_api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_api_url).rstrip("/")
        self.timeout = settings.request_timeout if timeout is None else timeout
        self._transport = transport

    async def generate(self, request: GenerationRequest) -> str:
        """Send one request and return the concatenated text parts."""
        url = f"{self.base_url}/{self.model}:generateContent"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                url,
                headers={
                    "x-goog-api-key": self.api_key,
                    "Content-Type": "application/json",
                },
                json=self._build_payload(request),
            )
            response.raise_for_status()

        text = self._extract_text(response.json())
        logger.info("Gemini %s returned %d chars", self.model, len(text))
        return text

    def _build_payload(self, request: GenerationRequest) -> dict:
        parts: list[dict] = [
            {
                "inline_data": {
                    "mime_type": attachment.mime_type,
                    "data": base64.b64encode(attachment.data).decode("ascii"),
                }
            }
            for attachment in request.attachments
        ]
        parts.append({"text": request.prompt})

        payload: dict = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"temperature": request.temperature},
        }
        if request.system:
            payload["systemInstruction"] = {"parts": [{"text": request.system}]}
        return payload

    def _extract_text(self, data: dict) -> str:
        """Join the text parts of the first candidate."""
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            logger.warning("Gemini returned no candidates: %s", feedback)
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)
