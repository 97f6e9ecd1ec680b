# core/gemini_client.py

import asyncio
import re
from typing import Any, Dict, List, Optional

import requests

from visulearn.core.config import settings
from visulearn.core.errors import ProviderError, RateLimited
from visulearn.core.logger import get_logger

logger = get_logger("gemini")

PROVIDER = "Gemini"
API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

DATA_URL_RE = re.compile(r"^data:image/[a-z]+;base64,", re.IGNORECASE)

TEXT_GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 4096,
}


def strip_data_url(image: Optional[str]) -> str:
    """Remove the ``data:image/...;base64,`` prefix browsers add."""
    if not image:
        return ""
    return DATA_URL_RE.sub("", image)


class GeminiClient:
    """Thin REST client for the Gemini generateContent endpoint."""

    def __init__(
        self,
        api_key: str,
        text_model: Optional[str] = None,
        image_model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key
        self.text_model = text_model or settings.GEMINI_TEXT_MODEL
        self.image_model = image_model or settings.GEMINI_IMAGE_MODEL
        self.timeout = timeout or settings.GEMINI_TIMEOUT_SECONDS

    def _post(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{API_BASE}/{model}:generateContent"
        try:
            response = requests.post(
                url,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ProviderError(PROVIDER, f"request failed: {exc}") from exc

        if response.status_code == 429:
            raise RateLimited(PROVIDER)
        if not response.ok:
            logger.error(f"{model} returned {response.status_code}: {response.text[:500]}")
            raise ProviderError(PROVIDER, response.text[:200] or response.reason, response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(PROVIDER, "malformed response body") from exc

    @staticmethod
    def _parts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        return (candidates[0].get("content") or {}).get("parts") or []

    @staticmethod
    def _contents(prompt: str, image_b64: str, mime_type: str) -> List[Dict[str, Any]]:
        parts: List[Dict[str, Any]] = [{"text": prompt}]
        if image_b64:
            parts.append({"inlineData": {"mimeType": mime_type, "data": image_b64}})
        return [{"role": "user", "parts": parts}]

    async def generate_text(
        self,
        prompt: str,
        image: Optional[str] = None,
        mime_type: str = "image/jpeg",
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Return the text of the first candidate. ``image`` may be a data URL."""
        payload = {
            "contents": self._contents(prompt, strip_data_url(image), mime_type),
            "generationConfig": generation_config or TEXT_GENERATION_CONFIG,
        }
        data = await asyncio.to_thread(self._post, self.text_model, payload)

        for part in self._parts(data):
            if part.get("text"):
                return part["text"]
        raise ProviderError(PROVIDER, "No content generated")

    async def generate_image(
        self,
        prompt: str,
        image: Optional[str] = None,
        mime_type: str = "image/jpeg",
    ) -> Dict[str, str]:
        """Return ``{"data": <base64>, "mime_type": ...}`` for the first image part."""
        payload = {
            "contents": self._contents(prompt, strip_data_url(image), mime_type),
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }
        data = await asyncio.to_thread(self._post, self.image_model, payload)

        for part in self._parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                return {
                    "data": inline["data"],
                    "mime_type": inline.get("mimeType") or inline.get("mime_type") or "image/png",
                }
        raise ProviderError(PROVIDER, "No image part found in response")


def get_gemini_client() -> GeminiClient:
    """Client built from settings. Raises ConfigurationError without a key."""
    return GeminiClient(api_key=settings.require("GEMINI_API_KEY"))
