"""
Text generation capability

Lesson summaries and quizzes only ever need `generate(prompt) -> text`. The provider behind
that call is swappable: production uses the Gemini REST API, tests inject a fake.
"""

import json
import logging
import re
from typing import Any, Optional, Protocol

import httpx

from ..config import GEMINI_API_BASE, GEMINI_API_KEY, GEMINI_MODEL, GENERATION_TIMEOUT_SECONDS
from ..errors import MalformedGeneratorOutput

logger = logging.getLogger(__name__)

JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class TextGenerationError(Exception):
    """The provider could not produce text (not configured, unreachable, refused)"""


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class GeminiTextGenerator:
    """Single-shot calls to Google Gemini's generateContent endpoint"""

    def __init__(
        self,
        api_key: Optional[str] = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_API_BASE,
        timeout: float = GENERATION_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def generate(self, prompt: str) -> str:
        if not self.api_key or not self.api_key.strip():
            raise TextGenerationError(
                "AI feature is not configured. Please contact your administrator to set up the GEMINI_API_KEY."
            )

        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url, params={"key": self.api_key}, json=payload
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Gemini request failed: {e}")
            raise TextGenerationError(f"AI service unreachable: {e}") from e

        if response.status_code != 200:
            logger.error(f"❌ Gemini returned HTTP {response.status_code}: {response.text[:500]}")
            if response.status_code in (401, 403):
                raise TextGenerationError("Invalid or missing Google Gemini API key. Please contact support.")
            if response.status_code == 429:
                raise TextGenerationError("AI service quota exceeded. Please try again later.")
            if response.status_code == 503:
                raise TextGenerationError(
                    "AI service is temporarily overloaded. Please try again in a few seconds."
                )
            raise TextGenerationError(f"AI service error (HTTP {response.status_code})")

        try:
            data = response.json()
            parts = data["candidates"][0]["content"]["parts"]
            return "".join(part.get("text", "") for part in parts)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"❌ Unexpected Gemini response shape: {response.text[:500]}")
            raise TextGenerationError("AI service returned an unexpected response") from e


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Pull the JSON object out of a model reply, which may be wrapped in prose or
    markdown fences.

    Raises:
        MalformedGeneratorOutput: no parsable JSON object in the reply
    """
    match = JSON_OBJECT_RE.search(text or "")
    if not match:
        logger.error(f"AI Response (no JSON found): {text[:500] if text else text!r}")
        raise MalformedGeneratorOutput("Could not parse JSON from AI response")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise MalformedGeneratorOutput(f"AI response is not valid JSON: {e.msg}") from e


def get_text_generator() -> TextGenerator:
    """Dependency injection for the text generation provider"""
    return GeminiTextGenerator()
