"""Vision Analysis Client: wraps AsyncAnthropic to analyze jewelry photos into JewelryAnalysis.

Invariants:
    - analyze() never raises for API or payload problems; it returns JewelryAnalysis,
      with success=False and a displayable message when analysis is unavailable
    - Transient errors (connection, timeout, 5xx, 529): max_retries retries with exponential backoff
    - Client errors (4xx) and semantic failures (empty, non-JSON, schema mismatch): no retry
    - Missing API key: no network call, "not configured" result
    - CancelledError (BaseException) passes through uncaught

Design Decisions:
    - SDK retries disabled (max_retries=0): the retry budget lives here, where it can be
      limited to transport failures (ADR: single retry owner)
    - ±25% jitter on backoff: prevents thundering herd on shared rate limits
    - Strict JSON requested in the system prompt; code fences tolerated when parsing
"""

import asyncio
import base64
import json
import logging
import random
from dataclasses import dataclass

import anthropic
from anthropic import APIConnectionError, APIError, APIStatusError
from pydantic import ValidationError

from jewelpreview.config import Settings
from jewelpreview.schemas.analysis import JewelryAnalysis

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Vision analysis is not available. API key not configured."
UNAVAILABLE_MESSAGE = "Vision analysis is temporarily unavailable. Please try again later."
NO_RESULTS_MESSAGE = "Analysis returned no results."
EMPTY_RESULTS_MESSAGE = "Analysis returned empty results."
UNPROCESSABLE_MESSAGE = "Analysis results could not be processed."

USER_MESSAGE = (
    "Please analyze this jewelry piece and provide structured improvement suggestions."
)

SYSTEM_PROMPT = """You are a fine jewelry expert and design advisor working inside a premium jewelry constructor application.

You are given a photo of a jewelry piece uploaded by a user. Analyze the image and propose OPTIONAL, respectful design improvements.

Rules:
- Never criticize or devalue the original piece.
- Never use technical or AI-related terminology.
- Never assume certainty where the image is unclear; state assumptions politely.
- All improvements must be optional and reversible. The user must always be able to keep the original design.
- Do not suggest random decoration, reference brands, or mention price, value, or resale.

Allowed improvement categories: material_finish, stone_setting (only if stones are visible or very likely), proportion_balance, craftsmanship_detail.

Respond with a single JSON object and nothing else:
{
  "piece_description": "one neutral sentence describing the jewelry",
  "confidence_note": "brief statement about image quality or assumptions made",
  "detected_attributes": {
    "jewelry_type": "ring | pendant | earrings | bracelet | brooch | necklace | other",
    "has_stones": true,
    "stone_description": "string or null, only if has_stones is true",
    "apparent_metal": "e.g. appears to be white gold or platinum",
    "apparent_finish": "e.g. polished with subtle brushed accents",
    "style_character": "e.g. minimalist contemporary"
  },
  "improvement_categories": [
    {
      "category_id": "material_finish | stone_setting | proportion_balance | craftsmanship_detail",
      "category_label": "human-readable category name",
      "suggestions": [
        {
          "suggestion_id": "unique identifier",
          "title": "short, elegant title",
          "description": "what would change (1 sentence)",
          "benefit": "why this improves the piece (1 sentence)",
          "impact_level": "subtle | moderate | bold",
          "character_note": "string or null"
        }
      ]
    }
  ],
  "keep_original": {"title": "Keep Original Design", "description": "Preserve the piece exactly as designed, honoring the original vision.", "is_default": true},
  "preview_guidance": {"summary": "overall visual direction if suggestions applied", "key_visual_changes": ["2-4 primary visual differences"]},
  "analysis_limitations": "string or null",
  "clarification_request": null
}

If the image quality is insufficient or the object is unclear, set clarification_request to {"type": "image_quality | object_recognition", "message": "what is needed"} and still include keep_original."""


@dataclass(frozen=True)
class ImageReference:
    """Image to analyze: a public URL, or raw bytes with their MIME type."""
    url: str | None = None
    data: bytes | None = None
    media_type: str = "image/jpeg"

    def to_content_block(self) -> dict:
        if self.url:
            return {"type": "image", "source": {"type": "url", "url": self.url}}
        return {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": self.media_type,
                "data": base64.b64encode(self.data or b"").decode("ascii"),
            },
        }


def _is_transient(e: APIError) -> bool:
    """Connection/timeout failures and any 5xx (including 529 Overloaded)."""
    if isinstance(e, APIConnectionError):
        return True
    return isinstance(e, APIStatusError) and e.status_code >= 500


class VisionAnalysisClient:
    """Analyzes jewelry photos with retry on transport failures only."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5",
        max_tokens: int = 2048,
        temperature: float = 0.3,
        max_retries: int = 2,
        base_delay_ms: int = 2000,
        max_delay_ms: int = 30_000,
        timeout_seconds: int = 60,
        client=None,
    ):
        if client is None and api_key:
            client = anthropic.AsyncAnthropic(
                api_key=api_key, timeout=timeout_seconds, max_retries=0,
            )
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    @classmethod
    def from_settings(cls, settings: Settings) -> "VisionAnalysisClient":
        return cls(
            api_key=settings.anthropic_api_key,
            model=settings.vision_model,
            max_tokens=settings.vision_max_tokens,
            temperature=settings.vision_temperature,
            max_retries=settings.vision_max_retries,
            base_delay_ms=settings.vision_base_delay_ms,
            max_delay_ms=settings.vision_max_delay_ms,
            timeout_seconds=settings.vision_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def analyze(self, image: ImageReference) -> JewelryAnalysis:
        if self.client is None:
            logger.warning("Vision analysis requested without API key")
            return JewelryAnalysis.unavailable(NOT_CONFIGURED_MESSAGE)

        messages = [{
            "role": "user",
            "content": [
                image.to_content_block(),
                {"type": "text", "text": USER_MESSAGE},
            ],
        }]
        try:
            response = await self._create_with_retry(messages)
        except APIError as e:
            logger.error(
                f"Vision analysis failed: {e}",
                extra={"provider": "anthropic", "error_code": type(e).__name__},
            )
            return JewelryAnalysis.unavailable(UNAVAILABLE_MESSAGE)
        return self._parse(response)

    async def _create_with_retry(self, messages: list):
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    system=SYSTEM_PROMPT,
                    messages=messages,
                )
                logger.info(
                    "Vision analysis API success",
                    extra={"provider": "anthropic", "attempt": attempt + 1},
                )
                return response
            except APIError as e:
                if not _is_transient(e) or attempt >= self.max_retries:
                    raise
                delay = self._backoff(attempt)
                logger.warning(
                    f"Transient vision error, retry after {delay}ms: {e}",
                    extra={"provider": "anthropic", "attempt": attempt + 1},
                )
                await asyncio.sleep(delay / 1000)

    def _parse(self, response) -> JewelryAnalysis:
        blocks = list(getattr(response, "content", None) or [])
        if not blocks:
            return JewelryAnalysis.unavailable(NO_RESULTS_MESSAGE)
        text = "".join(
            b.text for b in blocks if getattr(b, "type", None) == "text"
        ).strip()
        if not text:
            return JewelryAnalysis.unavailable(EMPTY_RESULTS_MESSAGE)
        try:
            payload = json.loads(_strip_code_fence(text))
            return JewelryAnalysis.model_validate(payload)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Vision payload rejected: {e}")
            return JewelryAnalysis.unavailable(UNPROCESSABLE_MESSAGE)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311


def _strip_code_fence(text: str) -> str:
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
