"""Test Doubles: flat fakes for storage, image provider, vision, and the Anthropic SDK.

Invariants:
    - Every fake records its calls so tests assert on interaction, not internals
    - MockAnthropicClient sequences outcomes: a response object or an exception per call

Design Decisions:
    - Flat classes (no inheritance, no unittest.mock): simple, explicit, easy to debug
"""

import asyncio

import httpx
import anthropic

from jewelpreview.schemas.analysis import JewelryAnalysis

OWNER_USER_ID = "5b6f9a52-3c1e-4f0a-9d7e-2a8c1b4e6f10"


# -- Storage / provider --------------------------------------------------------


class FakeStorage:
    """In-memory StorageUploader."""

    def __init__(self, base_url: str = "https://cdn.test"):
        self.base_url = base_url
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.deleted: list[str] = []

    async def upload(self, data, key: str, content_type: str) -> str:
        self.objects[key] = data if isinstance(data, bytes) else data.read()
        self.content_types[key] = content_type
        return f"{self.base_url}/{key}"

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)


class StubProvider:
    """ImageProvider returning fixed URLs; optionally raising or hanging."""

    def __init__(self, url: str = "https://x/img.png", error: Exception | None = None,
                 delay: float = 0.0):
        self.url = url
        self.error = error
        self.delay = delay
        self.single_calls: list[tuple[str, str]] = []
        self.multi_calls: list[tuple[str, int, str]] = []

    async def generate_single(self, prompt: str, key_prefix: str) -> str:
        self.single_calls.append((prompt, key_prefix))
        await self._maybe_fail()
        return self.url

    async def generate_multi_frame(
        self, prompt: str, frame_count: int, key_prefix: str,
    ) -> list[str]:
        self.multi_calls.append((prompt, frame_count, key_prefix))
        await self._maybe_fail()
        return [f"{self.url}?frame={i:02d}" for i in range(frame_count)]

    async def _maybe_fail(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error


# -- Vision --------------------------------------------------------------------


def analysis_payload() -> dict:
    return {
        "piece_description": "A yellow gold solitaire ring with a round diamond.",
        "confidence_note": "Clear, well-lit photo.",
        "detected_attributes": {
            "jewelry_type": "ring",
            "has_stones": True,
            "stone_description": "a round brilliant diamond",
            "apparent_metal": "yellow_gold",
            "apparent_finish": "polished",
            "style_character": "classic",
        },
        "improvement_categories": [
            {
                "category_id": "stone_setting",
                "category_label": "Stone Setting",
                "suggestions": [
                    {
                        "suggestion_id": "halo",
                        "title": "Add a pave halo",
                        "description": "Surround the center stone with small diamonds.",
                        "benefit": "Adds brilliance.",
                        "impact_level": "BOLD",
                    },
                    {
                        "suggestion_id": "prongs",
                        "title": "Slimmer prongs",
                        "description": "Refine the prongs to show more of the stone.",
                        "impact_level": "unknown",
                    },
                ],
            },
        ],
    }


class MockVisionClient:
    """Vision client double used by route tests."""

    def __init__(self, result: JewelryAnalysis | None = None):
        self.result = result or JewelryAnalysis.model_validate(analysis_payload())
        self.calls: list = []

    async def analyze(self, image) -> JewelryAnalysis:
        self.calls.append(image)
        return self.result


# -- Anthropic SDK -------------------------------------------------------------


class _Block:
    def __init__(self, type: str, text: str = ""):
        self.type = type
        self.text = text


class _Message:
    def __init__(self, content):
        self.content = content


def text_message(text: str) -> _Message:
    return _Message([_Block("text", text)])


class _Messages:
    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class MockAnthropicClient:
    """Sequenced stand-in for AsyncAnthropic: one outcome per messages.create call."""

    def __init__(self, outcomes):
        self.messages = _Messages(outcomes)

    @property
    def calls(self) -> list[dict]:
        return self.messages.calls


_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def connection_error() -> anthropic.APIConnectionError:
    return anthropic.APIConnectionError(request=_REQUEST)


def status_error(status_code: int) -> anthropic.APIStatusError:
    response = httpx.Response(status_code, request=_REQUEST, json={"error": {}})
    return anthropic.APIStatusError(
        f"status {status_code}", response=response, body=None,
    )
