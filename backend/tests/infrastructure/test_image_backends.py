"""Image Backends: verifies request shapes, error normalization, and Leonardo polling.

Invariants:
    - Sync backends retry transport failures only, never HTTP error statuses
    - Leonardo polling retries 5xx and transport errors, fails fast on 4xx,
      and raises GenerationTimeoutError once the attempt budget is spent
"""

import base64
import json

import httpx
import pytest

from jewelpreview.core.errors import GenerationTimeoutError, ProviderError
from jewelpreview.infrastructure.image_backends import base
from jewelpreview.infrastructure.image_backends.ideogram import IdeogramBackend
from jewelpreview.infrastructure.image_backends.leonardo import LeonardoBackend
from jewelpreview.infrastructure.image_backends.openai_images import OpenAIImageBackend

SUBMITTED = {"sdGenerationJob": {"generationId": "gen-1"}}


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(base, "backoff_ms", lambda policy, attempt: 0)


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _generation(status: str, url: str | None = None) -> dict:
    images = [{"url": url}] if url else []
    return {"generations_by_pk": {"status": status, "generated_images": images}}


class _Sequence:
    """MockTransport handler replaying responses (or raising) in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


# -- Ideogram ------------------------------------------------------------------


async def test_ideogram_posts_multipart_with_api_key():
    handler = _Sequence(httpx.Response(200, json={"data": [{"url": "https://ideo/img.png"}]}))
    async with _http(handler) as http:
        backend = IdeogramBackend(http, "ideo-key", "https://ideo.test")
        image = await backend.generate("gold ring")

    assert image.url == "https://ideo/img.png"
    request = handler.requests[0]
    assert request.url == "https://ideo.test/v1/ideogram-v3/generate"
    assert request.headers["Api-Key"] == "ideo-key"
    assert request.headers["content-type"].startswith("multipart/form-data")
    assert b"gold ring" in request.content


async def test_ideogram_http_error_is_not_retried():
    handler = _Sequence(httpx.Response(500, text="upstream down"))
    async with _http(handler) as http:
        backend = IdeogramBackend(http, "ideo-key")
        with pytest.raises(ProviderError) as exc_info:
            await backend.generate("ring")

    assert exc_info.value.status_code == 500
    assert len(handler.requests) == 1


async def test_ideogram_transport_error_retried_once():
    handler = _Sequence(
        httpx.ConnectError("refused"),
        httpx.Response(200, json={"data": [{"url": "https://ideo/img.png"}]}),
    )
    async with _http(handler) as http:
        image = await IdeogramBackend(http, "ideo-key").generate("ring")

    assert image.url == "https://ideo/img.png"
    assert len(handler.requests) == 2


async def test_ideogram_transport_budget_exhausted():
    handler = _Sequence(httpx.ConnectError("refused"), httpx.ConnectError("refused"))
    async with _http(handler) as http:
        with pytest.raises(ProviderError, match="Transport failure after 2"):
            await IdeogramBackend(http, "ideo-key").generate("ring")


async def test_ideogram_response_without_url():
    handler = _Sequence(httpx.Response(200, json={"data": []}))
    async with _http(handler) as http:
        with pytest.raises(ProviderError, match="no image URL"):
            await IdeogramBackend(http, "ideo-key").generate("ring")


# -- OpenAI --------------------------------------------------------------------


async def test_openai_decodes_inline_image():
    payload = base64.b64encode(b"png-bytes").decode()
    handler = _Sequence(httpx.Response(200, json={"data": [{"b64_json": payload}]}))
    async with _http(handler) as http:
        image = await OpenAIImageBackend(http, "sk-test").generate("ring")

    assert image.content == b"png-bytes"
    body = json.loads(handler.requests[0].content)
    assert body["response_format"] == "b64_json"
    assert handler.requests[0].headers["Authorization"] == "Bearer sk-test"


async def test_openai_invalid_base64_is_provider_error():
    handler = _Sequence(httpx.Response(200, json={"data": [{"b64_json": "***"}]}))
    async with _http(handler) as http:
        with pytest.raises(ProviderError, match="base64"):
            await OpenAIImageBackend(http, "sk-test").generate("ring")


async def test_openai_non_json_body_is_provider_error():
    handler = _Sequence(httpx.Response(200, text="<html>"))
    async with _http(handler) as http:
        with pytest.raises(ProviderError, match="not valid JSON"):
            await OpenAIImageBackend(http, "sk-test").generate("ring")


# -- Leonardo ------------------------------------------------------------------


def _leonardo(http, attempts=5) -> LeonardoBackend:
    return LeonardoBackend(
        http, "leo-key", "https://leo.test", poll_interval=0, max_poll_attempts=attempts,
    )


async def test_leonardo_polls_until_complete():
    handler = _Sequence(
        httpx.Response(200, json=SUBMITTED),
        httpx.Response(200, json=_generation("PENDING")),
        httpx.Response(200, json=_generation("COMPLETE", "https://leo/img.png")),
    )
    async with _http(handler) as http:
        image = await _leonardo(http).generate("ring")

    assert image.url == "https://leo/img.png"
    assert handler.requests[1].url == "https://leo.test/generations/gen-1"


async def test_leonardo_retries_server_errors_while_polling():
    handler = _Sequence(
        httpx.Response(200, json=SUBMITTED),
        httpx.Response(503),
        httpx.ReadTimeout("slow"),
        httpx.Response(200, json=_generation("COMPLETE", "https://leo/img.png")),
    )
    async with _http(handler) as http:
        image = await _leonardo(http).generate("ring")

    assert image.url == "https://leo/img.png"
    assert len(handler.requests) == 4


async def test_leonardo_client_error_while_polling_is_fatal():
    handler = _Sequence(
        httpx.Response(200, json=SUBMITTED),
        httpx.Response(401, text="bad key"),
        httpx.Response(200, json=_generation("COMPLETE", "https://leo/img.png")),
    )
    async with _http(handler) as http:
        with pytest.raises(ProviderError) as exc_info:
            await _leonardo(http).generate("ring")

    assert exc_info.value.status_code == 401
    assert len(handler.requests) == 2


async def test_leonardo_failed_generation():
    handler = _Sequence(
        httpx.Response(200, json=SUBMITTED),
        httpx.Response(200, json=_generation("FAILED")),
    )
    async with _http(handler) as http:
        with pytest.raises(ProviderError, match="gen-1 failed"):
            await _leonardo(http).generate("ring")


async def test_leonardo_complete_without_images():
    handler = _Sequence(
        httpx.Response(200, json=SUBMITTED),
        httpx.Response(200, json=_generation("COMPLETE")),
    )
    async with _http(handler) as http:
        with pytest.raises(ProviderError, match="without images"):
            await _leonardo(http).generate("ring")


async def test_leonardo_exhausted_attempts_time_out():
    handler = _Sequence(
        httpx.Response(200, json=SUBMITTED),
        *[httpx.Response(200, json=_generation("PENDING")) for _ in range(3)],
    )
    async with _http(handler) as http:
        with pytest.raises(GenerationTimeoutError):
            await _leonardo(http, attempts=3).generate("ring")

    assert len(handler.requests) == 4


async def test_leonardo_submit_without_generation_id():
    handler = _Sequence(httpx.Response(200, json={"sdGenerationJob": {}}))
    async with _http(handler) as http:
        with pytest.raises(ProviderError, match="generationId"):
            await _leonardo(http).generate("ring")


def test_generated_image_requires_exactly_one_source():
    with pytest.raises(ValueError):
        base.GeneratedImage()
    with pytest.raises(ValueError):
        base.GeneratedImage(url="https://x", content=b"x")
