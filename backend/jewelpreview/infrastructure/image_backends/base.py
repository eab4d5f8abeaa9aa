"""Backend Contract: shared result type, retry policy table, and HTTP error normalization.

Invariants:
    - A backend returns GeneratedImage with exactly one of url / content set
    - Only httpx.TransportError (connection, timeout) is retried on submission,
      and only as many times as the backend's RETRY_POLICIES entry allows
    - Non-2xx responses and unparseable payloads become ProviderError, never raw httpx errors

Design Decisions:
    - Retry policy is a per-backend table, not one global wrapper: a poll-based
      backend tolerates 5xx while polling, synchronous ones never do (ADR: explicit policy)
    - Backoff mirrors the vision client: exponential with ±25% jitter
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import httpx

from jewelpreview.core.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedImage:
    """One generated image: a remote URL to download, or inline bytes."""
    url: str | None = None
    content: bytes | None = None

    def __post_init__(self):
        if (self.url is None) == (self.content is None):
            raise ValueError("GeneratedImage needs exactly one of url or content")


@dataclass(frozen=True)
class RetryPolicy:
    submit_transport_retries: int
    retry_server_errors_while_polling: bool = False
    base_delay_ms: int = 1000
    max_delay_ms: int = 10_000


RETRY_POLICIES: dict[str, RetryPolicy] = {
    "ideogram": RetryPolicy(submit_transport_retries=1),
    "openai": RetryPolicy(submit_transport_retries=3),
    "leonardo": RetryPolicy(
        submit_transport_retries=1, retry_server_errors_while_polling=True,
    ),
}


class GenerationBackend(Protocol):
    """Strategy turning one prompt into one image. Composed into PreviewImageProvider."""
    name: str
    inter_frame_delay: float

    async def generate(self, prompt: str) -> GeneratedImage: ...


def backoff_ms(policy: RetryPolicy, attempt: int) -> int:
    """Exponential backoff with ±25% jitter."""
    delay = min(policy.max_delay_ms, (2 ** attempt) * policy.base_delay_ms)
    return int(delay * random.uniform(0.75, 1.25))  # nosec B311


async def send_with_transport_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    policy: RetryPolicy,
    provider: str,
) -> httpx.Response:
    """Run one request, retrying transport failures per policy. Status codes are not inspected."""
    for attempt in range(policy.submit_transport_retries + 1):
        try:
            return await send()
        except httpx.TransportError as e:
            if attempt >= policy.submit_transport_retries:
                raise ProviderError(
                    f"Transport failure after {attempt + 1} attempt(s): {e}", provider,
                )
            delay = backoff_ms(policy, attempt)
            logger.warning(
                f"Transport error, retry after {delay}ms: {e}",
                extra={"provider": provider, "attempt": attempt + 1},
            )
            await asyncio.sleep(delay / 1000)
    raise AssertionError("unreachable")


def ensure_success(response: httpx.Response, provider: str) -> None:
    if response.is_success:
        return
    body = response.text[:300] if response.content else ""
    raise ProviderError(
        f"HTTP {response.status_code}: {body}", provider, response.status_code,
    )


def parse_json(response: httpx.Response, provider: str) -> dict:
    try:
        payload = response.json()
    except ValueError:
        raise ProviderError("Response is not valid JSON", provider, response.status_code)
    if not isinstance(payload, dict):
        raise ProviderError("Response JSON is not an object", provider, response.status_code)
    return payload
