"""Leonardo Backend: poll-based generation (submit → job handle → bounded status polling).

Invariants:
    - Polling is bounded: at most max_poll_attempts GETs, poll_interval apart
    - 5xx and transport failures while polling are retried in place (same attempt budget)
    - Any other non-2xx while polling is fatal immediately
    - COMPLETE without an image URL and FAILED are both ProviderError
    - Exhausting the budget raises GenerationTimeoutError, never returns None

Design Decisions:
    - Unknown statuses keep polling: new intermediate states must not fail jobs
    - Sleep before each poll: a freshly submitted generation is never ready instantly
"""

import asyncio
import logging

import httpx

from jewelpreview.core.errors import (
    ErrorContext, GenerationTimeoutError, ProviderError,
)
from jewelpreview.infrastructure.image_backends.base import (
    GeneratedImage, RETRY_POLICIES, ensure_success, parse_json,
    send_with_transport_retry,
)

logger = logging.getLogger(__name__)

NEGATIVE_PROMPT = (
    "blurry, low quality, distorted, deformed, text, watermark, hands, people"
)


class LeonardoBackend:
    name = "leonardo"
    inter_frame_delay = 2.0

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://cloud.leonardo.ai/api/rest/v1",
        model_id: str = "aa77f04e-3eec-4034-9c07-d0f619684628",
        poll_interval: float = 5.0,
        max_poll_attempts: int = 36,
        timeout_seconds: float = 30.0,
    ):
        self._http = http
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        self._base_url = base_url.rstrip("/")
        self._model_id = model_id
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self._timeout = timeout_seconds
        self._policy = RETRY_POLICIES[self.name]

    async def generate(self, prompt: str) -> GeneratedImage:
        generation_id = await self._submit(prompt)
        return GeneratedImage(url=await self._poll(generation_id))

    async def _submit(self, prompt: str) -> str:
        body = {
            "prompt": prompt,
            "modelId": self._model_id,
            "width": 1024,
            "height": 1024,
            "num_images": 1,
            "guidance_scale": 8,
            "photoReal": True,
            "photoRealVersion": "v2",
            "alchemy": True,
            "negative_prompt": NEGATIVE_PROMPT,
        }
        response = await send_with_transport_retry(
            lambda: self._http.post(
                f"{self._base_url}/generations",
                headers=self._headers, json=body, timeout=self._timeout,
            ),
            self._policy,
            self.name,
        )
        ensure_success(response, self.name)
        job = parse_json(response, self.name).get("sdGenerationJob") or {}
        generation_id = job.get("generationId")
        if not generation_id:
            raise ProviderError("Response contained no generationId", self.name)
        logger.info(
            f"Leonardo generation submitted: {generation_id}",
            extra={"provider": self.name},
        )
        return generation_id

    async def _poll(self, generation_id: str) -> str:
        url = f"{self._base_url}/generations/{generation_id}"
        for attempt in range(1, self.max_poll_attempts + 1):
            await asyncio.sleep(self.poll_interval)
            try:
                response = await self._http.get(
                    url, headers=self._headers, timeout=self._timeout,
                )
            except httpx.TransportError as e:
                self._log_transient(f"transport error: {e}", attempt)
                continue
            if (
                response.status_code >= 500
                and self._policy.retry_server_errors_while_polling
            ):
                self._log_transient(f"HTTP {response.status_code}", attempt)
                continue
            ensure_success(response, self.name)

            generation = parse_json(response, self.name).get("generations_by_pk") or {}
            status = str(generation.get("status") or "").upper()
            if status == "COMPLETE":
                return self._first_image_url(generation, generation_id)
            if status == "FAILED":
                raise ProviderError(
                    f"Generation {generation_id} failed", self.name,
                )
            logger.debug(
                f"Leonardo generation {generation_id} status={status or 'UNKNOWN'}",
                extra={"provider": self.name, "attempt": attempt},
            )

        raise GenerationTimeoutError(
            f"Leonardo generation {generation_id} timed out after "
            f"{self.max_poll_attempts * self.poll_interval:.0f} seconds",
            ErrorContext(provider=self.name),
        )

    def _first_image_url(self, generation: dict, generation_id: str) -> str:
        images = generation.get("generated_images") or []
        url = images[0].get("url") if images and isinstance(images[0], dict) else None
        if not url:
            raise ProviderError(
                f"Generation {generation_id} completed without images", self.name,
            )
        return url

    def _log_transient(self, reason: str, attempt: int) -> None:
        logger.warning(
            f"Leonardo poll {reason}, retrying",
            extra={"provider": self.name, "attempt": attempt},
        )
