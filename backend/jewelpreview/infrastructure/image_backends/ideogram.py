"""Ideogram Backend: synchronous generation, one multipart request returns the image URL."""

import logging

import httpx

from jewelpreview.core.errors import ProviderError
from jewelpreview.infrastructure.image_backends.base import (
    GeneratedImage, RETRY_POLICIES, ensure_success, parse_json,
    send_with_transport_retry,
)

logger = logging.getLogger(__name__)

NEGATIVE_PROMPT = (
    "blurry, low quality, distorted proportions, deformed, text, watermark, logo, "
    "hands, people, cluttered background"
)


class IdeogramBackend:
    name = "ideogram"
    inter_frame_delay = 1.0

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://api.ideogram.ai",
        timeout_seconds: float = 60.0,
    ):
        self._http = http
        self._api_key = api_key
        self._endpoint = f"{base_url.rstrip('/')}/v1/ideogram-v3/generate"
        self._timeout = timeout_seconds
        self._policy = RETRY_POLICIES[self.name]

    async def generate(self, prompt: str) -> GeneratedImage:
        fields = {
            "prompt": prompt,
            "aspect_ratio": "1x1",
            "rendering_speed": "DEFAULT",
            "style_type": "DESIGN",
            "negative_prompt": NEGATIVE_PROMPT,
        }
        response = await send_with_transport_retry(
            lambda: self._http.post(
                self._endpoint,
                headers={"Api-Key": self._api_key},
                # (None, value) tuples force multipart/form-data without file parts
                files={k: (None, v) for k, v in fields.items()},
                timeout=self._timeout,
            ),
            self._policy,
            self.name,
        )
        ensure_success(response, self.name)
        data = parse_json(response, self.name).get("data") or []
        url = data[0].get("url") if data and isinstance(data[0], dict) else None
        if not url:
            raise ProviderError("Response contained no image URL", self.name)
        logger.info("Ideogram image generated", extra={"provider": self.name})
        return GeneratedImage(url=url)
