"""OpenAI Images Backend: synchronous generation returning inline base64 bytes."""

import base64
import binascii

import httpx

from jewelpreview.core.errors import ProviderError
from jewelpreview.infrastructure.image_backends.base import (
    GeneratedImage, RETRY_POLICIES, ensure_success, parse_json,
    send_with_transport_retry,
)


class OpenAIImageBackend:
    name = "openai"
    inter_frame_delay = 1.0

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "dall-e-3",
        timeout_seconds: float = 120.0,
    ):
        self._http = http
        self._api_key = api_key
        self._endpoint = f"{base_url.rstrip('/')}/images/generations"
        self._model = model
        self._timeout = timeout_seconds
        self._policy = RETRY_POLICIES[self.name]

    async def generate(self, prompt: str) -> GeneratedImage:
        body = {
            "model": self._model,
            "prompt": prompt,
            "n": 1,
            "size": "1024x1024",
            "quality": "standard",
            "response_format": "b64_json",
        }
        response = await send_with_transport_retry(
            lambda: self._http.post(
                self._endpoint,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json=body,
                timeout=self._timeout,
            ),
            self._policy,
            self.name,
        )
        ensure_success(response, self.name)
        data = parse_json(response, self.name).get("data") or []
        item = data[0] if data and isinstance(data[0], dict) else {}
        if item.get("b64_json"):
            try:
                return GeneratedImage(content=base64.b64decode(item["b64_json"], validate=True))
            except (binascii.Error, ValueError):
                raise ProviderError("Image payload is not valid base64", self.name)
        if item.get("url"):
            return GeneratedImage(url=item["url"])
        raise ProviderError("Response contained no image data", self.name)
