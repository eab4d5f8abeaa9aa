"""Preview Image Provider: one capability over swappable generation backends.

Invariants:
    - backend is None ⇔ placeholder mode: deterministic URLs, zero network calls, zero uploads
    - Multi-frame output is ordered by ascending view angle, one storage object per frame
    - Each frame is stored before the next one is requested (no buffering of the set)
    - Remote images are streamed into a spooled temp file, then uploaded from it
    - All failures leave as ProviderError / GenerationTimeoutError

Design Decisions:
    - Composition over inheritance: sync and poll-based protocols live in backends,
      this class owns framing, placeholder mode, and storage (ADR: no provider hierarchy)
    - Backend chosen by settings.image_provider through an explicit builder dict
      (ADR: ExMA no auto-discovery)
"""

import asyncio
import logging
import tempfile
from collections.abc import Callable

import httpx

from jewelpreview.config import Settings
from jewelpreview.core.errors import ProviderError
from jewelpreview.core.frame_prompts import (
    CONTENT_TYPE_PNG, frame_key, frame_prompts, single_image_key,
)
from jewelpreview.core.placeholder import (
    placeholder_frame_urls, placeholder_single_url,
)
from jewelpreview.core.repository_protocols import StorageUploader
from jewelpreview.infrastructure.image_backends.base import GenerationBackend
from jewelpreview.infrastructure.image_backends.ideogram import IdeogramBackend
from jewelpreview.infrastructure.image_backends.leonardo import LeonardoBackend
from jewelpreview.infrastructure.image_backends.openai_images import OpenAIImageBackend

logger = logging.getLogger(__name__)

_SPOOL_MAX_BYTES = 8 * 1024 * 1024


class PreviewImageProvider:
    """Implements ImageProvider: prompt(s) → stored public URL(s)."""

    def __init__(
        self,
        backend: GenerationBackend | None,
        storage: StorageUploader,
        http: httpx.AsyncClient,
        download_timeout: float = 60.0,
    ):
        self._backend = backend
        self._storage = storage
        self._http = http
        self._download_timeout = download_timeout

    @property
    def placeholder_mode(self) -> bool:
        return self._backend is None

    @property
    def name(self) -> str:
        return self._backend.name if self._backend else "placeholder"

    async def generate_single(self, prompt: str, key_prefix: str) -> str:
        if self._backend is None:
            logger.info("Placeholder mode: returning placeholder image")
            return placeholder_single_url()
        return await self._render(prompt, single_image_key(key_prefix))

    async def generate_multi_frame(
        self, prompt: str, frame_count: int, key_prefix: str,
    ) -> list[str]:
        prompts = frame_prompts(prompt, frame_count)
        if self._backend is None:
            logger.info(f"Placeholder mode: returning {frame_count} placeholder frames")
            return placeholder_frame_urls(frame_count)

        urls: list[str] = []
        for index, text in enumerate(prompts):
            if index:
                await asyncio.sleep(self._backend.inter_frame_delay)
            urls.append(await self._render(text, frame_key(key_prefix, index)))
            logger.info(
                f"Frame {index + 1}/{frame_count} stored",
                extra={"provider": self._backend.name, "frame_index": index},
            )
        return urls

    async def _render(self, prompt: str, key: str) -> str:
        image = await self._backend.generate(prompt)
        if image.content is not None:
            return await self._storage.upload(image.content, key, CONTENT_TYPE_PNG)
        return await self._stream_to_storage(image.url, key)

    async def _stream_to_storage(self, url: str, key: str) -> str:
        provider = self._backend.name
        with tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_BYTES) as spool:
            try:
                async with self._http.stream(
                    "GET", url, timeout=self._download_timeout,
                ) as response:
                    if response.is_error:
                        raise ProviderError(
                            f"Image download failed with HTTP {response.status_code}",
                            provider, response.status_code,
                        )
                    async for chunk in response.aiter_bytes():
                        spool.write(chunk)
            except httpx.TransportError as e:
                raise ProviderError(f"Image download failed: {e}", provider)
            if spool.tell() == 0:
                raise ProviderError("Downloaded image is empty", provider)
            spool.seek(0)
            return await self._storage.upload(spool, key, CONTENT_TYPE_PNG)


# ─── Backend selection ───────────────────────────────────────────

def _ideogram(settings: Settings, http: httpx.AsyncClient) -> GenerationBackend | None:
    if not settings.ideogram_api_key:
        return None
    return IdeogramBackend(
        http, settings.ideogram_api_key,
        settings.ideogram_base_url, settings.ideogram_timeout_seconds,
    )


def _openai(settings: Settings, http: httpx.AsyncClient) -> GenerationBackend | None:
    if not settings.openai_api_key:
        return None
    return OpenAIImageBackend(
        http, settings.openai_api_key, settings.openai_base_url,
        settings.openai_image_model, settings.openai_timeout_seconds,
    )


def _leonardo(settings: Settings, http: httpx.AsyncClient) -> GenerationBackend | None:
    if not settings.leonardo_api_key:
        return None
    return LeonardoBackend(
        http, settings.leonardo_api_key, settings.leonardo_base_url,
        settings.leonardo_model_id, settings.leonardo_poll_interval_seconds,
        settings.leonardo_max_poll_attempts, settings.leonardo_timeout_seconds,
    )


BACKEND_BUILDERS: dict[
    str, Callable[[Settings, httpx.AsyncClient], GenerationBackend | None],
] = {
    "ideogram": _ideogram,
    "openai": _openai,
    "leonardo": _leonardo,
}


def build_image_provider(
    settings: Settings, storage: StorageUploader, http: httpx.AsyncClient,
) -> PreviewImageProvider:
    backend = BACKEND_BUILDERS[settings.image_provider](settings, http)
    if backend is None:
        logger.warning(
            f"No API key for image provider '{settings.image_provider}': "
            "running in placeholder mode",
        )
    return PreviewImageProvider(backend, storage, http)
