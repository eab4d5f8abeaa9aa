"""Boundary Protocols: contracts between the pipeline core and its collaborators.

Invariants:
    - Core NEVER imports from shell; dependency arrows point inward only
    - Worker loop reaches subjects only through SnapshotResolver (never the ORM aggregates)
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy (ADR: ExMA anti-pattern)
    - ImageProvider is one capability; backends are strategies behind it, not subclasses
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE these protocols are never async themselves
"""

from datetime import datetime
from typing import BinaryIO, Protocol
from uuid import UUID


class JobLike(Protocol):
    """Structural contract for preview job rows passed to core state functions.

    Avoids coupling core to the ORM model while giving mypy
    real type information (unlike Any).
    """
    id: UUID
    kind: str
    status: str
    subject_id: UUID
    user_id: UUID | None
    guest_client_id: str | None
    snapshot: dict | None
    request_options: dict
    prompt: str | None
    primary_url: str | None
    frame_urls: list[str] | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime


class SnapshotResolver(Protocol):
    """Builds the opaque semantic description of a job's subject."""
    async def build(
        self, kind: str, subject_id: UUID, options: dict,
    ) -> dict: ...


class StorageUploader(Protocol):
    """Object storage for generated imagery. Returns public URLs."""
    async def upload(
        self, data: bytes | BinaryIO, key: str, content_type: str,
    ) -> str: ...
    async def delete(self, key: str) -> None: ...


class ImageProvider(Protocol):
    """Prompt → stored image URL(s). Placeholder mode is the provider's own concern."""
    async def generate_single(self, prompt: str, key_prefix: str) -> str: ...
    async def generate_multi_frame(
        self, prompt: str, frame_count: int, key_prefix: str,
    ) -> list[str]: ...
