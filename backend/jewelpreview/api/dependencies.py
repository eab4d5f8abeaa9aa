"""Request Dependencies: caller identity and shared clients for route handlers.

Invariants:
    - X-User-Id (set by the upstream auth layer) wins over X-Guest-Client-Id
    - A malformed X-User-Id is a 400, never an anonymous request
    - No header at all yields the empty Owner; services decide whether that is allowed

Design Decisions:
    - Vision client and storage live on app.state (built in lifespan); both are
      overridable via app.dependency_overrides in tests (ADR: no network in route tests)
"""

from uuid import UUID

from fastapi import Header, Request

from jewelpreview.config import Settings, get_settings
from jewelpreview.core.domain_types import GuestClientId, Owner, UserId
from jewelpreview.core.errors import JobValidationError
from jewelpreview.infrastructure.storage import S3StorageUploader
from jewelpreview.infrastructure.vision_client import VisionAnalysisClient


def get_caller(
    x_user_id: str | None = Header(None),
    x_guest_client_id: str | None = Header(None),
) -> Owner:
    if x_user_id:
        try:
            return Owner(user_id=UserId(UUID(x_user_id)))
        except ValueError:
            raise JobValidationError("X-User-Id must be a UUID", "x_user_id")
    guest = (x_guest_client_id or "").strip()
    return Owner(guest_client_id=GuestClientId(guest[:100])) if guest else Owner()


def get_app_settings() -> Settings:
    return get_settings()


def get_vision_client(request: Request) -> VisionAnalysisClient:
    client = getattr(request.app.state, "vision_client", None)
    if client is None:
        client = VisionAnalysisClient.from_settings(get_settings())
        request.app.state.vision_client = client
    return client


def get_storage(request: Request) -> S3StorageUploader:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        storage = S3StorageUploader.from_settings(get_settings())
        request.app.state.storage = storage
    return storage
