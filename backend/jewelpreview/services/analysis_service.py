"""Upgrade Analysis Service: runs vision analysis on a photo and stores the result.

Invariants:
    - Always persists a row, even when analysis is unavailable (status="unavailable")
    - Only "completed" analyses can seed upgrade-preview jobs
    - A user-owned analysis is invisible (404) to anyone but its owner
    - Uploaded photos are validated (non-empty, <= 10 MB, JPEG/PNG/WebP) before anything
      is stored; accepted photos land under upgrade-images/YYYY/MM/DD/
    - Recent analyses are a signed-in user's completed rows, newest first, 1..20 of them

Design Decisions:
    - Uploaded bytes go to the vision client inline (base64 block) rather than by the
      storage URL: the bucket may not be publicly reachable from the model API
"""

import logging
import posixpath
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelpreview.core.domain_types import Owner
from jewelpreview.core.errors import JobValidationError, ResourceNotFoundError
from jewelpreview.core.repository_protocols import StorageUploader
from jewelpreview.infrastructure.vision_client import ImageReference, VisionAnalysisClient
from jewelpreview.models.upgrade_analysis import UpgradeAnalysis
from jewelpreview.services.job_submission import require_caller

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_UNAVAILABLE = "unavailable"

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
RECENT_DEFAULT, RECENT_MAX = 5, 20


def validate_upload(data: bytes, content_type: str | None) -> str:
    """Returns the normalized content type, or raises JobValidationError on field "file"."""
    if not data:
        raise JobValidationError("No image file provided", "file")
    if len(data) > MAX_UPLOAD_BYTES:
        raise JobValidationError("File size exceeds 10 MB limit", "file")
    normalized = (content_type or "").split(";")[0].strip().lower()
    if normalized not in ALLOWED_IMAGE_TYPES:
        raise JobValidationError("Invalid file type. Allowed: JPEG, PNG, WebP", "file")
    return normalized


def upload_key(filename: str | None, content_type: str, now: datetime) -> str:
    ext = posixpath.splitext(filename or "")[1].lower() or ALLOWED_IMAGE_TYPES[content_type]
    return f"upgrade-images/{now:%Y/%m/%d}/{uuid4()}{ext}"


async def create_upgrade_analysis(
    db: AsyncSession, vision: VisionAnalysisClient, image_url: str, owner: Owner,
) -> UpgradeAnalysis:
    require_caller(owner)
    return await _analyze_and_store(
        db, vision, ImageReference(url=image_url), image_url, owner,
    )


async def upload_and_analyze(
    db: AsyncSession,
    storage: StorageUploader,
    vision: VisionAnalysisClient,
    data: bytes,
    filename: str | None,
    content_type: str | None,
    owner: Owner,
    now: datetime | None = None,
) -> UpgradeAnalysis:
    """Store an uploaded photo, then analyze it. Storage failures propagate (nothing saved)."""
    require_caller(owner)
    media_type = validate_upload(data, content_type)
    key = upload_key(filename, media_type, now or datetime.now(timezone.utc))
    image_url = await storage.upload(data, key, media_type)
    logger.info(
        f"Upgrade photo stored at {key}",
        extra={"guest_client_id": owner.guest_client_id},
    )
    return await _analyze_and_store(
        db, vision, ImageReference(data=data, media_type=media_type), image_url, owner,
    )


async def _analyze_and_store(
    db: AsyncSession,
    vision: VisionAnalysisClient,
    image: ImageReference,
    image_url: str,
    owner: Owner,
) -> UpgradeAnalysis:
    result = await vision.analyze(image)
    analysis = UpgradeAnalysis(
        user_id=owner.user_id,
        guest_client_id=owner.guest_client_id,
        original_image_url=image_url,
        status=STATUS_COMPLETED if result.success else STATUS_UNAVAILABLE,
        analysis=result.model_dump(mode="json"),
        error_message=result.error_message,
    )
    db.add(analysis)
    await db.commit()
    logger.info(
        f"Upgrade analysis stored ({analysis.status})",
        extra={"guest_client_id": owner.guest_client_id},
    )
    return analysis


async def get_visible_analysis(
    db: AsyncSession, analysis_id: UUID, caller: Owner,
) -> UpgradeAnalysis:
    analysis = await db.get(UpgradeAnalysis, analysis_id)
    if analysis is None or (
        analysis.user_id is not None and analysis.user_id != caller.user_id
    ):
        raise ResourceNotFoundError("Analysis", str(analysis_id))
    return analysis


async def list_recent_analyses(
    db: AsyncSession, caller: Owner, take: int = RECENT_DEFAULT,
) -> list[UpgradeAnalysis]:
    if caller.user_id is None:
        raise JobValidationError(
            "Recent analyses are only available to signed-in users", "x_user_id",
        )
    take = max(1, min(take, RECENT_MAX))
    result = await db.execute(
        select(UpgradeAnalysis)
        .where(
            UpgradeAnalysis.user_id == caller.user_id,
            UpgradeAnalysis.status == STATUS_COMPLETED,
        )
        .order_by(UpgradeAnalysis.created_at.desc())
        .limit(take),
    )
    return list(result.scalars().all())
