"""UpgradeAnalysis ORM: vision analysis of an uploaded jewelry photo.

Invariants:
    - status is "completed" or "unavailable" (the vision client never raises)
    - analysis holds the structured JewelryAnalysis payload as returned by the client
    - Upgrade-preview jobs reference this row through PreviewJob.subject_id
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from jewelpreview.db.base import Base


class UpgradeAnalysis(Base):
    __tablename__ = "upgrade_analyses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True,
    )
    guest_client_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True,
    )
    original_image_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    analysis: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
