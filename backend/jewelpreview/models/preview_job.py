"""PreviewJob ORM: durable record of one AI preview generation request.

Invariants:
    - id is UUID primary key (client-side default)
    - status and kind store JobStatus / JobKind values
    - owner is user_id XOR guest_client_id, or neither (system-originated)
    - subject_id points at a design configuration or an upgrade analysis depending on kind
    - updated_at is stamped by every transition; the reaper compares against it

Design Decisions:
    - One table for all kinds: a single state machine, two loops partition by kind
      (ADR: reaper and worker share one query shape)
    - subject_id without FK: the subject table depends on kind, and jobs outlive
      neither aggregate in this service (deletion is owned by the aggregate)
    - JSON columns for snapshot/request_options/frame_urls: opaque payloads, read whole
    - No version column: single-writer assumption, later writer wins (see DESIGN.md)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from jewelpreview.core.domain_types import JobStatus
from jewelpreview.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PreviewJob(Base):
    """Preview job row, mutated only by the worker loop and the reaper."""
    __tablename__ = "preview_jobs"
    __table_args__ = (
        Index("ix_preview_jobs_status_created", "status", "created_at"),
        Index("ix_preview_jobs_guest_kind", "guest_client_id", "kind", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True,
    )
    guest_client_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True,
    )
    subject_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JobStatus.PENDING.value,
    )
    snapshot: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    request_options: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=dict,
    )
    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    primary_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    frame_urls: Mapped[list | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
