"""DesignConfiguration ORM: the jewelry design a preview job renders.

Invariants:
    - user_id NULL means an anonymous (guest) configuration
    - stones is a JSON list of {stone_type, color, count, carat_weight, size_mm, position}

Design Decisions:
    - Denormalized catalog names (category, material, base_model) instead of FKs:
      catalog CRUD is owned elsewhere; the pipeline only reads names into snapshots
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from jewelpreview.db.base import Base


class DesignConfiguration(Base):
    __tablename__ = "design_configurations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True,
    )
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    base_model: Mapped[str] = mapped_column(String(200), nullable=False)
    base_model_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    material: Mapped[str] = mapped_column(String(100), nullable=False)
    metal_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    karat: Mapped[int | None] = mapped_column(Integer, nullable=True)
    color_hex: Mapped[str | None] = mapped_column(String(7), nullable=True)
    stones: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
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
