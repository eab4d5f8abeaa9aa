"""Preview pipeline schema: preview_jobs, design_configurations, upgrade_analyses.

Revision ID: 001_preview_pipeline
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_preview_pipeline"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "design_configurations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("base_model", sa.String(200), nullable=False),
        sa.Column("base_model_description", sa.Text, nullable=True),
        sa.Column("material", sa.String(100), nullable=False),
        sa.Column("metal_type", sa.String(50), nullable=True),
        sa.Column("karat", sa.Integer, nullable=True),
        sa.Column("color_hex", sa.String(7), nullable=True),
        sa.Column("stones", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_design_configurations_user_id", "design_configurations", ["user_id"])

    op.create_table(
        "upgrade_analyses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("guest_client_id", sa.String(100), nullable=True),
        sa.Column("original_image_url", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("analysis", sa.JSON, nullable=False),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_upgrade_analyses_user_id", "upgrade_analyses", ["user_id"])

    op.create_table(
        "preview_jobs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("guest_client_id", sa.String(100), nullable=True),
        sa.Column("subject_id", UUID(as_uuid=True), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("snapshot", sa.JSON, nullable=True),
        sa.Column("request_options", sa.JSON, nullable=False),
        sa.Column("prompt", sa.Text, nullable=True),
        sa.Column("primary_url", sa.Text, nullable=True),
        sa.Column("frame_urls", sa.JSON, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_preview_jobs_user_id", "preview_jobs", ["user_id"])
    op.create_index("ix_preview_jobs_subject_id", "preview_jobs", ["subject_id"])
    op.create_index("ix_preview_jobs_status_created", "preview_jobs", ["status", "created_at"])
    op.create_index(
        "ix_preview_jobs_guest_kind", "preview_jobs",
        ["guest_client_id", "kind", "status"],
    )


def downgrade() -> None:
    op.drop_table("preview_jobs")
    op.drop_table("upgrade_analyses")
    op.drop_table("design_configurations")
