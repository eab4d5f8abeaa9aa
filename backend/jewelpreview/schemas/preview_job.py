"""Preview Job Schemas: submission bodies and the public job descriptor.

Invariants:
    - frame_count bounds are checked by the submission service, not here, so the
      error carries field "frame_count" with the 4..36 message
    - JobDescriptor never exposes snapshot, prompt, or owner columns
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jewelpreview.schemas.analysis import JewelryAnalysis


class PreviewJobCreate(BaseModel):
    """Body for POST /preview-jobs."""
    kind: str = Field(min_length=1, max_length=20)
    configuration_id: UUID
    frame_count: int | None = None


class UpgradePreviewJobCreate(BaseModel):
    """Body for POST /upgrade/preview-jobs."""
    analysis_id: UUID
    kept_original: bool = False
    applied_suggestion_ids: list[str] = Field(default_factory=list, max_length=20)


class AnalysisCreate(BaseModel):
    image_url: str = Field(min_length=1, max_length=2048)

    @field_validator("image_url")
    @classmethod
    def require_http_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("image_url must be an http(s) URL")
        return v


class JobDescriptor(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: str
    status: str
    primary_url: str | None = None
    frame_urls: list[str] | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    original_image_url: str
    analysis: JewelryAnalysis
    error_message: str | None = None
    created_at: datetime
