"""Upgrade Flow: analyze an uploaded photo, then submit and poll UpgradePreview jobs.

Invariants:
    - POST /analyses always returns 201 with a stored row; an unavailable analysis is
      a successful request whose status is "unavailable"
    - Upgrade preview jobs are only visible through /upgrade/preview-jobs
    - POST /uploads stores the photo before analyzing it; a rejected file stores nothing
    - /analyses/recent is declared before /analyses/{id} so "recent" never parses as an id

Design Decisions:
    - Analysis runs inline in the request: one vision call, bounded by its own retries
      and timeout (ADR: no job table for analyses)
"""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from jewelpreview.api.dependencies import (
    get_app_settings, get_caller, get_storage, get_vision_client,
)
from jewelpreview.config import Settings
from jewelpreview.core.domain_types import FAMILY_KINDS, JobFamily, Owner
from jewelpreview.infrastructure.database import get_db
from jewelpreview.infrastructure.storage import S3StorageUploader
from jewelpreview.infrastructure.vision_client import VisionAnalysisClient
from jewelpreview.schemas.preview_job import (
    AnalysisCreate, AnalysisResponse, JobDescriptor, UpgradePreviewJobCreate,
)
from jewelpreview.services.analysis_service import (
    MAX_UPLOAD_BYTES, RECENT_DEFAULT, RECENT_MAX, create_upgrade_analysis,
    get_visible_analysis, list_recent_analyses, upload_and_analyze,
)
from jewelpreview.services.job_queries import get_visible_job
from jewelpreview.services.job_submission import JobSubmissionService

router = APIRouter(prefix="/api/v1/upgrade", tags=["upgrade"])


@router.post(
    "/analyses", response_model=AnalysisResponse,
    status_code=status.HTTP_201_CREATED,
)
async def analyze_photo(
    body: AnalysisCreate,
    caller: Owner = Depends(get_caller),
    vision: VisionAnalysisClient = Depends(get_vision_client),
    db: AsyncSession = Depends(get_db),
):
    analysis = await create_upgrade_analysis(db, vision, body.image_url, caller)
    return AnalysisResponse.model_validate(analysis)


@router.post(
    "/uploads", response_model=AnalysisResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_photo(
    file: UploadFile = File(...),
    caller: Owner = Depends(get_caller),
    storage: S3StorageUploader = Depends(get_storage),
    vision: VisionAnalysisClient = Depends(get_vision_client),
    db: AsyncSession = Depends(get_db),
):
    data = await file.read(MAX_UPLOAD_BYTES + 1)
    analysis = await upload_and_analyze(
        db, storage, vision, data, file.filename, file.content_type, caller,
    )
    return AnalysisResponse.model_validate(analysis)


@router.get("/analyses/recent", response_model=list[AnalysisResponse])
async def get_recent_analyses(
    take: int = Query(RECENT_DEFAULT, ge=1, le=RECENT_MAX),
    caller: Owner = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    analyses = await list_recent_analyses(db, caller, take)
    return [AnalysisResponse.model_validate(a) for a in analyses]


@router.get("/analyses/{analysis_id}", response_model=AnalysisResponse)
async def get_analysis(
    analysis_id: UUID,
    caller: Owner = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    analysis = await get_visible_analysis(db, analysis_id, caller)
    return AnalysisResponse.model_validate(analysis)


@router.post(
    "/preview-jobs", response_model=JobDescriptor,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_upgrade_preview_job(
    body: UpgradePreviewJobCreate,
    caller: Owner = Depends(get_caller),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db),
):
    service = JobSubmissionService(
        db, settings.guest_free_preview_limit, settings.default_frame_count,
    )
    job = await service.submit_upgrade_preview(
        body.analysis_id, caller, body.kept_original, body.applied_suggestion_ids,
    )
    return JobDescriptor.model_validate(job)


@router.get("/preview-jobs/{job_id}", response_model=JobDescriptor)
async def get_upgrade_preview_job(
    job_id: UUID,
    caller: Owner = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    job = await get_visible_job(db, job_id, caller, FAMILY_KINDS[JobFamily.UPGRADE])
    return JobDescriptor.model_validate(job)
