"""Preview Jobs: submit SingleImage / MultiFrame jobs and read their descriptors.

Invariants:
    - POST returns 202 with the Pending descriptor; rendering happens in the worker loop
    - GET applies the visibility rule: user-owned jobs are 404 to everyone else
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from jewelpreview.api.dependencies import get_app_settings, get_caller
from jewelpreview.config import Settings
from jewelpreview.core.domain_types import FAMILY_KINDS, JobFamily, Owner
from jewelpreview.infrastructure.database import get_db
from jewelpreview.schemas.preview_job import JobDescriptor, PreviewJobCreate
from jewelpreview.services.job_queries import get_visible_job
from jewelpreview.services.job_submission import JobSubmissionService

router = APIRouter(prefix="/api/v1/preview-jobs", tags=["preview-jobs"])


@router.post(
    "", response_model=JobDescriptor, status_code=status.HTTP_202_ACCEPTED,
)
async def submit_preview_job(
    body: PreviewJobCreate,
    caller: Owner = Depends(get_caller),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db),
):
    service = JobSubmissionService(
        db, settings.guest_free_preview_limit, settings.default_frame_count,
    )
    job = await service.submit_preview(
        body.kind, body.configuration_id, caller, body.frame_count,
    )
    return JobDescriptor.model_validate(job)


@router.get("/{job_id}", response_model=JobDescriptor)
async def get_preview_job(
    job_id: UUID,
    caller: Owner = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    job = await get_visible_job(db, job_id, caller, FAMILY_KINDS[JobFamily.PREVIEW])
    return JobDescriptor.model_validate(job)
