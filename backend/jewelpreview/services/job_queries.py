"""Job Queries: the read side of the job store shared by worker, reaper, submission, and routes.

Invariants:
    - Pending batches are FIFO: created_at ascending, ties broken by id
    - Queries are scoped to the caller's kinds; loops never see each other's jobs
    - A user-owned job is invisible (404) to anyone but its owner

Design Decisions:
    - Plain SELECTs without FOR UPDATE / SKIP LOCKED: single active worker per kind family
      (ADR: claim semantics deferred, see DESIGN.md open question)
    - fetch_pending_job_ids returns ids, not rows: each job is re-read in its own unit of work
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelpreview.core.domain_types import JobKind, JobStatus, Owner
from jewelpreview.core.errors import ResourceNotFoundError
from jewelpreview.models.preview_job import PreviewJob


def _kind_values(kinds: tuple[JobKind, ...]) -> list[str]:
    return [k.value for k in kinds]


async def fetch_pending_job_ids(
    db: AsyncSession, kinds: tuple[JobKind, ...], limit: int,
) -> list[UUID]:
    result = await db.execute(
        select(PreviewJob.id)
        .where(
            PreviewJob.status == JobStatus.PENDING.value,
            PreviewJob.kind.in_(_kind_values(kinds)),
        )
        .order_by(PreviewJob.created_at, PreviewJob.id)
        .limit(limit),
    )
    return list(result.scalars().all())


async def fetch_stuck_jobs(
    db: AsyncSession, kinds: tuple[JobKind, ...], cutoff: datetime,
) -> list[PreviewJob]:
    """Processing jobs whose last update is older than cutoff."""
    result = await db.execute(
        select(PreviewJob).where(
            PreviewJob.status == JobStatus.PROCESSING.value,
            PreviewJob.kind.in_(_kind_values(kinds)),
            PreviewJob.updated_at < cutoff,
        ),
    )
    return list(result.scalars().all())


async def count_completed_guest_jobs(
    db: AsyncSession, guest_client_id: str, kind: JobKind,
) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(PreviewJob)
        .where(
            PreviewJob.guest_client_id == guest_client_id,
            PreviewJob.user_id.is_(None),
            PreviewJob.kind == kind.value,
            PreviewJob.status == JobStatus.COMPLETED.value,
        ),
    )
    return int(result.scalar_one())


async def get_visible_job(
    db: AsyncSession, job_id: UUID, caller: Owner, kinds: tuple[JobKind, ...],
) -> PreviewJob:
    """Job by id if the caller may see it; guest and system jobs are visible by id."""
    job = await db.get(PreviewJob, job_id)
    if job is None or job.kind not in _kind_values(kinds):
        raise ResourceNotFoundError("PreviewJob", str(job_id))
    if job.user_id is not None and job.user_id != caller.user_id:
        raise ResourceNotFoundError("PreviewJob", str(job_id))
    return job
