"""Job Submission: validates a preview request, enforces guest quota, persists a Pending job.

Invariants:
    - A job is created only after every check passes; errors leave no row behind
    - Anonymous callers must carry a guest client id
    - Users may render only their own subjects; guests may render any existing subject
    - Guest quota counts Completed jobs of the same kind (limit <= 0 disables it)
    - Snapshot is best-effort: a failure is logged and the job is created without one

Design Decisions:
    - One service class, two entry points (preview / upgrade): shared persistence tail,
      kind-specific subject checks (ADR: ExMA max 4 methods per concern)
    - Snapshot errors swallowed here only: the worker rebuilds lazily on the degraded path
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from jewelpreview.core.domain_types import (
    FAMILY_KINDS, JobFamily, JobKind, JobStatus, MAX_FRAME_COUNT,
    MIN_FRAME_COUNT, Owner,
)
from jewelpreview.core.enforce_guest_quota import check_guest_quota, quota_applies
from jewelpreview.core.errors import (
    JobValidationError, SubjectAccessDeniedError, SubjectNotFoundError,
)
from jewelpreview.core.repository_protocols import SnapshotResolver
from jewelpreview.models.design_configuration import DesignConfiguration
from jewelpreview.models.preview_job import PreviewJob
from jewelpreview.models.upgrade_analysis import UpgradeAnalysis
from jewelpreview.services.job_queries import count_completed_guest_jobs
from jewelpreview.services.snapshot_builder import SqlSnapshotResolver

logger = logging.getLogger(__name__)

ANALYSIS_COMPLETED = "completed"


def parse_kind(kind: str, family: JobFamily) -> JobKind:
    """Recognized kind that belongs to the endpoint's family, else JobValidationError."""
    try:
        job_kind = JobKind(kind)
    except ValueError:
        job_kind = None
    if job_kind is None or job_kind not in FAMILY_KINDS[family]:
        allowed = ", ".join(k.value for k in FAMILY_KINDS[family])
        raise JobValidationError(
            f"Unknown job kind '{kind}'. Expected one of: {allowed}", "kind",
        )
    return job_kind


class JobSubmissionService:
    """Creates Pending preview jobs on behalf of users and guests."""

    def __init__(
        self,
        db: AsyncSession,
        guest_limit: int,
        default_frame_count: int = 12,
        snapshot_resolver: SnapshotResolver | None = None,
    ):
        self.db = db
        self.guest_limit = guest_limit
        self.default_frame_count = default_frame_count
        self.snapshot_resolver = snapshot_resolver or SqlSnapshotResolver(db)

    async def submit_preview(
        self,
        kind: str,
        configuration_id: UUID,
        owner: Owner,
        frame_count: int | None = None,
    ) -> PreviewJob:
        job_kind = parse_kind(kind, JobFamily.PREVIEW)
        require_caller(owner)
        options: dict = {}
        if job_kind == JobKind.MULTI_FRAME:
            options["frame_count"] = self._validate_frame_count(frame_count)

        config = await self.db.get(DesignConfiguration, configuration_id)
        if config is None:
            raise SubjectNotFoundError("Configuration", str(configuration_id))
        if owner.user_id is not None and config.user_id != owner.user_id:
            raise SubjectAccessDeniedError("Configuration", str(configuration_id))

        await self._enforce_quota(owner, job_kind)
        return await self._create(job_kind, configuration_id, owner, options)

    async def submit_upgrade_preview(
        self,
        analysis_id: UUID,
        owner: Owner,
        kept_original: bool = False,
        applied_suggestion_ids: list[str] | None = None,
    ) -> PreviewJob:
        require_caller(owner)
        analysis = await self.db.get(UpgradeAnalysis, analysis_id)
        if analysis is None:
            raise SubjectNotFoundError("Analysis", str(analysis_id))
        if analysis.user_id is not None and analysis.user_id != owner.user_id:
            raise SubjectAccessDeniedError("Analysis", str(analysis_id))
        if analysis.status != ANALYSIS_COMPLETED:
            raise JobValidationError(
                "Analysis did not complete; upload a new photo to preview upgrades",
                "analysis_id",
            )

        await self._enforce_quota(owner, JobKind.UPGRADE_PREVIEW)
        options = {
            "kept_original": kept_original,
            "applied_suggestion_ids": [] if kept_original else list(
                applied_suggestion_ids or [],
            ),
        }
        return await self._create(
            JobKind.UPGRADE_PREVIEW, analysis_id, owner, options,
        )

    def _validate_frame_count(self, frame_count: int | None) -> int:
        count = frame_count if frame_count is not None else self.default_frame_count
        if not MIN_FRAME_COUNT <= count <= MAX_FRAME_COUNT:
            raise JobValidationError(
                f"Frame count must be between {MIN_FRAME_COUNT} and {MAX_FRAME_COUNT}",
                "frame_count",
            )
        return count

    async def _enforce_quota(self, owner: Owner, kind: JobKind) -> None:
        if not quota_applies(owner, self.guest_limit):
            return
        completed = await count_completed_guest_jobs(
            self.db, owner.guest_client_id, kind,
        )
        check_guest_quota(owner, completed, self.guest_limit, kind.value)

    async def _create(
        self, kind: JobKind, subject_id: UUID, owner: Owner, options: dict,
    ) -> PreviewJob:
        try:
            snapshot = await self.snapshot_resolver.build(kind.value, subject_id, options)
        except Exception as e:
            logger.warning(
                f"Snapshot build failed for {kind.value} subject {subject_id}: {e}",
                extra={"job_kind": kind.value},
            )
            snapshot = None

        job = PreviewJob(
            kind=kind.value,
            status=JobStatus.PENDING.value,
            subject_id=subject_id,
            user_id=owner.user_id,
            guest_client_id=owner.guest_client_id,
            snapshot=snapshot,
            request_options=options,
        )
        self.db.add(job)
        await self.db.commit()
        logger.info(
            f"Preview job submitted for subject {subject_id}",
            extra={
                "job_id": job.id, "job_kind": kind.value,
                "guest_client_id": owner.guest_client_id,
            },
        )
        return job


def require_caller(owner: Owner) -> None:
    """Anonymous callers must identify as a guest."""
    if owner.user_id is None and not owner.guest_client_id:
        raise JobValidationError(
            "Guest client id is required for anonymous requests", "guest_client_id",
        )
