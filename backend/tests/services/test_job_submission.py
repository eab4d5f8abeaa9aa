"""Job Submission: verifies validation, ownership, quota, and snapshot capture.

Invariants:
    - Rejected submissions leave no job row behind
    - The (C+1)-th guest submission is refused once C completed jobs exist
    - A snapshot failure still creates the job (snapshot=None)
"""

from uuid import UUID, uuid4

import pytest
from sqlalchemy import func, select

from jewelpreview.core.domain_types import Owner
from jewelpreview.core.errors import (
    JobValidationError, QuotaExceededError, SubjectAccessDeniedError,
    SubjectNotFoundError,
)
from jewelpreview.models.preview_job import PreviewJob
from jewelpreview.models.upgrade_analysis import UpgradeAnalysis
from jewelpreview.services.job_submission import JobSubmissionService

from tests.services.fakes import OWNER_USER_ID

GUEST = Owner(guest_client_id="guest-1")
OWNER = Owner(user_id=UUID(OWNER_USER_ID))


async def _job_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(PreviewJob))).scalar_one()


async def _seed_completed(db, guest: str, kind: str, subject_id, n: int):
    for _ in range(n):
        db.add(PreviewJob(
            kind=kind, status="completed", subject_id=subject_id,
            guest_client_id=guest, primary_url="https://x/img.png",
        ))
    await db.commit()


async def test_submit_single_image_creates_pending_job(test_db, seed_configuration):
    service = JobSubmissionService(test_db, guest_limit=5)

    job = await service.submit_preview("single_image", seed_configuration.id, GUEST)

    assert job.status == "pending"
    assert job.kind == "single_image"
    assert job.guest_client_id == "guest-1"
    assert job.snapshot["subject_type"] == "design_configuration"
    assert job.snapshot["category"] == "Ring"


async def test_multi_frame_records_default_frame_count(test_db, seed_configuration):
    service = JobSubmissionService(test_db, guest_limit=5, default_frame_count=12)

    job = await service.submit_preview("multi_frame", seed_configuration.id, OWNER)

    assert job.request_options == {"frame_count": 12}


@pytest.mark.parametrize("frame_count", [3, 37])
async def test_multi_frame_rejects_out_of_range_count(
    test_db, seed_configuration, frame_count,
):
    service = JobSubmissionService(test_db, guest_limit=5)

    with pytest.raises(JobValidationError) as exc_info:
        await service.submit_preview(
            "multi_frame", seed_configuration.id, OWNER, frame_count,
        )
    assert exc_info.value.field == "frame_count"
    assert await _job_count(test_db) == 0


async def test_unknown_kind_rejected(test_db, seed_configuration):
    service = JobSubmissionService(test_db, guest_limit=5)
    with pytest.raises(JobValidationError) as exc_info:
        await service.submit_preview("hologram", seed_configuration.id, GUEST)
    assert exc_info.value.field == "kind"


async def test_upgrade_kind_rejected_on_preview_endpoint(test_db, seed_configuration):
    service = JobSubmissionService(test_db, guest_limit=5)
    with pytest.raises(JobValidationError):
        await service.submit_preview("upgrade_preview", seed_configuration.id, GUEST)


async def test_anonymous_without_guest_id_rejected(test_db, seed_configuration):
    service = JobSubmissionService(test_db, guest_limit=5)
    with pytest.raises(JobValidationError) as exc_info:
        await service.submit_preview("single_image", seed_configuration.id, Owner())
    assert exc_info.value.field == "guest_client_id"


async def test_missing_configuration_is_404(test_db):
    service = JobSubmissionService(test_db, guest_limit=5)
    with pytest.raises(SubjectNotFoundError) as exc_info:
        await service.submit_preview("single_image", uuid4(), GUEST)
    assert exc_info.value.http_status == 404


async def test_other_users_configuration_is_403(test_db, seed_configuration):
    service = JobSubmissionService(test_db, guest_limit=5)
    with pytest.raises(SubjectAccessDeniedError):
        await service.submit_preview(
            "single_image", seed_configuration.id, Owner(user_id=uuid4()),
        )


async def test_guest_quota_rejects_next_submission(test_db, seed_configuration):
    await _seed_completed(test_db, "guest-1", "single_image", seed_configuration.id, 2)
    service = JobSubmissionService(test_db, guest_limit=2)

    with pytest.raises(QuotaExceededError) as exc_info:
        await service.submit_preview("single_image", seed_configuration.id, GUEST)

    assert exc_info.value.limit == 2
    assert await _job_count(test_db) == 2


async def test_guest_quota_counts_per_kind_and_completed_only(test_db, seed_configuration):
    await _seed_completed(test_db, "guest-1", "multi_frame", seed_configuration.id, 3)
    test_db.add(PreviewJob(
        kind="single_image", status="failed", subject_id=seed_configuration.id,
        guest_client_id="guest-1", error_message="x",
    ))
    await test_db.commit()
    service = JobSubmissionService(test_db, guest_limit=1)

    job = await service.submit_preview("single_image", seed_configuration.id, GUEST)

    assert job.status == "pending"


async def test_disabled_quota_never_rejects(test_db, seed_configuration):
    await _seed_completed(test_db, "guest-1", "single_image", seed_configuration.id, 10)
    service = JobSubmissionService(test_db, guest_limit=0)

    job = await service.submit_preview("single_image", seed_configuration.id, GUEST)

    assert job.status == "pending"


async def test_snapshot_failure_still_creates_job(test_db, seed_configuration):
    class _BrokenResolver:
        async def build(self, kind, subject_id, options):
            raise RuntimeError("snapshot store down")

    service = JobSubmissionService(
        test_db, guest_limit=5, snapshot_resolver=_BrokenResolver(),
    )

    job = await service.submit_preview("single_image", seed_configuration.id, GUEST)

    assert job.status == "pending"
    assert job.snapshot is None


async def test_upgrade_preview_snapshot_keeps_known_suggestions(test_db, seed_analysis):
    service = JobSubmissionService(test_db, guest_limit=5)

    job = await service.submit_upgrade_preview(
        seed_analysis.id, GUEST, applied_suggestion_ids=["halo", "made-up"],
    )

    assert job.kind == "upgrade_preview"
    assert job.request_options["applied_suggestion_ids"] == ["halo", "made-up"]
    applied = job.snapshot["applied_suggestions"]
    assert [s["suggestion_id"] for s in applied] == ["halo"]
    assert job.snapshot["metal"] == "yellow_gold"


async def test_upgrade_preview_kept_original_drops_suggestions(test_db, seed_analysis):
    service = JobSubmissionService(test_db, guest_limit=5)

    job = await service.submit_upgrade_preview(
        seed_analysis.id, GUEST, kept_original=True, applied_suggestion_ids=["halo"],
    )

    assert job.request_options["applied_suggestion_ids"] == []
    assert job.snapshot["kept_original"] is True


async def test_upgrade_preview_requires_completed_analysis(test_db):
    analysis = UpgradeAnalysis(
        guest_client_id="guest-1", original_image_url="https://img/x.jpg",
        status="unavailable", analysis={}, error_message="down",
    )
    test_db.add(analysis)
    await test_db.commit()
    service = JobSubmissionService(test_db, guest_limit=5)

    with pytest.raises(JobValidationError) as exc_info:
        await service.submit_upgrade_preview(analysis.id, GUEST)
    assert exc_info.value.field == "analysis_id"


async def test_upgrade_preview_missing_analysis(test_db):
    service = JobSubmissionService(test_db, guest_limit=5)
    with pytest.raises(SubjectNotFoundError):
        await service.submit_upgrade_preview(uuid4(), GUEST)
