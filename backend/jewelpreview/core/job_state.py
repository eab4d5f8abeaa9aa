"""Job State Machine: pure transitions for preview jobs.

Invariants:
    - Status moves only Pending → Processing → {Completed, Failed}; terminal states never change
    - primary_url / frame_urls are set iff Completed; error_message is set iff Failed
    - MultiFrame completion requires exactly the requested number of frames,
      and primary_url is always frame_urls[0]
    - All functions are PURE: no IO, no async, no clock reads (now is an argument)

Design Decisions:
    - Raise InvalidTransitionError instead of returning error dicts: callers are the worker
      and reaper, which already route exceptions into logging (ADR: one error path)
    - ensure_utc normalizes naive datetimes read back from SQLite, which drops tzinfo
"""

from datetime import datetime, timedelta, timezone

from jewelpreview.core.domain_types import (
    ALLOWED_TRANSITIONS, JobKind, JobStatus,
)
from jewelpreview.core.errors import (
    ErrorContext, InvalidTransitionError, PreviewPipelineError,
)
from jewelpreview.core.repository_protocols import JobLike


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _transition(job: JobLike, target: JobStatus, now: datetime) -> None:
    current = JobStatus(job.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            current.value, target.value,
            ErrorContext(job_id=str(job.id), job_kind=job.kind),
        )
    job.status = target.value
    job.updated_at = now


def mark_processing(job: JobLike, now: datetime) -> None:
    """Pending → Processing. Stamps updated_at so the reaper can see in-flight work."""
    _transition(job, JobStatus.PROCESSING, now)


def requested_frame_count(job: JobLike, default: int = 12) -> int:
    return int((job.request_options or {}).get("frame_count", default))


def mark_completed(
    job: JobLike,
    now: datetime,
    primary_url: str | None = None,
    frame_urls: list[str] | None = None,
    expected_frames: int | None = None,
) -> None:
    """Processing → Completed with results shaped by kind.

    expected_frames is the count the caller actually rendered; when omitted it is
    read from request_options (default 12).
    """
    if JobKind(job.kind) == JobKind.MULTI_FRAME:
        expected = (
            expected_frames if expected_frames is not None
            else requested_frame_count(job)
        )
        if not frame_urls or len(frame_urls) != expected:
            got = len(frame_urls) if frame_urls else 0
            raise ValueError(
                f"Multi-frame job expects {expected} frames, got {got}",
            )
        _transition(job, JobStatus.COMPLETED, now)
        job.frame_urls = list(frame_urls)
        job.primary_url = frame_urls[0]
    else:
        if not primary_url:
            raise ValueError("Completed job requires a primary URL")
        _transition(job, JobStatus.COMPLETED, now)
        job.primary_url = primary_url
        job.frame_urls = None
    job.error_message = None


def mark_failed(job: JobLike, now: datetime, message: str) -> None:
    """Processing → Failed. Results are cleared so Failed never carries URLs."""
    _transition(job, JobStatus.FAILED, now)
    job.error_message = message
    job.primary_url = None
    job.frame_urls = None


def describe_failure(exc: BaseException) -> str:
    """Message stored on a failed job: error code for our errors, type name otherwise."""
    if isinstance(exc, PreviewPipelineError):
        return f"{exc.code}: {exc.message}"
    return f"{type(exc).__name__}: {exc}"


def stuck_message(stuck_for: timedelta) -> str:
    minutes = stuck_for.total_seconds() / 60
    return (
        f"Job timed out - processing took too long (stuck for {minutes:.1f} minutes). "
        "The image service may have been unresponsive. Please try again."
    )


def is_stuck(job: JobLike, now: datetime, threshold: timedelta) -> bool:
    return (
        JobStatus(job.status) == JobStatus.PROCESSING
        and ensure_utc(job.updated_at) < now - threshold
    )
