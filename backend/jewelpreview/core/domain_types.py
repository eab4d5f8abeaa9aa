"""Domain Types: rich types that replace bare primitives across the codebase.

Invariants:
    - JobId, SubjectId, UserId wrap UUIDs; GuestClientId wraps the opaque guest string
    - All valid job states and kinds encoded as Enums (no raw string matching)
    - ALLOWED_TRANSITIONS is the single source of truth for the job state machine
    - Owner is exactly one of user / guest, or neither (system-originated)

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and DB columns without custom encoders
    - JobFamily groups kinds per worker loop: two loops, never sharing a kind
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

JobId = NewType("JobId", UUID)
SubjectId = NewType("SubjectId", UUID)
UserId = NewType("UserId", UUID)
GuestClientId = NewType("GuestClientId", str)


# ─── Enums ───────────────────────────────────────────────────────

class JobKind(str, Enum):
    """What a job renders. Maps to DB `kind` column."""
    SINGLE_IMAGE = "single_image"
    MULTI_FRAME = "multi_frame"
    UPGRADE_PREVIEW = "upgrade_preview"


class JobStatus(str, Enum):
    """Job lifecycle states. Maps to DB `status` column."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobFamily(str, Enum):
    """Worker loop partition. Each family is drained by its own loop."""
    PREVIEW = "preview"
    UPGRADE = "upgrade"


FAMILY_KINDS: dict[JobFamily, tuple[JobKind, ...]] = {
    JobFamily.PREVIEW: (JobKind.SINGLE_IMAGE, JobKind.MULTI_FRAME),
    JobFamily.UPGRADE: (JobKind.UPGRADE_PREVIEW,),
}

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


# ─── Value Types ─────────────────────────────────────────────────

MIN_FRAME_COUNT = 4
MAX_FRAME_COUNT = 36


@dataclass(frozen=True)
class Owner:
    """Who submitted a job. Both None means system-originated."""
    user_id: UserId | None = None
    guest_client_id: GuestClientId | None = None

    def __post_init__(self):
        if self.user_id is not None and self.guest_client_id is not None:
            raise ValueError("Owner is either a user or a guest, not both")

    @property
    def is_guest(self) -> bool:
        return self.user_id is None and self.guest_client_id is not None
