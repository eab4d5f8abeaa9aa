"""Guest Quota Enforcement: caps completed free previews per anonymous client.

Invariants:
    - All functions are PURE: the completed count is fetched by the caller
    - limit <= 0 disables the check entirely
    - Only guest owners are limited; users and system jobs never are

Design Decisions:
    - Raise QuotaExceededError (not a dict): submission is a request path,
      the global handler turns it into a 429 envelope
"""

from jewelpreview.core.domain_types import Owner
from jewelpreview.core.errors import ErrorContext, QuotaExceededError


def quota_applies(owner: Owner, limit: int) -> bool:
    return owner.is_guest and limit > 0


def check_guest_quota(
    owner: Owner, completed_count: int, limit: int, kind: str | None = None,
) -> None:
    """Raise when the guest already has `limit` completed jobs of this kind."""
    if not quota_applies(owner, limit):
        return
    if completed_count >= limit:
        raise QuotaExceededError(
            owner.guest_client_id, limit, ErrorContext(job_kind=kind),
        )
