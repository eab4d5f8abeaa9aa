"""Stuck-Job Reaper: force-fails jobs orphaned in Processing by a crashed or restarted worker.

Invariants:
    - Only Processing jobs of the given kinds with updated_at < now - threshold qualify
    - Each qualifying job becomes Failed with a timeout message and updated_at = now
    - The whole batch is persisted in one commit; no qualifying jobs ⇒ no commit at all
    - Never raises: a persistence failure is logged and the next tick retries

Design Decisions:
    - Runs at the start of every worker tick, before new work is fetched
    - Threshold > job timeout is enforced by Settings, so a live job is never reaped
"""

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from jewelpreview.core.domain_types import JobKind
from jewelpreview.core.job_state import ensure_utc, is_stuck, mark_failed, stuck_message
from jewelpreview.services.job_queries import fetch_stuck_jobs

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


async def reap_stuck_jobs(
    session_scope: SessionScope,
    kinds: tuple[JobKind, ...],
    threshold: timedelta,
    now: datetime,
) -> int:
    """Fail stuck jobs; returns how many were recovered (0 on failure)."""
    try:
        async with session_scope() as db:
            candidates = await fetch_stuck_jobs(db, kinds, now - threshold)
            stuck = [job for job in candidates if is_stuck(job, now, threshold)]
            if not stuck:
                return 0
            for job in stuck:
                stuck_for = now - ensure_utc(job.updated_at)
                mark_failed(job, now, stuck_message(stuck_for))
                logger.warning(
                    f"Recovered stuck job (stuck for {stuck_for.total_seconds() / 60:.1f} min)",
                    extra={"job_id": job.id, "job_kind": job.kind},
                )
            await db.commit()
            return len(stuck)
    except Exception as e:
        logger.error(
            f"Stuck-job recovery failed, will retry next tick: {e}", exc_info=True,
        )
        return 0
