"""Preview Worker Loop: polls Pending jobs of one kind family and drives them to a terminal state.

Invariants:
    - One tick at a time per worker: reap stuck jobs, fetch up to batch_size oldest Pending,
      process them strictly sequentially with processing_delay between jobs
    - Processing is persisted (with a fresh updated_at) before the provider is called
    - Provider calls run under asyncio.timeout(job_timeout) nested in the task's own
      cancellation; whichever fires first ends the call
    - Every failure of a job is recorded as Failed; a failure to record it is only logged
    - A tick failure is logged and the loop continues; CancelledError always propagates
    - Each job runs in its own session scope, released on every exit path

Design Decisions:
    - Stop is cooperative (asyncio.Event) with task cancellation as the hard fallback:
      in-flight jobs finish or hit their own timeout before the loop exits
    - Worker depends on a snapshot-resolver factory and a prompt builder, not on the
      subject tables (ADR: opaque snapshot port)
    - Jobs cancelled mid-flight by shutdown stay Processing; the reaper fails them
      on a later tick (ADR: never write from a cancelled task)
    - No row claim: one active worker per family (see DESIGN.md open question)
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from jewelpreview.config import Settings
from jewelpreview.core.build_prompt import build_prompt
from jewelpreview.core.domain_types import FAMILY_KINDS, JobFamily, JobKind, JobStatus
from jewelpreview.core.errors import (
    ErrorContext, GenerationTimeoutError, PreviewPipelineError,
    UnsupportedJobKindError,
)
from jewelpreview.core.frame_prompts import storage_prefix
from jewelpreview.core.job_state import (
    describe_failure, mark_completed, mark_failed, mark_processing,
    requested_frame_count,
)
from jewelpreview.core.repository_protocols import ImageProvider, SnapshotResolver
from jewelpreview.models.preview_job import PreviewJob
from jewelpreview.services.job_queries import fetch_pending_job_ids
from jewelpreview.services.snapshot_builder import SqlSnapshotResolver
from jewelpreview.services.stuck_job_reaper import SessionScope, reap_stuck_jobs

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WorkerSettings:
    family: JobFamily
    poll_interval: float
    processing_delay: float
    batch_size: int
    job_timeout: float
    stuck_threshold: float
    heartbeat_interval: float = 30.0
    default_frame_count: int = 12

    @classmethod
    def for_family(cls, settings: Settings, family: JobFamily) -> "WorkerSettings":
        prefix = family.value
        return cls(
            family=family,
            poll_interval=getattr(settings, f"{prefix}_poll_interval_seconds"),
            processing_delay=getattr(settings, f"{prefix}_processing_delay_seconds"),
            batch_size=getattr(settings, f"{prefix}_batch_size"),
            job_timeout=getattr(settings, f"{prefix}_job_timeout_seconds"),
            stuck_threshold=getattr(settings, f"{prefix}_stuck_threshold_seconds"),
            heartbeat_interval=settings.worker_heartbeat_seconds,
            default_frame_count=settings.default_frame_count,
        )


class PreviewWorker:
    """Background loop for one job family (preview or upgrade-preview)."""

    def __init__(
        self,
        config: WorkerSettings,
        session_scope: SessionScope,
        provider: ImageProvider,
        snapshot_resolver_factory: Callable[[AsyncSession], SnapshotResolver] = SqlSnapshotResolver,
        prompt_builder: Callable[[dict], str] = build_prompt,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], object] = asyncio.sleep,
    ):
        self.config = config
        self._session_scope = session_scope
        self._provider = provider
        self._resolver_factory = snapshot_resolver_factory
        self._prompt_builder = prompt_builder
        self._clock = clock
        self._sleep = sleep
        self.processed_total = 0
        self._is_ticking = False

    @property
    def name(self) -> str:
        return f"{self.config.family.value}-worker"

    @property
    def kinds(self) -> tuple[JobKind, ...]:
        return FAMILY_KINDS[self.config.family]

    async def run(self, stop_event: asyncio.Event) -> None:
        """Tick every poll_interval until stop_event is set."""
        logger.info(
            f"{self.name} started (poll every {self.config.poll_interval}s, "
            f"batch {self.config.batch_size})",
            extra={"worker": self.name},
        )
        last_heartbeat = time.monotonic()
        while not stop_event.is_set():
            try:
                await self.tick(stop_event)
            except Exception as e:
                logger.error(
                    f"{self.name} tick failed: {e}", exc_info=True,
                    extra={"worker": self.name},
                )
            if time.monotonic() - last_heartbeat >= self.config.heartbeat_interval:
                logger.info(
                    f"{self.name} heartbeat",
                    extra={"worker": self.name, "processed_total": self.processed_total},
                )
                last_heartbeat = time.monotonic()
            await self._wait(stop_event, self.config.poll_interval)
        logger.info(
            f"{self.name} stopped",
            extra={"worker": self.name, "processed_total": self.processed_total},
        )

    async def tick(self, stop_event: asyncio.Event | None = None) -> int:
        """One iteration: reap, fetch a FIFO batch, process sequentially. Returns jobs processed."""
        if self._is_ticking:
            logger.warning(f"{self.name} tick already running, skipping")
            return 0
        self._is_ticking = True
        try:
            await reap_stuck_jobs(
                self._session_scope, self.kinds,
                timedelta(seconds=self.config.stuck_threshold), self._clock(),
            )
            async with self._session_scope() as db:
                job_ids = await fetch_pending_job_ids(
                    db, self.kinds, self.config.batch_size,
                )
            if not job_ids:
                return 0

            logger.info(
                f"{self.name} found {len(job_ids)} pending job(s)",
                extra={"worker": self.name, "batch_size": len(job_ids)},
            )
            processed = 0
            for index, job_id in enumerate(job_ids):
                if stop_event is not None and stop_event.is_set():
                    logger.info(f"{self.name} stopping mid-batch")
                    break
                if index:
                    await self._sleep(self.config.processing_delay)
                await self.process_job(job_id)
                processed += 1
            self.processed_total += processed
            return processed
        finally:
            self._is_ticking = False

    async def process_job(self, job_id: UUID) -> None:
        """Drive one job to Completed or Failed. Never raises except on cancellation."""
        try:
            async with self._session_scope() as db:
                job = await db.get(PreviewJob, job_id)
                if job is None or job.status != JobStatus.PENDING.value:
                    logger.info(
                        "Job no longer pending, skipping", extra={"job_id": job_id},
                    )
                    return
                mark_processing(job, self._clock())
                await db.commit()
                logger.info(
                    "Processing job", extra={"job_id": job.id, "job_kind": job.kind},
                )

                prompt = await self._resolve_prompt(db, job)
                async with asyncio.timeout(self.config.job_timeout):
                    primary_url, frame_urls = await self._generate(job, prompt)

                mark_completed(
                    job, self._clock(), primary_url, frame_urls,
                    expected_frames=requested_frame_count(
                        job, self.config.default_frame_count,
                    ),
                )
                await db.commit()
                logger.info(
                    "Job completed", extra={"job_id": job.id, "job_kind": job.kind},
                )
        except TimeoutError:
            await self._record_failure(job_id, GenerationTimeoutError(
                f"Image generation timed out after {self.config.job_timeout:.0f} seconds",
                ErrorContext(job_id=str(job_id)),
            ))
        except Exception as e:
            await self._record_failure(job_id, e)

    async def _resolve_prompt(self, db: AsyncSession, job: PreviewJob) -> str:
        snapshot = job.snapshot
        if not snapshot:
            logger.warning(
                "Job has no snapshot, rebuilding from subject (degraded path)",
                extra={"job_id": job.id, "job_kind": job.kind},
            )
            resolver = self._resolver_factory(db)
            snapshot = await resolver.build(
                job.kind, job.subject_id, job.request_options or {},
            )
            job.snapshot = snapshot
        prompt = self._prompt_builder(snapshot)
        job.prompt = prompt
        job.updated_at = self._clock()
        await db.commit()
        return prompt

    async def _generate(
        self, job: PreviewJob, prompt: str,
    ) -> tuple[str | None, list[str] | None]:
        try:
            kind = JobKind(job.kind)
        except ValueError:
            raise UnsupportedJobKindError(job.kind)
        prefix = storage_prefix(kind, job.subject_id, job.id)
        if kind in (JobKind.SINGLE_IMAGE, JobKind.UPGRADE_PREVIEW):
            return await self._provider.generate_single(prompt, prefix), None
        if kind == JobKind.MULTI_FRAME:
            frame_count = requested_frame_count(job, self.config.default_frame_count)
            return None, await self._provider.generate_multi_frame(
                prompt, frame_count, prefix,
            )
        raise UnsupportedJobKindError(job.kind)

    async def _record_failure(self, job_id: UUID, error: Exception) -> None:
        message = describe_failure(error)
        logger.error(
            f"Job failed: {message}",
            exc_info=not isinstance(error, PreviewPipelineError),
            extra={
                "job_id": job_id,
                "error_code": getattr(error, "code", type(error).__name__),
            },
        )
        try:
            async with self._session_scope() as db:
                job = await db.get(PreviewJob, job_id)
                if job is None:
                    return
                mark_failed(job, self._clock(), message)
                await db.commit()
        except Exception as e:
            logger.error(
                f"Could not persist failed state: {e}",
                exc_info=True, extra={"job_id": job_id},
            )

    async def _wait(self, stop_event: asyncio.Event, seconds: float) -> None:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        except TimeoutError:
            pass


# ─── Hosting ─────────────────────────────────────────────────────

def build_workers(
    settings: Settings, session_scope: SessionScope, provider: ImageProvider,
) -> list[PreviewWorker]:
    """One worker per family: preview and upgrade-preview never share a loop."""
    return [
        PreviewWorker(WorkerSettings.for_family(settings, family), session_scope, provider)
        for family in JobFamily
    ]


def start_workers(
    workers: list[PreviewWorker], stop_event: asyncio.Event,
) -> list[asyncio.Task]:
    return [
        asyncio.create_task(worker.run(stop_event), name=worker.name)
        for worker in workers
    ]


async def stop_workers(
    tasks: list[asyncio.Task], stop_event: asyncio.Event, grace_seconds: float,
) -> None:
    """Signal stop, wait up to grace_seconds, then cancel what is left."""
    stop_event.set()
    if not tasks:
        return
    _, pending = await asyncio.wait(tasks, timeout=grace_seconds)
    for task in pending:
        logger.warning(f"{task.get_name()} did not stop in time, cancelling")
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
