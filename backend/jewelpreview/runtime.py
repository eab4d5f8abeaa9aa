"""Pipeline Runtime: wires shared clients and worker loops for both entry points.

Invariants:
    - One httpx.AsyncClient per process, closed after the worker tasks have stopped
    - Workers use db_manager.session as their scope: one session per job
    - Shutdown order: stop loops (grace, then cancel) → close HTTP → dispose engine

Design Decisions:
    - Shared by the FastAPI lifespan and run_worker so both hosts build the same graph
      (ADR: one composition root)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

import httpx

from jewelpreview.config import Settings
from jewelpreview.infrastructure.database import DatabaseSessionManager, init_db
from jewelpreview.infrastructure.image_provider import (
    PreviewImageProvider, build_image_provider,
)
from jewelpreview.infrastructure.storage import S3StorageUploader
from jewelpreview.infrastructure.vision_client import VisionAnalysisClient
from jewelpreview.services.preview_worker import (
    build_workers, start_workers, stop_workers,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineRuntime:
    db: DatabaseSessionManager
    http: httpx.AsyncClient
    storage: S3StorageUploader
    provider: PreviewImageProvider
    vision: VisionAnalysisClient
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    tasks: list[asyncio.Task] = field(default_factory=list)


@asynccontextmanager
async def pipeline_runtime(
    settings: Settings, run_workers: bool,
) -> AsyncIterator[PipelineRuntime]:
    db = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    http = httpx.AsyncClient(follow_redirects=True)
    storage = S3StorageUploader.from_settings(settings)
    runtime = PipelineRuntime(
        db=db,
        http=http,
        storage=storage,
        provider=build_image_provider(settings, storage, http),
        vision=VisionAnalysisClient.from_settings(settings),
    )
    if run_workers:
        workers = build_workers(settings, db.session, runtime.provider)
        runtime.tasks = start_workers(workers, runtime.stop_event)
        logger.info(f"Started {len(runtime.tasks)} worker loop(s)")
    try:
        yield runtime
    finally:
        await stop_workers(
            runtime.tasks, runtime.stop_event, settings.worker_shutdown_grace_seconds,
        )
        await http.aclose()
        await db.dispose()
