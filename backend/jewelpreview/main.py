"""Jewel Preview API: FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map PreviewPipelineError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, clients, and (optionally) both worker loops live in the lifespan

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Worker loops in-process by default; set RUN_WORKERS_IN_API=false and run
      `python -m jewelpreview.run_worker` to host them separately
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jewelpreview.api.error_handlers import register_error_handlers
from jewelpreview.api.routes import health, preview_jobs, upgrade
from jewelpreview.config import get_settings
from jewelpreview.infrastructure.observability import setup_logging
from jewelpreview.runtime import pipeline_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    async with pipeline_runtime(settings, settings.run_workers_in_api) as runtime:
        app.state.vision_client = runtime.vision
        app.state.storage = runtime.storage
        logger.info("Jewel Preview API started")
        yield
        logger.info("Jewel Preview API shutting down")


app = FastAPI(
    title="Jewel Preview API", version="0.1.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(preview_jobs.router)
app.include_router(upgrade.router)

register_error_handlers(app)
