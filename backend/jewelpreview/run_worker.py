"""Standalone Worker: runs the preview and upgrade-preview loops without the HTTP API.

Usage:
    python -m jewelpreview.run_worker

Invariants:
    - SIGINT / SIGTERM set the shutdown event; loops finish their current job
      (bounded by the shutdown grace period) before the process exits
    - Same composition root as the API lifespan (runtime.pipeline_runtime)
"""

import asyncio
import logging
import signal

from jewelpreview.config import get_settings
from jewelpreview.infrastructure.observability import setup_logging
from jewelpreview.runtime import pipeline_runtime

logger = logging.getLogger(__name__)


async def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, shutdown_event.set)

    logger.info(
        f"Starting standalone worker (provider={settings.image_provider}, "
        f"preview poll {settings.preview_poll_interval_seconds}s, "
        f"upgrade poll {settings.upgrade_poll_interval_seconds}s)",
    )
    async with pipeline_runtime(settings, run_workers=True):
        await shutdown_event.wait()
        logger.info("Shutdown signal received, stopping worker loops")
    logger.info("Worker stopped")


if __name__ == "__main__":
    asyncio.run(main())
