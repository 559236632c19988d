"""FastAPI application for the SporeSync control server.

This module creates and configures the FastAPI application with:
- REST API for monitoring control, registry/queue inspection, and transfers
- WebSocket push channel for transfer progress

Usage:
    uvicorn sporesync.server.app:app_factory --factory --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from sporesync import __version__
from sporesync.server.api.router import router as api_router
from sporesync.server.ws import ProgressHub
from sporesync.server.ws import router as ws_router
from sporesync.sync.service import SyncService

# Configuration from environment variables with defaults
LOG_PATH = Path(os.environ.get("SPORESYNC_LOG_PATH", "sporesync.log"))

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path | None, level: int = logging.INFO) -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file (None for stdout only).
        level: Level for the sporesync logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    # Root logger for sporesync
    root_logger = logging.getLogger("sporesync")
    root_logger.setLevel(level)
    # Handlers live here; don't repeat records through the CLI's root handler
    root_logger.propagate = False

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(
    service: SyncService,
    hub: ProgressHub | None = None,
    start_monitoring: bool = False,
    close_service: bool = False,
) -> FastAPI:
    """Create the FastAPI application around a sync service.

    Args:
        service: Sync service the routes operate on.
        hub: Progress hub (a new one is created if None).
        start_monitoring: Start the monitor and queue drain on startup.
        close_service: Close the service (and its remote session) on shutdown.

    Returns:
        Configured FastAPI application.
    """
    progress_hub = hub or ProgressHub()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        progress_hub.bind_loop(asyncio.get_running_loop())
        remove_listener = service.add_progress_listener(progress_hub.publish)

        logger.info("=" * 60)
        logger.info("SporeSync Server Starting")
        logger.info("=" * 60)
        logger.info("  Remote:      %s", service.status()["remote"])
        logger.info("  Remote root: %s", service.remote_root)
        logger.info("  Local root:  %s", service.local_root)
        logger.info("=" * 60)

        if start_monitoring:
            service.start()

        yield

        # Shutdown
        logger.info("SporeSync Server shutting down")
        remove_listener()
        if close_service:
            service.close()
        else:
            service.stop()

    application = FastAPI(
        title="SporeSync Server",
        description="Remote directory mirroring control API",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.service = service
    application.state.hub = progress_hub

    application.include_router(api_router)
    application.include_router(ws_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode.

    Reads the config file named by SPORESYNC_CONFIG (default
    ~/.sporesync/config.json) plus SPORESYNC_* overrides.
    """
    from sporesync.cli.config import get_config_file
    from sporesync.core.config import load_settings

    setup_logging(LOG_PATH)
    config_file = Path(os.environ.get("SPORESYNC_CONFIG", str(get_config_file())))
    service = SyncService.from_settings(load_settings(config_file))
    return create_app(service, start_monitoring=True, close_service=True)
