"""FastAPI dependencies for API routes."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator

from fastapi import HTTPException, Request, status

from sporesync.core.config import ConfigError
from sporesync.core.errors import (
    RemoteAccessError,
    RemoteNotFoundError,
    RemotePermissionError,
)
from sporesync.server.ws import ProgressHub
from sporesync.sync.service import SyncService


def get_service(request: Request) -> SyncService:
    """Get the sync service from app state."""
    service: SyncService = request.app.state.service
    return service


def get_hub(request: Request) -> ProgressHub:
    """Get the progress hub from app state."""
    hub: ProgressHub = request.app.state.hub
    return hub


@contextlib.contextmanager
def remote_errors() -> Iterator[None]:
    """Map sync-core errors raised inside a route to HTTP errors."""
    try:
        yield
    except RemoteNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except RemotePermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
    except RemoteAccessError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    except (ConfigError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
