"""Liveness route for load balancers and the CLI status command."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sporesync import __version__
from sporesync.server.api.deps import get_service
from sporesync.server.schemas import HealthResponse
from sporesync.sync.service import SyncService

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(service: SyncService = Depends(get_service)) -> HealthResponse:
    """Report that the server is up, with its version and monitoring flag."""
    return HealthResponse(status="ok", version=__version__, monitoring=service.is_monitoring)
