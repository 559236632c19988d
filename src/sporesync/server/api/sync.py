"""Sync control API routes: monitoring, registry, and queue."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from sporesync.remote.port import normalize_remote_path
from sporesync.server.api.deps import get_hub, get_service, remote_errors
from sporesync.server.schemas import (
    AddSyncRequest,
    MonitoringResponse,
    PollResponse,
    QueueEntryResponse,
    StatusResponse,
    SyncFolderRequest,
    SyncFolderResponse,
    TrackedItemResponse,
    entry_to_response,
    item_to_response,
    poll_to_response,
)
from sporesync.server.ws import ProgressHub
from sporesync.sync.service import SyncService
from sporesync.sync.types import ItemStatus

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/status", response_model=StatusResponse)
def get_status(service: SyncService = Depends(get_service)) -> StatusResponse:
    """Get monitor state, counters, and registry/queue statistics."""
    return StatusResponse(**service.status())


@router.post("/start-monitoring", response_model=MonitoringResponse)
def start_monitoring(service: SyncService = Depends(get_service)) -> MonitoringResponse:
    """Start the path monitor and the queue drain."""
    if service.is_monitoring:
        return MonitoringResponse(monitoring=True, message="Monitoring already running")
    service.start()
    return MonitoringResponse(
        monitoring=True,
        message=f"Monitoring started for {service.remote_root}",
    )


@router.post("/stop-monitoring", response_model=MonitoringResponse)
def stop_monitoring(service: SyncService = Depends(get_service)) -> MonitoringResponse:
    """Stop the path monitor and the queue drain."""
    service.stop()
    return MonitoringResponse(monitoring=False, message="Monitoring stopped")


@router.post("/poll", response_model=PollResponse)
def poll_now(service: SyncService = Depends(get_service)) -> PollResponse:
    """Run one poll cycle now."""
    with remote_errors():
        result = service.poll_now()
    return poll_to_response(result)


@router.get("/items", response_model=list[TrackedItemResponse])
def list_items(
    service: SyncService = Depends(get_service),
    status: ItemStatus | None = None,
) -> list[TrackedItemResponse]:
    """List tracked items, optionally filtered by status."""
    items = service.registry.by_status(status) if status else service.registry.items()
    return [item_to_response(i) for i in items]


@router.get("/candidates", response_model=list[TrackedItemResponse])
def list_candidates(service: SyncService = Depends(get_service)) -> list[TrackedItemResponse]:
    """List download candidates, oldest change first."""
    return [item_to_response(i) for i in service.registry.download_candidates()]


@router.get("/queue", response_model=list[QueueEntryResponse])
def list_queue(service: SyncService = Depends(get_service)) -> list[QueueEntryResponse]:
    """List queued operations in FIFO order."""
    return [entry_to_response(e) for e in service.queue.entries()]


@router.post("/sync-folder", response_model=SyncFolderResponse)
def sync_folder(
    request: SyncFolderRequest,
    service: SyncService = Depends(get_service),
) -> SyncFolderResponse:
    """Queue every file under a remote folder that is not queued yet."""
    folder = normalize_remote_path(request.path or service.remote_root)
    with remote_errors():
        added = service.sync_folder(folder)
    return SyncFolderResponse(path=folder, added=added)


@router.post("/add-sync", response_model=QueueEntryResponse)
def add_sync(
    request: AddSyncRequest,
    service: SyncService = Depends(get_service),
) -> QueueEntryResponse:
    """Queue one remote path."""
    with remote_errors():
        entry = service.enqueue_path(request.path, request.operation)
    return entry_to_response(entry)


@router.get("/progress", response_model=list[dict[str, Any]])
def recent_progress(hub: ProgressHub = Depends(get_hub)) -> list[dict[str, Any]]:
    """Get the most recent progress messages, oldest first."""
    return hub.recent()
