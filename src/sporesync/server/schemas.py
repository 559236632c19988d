"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from sporesync.remote.port import RemoteEntry
from sporesync.sync.monitor import PollResult
from sporesync.sync.types import (
    ItemStatus,
    QueueEntry,
    SyncOperation,
    TrackedItem,
    TransferResult,
)

# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    monitoring: bool


# === Sync schemas ===


class MonitoringResponse(BaseModel):
    """Response for start/stop monitoring."""

    monitoring: bool
    message: str


class StatusResponse(BaseModel):
    """Status snapshot of every component."""

    remote: str
    monitoring: bool
    monitor: dict[str, Any]
    coordinator: dict[str, Any]
    registry: dict[str, int]
    queue: dict[str, int]


class PollResponse(BaseModel):
    """Summary of one poll cycle."""

    items_seen: int
    new: int
    modified: int
    deleted: int
    enqueued: int
    completed: bool
    started_at: str
    duration: float


class TrackedItemResponse(BaseModel):
    """Tracked item in responses."""

    remote_path: str
    file_name: str
    destination_path: str
    remote_size: int
    local_size: int
    last_modified: str
    is_directory: bool
    status: ItemStatus
    file_hash: str | None
    file_extension: str | None
    created_at: str
    last_synced: str | None


class QueueEntryResponse(BaseModel):
    """Queued operation in responses."""

    path: str
    operation: SyncOperation
    status: str
    file_name: str
    destination_path: str
    size: int
    is_directory: bool
    enqueued_at: str
    error: str | None


class SyncFolderRequest(BaseModel):
    """Request body for queueing every file under a remote folder."""

    path: str | None = None


class SyncFolderResponse(BaseModel):
    """Response for sync-folder."""

    path: str
    added: int


class AddSyncRequest(BaseModel):
    """Request body for queueing one remote path."""

    path: str
    operation: SyncOperation | None = None


# === File schemas ===


class RemoteEntryResponse(BaseModel):
    """Remote directory entry in responses."""

    name: str
    full_path: str
    size: int
    last_modified: str
    is_directory: bool


class UploadRequest(BaseModel):
    """Request body for uploading a local file or directory."""

    local_path: str
    remote_path: str


class DownloadRequest(BaseModel):
    """Request body for downloading a remote file or directory.

    The local path defaults to the remote path mapped onto the local root.
    """

    remote_path: str
    local_path: str | None = None


class TransferResponse(BaseModel):
    """Outcome of a transfer."""

    outcome: str
    files_transferred: int
    bytes_transferred: int
    error: str | None


# === Converters ===


def item_to_response(item: TrackedItem) -> TrackedItemResponse:
    """Convert a TrackedItem to its response model."""
    return TrackedItemResponse(
        remote_path=item.remote_path,
        file_name=item.file_name,
        destination_path=item.destination_path,
        remote_size=item.remote_size,
        local_size=item.local_size,
        last_modified=item.last_modified.isoformat(),
        is_directory=item.is_directory,
        status=item.status,
        file_hash=item.file_hash,
        file_extension=item.file_extension,
        created_at=item.created_at.isoformat(),
        last_synced=item.last_synced.isoformat() if item.last_synced else None,
    )


def entry_to_response(entry: QueueEntry) -> QueueEntryResponse:
    """Convert a QueueEntry to its response model."""
    return QueueEntryResponse(
        path=entry.path,
        operation=entry.operation,
        status=entry.status.value,
        file_name=entry.file_name,
        destination_path=entry.destination_path,
        size=entry.size,
        is_directory=entry.is_directory,
        enqueued_at=entry.enqueued_at.isoformat(),
        error=entry.error,
    )


def remote_entry_to_response(entry: RemoteEntry) -> RemoteEntryResponse:
    """Convert a RemoteEntry to its response model."""
    return RemoteEntryResponse(
        name=entry.name,
        full_path=entry.full_path,
        size=entry.size,
        last_modified=entry.last_modified.isoformat(),
        is_directory=entry.is_directory,
    )


def poll_to_response(result: PollResult) -> PollResponse:
    """Convert a PollResult to its response model."""
    return PollResponse(**result.to_dict())


def transfer_to_response(result: TransferResult) -> TransferResponse:
    """Convert a TransferResult to its response model."""
    return TransferResponse(
        outcome=result.outcome.value,
        files_transferred=result.files_transferred,
        bytes_transferred=result.bytes_transferred,
        error=result.error,
    )
