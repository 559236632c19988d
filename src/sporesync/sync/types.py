"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, RemoteAccessError, RemoteNotFoundError, RemotePermissionError,
  TransferCancelledError: Exception classes
- ItemStatus, TrackedItem: Registry records
- SyncOperation, QueueStatus, QueueEntry: Queue records
- TransferDirection, TransferOutcome, TransferResult: Executor results
- FileProgress, DirectoryProgress, ProgressSink: Progress events
- CancellationToken: Explicit cancellation handle
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, auto

# Exceptions live in core.errors so the remote ports can raise them
from sporesync.core.errors import (  # noqa: F401
    RemoteAccessError,
    RemoteNotFoundError,
    RemotePermissionError,
    SyncError,
    TransferCancelledError,
)


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


# =============================================================================
# Cancellation
# =============================================================================


class CancellationToken:
    """Explicit cancellation handle passed into long-running operations.

    Operations check ``cancelled`` at their suspension points (after each
    chunk, after each child, before each directory listing). The token is
    one-shot: once cancelled it stays cancelled.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep until cancelled or the timeout expires.

        Returns:
            True if the token was cancelled during (or before) the wait.
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        """Raise TransferCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise TransferCancelledError("Operation cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


# =============================================================================
# Registry Types
# =============================================================================


class ItemStatus(str, Enum):
    """Lifecycle status of a tracked item."""

    TRACKED = "tracked"
    NEW = "new"
    MODIFIED = "modified"
    SYNCING = "syncing"
    SYNCED = "synced"
    SYNC_ERROR = "sync_error"
    DELETED = "deleted"


@dataclass
class TrackedItem:
    """The registry's record of one observed remote path.

    Attributes:
        remote_path: Canonical remote path, used as the registry key.
        file_name: Base name of the entry.
        destination_path: Local path the remote root maps onto.
        remote_size: Size on the remote host in bytes.
        local_size: Size of the local copy (0 if not materialized yet).
        last_modified: Remote modification time.
        is_directory: Whether the entry is a directory.
        status: Current lifecycle status.
        file_hash: SHA-256 of the local copy after a successful download.
        file_extension: Lower-case suffix without the dot, if any.
        children: Child items (directories only).
        created_at: First observation time.
        last_synced: Time of the last successful transfer.
    """

    remote_path: str
    file_name: str
    destination_path: str
    remote_size: int = 0
    local_size: int = 0
    last_modified: datetime = field(default_factory=utcnow)
    is_directory: bool = False
    status: ItemStatus = ItemStatus.TRACKED
    file_hash: str | None = None
    file_extension: str | None = None
    children: list[TrackedItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    last_synced: datetime | None = None

    @property
    def is_download_candidate(self) -> bool:
        """Check if the file exists remotely but has not landed locally."""
        return (
            not self.is_directory
            and self.local_size == 0
            and self.remote_size > 0
            and self.local_size != self.remote_size
        )

    @property
    def is_in_sync(self) -> bool:
        """Check if local and remote sizes agree (and are non-zero)."""
        return self.local_size == self.remote_size and self.remote_size > 0

    def to_dict(self, include_children: bool = False) -> dict[str, object]:
        """Convert to a JSON-serializable dict."""
        data: dict[str, object] = {
            "remote_path": self.remote_path,
            "file_name": self.file_name,
            "destination_path": self.destination_path,
            "remote_size": self.remote_size,
            "local_size": self.local_size,
            "last_modified": self.last_modified.isoformat(),
            "is_directory": self.is_directory,
            "status": self.status.value,
            "file_hash": self.file_hash,
            "file_extension": self.file_extension,
            "created_at": self.created_at.isoformat(),
            "last_synced": self.last_synced.isoformat() if self.last_synced else None,
        }
        if include_children:
            data["children"] = [c.to_dict(include_children=True) for c in self.children]
        return data

    def __repr__(self) -> str:
        kind = "dir" if self.is_directory else "file"
        return (
            f"TrackedItem({self.remote_path!r}, {kind}, "
            f"remote={self.remote_size}, local={self.local_size}, "
            f"status={self.status.name})"
        )


# =============================================================================
# Queue Types
# =============================================================================


class SyncOperation(str, Enum):
    """Kind of sync operation a queue entry asks for."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RENAME = "rename"


class QueueStatus(str, Enum):
    """Execution status of a queue entry."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class QueueEntry:
    """A pending or in-flight sync operation.

    The entry only references its TrackedItem by path; the item itself is
    looked up in the registry when the work executes.
    """

    path: str
    operation: SyncOperation
    status: QueueStatus = QueueStatus.PENDING
    file_name: str = ""
    destination_path: str = ""
    size: int = 0
    is_directory: bool = False
    enqueued_at: datetime = field(default_factory=utcnow)
    error: str | None = None

    @classmethod
    def from_item(
        cls,
        item: TrackedItem,
        operation: SyncOperation | None = None,
    ) -> QueueEntry:
        """Build an entry for a tracked item.

        When no operation is given it is inferred from the item status.
        """
        return cls(
            path=item.remote_path,
            operation=operation or operation_for_status(item.status),
            file_name=item.file_name,
            destination_path=item.destination_path,
            size=item.remote_size,
            is_directory=item.is_directory,
        )

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-serializable dict."""
        return {
            "path": self.path,
            "operation": self.operation.value,
            "status": self.status.value,
            "file_name": self.file_name,
            "destination_path": self.destination_path,
            "size": self.size,
            "is_directory": self.is_directory,
            "enqueued_at": self.enqueued_at.isoformat(),
            "error": self.error,
        }


def operation_for_status(status: ItemStatus) -> SyncOperation:
    """Infer the queue operation for an item in the given status."""
    if status in (ItemStatus.MODIFIED, ItemStatus.SYNC_ERROR):
        return SyncOperation.UPDATE
    if status == ItemStatus.DELETED:
        return SyncOperation.DELETE
    return SyncOperation.CREATE


# =============================================================================
# Transfer Types
# =============================================================================


class TransferDirection(Enum):
    """Direction of a transfer across the remote boundary."""

    UPLOAD = auto()  # local -> remote
    DOWNLOAD = auto()  # remote -> local


class TransferOutcome(str, Enum):
    """Outcome of a transfer operation."""

    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class TransferResult:
    """Result of a file or directory transfer.

    Attributes:
        outcome: Success, failure or cancellation.
        files_transferred: Files fully written before the operation ended.
        bytes_transferred: Bytes written across all files.
        error: Error message if failed.
    """

    outcome: TransferOutcome
    files_transferred: int = 0
    bytes_transferred: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if the transfer succeeded."""
        return self.outcome == TransferOutcome.SUCCESS

    @property
    def cancelled(self) -> bool:
        """Check if the transfer was cancelled."""
        return self.outcome == TransferOutcome.CANCELLED

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-serializable dict."""
        return {
            "outcome": self.outcome.value,
            "files_transferred": self.files_transferred,
            "bytes_transferred": self.bytes_transferred,
            "error": self.error,
        }


# =============================================================================
# Progress Types
# =============================================================================


@dataclass
class FileProgress:
    """Byte-level progress of a single file transfer."""

    file_name: str
    bytes_transferred: int
    total_bytes: int
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def percentage(self) -> float:
        """Get progress percentage (0 when the total is unknown or empty)."""
        if self.total_bytes <= 0:
            return 0.0
        return self.bytes_transferred / self.total_bytes * 100

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-serializable dict."""
        return {
            "type": "file_progress",
            "file_name": self.file_name,
            "bytes_transferred": self.bytes_transferred,
            "total_bytes": self.total_bytes,
            "percentage": self.percentage,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class DirectoryProgress:
    """Child-level progress of a directory transfer."""

    label: str
    items_processed: int
    items_total: int
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-serializable dict."""
        return {
            "type": "directory_progress",
            "label": self.label,
            "items_processed": self.items_processed,
            "items_total": self.items_total,
            "timestamp": self.timestamp.isoformat(),
        }


ProgressEvent = FileProgress | DirectoryProgress

# Type alias for progress callback
ProgressSink = Callable[[ProgressEvent], None]
