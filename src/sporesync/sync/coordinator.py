"""Queue drain loop that executes sync operations.

This module provides:
- CoordinatorState: Lifecycle states of the drain loop
- CoordinatorStats: Counters for processed entries
- SyncCoordinator: Background thread that dequeues entries, runs the
  transfer executor, and writes outcomes back to the item registry

Operation handling:
    | Operation      | Action                                   | Item status after         |
    |----------------|------------------------------------------|---------------------------|
    | CREATE, UPDATE | Download file or directory to its        | SYNCED (file) / TRACKED   |
    |                | destination path                         | (dir); SYNC_ERROR on fail |
    | DELETE         | Delete the remote file                   | DELETED                   |
    | RENAME         | Not supported, entry fails               | unchanged                 |

CREATE and UPDATE entries for an item that vanished remotely (DELETED) fail
without a transfer. A cancelled download restores the item's previous status;
the partial copy it leaves makes the next poll mark the item MODIFIED and
enqueue it again.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING

from sporesync.core.hashing import compute_file_hash
from sporesync.sync.types import (
    CancellationToken,
    ItemStatus,
    QueueEntry,
    QueueStatus,
    SyncOperation,
    TrackedItem,
    TransferResult,
    utcnow,
)

if TYPE_CHECKING:
    from sporesync.sync.queue import SyncQueue
    from sporesync.sync.registry import ItemRegistry
    from sporesync.sync.transfer import TransferExecutor
    from sporesync.sync.types import ProgressSink

logger = logging.getLogger(__name__)


class CoordinatorState(Enum):
    """State of the coordinator."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()


@dataclass
class CoordinatorStats:
    """Statistics for the coordinator."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to a JSON-serializable dict."""
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "errors": self.errors,
        }


class SyncCoordinator:
    """Drains the sync queue in a background thread.

    Usage:
        coordinator = SyncCoordinator(queue, registry, executor)
        coordinator.start()
        # ... entries are processed as the monitor enqueues them ...
        coordinator.stop()
    """

    def __init__(
        self,
        queue: SyncQueue,
        registry: ItemRegistry,
        executor: TransferExecutor,
        idle_interval: float = 0.5,
        progress: ProgressSink | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            queue: Queue to drain.
            registry: Registry holding the tracked items.
            executor: Executor that performs the transfers.
            idle_interval: Seconds to wait when the queue is empty.
            progress: Progress sink for transfers.
        """
        self._queue = queue
        self._registry = registry
        self._executor = executor
        self._idle_interval = idle_interval
        self._progress = progress

        self._state = CoordinatorState.STOPPED
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self._current: QueueEntry | None = None
        self._current_token: CancellationToken | None = None
        self._stats = CoordinatorStats()

    @property
    def state(self) -> CoordinatorState:
        """Get current coordinator state."""
        return self._state

    @property
    def stats(self) -> CoordinatorStats:
        """Get coordinator statistics."""
        return self._stats

    @property
    def current(self) -> QueueEntry | None:
        """Get the entry being processed, if any."""
        return self._current

    def start(self) -> None:
        """Start the drain thread."""
        with self._lock:
            if self._state != CoordinatorState.STOPPED:
                logger.warning("Coordinator already running")
                return

            self._state = CoordinatorState.RUNNING
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                name="SyncCoordinator",
                daemon=True,
            )
            self._thread.start()
            logger.info("Coordinator started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the drain thread, cancelling the in-flight transfer.

        Args:
            timeout: Maximum time to wait for the thread to stop.
        """
        with self._lock:
            if self._state == CoordinatorState.STOPPED:
                return

            self._state = CoordinatorState.STOPPING
            self._stop_event.set()
            if self._current_token is not None:
                self._current_token.cancel()
            logger.info("Coordinator stopping...")

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

        with self._lock:
            self._state = CoordinatorState.STOPPED
            self._thread = None
            logger.info("Coordinator stopped")

    def cancel_current(self) -> bool:
        """Cancel the in-flight transfer.

        Returns:
            True if a transfer was running.
        """
        with self._lock:
            if self._current_token is None:
                return False
            self._current_token.cancel()
            return True

    def _run(self) -> None:
        """Main processing loop."""
        logger.debug("Coordinator processing loop started")

        while not self._stop_event.is_set():
            try:
                if self.process_next() is None:
                    self._stop_event.wait(self._idle_interval)
            except Exception:
                logger.exception("Error processing queue entry")
                self._stats.errors += 1

        logger.debug("Coordinator processing loop ended")

    def process_next(self) -> QueueEntry | None:
        """Dequeue and process one entry synchronously.

        Returns:
            The processed entry (with its final status), or None if the
            queue was empty.
        """
        entry = self._queue.dequeue()
        if entry is None:
            return None

        self._stats.processed += 1
        item = self._registry.get(entry.path)
        if item is None:
            logger.warning("Skipping %s: path is not tracked", entry.path)
            self._fail(entry, "Path is not tracked")
            return entry

        if entry.operation in (SyncOperation.CREATE, SyncOperation.UPDATE):
            if item.status == ItemStatus.DELETED:
                logger.info("Skipping %s: remote item was deleted", entry.path)
                self._fail(entry, "Remote item was deleted")
                return entry
            self._download(entry, item)
        elif entry.operation == SyncOperation.DELETE:
            self._delete(entry)
        else:
            logger.warning("Unsupported operation %s for %s", entry.operation.name, entry.path)
            self._fail(entry, f"Unsupported operation: {entry.operation.value}")
        return entry

    def _download(self, entry: QueueEntry, item: TrackedItem) -> None:
        """Download an item to its destination and record the outcome."""
        previous_status = item.status
        token = CancellationToken()
        with self._lock:
            self._current = entry
            self._current_token = token
            if self._stop_event.is_set():
                token.cancel()

        entry.status = QueueStatus.IN_PROGRESS
        self._registry.update(item.remote_path, status=ItemStatus.SYNCING)
        logger.info("Syncing %s -> %s", item.remote_path, item.destination_path)

        try:
            if item.is_directory:
                result = self._executor.download_directory(
                    item.remote_path, item.destination_path, self._progress, token
                )
            else:
                result = self._executor.download_file(
                    item.remote_path, item.destination_path, self._progress, token
                )
        finally:
            with self._lock:
                self._current = None
                self._current_token = None

        if result.cancelled:
            self._registry.update(item.remote_path, status=previous_status)
            entry.status = QueueStatus.CANCELLED
            entry.error = result.error
            self._stats.cancelled += 1
            logger.info("Sync of %s cancelled", item.remote_path)
            return

        if not result.success:
            self._mark_sync_error(entry, item, result)
            return

        try:
            self._record_success(item)
        except OSError as e:
            result = TransferResult(outcome=result.outcome, error=f"Failed to inspect local copy: {e}")
            self._mark_sync_error(entry, item, result)
            return

        entry.status = QueueStatus.COMPLETED
        self._stats.succeeded += 1
        logger.info(
            "Synced %s (%d file(s), %d bytes)",
            item.remote_path,
            result.files_transferred,
            result.bytes_transferred,
        )

    def _record_success(self, item: TrackedItem) -> None:
        """Write the post-download state back to the registry."""
        if item.is_directory:
            self._registry.update(
                item.remote_path, status=ItemStatus.TRACKED, last_synced=utcnow()
            )
            return

        destination = Path(item.destination_path)
        self._registry.update(
            item.remote_path,
            status=ItemStatus.SYNCED,
            local_size=destination.stat().st_size,
            file_hash=compute_file_hash(destination),
            last_synced=utcnow(),
        )

    def _mark_sync_error(self, entry: QueueEntry, item: TrackedItem, result: TransferResult) -> None:
        self._registry.update(item.remote_path, status=ItemStatus.SYNC_ERROR)
        logger.warning("Sync of %s failed: %s", item.remote_path, result.error)
        self._fail(entry, result.error)

    def _delete(self, entry: QueueEntry) -> None:
        """Delete a remote file and mark the item DELETED."""
        entry.status = QueueStatus.IN_PROGRESS
        result = self._executor.delete_remote(entry.path)
        if not result.success:
            self._registry.update(entry.path, status=ItemStatus.SYNC_ERROR)
            logger.warning("Delete of %s failed: %s", entry.path, result.error)
            self._fail(entry, result.error)
            return

        self._registry.update(entry.path, status=ItemStatus.DELETED)
        entry.status = QueueStatus.COMPLETED
        self._stats.succeeded += 1
        logger.info("Deleted remote file %s", entry.path)

    def _fail(self, entry: QueueEntry, error: str | None) -> None:
        entry.status = QueueStatus.FAILED
        entry.error = error
        self._stats.failed += 1
