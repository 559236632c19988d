"""Work queue of pending sync operations.

This module provides:
- SyncQueue: Thread-safe FIFO of QueueEntry with an opt-in deduplicating
  enqueue

Entries only reference TrackedItems by path; the coordinator looks the item
up in the registry when it executes the work. Queue membership is
best-effort bookkeeping: looking up a path that already left the queue (or
was never enqueued) returns a "not found" result, never an error.

Deduplication considers only the queue's current contents. An item that
was dequeued and processed can be enqueued again later.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import TYPE_CHECKING, Any

from sporesync.remote.port import normalize_remote_path
from sporesync.sync.types import (
    QueueEntry,
    QueueStatus,
    SyncOperation,
    TrackedItem,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


class SyncQueue:
    """Thread-safe FIFO queue of sync operations."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: deque[QueueEntry] = deque()

    def enqueue(
        self,
        item: TrackedItem,
        operation: SyncOperation | None = None,
    ) -> QueueEntry:
        """Append an entry for an item unconditionally.

        Args:
            item: The tracked item to act on.
            operation: Operation kind (inferred from item status if None).

        Returns:
            The queued entry.
        """
        entry = QueueEntry.from_item(item, operation)
        entry.path = normalize_remote_path(entry.path)
        with self._lock:
            self._entries.append(entry)
            size = len(self._entries)
        logger.debug("Queued %s %s (queue size: %d)", entry.operation.name, entry.path, size)
        return entry

    def enqueue_unique(
        self,
        items: Iterable[TrackedItem],
        operation: SyncOperation | None = None,
    ) -> int:
        """Append entries only for paths not already queued.

        Duplicates inside the batch are skipped too.

        Args:
            items: Tracked items to add.
            operation: Operation kind (inferred per item if None).

        Returns:
            Number of entries actually added.
        """
        added = 0
        with self._lock:
            queued = {e.path for e in self._entries}
            for item in items:
                entry = QueueEntry.from_item(item, operation)
                entry.path = normalize_remote_path(entry.path)
                if entry.path in queued:
                    continue
                self._entries.append(entry)
                queued.add(entry.path)
                added += 1
        if added:
            logger.info("Queued %d new sync operation(s)", added)
        return added

    def dequeue(self) -> QueueEntry | None:
        """Pop the oldest entry.

        Returns:
            The entry, or None if the queue is empty. Never blocks.
        """
        with self._lock:
            if not self._entries:
                return None
            entry = self._entries.popleft()
            size = len(self._entries)
        logger.debug("Dequeued %s %s (queue size: %d)", entry.operation.name, entry.path, size)
        return entry

    def update_status(self, path: str, status: QueueStatus, **fields: Any) -> bool:
        """Update a still-queued entry in place.

        Args:
            path: Remote path of the entry.
            status: New execution status.
            **fields: Other QueueEntry fields to set (e.g. error=...).

        Returns:
            True if an entry was updated, False if the path is not queued.
        """
        key = normalize_remote_path(path)
        with self._lock:
            for entry in self._entries:
                if entry.path == key:
                    entry.status = status
                    for name, value in fields.items():
                        if not hasattr(entry, name):
                            raise AttributeError(f"QueueEntry has no field {name!r}")
                        setattr(entry, name, value)
                    return True
        return False

    def pending_by_status(self, status: QueueStatus) -> list[QueueEntry]:
        """Get queued entries in the given status, in queue order."""
        with self._lock:
            return [e for e in self._entries if e.status == status]

    def get_entry(self, path: str) -> QueueEntry | None:
        """Get the first queued entry for a path without removing it."""
        key = normalize_remote_path(path)
        with self._lock:
            for entry in self._entries:
                if entry.path == key:
                    return entry
        return None

    def contains(self, path: str) -> bool:
        """Check if a path has a queued entry."""
        return self.get_entry(path) is not None

    def remove(self, path: str) -> int:
        """Remove every queued entry for a path.

        Returns:
            Number of entries removed.
        """
        key = normalize_remote_path(path)
        with self._lock:
            before = len(self._entries)
            self._entries = deque(e for e in self._entries if e.path != key)
            removed = before - len(self._entries)
        if removed:
            logger.debug("Removed %d queued entr(ies) for %s", removed, key)
        return removed

    def clear(self) -> int:
        """Remove all entries from the queue.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cleared %d entries from queue", count)
        return count

    def entries(self) -> list[QueueEntry]:
        """Get a snapshot of queued entries in FIFO order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __bool__(self) -> bool:
        with self._lock:
            return bool(self._entries)

    def __iter__(self) -> Iterator[QueueEntry]:
        """Iterate over a snapshot in FIFO order (does not remove entries)."""
        return iter(self.entries())

    def stats(self) -> dict[str, int]:
        """Get queue statistics.

        Returns:
            Dictionary with the total and counts per operation.
        """
        with self._lock:
            entries = list(self._entries)
        stats: dict[str, int] = {"total": len(entries)}
        for op in SyncOperation:
            stats[op.value] = sum(1 for e in entries if e.operation == op)
        return stats
