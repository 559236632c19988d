"""In-memory registry of tracked remote items.

This module provides:
- ItemRegistry: Thread-safe mapping from canonical remote path to TrackedItem

The registry is the single source of truth for "what do we know about this
path". The path monitor writes to it on every poll, the coordinator writes
transfer outcomes back, and the API/CLI read snapshots from it.

Writes are whole-item replacements (last writer wins, no merge). A monitor
refresh reads the previous item and stores its replacement under the same
lock as coordinator updates, so carried-over fields are never stale. Reads
return copies.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import TYPE_CHECKING, Any

from sporesync.remote.port import normalize_remote_path
from sporesync.sync.types import ItemStatus, TrackedItem

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)


class ItemRegistry:
    """Thread-safe registry of TrackedItems keyed by remote path.

    Multiple readers and writers may operate at once. A single lock
    serializes writes so that a monitor refresh and a coordinator status
    write never interleave on the same record. Readers get shallow copies
    (with their own children list), so mutating a returned item never
    changes the registry.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: dict[str, TrackedItem] = {}

    def upsert(self, item: TrackedItem) -> None:
        """Insert or replace the entry for the item's path.

        Args:
            item: The item to store. Its remote_path is normalized in place.
        """
        item.remote_path = normalize_remote_path(item.remote_path)
        with self._lock:
            self._items[item.remote_path] = item

    def get(self, path: str) -> TrackedItem | None:
        """Get the item for a path, or None if never observed."""
        with self._lock:
            item = self._items.get(normalize_remote_path(path))
            return _snapshot(item) if item is not None else None

    def contains(self, path: str) -> bool:
        """Check if a path is tracked."""
        with self._lock:
            return normalize_remote_path(path) in self._items

    def remove(self, path: str) -> TrackedItem | None:
        """Remove a path from the registry.

        Returns:
            The removed item, or None if the path was not tracked.
        """
        with self._lock:
            item = self._items.pop(normalize_remote_path(path), None)
        if item is not None:
            logger.debug("Removed %s from registry", item.remote_path)
        return item

    def update(self, path: str, **changes: Any) -> TrackedItem | None:
        """Atomically replace an item with a copy carrying the given changes.

        Args:
            path: Remote path of the item.
            **changes: TrackedItem fields to change.

        Returns:
            The new item, or None if the path is not tracked.
        """
        key = normalize_remote_path(path)
        with self._lock:
            current = self._items.get(key)
            if current is None:
                return None
            updated = dataclasses.replace(current, **changes)
            self._items[key] = updated
            return _snapshot(updated)

    def refresh(
        self,
        path: str,
        build: Callable[[TrackedItem | None], TrackedItem],
        parent: str | None = None,
    ) -> TrackedItem:
        """Replace an item with one built from its current state.

        The read of the current item, the build and the store happen under
        the write lock, so an update() from another thread lands either
        before the build (and is carried over) or after the store.

        Args:
            path: Remote path of the item.
            build: Called with the current item (or None) and returning the
                replacement.
            parent: Path of a tracked directory to attach the new item to as
                a child.

        Returns:
            A copy of the stored item.
        """
        key = normalize_remote_path(path)
        with self._lock:
            item = build(self._items.get(key))
            item.remote_path = key
            self._items[key] = item
            if parent is not None:
                parent_item = self._items.get(normalize_remote_path(parent))
                if parent_item is not None:
                    parent_item.children.append(item)
            return _snapshot(item)

    def download_candidates(self) -> list[TrackedItem]:
        """Get files that exist remotely but have not landed locally.

        Returns:
            Non-directory items with local_size == 0 and remote_size > 0,
            oldest last_modified first.
        """
        with self._lock:
            candidates = [_snapshot(i) for i in self._items.values() if i.is_download_candidate]
        return sorted(candidates, key=lambda i: i.last_modified)

    def items(self) -> list[TrackedItem]:
        """Get a snapshot of every tracked item, sorted by path."""
        with self._lock:
            return sorted((_snapshot(i) for i in self._items.values()), key=lambda i: i.remote_path)

    def by_status(self, status: ItemStatus) -> list[TrackedItem]:
        """Get tracked items in the given status, sorted by path."""
        return [i for i in self.items() if i.status == status]

    def paths(self) -> set[str]:
        """Get the set of tracked paths."""
        with self._lock:
            return set(self._items)

    def clear(self) -> None:
        """Forget every tracked item."""
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.contains(path)

    def __iter__(self) -> Iterator[TrackedItem]:
        """Iterate over a snapshot of tracked items."""
        return iter(self.items())

    def stats(self) -> dict[str, int]:
        """Get registry statistics.

        Returns:
            Dictionary with the total, directory count, and counts per status.
        """
        with self._lock:
            values = list(self._items.values())
        stats: dict[str, int] = {
            "total": len(values),
            "directories": sum(1 for i in values if i.is_directory),
        }
        for status in ItemStatus:
            stats[status.value] = sum(1 for i in values if i.status == status)
        return stats


def _snapshot(item: TrackedItem) -> TrackedItem:
    return dataclasses.replace(item, children=list(item.children))
