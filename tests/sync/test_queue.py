"""Tests for the sync queue."""

from __future__ import annotations

import threading

import pytest

from sporesync.sync.queue import SyncQueue
from sporesync.sync.types import ItemStatus, QueueStatus, SyncOperation, TrackedItem


def _item(path: str, status: ItemStatus = ItemStatus.NEW) -> TrackedItem:
    return TrackedItem(
        remote_path=path,
        file_name=path.rsplit("/", 1)[-1],
        destination_path="/mirror" + path,
        remote_size=10,
        status=status,
    )


class TestSyncQueue:
    """Tests for SyncQueue."""

    def test_fifo_order(self) -> None:
        """Entries should come out in insertion order."""
        queue = SyncQueue()
        queue.enqueue(_item("/data/a.txt"))
        queue.enqueue(_item("/data/b.txt"))
        queue.enqueue(_item("/data/c.txt"))

        assert [queue.dequeue().path for _ in range(3)] == [  # type: ignore[union-attr]
            "/data/a.txt",
            "/data/b.txt",
            "/data/c.txt",
        ]

    def test_dequeue_empty_returns_none(self) -> None:
        """dequeue() should not block on an empty queue."""
        queue = SyncQueue()
        assert queue.dequeue() is None
        assert not queue

    def test_enqueue_infers_operation(self) -> None:
        """The operation defaults from the item status."""
        queue = SyncQueue()
        assert queue.enqueue(_item("/data/a", ItemStatus.NEW)).operation == SyncOperation.CREATE
        assert queue.enqueue(_item("/data/b", ItemStatus.MODIFIED)).operation == SyncOperation.UPDATE
        assert (
            queue.enqueue(_item("/data/c"), SyncOperation.DELETE).operation == SyncOperation.DELETE
        )

    def test_enqueue_allows_duplicates(self) -> None:
        """Plain enqueue() does not deduplicate."""
        queue = SyncQueue()
        queue.enqueue(_item("/data/a.txt"))
        queue.enqueue(_item("/data/a.txt"))
        assert len(queue) == 2

    def test_enqueue_unique_is_idempotent(self) -> None:
        """Repeating the same batch adds nothing the second time."""
        queue = SyncQueue()
        batch = [_item("/data/a.txt"), _item("/data/b.txt")]

        assert queue.enqueue_unique(batch) == 2
        assert queue.enqueue_unique(batch) == 0
        assert [e.path for e in queue.entries()] == ["/data/a.txt", "/data/b.txt"]

    def test_enqueue_unique_dedups_within_batch(self) -> None:
        """Duplicates inside one batch are added once."""
        queue = SyncQueue()
        added = queue.enqueue_unique([_item("/data/a.txt"), _item("/data//a.txt")])
        assert added == 1
        assert len(queue) == 1

    def test_enqueue_unique_after_dequeue(self) -> None:
        """Only current contents count; a processed path may be queued again."""
        queue = SyncQueue()
        queue.enqueue_unique([_item("/data/a.txt")])
        queue.dequeue()
        assert queue.enqueue_unique([_item("/data/a.txt")]) == 1

    def test_update_status(self) -> None:
        """Should update a queued entry in place."""
        queue = SyncQueue()
        queue.enqueue(_item("/data/a.txt"))

        assert queue.update_status("/data/a.txt", QueueStatus.FAILED, error="boom")
        entry = queue.get_entry("/data/a.txt")
        assert entry is not None
        assert entry.status == QueueStatus.FAILED
        assert entry.error == "boom"
        assert queue.pending_by_status(QueueStatus.FAILED) == [entry]

    def test_update_status_unknown_path(self) -> None:
        """Unknown paths should report False, not raise."""
        assert SyncQueue().update_status("/data/nope", QueueStatus.COMPLETED) is False

    def test_update_status_unknown_field(self) -> None:
        """Unknown entry fields should be rejected."""
        queue = SyncQueue()
        queue.enqueue(_item("/data/a.txt"))
        with pytest.raises(AttributeError):
            queue.update_status("/data/a.txt", QueueStatus.FAILED, reason="x")

    def test_remove_and_clear(self) -> None:
        """remove() drops every entry for a path; clear() drops all."""
        queue = SyncQueue()
        queue.enqueue(_item("/data/a.txt"))
        queue.enqueue(_item("/data/a.txt"))
        queue.enqueue(_item("/data/b.txt"))

        assert queue.remove("/data/a.txt") == 2
        assert not queue.contains("/data/a.txt")
        assert queue.clear() == 1
        assert len(queue) == 0

    def test_stats(self) -> None:
        """stats() should count per operation."""
        queue = SyncQueue()
        queue.enqueue(_item("/data/a.txt"))
        queue.enqueue(_item("/data/b.txt", ItemStatus.MODIFIED))

        stats = queue.stats()
        assert stats["total"] == 2
        assert stats["create"] == 1
        assert stats["update"] == 1
        assert stats["delete"] == 0

    def test_concurrent_enqueue_unique(self) -> None:
        """Concurrent batches of the same paths should add each path once."""
        queue = SyncQueue()
        batch = [_item(f"/data/f{i}.txt") for i in range(100)]

        threads = [threading.Thread(target=queue.enqueue_unique, args=(batch,)) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(queue) == 100
