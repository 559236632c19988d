"""Tests for the item registry."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

from sporesync.sync.registry import ItemRegistry
from sporesync.sync.types import ItemStatus, TrackedItem

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


def _file(path: str, remote_size: int = 10, local_size: int = 0, minutes: int = 0, **kwargs: object) -> TrackedItem:
    return TrackedItem(
        remote_path=path,
        file_name=path.rsplit("/", 1)[-1],
        destination_path="/mirror" + path,
        remote_size=remote_size,
        local_size=local_size,
        last_modified=BASE_TIME + timedelta(minutes=minutes),
        **kwargs,  # type: ignore[arg-type]
    )


class TestItemRegistry:
    """Tests for ItemRegistry."""

    def test_upsert_and_get(self) -> None:
        """Should store items under their normalized path."""
        registry = ItemRegistry()
        registry.upsert(_file("/data//a.txt"))

        item = registry.get("/data/a.txt")
        assert item is not None
        assert item.remote_path == "/data/a.txt"
        assert registry.contains("/data/a.txt/")
        assert "/data/a.txt" in registry
        assert len(registry) == 1

    def test_get_unknown(self) -> None:
        """Unknown paths should return None."""
        assert ItemRegistry().get("/data/missing") is None

    def test_upsert_replaces(self) -> None:
        """A second upsert for a path replaces the first (one item per path)."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/a.txt", remote_size=10))
        registry.upsert(_file("/data/a.txt", remote_size=20))

        assert len(registry) == 1
        assert registry.get("/data/a.txt").remote_size == 20  # type: ignore[union-attr]

    def test_update(self) -> None:
        """update() should replace fields atomically and return the new item."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/a.txt"))

        updated = registry.update("/data/a.txt", status=ItemStatus.SYNCING)
        assert updated is not None
        assert updated.status == ItemStatus.SYNCING
        assert registry.get("/data/a.txt").status == ItemStatus.SYNCING  # type: ignore[union-attr]

    def test_update_unknown(self) -> None:
        """update() on an unknown path should return None."""
        assert ItemRegistry().update("/data/nope", status=ItemStatus.SYNCED) is None

    def test_remove(self) -> None:
        """remove() should return the removed item."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/a.txt"))
        removed = registry.remove("/data/a.txt")
        assert removed is not None
        assert registry.remove("/data/a.txt") is None
        assert len(registry) == 0

    def test_download_candidates_filter_and_order(self) -> None:
        """Candidates are non-empty, not-yet-local files, oldest first."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/newer.txt", minutes=10))
        registry.upsert(_file("/data/older.txt", minutes=1))
        registry.upsert(_file("/data/partial.txt", local_size=5))
        registry.upsert(_file("/data/done.txt", local_size=10))
        registry.upsert(_file("/data/empty.txt", remote_size=0))
        registry.upsert(_file("/data/dir", remote_size=0, is_directory=True))

        candidates = registry.download_candidates()

        assert [c.remote_path for c in candidates] == ["/data/older.txt", "/data/newer.txt"]

    def test_items_sorted_and_by_status(self) -> None:
        """items() is sorted by path; by_status filters."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/b.txt", status=ItemStatus.NEW))
        registry.upsert(_file("/data/a.txt", status=ItemStatus.SYNCED))

        assert [i.remote_path for i in registry.items()] == ["/data/a.txt", "/data/b.txt"]
        assert [i.remote_path for i in registry.by_status(ItemStatus.NEW)] == ["/data/b.txt"]
        assert registry.paths() == {"/data/a.txt", "/data/b.txt"}

    def test_stats(self) -> None:
        """stats() should count totals, directories, and statuses."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/a.txt", status=ItemStatus.NEW))
        registry.upsert(_file("/data/dir", is_directory=True))

        stats = registry.stats()
        assert stats["total"] == 2
        assert stats["directories"] == 1
        assert stats["new"] == 1
        assert stats["tracked"] == 1
        assert stats["synced"] == 0

    def test_clear(self) -> None:
        """clear() should forget everything."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/a.txt"))
        registry.clear()
        assert len(registry) == 0

    def test_concurrent_upserts(self) -> None:
        """Concurrent writers should never produce duplicate paths."""
        registry = ItemRegistry()

        def writer(offset: int) -> None:
            for i in range(200):
                registry.upsert(_file(f"/data/f{i % 50}.txt", remote_size=offset + i))

        threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 50

    def test_reads_return_copies(self) -> None:
        """Mutating an item returned by a read leaves the stored record intact."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/a.txt"))

        registry.get("/data/a.txt").status = ItemStatus.SYNCED  # type: ignore[union-attr]
        registry.items()[0].children.append(_file("/data/a.txt/x"))
        registry.download_candidates()[0].local_size = 10

        stored = registry.get("/data/a.txt")
        assert stored is not None
        assert stored.status == ItemStatus.TRACKED
        assert stored.children == []
        assert stored.local_size == 0

    def test_refresh_builds_from_current(self) -> None:
        """refresh() passes the current item to the builder and stores the result."""
        registry = ItemRegistry()
        seen: list[TrackedItem | None] = []

        def build(previous: TrackedItem | None) -> TrackedItem:
            seen.append(previous)
            return _file("/data/a.txt", remote_size=len(seen))

        registry.refresh("/data//a.txt", build)
        registry.update("/data/a.txt", file_hash="abc")
        refreshed = registry.refresh("/data/a.txt", build)

        assert seen[0] is None
        assert seen[1] is not None and seen[1].file_hash == "abc"
        assert refreshed.remote_size == 2
        assert len(registry) == 1

    def test_refresh_attaches_to_parent(self) -> None:
        """A refreshed item is appended to its tracked parent's children."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/sub", remote_size=0, is_directory=True))

        registry.refresh("/data/sub/b.txt", lambda previous: _file("/data/sub/b.txt"), parent="/data/sub")

        sub = registry.get("/data/sub")
        assert sub is not None
        assert [c.remote_path for c in sub.children] == ["/data/sub/b.txt"]

    def test_refresh_blocks_concurrent_update(self) -> None:
        """An update() from another thread waits until the refresh is stored."""
        registry = ItemRegistry()
        registry.upsert(_file("/data/a.txt"))
        writer = threading.Thread(target=registry.update, args=("/data/a.txt",), kwargs={"file_hash": "abc"})

        def build(previous: TrackedItem | None) -> TrackedItem:
            writer.start()
            writer.join(timeout=0.2)
            assert writer.is_alive()
            return _file("/data/a.txt", remote_size=99)

        registry.refresh("/data/a.txt", build)
        writer.join(timeout=5)

        item = registry.get("/data/a.txt")
        assert item is not None
        assert item.remote_size == 99
        assert item.file_hash == "abc"
