"""Tests for the polling path monitor."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import IO, Any

import pytest

from sporesync.remote.localfs import LocalFSRemote
from sporesync.remote.port import RemoteEntry, RemoteStat
from sporesync.sync.monitor import MonitorState, PathMonitor
from sporesync.sync.queue import SyncQueue
from sporesync.sync.registry import ItemRegistry
from sporesync.sync.types import (
    CancellationToken,
    ItemStatus,
    RemoteAccessError,
    SyncOperation,
    TrackedItem,
)


class FlakyRemote:
    """Remote wrapper whose next list() calls on one path fail with a connectivity error."""

    def __init__(self, inner: LocalFSRemote, fail_path: str = "/data", failures: int = 0) -> None:
        self._inner = inner
        self._fail_path = fail_path
        self._failures = failures
        self._lock = threading.Lock()
        self.list_calls = 0

    def fail_next(self, count: int = 1) -> None:
        with self._lock:
            self._failures = count

    def list(self, path: str) -> list[RemoteEntry]:
        with self._lock:
            self.list_calls += 1
            if path == self._fail_path and self._failures > 0:
                self._failures -= 1
                raise RemoteAccessError("Connection reset by peer")
        return self._inner.list(path)

    def read_open(self, path: str) -> IO[bytes]:
        return self._inner.read_open(path)

    def write_create(self, path: str) -> IO[bytes]:
        return self._inner.write_create(path)

    def exists(self, path: str) -> bool:
        return self._inner.exists(path)

    def stat(self, path: str) -> RemoteStat:
        return self._inner.stat(path)

    def mkdir(self, path: str) -> None:
        self._inner.mkdir(path)

    def delete(self, path: str) -> None:
        self._inner.delete(path)

    def close(self) -> None:
        self._inner.close()


@pytest.fixture
def registry() -> ItemRegistry:
    """Empty registry."""
    return ItemRegistry()


@pytest.fixture
def queue() -> SyncQueue:
    """Empty queue."""
    return SyncQueue()


@pytest.fixture
def monitor(remote: LocalFSRemote, registry: ItemRegistry, queue: SyncQueue, local_root: Path) -> PathMonitor:
    """Monitor over /data with a queue attached."""
    return PathMonitor(remote, registry, "/data", local_root, queue=queue)


class TestPollOnce:
    """Tests for a single poll cycle."""

    def test_data_scenario(
        self,
        monitor: PathMonitor,
        registry: ItemRegistry,
        queue: SyncQueue,
        make_remote_file: Any,
        local_root: Path,
    ) -> None:
        """Two files and one directory yield three items and two candidates."""
        make_remote_file("/data/a.txt", size=100, mtime=1_000_000)
        make_remote_file("/data/sub/b.txt", size=50, mtime=2_000_000)

        result = monitor.poll_once()

        assert result.completed
        assert result.items_seen == 3
        assert result.new == 2
        assert registry.paths() == {"/data/a.txt", "/data/sub", "/data/sub/b.txt"}

        a = registry.get("/data/a.txt")
        assert a is not None
        assert a.remote_size == 100
        assert a.status == ItemStatus.NEW
        assert a.file_extension == "txt"
        assert a.destination_path == str(local_root / "a.txt")

        sub = registry.get("/data/sub")
        assert sub is not None
        assert sub.is_directory
        assert sub.status == ItemStatus.TRACKED
        assert [c.remote_path for c in sub.children] == ["/data/sub/b.txt"]

        assert all(i.local_size == 0 for i in registry.items())

        candidates = registry.download_candidates()
        assert [c.file_name for c in candidates] == ["a.txt", "b.txt"]
        assert [e.path for e in queue.entries()] == ["/data/a.txt", "/data/sub/b.txt"]
        assert result.enqueued == 2

    def test_candidates_follow_modification_time(
        self, monitor: PathMonitor, registry: ItemRegistry, make_remote_file: Any
    ) -> None:
        """Candidate order is by last modified, not by name."""
        make_remote_file("/data/a.txt", size=10, mtime=3_000_000)
        make_remote_file("/data/z.txt", size=10, mtime=1_000_000)

        monitor.poll_once()

        assert [c.file_name for c in registry.download_candidates()] == ["z.txt", "a.txt"]

    def test_one_item_per_path_across_polls(
        self, monitor: PathMonitor, registry: ItemRegistry, queue: SyncQueue, make_remote_file: Any
    ) -> None:
        """Repeated polls never duplicate items or queue entries."""
        make_remote_file("/data/a.txt", size=10)
        make_remote_file("/data/sub/b.txt", size=10)

        monitor.poll_once()
        second = monitor.poll_once()

        assert len(registry) == 3
        assert len(queue) == 2
        assert second.new == 0
        assert second.enqueued == 0
        assert monitor.poll_count == 2

    def test_depth_first_order(
        self, remote: LocalFSRemote, local_root: Path, make_remote_file: Any
    ) -> None:
        """A directory's subtree is written before its next sibling."""
        make_remote_file("/data/a/x.txt", size=1)
        make_remote_file("/data/b.txt", size=1)
        order: list[str] = []

        class RecordingRegistry(ItemRegistry):
            def refresh(self, path: str, build: Any, parent: str | None = None) -> TrackedItem:
                item = super().refresh(path, build, parent)
                order.append(item.remote_path)
                return item

        PathMonitor(remote, RecordingRegistry(), "/data", local_root).poll_once()

        assert order == ["/data/a", "/data/a/x.txt", "/data/b.txt"]

    def test_existing_local_copy_is_synced(
        self, monitor: PathMonitor, registry: ItemRegistry, queue: SyncQueue, make_remote_file: Any, local_root: Path
    ) -> None:
        """A local file of the same size counts as synced and is not queued."""
        make_remote_file("/data/a.txt", size=12)
        local_root.mkdir()
        (local_root / "a.txt").write_bytes(b"x" * 12)

        monitor.poll_once()

        item = registry.get("/data/a.txt")
        assert item is not None
        assert item.status == ItemStatus.SYNCED
        assert item.local_size == 12
        assert len(queue) == 0

    def test_modified_file(
        self, monitor: PathMonitor, registry: ItemRegistry, queue: SyncQueue, make_remote_file: Any, local_root: Path
    ) -> None:
        """A remote change after a sync marks the item MODIFIED and queues an update."""
        make_remote_file("/data/a.txt", size=5, mtime=1_000_000)
        local_root.mkdir()
        (local_root / "a.txt").write_bytes(b"x" * 5)
        monitor.poll_once()
        assert registry.get("/data/a.txt").status == ItemStatus.SYNCED  # type: ignore[union-attr]

        make_remote_file("/data/a.txt", size=9, mtime=2_000_000)
        result = monitor.poll_once()

        item = registry.get("/data/a.txt")
        assert item is not None
        assert item.status == ItemStatus.MODIFIED
        assert result.modified == 1
        entries = queue.entries()
        assert [(e.path, e.operation) for e in entries] == [("/data/a.txt", SyncOperation.UPDATE)]

    def test_vanished_item_marked_deleted(
        self, monitor: PathMonitor, registry: ItemRegistry, make_remote_file: Any
    ) -> None:
        """Known paths missing from a complete poll become DELETED."""
        path = make_remote_file("/data/a.txt", size=5)
        monitor.poll_once()
        path.unlink()

        result = monitor.poll_once()

        assert result.deleted == 1
        assert registry.get("/data/a.txt").status == ItemStatus.DELETED  # type: ignore[union-attr]

        # Reappearing after deletion counts as new again
        make_remote_file("/data/a.txt", size=5)
        assert monitor.poll_once().new == 1

    def test_syncing_items_not_requeued(
        self, monitor: PathMonitor, registry: ItemRegistry, queue: SyncQueue, make_remote_file: Any
    ) -> None:
        """An item being downloaded is not queued a second time."""
        make_remote_file("/data/a.txt", size=5)
        monitor.poll_once()
        queue.clear()
        registry.update("/data/a.txt", status=ItemStatus.SYNCING)

        monitor.poll_once()

        assert registry.get("/data/a.txt").status == ItemStatus.SYNCING  # type: ignore[union-attr]
        assert len(queue) == 0

    def test_vanished_file_is_not_queued(
        self, monitor: PathMonitor, registry: ItemRegistry, queue: SyncQueue, make_remote_file: Any
    ) -> None:
        """A file that vanishes before it is downloaded is never queued again."""
        path = make_remote_file("/data/a.txt", size=5)
        monitor.poll_once()
        queue.clear()
        path.unlink()

        first = monitor.poll_once()
        second = monitor.poll_once()

        assert registry.get("/data/a.txt").status == ItemStatus.DELETED  # type: ignore[union-attr]
        assert first.enqueued == 0
        assert second.enqueued == 0
        assert len(queue) == 0

    def test_partial_copy_is_requeued(
        self, monitor: PathMonitor, registry: ItemRegistry, queue: SyncQueue, make_remote_file: Any, local_root: Path
    ) -> None:
        """A local file shorter than the remote one is queued as an update."""
        make_remote_file("/data/a.txt", size=100)
        monitor.poll_once()
        queue.clear()
        local_root.mkdir()
        (local_root / "a.txt").write_bytes(b"x" * 16)

        result = monitor.poll_once()

        item = registry.get("/data/a.txt")
        assert item is not None
        assert item.status == ItemStatus.MODIFIED
        assert item.local_size == 16
        assert result.enqueued == 1
        assert [(e.path, e.operation) for e in queue.entries()] == [("/data/a.txt", SyncOperation.UPDATE)]

    def test_concurrent_status_write_is_kept(
        self, remote: LocalFSRemote, local_root: Path, make_remote_file: Any
    ) -> None:
        """A status write racing a refresh lands after it and is carried forward."""
        make_remote_file("/data/a.txt", size=5)
        writers: list[threading.Thread] = []

        class InterleavingRegistry(ItemRegistry):
            def refresh(self, path: str, build: Any, parent: str | None = None) -> TrackedItem:
                def racing_build(previous: TrackedItem | None) -> TrackedItem:
                    if previous is not None and not writers:
                        writer = threading.Thread(
                            target=self.update,
                            args=(path,),
                            kwargs={"status": ItemStatus.SYNCED, "file_hash": "abc"},
                        )
                        writers.append(writer)
                        writer.start()
                        # The writer blocks on the registry lock until the refresh is stored
                        writer.join(timeout=0.2)
                    return build(previous)

                return super().refresh(path, racing_build, parent)

        registry = InterleavingRegistry()
        monitor = PathMonitor(remote, registry, "/data", local_root)
        monitor.poll_once()
        monitor.poll_once()
        writers[0].join(timeout=5)
        assert not writers[0].is_alive()

        item = registry.get("/data/a.txt")
        assert item is not None
        assert item.status == ItemStatus.SYNCED
        assert item.file_hash == "abc"

        monitor.poll_once()
        assert registry.get("/data/a.txt").file_hash == "abc"  # type: ignore[union-attr]

    def test_cancelled_poll_skips_deletion(
        self, monitor: PathMonitor, registry: ItemRegistry, make_remote_file: Any
    ) -> None:
        """A cancelled poll is incomplete and marks nothing DELETED."""
        make_remote_file("/data/a.txt", size=5)
        monitor.poll_once()
        token = CancellationToken()
        token.cancel()

        result = monitor.poll_once(token)

        assert result.completed is False
        assert result.deleted == 0
        assert registry.get("/data/a.txt").status == ItemStatus.NEW  # type: ignore[union-attr]

    def test_missing_root_raises(self, remote: LocalFSRemote, registry: ItemRegistry, local_root: Path) -> None:
        """A missing root propagates as a RemoteAccessError."""
        monitor = PathMonitor(remote, registry, "/nope", local_root)
        with pytest.raises(RemoteAccessError):
            monitor.poll_once()
        assert monitor.poll_count == 0


class TestMonitorLoop:
    """Tests for the background poll loop."""

    def test_start_polls_immediately(
        self, monitor: PathMonitor, registry: ItemRegistry, make_remote_file: Any, wait_until: Any
    ) -> None:
        """The first poll runs as soon as the loop starts."""
        make_remote_file("/data/a.txt", size=5)
        monitor.start()
        try:
            assert monitor.is_running
            assert wait_until(lambda: monitor.poll_count >= 1)
            assert registry.contains("/data/a.txt")
        finally:
            monitor.stop()

        assert not monitor.is_running
        assert monitor.state == MonitorState.STOPPED

    def test_backoff_then_recovery(
        self,
        remote: LocalFSRemote,
        registry: ItemRegistry,
        local_root: Path,
        make_remote_file: Any,
        wait_until: Any,
    ) -> None:
        """A failure mid-enumeration backs off, then polling resumes with items intact."""
        make_remote_file("/data/a.txt", size=5)
        make_remote_file("/data/sub/b.txt", size=5)
        flaky = FlakyRemote(remote, fail_path="/data/sub")
        monitor = PathMonitor(
            flaky,
            registry,
            "/data",
            local_root,
            check_interval=10.0,
            error_retry_delay=0.05,
        )
        monitor.poll_once()
        assert len(registry) == 3

        flaky.fail_next()
        monitor.start()
        try:
            assert wait_until(lambda: monitor.poll_count >= 2)
        finally:
            monitor.stop()

        assert monitor.error_count == 1
        assert monitor.last_error is None
        assert registry.paths() == {"/data/a.txt", "/data/sub", "/data/sub/b.txt"}
        assert not registry.by_status(ItemStatus.DELETED)

    def test_failure_is_recorded(
        self,
        remote: LocalFSRemote,
        registry: ItemRegistry,
        local_root: Path,
        wait_until: Any,
    ) -> None:
        """A failing poll increments the error count and keeps the last error."""
        flaky = FlakyRemote(remote, fail_path="/data", failures=1000)
        monitor = PathMonitor(flaky, registry, "/data", local_root, error_retry_delay=0.01)

        monitor.start()
        try:
            assert wait_until(lambda: monitor.error_count >= 2)
            assert monitor.is_running
            assert monitor.last_error == "Connection reset by peer"
        finally:
            monitor.stop()
        assert monitor.poll_count == 0

    def test_stop_interrupts_wait(self, monitor: PathMonitor, wait_until: Any) -> None:
        """stop() should not wait for the full poll interval."""
        monitor.start()
        assert wait_until(lambda: monitor.poll_count >= 1)
        monitor.stop(timeout=2.0)
        assert not monitor.is_running

    def test_status(self, monitor: PathMonitor) -> None:
        """status() should report configuration and counters."""
        monitor.poll_once()
        status = monitor.status()
        assert status["remote_root"] == "/data"
        assert status["state"] == "idle"
        assert status["poll_count"] == 1
        assert status["last_result"]["completed"] is True
        assert status["last_poll_at"] is not None
