"""Sync service: wires the sync core around one remote session.

This module provides:
- SyncService: Owns the remote port, item registry, sync queue, path
  monitor, coordinator, transfer executor, and progress fan-out

The HTTP server and the CLI both talk to the core through this class.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sporesync.core.hashing import compute_file_hash
from sporesync.remote import create_remote
from sporesync.remote.port import normalize_remote_path
from sporesync.sync.coordinator import SyncCoordinator
from sporesync.sync.monitor import PathMonitor, PollResult
from sporesync.sync.paths import file_extension, is_under_root, local_path_for
from sporesync.sync.queue import SyncQueue
from sporesync.sync.registry import ItemRegistry
from sporesync.sync.transfer import TransferExecutor
from sporesync.sync.types import (
    CancellationToken,
    ItemStatus,
    ProgressEvent,
    ProgressSink,
    QueueEntry,
    SyncOperation,
    TrackedItem,
    TransferResult,
    utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from sporesync.core.config import Settings
    from sporesync.remote.port import RemoteAccessPort, RemoteEntry

logger = logging.getLogger(__name__)


class SyncService:
    """Facade over the sync core for one remote root.

    Usage:
        service = SyncService.from_settings(load_settings(config_file))
        service.add_progress_listener(print)
        service.start()
        # ...
        service.close()
    """

    def __init__(self, settings: Settings, remote: RemoteAccessPort) -> None:
        """Initialize the service around an already connected remote.

        Args:
            settings: Validated settings.
            remote: Remote access port (owned by the service from now on).
        """
        self._settings = settings
        self._remote = remote
        self._remote_root = normalize_remote_path(settings.paths.remote_path)
        self._local_root = settings.paths.local_root

        self._listeners: list[ProgressSink] = []
        self._listeners_lock = threading.Lock()

        self.registry = ItemRegistry()
        self.queue = SyncQueue()
        self.executor = TransferExecutor(
            remote,
            chunk_size=settings.monitor.chunk_size,
            progress=self._broadcast,
        )
        self.monitor = PathMonitor(
            remote,
            self.registry,
            self._remote_root,
            self._local_root,
            queue=self.queue,
            check_interval=settings.monitor.check_interval_seconds,
            error_retry_delay=settings.monitor.error_retry_delay_seconds,
        )
        self.coordinator = SyncCoordinator(
            self.queue,
            self.registry,
            self.executor,
            progress=self._broadcast,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> SyncService:
        """Validate settings, connect the remote, and build the service.

        Raises:
            ConfigError: If the settings are invalid.
            RemoteAccessError: If the remote cannot be reached.
        """
        settings.validate()
        return cls(settings, create_remote(settings))

    @property
    def settings(self) -> Settings:
        """Get the service settings."""
        return self._settings

    @property
    def remote(self) -> RemoteAccessPort:
        """Get the remote access port."""
        return self._remote

    @property
    def remote_root(self) -> str:
        """Get the monitored remote root."""
        return self._remote_root

    @property
    def local_root(self) -> Path:
        """Get the local root."""
        return self._local_root

    @property
    def is_monitoring(self) -> bool:
        """Check if the monitor loop is running."""
        return self.monitor.is_running

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the monitor and the queue drain."""
        self.monitor.start()
        self.coordinator.start()

    def stop(self) -> None:
        """Stop the monitor and the queue drain."""
        self.monitor.stop()
        self.coordinator.stop()

    def close(self) -> None:
        """Stop background work and release the remote session."""
        self.stop()
        self._remote.close()

    def status(self) -> dict[str, Any]:
        """Get a status snapshot of every component."""
        return {
            "remote": getattr(self._remote, "location", type(self._remote).__name__),
            "monitoring": self.is_monitoring,
            "monitor": self.monitor.status(),
            "coordinator": {
                "state": self.coordinator.state.name.lower(),
                **self.coordinator.stats.to_dict(),
            },
            "registry": self.registry.stats(),
            "queue": self.queue.stats(),
        }

    # =========================================================================
    # Progress
    # =========================================================================

    def add_progress_listener(self, listener: ProgressSink) -> Callable[[], None]:
        """Register a progress listener.

        Returns:
            A function that unregisters the listener.
        """
        with self._listeners_lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    def _broadcast(self, event: ProgressEvent) -> None:
        """Fan a progress event out to every listener."""
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Progress listener failed")

    # =========================================================================
    # Registry and queue
    # =========================================================================

    def poll_now(self) -> PollResult:
        """Run one poll cycle on the caller's thread.

        Raises:
            RemoteAccessError: If the remote tree cannot be listed.
        """
        return self.monitor.poll_once()

    def list_remote(self, path: str | None = None) -> list[RemoteEntry]:
        """List a remote directory (the monitored root by default).

        Raises:
            RemoteAccessError: If the listing fails.
        """
        return self._remote.list(normalize_remote_path(path or self._remote_root))

    def local_path_for(self, remote_path: str) -> Path:
        """Map a remote path under the root onto the local root.

        Raises:
            ValueError: If the path is outside the monitored root.
        """
        return local_path_for(self._remote_root, self._local_root, remote_path)

    def enqueue_path(
        self,
        path: str,
        operation: SyncOperation | None = None,
    ) -> QueueEntry:
        """Queue one remote path, tracking it first if it is unknown or DELETED.

        Args:
            path: Remote path under the monitored root.
            operation: Operation kind (inferred from the item status if None).

        Returns:
            The queued entry.

        Raises:
            ValueError: If the path is outside the monitored root.
            RemoteNotFoundError: If an untracked path does not exist remotely.
        """
        item = self.registry.get(path)
        if item is None or item.status == ItemStatus.DELETED:
            item = self._track(path)
        return self.queue.enqueue(item, operation)

    def sync_folder(self, path: str | None = None) -> int:
        """Queue every file under a remote folder that is not queued yet.

        Untracked files, and files last seen as DELETED, are (re)registered
        as NEW.

        Args:
            path: Remote folder under the monitored root (root by default).

        Returns:
            Number of entries added to the queue.

        Raises:
            ValueError: If the folder is outside the monitored root.
            RemoteAccessError: If the folder cannot be listed.
        """
        folder = normalize_remote_path(path or self._remote_root)
        if not is_under_root(self._remote_root, folder):
            raise ValueError(f"{folder} is outside the monitored root {self._remote_root}")

        files: list[TrackedItem] = []
        pending = [folder]
        while pending:
            for entry in self._remote.list(pending.pop()):
                if entry.is_directory:
                    pending.append(entry.full_path)
                    continue
                item = self.registry.get(entry.full_path)
                if item is None or item.status == ItemStatus.DELETED:
                    item = self._item_from_entry(entry)
                    self.registry.upsert(item)
                files.append(item)

        added = self.queue.enqueue_unique(files)
        logger.info("Queued %d of %d file(s) under %s", added, len(files), folder)
        return added

    def _track(self, path: str) -> TrackedItem:
        """Stat an untracked remote path and register it as NEW."""
        path = normalize_remote_path(path)
        destination = self.local_path_for(path)
        stat = self._remote.stat(path)
        name = path.rsplit("/", 1)[-1] or path
        item = TrackedItem(
            remote_path=path,
            file_name=name,
            destination_path=str(destination),
            remote_size=stat.size,
            last_modified=stat.last_modified or utcnow(),
            is_directory=stat.is_directory,
            status=ItemStatus.TRACKED if stat.is_directory else ItemStatus.NEW,
            file_extension=None if stat.is_directory else file_extension(name),
        )
        self.registry.upsert(item)
        return item

    def _item_from_entry(self, entry: RemoteEntry) -> TrackedItem:
        return TrackedItem(
            remote_path=entry.full_path,
            file_name=entry.name,
            destination_path=str(self.local_path_for(entry.full_path)),
            remote_size=entry.size,
            last_modified=entry.last_modified,
            is_directory=entry.is_directory,
            status=ItemStatus.NEW,
            file_extension=file_extension(entry.name),
        )

    # =========================================================================
    # Explicit transfers
    # =========================================================================

    def download_file(
        self,
        remote_path: str,
        local_path: str | Path | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Download one remote file.

        The local path defaults to the remote path mapped onto the local
        root. A tracked item downloaded to its own destination is marked
        SYNCED.

        Raises:
            ValueError: If no local path is given and the remote path is
                outside the monitored root.
        """
        remote_path = normalize_remote_path(remote_path)
        target = Path(local_path) if local_path else self.local_path_for(remote_path)
        result = self.executor.download_file(remote_path, target, cancel=cancel)
        if result.success:
            self._mark_downloaded(remote_path, target)
        return result

    def upload_file(
        self,
        local_path: str | Path,
        remote_path: str,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Upload one local file to a remote path."""
        return self.executor.upload_file(local_path, normalize_remote_path(remote_path), cancel=cancel)

    def download_directory(
        self,
        remote_path: str,
        local_path: str | Path | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Download a remote directory tree.

        Raises:
            ValueError: If no local path is given and the remote path is
                outside the monitored root.
        """
        remote_path = normalize_remote_path(remote_path)
        target = Path(local_path) if local_path else self.local_path_for(remote_path)
        return self.executor.download_directory(remote_path, target, cancel=cancel)

    def upload_directory(
        self,
        local_path: str | Path,
        remote_path: str,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Upload a local directory tree to a remote directory."""
        return self.executor.upload_directory(
            local_path, normalize_remote_path(remote_path), cancel=cancel
        )

    def _mark_downloaded(self, remote_path: str, target: Path) -> None:
        item = self.registry.get(remote_path)
        if item is None or Path(item.destination_path) != target:
            return
        self.registry.update(
            remote_path,
            status=ItemStatus.SYNCED,
            local_size=target.stat().st_size,
            file_hash=compute_file_hash(target),
            last_synced=utcnow(),
        )
