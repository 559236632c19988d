"""Polling monitor for the remote tree.

This module provides:
- MonitorState: Lifecycle states of the poll loop
- PollResult: Summary of one poll cycle
- PathMonitor: Background loop that enumerates the remote root, refreshes
  the item registry, and feeds new or changed files into the sync queue

The remote side exposes no change notifications, only list/stat, so the
monitor polls. Staleness is bounded by one poll interval and remote load by
one full subtree walk per interval.

State machine:
    IDLE -> POLLING -> (IDLE | ERROR_BACKOFF) -> POLLING -> ... -> STOPPED
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sporesync.core.config import DEFAULT_CHECK_INTERVAL, DEFAULT_ERROR_RETRY_DELAY
from sporesync.remote.port import normalize_remote_path
from sporesync.sync.paths import file_extension, is_under_root, local_path_for
from sporesync.sync.types import (
    CancellationToken,
    ItemStatus,
    RemoteAccessError,
    TrackedItem,
    TransferCancelledError,
    utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sporesync.remote.port import RemoteAccessPort, RemoteEntry
    from sporesync.sync.queue import SyncQueue
    from sporesync.sync.registry import ItemRegistry

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    """State of the poll loop."""

    IDLE = auto()
    POLLING = auto()
    ERROR_BACKOFF = auto()
    STOPPED = auto()


@dataclass
class PollResult:
    """Summary of one poll cycle.

    Attributes:
        items_seen: Entries enumerated under the root.
        new: Items that became NEW during this poll.
        modified: Items that became MODIFIED during this poll.
        deleted: Known items marked DELETED because they were not seen.
        enqueued: Queue entries added after the poll.
        completed: False if the poll was cancelled before finishing.
        started_at: Poll start time.
        duration: Poll duration in seconds.
    """

    items_seen: int = 0
    new: int = 0
    modified: int = 0
    deleted: int = 0
    enqueued: int = 0
    completed: bool = True
    started_at: datetime = field(default_factory=utcnow)
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "items_seen": self.items_seen,
            "new": self.new,
            "modified": self.modified,
            "deleted": self.deleted,
            "enqueued": self.enqueued,
            "completed": self.completed,
            "started_at": self.started_at.isoformat(),
            "duration": round(self.duration, 3),
        }


class PathMonitor:
    """Recurring background poll of a remote subtree.

    Each cycle walks the remote root depth-first: a directory's item is
    written before its children, and its children are enumerated before
    its next sibling. Every entry becomes a TrackedItem upserted into the
    registry. After a complete cycle, known paths that were not seen are
    marked DELETED, and download candidates plus MODIFIED files are
    enqueued (deduplicated) when a queue is attached.

    A remote-access failure never ends the loop: it is logged, the monitor
    waits the error retry delay, then polls again.

    Usage:
        monitor = PathMonitor(remote, registry, "/data", Path("~/mirror"), queue=queue)
        monitor.start()
        # ...
        monitor.stop()
    """

    def __init__(
        self,
        remote: RemoteAccessPort,
        registry: ItemRegistry,
        remote_root: str,
        local_root: Path,
        queue: SyncQueue | None = None,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        error_retry_delay: float = DEFAULT_ERROR_RETRY_DELAY,
    ) -> None:
        """Initialize the monitor.

        Args:
            remote: Remote access port to enumerate.
            registry: Registry to write tracked items into.
            remote_root: Remote directory to monitor.
            local_root: Local directory the remote root maps onto.
            queue: Queue to feed after each complete poll (optional).
            check_interval: Seconds between successful polls.
            error_retry_delay: Seconds to wait after a failed poll.
        """
        self._remote = remote
        self._registry = registry
        self._queue = queue
        self._remote_root = normalize_remote_path(remote_root)
        self._local_root = Path(local_root)
        self._check_interval = check_interval
        self._error_retry_delay = error_retry_delay

        self._state_lock = threading.Lock()
        self._state = MonitorState.IDLE
        self._thread: threading.Thread | None = None
        self._stop_token: CancellationToken | None = None

        self._poll_count = 0
        self._error_count = 0
        self._last_result: PollResult | None = None
        self._last_error: str | None = None
        self._last_poll_at: datetime | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> MonitorState:
        """Get the current loop state."""
        with self._state_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        """Check if the background loop is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def remote_root(self) -> str:
        """Get the monitored remote root."""
        return self._remote_root

    @property
    def local_root(self) -> Path:
        """Get the local root."""
        return self._local_root

    @property
    def last_result(self) -> PollResult | None:
        """Get the result of the last completed or cancelled poll."""
        return self._last_result

    @property
    def last_error(self) -> str | None:
        """Get the message of the last failed poll."""
        return self._last_error

    @property
    def poll_count(self) -> int:
        """Get the number of polls that finished without error."""
        return self._poll_count

    @property
    def error_count(self) -> int:
        """Get the number of failed polls."""
        return self._error_count

    def _set_state(self, state: MonitorState) -> None:
        with self._state_lock:
            if self._state != state:
                logger.debug("Monitor state %s -> %s", self._state.name, state.name)
            self._state = state

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the poll loop in a background thread.

        The first poll runs immediately.
        """
        if self.is_running:
            logger.warning("PathMonitor already running")
            return

        self._stop_token = CancellationToken()
        self._set_state(MonitorState.IDLE)
        self._thread = threading.Thread(
            target=self._run_loop,
            args=(self._stop_token,),
            name="PathMonitor",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Monitoring %s every %.0fs (local root: %s)",
            self._remote_root,
            self._check_interval,
            self._local_root,
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the poll loop at its next safe point.

        Args:
            timeout: Seconds to wait for the thread to exit.
        """
        if self._stop_token is not None:
            self._stop_token.cancel()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("PathMonitor did not stop within %.1fs", timeout)
            self._thread = None
        self._set_state(MonitorState.STOPPED)
        logger.info("Stopped monitoring %s", self._remote_root)

    def _run_loop(self, token: CancellationToken) -> None:
        """Poll until the token is cancelled."""
        while not token.cancelled:
            self._set_state(MonitorState.POLLING)
            try:
                result = self.poll_once(token)
            except RemoteAccessError as e:
                self._record_failure(e)
                self._set_state(MonitorState.ERROR_BACKOFF)
                if token.wait(self._error_retry_delay):
                    break
                continue
            except Exception as e:
                logger.exception("Unexpected error while polling %s", self._remote_root)
                self._record_failure(e)
                self._set_state(MonitorState.ERROR_BACKOFF)
                if token.wait(self._error_retry_delay):
                    break
                continue

            if not result.completed:
                break
            self._set_state(MonitorState.IDLE)
            if token.wait(self._check_interval):
                break

        self._set_state(MonitorState.STOPPED)

    def _record_failure(self, error: Exception) -> None:
        self._error_count += 1
        self._last_error = str(error) or type(error).__name__
        logger.warning(
            "Poll of %s failed: %s (retrying in %.0fs)",
            self._remote_root,
            self._last_error,
            self._error_retry_delay,
        )

    # =========================================================================
    # Polling
    # =========================================================================

    def poll_once(self, cancel: CancellationToken | None = None) -> PollResult:
        """Run one poll cycle synchronously.

        Args:
            cancel: Token checked before every directory listing.

        Returns:
            PollResult (completed=False if cancelled part-way).

        Raises:
            RemoteAccessError: If listing the remote tree fails.
        """
        result = PollResult()
        started = time.monotonic()
        seen: set[str] = set()

        try:
            self._walk(cancel, seen, result)
        except TransferCancelledError:
            result.completed = False
            result.duration = time.monotonic() - started
            self._last_result = result
            logger.info("Poll of %s cancelled after %d item(s)", self._remote_root, result.items_seen)
            return result

        result.deleted = self._mark_unseen_deleted(seen)
        result.enqueued = self._enqueue_pending()
        result.duration = time.monotonic() - started

        self._poll_count += 1
        self._last_result = result
        self._last_error = None
        self._last_poll_at = utcnow()

        if result.new or result.modified or result.deleted or result.enqueued:
            logger.info(
                "Poll of %s: %d seen, %d new, %d modified, %d deleted, %d enqueued",
                self._remote_root,
                result.items_seen,
                result.new,
                result.modified,
                result.deleted,
                result.enqueued,
            )
        else:
            logger.debug("Poll of %s: %d seen, no changes", self._remote_root, result.items_seen)
        return result

    def _list(self, path: str, cancel: CancellationToken | None) -> Iterator[RemoteEntry]:
        """List a directory after checking for cancellation."""
        if cancel is not None:
            cancel.raise_if_cancelled()
        return iter(self._remote.list(path))

    def _walk(
        self,
        cancel: CancellationToken | None,
        seen: set[str],
        result: PollResult,
    ) -> None:
        """Depth-first walk using an explicit stack of open listings."""
        stack: list[tuple[TrackedItem | None, Iterator[RemoteEntry]]] = [
            (None, self._list(self._remote_root, cancel)),
        ]
        while stack:
            parent, entries = stack[-1]
            entry = next(entries, None)
            if entry is None:
                stack.pop()
                continue

            item = self._registry.refresh(
                entry.full_path,
                functools.partial(self._refresh, entry, result=result),
                parent=parent.remote_path if parent is not None else None,
            )
            seen.add(item.remote_path)
            result.items_seen += 1

            if item.is_directory:
                stack.append((item, self._list(item.remote_path, cancel)))

    def _refresh(
        self, entry: RemoteEntry, previous: TrackedItem | None, result: PollResult
    ) -> TrackedItem:
        """Build the new TrackedItem for an entry, carrying over known state.

        Runs under the registry lock, so previous is the current record.
        """
        path = normalize_remote_path(entry.full_path)
        destination = local_path_for(self._remote_root, self._local_root, path)

        item = TrackedItem(
            remote_path=path,
            file_name=entry.name,
            destination_path=str(destination),
            remote_size=0 if entry.is_directory else entry.size,
            local_size=0 if entry.is_directory else _local_size(destination),
            last_modified=entry.last_modified,
            is_directory=entry.is_directory,
            file_extension=None if entry.is_directory else file_extension(entry.name),
        )
        if previous is not None:
            item.created_at = previous.created_at
            item.last_synced = previous.last_synced
            item.file_hash = previous.file_hash

        item.status = self._next_status(previous, item)
        if item.status == ItemStatus.NEW and (previous is None or previous.status != ItemStatus.NEW):
            result.new += 1
        elif item.status == ItemStatus.MODIFIED and (
            previous is None or previous.status != ItemStatus.MODIFIED
        ):
            result.modified += 1
        return item

    @staticmethod
    def _next_status(previous: TrackedItem | None, item: TrackedItem) -> ItemStatus:
        """Decide the status of a refreshed item."""
        if item.is_in_sync:
            return ItemStatus.SYNCED
        if item.is_directory:
            return ItemStatus.TRACKED
        if previous is None or previous.status == ItemStatus.DELETED:
            return ItemStatus.NEW
        if (
            previous.remote_size != item.remote_size
            or previous.last_modified != item.last_modified
        ):
            return ItemStatus.MODIFIED
        if previous.status == ItemStatus.SYNCING:
            return ItemStatus.SYNCING
        # A partial copy left by a cancelled or failed download
        if item.local_size > 0 and item.local_size != item.remote_size:
            return ItemStatus.MODIFIED
        return previous.status

    def _mark_unseen_deleted(self, seen: set[str]) -> int:
        """Mark known paths under the root that vanished remotely as DELETED."""
        deleted = 0
        for path in self._registry.paths():
            if path in seen or path == self._remote_root:
                continue
            if not is_under_root(self._remote_root, path):
                continue
            item = self._registry.get(path)
            if item is None or item.status == ItemStatus.DELETED:
                continue
            self._registry.update(path, status=ItemStatus.DELETED)
            logger.info("Remote item vanished: %s", path)
            deleted += 1
        return deleted

    def _enqueue_pending(self) -> int:
        """Feed download candidates and MODIFIED files into the queue.

        Items that vanished remotely (DELETED) are never queued: the monitor
        only mirrors remote to local.
        """
        if self._queue is None:
            return 0
        pending = [
            i
            for i in self._registry.download_candidates()
            if i.status not in (ItemStatus.SYNCING, ItemStatus.DELETED)
        ]
        candidate_paths = {i.remote_path for i in pending}
        pending.extend(
            i
            for i in self._registry.by_status(ItemStatus.MODIFIED)
            if not i.is_directory and i.remote_path not in candidate_paths
        )
        return self._queue.enqueue_unique(pending)

    def status(self) -> dict[str, Any]:
        """Get monitor status for reporting."""
        return {
            "state": self.state.name.lower(),
            "running": self.is_running,
            "remote_root": self._remote_root,
            "local_root": str(self._local_root),
            "check_interval_seconds": self._check_interval,
            "error_retry_delay_seconds": self._error_retry_delay,
            "poll_count": self._poll_count,
            "error_count": self._error_count,
            "last_poll_at": self._last_poll_at.isoformat() if self._last_poll_at else None,
            "last_error": self._last_error,
            "last_result": self._last_result.to_dict() if self._last_result else None,
        }


def _local_size(path: Path) -> int:
    """Get the size of the local copy, 0 if it does not exist."""
    try:
        return path.stat().st_size if path.is_file() else 0
    except OSError:
        return 0
