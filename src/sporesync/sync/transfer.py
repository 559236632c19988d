"""Transfer executor: moves files and directory trees across the remote port.

This module provides:
- TransferExecutor: Chunked file copy and recursive directory copy in either
  direction, with progress reporting and cancellation

Upload and download share one algorithm. The direction only selects which
endpoint (local filesystem or remote port) is the source and which is the
destination.

Every public operation returns a TransferResult. Exceptions raised while
copying are caught at the public boundary and turned into a FAILED or
CANCELLED outcome; files that landed before the failure stay where they are
and are counted in files_transferred.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING, Protocol

from sporesync.core.config import DEFAULT_CHUNK_SIZE
from sporesync.remote.port import join_remote, normalize_remote_path
from sporesync.sync.types import (
    CancellationToken,
    DirectoryProgress,
    FileProgress,
    ProgressEvent,
    ProgressSink,
    RemoteAccessError,
    TransferCancelledError,
    TransferDirection,
    TransferOutcome,
    TransferResult,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from sporesync.remote.port import RemoteAccessPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Child:
    """One immediate entry of a source directory."""

    name: str
    path: str
    is_directory: bool


@dataclass
class _Counters:
    """Running totals for one public transfer call."""

    files: int = 0
    bytes: int = 0


class _Endpoint(Protocol):
    """One side of a transfer."""

    def open_read(self, path: str) -> IO[bytes]: ...

    def open_write(self, path: str) -> IO[bytes]: ...

    def size(self, path: str) -> int: ...

    def children(self, path: str) -> list[_Child]: ...

    def ensure_dir(self, path: str) -> None: ...

    def join(self, parent: str, name: str) -> str: ...

    def name(self, path: str) -> str: ...


class _LocalEndpoint:
    """Local filesystem side. Missing parent directories are created on write."""

    def open_read(self, path: str) -> IO[bytes]:
        return open(path, "rb")

    def open_write(self, path: str) -> IO[bytes]:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return open(path, "wb")

    def size(self, path: str) -> int:
        return Path(path).stat().st_size

    def children(self, path: str) -> list[_Child]:
        return [
            _Child(name=p.name, path=str(p), is_directory=p.is_dir())
            for p in sorted(Path(path).iterdir(), key=lambda p: p.name)
        ]

    def ensure_dir(self, path: str) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def join(self, parent: str, name: str) -> str:
        return str(Path(parent) / name)

    def name(self, path: str) -> str:
        return Path(path).name


class _RemoteEndpoint:
    """Remote port side. Children come back in the port's enumeration order."""

    def __init__(self, port: RemoteAccessPort) -> None:
        self._port = port

    def open_read(self, path: str) -> IO[bytes]:
        return self._port.read_open(path)

    def open_write(self, path: str) -> IO[bytes]:
        return self._port.write_create(path)

    def size(self, path: str) -> int:
        return self._port.stat(path).size

    def children(self, path: str) -> list[_Child]:
        return [
            _Child(name=e.name, path=e.full_path, is_directory=e.is_directory)
            for e in self._port.list(path)
        ]

    def ensure_dir(self, path: str) -> None:
        path = normalize_remote_path(path)
        if self._port.exists(path):
            if not self._port.stat(path).is_directory:
                raise RemoteAccessError(f"Remote path is not a directory: {path}")
            return
        parent = posixpath.dirname(path)
        if parent and parent != path:
            self.ensure_dir(parent)
        self._port.mkdir(path)

    def join(self, parent: str, name: str) -> str:
        return join_remote(parent, name)

    def name(self, path: str) -> str:
        return posixpath.basename(normalize_remote_path(path)) or "/"


class TransferExecutor:
    """Moves files and directory trees between the local disk and a remote port.

    The remote session is owned by the port, which connects once at
    construction. A dropped session makes every later call fail until the
    port is recreated.

    Usage:
        executor = TransferExecutor(remote)
        result = executor.download_file("/data/a.txt", "/mirror/a.txt")
        if not result:
            print(result.error)
    """

    def __init__(
        self,
        remote: RemoteAccessPort,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress: ProgressSink | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            remote: Remote access port to transfer through.
            chunk_size: Bytes read and written per chunk.
            progress: Default progress sink, used when a call passes none.
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._remote = remote
        self._chunk_size = chunk_size
        self._default_progress = progress
        self._local_endpoint = _LocalEndpoint()
        self._remote_endpoint = _RemoteEndpoint(remote)

    @property
    def chunk_size(self) -> int:
        """Get the chunk size in bytes."""
        return self._chunk_size

    @property
    def remote(self) -> RemoteAccessPort:
        """Get the remote port."""
        return self._remote

    # =========================================================================
    # Public API
    # =========================================================================

    def transfer_file(
        self,
        source: str | Path,
        dest: str | Path,
        direction: TransferDirection,
        progress: ProgressSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Copy one file in the given direction.

        The source is read in chunk_size pieces and each piece is written to
        the destination immediately. A FileProgress event follows every
        chunk, then the cancellation token is checked. A cancelled transfer
        leaves the partial destination file in place.

        Args:
            source: Source path (local for UPLOAD, remote for DOWNLOAD).
            dest: Destination path (remote for UPLOAD, local for DOWNLOAD).
            direction: Transfer direction.
            progress: Progress sink (falls back to the executor default).
            cancel: Cancellation token.

        Returns:
            TransferResult with the outcome and counts.
        """
        src, dst = self._endpoints(direction)
        sink = progress or self._default_progress
        return self._run(
            f"{direction.name.lower()} of {source}",
            lambda counters: self._copy_file(
                src, dst, str(source), str(dest), sink, cancel, counters
            ),
        )

    def transfer_directory(
        self,
        source_root: str | Path,
        dest_root: str | Path,
        direction: TransferDirection,
        progress: ProgressSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Copy a directory tree in the given direction.

        The destination root is created if absent. Immediate entries are
        processed in enumeration order: subdirectories recurse, files go
        through the chunked copy. After each child a DirectoryProgress event
        is emitted and the cancellation token is checked.

        Args:
            source_root: Source directory.
            dest_root: Destination directory.
            direction: Transfer direction.
            progress: Progress sink (falls back to the executor default).
            cancel: Cancellation token.

        Returns:
            TransferResult with the outcome and counts.
        """
        src, dst = self._endpoints(direction)
        sink = progress or self._default_progress
        return self._run(
            f"directory {direction.name.lower()} of {source_root}",
            lambda counters: self._copy_directory(
                src, dst, str(source_root), str(dest_root), sink, cancel, counters
            ),
        )

    def upload_file(
        self,
        local_path: str | Path,
        remote_path: str,
        progress: ProgressSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Upload a local file to a remote path."""
        return self.transfer_file(local_path, remote_path, TransferDirection.UPLOAD, progress, cancel)

    def download_file(
        self,
        remote_path: str,
        local_path: str | Path,
        progress: ProgressSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Download a remote file to a local path."""
        return self.transfer_file(remote_path, local_path, TransferDirection.DOWNLOAD, progress, cancel)

    def upload_directory(
        self,
        local_dir: str | Path,
        remote_dir: str,
        progress: ProgressSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Upload a local directory tree to a remote directory."""
        return self.transfer_directory(local_dir, remote_dir, TransferDirection.UPLOAD, progress, cancel)

    def download_directory(
        self,
        remote_dir: str,
        local_dir: str | Path,
        progress: ProgressSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> TransferResult:
        """Download a remote directory tree to a local directory."""
        return self.transfer_directory(remote_dir, local_dir, TransferDirection.DOWNLOAD, progress, cancel)

    def delete_remote(self, remote_path: str) -> TransferResult:
        """Delete a remote file."""

        def _delete(counters: _Counters) -> None:
            self._remote.delete(remote_path)
            counters.files += 1

        return self._run(f"delete of {remote_path}", _delete)

    # =========================================================================
    # Internals
    # =========================================================================

    def _endpoints(self, direction: TransferDirection) -> tuple[_Endpoint, _Endpoint]:
        """Get (source, destination) endpoints for a direction."""
        if direction == TransferDirection.UPLOAD:
            return self._local_endpoint, self._remote_endpoint
        return self._remote_endpoint, self._local_endpoint

    def _run(
        self,
        description: str,
        operation: Callable[[_Counters], None],
    ) -> TransferResult:
        """Run an operation and convert its exceptions to a TransferResult."""
        counters = _Counters()
        try:
            operation(counters)
        except TransferCancelledError:
            logger.info(
                "Cancelled %s after %d file(s), %d bytes",
                description,
                counters.files,
                counters.bytes,
            )
            return TransferResult(
                outcome=TransferOutcome.CANCELLED,
                files_transferred=counters.files,
                bytes_transferred=counters.bytes,
                error="Transfer cancelled",
            )
        except Exception as e:
            logger.warning(
                "Failed %s after %d file(s): %s", description, counters.files, e
            )
            return TransferResult(
                outcome=TransferOutcome.FAILED,
                files_transferred=counters.files,
                bytes_transferred=counters.bytes,
                error=str(e) or type(e).__name__,
            )

        logger.debug(
            "Completed %s: %d file(s), %d bytes",
            description,
            counters.files,
            counters.bytes,
        )
        return TransferResult(
            outcome=TransferOutcome.SUCCESS,
            files_transferred=counters.files,
            bytes_transferred=counters.bytes,
        )

    def _copy_file(
        self,
        src: _Endpoint,
        dst: _Endpoint,
        source: str,
        dest: str,
        progress: ProgressSink | None,
        cancel: CancellationToken | None,
        counters: _Counters,
    ) -> None:
        """Stream one file from src to dst in chunks."""
        if cancel is not None:
            cancel.raise_if_cancelled()

        total = src.size(source)
        file_name = src.name(source)
        transferred = 0

        with src.open_read(source) as reader, dst.open_write(dest) as writer:
            while True:
                chunk = reader.read(self._chunk_size)
                if not chunk:
                    break
                writer.write(chunk)
                transferred += len(chunk)
                counters.bytes += len(chunk)
                self._emit(progress, FileProgress(file_name, transferred, total))
                if cancel is not None:
                    cancel.raise_if_cancelled()

        counters.files += 1
        logger.debug("Copied %s -> %s (%d bytes)", source, dest, transferred)

    def _copy_directory(
        self,
        src: _Endpoint,
        dst: _Endpoint,
        source_root: str,
        dest_root: str,
        progress: ProgressSink | None,
        cancel: CancellationToken | None,
        counters: _Counters,
    ) -> None:
        """Copy the immediate entries of source_root, recursing into subdirectories."""
        if cancel is not None:
            cancel.raise_if_cancelled()

        dst.ensure_dir(dest_root)
        children = src.children(source_root)
        label = f"Directory: {src.name(source_root)}"

        for processed, child in enumerate(children, start=1):
            child_dest = dst.join(dest_root, child.name)
            if child.is_directory:
                self._copy_directory(src, dst, child.path, child_dest, progress, cancel, counters)
            else:
                self._copy_file(src, dst, child.path, child_dest, progress, cancel, counters)
            self._emit(progress, DirectoryProgress(label, processed, len(children)))
            if cancel is not None:
                cancel.raise_if_cancelled()

    @staticmethod
    def _emit(progress: ProgressSink | None, event: ProgressEvent) -> None:
        """Deliver a progress event; a failing sink never aborts the transfer."""
        if progress is None:
            return
        try:
            progress(event)
        except TransferCancelledError:
            raise
        except Exception:
            logger.exception("Progress sink raised while handling %s", type(event).__name__)
