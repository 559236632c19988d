"""Remote access over a locally mounted directory tree.

Useful for network shares mounted into the local filesystem, and as the
remote side in tests. Remote paths are POSIX paths resolved under a base
directory: with base ``/mnt/share`` the remote path ``/data/a.txt`` maps to
``/mnt/share/data/a.txt``.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import IO

from sporesync.core.errors import (
    RemoteAccessError,
    RemoteNotFoundError,
    RemotePermissionError,
)
from sporesync.remote.port import RemoteEntry, RemoteStat, join_remote, normalize_remote_path

logger = logging.getLogger(__name__)


def _anchor(path: str) -> str:
    return normalize_remote_path("/" + path)


@contextlib.contextmanager
def translate_os_errors(path: str) -> Iterator[None]:
    """Map OSError subclasses to the remote error taxonomy."""
    try:
        yield
    except FileNotFoundError as e:
        raise RemoteNotFoundError(f"Remote path not found: {path}") from e
    except PermissionError as e:
        raise RemotePermissionError(f"Permission denied: {path}") from e
    except OSError as e:
        raise RemoteAccessError(f"Remote access failed for {path}: {e}") from e


class LocalFSRemote:
    """Remote access port backed by a local directory."""

    def __init__(self, base_path: Path | str) -> None:
        """Initialize the local remote.

        Args:
            base_path: Directory that plays the role of the remote "/".
        """
        self._base_path = Path(base_path).resolve()
        if not self._base_path.is_dir():
            raise RemoteNotFoundError(f"Base directory not found: {self._base_path}")

    @property
    def location(self) -> str:
        """Return a human-readable description of the remote."""
        return f"Local filesystem: {self._base_path}"

    def _resolve(self, path: str) -> Path:
        """Get the local path backing a remote path.

        Relative paths are anchored at the remote "/" before normalizing, so
        ".." segments stop at the base directory.
        """
        relative = _anchor(path).lstrip("/")
        return self._base_path / relative if relative else self._base_path

    def list(self, path: str) -> list[RemoteEntry]:
        """List a directory, sorted by name for stable enumeration order."""
        local = self._resolve(path)
        entries: list[RemoteEntry] = []
        with translate_os_errors(path):
            children = sorted(local.iterdir(), key=lambda p: p.name)
            for child in children:
                st = child.stat()
                entries.append(RemoteEntry(
                    name=child.name,
                    full_path=join_remote(_anchor(path), child.name),
                    size=0 if child.is_dir() else st.st_size,
                    last_modified=datetime.fromtimestamp(st.st_mtime, UTC),
                    is_directory=child.is_dir(),
                ))
        return entries

    def read_open(self, path: str) -> IO[bytes]:
        """Open a file for reading."""
        with translate_os_errors(path):
            return open(self._resolve(path), "rb")

    def write_create(self, path: str) -> IO[bytes]:
        """Create or truncate a file for writing."""
        with translate_os_errors(path):
            return open(self._resolve(path), "wb")

    def exists(self, path: str) -> bool:
        """Check if a path exists."""
        with translate_os_errors(path):
            return self._resolve(path).exists()

    def stat(self, path: str) -> RemoteStat:
        """Get size and type of a path."""
        local = self._resolve(path)
        with translate_os_errors(path):
            st = local.stat()
            is_dir = local.is_dir()
        return RemoteStat(
            size=0 if is_dir else st.st_size,
            is_directory=is_dir,
            last_modified=datetime.fromtimestamp(st.st_mtime, UTC),
        )

    def mkdir(self, path: str) -> None:
        """Create a directory."""
        with translate_os_errors(path):
            self._resolve(path).mkdir()
        logger.debug("Created remote directory %s", path)

    def delete(self, path: str) -> None:
        """Delete a file."""
        with translate_os_errors(path):
            self._resolve(path).unlink()
        logger.debug("Deleted remote file %s", path)

    def close(self) -> None:
        """Nothing to release for a local directory."""
