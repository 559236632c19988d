"""Remote access port: the capability surface the sync core consumes.

Implementations:
- SftpRemote (sftp.py): SSH/SFTP via paramiko
- LocalFSRemote (localfs.py): a locally mounted directory tree

Every call may raise RemoteAccessError (connectivity), RemoteNotFoundError
or RemotePermissionError.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from datetime import datetime
from typing import IO, Protocol, runtime_checkable


@dataclass(frozen=True)
class RemoteEntry:
    """One entry of a remote directory listing."""

    name: str
    full_path: str
    size: int
    last_modified: datetime
    is_directory: bool


@dataclass(frozen=True)
class RemoteStat:
    """Attributes of a single remote path."""

    size: int
    is_directory: bool
    last_modified: datetime | None = None


@runtime_checkable
class RemoteAccessPort(Protocol):
    """Protocol for remote filesystem access.

    Paths are POSIX-style strings. Streams returned by read_open and
    write_create are binary file objects usable as context managers.
    """

    def list(self, path: str) -> list[RemoteEntry]:
        """List the immediate entries of a remote directory."""
        ...

    def read_open(self, path: str) -> IO[bytes]:
        """Open a remote file for reading."""
        ...

    def write_create(self, path: str) -> IO[bytes]:
        """Create (or truncate) a remote file for writing."""
        ...

    def exists(self, path: str) -> bool:
        """Check if a remote path exists."""
        ...

    def stat(self, path: str) -> RemoteStat:
        """Get attributes of a remote path."""
        ...

    def mkdir(self, path: str) -> None:
        """Create a remote directory."""
        ...

    def delete(self, path: str) -> None:
        """Delete a remote file."""
        ...

    def close(self) -> None:
        """Release the underlying session."""
        ...


def normalize_remote_path(path: str) -> str:
    """Normalize a remote path to its canonical registry key.

    Collapses duplicate separators and ``.`` segments and strips trailing
    slashes (except for the root itself).
    """
    if not path:
        return "/"
    normalized = posixpath.normpath(path)
    # posixpath keeps a leading "//" as-is
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def join_remote(parent: str, name: str) -> str:
    """Join a remote directory path and an entry name."""
    return normalize_remote_path(posixpath.join(parent, name))
