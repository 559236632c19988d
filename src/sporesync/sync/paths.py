"""Mapping between the monitored remote root and the local mirror."""

from __future__ import annotations

import posixpath
from pathlib import Path, PurePosixPath

from sporesync.remote.port import normalize_remote_path


def is_under_root(remote_root: str, remote_path: str) -> bool:
    """Check if a remote path is the root itself or lies below it."""
    root = normalize_remote_path(remote_root)
    path = normalize_remote_path(remote_path)
    if root == "/":
        return path.startswith("/")
    return path == root or path.startswith(root + "/")


def relative_remote_path(remote_root: str, remote_path: str) -> str:
    """Get a remote path relative to the root ("" for the root itself).

    Raises:
        ValueError: If the path is outside the root.
    """
    if not is_under_root(remote_root, remote_path):
        raise ValueError(f"{remote_path} is outside the monitored root {remote_root}")
    relative = posixpath.relpath(
        normalize_remote_path(remote_path), normalize_remote_path(remote_root)
    )
    return "" if relative == "." else relative


def local_path_for(remote_root: str, local_root: Path, remote_path: str) -> Path:
    """Map a remote path onto the local root, preserving relative structure.

    Example:
        local_path_for("/data", Path("/mirror"), "/data/sub/b.txt")
        -> Path("/mirror/sub/b.txt")
    """
    relative = relative_remote_path(remote_root, remote_path)
    if not relative:
        return local_root
    return local_root.joinpath(*PurePosixPath(relative).parts)


def file_extension(name: str) -> str | None:
    """Get the lower-case extension of a file name, without the dot."""
    suffix = PurePosixPath(name).suffix
    return suffix[1:].lower() if suffix else None
