"""Remote access port and its implementations."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from sporesync.remote.localfs import LocalFSRemote
from sporesync.remote.port import (
    RemoteAccessPort,
    RemoteEntry,
    RemoteStat,
    join_remote,
    normalize_remote_path,
)

if TYPE_CHECKING:
    from sporesync.core.config import Settings


def create_remote(settings: Settings) -> RemoteAccessPort:
    """Create the remote access port selected by the settings.

    The SFTP implementation is imported lazily so that local-only setups do
    not need an SSH session.

    Raises:
        ConfigError: If the settings are invalid.
        RemoteAccessError: If the remote cannot be reached.
    """
    settings.validate()
    if settings.remote_type == "local":
        return LocalFSRemote(Path(settings.local_remote_root or ".").expanduser())

    from sporesync.remote.sftp import SftpRemote

    return SftpRemote(settings.ssh)


__all__ = [
    "LocalFSRemote",
    "RemoteAccessPort",
    "RemoteEntry",
    "RemoteStat",
    "create_remote",
    "join_remote",
    "normalize_remote_path",
]
