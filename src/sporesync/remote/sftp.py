"""Remote access over SSH/SFTP.

This module provides:
- SftpRemote: RemoteAccessPort implementation on top of paramiko

The SSH session is opened once, at construction. A dropped session makes
every subsequent call fail with RemoteAccessError until a new SftpRemote is
created. All calls into the session, including per-chunk reads and writes on
open streams, are serialized by a single lock because paramiko's SFTP client
is not safe for concurrent requests.
"""

from __future__ import annotations

import contextlib
import errno
import logging
import stat
import threading
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import IO, TYPE_CHECKING, Any

import paramiko

from sporesync.core.config import AuthType, ConfigError, SshConfig
from sporesync.core.errors import (
    RemoteAccessError,
    RemoteNotFoundError,
    RemotePermissionError,
)
from sporesync.remote.port import RemoteEntry, RemoteStat, join_remote

if TYPE_CHECKING:
    from paramiko import SFTPClient, SFTPFile, SSHClient

logger = logging.getLogger(__name__)

# Errors that mean the session is unusable
CONNECTION_EXCEPTIONS: tuple[type[Exception], ...] = (
    paramiko.SSHException,
    EOFError,
    ConnectionError,
    TimeoutError,
)


@contextlib.contextmanager
def translate_sftp_errors(path: str) -> Iterator[None]:
    """Map paramiko/socket errors to the remote error taxonomy."""
    try:
        yield
    except FileNotFoundError as e:
        raise RemoteNotFoundError(f"Remote path not found: {path}") from e
    except PermissionError as e:
        raise RemotePermissionError(f"Permission denied: {path}") from e
    except CONNECTION_EXCEPTIONS as e:
        raise RemoteAccessError(f"SFTP session error on {path}: {e}") from e
    except OSError as e:
        # paramiko raises IOError with an errno for SFTP status codes
        if e.errno == errno.ENOENT:
            raise RemoteNotFoundError(f"Remote path not found: {path}") from e
        if e.errno == errno.EACCES:
            raise RemotePermissionError(f"Permission denied: {path}") from e
        raise RemoteAccessError(f"SFTP error on {path}: {e}") from e


class _LockedStream:
    """File wrapper that takes the session lock around every call."""

    def __init__(self, handle: SFTPFile, lock: threading.RLock, path: str) -> None:
        self._handle = handle
        self._lock = lock
        self._path = path

    def read(self, size: int = -1) -> bytes:
        with self._lock, translate_sftp_errors(self._path):
            return bytes(self._handle.read(size))

    def write(self, data: bytes) -> int:
        with self._lock, translate_sftp_errors(self._path):
            self._handle.write(data)
        return len(data)

    def close(self) -> None:
        with self._lock, translate_sftp_errors(self._path):
            self._handle.close()

    def __enter__(self) -> _LockedStream:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class SftpRemote:
    """Remote access port over SFTP.

    Usage:
        with SftpRemote(ssh_config) as remote:
            for entry in remote.list("/data"):
                print(entry.full_path, entry.size)
    """

    def __init__(self, config: SshConfig) -> None:
        """Connect and authenticate.

        Args:
            config: SSH connection settings.

        Raises:
            ConfigError: If the authentication settings are incomplete.
            RemoteAccessError: If the connection or authentication fails.
        """
        config.validate()
        self._config = config
        self._lock = threading.RLock()
        self._ssh: SSHClient = paramiko.SSHClient()
        self._sftp: SFTPClient | None = None

        self._ssh.load_system_host_keys()
        if config.known_hosts_path:
            self._ssh.load_host_keys(config.known_hosts_path)
        if config.auto_add_host_keys:
            self._ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        else:
            self._ssh.set_missing_host_key_policy(paramiko.RejectPolicy())

        with self._lock:
            try:
                self._ssh.connect(**self._connect_kwargs(config))
                self._sftp = self._ssh.open_sftp()
            except (*CONNECTION_EXCEPTIONS, OSError) as e:
                self._ssh.close()
                raise RemoteAccessError(
                    f"Failed to connect to {config.username}@{config.host}:{config.port}: {e}"
                ) from e

        logger.info("Connected to SFTP server %s:%d as %s", config.host, config.port, config.username)

    @staticmethod
    def _connect_kwargs(config: SshConfig) -> dict[str, Any]:
        """Build paramiko connect() arguments for the configured auth type."""
        kwargs: dict[str, Any] = {
            "hostname": config.host,
            "port": config.port,
            "username": config.username,
            "timeout": config.timeout,
            "banner_timeout": config.timeout,
            "allow_agent": False,
            "look_for_keys": False,
        }
        if config.auth_type == AuthType.PASSWORD:
            kwargs["password"] = config.password
        elif config.auth_type == AuthType.PRIVATE_KEY:
            kwargs["key_filename"] = config.private_key_path
            kwargs["passphrase"] = config.private_key_passphrase
        elif config.auth_type == AuthType.PASSWORD_AND_PRIVATE_KEY:
            kwargs["password"] = config.password
            kwargs["key_filename"] = config.private_key_path
            kwargs["passphrase"] = config.private_key_passphrase or config.password
        else:
            raise ConfigError(f"Unsupported authentication type: {config.auth_type}")
        return kwargs

    @property
    def location(self) -> str:
        """Return a human-readable description of the remote."""
        return f"sftp://{self._config.username}@{self._config.host}:{self._config.port}"

    @property
    def sftp(self) -> SFTPClient:
        """Get the SFTP client, failing if the session was closed."""
        if self._sftp is None:
            raise RemoteAccessError("SFTP session is closed")
        return self._sftp

    def list(self, path: str) -> list[RemoteEntry]:
        """List a remote directory (skipping . and ..)."""
        with self._lock, translate_sftp_errors(path):
            attrs = self.sftp.listdir_attr(path)
        entries = []
        for attr in attrs:
            if attr.filename in (".", ".."):
                continue
            is_dir = bool(attr.st_mode and stat.S_ISDIR(attr.st_mode))
            entries.append(RemoteEntry(
                name=attr.filename,
                full_path=join_remote(path, attr.filename),
                size=0 if is_dir else attr.st_size or 0,
                last_modified=datetime.fromtimestamp(attr.st_mtime or 0, UTC),
                is_directory=is_dir,
            ))
        return entries

    def read_open(self, path: str) -> IO[bytes]:
        """Open a remote file for reading."""
        with self._lock, translate_sftp_errors(path):
            handle = self.sftp.open(path, "rb")
        return _LockedStream(handle, self._lock, path)  # type: ignore[return-value]

    def write_create(self, path: str) -> IO[bytes]:
        """Create or truncate a remote file for writing."""
        with self._lock, translate_sftp_errors(path):
            handle = self.sftp.open(path, "wb")
        return _LockedStream(handle, self._lock, path)  # type: ignore[return-value]

    def exists(self, path: str) -> bool:
        """Check if a remote path exists."""
        try:
            self.stat(path)
        except RemoteNotFoundError:
            return False
        return True

    def stat(self, path: str) -> RemoteStat:
        """Get size and type of a remote path."""
        with self._lock, translate_sftp_errors(path):
            attr = self.sftp.stat(path)
        is_dir = bool(attr.st_mode and stat.S_ISDIR(attr.st_mode))
        return RemoteStat(
            size=0 if is_dir else attr.st_size or 0,
            is_directory=is_dir,
            last_modified=datetime.fromtimestamp(attr.st_mtime or 0, UTC),
        )

    def mkdir(self, path: str) -> None:
        """Create a remote directory."""
        with self._lock, translate_sftp_errors(path):
            self.sftp.mkdir(path)
        logger.debug("Created remote directory %s", path)

    def delete(self, path: str) -> None:
        """Delete a remote file."""
        with self._lock, translate_sftp_errors(path):
            self.sftp.remove(path)
        logger.info("Deleted remote file %s", path)

    def close(self) -> None:
        """Close the SFTP and SSH sessions."""
        with self._lock:
            if self._sftp is not None:
                with contextlib.suppress(*CONNECTION_EXCEPTIONS, OSError):
                    self._sftp.close()
                self._sftp = None
            self._ssh.close()
        logger.info("Disconnected from SFTP server %s", self._config.host)

    def __enter__(self) -> SftpRemote:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
