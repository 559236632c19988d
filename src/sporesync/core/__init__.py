"""Core module - Shared configuration, errors, and hashing."""

from sporesync.core.config import (
    AuthType,
    ConfigError,
    MonitorConfig,
    PathConfig,
    Settings,
    SshConfig,
    load_settings,
)
from sporesync.core.errors import (
    RemoteAccessError,
    RemoteNotFoundError,
    RemotePermissionError,
    SyncError,
    TransferCancelledError,
)
from sporesync.core.hashing import compute_file_hash

__all__ = [
    # Config
    "AuthType",
    "ConfigError",
    "MonitorConfig",
    "PathConfig",
    "Settings",
    "SshConfig",
    "load_settings",
    # Errors
    "RemoteAccessError",
    "RemoteNotFoundError",
    "RemotePermissionError",
    "SyncError",
    "TransferCancelledError",
    # Hashing
    "compute_file_hash",
]
