"""Configuration classes for sporesync.

This module defines the settings consumed by the sync core and its outer
surfaces (remote session, HTTP server, CLI). Settings come from a JSON file
with ``SPORESYNC_*`` environment variable overrides.

Example config.json:
    {
        "paths": {"remote_path": "/data", "local_path": "~/mirror"},
        "monitor": {"check_interval_seconds": 30, "error_retry_delay_seconds": 60},
        "ssh": {"host": "files.example.com", "username": "sync",
                "auth_type": "private_key", "private_key_path": "~/.ssh/id_ed25519"}
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_CHECK_INTERVAL = 30.0  # seconds
DEFAULT_ERROR_RETRY_DELAY = 60.0  # seconds
DEFAULT_CHUNK_SIZE = 8192  # bytes


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""


class AuthType(str, Enum):
    """SSH authentication method."""

    PASSWORD = "password"
    PRIVATE_KEY = "private_key"
    PASSWORD_AND_PRIVATE_KEY = "password_and_private_key"


@dataclass
class SshConfig:
    """Configuration for connecting to the remote SSH/SFTP host.

    Attributes:
        host: Hostname or IP of the remote host.
        port: SSH port.
        username: Login user.
        password: Password (password auth, or both).
        private_key_path: Path to a private key file (key auth, or both).
        private_key_passphrase: Passphrase protecting the private key.
        timeout: Connection timeout in seconds.
        auth_type: Authentication method.
        known_hosts_path: Extra known_hosts file to load.
        auto_add_host_keys: Accept unknown host keys (default False).
    """

    host: str = ""
    port: int = 22
    username: str = ""
    password: str | None = None
    private_key_path: str | None = None
    private_key_passphrase: str | None = None
    timeout: float = 30.0
    auth_type: AuthType = AuthType.PASSWORD
    known_hosts_path: str | None = None
    auto_add_host_keys: bool = False

    def __post_init__(self) -> None:
        """Coerce enum values loaded from JSON."""
        self.auth_type = AuthType(self.auth_type)
        self.port = int(self.port)

    def validate(self) -> None:
        """Check that the selected authentication method is usable.

        Raises:
            ConfigError: If required fields are missing.
        """
        if not self.host:
            raise ConfigError("SSH host is required")
        if not self.username:
            raise ConfigError("SSH username is required")
        if self.auth_type == AuthType.PASSWORD and not self.password:
            raise ConfigError("Password is required for password authentication")
        if (
            self.auth_type in (AuthType.PRIVATE_KEY, AuthType.PASSWORD_AND_PRIVATE_KEY)
            and not self.private_key_path
        ):
            raise ConfigError(
                f"Private key path is required for {self.auth_type.value} authentication"
            )


@dataclass
class PathConfig:
    """Remote root to monitor and the local root it mirrors onto."""

    remote_path: str = "/"
    local_path: str = "."

    @property
    def local_root(self) -> Path:
        """Get the local root as an absolute path."""
        return Path(self.local_path).expanduser().resolve()


@dataclass
class MonitorConfig:
    """Polling and transfer tuning."""

    check_interval_seconds: float = DEFAULT_CHECK_INTERVAL
    error_retry_delay_seconds: float = DEFAULT_ERROR_RETRY_DELAY
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def validate(self) -> None:
        """Check that intervals and chunk size are positive."""
        if self.check_interval_seconds <= 0:
            raise ConfigError("check_interval_seconds must be positive")
        if self.error_retry_delay_seconds <= 0:
            raise ConfigError("error_retry_delay_seconds must be positive")
        if self.chunk_size <= 0:
            raise ConfigError("chunk_size must be positive")


@dataclass
class Settings:
    """Top-level settings.

    Attributes:
        paths: Remote and local roots.
        monitor: Poll interval, retry delay, chunk size.
        ssh: SFTP connection settings (remote_type "sftp").
        remote_type: "sftp" or "local".
        local_remote_root: Base directory for remote_type "local".
    """

    paths: PathConfig = field(default_factory=PathConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    ssh: SshConfig = field(default_factory=SshConfig)
    remote_type: str = "sftp"
    local_remote_root: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Build settings from a parsed JSON document.

        Raises:
            ConfigError: If a section contains unknown keys.
        """
        try:
            return cls(
                paths=PathConfig(**data.get("paths", {})),
                monitor=MonitorConfig(**data.get("monitor", {})),
                ssh=SshConfig(**data.get("ssh", {})),
                remote_type=data.get("remote_type", "sftp"),
                local_remote_root=data.get("local_remote_root"),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def validate(self) -> None:
        """Validate the settings for the selected remote type."""
        self.monitor.validate()
        if self.remote_type == "sftp":
            self.ssh.validate()
        elif self.remote_type == "local":
            if not self.local_remote_root:
                raise ConfigError("local_remote_root is required for remote_type 'local'")
        else:
            raise ConfigError(f"Unknown remote_type: {self.remote_type}")


# Environment variable -> (section, key, converter)
_ENV_OVERRIDES: dict[str, tuple[str | None, str, type]] = {
    "SPORESYNC_REMOTE_PATH": ("paths", "remote_path", str),
    "SPORESYNC_LOCAL_PATH": ("paths", "local_path", str),
    "SPORESYNC_CHECK_INTERVAL": ("monitor", "check_interval_seconds", float),
    "SPORESYNC_ERROR_RETRY_DELAY": ("monitor", "error_retry_delay_seconds", float),
    "SPORESYNC_CHUNK_SIZE": ("monitor", "chunk_size", int),
    "SPORESYNC_SSH_HOST": ("ssh", "host", str),
    "SPORESYNC_SSH_PORT": ("ssh", "port", int),
    "SPORESYNC_SSH_USERNAME": ("ssh", "username", str),
    "SPORESYNC_SSH_PASSWORD": ("ssh", "password", str),
    "SPORESYNC_SSH_PRIVATE_KEY": ("ssh", "private_key_path", str),
    "SPORESYNC_SSH_AUTH_TYPE": ("ssh", "auth_type", str),
    "SPORESYNC_REMOTE_TYPE": (None, "remote_type", str),
    "SPORESYNC_LOCAL_REMOTE_ROOT": (None, "local_remote_root", str),
}


def apply_env_overrides(
    data: dict[str, Any],
    environ: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Overlay SPORESYNC_* environment variables onto a config document.

    Args:
        data: Parsed config document (not modified).
        environ: Environment mapping (defaults to os.environ).

    Returns:
        A new document with overrides applied.
    """
    env = os.environ if environ is None else environ
    result: dict[str, Any] = {k: dict(v) if isinstance(v, dict) else v for k, v in data.items()}
    for var, (section, key, convert) in _ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None:
            continue
        try:
            value = convert(raw)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {var}: {raw!r}") from e
        if section is None:
            result[key] = value
        else:
            result.setdefault(section, {})[key] = value
    return result


def load_settings(
    config_file: Path | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """Load settings from a JSON file plus environment overrides.

    Args:
        config_file: Path to config.json (missing file means defaults).
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Parsed (not yet validated) settings.

    Raises:
        ConfigError: If the file is not valid JSON or has unknown keys.
    """
    data: dict[str, Any] = {}
    if config_file is not None and config_file.exists():
        try:
            data = dict(json.loads(config_file.read_text()))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_file}: {e}") from e
    return Settings.from_dict(apply_env_overrides(data, environ))
