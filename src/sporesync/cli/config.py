"""Configuration utilities for the SporeSync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from sporesync.core.config import ConfigError, Settings, load_settings
from sporesync.core.errors import RemoteAccessError

if TYPE_CHECKING:
    from sporesync.sync.service import SyncService


def get_config_dir() -> Path:
    """Get the configuration directory for SporeSync.

    Returns:
        Path to ~/.sporesync or equivalent.
    """
    return Path.home() / ".sporesync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config(config_file: Path | None = None) -> dict[str, Any]:
    """Load the raw config document (empty if the file does not exist)."""
    config_file = config_file or get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any], config_file: Path | None = None) -> None:
    """Save the raw config document."""
    config_file = config_file or get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def resolve_settings(config_file: Path | None) -> Settings:
    """Load and validate settings, exiting with an error message on failure.

    Args:
        config_file: Explicit config file (default: ~/.sporesync/config.json).
    """
    try:
        settings = load_settings(config_file or get_config_file())
        settings.validate()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Run 'sporesync init' to create a configuration.", err=True)
        sys.exit(1)
    return settings


def open_service(config_file: Path | None) -> SyncService:
    """Build a connected SyncService, exiting with an error message on failure.

    Args:
        config_file: Explicit config file (default: ~/.sporesync/config.json).

    Returns:
        The connected SyncService.
    """
    from sporesync.sync.service import SyncService

    settings = resolve_settings(config_file)
    try:
        return SyncService.from_settings(settings)
    except RemoteAccessError as e:
        click.echo(f"Error: Cannot connect to remote: {e}", err=True)
        sys.exit(1)
