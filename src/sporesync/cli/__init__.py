"""Command-line interface for SporeSync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- init: Write a configuration file
- scan: Poll the remote tree once
- ls: List a remote directory
- download: Download a remote file or directory
- upload: Upload a local file or directory
- serve: Run the control server
- status: Show the status of a running server
- watch-progress: Stream transfer progress from a running server
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from sporesync.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
)
from sporesync.cli.init import init
from sporesync.cli.server import serve, status, watch_progress
from sporesync.cli.sync import download, ls, scan, upload


@click.group()
@click.version_option(package_name="sporesync")
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="SPORESYNC_CONFIG",
    default=None,
    help="Config file (default: ~/.sporesync/config.json).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_file: Path | None, verbose: bool) -> None:
    """SporeSync - mirror a remote directory tree onto the local disk."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


# Setup
cli.add_command(init)

# One-shot commands
cli.add_command(scan)
cli.add_command(ls)
cli.add_command(download)
cli.add_command(upload)

# Server commands
cli.add_command(serve)
cli.add_command(status)
cli.add_command(watch_progress)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]
