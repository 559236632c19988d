"""One-shot sync commands for the SporeSync CLI.

Commands:
- scan: Poll the remote tree once and report what changed
- ls: List a remote directory
- download: Download a remote file or directory
- upload: Upload a local file or directory
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from sporesync.cli.config import open_service
from sporesync.core.errors import RemoteAccessError
from sporesync.sync.types import (
    DirectoryProgress,
    FileProgress,
    ItemStatus,
    ProgressEvent,
    TransferResult,
)


def _format_size(size: int) -> str:
    """Format a byte count for display."""
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def _echo_progress(event: ProgressEvent) -> None:
    """Print completed files and directory steps."""
    if isinstance(event, FileProgress):
        if event.total_bytes and event.bytes_transferred >= event.total_bytes:
            click.echo(f"  {event.file_name} ({_format_size(event.total_bytes)})")
    elif isinstance(event, DirectoryProgress):
        click.echo(f"  {event.label}: {event.items_processed}/{event.items_total}")


def _report(result: TransferResult, action: str) -> None:
    """Print a transfer result and exit non-zero unless it succeeded."""
    if result.success:
        click.echo(
            f"{action} complete: {result.files_transferred} file(s), "
            f"{_format_size(result.bytes_transferred)}"
        )
        return
    if result.cancelled:
        click.echo(f"{action} cancelled after {result.files_transferred} file(s)", err=True)
    else:
        click.echo(
            f"Error: {action} failed after {result.files_transferred} file(s): {result.error}",
            err=True,
        )
    sys.exit(1)


@click.command()
@click.option("--list", "-l", "show_items", is_flag=True, help="List every tracked item.")
@click.pass_context
def scan(ctx: click.Context, show_items: bool) -> None:
    """Poll the remote tree once and report what changed."""
    service = open_service(ctx.ensure_object(dict).get("config_file"))
    try:
        result = service.poll_now()
    except RemoteAccessError as e:
        click.echo(f"Error: Poll failed: {e}", err=True)
        sys.exit(1)
    finally:
        service.close()

    click.echo(f"Scanned {service.remote_root}: {result.items_seen} item(s)")
    click.echo(f"  New:      {result.new}")
    click.echo(f"  Modified: {result.modified}")
    click.echo(f"  Deleted:  {result.deleted}")

    candidates = service.registry.download_candidates()
    click.echo(f"  Pending downloads: {len(candidates)}")

    if show_items:
        for item in service.registry.items():
            kind = "d" if item.is_directory else "-"
            marker = "" if item.status == ItemStatus.TRACKED else f" [{item.status.value}]"
            click.echo(f"{kind} {item.remote_size:>10} {item.remote_path}{marker}")


@click.command("ls")
@click.argument("path", required=False)
@click.pass_context
def ls(ctx: click.Context, path: str | None) -> None:
    """List a remote directory (the monitored root by default)."""
    service = open_service(ctx.ensure_object(dict).get("config_file"))
    try:
        entries = service.list_remote(path)
    except RemoteAccessError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        service.close()

    for entry in entries:
        kind = "d" if entry.is_directory else "-"
        modified = entry.last_modified.strftime("%Y-%m-%d %H:%M")
        click.echo(f"{kind} {entry.size:>10} {modified} {entry.name}")


@click.command()
@click.argument("remote_path")
@click.argument("local_path", required=False, type=click.Path())
@click.option("--recursive", "-r", is_flag=True, help="Download a directory tree.")
@click.pass_context
def download(
    ctx: click.Context,
    remote_path: str,
    local_path: str | None,
    recursive: bool,
) -> None:
    """Download a remote file or directory.

    LOCAL_PATH defaults to REMOTE_PATH mapped onto the local root.
    """
    service = open_service(ctx.ensure_object(dict).get("config_file"))
    service.add_progress_listener(_echo_progress)
    try:
        if recursive:
            result = service.download_directory(remote_path, local_path)
        else:
            result = service.download_file(remote_path, local_path)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        service.close()

    _report(result, "Download")


@click.command()
@click.argument("local_path", type=click.Path(exists=True, path_type=Path))
@click.argument("remote_path")
@click.pass_context
def upload(ctx: click.Context, local_path: Path, remote_path: str) -> None:
    """Upload a local file or directory to REMOTE_PATH."""
    service = open_service(ctx.ensure_object(dict).get("config_file"))
    service.add_progress_listener(_echo_progress)
    try:
        if local_path.is_dir():
            result = service.upload_directory(local_path, remote_path)
        else:
            result = service.upload_file(local_path, remote_path)
    finally:
        service.close()

    _report(result, "Upload")
