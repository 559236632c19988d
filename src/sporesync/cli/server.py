"""Server commands for the SporeSync CLI.

Commands:
- serve: Run the control server (monitor + queue drain + HTTP API)
- status: Show the status of a running server
- watch-progress: Stream transfer progress from a running server
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

import click
import httpx
import websockets
from websockets.exceptions import WebSocketException

from sporesync.cli.config import open_service

DEFAULT_SERVER_URL = os.environ.get("SPORESYNC_SERVER_URL", "http://127.0.0.1:8000")


def to_ws_url(server_url: str) -> str:
    """Get the progress WebSocket URL for a server URL."""
    base = server_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return base + "/ws/progress"


def format_progress_message(data: dict[str, Any]) -> str:
    """Format a progress message for one terminal line."""
    msg_type = data.get("type")
    if msg_type == "file_progress":
        return (
            f"{data.get('file_name')}: {data.get('bytes_transferred')}/"
            f"{data.get('total_bytes')} bytes ({data.get('percentage', 0.0):.1f}%)"
        )
    if msg_type == "directory_progress":
        return f"{data.get('label')}: {data.get('items_processed')}/{data.get('items_total')}"
    return json.dumps(data)


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", type=int, default=8000, show_default=True, help="Bind port.")
@click.option("--no-monitor", is_flag=True, help="Start without the monitor and queue drain.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write logs to this file.",
)
@click.pass_context
def serve(
    ctx: click.Context,
    host: str,
    port: int,
    no_monitor: bool,
    log_file: Path | None,
) -> None:
    """Run the control server.

    Starts the path monitor and queue drain, and serves the HTTP API and the
    /ws/progress WebSocket.
    """
    import uvicorn

    from sporesync.server.app import create_app, setup_logging

    obj = ctx.ensure_object(dict)
    setup_logging(log_file, level=logging.DEBUG if obj.get("verbose") else logging.INFO)

    service = open_service(obj.get("config_file"))
    app = create_app(service, start_monitoring=not no_monitor, close_service=True)

    click.echo(f"Serving on http://{host}:{port} (remote root: {service.remote_root})")
    uvicorn.run(app, host=host, port=port, log_level="info")


@click.command()
@click.option("--server", "server_url", default=DEFAULT_SERVER_URL, show_default=True, help="Server URL.")
def status(server_url: str) -> None:
    """Show the status of a running server."""
    try:
        response = httpx.get(f"{server_url.rstrip('/')}/api/sync/status", timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        click.echo(f"Error: Cannot reach server at {server_url}: {e}", err=True)
        sys.exit(1)

    data = response.json()
    monitor = data.get("monitor", {})
    registry = data.get("registry", {})
    queue = data.get("queue", {})

    click.echo(f"Remote:      {data.get('remote')}")
    click.echo(f"Monitoring:  {'yes' if data.get('monitoring') else 'no'} ({monitor.get('state')})")
    click.echo(f"Remote root: {monitor.get('remote_root')}")
    click.echo(f"Polls:       {monitor.get('poll_count', 0)} ok, {monitor.get('error_count', 0)} failed")
    if monitor.get("last_error"):
        click.echo(f"Last error:  {monitor['last_error']}")
    click.echo(
        f"Items:       {registry.get('total', 0)} tracked, "
        f"{registry.get('synced', 0)} synced, {registry.get('sync_error', 0)} errors"
    )
    click.echo(f"Queue:       {queue.get('total', 0)} pending")


@click.command("watch-progress")
@click.option("--server", "server_url", default=DEFAULT_SERVER_URL, show_default=True, help="Server URL.")
@click.option("--count", "-n", type=int, default=None, help="Exit after N messages.")
def watch_progress(server_url: str, count: int | None) -> None:
    """Stream transfer progress from a running server."""
    ws_url = to_ws_url(server_url)
    try:
        asyncio.run(_watch(ws_url, count))
    except (OSError, WebSocketException) as e:
        click.echo(f"Error: Cannot connect to {ws_url}: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


async def _watch(ws_url: str, count: int | None) -> None:
    """Print progress messages until the count is reached or the server closes."""
    received = 0
    async with websockets.connect(ws_url, open_timeout=10, close_timeout=5) as ws:
        click.echo(f"Watching {ws_url} (Ctrl+C to stop)")
        async for message in ws:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                continue
            click.echo(format_progress_message(data))
            received += 1
            if count is not None and received >= count:
                break
