"""Init command for the SporeSync CLI.

Commands:
- init: Write a configuration file
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from sporesync.cli.config import get_config_file, load_config, save_config
from sporesync.core.config import AuthType, ConfigError, Settings


@click.command()
@click.option("--remote-path", required=True, help="Remote directory to mirror.")
@click.option(
    "--local-path",
    type=click.Path(file_okay=False),
    required=True,
    help="Local directory the remote tree is mirrored into.",
)
@click.option("--host", default=None, help="SSH host (SFTP remotes).")
@click.option("--port", type=int, default=22, show_default=True, help="SSH port.")
@click.option("--username", "-u", default=None, help="SSH username.")
@click.option(
    "--auth-type",
    type=click.Choice([a.value for a in AuthType]),
    default=AuthType.PASSWORD.value,
    show_default=True,
    help="SSH authentication method.",
)
@click.option("--password", default=None, help="SSH password (prefer SPORESYNC_SSH_PASSWORD).")
@click.option(
    "--private-key",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the SSH private key.",
)
@click.option(
    "--local-remote",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Use a locally mounted directory as the remote instead of SFTP.",
)
@click.option("--check-interval", type=float, default=30.0, show_default=True, help="Seconds between polls.")
@click.option("--retry-delay", type=float, default=60.0, show_default=True, help="Seconds to wait after a failed poll.")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration.")
@click.pass_context
def init(
    ctx: click.Context,
    remote_path: str,
    local_path: str,
    host: str | None,
    port: int,
    username: str | None,
    auth_type: str,
    password: str | None,
    private_key: str | None,
    local_remote: str | None,
    check_interval: float,
    retry_delay: float,
    force: bool,
) -> None:
    """Create the SporeSync configuration file.

    Examples:

        # Mirror /data from an SFTP server using a key
        sporesync init --remote-path /data --local-path ~/mirror \\
            --host files.example.com -u sync --auth-type private_key \\
            --private-key ~/.ssh/id_ed25519

        # Mirror a mounted share
        sporesync init --remote-path / --local-path ~/mirror --local-remote /mnt/share
    """
    config_file: Path = ctx.ensure_object(dict).get("config_file") or get_config_file()

    if load_config(config_file) and not force:
        click.echo(f"Error: Configuration already exists: {config_file}", err=True)
        click.echo("Use --force to overwrite it.", err=True)
        sys.exit(1)

    config: dict[str, object] = {
        "paths": {"remote_path": remote_path, "local_path": local_path},
        "monitor": {
            "check_interval_seconds": check_interval,
            "error_retry_delay_seconds": retry_delay,
        },
    }
    if local_remote:
        config["remote_type"] = "local"
        config["local_remote_root"] = str(Path(local_remote).resolve())
    else:
        ssh: dict[str, object] = {
            "host": host or "",
            "port": port,
            "username": username or "",
            "auth_type": auth_type,
        }
        if password:
            ssh["password"] = password
        if private_key:
            ssh["private_key_path"] = private_key
        config["remote_type"] = "sftp"
        config["ssh"] = ssh

    # Passwords may come from the environment later, so only structure is checked here
    try:
        Settings.from_dict(config)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    save_config(config, config_file)
    click.echo(f"Configuration written to {config_file}")
