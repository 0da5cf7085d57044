"""Command-line interface for scoresync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- record: Store a completed game
- games: List stored games
- leaderboard: Show win counts
- export: Write the games payload for another device
- import: Merge a payload from another device
- exchange: Two-way sync through payload files
- serve: Accept a peer over the stream link
- sync: Connect to a peer over the stream link
- compat: Show available sync methods
- config: Show or change settings
"""

from __future__ import annotations

import click

from scoresync import __version__
from scoresync.cli.config import (
    get_config_dir,
    get_config_file,
    get_device_name,
    get_store_path,
    load_config,
    save_config,
    setup_logging,
)
from scoresync.cli.games import games, leaderboard, record
from scoresync.cli.snapshot import exchange, export_cmd, import_cmd
from scoresync.cli.sync import compat, serve, sync

CONFIG_KEYS = ("device_name", "peer_url")


@click.group()
@click.version_option(__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
def cli(verbose: bool) -> None:
    """scoresync - Carcassonne scores with device-to-device sync."""
    setup_logging(verbose)


@click.command("config")
@click.argument("key", type=click.Choice(CONFIG_KEYS), required=False)
@click.argument("value", required=False)
def config_cmd(key: str | None, value: str | None) -> None:
    """Show settings, or set KEY to VALUE."""
    config = load_config()
    if key is None:
        for name in CONFIG_KEYS:
            click.echo(f"{name} = {config.get(name, '')}")
        return
    if value is None:
        click.echo(config.get(key, ""))
        return
    config[key] = value
    save_config(config)
    click.echo(f"Set {key} = {value}")


# Game history commands
cli.add_command(record)
cli.add_command(games)
cli.add_command(leaderboard)

# Snapshot commands
cli.add_command(export_cmd)
cli.add_command(import_cmd)
cli.add_command(exchange)

# Stream link commands
cli.add_command(serve)
cli.add_command(sync)
cli.add_command(compat)

cli.add_command(config_cmd)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "get_device_name",
    "get_store_path",
    "load_config",
    "save_config",
]
