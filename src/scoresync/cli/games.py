"""Game history commands for the scoresync CLI.

Commands:
- record: Store a completed game
- games: List stored games
- leaderboard: Show win counts
"""

from __future__ import annotations

import sys

import click

from scoresync.cli.config import get_store_path
from scoresync.core.records import GameRecord, Player
from scoresync.sync.leaderboard import leaderboard as compute_leaderboard
from scoresync.sync.store import LocalRecordStore
from scoresync.sync.types import StorageError


def parse_player(spec: str) -> Player:
    """Parse a NAME:COLOR:SCORE argument.

    Raises:
        click.BadParameter: If the argument is malformed.
    """
    parts = spec.rsplit(":", 2)
    if len(parts) != 3 or not parts[0]:
        raise click.BadParameter(f"expected NAME:COLOR:SCORE, got {spec!r}")
    name, color, raw_score = parts
    try:
        score = int(raw_score)
    except ValueError:
        raise click.BadParameter(f"score must be an integer in {spec!r}") from None
    return Player(name=name, color=color, score=score)


@click.command()
@click.argument("players", nargs=-1, required=True)
@click.option("--date", default=None, help="Completion time (ISO-8601, default: now).")
def record(players: tuple[str, ...], date: str | None) -> None:
    """Store a completed game.

    Each player is given as NAME:COLOR:SCORE, for example:

        scoresync record Alice:red:30 Bob:blue:25
    """
    parsed = [parse_player(spec) for spec in players]
    try:
        game = GameRecord.create(parsed, date=date)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    store = LocalRecordStore(get_store_path())
    try:
        store.append(game)
    except StorageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    click.echo(f"Recorded game of {game.date}. Winner: {', '.join(game.winners)}")


@click.command()
def games() -> None:
    """List stored games."""
    store = LocalRecordStore(get_store_path())
    try:
        records = store.read_all()
    except StorageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    if not records:
        click.echo("No games recorded.")
        return

    for game in records:
        scores = ", ".join(f"{p.name} ({p.color}) {p.score}" for p in game.players)
        click.echo(f"{game.date}  {scores}  -> {', '.join(game.winners)}")


@click.command()
def leaderboard() -> None:
    """Show how many games each player won."""
    store = LocalRecordStore(get_store_path())
    try:
        records = store.read_all()
    except StorageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    entries = compute_leaderboard(records)
    if not entries:
        click.echo("No games recorded.")
        return

    for position, entry in enumerate(entries, start=1):
        click.echo(f"{position}. {entry.name} - {entry.wins} win{'s' if entry.wins != 1 else ''}")
