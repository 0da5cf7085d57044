"""Snapshot (one-shot payload) commands for the scoresync CLI.

Commands:
- export: Write this device's games as a transferable payload
- import: Merge a payload produced by another device
- exchange: Full two-way payload sync (write own payload, read the peer's)
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from scoresync.cli.config import get_store_path
from scoresync.sync.events import EventBus
from scoresync.sync.manager import SyncManager
from scoresync.sync.store import LocalRecordStore
from scoresync.sync.transport.payload import PayloadTransport
from scoresync.sync.transport.scanner import FileScanner, ScannerResource
from scoresync.sync.types import SyncError, SyncEvent, SyncEventType


@click.command("export")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="File to write (default: stdout).",
)
def export_cmd(output: Path | None) -> None:
    """Export all games as a payload for another device."""
    store = LocalRecordStore(get_store_path())
    try:
        manager = SyncManager(EventBus("transport"), store)
        payload = manager.export_snapshot()
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    if output is None:
        click.echo(payload)
    else:
        output.write_text(payload + "\n", encoding="utf-8")
        click.echo(f"Exported to {output}", err=True)


@click.command("import")
@click.argument("source", type=click.File("r", encoding="utf-8"))
def import_cmd(source: click.utils.LazyFile) -> None:
    """Import games from a payload file (use - for stdin)."""
    payload = source.read()
    store = LocalRecordStore(get_store_path())
    try:
        manager = SyncManager(EventBus("transport"), store)
        result = manager.import_snapshot(payload)
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    if not result.accepted:
        click.echo(f"Import failed: {result.error}", err=True)
        sys.exit(1)

    click.echo(f"Imported {result.added} new game{'s' if result.added != 1 else ''}.")
    for identity in result.conflicts:
        click.echo(f"Warning: kept local version of {identity} (scores differ)", err=True)


@click.command()
@click.argument("peer_payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="File to write this device's payload to.",
)
def exchange(peer_payload: Path, output: Path) -> None:
    """Two-way sync through payload files.

    Writes this device's payload to OUTPUT, then reads and merges the
    peer's PEER_PAYLOAD.
    """
    store = LocalRecordStore(get_store_path())
    try:
        added = asyncio.run(_exchange(store, peer_payload, output))
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    click.echo(f"Wrote {output}. Imported {added} new game{'s' if added != 1 else ''}.")


async def _exchange(store: LocalRecordStore, peer_payload: Path, output: Path) -> int:
    """Run one payload sync; returns the number of games added."""
    bus: EventBus[SyncEvent] = EventBus("transport")
    added = 0

    def on_event(event: SyncEvent) -> None:
        nonlocal added
        if event.type is SyncEventType.SYNC_COMPLETE and event.added is not None:
            added = event.added

    def write_payload(text: str) -> None:
        output.write_text(text + "\n", encoding="utf-8")

    transport = PayloadTransport(
        bus,
        scanner=ScannerResource(FileScanner(peer_payload)),
        on_payload=write_payload,
    )
    manager = SyncManager(bus, store, transport)
    with bus.subscribe(on_event):
        await transport.connect()
        try:
            await manager.sync_with_device()
        finally:
            await transport.disconnect()
            manager.close()
    return added
