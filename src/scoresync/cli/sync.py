"""Stream link commands for the scoresync CLI.

Commands:
- sync: Connect to a peer and exchange games
- serve: Accept a peer's connection and exchange games
- compat: Show which sync methods this device can use
"""

from __future__ import annotations

import asyncio
import sys

import click

from scoresync.cli.config import get_device_name, get_store_path, load_config
from scoresync.core.config import DEFAULT_CHUNK_SIZE, DEFAULT_PORT, PeerConfig
from scoresync.core.types import SyncState
from scoresync.sync.events import EventBus
from scoresync.sync.manager import SyncManager
from scoresync.sync.store import LocalRecordStore
from scoresync.sync.transport.host import PeerHost
from scoresync.sync.transport.payload import PayloadTransport
from scoresync.sync.transport.stream import StreamTransport
from scoresync.sync.types import SyncError, SyncEvent, SyncEventType, SyncOperationState


def describe_event(event: SyncEvent) -> str | None:
    """One-line description of a bus event for console output."""
    if event.type is SyncEventType.CONNECTED:
        return f"Connected to {event.device_name or 'device'}"
    if event.type is SyncEventType.DISCONNECTED:
        return "Disconnected"
    if event.type is SyncEventType.ERROR:
        return f"Error: {event.error or 'An error occurred'}"
    if event.type is SyncEventType.SYNC_COMPLETE:
        return f"Sync complete: {event.added} new game{'s' if event.added != 1 else ''}"
    return None


@click.command()
@click.argument("peer_url", required=False)
@click.option("--timeout", "-t", type=float, default=30.0, help="Seconds to wait for the peer's games.")
@click.option("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE, show_default=True, help="Link write size.")
def sync(peer_url: str | None, timeout: float, chunk_size: int) -> None:
    """Exchange games with a device running 'scoresync serve'.

    PEER_URL is like ws://192.168.1.20:8765 (default: configured peer_url).
    """
    peer_url = peer_url or load_config().get("peer_url", "")
    config = PeerConfig(peer_url=peer_url, chunk_size=chunk_size, device_name=get_device_name())

    store = LocalRecordStore(get_store_path())
    try:
        state = asyncio.run(_sync(store, config, timeout))
    except TimeoutError:
        click.echo("Error: timed out waiting for the peer's games", err=True)
        sys.exit(1)
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()

    if state.phase is SyncState.ERROR:
        sys.exit(1)


async def _sync(store: LocalRecordStore, config: PeerConfig, timeout: float) -> SyncOperationState:
    """Connect, run one sync attempt and disconnect."""
    bus: EventBus[SyncEvent] = EventBus("transport")
    transport = StreamTransport(config, bus, snapshot_provider=store.read_all)
    manager = SyncManager(bus, store, transport)

    def echo(event: SyncEvent) -> None:
        line = describe_event(event)
        if line:
            click.echo(line, err=event.type is SyncEventType.ERROR)

    with bus.subscribe(echo):
        await transport.connect()
        try:
            await manager.sync_with_device()
            return await manager.wait_until_idle(timeout)
        finally:
            await transport.disconnect()
            manager.close()


@click.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to listen on.")
@click.option("--port", "-p", type=int, default=DEFAULT_PORT, show_default=True, help="Port to listen on.")
def serve(host: str, port: int) -> None:
    """Wait for a peer to connect and exchange games.

    Runs until interrupted (Ctrl+C).
    """
    store = LocalRecordStore(get_store_path())
    try:
        asyncio.run(_serve(store, host, port))
    except KeyboardInterrupt:
        click.echo("Stopped.")
    except OSError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        store.close()


async def _serve(store: LocalRecordStore, host: str, port: int) -> None:
    bus: EventBus[SyncEvent] = EventBus("transport")
    manager = SyncManager(bus, store)
    peer_host = PeerHost(
        bus,
        snapshot_provider=store.read_all,
        host=host,
        port=port,
        device_name=get_device_name(),
    )

    def echo(event: SyncEvent) -> None:
        line = describe_event(event)
        if line:
            click.echo(line, err=event.type is SyncEventType.ERROR)

    with bus.subscribe(echo):
        await peer_host.start()
        click.echo(f"Listening on {host}:{peer_host.port} as {get_device_name()}")
        try:
            await peer_host.serve_forever()
        finally:
            manager.close()


@click.command()
@click.argument("peer_url", required=False)
def compat(peer_url: str | None) -> None:
    """Show which sync methods are available."""
    peer_url = peer_url or load_config().get("peer_url", "")
    bus: EventBus[SyncEvent] = EventBus("transport")
    for transport in (StreamTransport(PeerConfig(peer_url=peer_url), bus), PayloadTransport(bus)):
        info = transport.compatibility()
        status = "supported" if info.is_supported else "unavailable"
        click.echo(f"{transport.name}: {status} ({info.platform_label}) - {info.advisory_message}")
