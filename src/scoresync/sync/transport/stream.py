"""Stream link transport over WebSocket.

This module provides:
- StreamTransport: Bidirectional link to a PeerHost on another device

Architecture:
    SyncManager ─► StreamTransport ──ws (≤ chunk_size frames)──► PeerHost
                        │                                          │
                   FramedLink ◄──────── DATA / COMMAND ──────► FramedLink
                        │
                 transport bus (DATA_RECEIVED, DISCONNECTED, ...)

The link is watched by a reader task for its whole lifetime; a drop from
either side ends the task and emits DISCONNECTED once.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
from typing import TYPE_CHECKING

import websockets
from websockets.exceptions import WebSocketException

from scoresync.core.chunking import MessageKind
from scoresync.sync.transport.base import TransportAdapter, platform_label
from scoresync.sync.transport.link import (
    DEVICE_HEADER,
    SUBPROTOCOL,
    FramedLink,
    SnapshotProvider,
)
from scoresync.sync.types import (
    Compatibility,
    HandshakeError,
    NotConnectedError,
    SyncChannel,
)

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

    from scoresync.core.config import PeerConfig
    from scoresync.sync.events import EventBus
    from scoresync.sync.types import SyncEvent

logger = logging.getLogger(__name__)


class StreamTransport(TransportAdapter):
    """Connects to a remote device's PeerHost.

    Usage:
        bus = EventBus[SyncEvent]("transport")
        transport = StreamTransport(PeerConfig(peer_url="ws://10.0.0.7:8765"), bus)
        await transport.connect()
        await transport.send_records(store.read_all())
        await transport.request_data()  # answer arrives as DATA_RECEIVED
        await transport.disconnect()
    """

    name = "stream"

    def __init__(
        self,
        config: PeerConfig,
        bus: EventBus[SyncEvent],
        snapshot_provider: SnapshotProvider | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Peer address, timeouts and chunk size.
            bus: Transport bus.
            snapshot_provider: Local records, to answer the peer's own
                REQUEST_DATA over the same link.
        """
        super().__init__(bus)
        self._config = config
        self._snapshot_provider = snapshot_provider
        self._ws: ClientConnection | None = None
        self._link: FramedLink | None = None
        self._reader: asyncio.Task[None] | None = None

    @property
    def ws_url(self) -> str:
        return self._config.ws_url

    def is_supported(self) -> bool:
        return self._config.has_peer

    def compatibility(self) -> Compatibility:
        if self.is_supported():
            message = f"Stream sync available with {self.ws_url}"
        else:
            message = (
                "Stream sync needs a peer address (ws://host:port). "
                "Use snapshot export/import instead."
            )
        return Compatibility(
            is_supported=self.is_supported(),
            platform_label=platform_label(),
            advisory_message=message,
        )

    async def _open(self) -> SyncChannel:
        """Open the WebSocket and start the reader task."""
        ssl_context: ssl.SSLContext | None = None
        if self._config.is_secure:
            ssl_context = ssl.create_default_context()

        headers = {}
        if self._config.device_name:
            headers[DEVICE_HEADER] = self._config.device_name

        try:
            ws = await websockets.connect(
                self.ws_url,
                ssl=ssl_context,
                subprotocols=[SUBPROTOCOL],  # type: ignore[list-item]
                additional_headers=headers,
                open_timeout=self._config.timeout,
                close_timeout=5,
            )
        except (WebSocketException, OSError, TimeoutError) as e:
            raise HandshakeError(f"Failed to connect to {self.ws_url}: {e}") from e

        if ws.subprotocol != SUBPROTOCOL:
            with contextlib.suppress(WebSocketException):
                await ws.close()
            raise HandshakeError(f"{self.ws_url} is not a scoresync peer")

        device_name = _response_header(ws, DEVICE_HEADER) or self._config.peer_url
        self._ws = ws
        self._link = FramedLink(
            ws,
            self._bus,
            chunk_size=self._config.chunk_size,
            snapshot_provider=self._snapshot_provider,
        )
        self._reader = asyncio.create_task(
            self._read(self._link), name="StreamTransport.reader"
        )
        return SyncChannel(supported=True, connected=True, device_name=device_name)

    async def _read(self, link: FramedLink) -> None:
        """Reader task: runs until the link drops, then announces it."""
        try:
            await link.run()
        except (WebSocketException, OSError) as e:
            logger.warning("Stream link failed: %s", e)
        finally:
            # Only the current link may tear down the channel.
            if link is self._link:
                link.detach()
                self._link = None
                self._ws = None
                self._reader = None
                self._handle_disconnect()

    async def _close(self) -> None:
        """Close the WebSocket and wait for the reader to finish."""
        link, ws, reader = self._link, self._ws, self._reader
        self._link = None
        self._ws = None
        self._reader = None

        if link is not None:
            link.detach()
        if ws is not None:
            with contextlib.suppress(WebSocketException, OSError):
                await ws.close()
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

    async def _send(self, data: bytes) -> None:
        await self._current_link().write(MessageKind.DATA, data)

    async def _request_data(self) -> None:
        await self._current_link().request_data()

    def _current_link(self) -> FramedLink:
        if self._link is None:
            raise NotConnectedError("Link is not open")
        return self._link


def _response_header(ws: ClientConnection, name: str) -> str | None:
    """Read a handshake response header, tolerating a missing response."""
    response = getattr(ws, "response", None)
    if response is None:
        return None
    value = response.headers.get(name)
    return value if isinstance(value, str) else None
