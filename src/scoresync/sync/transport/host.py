"""Accepting side of the stream link.

This module provides:
- PeerHost: WebSocket server a remote StreamTransport connects to

The host serves one peer at a time. A second peer is turned away with a
"busy" close while the first one is connected.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from websockets.asyncio.server import serve
from websockets.exceptions import WebSocketException
from websockets.frames import CloseCode

from scoresync.core.config import DEFAULT_CHUNK_SIZE, DEFAULT_PORT
from scoresync.sync.transport.link import (
    DEVICE_HEADER,
    SUBPROTOCOL,
    FramedLink,
    SnapshotProvider,
)
from scoresync.sync.types import SyncEvent

if TYPE_CHECKING:
    from websockets.asyncio.server import Server, ServerConnection
    from websockets.http11 import Request, Response

    from scoresync.sync.events import EventBus

logger = logging.getLogger(__name__)


class PeerHost:
    """Serves the stream link to one remote device at a time.

    Inbound DATA is published on the host's transport bus (so the host's
    SyncManager merges it); REQUEST_DATA is answered with the snapshot.

    Usage:
        host = PeerHost(bus, snapshot_provider=store.read_all, port=8765)
        await host.start()
        ...
        await host.stop()
    """

    def __init__(
        self,
        bus: EventBus[SyncEvent],
        snapshot_provider: SnapshotProvider,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        device_name: str = "",
    ) -> None:
        """Initialize the host.

        Args:
            bus: Transport bus of this device.
            snapshot_provider: Returns the local records.
            host: Interface to bind.
            port: Port to bind (0 picks a free port).
            chunk_size: Maximum size of a single write.
            device_name: Label presented to peers.
        """
        self._bus = bus
        self._snapshot_provider = snapshot_provider
        self._host = host
        self._port = port
        self._chunk_size = chunk_size
        self._device_name = device_name

        self._server: Server | None = None
        self._active: ServerConnection | None = None
        self._link: FramedLink | None = None

    @property
    def running(self) -> bool:
        return self._server is not None

    @property
    def peer_connected(self) -> bool:
        return self._active is not None

    @property
    def port(self) -> int:
        """Bound port (the requested one until started)."""
        if self._server is not None:
            for sock in self._server.sockets:
                return int(sock.getsockname()[1])
        return self._port

    @property
    def url(self) -> str:
        host = "127.0.0.1" if self._host in ("0.0.0.0", "") else self._host
        return f"ws://{host}:{self.port}"

    async def start(self) -> None:
        """Start listening."""
        if self._server is not None:
            logger.warning("PeerHost already running")
            return
        self._server = await serve(
            self._handle,
            self._host,
            self._port,
            subprotocols=[SUBPROTOCOL],  # type: ignore[list-item]
            process_response=self._process_response,
        )
        logger.info("PeerHost listening on %s:%d", self._host, self.port)

    async def stop(self) -> None:
        """Drop the current peer and stop listening."""
        await self.disconnect()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            logger.info("PeerHost stopped")

    async def serve_forever(self) -> None:
        """Start (if needed) and serve until cancelled."""
        if self._server is None:
            await self.start()
        try:
            await self._server.serve_forever()  # type: ignore[union-attr]
        finally:
            await self.stop()

    async def disconnect(self) -> None:
        """Close the link to the current peer, if any."""
        connection = self._active
        if connection is None:
            return
        if self._link is not None:
            self._link.detach()
        with contextlib.suppress(WebSocketException, OSError):
            await connection.close()

    def _process_response(
        self,
        connection: ServerConnection,
        request: Request,
        response: Response,
    ) -> None:
        """Advertise this device's label in the handshake response."""
        if self._device_name:
            response.headers[DEVICE_HEADER] = self._device_name

    async def _handle(self, connection: ServerConnection) -> None:
        """Serve one peer until its link drops."""
        if connection.subprotocol != SUBPROTOCOL:
            logger.warning("Rejecting peer without %s subprotocol", SUBPROTOCOL)
            await connection.close(CloseCode.POLICY_VIOLATION, "not a scoresync peer")
            return

        if self._active is not None:
            logger.warning("Rejecting peer %s: already serving one", connection.remote_address)
            await connection.close(CloseCode.TRY_AGAIN_LATER, "busy")
            return

        device_name = connection.request.headers.get(DEVICE_HEADER) if connection.request else None
        device_name = device_name or _format_address(connection.remote_address)

        link = FramedLink(
            connection,
            self._bus,
            chunk_size=self._chunk_size,
            snapshot_provider=self._snapshot_provider,
        )
        self._active = connection
        self._link = link
        logger.info("Peer connected: %s", device_name)
        self._bus.publish(SyncEvent.connected(device_name))

        try:
            await link.run()
        finally:
            link.detach()
            self._active = None
            self._link = None
            logger.info("Peer disconnected: %s", device_name)
            self._bus.publish(SyncEvent.disconnected())


def _format_address(address: object) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address)
