"""Base transport adapter.

This module provides:
- TransportAdapter: Abstract base for links to one remote device

Contract shared by every transport:
    connect()       capability check first, then handshake; CONNECTED event
    disconnect()    tear down; DISCONNECTED event exactly once per link
    send(data)      deliver one payload to the peer
    request_data()  ask the peer for its records; they arrive as a
                    DATA_RECEIVED event

Transport errors are published as ERROR events and also raised to the
caller.
"""

from __future__ import annotations

import logging
import platform
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from scoresync.core.records import GameRecord, encode_records
from scoresync.sync.types import (
    CapabilityUnsupportedError,
    Compatibility,
    NotConnectedError,
    SyncChannel,
    SyncEvent,
    TransportError,
)

if TYPE_CHECKING:
    from scoresync.sync.events import EventBus

logger = logging.getLogger(__name__)


def platform_label() -> str:
    """Describe the running platform for compatibility messages."""
    system = platform.system()
    if not system:
        return "Unknown"
    release = platform.release()
    return f"{system} {release}" if release else system


class TransportAdapter(ABC):
    """Abstract base class for a connection-oriented channel to one peer.

    Subclasses must implement:
    - is_supported() / compatibility(): Capability query
    - _open(): Handshake, returning the new channel
    - _close(): Release the underlying link
    - _send(data): Deliver one payload
    - _request_data(): Ask the peer for its records
    """

    name = "transport"

    def __init__(self, bus: EventBus[SyncEvent]) -> None:
        self._bus = bus
        self._channel: SyncChannel | None = None

    @property
    def bus(self) -> EventBus[SyncEvent]:
        return self._bus

    @property
    def channel(self) -> SyncChannel | None:
        """The established channel, if any."""
        return self._channel

    @property
    def connected(self) -> bool:
        return self._channel is not None and self._channel.connected

    def get_status(self) -> SyncChannel:
        """Snapshot of the connection status, connected or not."""
        if self._channel is not None:
            return SyncChannel(
                supported=True,
                connected=self._channel.connected,
                device_name=self._channel.device_name,
                error=self._channel.error,
            )
        return SyncChannel(supported=self.is_supported(), connected=False)

    @abstractmethod
    def is_supported(self) -> bool:
        """Check whether this transport can be used here."""
        ...

    @abstractmethod
    def compatibility(self) -> Compatibility:
        """Describe availability for user guidance."""
        ...

    async def connect(self) -> SyncChannel:
        """Establish the channel.

        Returns:
            The established channel (the current one if already connected).

        Raises:
            CapabilityUnsupportedError: If the transport is unavailable;
                no handshake is attempted.
            HandshakeError: If the handshake fails.
        """
        if not self.is_supported():
            error = CapabilityUnsupportedError(self.compatibility().advisory_message)
            self._report(error)
            raise error

        if self._channel is not None and self._channel.connected:
            logger.warning("%s already connected", self.name)
            return self._channel

        try:
            channel = await self._open()
        except TransportError as e:
            self._report(e)
            raise

        self._channel = channel
        logger.info("Connected to %s", channel.device_name or "device")
        self._bus.publish(SyncEvent.connected(channel.device_name))
        return channel

    async def disconnect(self) -> None:
        """Tear down the channel (no-op when not connected)."""
        if self._channel is None:
            return
        try:
            await self._close()
        finally:
            self._handle_disconnect()

    async def send(self, data: bytes) -> None:
        """Deliver one payload to the peer.

        Raises:
            NotConnectedError: If there is no channel.
            TransportWriteError: If the write fails.
        """
        self._require_channel()
        try:
            await self._send(data)
        except TransportError as e:
            self._report(e)
            raise

    async def send_records(self, records: list[GameRecord]) -> None:
        """Encode records to the wire format and send them."""
        await self.send(encode_records(records).encode("utf-8"))

    async def request_data(self) -> None:
        """Ask the peer for its records.

        Raises:
            NotConnectedError: If there is no channel.
            TransportError: If the request cannot be delivered.
        """
        self._require_channel()
        try:
            await self._request_data()
        except TransportError as e:
            self._report(e)
            raise

    @abstractmethod
    async def _open(self) -> SyncChannel:
        ...

    @abstractmethod
    async def _close(self) -> None:
        ...

    @abstractmethod
    async def _send(self, data: bytes) -> None:
        ...

    @abstractmethod
    async def _request_data(self) -> None:
        ...

    def _require_channel(self) -> SyncChannel:
        if self._channel is None or not self._channel.connected:
            raise NotConnectedError("Not connected to a device")
        return self._channel

    def _handle_disconnect(self) -> None:
        """Mark the channel closed and announce it, once per channel."""
        channel = self._channel
        if channel is None:
            return
        self._channel = None
        channel.connected = False
        logger.info("Disconnected from %s", channel.device_name or "device")
        self._bus.publish(SyncEvent.disconnected())

    def _report(self, error: Exception) -> None:
        """Publish an error event for a failure about to be raised."""
        if self._channel is not None:
            self._channel.error = str(error)
        logger.warning("%s error: %s", self.name, error)
        self._bus.publish(SyncEvent.failed(str(error)))
