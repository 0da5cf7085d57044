"""Framed message exchange over one WebSocket connection.

This module provides:
- FramedLink: Writes chunked messages, reassembles inbound ones, and turns
  them into transport bus events

Both ends of the stream link run a FramedLink: the connecting device inside
StreamTransport and the accepting device inside PeerHost.

Protocol:
    DATA message     -> decoded records published as DATA_RECEIVED
    COMMAND message  -> REQUEST_DATA answered with a DATA message holding
                        this device's snapshot (when a provider is set)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from websockets.exceptions import ConnectionClosed, WebSocketException

from scoresync.core.chunking import (
    REQUEST_DATA,
    FrameAssembler,
    FrameError,
    Message,
    MessageKind,
    encode_message,
)
from scoresync.core.config import DEFAULT_CHUNK_SIZE
from scoresync.core.records import GameRecord, encode_records
from scoresync.sync.codec import decode_records
from scoresync.sync.types import (
    DecodeError,
    RecordValidationError,
    StorageError,
    SyncEvent,
    TransportWriteError,
)

if TYPE_CHECKING:
    from websockets.asyncio.connection import Connection

    from scoresync.sync.events import EventBus

logger = logging.getLogger(__name__)

SUBPROTOCOL = "scoresync.v1"
DEVICE_HEADER = "X-Scoresync-Device"

SnapshotProvider = Callable[[], list[GameRecord]]


class FramedLink:
    """Message layer on top of an open WebSocket connection.

    Once detached, the link publishes nothing more: messages still in flight
    from a dropped or cancelled connection are discarded.
    """

    def __init__(
        self,
        connection: Connection,
        bus: EventBus[SyncEvent],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        snapshot_provider: SnapshotProvider | None = None,
    ) -> None:
        """Initialize the link.

        Args:
            connection: Open WebSocket connection.
            bus: Transport bus to publish inbound events on.
            chunk_size: Maximum size of a single write.
            snapshot_provider: Returns the local records when the peer sends
                REQUEST_DATA; requests are ignored without one.
        """
        self._connection = connection
        self._bus = bus
        self._chunk_size = chunk_size
        self._snapshot_provider = snapshot_provider
        self._assembler = FrameAssembler()
        self._attached = True

    @property
    def attached(self) -> bool:
        return self._attached

    def detach(self) -> None:
        """Stop publishing events from this link."""
        self._attached = False
        self._assembler.reset()

    async def write(self, kind: MessageKind, payload: bytes) -> None:
        """Send one message, split into chunks written in order.

        Raises:
            TransportWriteError: If any chunk cannot be written.
        """
        chunks = encode_message(kind, payload, self._chunk_size)
        try:
            for chunk in chunks:
                await self._connection.send(chunk)
        except (WebSocketException, OSError) as e:
            raise TransportWriteError(f"Failed to write to peer: {e}") from e
        logger.debug(
            "Sent %s message: %d bytes in %d chunks", kind.name, len(payload), len(chunks)
        )

    async def send_records(self, records: list[GameRecord]) -> None:
        """Send records as a DATA message."""
        await self.write(MessageKind.DATA, encode_records(records).encode("utf-8"))

    async def request_data(self) -> None:
        """Ask the peer for its records."""
        await self.write(MessageKind.COMMAND, REQUEST_DATA)

    async def run(self) -> None:
        """Read until the connection closes.

        Returns normally on both clean and abnormal closure.
        """
        try:
            async for frame in self._connection:
                if not self._attached:
                    break
                if isinstance(frame, str):
                    frame = frame.encode("utf-8")
                try:
                    messages = self._assembler.feed(frame)
                except FrameError as e:
                    logger.warning("Dropping malformed frame: %s", e)
                    self._publish(SyncEvent.failed("Failed to parse received data"))
                    continue
                for message in messages:
                    await self._dispatch(message)
        except ConnectionClosed as e:
            logger.info("Link closed: %s", e)

    async def _dispatch(self, message: Message) -> None:
        """Handle one reassembled message."""
        logger.debug(
            "Received %s message: %d bytes (%s)",
            message.kind.name,
            len(message.payload),
            message.digest,
        )
        if message.kind is MessageKind.DATA:
            try:
                records = decode_records(message.payload)
            except (DecodeError, RecordValidationError) as e:
                logger.warning("Received data rejected: %s", e)
                self._publish(SyncEvent.failed("Failed to parse received data"))
                return
            self._publish(SyncEvent.data_received(records))
            return

        if message.payload == REQUEST_DATA:
            await self._answer_request()
        else:
            logger.warning("Unknown command: %r", message.payload[:32])

    async def _answer_request(self) -> None:
        """Reply to REQUEST_DATA with the local snapshot."""
        if self._snapshot_provider is None:
            logger.debug("Ignoring REQUEST_DATA: no snapshot provider")
            return
        try:
            records = self._snapshot_provider()
        except StorageError as e:
            logger.warning("Failed to read games for data request: %s", e)
            self._publish(SyncEvent.failed(str(e)))
            return
        try:
            await self.send_records(records)
        except TransportWriteError as e:
            logger.warning("Failed to answer data request: %s", e)
            self._publish(SyncEvent.failed(str(e)))
            return
        logger.info("Sent %d games on request", len(records))

    def _publish(self, event: SyncEvent) -> None:
        if self._attached:
            self._bus.publish(event)
        else:
            logger.debug("Discarding %r from detached link", event)
