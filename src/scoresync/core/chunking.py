"""Message framing and fixed-size chunking for the stream link.

This module provides:
- Fixed-size chunking of outbound payloads (link writes are size-limited)
- Length-prefixed message framing so the receiver can reassemble
  payloads spanning several writes

Frame layout:
    +------+----------------+-------------------+
    | kind | length (u32 BE)| payload (length B)|
    +------+----------------+-------------------+

A framed message is split into chunks of at most ``chunk_size`` bytes and
written in order. ``FrameAssembler`` accepts chunks in arrival order and
yields each message once all of its bytes are in.
"""

from __future__ import annotations

import hashlib
import struct
from collections.abc import Iterator
from dataclasses import dataclass
from enum import IntEnum

from scoresync.core.config import DEFAULT_CHUNK_SIZE

HEADER = struct.Struct(">BI")
HEADER_SIZE = HEADER.size  # 5 bytes

# Upper bound on a single message payload (16 MB)
MAX_MESSAGE_SIZE = 16 * 1024 * 1024

REQUEST_DATA = b"REQUEST_DATA"


class FrameError(ValueError):
    """Raised when the inbound byte stream is not a valid frame sequence."""


class MessageKind(IntEnum):
    """Kind of a framed message."""

    DATA = 0x01  # JSON array of game records
    COMMAND = 0x02  # ASCII command, e.g. REQUEST_DATA


@dataclass
class Chunk:
    """Represents a chunk of an outbound message."""

    index: int
    offset: int
    data: bytes

    @property
    def size(self) -> int:
        """Return the size of this chunk in bytes."""
        return len(self.data)


@dataclass
class Message:
    """A complete, reassembled message."""

    kind: MessageKind
    payload: bytes

    @property
    def digest(self) -> str:
        """SHA-256 of the payload, for log correlation."""
        return hashlib.sha256(self.payload).hexdigest()[:12]


def chunk_bytes(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[Chunk]:
    """Split data into sequential fixed-size chunks.

    Args:
        data: Raw bytes to chunk.
        chunk_size: Maximum chunk size in bytes.

    Yields:
        Chunk objects with index, offset and data. The last chunk may be
        shorter; empty data yields nothing.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    for index, offset in enumerate(range(0, len(data), chunk_size)):
        yield Chunk(index=index, offset=offset, data=data[offset : offset + chunk_size])


def frame_message(kind: MessageKind, payload: bytes) -> bytes:
    """Prefix a payload with its frame header.

    Raises:
        FrameError: If the payload exceeds MAX_MESSAGE_SIZE.
    """
    if len(payload) > MAX_MESSAGE_SIZE:
        raise FrameError(f"Message too large: {len(payload)} bytes")
    return HEADER.pack(int(kind), len(payload)) + payload


def encode_message(
    kind: MessageKind,
    payload: bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> list[bytes]:
    """Frame a message and split it into link-sized chunks.

    Args:
        kind: Message kind.
        payload: Message body.
        chunk_size: Maximum size of each write.

    Returns:
        Chunks to write, in order.
    """
    return [chunk.data for chunk in chunk_bytes(frame_message(kind, payload), chunk_size)]


class FrameAssembler:
    """Reassembles framed messages from received chunks.

    Chunk boundaries are irrelevant: a chunk may hold the end of one message
    and the start of the next.

    Usage:
        assembler = FrameAssembler()
        for chunk in received:
            for message in assembler.feed(chunk):
                handle(message)
    """

    def __init__(self, max_message_size: int = MAX_MESSAGE_SIZE) -> None:
        self._buffer = bytearray()
        self._max_message_size = max_message_size

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete message."""
        return len(self._buffer)

    def reset(self) -> None:
        """Drop any partially received message."""
        self._buffer.clear()

    def feed(self, chunk: bytes) -> list[Message]:
        """Add a received chunk.

        Args:
            chunk: Bytes as read from the link.

        Returns:
            Messages completed by this chunk (possibly none).

        Raises:
            FrameError: On an unknown kind or oversized length. The buffer is
                cleared, so the assembler stays usable.
        """
        self._buffer.extend(chunk)
        messages: list[Message] = []

        while len(self._buffer) >= HEADER_SIZE:
            raw_kind, length = HEADER.unpack_from(self._buffer)
            try:
                kind = MessageKind(raw_kind)
            except ValueError:
                self.reset()
                raise FrameError(f"Unknown message kind: {raw_kind:#04x}") from None
            if length > self._max_message_size:
                self.reset()
                raise FrameError(f"Message too large: {length} bytes")

            end = HEADER_SIZE + length
            if len(self._buffer) < end:
                break

            payload = bytes(self._buffer[HEADER_SIZE:end])
            del self._buffer[:end]
            messages.append(Message(kind=kind, payload=payload))

        return messages
