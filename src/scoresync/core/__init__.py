"""Core module - Shared records, framing, and configuration."""

from scoresync.core.chunking import (
    HEADER_SIZE,
    MAX_MESSAGE_SIZE,
    REQUEST_DATA,
    Chunk,
    FrameAssembler,
    FrameError,
    Message,
    MessageKind,
    chunk_bytes,
    encode_message,
    frame_message,
)
from scoresync.core.config import DEFAULT_CHUNK_SIZE, DEFAULT_PORT, PeerConfig
from scoresync.core.records import (
    GameRecord,
    Player,
    encode_records,
    record_identity,
    utc_timestamp,
)
from scoresync.core.types import SyncState

__all__ = [
    # Chunking
    "HEADER_SIZE",
    "MAX_MESSAGE_SIZE",
    "REQUEST_DATA",
    "Chunk",
    "FrameAssembler",
    "FrameError",
    "Message",
    "MessageKind",
    "chunk_bytes",
    "encode_message",
    "frame_message",
    # Config
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_PORT",
    "PeerConfig",
    # Records
    "GameRecord",
    "Player",
    "encode_records",
    "record_identity",
    "utc_timestamp",
    # Types
    "SyncState",
]
