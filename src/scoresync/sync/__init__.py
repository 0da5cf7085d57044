"""Sync module - Event bus, merge engine, manager, stores and transports.

Re-exports the public API for convenient imports:
    from scoresync.sync import SyncManager, EventBus, StreamTransport
"""

from scoresync.sync.codec import decode_records
from scoresync.sync.events import EventBus, Subscription
from scoresync.sync.leaderboard import LeaderboardEntry, leaderboard
from scoresync.sync.manager import SyncManager
from scoresync.sync.merge import MergeEngine, find_new_records
from scoresync.sync.store import GAMES_KEY, LocalRecordStore, MemoryRecordStore, RecordStore
from scoresync.sync.transport import (
    FileScanner,
    FramedLink,
    PayloadTransport,
    PeerHost,
    Scanner,
    ScannerResource,
    StreamTransport,
    TransportAdapter,
)
from scoresync.sync.types import (
    NO_NEW_RECORDS,
    AlreadySyncingError,
    CapabilityUnsupportedError,
    Compatibility,
    DecodeError,
    HandshakeError,
    ImportResult,
    MergeResult,
    NotConnectedError,
    RecordValidationError,
    ScanCancelledError,
    ScannerBusyError,
    StorageError,
    SyncChannel,
    SyncError,
    SyncEvent,
    SyncEventType,
    SyncOperationState,
    TransportError,
    TransportWriteError,
)

__all__ = [
    # Events
    "EventBus",
    "Subscription",
    # Merge
    "MergeEngine",
    "decode_records",
    "find_new_records",
    # Manager
    "SyncManager",
    # Stores
    "GAMES_KEY",
    "LocalRecordStore",
    "MemoryRecordStore",
    "RecordStore",
    "LeaderboardEntry",
    "leaderboard",
    # Transports
    "FileScanner",
    "FramedLink",
    "PayloadTransport",
    "PeerHost",
    "Scanner",
    "ScannerResource",
    "StreamTransport",
    "TransportAdapter",
    # Types
    "NO_NEW_RECORDS",
    "Compatibility",
    "ImportResult",
    "MergeResult",
    "SyncChannel",
    "SyncEvent",
    "SyncEventType",
    "SyncOperationState",
    # Errors
    "AlreadySyncingError",
    "CapabilityUnsupportedError",
    "DecodeError",
    "HandshakeError",
    "NotConnectedError",
    "RecordValidationError",
    "ScanCancelledError",
    "ScannerBusyError",
    "StorageError",
    "SyncError",
    "TransportError",
    "TransportWriteError",
]
