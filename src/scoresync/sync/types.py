"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError and subclasses: Error taxonomy of the sync subsystem
- SyncEventType, SyncEvent: Transport bus events
- SyncChannel: An established link to one peer
- Compatibility: Capability query result
- SyncOperationState: State broadcast by the SyncManager
- MergeResult, ImportResult: Merge outcomes
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from scoresync.core.records import GameRecord
from scoresync.core.types import SyncState


class SyncError(Exception):
    """Base exception for sync errors."""


class TransportError(SyncError):
    """Failure of the link to the remote device."""


class CapabilityUnsupportedError(TransportError):
    """The transport is not available on this platform or configuration."""


class HandshakeError(TransportError):
    """Establishing the link failed."""


class TransportWriteError(TransportError):
    """Writing to an established link failed."""


class NotConnectedError(TransportError):
    """An operation needed an established link and there is none."""


class DecodeError(SyncError):
    """A received or scanned payload is not parseable."""


class RecordValidationError(SyncError):
    """A decoded batch does not have the record structure.

    Attributes:
        index: Position of the first invalid element, if known.
    """

    def __init__(self, message: str, index: int | None = None) -> None:
        self.index = index
        super().__init__(message)


class AlreadySyncingError(SyncError):
    """A sync attempt is already in flight."""


class ScanCancelledError(TransportError):
    """The scan was stopped before a payload was decoded."""


class ScannerBusyError(SyncError):
    """The scanner is held by another scan."""


class StorageError(SyncError):
    """The record store failed to read or write."""


# =============================================================================
# Transport bus events
# =============================================================================


class SyncEventType(str, Enum):
    """Types of events carried on the transport bus."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    DATA_RECEIVED = "dataReceived"
    ERROR = "error"
    SYNC_COMPLETE = "syncComplete"


@dataclass(frozen=True)
class SyncEvent:
    """An event on the transport bus.

    Attributes:
        type: What happened.
        records: Received records (DATA_RECEIVED only).
        error: Error message (ERROR only).
        device_name: Remote device label (CONNECTED only).
        added: Number of records absorbed (SYNC_COMPLETE only).
    """

    type: SyncEventType
    records: tuple[GameRecord, ...] | None = None
    error: str | None = None
    device_name: str | None = None
    added: int | None = None

    @classmethod
    def connected(cls, device_name: str | None = None) -> SyncEvent:
        return cls(SyncEventType.CONNECTED, device_name=device_name)

    @classmethod
    def disconnected(cls) -> SyncEvent:
        return cls(SyncEventType.DISCONNECTED)

    @classmethod
    def data_received(cls, records: list[GameRecord] | tuple[GameRecord, ...]) -> SyncEvent:
        return cls(SyncEventType.DATA_RECEIVED, records=tuple(records))

    @classmethod
    def failed(cls, error: str) -> SyncEvent:
        return cls(SyncEventType.ERROR, error=error)

    @classmethod
    def sync_complete(cls, added: int) -> SyncEvent:
        return cls(SyncEventType.SYNC_COMPLETE, added=added)

    def __repr__(self) -> str:
        """Human-readable representation."""
        details = []
        if self.records is not None:
            details.append(f"records={len(self.records)}")
        if self.error is not None:
            details.append(f"error={self.error!r}")
        if self.device_name is not None:
            details.append(f"device={self.device_name!r}")
        if self.added is not None:
            details.append(f"added={self.added}")
        return f"SyncEvent({self.type.name}{', ' if details else ''}{', '.join(details)})"


@dataclass
class SyncChannel:
    """An established link to exactly one peer.

    Attributes:
        supported: Whether the transport is available at all.
        connected: Whether the link is currently up.
        device_name: Label of the remote device, if known.
        error: Last error on this link, if any.
    """

    supported: bool = True
    connected: bool = False
    device_name: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class Compatibility:
    """Capability query result, used for user guidance only."""

    is_supported: bool
    platform_label: str
    advisory_message: str


# =============================================================================
# Manager state and merge results
# =============================================================================


NO_NEW_RECORDS = "No new games to sync"


@dataclass(frozen=True)
class SyncOperationState:
    """State owned by the SyncManager and broadcast on every change.

    Attributes:
        is_syncing: A sync attempt is in flight.
        last_sync_time: When records were last received and merged.
        error: Error message, or a soft warning after a no-op sync.
        phase: Current state machine phase.
        last_added: Records absorbed by the last merge.
    """

    is_syncing: bool = False
    last_sync_time: datetime | None = None
    error: str | None = None
    phase: SyncState = SyncState.IDLE
    last_added: int = 0

    def update(self, **changes: object) -> SyncOperationState:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)  # type: ignore[arg-type]


@dataclass
class MergeResult:
    """Outcome of merging an incoming batch.

    Attributes:
        added: Records appended to the store.
        conflicts: Identities of incoming records dropped although their
            content differs from the local record with the same identity.
    """

    added: int = 0
    conflicts: list[str] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        """Check if any colliding record differed from the local one."""
        return len(self.conflicts) > 0


@dataclass
class ImportResult:
    """Outcome of importing a serialized snapshot.

    Attributes:
        accepted: The batch was structurally valid and merged.
        added: Records appended to the store.
        error: Why the batch was rejected.
        conflicts: See MergeResult.conflicts.
    """

    accepted: bool
    added: int = 0
    error: str | None = None
    conflicts: list[str] = field(default_factory=list)
