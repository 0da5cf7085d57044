"""Sync manager: drives a sync attempt and merges what arrives.

This module provides:
- SyncManager: Owns SyncOperationState, reacts to transport bus events

State machine:
    | From     | Trigger                 | To      | Effect                          |
    |----------|-------------------------|---------|---------------------------------|
    | IDLE     | sync_with_device()      | SYNCING | clear error, send, request data |
    | SYNCING  | sync_with_device()      | SYNCING | AlreadySyncingError             |
    | SYNCING  | caller cancelled        | IDLE    | abort in-flight attempt         |
    | any      | DATA_RECEIVED           | IDLE    | merge, last_sync_time, warning  |
    |          |                         |         | if nothing new                  |
    | any      | ERROR                   | ERROR   | record message                  |
    | any      | DISCONNECTED            | IDLE    | abort in-flight attempt         |
    | any      | CONNECTED               | same    | clear error                     |

Every state change is broadcast on the manager's state bus.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from scoresync.core.types import SyncState
from scoresync.sync.events import EventBus, Subscription
from scoresync.sync.merge import MergeEngine
from scoresync.sync.types import (
    NO_NEW_RECORDS,
    AlreadySyncingError,
    ImportResult,
    NotConnectedError,
    StorageError,
    SyncError,
    SyncEvent,
    SyncEventType,
    SyncOperationState,
)

if TYPE_CHECKING:
    from scoresync.core.records import GameRecord
    from scoresync.sync.store import RecordStore
    from scoresync.sync.transport.base import TransportAdapter

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SyncManager:
    """Orchestrates sync attempts for one device.

    A host application builds one manager per device and wires it to that
    device's transport bus; nothing is shared through module globals.

    Usage:
        bus = EventBus[SyncEvent]("transport")
        transport = StreamTransport(config, bus, snapshot_provider=store.read_all)
        manager = SyncManager(bus, store, transport)

        await transport.connect()
        await manager.sync_with_device()
        state = await manager.wait_until_idle(timeout=30)
    """

    def __init__(
        self,
        bus: EventBus[SyncEvent],
        store: RecordStore,
        transport: TransportAdapter | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the manager.

        Args:
            bus: Transport bus of this device.
            store: Record store of this device.
            transport: Transport used by sync_with_device (a host-only device
                can leave it unset and still merge inbound data).
            clock: Source of last_sync_time.
        """
        self._bus = bus
        self._transport = transport
        self._merge = MergeEngine(store)
        self._clock = clock

        self._state = SyncOperationState()
        self._state_bus: EventBus[SyncOperationState] = EventBus("sync state")
        self._idle = asyncio.Event()
        self._idle.set()

        self._subscription: Subscription[SyncEvent] | None = bus.subscribe(self._handle_sync_event)

    @property
    def merge_engine(self) -> MergeEngine:
        return self._merge

    @property
    def transport(self) -> TransportAdapter | None:
        return self._transport

    def get_state(self) -> SyncOperationState:
        """Current state (immutable snapshot)."""
        return self._state

    def subscribe(
        self, listener: Callable[[SyncOperationState], None]
    ) -> Subscription[SyncOperationState]:
        """Register a listener for state changes."""
        return self._state_bus.subscribe(listener)

    def unsubscribe(self, listener: Callable[[SyncOperationState], None]) -> None:
        self._state_bus.unsubscribe(listener)

    def close(self) -> None:
        """Stop reacting to transport events."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def sync_with_device(self) -> None:
        """Send the local snapshot to the peer, then ask for the peer's.

        The attempt completes when the peer's records arrive (or the link
        reports an error or drops); see wait_until_idle. A cancelled call
        settles back to IDLE before the cancellation propagates.

        Raises:
            AlreadySyncingError: If an attempt is already in flight.
            NotConnectedError: If there is no transport or no channel.
            TransportError: If sending or requesting fails.
            StorageError: If the local records cannot be read.
        """
        if self._state.is_syncing:
            raise AlreadySyncingError("A sync is already in progress")
        if self._transport is None:
            raise NotConnectedError("No transport configured")

        self._update(is_syncing=True, error=None, phase=SyncState.SYNCING)
        try:
            local = self._merge.store.read_all()
            logger.info("Sync started: sending %d local games", len(local))
            await self._transport.send_records(local)
            await self._transport.request_data()
        except SyncError as e:
            self._update(is_syncing=False, error=str(e), phase=SyncState.ERROR)
            raise
        except asyncio.CancelledError:
            logger.info("Sync attempt cancelled")
            self._update(is_syncing=False, phase=SyncState.IDLE)
            raise

    async def wait_until_idle(self, timeout: float | None = None) -> SyncOperationState:
        """Wait for the in-flight attempt to settle.

        Raises:
            TimeoutError: If still syncing after timeout seconds.
        """
        await asyncio.wait_for(self._idle.wait(), timeout)
        return self._state

    def export_snapshot(self) -> str:
        """Serialize the local records for one-shot transfer."""
        return self._merge.export_snapshot()

    def import_snapshot(self, payload: str | bytes) -> ImportResult:
        """Merge a serialized snapshot (pasted or scanned).

        Rejected payloads leave the state untouched and are reported in the
        returned result, never raised.
        """
        result = self._merge.import_snapshot(payload)
        if result.accepted:
            self._update(
                last_sync_time=self._clock(),
                error=None if result.added > 0 else NO_NEW_RECORDS,
                last_added=result.added,
            )
            self._bus.publish(SyncEvent.sync_complete(result.added))
        return result

    def _handle_sync_event(self, event: SyncEvent) -> None:
        """React to a transport bus event."""
        if event.type is SyncEventType.CONNECTED:
            self._update(error=None)

        elif event.type is SyncEventType.DISCONNECTED:
            if self._state.is_syncing:
                logger.warning("Connection lost during sync")
            self._update(is_syncing=False, phase=SyncState.IDLE)

        elif event.type is SyncEventType.DATA_RECEIVED:
            if event.records is not None:
                self._absorb(event.records)

        elif event.type is SyncEventType.ERROR:
            self._update(is_syncing=False, error=event.error, phase=SyncState.ERROR)

    def _absorb(self, records: tuple[GameRecord, ...]) -> None:
        """Merge received records and settle the attempt."""
        try:
            result = self._merge.merge(records)
        except StorageError as e:
            logger.warning("Failed to store received games: %s", e)
            self._update(is_syncing=False, error=str(e), phase=SyncState.ERROR)
            return

        self._update(
            is_syncing=False,
            last_sync_time=self._clock(),
            error=None if result.added > 0 else NO_NEW_RECORDS,
            phase=SyncState.IDLE,
            last_added=result.added,
        )
        self._bus.publish(SyncEvent.sync_complete(result.added))

    def _update(self, **changes: object) -> None:
        """Apply changes and broadcast the new state."""
        self._state = self._state.update(**changes)
        if self._state.is_syncing:
            self._idle.clear()
        else:
            self._idle.set()
        self._state_bus.publish(self._state)
