"""Merge of divergent record histories.

This module provides:
- find_new_records: Pure selection of incoming records absent locally
- MergeEngine: Applies merges, exports and imports snapshots

Merge rule:
    A record is new iff its identity (date + sorted player names) is not in
    the local snapshot taken before the merge. The exclusion set does not
    grow while the batch is processed, so two colliding records inside one
    incoming batch are both appended. Records are appended in encounter
    order; nothing local is reordered or removed.

    An incoming record whose identity matches a local record but whose
    content (scores, colors, winners) differs is still dropped; it is
    reported in MergeResult.conflicts.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from scoresync.core.records import GameRecord, encode_records, record_identity
from scoresync.sync.codec import decode_records
from scoresync.sync.types import (
    DecodeError,
    ImportResult,
    MergeResult,
    RecordValidationError,
)
from scoresync.sync.store import RecordStore

logger = logging.getLogger(__name__)


def find_new_records(
    local: Iterable[GameRecord],
    incoming: Sequence[GameRecord],
) -> tuple[list[GameRecord], list[str]]:
    """Select the incoming records that are not present locally.

    Args:
        local: Pre-merge local snapshot.
        incoming: Received batch, in order.

    Returns:
        Tuple of (records to append in order, identities of dropped records
        whose content differs from the local one).
    """
    local_by_identity: dict[str, GameRecord] = {}
    for record in local:
        local_by_identity.setdefault(record_identity(record), record)

    new_records: list[GameRecord] = []
    conflicts: list[str] = []
    for record in incoming:
        identity = record_identity(record)
        existing = local_by_identity.get(identity)
        if existing is None:
            new_records.append(record)
        elif existing != record and identity not in conflicts:
            conflicts.append(identity)
    return new_records, conflicts


class MergeEngine:
    """Merges received records into a record store.

    Usage:
        engine = MergeEngine(store)
        result = engine.merge(received)
        payload = engine.export_snapshot()
        outcome = engine.import_snapshot(payload_from_peer)
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @property
    def store(self) -> RecordStore:
        return self._store

    def merge(self, incoming: Sequence[GameRecord]) -> MergeResult:
        """Append the incoming records missing from the store.

        Args:
            incoming: Received batch, in order.

        Returns:
            MergeResult with the number of records added.

        Raises:
            StorageError: If the store fails. Records appended before the
                failure stay appended.
        """
        new_records, conflicts = find_new_records(self._store.read_all(), incoming)

        for identity in conflicts:
            logger.warning("Dropped game %s: differs from the local copy", identity)

        result = MergeResult(conflicts=conflicts)
        for record in new_records:
            self._store.append(record)
            result.added += 1

        logger.info(
            "Merge complete: added %d of %d received games", result.added, len(incoming)
        )
        return result

    def export_snapshot(self) -> str:
        """Serialize every local record (pretty-printed, stable field order)."""
        return encode_records(self._store.read_all(), pretty=True)

    def import_snapshot(self, payload: str | bytes) -> ImportResult:
        """Validate then merge a serialized snapshot.

        Invalid input never raises: the batch is rejected as a whole and
        nothing is appended.

        Args:
            payload: Snapshot text, as produced by export_snapshot.

        Returns:
            ImportResult describing the outcome.

        Raises:
            StorageError: If the store fails while merging.
        """
        try:
            records = decode_records(payload)
        except (DecodeError, RecordValidationError) as e:
            logger.warning("Import rejected: %s", e)
            return ImportResult(accepted=False, added=0, error=str(e))

        result = self.merge(records)
        return ImportResult(accepted=True, added=result.added, conflicts=result.conflicts)
