"""Decoding of received and scanned record payloads.

Validation happens before anything is merged: a batch is either entirely
well-formed or rejected as a whole.
"""

from __future__ import annotations

import json
import logging

from pydantic import TypeAdapter, ValidationError

from scoresync.core.records import GameRecord
from scoresync.sync.types import DecodeError, RecordValidationError

logger = logging.getLogger(__name__)

_RECORD_ADAPTER = TypeAdapter(GameRecord)


def decode_records(payload: str | bytes) -> list[GameRecord]:
    """Decode a wire payload into records.

    Args:
        payload: JSON text (or UTF-8 bytes) holding an array of records.

    Returns:
        Records in payload order.

    Raises:
        DecodeError: If the payload is not UTF-8 JSON.
        RecordValidationError: If the JSON is not an array of records.
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Payload is not UTF-8: {e}") from e

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Payload is not valid JSON: {e.msg}") from e

    if not isinstance(data, list):
        raise RecordValidationError("Invalid data format: expected a list of games")

    records: list[GameRecord] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise RecordValidationError(f"Invalid game data structure at index {index}", index)
        try:
            records.append(_RECORD_ADAPTER.validate_python(item))
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            logger.debug("Record %d rejected: %s", index, e)
            raise RecordValidationError(
                f"Invalid game data structure at index {index}: {location} {first['msg']}",
                index,
            ) from e
    return records
