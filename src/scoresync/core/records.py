"""Game record models and wire encoding.

This module provides:
- Player, GameRecord: Immutable pydantic models of a completed game
- record_identity: Deduplication key of a record
- encode_records: Wire/snapshot encoding of a record collection

Wire format (shared with other implementations, keep byte-compatible):
    [{"players": [{"name": "...", "color": "...", "score": 0}],
      "date": "2024-01-01T00:00:00.000Z",
      "winner": ["..."]}]
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

IDENTITY_SEPARATOR = "_"


class Player(BaseModel):
    """A player's final standing in one game."""

    model_config = ConfigDict(frozen=True)

    name: StrictStr
    color: StrictStr
    score: StrictInt


class GameRecord(BaseModel):
    """One completed game.

    Records are immutable once created. ``winners`` is serialized under the
    ``winner`` key to stay compatible with the wire format.

    Attributes:
        players: Players in entry order.
        date: ISO-8601 timestamp set when the game was completed.
        winners: Names of every player holding the maximum score.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    players: tuple[Player, ...]
    date: StrictStr = Field(min_length=1)
    winners: tuple[StrictStr, ...] = Field(alias="winner")

    @classmethod
    def create(
        cls,
        players: Sequence[Player],
        date: str | None = None,
    ) -> GameRecord:
        """Create the record of a game that just ended.

        Args:
            players: Final standings, at least one player.
            date: Completion timestamp (defaults to now, UTC).

        Returns:
            New GameRecord with winners computed from the scores.

        Raises:
            ValueError: If players is empty, names collide (case-insensitive)
                or a score is negative.
        """
        if not players:
            raise ValueError("A game needs at least one player")

        seen: set[str] = set()
        for player in players:
            key = player.name.casefold()
            if key in seen:
                raise ValueError(f"Duplicate player name: {player.name}")
            seen.add(key)
            if player.score < 0:
                raise ValueError(f"Negative score for {player.name}: {player.score}")

        best = max(player.score for player in players)
        winners = tuple(player.name for player in players if player.score == best)
        return cls(
            players=tuple(players),
            date=date or utc_timestamp(),
            winners=winners,
        )

    @property
    def identity(self) -> str:
        """Deduplication key of this record."""
        return record_identity(self)

    def to_wire(self) -> dict[str, object]:
        """Convert to the JSON-serializable wire shape."""
        return self.model_dump(mode="json", by_alias=True)


def utc_timestamp(moment: datetime | None = None) -> str:
    """Format a moment as an ISO-8601 UTC timestamp with milliseconds.

    Args:
        moment: Time to format (defaults to now).

    Returns:
        Timestamp like "2024-01-01T00:00:00.000Z".
    """
    moment = moment or datetime.now(UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def record_identity(record: GameRecord) -> str:
    """Compute the identity of a record.

    Two records describe the same game iff their identities match exactly:
    date, separator, then the sorted comma-joined player names. Scores are
    not part of the identity.

    Args:
        record: The record to identify.

    Returns:
        Identity string.
    """
    names = ",".join(sorted(player.name for player in record.players))
    return f"{record.date}{IDENTITY_SEPARATOR}{names}"


def encode_records(records: Iterable[GameRecord], pretty: bool = False) -> str:
    """Encode records to the wire format.

    Args:
        records: Records to encode, in order.
        pretty: Indent with two spaces (snapshot export) instead of the
            compact form used on the stream link.

    Returns:
        JSON text.
    """
    payload = [record.to_wire() for record in records]
    if pretty:
        return json.dumps(payload, indent=2, ensure_ascii=False)
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
