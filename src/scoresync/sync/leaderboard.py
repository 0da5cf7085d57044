"""Win counts across a record collection."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from scoresync.core.records import GameRecord


@dataclass(frozen=True)
class LeaderboardEntry:
    """Number of games won by one player."""

    name: str
    wins: int


def leaderboard(records: Iterable[GameRecord]) -> list[LeaderboardEntry]:
    """Count wins per player name.

    Every name in a record's winners scores one win, so a tie credits each
    tied player. Entries are sorted by wins, most first; equal counts keep
    first-seen order.

    Args:
        records: Records to count.

    Returns:
        Leaderboard entries.
    """
    wins: Counter[str] = Counter()
    for record in records:
        wins.update(record.winners)
    entries = [LeaderboardEntry(name=name, wins=count) for name, count in wins.items()]
    return sorted(entries, key=lambda entry: entry.wins, reverse=True)
