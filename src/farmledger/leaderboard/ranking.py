"""Deterministic leaderboard ranking.

Entries are ranked by score DESC, then by the time the score was reached ASC
(first to reach a score keeps priority), then by user_id ASC so that no two
entries ever compare equal.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

_far_future = datetime(2099, 12, 31, 23, 59, 59, tzinfo=timezone.utc)


def calculate_percentile(rank: int, total: int) -> float:
    """Calculate percentile from rank and total players.

    Rank 1 out of 100 -> 99.0 (top 1%)
    Rank 100 out of 100 -> 0.0 (bottom)
    """
    if total <= 0 or rank <= 0:
        return 0.0
    return round(100 - (rank / total * 100), 2)


def sort_key(entry: dict[str, Any]) -> tuple[int, datetime, int]:
    return (
        -entry.get("score", 0),
        entry.get("achieved_at") or _far_future,
        entry.get("user_id", 0),
    )


def rank_entries(
    entries: list[dict[str, Any]],
    offset: int = 0,
) -> list[dict[str, Any]]:
    """Rank entries deterministically.

    Input: dicts with at least ``user_id`` and ``score``; ``achieved_at`` is
    optional and breaks ties. ``offset`` is the number of entries ranked ahead
    of this slice.

    Output: the same dicts sorted and augmented with a 1-indexed ``rank``.
    """
    ranked = sorted(entries, key=sort_key)
    for idx, entry in enumerate(ranked):
        entry["rank"] = offset + idx + 1
    return ranked
