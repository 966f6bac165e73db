"""Progress summary extracted from a saved game state."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import structlog

from farmledger.leaderboard.categories import normalize_rating, rating_to_score

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProgressSummary:
    level: int
    coins: int
    xp: int
    sustainability_rating: str
    organic_certified: bool

    @property
    def sustainability_score(self) -> int:
        return rating_to_score(self.sustainability_rating)


def _as_count(value: Any) -> int | None:
    """Floor a finite non-negative number to an int; None for anything else."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return math.floor(value)


def extract_progress(state: dict[str, Any]) -> ProgressSummary | None:
    """Read the summary fields from a game state.

    Returns None unless both ``level`` and ``coins`` are present; the user
    summary and leaderboards are only touched when they are. A present field
    that is not a usable count also yields None, the snapshot itself is
    stored regardless.
    """
    if not state.get("level") or state.get("coins") is None:
        return None

    raw_xp = state.get("xp")
    counts = {
        "level": _as_count(state["level"]),
        "coins": _as_count(state["coins"]),
        "xp": 0 if raw_xp is None else _as_count(raw_xp),
    }
    invalid = sorted(key for key, value in counts.items() if value is None)
    if invalid:
        logger.warning("progress_skipped", invalid_fields=invalid)
        return None

    return ProgressSummary(
        level=counts["level"],
        coins=counts["coins"],
        xp=counts["xp"],
        sustainability_rating=normalize_rating(state.get("sustainabilityRating")),
        organic_certified=bool(state.get("organicCertified", False)),
    )
