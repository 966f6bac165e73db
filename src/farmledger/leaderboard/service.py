"""Leaderboard engine.

One current score per (user, category), upserted on every game save. Ranks
are never stored; every read recomputes them from the scores with the
deterministic ordering in ``ranking``. Only active users are ranked.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import Select, and_, case, func, or_, select

from farmledger.auth.service import get_active_user
from farmledger.config import get_settings
from farmledger.db.models import LeaderboardEntry, User
from farmledger.db.upsert import dialect_insert
from farmledger.errors import InvalidArgument
from farmledger.leaderboard.categories import (
    CATEGORY_INFO,
    Category,
    eco_badges,
    format_score,
    parse_category,
    score_to_rating,
)
from farmledger.leaderboard.ranking import calculate_percentile, rank_entries
from farmledger.leaderboard.schemas import (
    CategorySummary,
    LeaderboardPage,
    LeaderboardSummary,
    RankedEntry,
    SustainabilityEntry,
    UserPosition,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from farmledger.database import Database

logger = structlog.get_logger()


def _validate_score(score: int) -> int:
    if isinstance(score, bool) or not isinstance(score, int):
        msg = f"Score must be an integer, got {type(score).__name__}"
        raise InvalidArgument(msg)
    if score < 0:
        msg = "Score must be non-negative"
        raise InvalidArgument(msg)
    return score


# ---------------------------------------------------------------------------
# Writes (usable inside a caller's transaction)
# ---------------------------------------------------------------------------


async def upsert_score(
    db: AsyncSession,
    user_id: int,
    username: str,
    category: str | Category,
    score: int,
    now: datetime | None = None,
) -> None:
    """Insert or replace the (user, category) score.

    ``achieved_at`` only moves when the score actually changes, so re-saving
    an unchanged score does not cost the user their tie-break priority.
    """
    category = parse_category(category)
    score = _validate_score(score)
    now = now or datetime.now(timezone.utc)

    insert = dialect_insert(db)
    if insert is not None:
        stmt = insert(LeaderboardEntry).values(
            user_id=user_id,
            username=username,
            category=category.value,
            score=score,
            achieved_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "category"],
            set_={
                "username": stmt.excluded.username,
                "score": stmt.excluded.score,
                "updated_at": stmt.excluded.updated_at,
                "achieved_at": case(
                    (LeaderboardEntry.score == stmt.excluded.score, LeaderboardEntry.achieved_at),
                    else_=stmt.excluded.achieved_at,
                ),
            },
        )
        await db.execute(stmt)
    else:
        result = await db.execute(
            select(LeaderboardEntry)
            .where(LeaderboardEntry.user_id == user_id)
            .where(LeaderboardEntry.category == category.value)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            db.add(
                LeaderboardEntry(
                    user_id=user_id,
                    username=username,
                    category=category.value,
                    score=score,
                    achieved_at=now,
                    updated_at=now,
                )
            )
        else:
            if entry.score != score:
                entry.achieved_at = now
            entry.username = username
            entry.score = score
            entry.updated_at = now
        await db.flush()

    logger.debug("leaderboard_updated", user_id=user_id, category=category.value, score=score)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def _ranked_query(category: Category) -> Select[tuple[LeaderboardEntry]]:
    return (
        select(LeaderboardEntry)
        .join(User, User.id == LeaderboardEntry.user_id)
        .where(LeaderboardEntry.category == category.value)
        .where(User.is_active.is_(True))
    )


async def count_players(db: AsyncSession, category: Category) -> int:
    """Number of active users with an entry in the category."""
    result = await db.execute(
        select(func.count(LeaderboardEntry.id))
        .join(User, User.id == LeaderboardEntry.user_id)
        .where(LeaderboardEntry.category == category.value)
        .where(User.is_active.is_(True))
    )
    return int(result.scalar_one())


async def fetch_top(db: AsyncSession, category: Category, limit: int) -> list[dict[str, Any]]:
    """Top ``limit`` entries of a category, ranked."""
    result = await db.execute(
        _ranked_query(category)
        .order_by(
            LeaderboardEntry.score.desc(),
            LeaderboardEntry.achieved_at.asc(),
            LeaderboardEntry.user_id.asc(),
        )
        .limit(limit)
    )
    rows = [
        {
            "user_id": e.user_id,
            "username": e.username,
            "score": e.score,
            "achieved_at": e.achieved_at,
            "updated_at": e.updated_at,
        }
        for e in result.scalars()
    ]
    return rank_entries(rows)


async def fetch_position(db: AsyncSession, user_id: int, category: Category) -> UserPosition | None:
    """Rank of one user: 1 + the number of active entries ordered ahead of it."""
    result = await db.execute(
        _ranked_query(category).where(LeaderboardEntry.user_id == user_id)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        return None

    ahead = await db.execute(
        select(func.count(LeaderboardEntry.id))
        .join(User, User.id == LeaderboardEntry.user_id)
        .where(LeaderboardEntry.category == category.value)
        .where(User.is_active.is_(True))
        .where(
            or_(
                LeaderboardEntry.score > entry.score,
                and_(
                    LeaderboardEntry.score == entry.score,
                    LeaderboardEntry.achieved_at < entry.achieved_at,
                ),
                and_(
                    LeaderboardEntry.score == entry.score,
                    LeaderboardEntry.achieved_at == entry.achieved_at,
                    LeaderboardEntry.user_id < entry.user_id,
                ),
            )
        )
    )
    rank = int(ahead.scalar_one()) + 1
    total = await count_players(db, category)
    return UserPosition(
        category=category.value,
        rank=rank,
        score=entry.score,
        total_players=total,
        percentile=calculate_percentile(rank, total),
    )


def _to_ranked_entry(category: Category, row: dict[str, Any]) -> RankedEntry:
    return RankedEntry(
        rank=row["rank"],
        user_id=row["user_id"],
        username=row["username"],
        score=row["score"],
        formatted_score=format_score(category, row["score"]),
        updated_at=row["updated_at"],
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class LeaderboardEngine:
    """Per-category rankings over a shared ``Database``.

    ``limit`` is validated and clamped here: values <= 0 are rejected and
    values above ``leaderboard_max_limit`` are reduced to it.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    @staticmethod
    def _clamp_limit(limit: int) -> int:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            msg = "Limit must be a positive integer"
            raise InvalidArgument(msg)
        return min(limit, get_settings().leaderboard_max_limit)

    async def update_score(self, user_id: int, username: str, category: str | Category, score: int) -> None:
        """
        Upsert one user's score in one category.

        Raises:
            NotFound: If the user does not exist or is deactivated.
            UnknownCategory / InvalidArgument: Bad category or negative score.
        """
        async with self._db.transaction() as db:
            await get_active_user(db, user_id)
            await upsert_score(db, user_id, username, category, score)

    async def get_leaderboard(self, category: str | Category, limit: int | None = None) -> LeaderboardPage:
        """
        Ranked entries for a category, best first.

        Raises:
            UnknownCategory: If the category is not recognized.
            InvalidArgument: If limit <= 0.
        """
        cat = parse_category(category)
        limit = self._clamp_limit(get_settings().leaderboard_default_limit if limit is None else limit)

        async with self._db.transaction() as db:
            rows = await fetch_top(db, cat, limit)
            total = await count_players(db, cat)

        return LeaderboardPage(
            category=cat.value,
            display_name=CATEGORY_INFO[cat].name,
            entries=[_to_ranked_entry(cat, r) for r in rows],
            total=total,
        )

    async def get_user_position(self, user_id: int, category: str | Category) -> UserPosition | None:
        """Rank, score and player count for a user, or None if the user has no entry."""
        cat = parse_category(category)
        async with self._db.transaction() as db:
            return await fetch_position(db, user_id, cat)

    async def get_all_positions(self, user_id: int) -> dict[str, UserPosition]:
        """Position in every category; unranked categories report rank=None, score=0."""
        positions: dict[str, UserPosition] = {}
        async with self._db.transaction() as db:
            for cat in Category:
                position = await fetch_position(db, user_id, cat)
                if position is None:
                    position = UserPosition(
                        category=cat.value,
                        rank=None,
                        score=0,
                        total_players=await count_players(db, cat),
                    )
                positions[cat.value] = position
        return positions

    async def get_summary(self, limit: int | None = None) -> LeaderboardSummary:
        """Top entries of every category plus category metadata."""
        limit = self._clamp_limit(get_settings().leaderboard_summary_limit if limit is None else limit)
        boards: dict[str, list[RankedEntry]] = {}
        async with self._db.transaction() as db:
            for cat in Category:
                rows = await fetch_top(db, cat, limit)
                boards[cat.value] = [_to_ranked_entry(cat, r) for r in rows]

        return LeaderboardSummary(
            leaderboards=boards,
            categories=[
                CategorySummary(key=info.key, name=info.name, description=info.description)
                for info in CATEGORY_INFO.values()
            ],
        )

    async def get_sustainability_detailed(self, limit: int | None = None) -> list[SustainabilityEntry]:
        """Sustainability ranking with rating labels and eco badges."""
        limit = self._clamp_limit(get_settings().leaderboard_default_limit if limit is None else limit)
        async with self._db.transaction() as db:
            rows = await fetch_top(db, Category.SUSTAINABILITY, limit)

        return [
            SustainabilityEntry(
                rank=r["rank"],
                user_id=r["user_id"],
                username=r["username"],
                sustainability_rating=score_to_rating(r["score"]),
                score=r["score"],
                badges=eco_badges(r["score"]),
                updated_at=r["updated_at"],
            )
            for r in rows
        ]
