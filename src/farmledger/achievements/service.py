"""Achievement ledger: append-only, one record per (user, achievement name)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from farmledger.achievements.schemas import AchievementRecord, AchievementSummary
from farmledger.auth.service import get_active_user
from farmledger.db.models import Achievement
from farmledger.errors import DuplicateAchievement, InvalidArgument

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from farmledger.database import Database

logger = structlog.get_logger()

ECO_ACHIEVEMENT_TYPE = "sustainability"


async def has_achievement(db: AsyncSession, user_id: int, name: str) -> bool:
    """Check if the user already unlocked an achievement with this name."""
    result = await db.execute(
        select(Achievement.id).where(
            Achievement.user_id == user_id,
            Achievement.achievement_name == name,
        )
    )
    return result.scalar_one_or_none() is not None


async def count_achievements(db: AsyncSession, user_id: int, achievement_type: str | None = None) -> int:
    query = select(func.count(Achievement.id)).where(Achievement.user_id == user_id)
    if achievement_type is not None:
        query = query.where(Achievement.achievement_type == achievement_type)
    result = await db.execute(query)
    return int(result.scalar_one())


async def sum_points(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(Achievement.points), 0)).where(Achievement.user_id == user_id)
    )
    return int(result.scalar_one())


class AchievementLedger:
    """Unlock and query achievements over a shared ``Database``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def add(
        self,
        user_id: int,
        achievement_type: str,
        name: str,
        description: str | None = None,
        points: int = 0,
    ) -> AchievementRecord:
        """Record an unlocked achievement.

        Raises:
            InvalidArgument: Empty type/name or negative points.
            NotFound: Unknown or deactivated user.
            DuplicateAchievement: The user already has an achievement with this name.
        """
        achievement_type = (achievement_type or "").strip()
        name = (name or "").strip()
        if not achievement_type or not name:
            msg = "Achievement type and name are required"
            raise InvalidArgument(msg)
        if isinstance(points, bool) or not isinstance(points, int) or points < 0:
            msg = "Achievement points must be a non-negative integer"
            raise InvalidArgument(msg)

        async with self._db.transaction() as db:
            await get_active_user(db, user_id)

            if await has_achievement(db, user_id, name):
                msg = f"Achievement already unlocked: {name}"
                raise DuplicateAchievement(msg, details={"achievement_name": name})

            achievement = Achievement(
                user_id=user_id,
                achievement_type=achievement_type,
                achievement_name=name,
                description=description,
                points=points,
                earned_at=datetime.now(timezone.utc),
            )
            db.add(achievement)
            try:
                await db.flush()
            except IntegrityError as e:
                # Race condition: unlocked concurrently
                msg = f"Achievement already unlocked: {name}"
                raise DuplicateAchievement(msg, details={"achievement_name": name}) from e

            logger.info("achievement_unlocked", user_id=user_id, achievement_name=name, points=points)
            return AchievementRecord.model_validate(achievement)

    async def list_for(self, user_id: int) -> list[AchievementRecord]:
        """All achievements of a user, most recent first."""
        async with self._db.transaction() as db:
            result = await db.execute(
                select(Achievement)
                .where(Achievement.user_id == user_id)
                .order_by(Achievement.earned_at.desc(), Achievement.id.desc())
            )
            return [AchievementRecord.model_validate(a) for a in result.scalars()]

    async def total_points(self, user_id: int) -> int:
        async with self._db.transaction() as db:
            return await sum_points(db, user_id)

    async def eco_count(self, user_id: int) -> int:
        """Number of sustainability achievements."""
        async with self._db.transaction() as db:
            return await count_achievements(db, user_id, ECO_ACHIEVEMENT_TYPE)

    async def summary(self, user_id: int) -> AchievementSummary:
        async with self._db.transaction() as db:
            return AchievementSummary(
                total=await count_achievements(db, user_id),
                points=await sum_points(db, user_id),
                eco=await count_achievements(db, user_id, ECO_ACHIEVEMENT_TYPE),
            )
