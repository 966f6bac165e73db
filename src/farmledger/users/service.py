"""Read-only user statistics assembled from the account, save and achievements."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from farmledger.achievements.service import ECO_ACHIEVEMENT_TYPE, count_achievements, sum_points
from farmledger.auth.service import get_active_user
from farmledger.game.service import get_game_save
from farmledger.users.schemas import PublicProfile, UserStats

if TYPE_CHECKING:
    from farmledger.database import Database


class UserStatsService:
    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_stats(self, user_id: int) -> UserStats:
        """
        Progress and achievement statistics for an active user.

        ``last_played`` is the last save time, falling back to the last login.

        Raises:
            NotFound: If the user does not exist or is deactivated.
        """
        async with self._db.transaction() as db:
            user = await get_active_user(db, user_id)
            save = await get_game_save(db, user.id)

            age = datetime.now(timezone.utc) - user.created_at
            return UserStats(
                username=user.username,
                farm_level=user.farm_level,
                total_coins=user.total_coins,
                total_xp=user.total_xp,
                sustainability_rating=user.sustainability_rating,
                organic_certified=user.organic_certified,
                total_achievements=await count_achievements(db, user.id),
                eco_achievements=await count_achievements(db, user.id, ECO_ACHIEVEMENT_TYPE),
                achievement_points=await sum_points(db, user.id),
                account_age_days=max(age.days, 0),
                last_played=save.updated_at if save is not None else user.last_login,
                has_game_data=save is not None,
            )

    async def get_profile(self, user_id: int) -> PublicProfile:
        """Public profile plus achievement count and last save date."""
        async with self._db.transaction() as db:
            user = await get_active_user(db, user_id)
            save = await get_game_save(db, user.id)
            return PublicProfile(
                id=user.id,
                username=user.username,
                display_name=user.display_name,
                farm_level=user.farm_level,
                total_coins=user.total_coins,
                sustainability_rating=user.sustainability_rating,
                organic_certified=user.organic_certified,
                created_at=user.created_at,
                total_achievements=await count_achievements(db, user.id),
                last_save_date=save.updated_at if save is not None else None,
            )
