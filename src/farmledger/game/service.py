"""
Game snapshot store.

Keeps exactly one current save per user: every save overwrites the previous
one (last write wins). A save is also the only place progress flows out of
the game: when the state carries level and coins, the user's progress
summary and the coins, level and sustainability leaderboards are updated in
the same transaction as the snapshot, so rankings never drift from it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, select

from farmledger.auth.service import get_active_user
from farmledger.config import get_settings
from farmledger.db.models import GameSave, User
from farmledger.db.upsert import dialect_insert
from farmledger.game.progress import ProgressSummary, extract_progress
from farmledger.game.schemas import Snapshot, SnapshotPayload, parse_payload
from farmledger.leaderboard.categories import DEFAULT_RATING, Category
from farmledger.leaderboard.service import upsert_score

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from farmledger.database import Database

logger = structlog.get_logger()

DEFAULT_SAVE_LABEL = "Auto Save"


async def get_game_save(db: AsyncSession, user_id: int) -> GameSave | None:
    """Fetch the current save row of a user."""
    result = await db.execute(select(GameSave).where(GameSave.user_id == user_id))
    return result.scalar_one_or_none()


async def write_game_save(
    db: AsyncSession,
    user_id: int,
    payload: SnapshotPayload,
    now: datetime,
) -> int:
    """Insert or overwrite the user's save. Returns the save row id."""
    values: dict[str, Any] = {
        "save_name": payload.label or DEFAULT_SAVE_LABEL,
        "game_state": payload.state,
        "plots_data": payload.plots,
        "camera_data": payload.camera,
        "is_auto_save": payload.is_auto_save,
        "updated_at": now,
    }

    insert = dialect_insert(db)
    if insert is not None:
        stmt = insert(GameSave).values(user_id=user_id, created_at=now, **values)
        stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_=values)
        await db.execute(stmt)
        result = await db.execute(select(GameSave.id).where(GameSave.user_id == user_id))
        return int(result.scalar_one())

    save = await get_game_save(db, user_id)
    if save is None:
        save = GameSave(user_id=user_id, created_at=now, **values)
        db.add(save)
    else:
        for key, value in values.items():
            setattr(save, key, value)
    await db.flush()
    return save.id


async def apply_progress(db: AsyncSession, user: User, progress: ProgressSummary, now: datetime) -> None:
    """Copy the progress summary onto the user and the leaderboards."""
    user.farm_level = progress.level
    user.total_coins = progress.coins
    user.total_xp = progress.xp
    user.sustainability_rating = progress.sustainability_rating
    user.organic_certified = progress.organic_certified
    user.updated_at = now

    await upsert_score(db, user.id, user.username, Category.TOTAL_COINS, progress.coins, now)
    await upsert_score(db, user.id, user.username, Category.FARM_LEVEL, progress.level, now)
    await upsert_score(db, user.id, user.username, Category.SUSTAINABILITY, progress.sustainability_score, now)


class GameSnapshotStore:
    """Save/load of the single current snapshot per user."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def save(self, user_id: int, payload: SnapshotPayload | dict[str, Any]) -> int:
        """
        Replace the user's current snapshot. Returns the save id.

        Raises:
            MalformedPayload: If state/plots/camera have the wrong shape.
            NotFound: If the user does not exist or is deactivated.
        """
        snapshot = parse_payload(payload)
        progress = extract_progress(snapshot.state)
        now = datetime.now(timezone.utc)

        async with self._db.transaction() as db:
            user = await get_active_user(db, user_id)
            save_id = await write_game_save(db, user.id, snapshot, now)
            if progress is not None:
                await apply_progress(db, user, progress, now)
            await db.flush()

        logger.info(
            "game_saved",
            user_id=user_id,
            save_id=save_id,
            plots=len(snapshot.plots),
            progress_updated=progress is not None,
        )
        return save_id

    async def load(self, user_id: int) -> Snapshot | None:
        """Return the current snapshot, or None if the user never saved."""
        async with self._db.transaction() as db:
            save = await get_game_save(db, user_id)
            if save is None:
                return None
            return Snapshot(
                state=save.game_state,
                plots=save.plots_data,
                camera=save.camera_data,
                label=save.save_name,
                is_auto_save=save.is_auto_save,
                updated_at=save.updated_at,
            )

    async def reset_progress(self, user_id: int) -> None:
        """Restore the progress summary to new-account defaults and drop the save."""
        settings = get_settings()
        now = datetime.now(timezone.utc)

        async with self._db.transaction() as db:
            user = await get_active_user(db, user_id)
            await db.execute(delete(GameSave).where(GameSave.user_id == user.id))
            defaults = ProgressSummary(
                level=settings.default_farm_level,
                coins=settings.default_total_coins,
                xp=0,
                sustainability_rating=DEFAULT_RATING,
                organic_certified=False,
            )
            await apply_progress(db, user, defaults, now)
            await db.flush()

        logger.info("progress_reset", user_id=user_id)
