"""
FarmLedger engine facade.

Owns the single ``Database`` handle and wires every component onto it.
Route handlers hold one ``FarmLedger`` for the process lifetime:

    async with FarmLedger() as ledger:
        token, user = await ledger.register_and_login("farmer1", "f1@x.com", "pw123456")
        await ledger.snapshots.save(user.id, payload)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from farmledger.achievements.service import AchievementLedger
from farmledger.auth.service import CredentialStore
from farmledger.auth.sessions import Clock, SessionManager
from farmledger.config import Settings, get_settings
from farmledger.database import Database
from farmledger.game.service import GameSnapshotStore
from farmledger.leaderboard.service import LeaderboardEngine
from farmledger.logging import setup_logging
from farmledger.users.service import UserStatsService

if TYPE_CHECKING:
    from types import TracebackType

    from farmledger.auth.schemas import OriginMeta, UserPublic

logger = structlog.get_logger()


class FarmLedger:
    """Accounts, sessions, saves, achievements and leaderboards over one store."""

    def __init__(self, settings: Settings | None = None, clock: Clock | None = None) -> None:
        self.settings = settings or get_settings()
        self.database = Database(self.settings.database_url, echo=self.settings.database_echo)

        self.credentials = CredentialStore(self.database)
        self.sessions = SessionManager(self.database, clock=clock)
        self.snapshots = GameSnapshotStore(self.database)
        self.achievements = AchievementLedger(self.database)
        self.leaderboard = LeaderboardEngine(self.database)
        self.stats = UserStatsService(self.database)

    # --- Lifecycle ---

    async def open(self, create_schema: bool = True) -> None:
        """Connect to the store and create any missing tables.

        Raises:
            StorageFailure: If the store is unreachable.
        """
        setup_logging(self.settings)
        await self.database.open()
        if create_schema:
            await self.database.create_schema()
        logger.info("farmledger_started", version=self.settings.app_version, environment=self.settings.environment)

    async def close(self) -> None:
        await self.database.close()

    async def __aenter__(self) -> FarmLedger:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # --- Convenience flows ---

    async def register_and_login(
        self,
        username: str,
        email: str,
        password: str,
        display_name: str | None = None,
        origin: OriginMeta | None = None,
    ) -> tuple[str, UserPublic]:
        """Register an account and issue its first session."""
        user = await self.credentials.register(username, email, password, display_name)
        token, _ = await self.sessions.issue(user.id, origin=origin)
        return token, user

    async def login(
        self,
        username_or_email: str,
        password: str,
        origin: OriginMeta | None = None,
    ) -> tuple[str, UserPublic]:
        """Authenticate and issue a session.

        Raises:
            BadCredential: Unknown account or wrong password (not distinguished).
        """
        user = await self.credentials.authenticate(username_or_email, password)
        token, _ = await self.sessions.issue(user.id, origin=origin)
        return token, user

    async def logout(self, raw_token: str) -> bool:
        return await self.sessions.revoke(raw_token)
