"""
Session manager.

Issues opaque bearer tokens and stores only their SHA-256 fingerprint, so a
copy of the sessions table does not yield usable tokens. A session is valid
while its fingerprint matches a stored, unrevoked row and the clock is before
its expiry. Expired rows are treated as absent and swept by ``purge_expired``.
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, or_, select, update

from farmledger.auth.schemas import OriginMeta, SessionIdentity, SessionInfo
from farmledger.config import get_settings
from farmledger.db.models import User, UserSession
from farmledger.errors import ExpiredSession, InvalidArgument, InvalidSession, NotFound

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from farmledger.database import Database

logger = structlog.get_logger()

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def fingerprint(raw_token: str) -> str:
    """One-way digest of a bearer token."""
    return hashlib.sha256(raw_token.encode()).hexdigest()


def generate_token(num_bytes: int | None = None) -> str:
    """Generate a URL-safe bearer token from the OS CSPRNG."""
    return secrets.token_urlsafe(num_bytes or get_settings().session_token_bytes)


async def revoke_user_sessions(db: AsyncSession, user_id: int, now: datetime) -> int:
    """Revoke every live session of a user. Returns count revoked."""
    result = await db.execute(
        update(UserSession)
        .where(UserSession.user_id == user_id)
        .where(UserSession.is_revoked == False)  # noqa: E712
        .values(is_revoked=True, revoked_at=now)
    )
    return result.rowcount or 0


class SessionManager:
    """Token lifecycle: Active -> Expired (time) or Active -> Revoked (logout)."""

    def __init__(self, database: Database, clock: Clock | None = None) -> None:
        self._db = database
        self._clock = clock or utc_now

    async def issue(
        self,
        user_id: int,
        ttl: timedelta | None = None,
        origin: OriginMeta | None = None,
    ) -> tuple[str, SessionInfo]:
        """
        Create a session for an active user.

        Returns:
            (raw_token, session). The raw token is returned exactly once and
            cannot be recovered from storage.
        """
        if ttl is None:
            ttl = timedelta(seconds=get_settings().session_ttl_seconds)
        if ttl.total_seconds() <= 0:
            msg = "Session TTL must be positive"
            raise InvalidArgument(msg)
        origin = origin or OriginMeta()

        raw_token = generate_token()
        now = self._clock()

        async with self._db.transaction() as db:
            user = await db.get(User, user_id)
            if user is None or not user.is_active:
                msg = f"User {user_id} not found"
                raise NotFound(msg)

            session = UserSession(
                user_id=user_id,
                token_hash=fingerprint(raw_token),
                expires_at=now + ttl,
                created_at=now,
                last_used=now,
                ip_address=origin.ip_address,
                user_agent=origin.user_agent[:512] if origin.user_agent else None,
                is_revoked=False,
            )
            db.add(session)
            await db.flush()
            logger.info(
                "session_issued",
                user_id=user_id,
                session_id=session.id,
                expires_at=session.expires_at.isoformat(),
            )
            return raw_token, SessionInfo.model_validate(session)

    async def validate(self, raw_token: str) -> SessionIdentity:
        """
        Resolve a bearer token to its user.

        Raises:
            InvalidSession: No live session matches (unknown, revoked, or the
                user was deactivated).
            ExpiredSession: The session exists but its expiry has passed.
        """
        if not raw_token:
            raise InvalidSession()

        now = self._clock()
        async with self._db.transaction() as db:
            result = await db.execute(
                select(UserSession, User.username, User.is_active)
                .join(User, User.id == UserSession.user_id)
                .where(UserSession.token_hash == fingerprint(raw_token))
            )
            row = result.one_or_none()
            if row is None:
                raise InvalidSession()

            session, username, is_active = row
            if session.is_revoked or not is_active:
                raise InvalidSession()
            if now >= session.expires_at:
                raise ExpiredSession()

            session.last_used = now
            await db.flush()
            return SessionIdentity(id=session.user_id, username=username)

    async def revoke(self, raw_token: str) -> bool:
        """Revoke the session behind a token. Idempotent.

        Returns True if a live session was revoked; unknown tokens are not an error.
        """
        if not raw_token:
            return False

        async with self._db.transaction() as db:
            result = await db.execute(
                select(UserSession).where(UserSession.token_hash == fingerprint(raw_token))
            )
            session = result.scalar_one_or_none()
            if session is None or session.is_revoked:
                return False
            session.is_revoked = True
            session.revoked_at = self._clock()
            await db.flush()
            logger.info("session_revoked", user_id=session.user_id, session_id=session.id)
            return True

    async def revoke_all(self, user_id: int) -> int:
        """Revoke every live session of a user ("log out everywhere")."""
        async with self._db.transaction() as db:
            count = await revoke_user_sessions(db, user_id, self._clock())
        logger.info("sessions_revoked", user_id=user_id, count=count)
        return count

    async def list_active(self, user_id: int) -> list[SessionInfo]:
        """List a user's sessions that are neither revoked nor expired."""
        now = self._clock()
        async with self._db.transaction() as db:
            result = await db.execute(
                select(UserSession)
                .where(UserSession.user_id == user_id)
                .where(UserSession.is_revoked == False)  # noqa: E712
                .where(UserSession.expires_at > now)
                .order_by(UserSession.created_at.desc())
            )
            return [SessionInfo.model_validate(s) for s in result.scalars()]

    async def purge_expired(self) -> int:
        """Delete expired and revoked sessions. Storage hygiene only."""
        now = self._clock()
        async with self._db.transaction() as db:
            result = await db.execute(
                delete(UserSession).where(
                    or_(UserSession.expires_at <= now, UserSession.is_revoked == True)  # noqa: E712
                )
            )
            count = result.rowcount or 0
        logger.info("sessions_purged", count=count)
        return count
