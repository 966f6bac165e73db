"""
Credential store.

Owns account identity: registration, password verification, profile edits
and soft deactivation. Usernames and emails are unique case-insensitively.
Raw passwords never reach storage or the logs.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from farmledger.auth.password import (
    check_needs_rehash,
    dummy_hash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from farmledger.auth.schemas import UserProfile, UserPublic
from farmledger.auth.sessions import revoke_user_sessions
from farmledger.config import get_settings
from farmledger.db.models import User
from farmledger.errors import (
    BadCredential,
    DuplicateIdentity,
    InvalidArgument,
    InvalidUsername,
    NotFound,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from farmledger.database import Database

logger = structlog.get_logger()

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
_email_adapter = TypeAdapter(EmailStr)


# ---------------------------------------------------------------------------
# Input normalization
# ---------------------------------------------------------------------------


def normalize_username(username: str) -> str:
    """Validate a username and return it trimmed.

    Raises:
        InvalidUsername: If length or characters are out of bounds.
    """
    settings = get_settings()
    username = (username or "").strip()
    if not settings.username_min_length <= len(username) <= settings.username_max_length:
        msg = (
            f"Username must be {settings.username_min_length}-{settings.username_max_length} characters"
        )
        raise InvalidUsername(msg)
    if not _USERNAME_RE.match(username):
        msg = "Username may only contain letters, numbers, and underscores"
        raise InvalidUsername(msg)
    return username


def normalize_email(email: str) -> str:
    """Validate an email address and return it lowercased."""
    try:
        validated = _email_adapter.validate_python((email or "").strip())
    except ValidationError as e:
        msg = "Please provide a valid email address"
        raise InvalidArgument(msg) from e
    return validated.lower()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID, active or not."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_active_user(db: AsyncSession, user_id: int) -> User:
    """Fetch an active user by ID.

    Raises:
        NotFound: If the user does not exist or is deactivated.
    """
    user = await get_user_by_id(db, user_id)
    if user is None or not user.is_active:
        msg = f"User {user_id} not found"
        raise NotFound(msg)
    return user


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Fetch a user by username (case-insensitive)."""
    result = await db.execute(select(User).where(User.username_normalized == username.strip().lower()))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


async def find_login_candidate(db: AsyncSession, username_or_email: str) -> User | None:
    """Look up an active user by username OR email."""
    needle = username_or_email.strip().lower()
    result = await db.execute(
        select(User)
        .where(or_(User.username_normalized == needle, func.lower(User.email) == needle))
        .where(User.is_active.is_(True))
    )
    return result.scalars().first()


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class CredentialStore:
    """Registration and password authentication over a shared ``Database``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def register(
        self,
        username: str,
        email: str,
        raw_password: str,
        display_name: str | None = None,
    ) -> UserPublic:
        """
        Register a new account.

        Raises:
            InvalidUsername / WeakPassword / InvalidArgument: Input rejected.
            DuplicateIdentity: Username or email already taken.
        """
        username = normalize_username(username)
        email = normalize_email(email)
        validate_password_strength(raw_password)
        password_hash = hash_password(raw_password)

        settings = get_settings()
        now = datetime.now(timezone.utc)

        async with self._db.transaction() as db:
            if await get_user_by_email(db, email) is not None:
                msg = "Email already registered"
                raise DuplicateIdentity(msg, details={"field": "email"})
            if await get_user_by_username(db, username) is not None:
                msg = "Username already taken"
                raise DuplicateIdentity(msg, details={"field": "username"})

            user = User(
                username=username,
                username_normalized=username.lower(),
                email=email,
                password_hash=password_hash,
                display_name=(display_name or "").strip() or username,
                is_active=True,
                farm_level=settings.default_farm_level,
                total_coins=settings.default_total_coins,
                total_xp=0,
                sustainability_rating="Beginner",
                organic_certified=False,
                created_at=now,
                updated_at=now,
            )
            db.add(user)
            try:
                await db.flush()
            except IntegrityError as e:
                # Lost a race with a concurrent registration
                msg = "Username or email already exists"
                raise DuplicateIdentity(msg) from e

            logger.info("user_registered", user_id=user.id, username=user.username)
            return UserPublic.model_validate(user)

    async def authenticate(self, username_or_email: str, raw_password: str) -> UserPublic:
        """
        Verify a username-or-email and password pair.

        Unknown accounts and wrong passwords both raise BadCredential so the
        error surface cannot be used to enumerate accounts.
        """
        async with self._db.transaction() as db:
            user = await find_login_candidate(db, username_or_email or "")
            if user is None:
                verify_password(raw_password or "", dummy_hash())
                logger.info("login_failed", reason="unknown_account")
                raise BadCredential()

            if not verify_password(raw_password or "", user.password_hash):
                logger.info("login_failed", reason="password_mismatch", user_id=user.id)
                raise BadCredential()

            user.last_login = datetime.now(timezone.utc)
            if check_needs_rehash(user.password_hash):
                user.password_hash = hash_password(raw_password)
                logger.info("password_rehashed", user_id=user.id)
            await db.flush()

            logger.info("login_succeeded", user_id=user.id)
            return UserPublic.model_validate(user)

    async def get_user(self, user_id: int) -> UserProfile:
        """Return the full profile of an active user."""
        async with self._db.transaction() as db:
            user = await get_active_user(db, user_id)
            return UserProfile.model_validate(user)

    async def get_by_username(self, username: str) -> UserPublic | None:
        async with self._db.transaction() as db:
            user = await get_user_by_username(db, username)
            if user is None or not user.is_active:
                return None
            return UserPublic.model_validate(user)

    async def get_by_email(self, email: str) -> UserPublic | None:
        async with self._db.transaction() as db:
            user = await get_user_by_email(db, email)
            if user is None or not user.is_active:
                return None
            return UserPublic.model_validate(user)

    async def update_profile(
        self,
        user_id: int,
        display_name: str | None = None,
        email: str | None = None,
    ) -> UserProfile:
        """
        Update display name and/or email.

        Raises:
            DuplicateIdentity: If the new email belongs to another account.
        """
        async with self._db.transaction() as db:
            user = await get_active_user(db, user_id)

            if email is not None:
                normalized = normalize_email(email)
                existing = await get_user_by_email(db, normalized)
                if existing is not None and existing.id != user.id:
                    msg = "Email already registered"
                    raise DuplicateIdentity(msg, details={"field": "email"})
                user.email = normalized

            if display_name is not None:
                display_name = display_name.strip()
                if len(display_name) > 100:
                    msg = "Display name must not exceed 100 characters"
                    raise InvalidArgument(msg)
                user.display_name = display_name or user.username

            user.updated_at = datetime.now(timezone.utc)
            try:
                await db.flush()
            except IntegrityError as e:
                msg = "Email already registered"
                raise DuplicateIdentity(msg, details={"field": "email"}) from e
            return UserProfile.model_validate(user)

    async def deactivate(self, user_id: int) -> None:
        """Soft-delete an account and revoke all of its sessions.

        History (leaderboard entries, achievements, saves) is kept.
        """
        async with self._db.transaction() as db:
            user = await get_active_user(db, user_id)
            now = datetime.now(timezone.utc)
            user.is_active = False
            user.updated_at = now
            revoked = await revoke_user_sessions(db, user.id, now)
            await db.flush()
            logger.info("user_deactivated", user_id=user.id, sessions_revoked=revoked)
