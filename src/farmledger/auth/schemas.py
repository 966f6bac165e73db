"""Value objects returned by the credential store and session manager."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class UserPublic(BaseModel):
    """Public identity fields returned on registration and login."""

    model_config = {"from_attributes": True}

    id: int
    username: str
    email: str
    display_name: str | None = None


class UserProfile(UserPublic):
    """Full profile including the progress summary."""

    is_active: bool
    farm_level: int
    total_coins: int
    total_xp: int
    sustainability_rating: str
    organic_certified: bool
    created_at: datetime
    updated_at: datetime
    last_login: datetime | None = None


class SessionIdentity(BaseModel):
    """What a validated token resolves to. Kept small so validation stays cheap."""

    id: int
    username: str


class SessionInfo(BaseModel):
    """Session metadata. Never carries the raw token or its fingerprint."""

    model_config = {"from_attributes": True}

    id: int
    user_id: int
    expires_at: datetime
    created_at: datetime
    last_used: datetime
    ip_address: str | None = None
    user_agent: str | None = None


class OriginMeta(BaseModel):
    """Where a session was requested from."""

    ip_address: str | None = None
    user_agent: str | None = None
