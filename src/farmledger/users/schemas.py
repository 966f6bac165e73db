"""User statistics and profile shapes."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class UserStats(BaseModel):
    username: str
    farm_level: int
    total_coins: int
    total_xp: int
    sustainability_rating: str
    organic_certified: bool
    total_achievements: int
    eco_achievements: int
    achievement_points: int
    account_age_days: int
    last_played: datetime | None = None
    has_game_data: bool


class PublicProfile(BaseModel):
    """Profile as shown to other players. No email."""

    id: int
    username: str
    display_name: str | None = None
    farm_level: int
    total_coins: int
    sustainability_rating: str
    organic_certified: bool
    created_at: datetime
    total_achievements: int
    last_save_date: datetime | None = None
