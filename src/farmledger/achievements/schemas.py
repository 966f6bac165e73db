"""Achievement value objects."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AchievementRecord(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    user_id: int
    achievement_type: str
    achievement_name: str
    description: str | None = None
    points: int
    earned_at: datetime


class AchievementSummary(BaseModel):
    """Aggregates shown on profile and stats screens."""

    total: int
    points: int
    eco: int
