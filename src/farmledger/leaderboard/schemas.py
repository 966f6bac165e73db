"""Leaderboard result shapes."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RankedEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    score: int
    formatted_score: str
    updated_at: datetime


class LeaderboardPage(BaseModel):
    category: str
    display_name: str
    entries: list[RankedEntry]
    total: int


class UserPosition(BaseModel):
    """Where a user stands in one category. ``rank`` is None when unranked."""

    category: str
    rank: int | None
    score: int
    total_players: int
    percentile: float = 0.0


class CategorySummary(BaseModel):
    key: str
    name: str
    description: str


class LeaderboardSummary(BaseModel):
    leaderboards: dict[str, list[RankedEntry]]
    categories: list[CategorySummary]


class SustainabilityEntry(BaseModel):
    rank: int
    user_id: int
    username: str
    sustainability_rating: str
    score: int
    badges: list[str]
    updated_at: datetime
