"""Leaderboard categories and the sustainability rating scale.

The rating scale is ordered; its ordinal (Beginner=1 ... Eco Master=5) is
the score used on the sustainability leaderboard.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from farmledger.errors import UnknownCategory


class Category(str, Enum):
    """Leaderboard dimensions. New members need no schema change."""

    TOTAL_COINS = "total_coins"
    FARM_LEVEL = "farm_level"
    SUSTAINABILITY = "sustainability"


@dataclass(frozen=True)
class CategoryInfo:
    key: str
    name: str
    description: str


CATEGORY_INFO: dict[Category, CategoryInfo] = {
    Category.TOTAL_COINS: CategoryInfo(
        "total_coins", "Coin Masters", "Players with the most coins earned"
    ),
    Category.FARM_LEVEL: CategoryInfo(
        "farm_level", "Top Farmers", "Highest level farmers"
    ),
    Category.SUSTAINABILITY: CategoryInfo(
        "sustainability", "Eco Champions", "Most sustainable farming practices"
    ),
}

SUSTAINABILITY_RATINGS: tuple[str, ...] = (
    "Beginner",
    "Learning",
    "Eco Enthusiast",
    "Green Farmer",
    "Eco Master",
)
DEFAULT_RATING = SUSTAINABILITY_RATINGS[0]

# Score threshold -> badge, highest first
_ECO_BADGES: tuple[tuple[int, str], ...] = (
    (5, "Eco Master"),
    (4, "Green Farmer"),
    (3, "Eco Enthusiast"),
)


def parse_category(value: str | Category) -> Category:
    """Resolve a category key.

    Raises:
        UnknownCategory: If the key is not a known category.
    """
    if isinstance(value, Category):
        return value
    try:
        return Category(value)
    except ValueError:
        valid = [c.value for c in Category]
        msg = f"Unknown leaderboard category: {value!r}"
        raise UnknownCategory(msg, details={"valid_categories": valid}) from None


def rating_to_score(rating: str | None) -> int:
    """Map a sustainability rating label to its ordinal score.

    Beginner -> 1 ... Eco Master -> 5. Unknown or missing labels count as Beginner.
    """
    try:
        return SUSTAINABILITY_RATINGS.index(rating) + 1  # type: ignore[arg-type]
    except ValueError:
        return 1


def score_to_rating(score: int) -> str:
    """Inverse of ``rating_to_score``. Out-of-range scores read as 'Unknown'."""
    if 1 <= score <= len(SUSTAINABILITY_RATINGS):
        return SUSTAINABILITY_RATINGS[score - 1]
    return "Unknown"


def normalize_rating(rating: str | None) -> str:
    """Return the rating if it is on the scale, else the default."""
    return rating if rating in SUSTAINABILITY_RATINGS else DEFAULT_RATING


def eco_badges(score: int) -> list[str]:
    """Badges shown next to a sustainability score."""
    return [badge for threshold, badge in _ECO_BADGES if score >= threshold]


def format_score(category: str | Category, score: int) -> str:
    """Human-readable score for a category."""
    category = parse_category(category)
    if category is Category.TOTAL_COINS:
        return f"{score:,} coins"
    if category is Category.FARM_LEVEL:
        return f"Level {score}"
    return score_to_rating(score)
