"""Tests for leaderboard categories and the sustainability scale."""

import pytest

from farmledger.errors import UnknownCategory
from farmledger.leaderboard.categories import (
    CATEGORY_INFO,
    Category,
    eco_badges,
    format_score,
    normalize_rating,
    parse_category,
    rating_to_score,
    score_to_rating,
)


class TestParseCategory:
    def test_known_keys(self):
        assert parse_category("total_coins") is Category.TOTAL_COINS
        assert parse_category("farm_level") is Category.FARM_LEVEL
        assert parse_category("sustainability") is Category.SUSTAINABILITY

    def test_enum_passes_through(self):
        assert parse_category(Category.FARM_LEVEL) is Category.FARM_LEVEL

    def test_unknown_key_rejected(self):
        with pytest.raises(UnknownCategory) as exc_info:
            parse_category("unknown_category")
        assert "total_coins" in exc_info.value.details["valid_categories"]

    def test_every_category_has_display_info(self):
        assert set(CATEGORY_INFO) == set(Category)
        assert CATEGORY_INFO[Category.SUSTAINABILITY].name == "Eco Champions"


class TestSustainabilityScale:
    @pytest.mark.parametrize(
        ("rating", "score"),
        [
            ("Beginner", 1),
            ("Learning", 2),
            ("Eco Enthusiast", 3),
            ("Green Farmer", 4),
            ("Eco Master", 5),
        ],
    )
    def test_rating_to_score(self, rating, score):
        assert rating_to_score(rating) == score
        assert score_to_rating(score) == rating

    def test_unknown_rating_scores_as_beginner(self):
        assert rating_to_score("Composting Wizard") == 1
        assert rating_to_score(None) == 1

    def test_out_of_range_score(self):
        assert score_to_rating(0) == "Unknown"
        assert score_to_rating(6) == "Unknown"

    def test_normalize_rating(self):
        assert normalize_rating("Green Farmer") == "Green Farmer"
        assert normalize_rating("green farmer") == "Beginner"

    def test_eco_badges(self):
        assert eco_badges(5) == ["Eco Master", "Green Farmer", "Eco Enthusiast"]
        assert eco_badges(3) == ["Eco Enthusiast"]
        assert eco_badges(2) == []


class TestFormatScore:
    def test_coins(self):
        assert format_score("total_coins", 1500) == "1,500 coins"

    def test_level(self):
        assert format_score(Category.FARM_LEVEL, 3) == "Level 3"

    def test_sustainability(self):
        assert format_score("sustainability", 2) == "Learning"
