"""User statistics and public profile."""

from __future__ import annotations

import pytest

from farmledger.errors import NotFound

pytestmark = pytest.mark.asyncio


class TestStats:
    async def test_fresh_account(self, ledger, farmer):
        stats = await ledger.stats.get_stats(farmer.id)
        assert stats.username == "farmer1"
        assert stats.farm_level == 1
        assert stats.total_coins == 100
        assert stats.total_achievements == 0
        assert stats.account_age_days == 0
        assert stats.has_game_data is False
        assert stats.last_played is None

    async def test_after_play(self, ledger, farmer):
        await ledger.snapshots.save(
            farmer.id,
            {"state": {"level": 5, "coins": 2500, "sustainabilityRating": "Eco Master"}, "plots": [], "camera": {}},
        )
        await ledger.achievements.add(farmer.id, "sustainability", "Eco Master", points=50)
        await ledger.achievements.add(farmer.id, "farming", "First Harvest", points=10)

        stats = await ledger.stats.get_stats(farmer.id)
        assert stats.farm_level == 5
        assert stats.total_coins == 2500
        assert stats.sustainability_rating == "Eco Master"
        assert stats.total_achievements == 2
        assert stats.eco_achievements == 1
        assert stats.achievement_points == 60
        assert stats.has_game_data is True
        assert stats.last_played is not None

    async def test_last_played_falls_back_to_login(self, ledger, farmer):
        await ledger.credentials.authenticate("farmer1", "pw123456")
        stats = await ledger.stats.get_stats(farmer.id)
        assert stats.last_played is not None

    async def test_unknown_user(self, ledger):
        with pytest.raises(NotFound):
            await ledger.stats.get_stats(999)


class TestProfile:
    async def test_profile(self, ledger, farmer):
        await ledger.achievements.add(farmer.id, "farming", "First Harvest")
        profile = await ledger.stats.get_profile(farmer.id)
        assert profile.username == "farmer1"
        assert profile.total_achievements == 1
        assert profile.last_save_date is None
        assert not hasattr(profile, "email")
