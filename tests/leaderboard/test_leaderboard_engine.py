"""Leaderboard engine: upsert, ordering, positions and views."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import select

from farmledger.db.models import LeaderboardEntry
from farmledger.errors import InvalidArgument, NotFound, UnknownCategory

pytestmark = pytest.mark.asyncio


async def _players(ledger, scores: dict[str, int], category: str = "total_coins") -> dict[str, int]:
    ids = {}
    for i, (name, score) in enumerate(scores.items()):
        user = await ledger.credentials.register(name, f"p{i}@farm.org", "pw123456")
        await ledger.leaderboard.update_score(user.id, name, category, score)
        ids[name] = user.id
    return ids


class TestUpdateScore:
    async def test_upsert_replaces_score(self, ledger, farmer):
        await ledger.leaderboard.update_score(farmer.id, "farmer1", "total_coins", 100)
        await ledger.leaderboard.update_score(farmer.id, "farmer1", "total_coins", 700)
        page = await ledger.leaderboard.get_leaderboard("total_coins", 10)
        assert page.total == 1
        assert page.entries[0].score == 700

    async def test_negative_score_rejected(self, ledger, farmer):
        with pytest.raises(InvalidArgument):
            await ledger.leaderboard.update_score(farmer.id, "farmer1", "total_coins", -1)

    async def test_unknown_user_rejected(self, ledger):
        with pytest.raises(NotFound):
            await ledger.leaderboard.update_score(999, "ghost", "total_coins", 10)

    async def test_deactivated_user_rejected(self, ledger, farmer):
        await ledger.leaderboard.update_score(farmer.id, "farmer1", "total_coins", 10)
        await ledger.credentials.deactivate(farmer.id)
        with pytest.raises(NotFound):
            await ledger.leaderboard.update_score(farmer.id, "farmer1", "total_coins", 900)

        async with ledger.database.transaction() as db:
            score = (
                await db.execute(select(LeaderboardEntry.score).where(LeaderboardEntry.user_id == farmer.id))
            ).scalar_one()
        assert score == 10

    async def test_update_logged_as_event(self, ledger, farmer, caplog):
        caplog.set_level(logging.DEBUG)
        await ledger.leaderboard.update_score(farmer.id, "farmer1", "total_coins", 250)
        assert "leaderboard_updated" in caplog.text

    async def test_unknown_category_rejected(self, ledger, farmer):
        with pytest.raises(UnknownCategory):
            await ledger.leaderboard.update_score(farmer.id, "farmer1", "gold_bars", 1)


class TestGetLeaderboard:
    async def test_ordering_and_ranks(self, ledger):
        await _players(ledger, {"alice": 300, "bob": 1500, "carol": 50, "dave": 900})
        page = await ledger.leaderboard.get_leaderboard("total_coins", 10)

        assert page.display_name == "Coin Masters"
        assert [e.username for e in page.entries] == ["bob", "dave", "alice", "carol"]
        assert [e.rank for e in page.entries] == [1, 2, 3, 4]
        assert page.entries[0].formatted_score == "1,500 coins"

    async def test_ties_go_to_first_achiever(self, ledger):
        ids = await _players(ledger, {"early": 500, "late": 500})
        page = await ledger.leaderboard.get_leaderboard("total_coins", 10)
        assert [e.user_id for e in page.entries] == [ids["early"], ids["late"]]

    async def test_resubmitting_same_score_keeps_priority(self, ledger):
        ids = await _players(ledger, {"early": 500, "late": 500})
        await ledger.leaderboard.update_score(ids["early"], "early", "total_coins", 500)
        page = await ledger.leaderboard.get_leaderboard("total_coins", 10)
        assert page.entries[0].user_id == ids["early"]

    async def test_limit_applied(self, ledger):
        await _players(ledger, {f"player{i}": i * 10 for i in range(1, 8)})
        page = await ledger.leaderboard.get_leaderboard("total_coins", 3)
        assert len(page.entries) == 3
        assert page.total == 7

    async def test_limit_clamped_to_ceiling(self, ledger):
        await _players(ledger, {"alice": 1})
        page = await ledger.leaderboard.get_leaderboard("total_coins", 10_000)
        assert len(page.entries) == 1

    @pytest.mark.parametrize("limit", [0, -5])
    async def test_non_positive_limit(self, ledger, limit):
        with pytest.raises(InvalidArgument):
            await ledger.leaderboard.get_leaderboard("total_coins", limit)

    async def test_unknown_category(self, ledger):
        with pytest.raises(UnknownCategory):
            await ledger.leaderboard.get_leaderboard("unknown_category", 5)

    async def test_deactivated_users_not_ranked(self, ledger):
        ids = await _players(ledger, {"alice": 300, "bob": 1500})
        await ledger.credentials.deactivate(ids["bob"])
        page = await ledger.leaderboard.get_leaderboard("total_coins", 10)
        assert [e.username for e in page.entries] == ["alice"]
        assert page.entries[0].rank == 1


class TestPositions:
    async def test_user_position(self, ledger):
        ids = await _players(ledger, {"alice": 300, "bob": 1500, "carol": 50, "dave": 900})
        position = await ledger.leaderboard.get_user_position(ids["alice"], "total_coins")
        assert position.rank == 3
        assert position.score == 300
        assert position.total_players == 4
        assert position.percentile == 25.0

    async def test_position_matches_leaderboard_on_ties(self, ledger):
        ids = await _players(ledger, {"a1": 100, "a2": 100, "a3": 100})
        page = await ledger.leaderboard.get_leaderboard("total_coins", 10)
        for entry in page.entries:
            position = await ledger.leaderboard.get_user_position(entry.user_id, "total_coins")
            assert position.rank == entry.rank
        assert set(ids.values()) == {e.user_id for e in page.entries}

    async def test_absent_position(self, ledger, farmer):
        assert await ledger.leaderboard.get_user_position(farmer.id, "farm_level") is None

    async def test_all_positions(self, ledger, farmer):
        await ledger.leaderboard.update_score(farmer.id, "farmer1", "farm_level", 4)
        positions = await ledger.leaderboard.get_all_positions(farmer.id)
        assert set(positions) == {"total_coins", "farm_level", "sustainability"}
        assert positions["farm_level"].rank == 1
        assert positions["total_coins"].rank is None
        assert positions["total_coins"].score == 0


class TestViews:
    async def test_summary(self, ledger):
        await _players(ledger, {f"player{i}": i for i in range(1, 8)})
        summary = await ledger.leaderboard.get_summary()
        assert len(summary.leaderboards["total_coins"]) == 5
        assert summary.leaderboards["farm_level"] == []
        assert [c.key for c in summary.categories] == ["total_coins", "farm_level", "sustainability"]

    async def test_sustainability_detailed(self, ledger):
        await _players(ledger, {"green": 4, "newbie": 1}, category="sustainability")
        rows = await ledger.leaderboard.get_sustainability_detailed(10)
        assert [r.username for r in rows] == ["green", "newbie"]
        assert rows[0].sustainability_rating == "Green Farmer"
        assert rows[0].badges == ["Green Farmer", "Eco Enthusiast"]
        assert rows[1].badges == []
