"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from farmledger.auth.password import dummy_hash, reset_hasher
from farmledger.config import get_settings
from farmledger.service import FarmLedger


class FakeClock:
    """Manually advanced clock for session expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def test_settings(tmp_path, monkeypatch):
    """Point settings at a per-test SQLite file with cheap argon2 parameters."""
    monkeypatch.setenv("FARMLEDGER_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("FARMLEDGER_LOG_FORMAT", "console")
    monkeypatch.setenv("FARMLEDGER_ARGON2_TIME_COST", "1")
    monkeypatch.setenv("FARMLEDGER_ARGON2_MEMORY_COST", "1024")
    get_settings.cache_clear()
    reset_hasher()
    dummy_hash.cache_clear()

    yield get_settings()

    get_settings.cache_clear()
    reset_hasher()
    dummy_hash.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def ledger(test_settings, clock: FakeClock) -> AsyncGenerator[FarmLedger, None]:
    """An open FarmLedger on a fresh database. Sessions run on the fake clock."""
    async with FarmLedger(clock=clock) as lg:
        yield lg


@pytest_asyncio.fixture
async def farmer(ledger: FarmLedger):
    """A registered user: farmer1 / f1@x.com / pw123456."""
    return await ledger.credentials.register("farmer1", "f1@x.com", "pw123456")
