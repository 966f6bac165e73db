"""Session manager: issue, validate, expiry and revocation."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from farmledger.auth.schemas import OriginMeta
from farmledger.auth.sessions import fingerprint
from farmledger.db.models import UserSession
from farmledger.errors import ExpiredSession, InvalidArgument, InvalidSession, NotFound

pytestmark = pytest.mark.asyncio


class TestIssue:
    async def test_issue_returns_token_once(self, ledger, farmer, clock):
        token, session = await ledger.sessions.issue(farmer.id, origin=OriginMeta(ip_address="10.0.0.1", user_agent="pytest"))
        assert len(token) >= 60
        assert session.user_id == farmer.id
        assert session.expires_at == clock.now + timedelta(days=7)
        assert session.ip_address == "10.0.0.1"
        assert session.user_agent == "pytest"

    async def test_only_fingerprint_is_stored(self, ledger, farmer):
        token, session = await ledger.sessions.issue(farmer.id)
        async with ledger.database.transaction() as db:
            row = (await db.execute(select(UserSession).where(UserSession.id == session.id))).scalar_one()
        assert row.token_hash == fingerprint(token)
        assert row.token_hash != token

    async def test_tokens_are_unique(self, ledger, farmer):
        first, _ = await ledger.sessions.issue(farmer.id)
        second, _ = await ledger.sessions.issue(farmer.id)
        assert first != second

    async def test_non_positive_ttl_rejected(self, ledger, farmer):
        with pytest.raises(InvalidArgument):
            await ledger.sessions.issue(farmer.id, ttl=timedelta(0))

    async def test_unknown_user(self, ledger):
        with pytest.raises(NotFound):
            await ledger.sessions.issue(999)


class TestValidate:
    async def test_valid_token_resolves_user(self, ledger, farmer):
        token, _ = await ledger.sessions.issue(farmer.id)
        identity = await ledger.sessions.validate(token)
        assert identity.id == farmer.id
        assert identity.username == "farmer1"

    async def test_refreshes_last_used(self, ledger, farmer, clock):
        token, session = await ledger.sessions.issue(farmer.id)
        clock.advance(60)
        await ledger.sessions.validate(token)
        active = await ledger.sessions.list_active(farmer.id)
        assert active[0].last_used == session.created_at + timedelta(seconds=60)

    async def test_expired_after_ttl(self, ledger, farmer, clock):
        token, _ = await ledger.sessions.issue(farmer.id, ttl=timedelta(seconds=1))
        assert (await ledger.sessions.validate(token)).id == farmer.id
        clock.advance(2)
        with pytest.raises(ExpiredSession):
            await ledger.sessions.validate(token)

    async def test_expiry_boundary_is_exclusive(self, ledger, farmer, clock):
        token, _ = await ledger.sessions.issue(farmer.id, ttl=timedelta(seconds=10))
        clock.advance(10)
        with pytest.raises(ExpiredSession):
            await ledger.sessions.validate(token)

    async def test_unknown_token(self, ledger):
        with pytest.raises(InvalidSession):
            await ledger.sessions.validate("not-a-real-token")

    async def test_empty_token(self, ledger):
        with pytest.raises(InvalidSession):
            await ledger.sessions.validate("")

    async def test_deactivated_user_session_invalid(self, ledger, farmer):
        token, _ = await ledger.sessions.issue(farmer.id)
        await ledger.credentials.deactivate(farmer.id)
        with pytest.raises(InvalidSession):
            await ledger.sessions.validate(token)


class TestRevoke:
    async def test_revoke_then_validate(self, ledger, farmer):
        token, _ = await ledger.sessions.issue(farmer.id)
        assert await ledger.sessions.revoke(token) is True
        with pytest.raises(InvalidSession):
            await ledger.sessions.validate(token)

    async def test_revoke_is_idempotent(self, ledger, farmer):
        token, _ = await ledger.sessions.issue(farmer.id)
        assert await ledger.sessions.revoke(token) is True
        assert await ledger.sessions.revoke(token) is False

    async def test_revoke_unknown_token_is_not_an_error(self, ledger):
        assert await ledger.sessions.revoke("never-issued") is False

    async def test_revoke_all(self, ledger, farmer):
        tokens = [(await ledger.sessions.issue(farmer.id))[0] for _ in range(3)]
        assert await ledger.sessions.revoke_all(farmer.id) == 3
        for token in tokens:
            with pytest.raises(InvalidSession):
                await ledger.sessions.validate(token)
        assert await ledger.sessions.list_active(farmer.id) == []


class TestPurge:
    async def test_purge_removes_expired_and_revoked(self, ledger, farmer, clock):
        expiring, _ = await ledger.sessions.issue(farmer.id, ttl=timedelta(seconds=5))
        revoked, _ = await ledger.sessions.issue(farmer.id)
        live, _ = await ledger.sessions.issue(farmer.id)
        await ledger.sessions.revoke(revoked)
        clock.advance(10)

        assert await ledger.sessions.purge_expired() == 2
        assert (await ledger.sessions.validate(live)).id == farmer.id
        with pytest.raises(InvalidSession):
            await ledger.sessions.validate(expiring)
