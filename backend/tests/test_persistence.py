"""
Tests for the PostgreSQL-backed stores.

These tests cover:
- RemoteStore: per-user match state (save/load/clear/exists)
- ShareStore: share codes and spectator reads

Tests use an in-memory fake asyncpg pool (see conftest.py).
"""

import json
import logging

import pytest

from models.match_state import default_match_state
from stores.remote_store import ConnectivityError, RemoteStore, UsageError
from stores.share_store import ShareStore


@pytest.fixture
def remote_store(fake_pool):
    return RemoteStore(fake_pool)


@pytest.fixture
def share_store(fake_pool):
    return ShareStore(fake_pool)


# =============================================================================
# RemoteStore Tests
# =============================================================================

class TestRemoteStore:

    @pytest.mark.asyncio
    async def test_save_and_load(self, remote_store, fake_conn, scoring_state):
        assert await remote_store.save(scoring_state, "user-1") is True

        assert "user-1" in fake_conn.matches
        assert await remote_store.load("user-1") == scoring_state

    @pytest.mark.asyncio
    async def test_save_refreshes_updated_at(self, remote_store, fake_conn, scoring_state):
        await remote_store.save(scoring_state, "user-1")
        first = fake_conn.matches["user-1"]["updated_at"]

        await remote_store.save(scoring_state, "user-1")
        second = fake_conn.matches["user-1"]["updated_at"]

        assert second.tzinfo is not None
        assert second >= first

    @pytest.mark.asyncio
    async def test_save_stores_wire_shape(self, remote_store, fake_conn, scoring_state):
        await remote_store.save(scoring_state, "user-1")
        blob = json.loads(fake_conn.matches["user-1"]["match_data"])

        assert blob["currentHole"] == 3
        assert blob["phase"] == "scoring"
        assert blob["holeResults"][0]["holeNumber"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", [None, ""])
    async def test_save_without_user_raises(self, remote_store, scoring_state, user_id):
        with pytest.raises(UsageError):
            await remote_store.save(scoring_state, user_id)

    @pytest.mark.asyncio
    async def test_save_error_returns_false(self, remote_store, fake_conn, scoring_state):
        fake_conn.fail_with = OSError("connection refused")
        assert await remote_store.save(scoring_state, "user-1") is False

    @pytest.mark.asyncio
    async def test_load_without_user_returns_none(self, remote_store):
        assert await remote_store.load(None) is None

    @pytest.mark.asyncio
    async def test_load_not_found_returns_none(self, remote_store):
        assert await remote_store.load("new-user") is None

    @pytest.mark.asyncio
    async def test_load_error_returns_none(self, remote_store, fake_conn):
        fake_conn.fail_with = OSError("connection refused")
        assert await remote_store.load("user-1") is None

    @pytest.mark.asyncio
    async def test_load_invalid_deletes_record(self, remote_store, fake_conn):
        fake_conn.matches["user-1"] = {
            "match_data": json.dumps({"players": [], "phase": "bogus"}),
            "updated_at": None,
        }

        assert await remote_store.load("user-1") is None
        assert "user-1" not in fake_conn.matches

    @pytest.mark.asyncio
    async def test_load_accepts_decoded_jsonb(self, remote_store, fake_conn, scoring_state):
        fake_conn.matches["user-1"] = {"match_data": scoring_state.to_dict(), "updated_at": None}
        assert await remote_store.load("user-1") == scoring_state

    @pytest.mark.asyncio
    async def test_clear(self, remote_store, fake_conn, scoring_state):
        await remote_store.save(scoring_state, "user-1")

        assert await remote_store.clear("user-1") is True
        assert await remote_store.clear("user-1") is True
        assert await remote_store.load("user-1") is None

    @pytest.mark.asyncio
    async def test_clear_without_user_is_noop_success(self, remote_store, fake_conn):
        assert await remote_store.clear(None) is True
        assert fake_conn.executed == []

    @pytest.mark.asyncio
    async def test_clear_error_returns_false(self, remote_store, fake_conn):
        fake_conn.fail_with = OSError("connection reset")
        assert await remote_store.clear("user-1") is False

    @pytest.mark.asyncio
    async def test_exists(self, remote_store, scoring_state):
        assert await remote_store.exists("user-1") is False
        await remote_store.save(scoring_state, "user-1")
        assert await remote_store.exists("user-1") is True
        assert await remote_store.exists(None) is False

    @pytest.mark.asyncio
    async def test_exists_error_raises_connectivity(self, remote_store, fake_conn):
        fake_conn.fail_with = OSError("connection refused")
        with pytest.raises(ConnectivityError):
            await remote_store.exists("user-1")

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, remote_store, scoring_state):
        await remote_store.save(scoring_state, "user-1")
        await remote_store.save(default_match_state(), "user-2")

        assert await remote_store.load("user-1") == scoring_state
        assert await remote_store.load("user-2") == default_match_state()

    @pytest.mark.asyncio
    async def test_close_closes_pool(self, remote_store, fake_pool):
        await remote_store.close()
        assert fake_pool.closed is True


# =============================================================================
# ShareStore Tests
# =============================================================================

class TestShareStore:

    @pytest.mark.asyncio
    async def test_create_and_get_share_code(self, share_store):
        code = await share_store.create_share_code("user-1")

        assert code is not None and len(code) == 4 and code.isdigit()
        assert await share_store.get_share_code("user-1") == code

    @pytest.mark.asyncio
    async def test_create_requires_user(self, share_store):
        with pytest.raises(UsageError):
            await share_store.create_share_code(None)

    @pytest.mark.asyncio
    async def test_new_code_deactivates_old(self, share_store):
        first = await share_store.create_share_code("user-1")
        second = await share_store.create_share_code("user-1")

        assert first != second
        assert (await share_store.validate_share_code(first)).valid is False
        assert (await share_store.validate_share_code(second)).valid is True

    @pytest.mark.asyncio
    async def test_create_retries_on_collision(self, share_store, fake_conn, monkeypatch):
        fake_conn.shares.append({"user_id": "other", "share_code": "1111", "is_active": True})
        codes = iter(["1111", "1111", "2222"])
        monkeypatch.setattr("stores.share_store.generate_share_code", lambda: next(codes))

        assert await share_store.create_share_code("user-1") == "2222"

    @pytest.mark.asyncio
    async def test_create_gives_up_after_max_attempts(self, share_store, fake_conn, monkeypatch):
        fake_conn.shares.append({"user_id": "other", "share_code": "1111", "is_active": True})
        monkeypatch.setattr("stores.share_store.generate_share_code", lambda: "1111")

        assert await share_store.create_share_code("user-1") is None

    @pytest.mark.asyncio
    async def test_deactivate_without_user(self, share_store):
        assert await share_store.deactivate_share_codes(None) is True

    @pytest.mark.asyncio
    async def test_deactivate(self, share_store):
        code = await share_store.create_share_code("user-1")
        assert await share_store.deactivate_share_codes("user-1") is True
        assert await share_store.get_share_code("user-1") is None
        assert (await share_store.validate_share_code(code)).valid is False

    @pytest.mark.asyncio
    async def test_validate_returns_owner(self, share_store):
        code = await share_store.create_share_code("user-1")
        lookup = await share_store.validate_share_code(code)

        assert lookup.valid is True
        assert lookup.user_id == "user-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["12", "abcd", "12345", " 123"])
    async def test_get_match_bad_format(self, share_store, code):
        result = await share_store.get_match_by_share_code(code)
        assert result.match_state is None
        assert result.error == "Invalid code format"

    @pytest.mark.asyncio
    async def test_get_match_unknown_code(self, share_store):
        result = await share_store.get_match_by_share_code("9999")
        assert result.error == "Invalid or expired code"

    @pytest.mark.asyncio
    async def test_get_match_no_match(self, share_store):
        code = await share_store.create_share_code("user-1")
        result = await share_store.get_match_by_share_code(code)
        assert result.error == "No match found"

    @pytest.mark.asyncio
    async def test_get_match_by_share_code(self, share_store, fake_pool, scoring_state):
        await RemoteStore(fake_pool).save(scoring_state, "user-1")
        code = await share_store.create_share_code("user-1")

        result = await share_store.get_match_by_share_code(code)

        assert result.error is None
        assert result.match_state == scoring_state

    @pytest.mark.asyncio
    async def test_get_match_database_error(self, share_store, fake_conn, monkeypatch):
        code = await share_store.create_share_code("user-1")

        async def fail_fetchrow(query, *args):
            if "user_current_match" in query:
                raise OSError("connection reset")
            return {"user_id": "user-1"}

        monkeypatch.setattr(fake_conn, "fetchrow", fail_fetchrow)

        result = await share_store.get_match_by_share_code(code)
        assert result.error == "Failed to load match"

    @pytest.mark.asyncio
    async def test_validate_error_logs_share_code(self, share_store, fake_conn, caplog):
        fake_conn.fail_with = OSError("connection refused")

        with caplog.at_level(logging.ERROR, logger="stores.share_store"):
            lookup = await share_store.validate_share_code("0042")

        assert lookup.valid is False
        assert caplog.records[-1].share_code == "0042"
        assert caplog.records[-1].store == "remote"
