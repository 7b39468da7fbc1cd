"""Unit tests for the host-side rule cache and SQL collaborators."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.domains.fraud.rule_config import DEFAULT_RULES
from src.domains.fraud.store import CachedRuleSource, SqlRuleRepository, SqlTransactionLookup
from tests.conftest import BASE_TIME


def _session_factory(session):
    """An async_sessionmaker stand-in whose sessions are ``session``."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=None)
    return MagicMock(return_value=context)


class TestCachedRuleSource:
    @pytest.mark.asyncio
    async def test_loads_once_within_ttl(self):
        repository = AsyncMock()
        repository.load.return_value = {"Location": {"rule_type": "location_check", "risk_weight": 25}}
        source = CachedRuleSource(repository, ttl_seconds=300)

        first = await source.get()
        second = await source.get()

        assert first is second
        repository.load.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalidate_forces_reload(self):
        repository = AsyncMock()
        repository.load.return_value = {"Location": {"rule_type": "location_check", "risk_weight": 25}}
        source = CachedRuleSource(repository, ttl_seconds=300)

        await source.get()
        source.invalidate()
        await source.get()

        assert repository.load.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_repository_serves_defaults(self):
        repository = AsyncMock()
        repository.load.return_value = {}
        source = CachedRuleSource(repository)

        assert await source.get() == DEFAULT_RULES


class TestSqlRuleRepository:
    @pytest.mark.asyncio
    async def test_rows_become_host_mapping(self):
        row = MagicMock(
            rule_name="High Frequency",
            rule_type="velocity_check",
            conditions={"max_transactions": 5, "time_window": "1 hour"},
            risk_weight=40.0,
            is_active=True,
            description=None,
        )
        result = MagicMock()
        result.scalars.return_value = MagicMock(all=MagicMock(return_value=[row]))
        session = AsyncMock()
        session.execute = AsyncMock(return_value=result)

        rules = await SqlRuleRepository(_session_factory(session)).load()

        assert rules == {
            "High Frequency": {
                "rule_type": "velocity_check",
                "conditions": {"max_transactions": 5, "time_window": "1 hour"},
                "risk_weight": 40.0,
                "is_active": True,
                "description": "",
            }
        }


class TestSqlTransactionLookup:
    @pytest.mark.asyncio
    async def test_count_since(self):
        result = MagicMock()
        result.scalar_one.return_value = 3
        session = AsyncMock()
        session.execute = AsyncMock(return_value=result)

        count = await SqlTransactionLookup(_session_factory(session)).count_since("user-1", BASE_TIME)

        assert count == 3
        session.execute.assert_awaited_once()
