"""Collaborator interfaces consumed by the risk engine, with in-memory implementations.

The engine never performs I/O itself. Profile storage, the recent-transaction
lookup and alert storage are injected; every call is awaited under a bounded
timeout and a timeout is reported to the caller, never retried here.
"""

import asyncio
from collections import defaultdict
from collections.abc import Awaitable
from datetime import datetime
from typing import Protocol, TypeVar, runtime_checkable

from src.domains.behavior.models import UserBehaviorProfile

from .models import FraudAlert, Transaction

T = TypeVar("T")


@runtime_checkable
class ProfileStore(Protocol):
    async def fetch(self, user_id: str) -> UserBehaviorProfile | None: ...

    async def commit(self, user_id: str, profile: UserBehaviorProfile) -> None: ...


@runtime_checkable
class RecentTransactionLookup(Protocol):
    async def count_since(self, user_id: str, since: datetime) -> int:
        """Count the user's previously recorded transactions at or after ``since``."""
        ...


@runtime_checkable
class AlertSink(Protocol):
    async def store(self, alert: FraudAlert) -> None: ...


@runtime_checkable
class TransactionRecorder(Protocol):
    async def record(self, transaction: Transaction) -> None:
        """Make a scored transaction visible to later velocity lookups. Idempotent per transaction id."""
        ...


async def call_with_timeout(awaitable: Awaitable[T], timeout: float) -> T:
    """Await a collaborator call, raising TimeoutError once ``timeout`` seconds elapse."""
    return await asyncio.wait_for(awaitable, timeout=timeout)


class InMemoryProfileStore:
    """Profile store backed by a dict. Hands out copies so callers cannot mutate stored state."""

    def __init__(self) -> None:
        self._profiles: dict[str, UserBehaviorProfile] = {}

    async def fetch(self, user_id: str) -> UserBehaviorProfile | None:
        profile = self._profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def commit(self, user_id: str, profile: UserBehaviorProfile) -> None:
        self._profiles[user_id] = profile.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._profiles)


class InMemoryTransactionLog:
    """Recent-transaction lookup over recorded transactions, keyed by transaction id."""

    def __init__(self) -> None:
        self._times: dict[str, dict[str, datetime]] = defaultdict(dict)

    async def record(self, transaction: Transaction) -> None:
        if transaction.transaction_time is not None:
            self._times[transaction.user_id].setdefault(transaction.transaction_id, transaction.transaction_time)

    async def count_since(self, user_id: str, since: datetime) -> int:
        return sum(1 for ts in self._times.get(user_id, {}).values() if ts >= since)


class InMemoryAlertSink:
    """Alert storage keyed by transaction; storing the same alert twice is a no-op."""

    def __init__(self) -> None:
        self._alerts: dict[str, FraudAlert] = {}

    async def store(self, alert: FraudAlert) -> None:
        self._alerts.setdefault(alert.transaction_id, alert)

    @property
    def alerts(self) -> list[FraudAlert]:
        return list(self._alerts.values())
