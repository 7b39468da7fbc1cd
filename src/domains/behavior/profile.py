"""Per-user behavior profile accessor.

Reads and incrementally updates each user's rolling transaction profile.
Updates are O(1): amount mean and standard deviation follow Welford's
streaming algorithm, merchant/location/device sets are bounded recency
lists, and frequency estimates derive from first/last transaction times.

The accessor also owns per-user sequencing: ``lock(user_id)`` serializes the
read-modify-write cycle for one user in arrival order while different users
proceed independently.
"""

import asyncio
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog

from src.domains.fraud.collaborators import ProfileStore, call_with_timeout
from src.domains.fraud.exceptions import PersistenceError, ProfileUnavailable
from src.domains.fraud.models import Transaction

from .config import BehaviorConfig, default_config
from .models import ProfileStatus, UserBehaviorProfile

logger = structlog.get_logger()

SECONDS_PER_DAY = 86400.0


class UserLockRegistry:
    """Sharded per-user asyncio locks, dropped once no task holds or waits on them."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[user_id] -= 1
            if self._holders[user_id] == 0:
                del self._holders[user_id]
                del self._locks[user_id]

    def __len__(self) -> int:
        return len(self._locks)


class BehaviorProfileAccessor:
    """Fetches, updates and commits per-user behavior profiles."""

    def __init__(
        self,
        store: ProfileStore,
        config: BehaviorConfig | None = None,
        timeout_seconds: float = 2.0,
    ) -> None:
        self._store = store
        self._config = config or default_config
        self._timeout = timeout_seconds
        self._locks = UserLockRegistry()

    def lock(self, user_id: str):
        """Async context manager serializing profile read-modify-write for one user."""
        return self._locks.hold(user_id)

    async def fetch(self, user_id: str) -> UserBehaviorProfile:
        """Return the stored profile, or a fresh zero profile when none exists.

        Raises ProfileUnavailable when the store fails or times out.
        """
        try:
            profile = await call_with_timeout(self._store.fetch(user_id), self._timeout)
        except TimeoutError as exc:
            raise ProfileUnavailable(user_id, f"timed out after {self._timeout}s") from exc
        except Exception as exc:
            raise ProfileUnavailable(user_id, str(exc) or type(exc).__name__) from exc

        if profile is None:
            logger.debug("profile_created", user_id=user_id)
            return self.default_profile(user_id)
        return profile

    @staticmethod
    def default_profile(user_id: str) -> UserBehaviorProfile:
        return UserBehaviorProfile(user_id=user_id)

    @staticmethod
    def fallback_profile(user_id: str) -> UserBehaviorProfile:
        """Conservative stand-in when the store is unavailable: no baseline, so no
        profile-relative signal can fire."""
        return UserBehaviorProfile(user_id=user_id, profile_status=ProfileStatus.FALLBACK)

    async def commit(self, profile: UserBehaviorProfile) -> None:
        """Persist an updated profile. Raises PersistenceError on failure or timeout."""
        try:
            await call_with_timeout(self._store.commit(profile.user_id, profile), self._timeout)
        except TimeoutError as exc:
            raise PersistenceError(
                f"Profile commit for {profile.user_id} timed out after {self._timeout}s",
                failures=["profile_commit"],
            ) from exc
        except Exception as exc:
            raise PersistenceError(
                f"Profile commit for {profile.user_id} failed: {exc}",
                failures=["profile_commit"],
            ) from exc

    def update(
        self,
        user_id: str,
        transaction: Transaction,
        profile: UserBehaviorProfile,
    ) -> UserBehaviorProfile:
        """Fold one transaction into a copy of ``profile``.

        Deterministic given (profile, transaction): the only clock read is the
        transaction's own timestamp. The input profile is left untouched.
        """
        if transaction.user_id != user_id or profile.user_id != user_id:
            raise ValueError(
                f"Transaction user {transaction.user_id} / profile user {profile.user_id}"
                f" do not match {user_id}"
            )

        cfg = self._config.profile
        p = profile.model_copy(deep=True)
        amount = transaction.amount_float
        ts = transaction.transaction_time or p.last_transaction_at or datetime.now(UTC)

        if p.last_transaction_at and (
            ts < p.last_transaction_at
            or (ts == p.last_transaction_at and transaction.sequence < p.last_sequence)
        ):
            logger.warning(
                "out_of_order_transaction",
                user_id=user_id,
                transaction_id=transaction.transaction_id,
                transaction_time=ts.isoformat(),
                last_transaction_at=p.last_transaction_at.isoformat(),
            )

        # Welford's streaming mean / variance
        p.transaction_count += 1
        n = p.transaction_count
        delta = amount - p.avg_transaction_amount
        p.avg_transaction_amount += delta / n
        p.amount_m2 = max(0.0, p.amount_m2 + delta * (amount - p.avg_transaction_amount))
        p.std_transaction_amount = math.sqrt(p.amount_m2 / (n - 1)) if n > 1 else 0.0
        p.max_transaction_amount = max(p.max_transaction_amount, amount)
        p.total_amount += amount

        # Temporal baseline
        hour = ts.hour
        p.typical_transaction_times[hour] = p.typical_transaction_times.get(hour, 0) + 1

        # Bounded recency sets
        if transaction.merchant_name:
            p.frequent_merchants.pop(transaction.merchant_name, None)
            p.frequent_merchants[transaction.merchant_name] = ts
            while len(p.frequent_merchants) > cfg.max_frequent_merchants:
                oldest = min(p.frequent_merchants, key=p.frequent_merchants.__getitem__)
                del p.frequent_merchants[oldest]
        if transaction.location_country:
            p.usual_countries = self._touch(
                p.usual_countries, transaction.location_country, cfg.max_usual_countries
            )
        if transaction.location_city:
            p.usual_cities = self._touch(
                p.usual_cities, transaction.location_city, cfg.max_usual_cities
            )
        if transaction.device_fingerprint:
            p.known_devices = self._touch(
                p.known_devices, transaction.device_fingerprint, cfg.max_known_devices
            )

        if transaction.payment_method:
            method = transaction.payment_method.value
            p.preferred_payment_methods[method] = p.preferred_payment_methods.get(method, 0) + 1
        if transaction.merchant_category:
            category = transaction.merchant_category
            p.spending_by_category[category] = p.spending_by_category.get(category, 0.0) + amount

        # Frequency and spending mix
        first = min(p.first_transaction_at, ts) if p.first_transaction_at else ts
        last = max(p.last_transaction_at, ts) if p.last_transaction_at else ts
        p.first_transaction_at = first
        p.last_transaction_at = last
        span_days = max((last - first).total_seconds() / SECONDS_PER_DAY, 1.0)
        p.transaction_frequency_daily = n / span_days
        p.monthly_spending_avg = p.total_amount / max(span_days / cfg.days_per_month, 1.0)

        if transaction.is_weekend:
            p.weekend_amount += amount
        if transaction.is_night:
            p.night_transaction_count += 1
        p.weekend_spending_ratio = p.weekend_amount / p.total_amount if p.total_amount else 0.0
        p.night_transaction_ratio = p.night_transaction_count / n

        p.last_sequence = max(p.last_sequence, transaction.sequence)
        p.last_updated = ts
        # A profile derived from the fallback stays marked as such so it is never committed
        if p.profile_status != ProfileStatus.FALLBACK:
            p.profile_status = (
                ProfileStatus.ACTIVE if n >= cfg.min_transactions_active else ProfileStatus.BUILDING
            )

        return p

    @staticmethod
    def _touch(values: list[str], value: str, limit: int) -> list[str]:
        """Move ``value`` to the most-recent end, evicting the least recent beyond ``limit``."""
        updated = [v for v in values if v != value]
        updated.append(value)
        return updated[-limit:]
