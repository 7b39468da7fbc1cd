"""PostgreSQL-backed behavior profile store."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import UserBehaviorPatternDB

from .models import UserBehaviorProfile

logger = structlog.get_logger()


class SqlProfileStore:
    """Stores one row per user in ``user_behavior_patterns``.

    The complete profile is serialized into ``profile_data``; the headline
    statistics are mirrored into their own columns for querying.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def fetch(self, user_id: str) -> UserBehaviorProfile | None:
        async with self._session_factory() as session:
            stmt = select(UserBehaviorPatternDB).where(UserBehaviorPatternDB.user_id == user_id)
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()

        if row is None:
            return None
        return UserBehaviorProfile.model_validate({**(row.profile_data or {}), "user_id": row.user_id})

    async def commit(self, user_id: str, profile: UserBehaviorProfile) -> None:
        values = {
            "user_id": user_id,
            "profile_status": profile.profile_status.value,
            "transaction_count": profile.transaction_count,
            "avg_transaction_amount": profile.avg_transaction_amount,
            "std_transaction_amount": profile.std_transaction_amount,
            "max_transaction_amount": profile.max_transaction_amount,
            "transaction_frequency_daily": profile.transaction_frequency_daily,
            "monthly_spending_avg": profile.monthly_spending_avg,
            "profile_data": profile.model_dump(mode="json"),
            "last_updated": profile.last_updated or datetime.now(UTC),
        }
        stmt = (
            pg_insert(UserBehaviorPatternDB)
            .values(**values)
            .on_conflict_do_update(
                index_elements=["user_id"],
                set_={k: v for k, v in values.items() if k != "user_id"},
            )
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

        logger.debug(
            "profile_committed",
            user_id=user_id,
            status=profile.profile_status.value,
            transaction_count=profile.transaction_count,
        )
