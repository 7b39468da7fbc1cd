"""PostgreSQL-backed collaborators: transaction log, alert sink and rule repository."""

import asyncio
import time
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import FraudAlertDB, FraudRuleDB, TransactionDB

from .models import FraudAlert, Transaction
from .rule_config import DEFAULT_RULES

logger = structlog.get_logger()


class SqlTransactionLookup:
    """Recent-transaction lookup over the ``transactions`` table.

    The scorer records each transaction after scoring it, still under the
    user's lock, so counts cover only prior transactions of the user.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def count_since(self, user_id: str, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(TransactionDB)
            .where(TransactionDB.user_id == user_id)
            .where(TransactionDB.transaction_time >= since)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def record(self, transaction: Transaction) -> None:
        """Insert a transaction row. Re-recording the same transaction id is a no-op."""
        stmt = (
            pg_insert(TransactionDB)
            .values(
                transaction_id=transaction.transaction_id,
                user_id=transaction.user_id,
                amount=transaction.amount,
                currency=transaction.currency,
                transaction_type=transaction.transaction_type.value,
                merchant_name=transaction.merchant_name,
                merchant_category=transaction.merchant_category,
                location_country=transaction.location_country,
                location_city=transaction.location_city,
                ip_address=transaction.ip_address,
                device_fingerprint=transaction.device_fingerprint,
                payment_method=transaction.payment_method.value if transaction.payment_method else None,
                card_last_four=transaction.card_last_four,
                transaction_time=transaction.transaction_time,
                sequence=transaction.sequence,
                is_weekend=transaction.is_weekend,
                is_night_transaction=transaction.is_night,
                risk_score=transaction.risk_score,
                is_flagged=transaction.is_flagged,
            )
            .on_conflict_do_nothing(index_elements=["transaction_id"])
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()


class SqlAlertSink:
    """Alert storage in ``fraud_alerts``; one alert per transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def store(self, alert: FraudAlert) -> None:
        stmt = (
            pg_insert(FraudAlertDB)
            .values(
                alert_id=alert.alert_id,
                transaction_id=alert.transaction_id,
                user_id=alert.user_id,
                alert_type=alert.alert_type,
                risk_score=alert.risk_score,
                confidence_level=alert.confidence_level.value,
                status=alert.status.value,
                alert_message=alert.alert_message,
                factors=[f.model_dump(mode="json") for f in alert.factors],
                model_version=alert.model_version,
                created_at=alert.created_at,
            )
            .on_conflict_do_nothing(index_elements=["transaction_id"])
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()


class SqlRuleRepository:
    """Reads rule definitions from ``fraud_rules`` in the host mapping format."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self) -> dict[str, dict[str, Any]]:
        async with self._session_factory() as session:
            result = await session.execute(select(FraudRuleDB).order_by(FraudRuleDB.id))
            rows = result.scalars().all()

        return {
            row.rule_name: {
                "rule_type": row.rule_type,
                "conditions": row.conditions,
                "risk_weight": row.risk_weight,
                "is_active": row.is_active,
                "description": row.description or "",
            }
            for row in rows
        }

    async def seed_defaults(self) -> int:
        """Insert the default rules that are not present yet. Returns rows inserted."""
        inserted = 0
        async with self._session_factory() as session:
            for name, rule in DEFAULT_RULES.items():
                stmt = (
                    pg_insert(FraudRuleDB)
                    .values(
                        rule_name=name,
                        rule_type=rule["type"],
                        conditions=rule["conditions"],
                        risk_weight=rule["weight"],
                        is_active=rule["active"],
                        description=rule.get("description"),
                    )
                    .on_conflict_do_nothing(index_elements=["rule_name"])
                )
                result = await session.execute(stmt)
                inserted += result.rowcount or 0
            await session.commit()

        logger.info("fraud_rules_seeded", inserted=inserted)
        return inserted


class CachedRuleSource:
    """Host-side cache of the raw rule mapping.

    The engine itself never caches rules; this cache lives in the host and is
    refreshed after ``ttl_seconds`` or immediately after :meth:`invalidate`.
    An empty repository falls back to the default rules.
    """

    def __init__(self, repository: SqlRuleRepository, ttl_seconds: float = 60.0) -> None:
        self._repository = repository
        self._ttl = ttl_seconds
        self._rules: dict[str, dict[str, Any]] | None = None
        self._loaded_at = 0.0
        self._lock = asyncio.Lock()

    async def get(self) -> dict[str, dict[str, Any]]:
        async with self._lock:
            if self._rules is None or time.monotonic() - self._loaded_at > self._ttl:
                rules = await self._repository.load()
                self._rules = rules or dict(DEFAULT_RULES)
                self._loaded_at = time.monotonic()
                logger.info("fraud_rules_loaded", rule_count=len(self._rules), from_defaults=not rules)
            return self._rules

    def invalidate(self) -> None:
        self._rules = None
        logger.info("fraud_rules_invalidated")
