"""Fraud alert construction and hand-off to alert storage."""

import uuid
from datetime import UTC, datetime

import structlog

from .collaborators import AlertSink, call_with_timeout
from .config import FraudConfig, default_config
from .exceptions import PersistenceError
from .models import AlertStatus, ConfidenceLevel, FraudAlert, RiskFactor, Transaction

logger = structlog.get_logger()

# Alert ids are derived from the transaction id so a transaction maps to one alert.
ALERT_NAMESPACE = uuid.UUID("6f1c8f5e-3b1a-4c1e-9a51-4f0d8e2b7c10")


def alert_id_for(transaction_id: str) -> str:
    return str(uuid.uuid5(ALERT_NAMESPACE, transaction_id))


def build_alert_message(final_score: float, factors: list[RiskFactor], max_reasons: int) -> str:
    strongest = sorted(factors, key=lambda f: f.contribution, reverse=True)[:max_reasons]
    message = f"High risk transaction detected (score {final_score:.2f})"
    if strongest:
        message += ": " + "; ".join(f.reason for f in strongest)
    return message


class AlertEmitter:
    """Builds fraud alerts and stores them through the alert sink.

    The emitter does not decide whether to alert; callers invoke it only when
    the aggregator's threshold is crossed. It stores each alert exactly once
    and does not retry: any sink failure surfaces as PersistenceError.
    """

    def __init__(self, sink: AlertSink, config: FraudConfig | None = None) -> None:
        self._sink = sink
        self._config = config or default_config

    def build(
        self,
        transaction: Transaction,
        final_score: float,
        confidence: ConfidenceLevel,
        factors: list[RiskFactor],
    ) -> FraudAlert:
        settings = self._config.alerts
        strongest = max(factors, key=lambda f: f.contribution, default=None)
        return FraudAlert(
            alert_id=alert_id_for(transaction.transaction_id),
            transaction_id=transaction.transaction_id,
            user_id=transaction.user_id,
            alert_type=strongest.category if strongest else "risk_score",
            risk_score=final_score,
            confidence_level=confidence,
            status=AlertStatus.PENDING,
            alert_message=build_alert_message(final_score, factors, settings.max_message_reasons),
            factors=list(factors),
            model_version=settings.model_version,
            created_at=datetime.now(UTC),
        )

    async def emit(
        self,
        transaction: Transaction,
        final_score: float,
        confidence: ConfidenceLevel,
        factors: list[RiskFactor],
    ) -> FraudAlert:
        alert = self.build(transaction, final_score, confidence, factors)
        await self.store(alert)
        return alert

    async def store(self, alert: FraudAlert) -> None:
        """Hand a built alert to the sink once. Raises PersistenceError on failure or timeout."""
        timeout = self._config.collaborators.timeout_seconds

        try:
            await call_with_timeout(self._sink.store(alert), timeout)
        except TimeoutError as exc:
            raise PersistenceError(
                f"Alert storage for {alert.transaction_id} timed out after {timeout}s",
                failures=["alert_store"],
            ) from exc
        except Exception as exc:
            raise PersistenceError(
                f"Alert storage for {alert.transaction_id} failed: {exc}",
                failures=["alert_store"],
            ) from exc

        logger.warning(
            "fraud_alert_created",
            alert_id=alert.alert_id,
            user_id=alert.user_id,
            transaction_id=alert.transaction_id,
            risk_score=alert.risk_score,
            confidence=alert.confidence_level.value,
            alert_type=alert.alert_type,
        )
