"""Unit tests for alert construction and storage."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.domains.fraud.alerts import AlertEmitter, alert_id_for, build_alert_message
from src.domains.fraud.collaborators import InMemoryAlertSink
from src.domains.fraud.config import CollaboratorSettings, FraudConfig
from src.domains.fraud.exceptions import PersistenceError
from src.domains.fraud.models import AlertStatus, ConfidenceLevel, FactorSource, RiskFactor
from tests.conftest import make_transaction


def _factors() -> list[RiskFactor]:
    return [
        RiskFactor(
            source=FactorSource.RULE,
            identifier="Unusual Location",
            category="location_check",
            reason="Transaction from unusual country RO",
            contribution=25.0,
        ),
        RiskFactor(
            source=FactorSource.ANOMALY,
            identifier="amount_zscore",
            category="amount_zscore",
            reason="Amount $600.00 is 25.00 std devs from mean $100.00",
            contribution=35.0,
        ),
    ]


class TestBuildAlert:
    def test_payload(self):
        emitter = AlertEmitter(InMemoryAlertSink())
        alert = emitter.build(make_transaction(), 60.0, ConfidenceLevel.HIGH, _factors())
        assert alert.alert_id == alert_id_for("txn-1")
        assert alert.transaction_id == "txn-1"
        assert alert.user_id == "user-1"
        assert alert.status == AlertStatus.PENDING
        assert alert.confidence_level == ConfidenceLevel.HIGH
        assert alert.alert_type == "amount_zscore"
        assert len(alert.factors) == 2

    def test_alert_id_is_deterministic(self):
        assert alert_id_for("txn-1") == alert_id_for("txn-1")
        assert alert_id_for("txn-1") != alert_id_for("txn-2")

    def test_message_lists_strongest_reasons_first(self):
        message = build_alert_message(60.0, _factors(), max_reasons=3)
        assert message.startswith("High risk transaction detected (score 60.00)")
        assert message.index("std devs") < message.index("unusual country")

    def test_message_truncated(self):
        message = build_alert_message(60.0, _factors(), max_reasons=1)
        assert "unusual country" not in message


class TestEmit:
    @pytest.mark.asyncio
    async def test_stores_once(self):
        sink = AsyncMock()
        emitter = AlertEmitter(sink)
        alert = await emitter.emit(make_transaction(), 60.0, ConfidenceLevel.HIGH, _factors())
        sink.store.assert_awaited_once_with(alert)

    @pytest.mark.asyncio
    async def test_in_memory_sink_keeps_one_alert_per_transaction(self):
        sink = InMemoryAlertSink()
        emitter = AlertEmitter(sink)
        await emitter.emit(make_transaction(), 60.0, ConfidenceLevel.HIGH, _factors())
        await emitter.emit(make_transaction(), 60.0, ConfidenceLevel.HIGH, _factors())
        assert len(sink.alerts) == 1

    @pytest.mark.asyncio
    async def test_sink_failure_raises_persistence_error(self):
        sink = AsyncMock()
        sink.store.side_effect = ConnectionError("db down")
        emitter = AlertEmitter(sink)
        with pytest.raises(PersistenceError) as exc_info:
            await emitter.emit(make_transaction(), 60.0, ConfidenceLevel.HIGH, _factors())
        assert exc_info.value.failures == ["alert_store"]
        assert exc_info.value.retryable
        sink.store.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sink_timeout_raises_persistence_error(self):
        class SlowSink:
            async def store(self, alert):
                await asyncio.sleep(1)

        config = FraudConfig(collaborators=CollaboratorSettings(timeout_seconds=0.01))
        emitter = AlertEmitter(SlowSink(), config)
        with pytest.raises(PersistenceError, match="timed out"):
            await emitter.emit(make_transaction(), 60.0, ConfidenceLevel.HIGH, _factors())
