"""API contract tests for the fraud endpoints.

Scoring runs for real against in-memory collaborators installed through
FastAPI dependency overrides; only the alert listing touches a mocked session.
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.routes.fraud import (
    get_profile_store,
    get_rule_source,
    get_scorer,
)
from src.db.database import get_session
from src.domains.fraud.collaborators import (
    InMemoryAlertSink,
    InMemoryProfileStore,
    InMemoryTransactionLog,
)
from src.domains.fraud.rule_config import DEFAULT_RULES
from src.domains.fraud.scorer import FraudScorer
from src.domains.fraud.store import CachedRuleSource
from src.main import app
from tests.conftest import make_profile, override_get_session

pytestmark = pytest.mark.integration

BASE_URL = "http://test"
ENDPOINT = "/api/v1/fraud/transactions"


def _payload(**overrides) -> dict:
    payload = {
        "transaction_id": "550e8400-e29b-41d4-a716-446655440000",
        "user_id": "user-1",
        "amount": "100.00",
        "transaction_type": "payment",
        "merchant_name": "Corner Grocery",
        "location_country": "US",
        "location_city": "Boston",
        "device_fingerprint": "device-primary",
        "payment_method": "card",
        "transaction_time": "2026-01-14T14:00:00+00:00",
    }
    payload.update(overrides)
    return payload


def _mock_session():
    session = AsyncMock()
    session.commit = AsyncMock()
    session.close = AsyncMock()
    mock_result = MagicMock()
    mock_result.scalar_one.return_value = 0
    mock_result.scalars.return_value = MagicMock(all=MagicMock(return_value=[]))
    session.execute = AsyncMock(return_value=mock_result)
    return session


class _Env:
    def __init__(self, alert_sink=None, profile_store=None, transaction_log=None):
        self.profile_store = profile_store or InMemoryProfileStore()
        self.transaction_log = transaction_log or InMemoryTransactionLog()
        self.alert_sink = alert_sink or InMemoryAlertSink()
        self.repository = AsyncMock()
        self.repository.load.return_value = dict(DEFAULT_RULES)
        self.rule_source = CachedRuleSource(self.repository)
        self.scorer = FraudScorer(
            self.profile_store, self.transaction_log, self.alert_sink, recorder=self.transaction_log
        )
        self.session = _mock_session()

    def install(self) -> None:
        app.dependency_overrides[get_scorer] = lambda: self.scorer
        app.dependency_overrides[get_rule_source] = lambda: self.rule_source
        app.dependency_overrides[get_profile_store] = lambda: self.profile_store
        app.dependency_overrides[get_session] = override_get_session(self.session)


@pytest.fixture
def env():
    environment = _Env()
    environment.install()
    yield environment
    app.dependency_overrides.clear()


def _client():
    return AsyncClient(transport=ASGITransport(app=app), base_url=BASE_URL)


class TestScoreTransaction:
    @pytest.mark.asyncio
    async def test_ordinary_transaction(self, env):
        await env.profile_store.commit("user-1", make_profile())
        async with _client() as client:
            response = await client.post(ENDPOINT, json=_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["final_score"] == 0.0
        assert data["confidence"] == "low"
        assert data["alert_raised"] is False
        assert data["alert_id"] is None
        assert data["factors"] == []
        assert data["model_version"] == "rules-anomaly-v1"
        assert await env.transaction_log.count_since("user-1", datetime(2026, 1, 14, tzinfo=UTC)) == 1

    @pytest.mark.asyncio
    async def test_suspicious_transaction_raises_alert(self, env):
        await env.profile_store.commit("user-1", make_profile())
        async with _client() as client:
            response = await client.post(
                ENDPOINT,
                json=_payload(
                    amount="600.00",
                    location_country="RO",
                    location_city="Bucharest",
                    transaction_time="2026-01-14T02:00:00+00:00",
                ),
            )

        assert response.status_code == 200
        data = response.json()
        assert data["final_score"] == 100.0
        assert data["confidence"] == "high"
        assert data["alert_raised"] is True
        assert data["alert_id"] == env.alert_sink.alerts[0].alert_id
        assert {f["source"] for f in data["factors"]} == {"rule", "anomaly"}

    @pytest.mark.asyncio
    async def test_missing_timestamp_is_400(self, env):
        payload = _payload()
        del payload["transaction_time"]
        async with _client() as client:
            response = await client.post(ENDPOINT, json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_transaction"
        assert len(env.profile_store) == 0

    @pytest.mark.asyncio
    async def test_malformed_payload_is_400(self, env):
        async with _client() as client:
            response = await client.post(ENDPOINT, json=_payload(amount="lots"))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_negative_amount_is_400(self, env):
        async with _client() as client:
            response = await client.post(ENDPOINT, json=_payload(amount="-10.00"))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_oversized_amount_is_400(self, env):
        async with _client() as client:
            response = await client.post(ENDPOINT, json=_payload(amount="1e30"))
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_transaction"

    @pytest.mark.asyncio
    async def test_persistence_failure_is_503_with_result(self, env):
        failing_sink = AsyncMock()
        failing_sink.store.side_effect = ConnectionError("db down")
        env.scorer = FraudScorer(
            env.profile_store, env.transaction_log, failing_sink, recorder=env.transaction_log
        )
        await env.profile_store.commit("user-1", make_profile())

        async with _client() as client:
            response = await client.post(
                ENDPOINT,
                json=_payload(amount="600.00", location_country="RO", transaction_time="2026-01-14T02:00:00+00:00"),
            )

        assert response.status_code == 503
        data = response.json()
        assert data["error"] == "persistence_failed"
        assert data["failures"] == ["alert_store"]
        assert data["retryable"] is True
        assert data["result"]["final_score"] == 100.0
        assert data["result"]["alert_raised"] is True

    @pytest.mark.asyncio
    async def test_same_user_burst_counts_every_transaction(self, env):
        class SlowLog(InMemoryTransactionLog):
            async def record(self, transaction):
                await asyncio.sleep(0.01)
                await super().record(transaction)

        env.transaction_log = SlowLog()
        env.scorer = FraudScorer(
            env.profile_store, env.transaction_log, env.alert_sink, recorder=env.transaction_log
        )
        payloads = [
            _payload(transaction_id=f"burst-{i}", transaction_time=f"2026-01-14T14:0{i}:00+00:00")
            for i in range(4)
        ]

        async with _client() as client:
            responses = await asyncio.gather(*(client.post(ENDPOINT, json=p) for p in payloads))

        assert all(r.status_code == 200 for r in responses)
        fired = [
            r.json()["transaction_id"]
            for r in responses
            if "Rapid Successive Transactions" in [f["identifier"] for f in r.json()["factors"]]
        ]
        assert len(fired) == 1
        assert await env.transaction_log.count_since("user-1", datetime(2026, 1, 14, tzinfo=UTC)) == 4


class TestRules:
    @pytest.mark.asyncio
    async def test_list_rules(self, env):
        async with _client() as client:
            response = await client.get("/api/v1/fraud/rules")

        assert response.status_code == 200
        data = response.json()
        assert data["rule_count"] == 8
        assert data["active_count"] == 8
        assert data["warnings"] == []
        names = [r["name"] for r in data["rules"]]
        assert names == list(DEFAULT_RULES)
        assert data["alert_threshold"] == 50.0

    @pytest.mark.asyncio
    async def test_invalid_rules_reported(self, env):
        env.repository.load.return_value = {
            "Broken": {"rule_type": "velocity_check", "risk_weight": 10, "conditions": {}},
            "Location": {"rule_type": "location_check", "risk_weight": 25},
        }
        async with _client() as client:
            response = await client.get("/api/v1/fraud/rules")

        data = response.json()
        assert data["rule_count"] == 1
        assert data["warnings"][0]["rule_name"] == "Broken"

    @pytest.mark.asyncio
    async def test_reload(self, env):
        async with _client() as client:
            await client.get("/api/v1/fraud/rules")
            response = await client.post("/api/v1/fraud/rules/reload")

        assert response.status_code == 200
        assert response.json() == {"status": "reloaded", "rule_count": 8}
        assert env.repository.load.await_count == 2


class TestAlerts:
    @pytest.mark.asyncio
    async def test_list_alerts_empty(self, env):
        async with _client() as client:
            response = await client.get("/api/v1/fraud/alerts", params={"status": "pending", "min_score": 50})

        assert response.status_code == 200
        assert response.json() == {"items": [], "total": 0, "limit": 50, "offset": 0}
        assert env.session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_confidence_filter(self, env):
        async with _client() as client:
            response = await client.get("/api/v1/fraud/alerts", params={"confidence": "extreme"})
        assert response.status_code == 422


class TestProfiles:
    @pytest.mark.asyncio
    async def test_existing_profile(self, env):
        await env.profile_store.commit("user-1", make_profile())
        async with _client() as client:
            response = await client.get("/api/v1/fraud/profiles/user-1")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "user-1"
        assert data["transaction_count"] == 30
        assert data["usual_countries"] == ["US"]

    @pytest.mark.asyncio
    async def test_unknown_profile_is_404(self, env):
        async with _client() as client:
            response = await client.get("/api/v1/fraud/profiles/nobody")
        assert response.status_code == 404
