"""Fraud risk scoring endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.db.database import async_session_factory, get_session
from src.db.models import FraudAlertDB
from src.domains.behavior.models import ProfileSummary
from src.domains.behavior.store import SqlProfileStore
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.models import ScoringResult, Transaction
from src.domains.fraud.rule_config import load_rules
from src.domains.fraud.scorer import FraudScorer
from src.domains.fraud.store import (
    CachedRuleSource,
    SqlAlertSink,
    SqlRuleRepository,
    SqlTransactionLookup,
)

router = APIRouter(prefix="/api/v1/fraud", tags=["fraud"])

_config = FraudConfig.from_env()
_config.collaborators.timeout_seconds = settings.collaborator_timeout_seconds

_profile_store = SqlProfileStore(async_session_factory)
_transaction_log = SqlTransactionLookup(async_session_factory)
_rule_source = CachedRuleSource(
    SqlRuleRepository(async_session_factory),
    ttl_seconds=settings.rule_cache_ttl_seconds,
)
_scorer = FraudScorer(
    profile_store=_profile_store,
    lookup=_transaction_log,
    alert_sink=SqlAlertSink(async_session_factory),
    config=_config,
    recorder=_transaction_log,
)


def get_scorer() -> FraudScorer:
    return _scorer


def get_rule_source() -> CachedRuleSource:
    return _rule_source


def get_profile_store() -> SqlProfileStore:
    return _profile_store


def _scoring_response(result: ScoringResult) -> dict:
    return {
        "transaction_id": result.transaction_id,
        "user_id": result.user_id,
        "final_score": result.final_score,
        "confidence": result.confidence.value,
        "alert_raised": result.alert_raised,
        "alert_id": result.alert.alert_id if result.alert else None,
        "rule_score": result.rule_score,
        "anomaly_score": result.anomaly_score,
        "factors": [f.model_dump(mode="json") for f in result.factors],
        "warnings": [w.model_dump(mode="json") for w in result.warnings],
        "model_version": result.model_version,
        "computed_at": result.scored_at.isoformat(),
    }


@router.post("/transactions")
async def score_transaction(
    payload: dict[str, Any] = Body(...),  # noqa: B008
    scorer: FraudScorer = Depends(get_scorer),  # noqa: B008
    rule_source: CachedRuleSource = Depends(get_rule_source),  # noqa: B008
) -> dict:
    """Score an incoming transaction; the scorer records it for future velocity lookups."""
    transaction = Transaction.from_payload(payload)
    rules = await rule_source.get()

    result = await scorer.process_transaction(transaction, rules)
    return _scoring_response(result)


@router.get("/rules")
async def list_rules(
    rule_source: CachedRuleSource = Depends(get_rule_source),  # noqa: B008
) -> dict:
    """Return the rule configuration currently served to the engine."""
    rule_set = load_rules(await rule_source.get())

    return {
        "model_version": _config.alerts.model_version,
        "rule_count": len(rule_set.rules),
        "active_count": len(rule_set.active_rules),
        "rules": [
            {
                "name": rule.name,
                "rule_type": rule.rule_type,
                "risk_weight": rule.risk_weight,
                "is_active": rule.is_active,
                "description": rule.description,
                "conditions": rule.conditions.model_dump(),
            }
            for rule in rule_set.rules
        ],
        "warnings": [w.model_dump(mode="json") for w in rule_set.warnings],
        "alert_threshold": _config.alerts.alert_threshold,
    }


@router.post("/rules/reload")
async def reload_rules(
    rule_source: CachedRuleSource = Depends(get_rule_source),  # noqa: B008
) -> dict:
    rule_source.invalidate()
    rules = await rule_source.get()
    return {"status": "reloaded", "rule_count": len(rules)}


@router.get("/alerts")
async def list_alerts(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    status: str | None = None,
    user_id: str | None = None,
    confidence: str | None = Query(default=None, pattern="^(low|medium|high)$"),
    min_score: float | None = Query(default=None, ge=0, le=100),
) -> dict:
    stmt = select(FraudAlertDB)
    count_stmt = select(func.count()).select_from(FraudAlertDB)

    if status:
        stmt = stmt.where(FraudAlertDB.status == status)
        count_stmt = count_stmt.where(FraudAlertDB.status == status)
    if user_id:
        stmt = stmt.where(FraudAlertDB.user_id == user_id)
        count_stmt = count_stmt.where(FraudAlertDB.user_id == user_id)
    if confidence:
        stmt = stmt.where(FraudAlertDB.confidence_level == confidence)
        count_stmt = count_stmt.where(FraudAlertDB.confidence_level == confidence)
    if min_score is not None:
        stmt = stmt.where(FraudAlertDB.risk_score >= min_score)
        count_stmt = count_stmt.where(FraudAlertDB.risk_score >= min_score)

    total_result = await session.execute(count_stmt)
    total = total_result.scalar_one()

    stmt = stmt.order_by(FraudAlertDB.created_at.desc()).offset(offset).limit(limit)
    result = await session.execute(stmt)
    alerts = result.scalars().all()

    return {
        "items": [
            {
                "alert_id": a.alert_id,
                "transaction_id": a.transaction_id,
                "user_id": a.user_id,
                "alert_type": a.alert_type,
                "risk_score": a.risk_score,
                "confidence_level": a.confidence_level,
                "status": a.status,
                "alert_message": a.alert_message,
                "factors": a.factors,
                "model_version": a.model_version,
                "created_at": a.created_at.isoformat(),
            }
            for a in alerts
        ],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/profiles/{user_id}")
async def get_profile(
    user_id: str,
    profile_store: SqlProfileStore = Depends(get_profile_store),  # noqa: B008
) -> dict:
    profile = await profile_store.fetch(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No behavior profile for user {user_id}")
    return ProfileSummary.from_profile(profile).model_dump(mode="json")
