"""Fraud scoring pipeline: profile -> features -> rules + anomaly -> aggregate -> alert -> profile update."""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import structlog

from src.domains.behavior.config import BehaviorConfig
from src.domains.behavior.models import ProfileStatus
from src.domains.behavior.profile import BehaviorProfileAccessor

from .aggregator import RiskAggregator
from .alerts import AlertEmitter
from .anomaly import AnomalyScorer
from .collaborators import (
    AlertSink,
    ProfileStore,
    RecentTransactionLookup,
    TransactionRecorder,
    call_with_timeout,
)
from .config import FraudConfig, default_config
from .exceptions import PersistenceError, ProfileUnavailable
from .feature_computer import FeatureComputer
from .models import FraudAlert, ScoringResult, ScoringWarning, Transaction
from .rule_config import DEFAULT_RULES, RuleSet, load_rules
from .rules_engine import RulesEngine

logger = structlog.get_logger()


class FraudScorer:
    """Orchestrates risk scoring for one transaction at a time.

    Transactions for the same user are processed strictly in arrival order:
    the per-user lock spans the profile read, scoring, alert storage, the
    profile commit and recording the transaction for later velocity lookups.
    Different users score concurrently.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        lookup: RecentTransactionLookup,
        alert_sink: AlertSink,
        config: FraudConfig | None = None,
        behavior_config: BehaviorConfig | None = None,
        recorder: TransactionRecorder | None = None,
    ) -> None:
        self._config = config or default_config
        timeout = self._config.collaborators.timeout_seconds
        self._profiles = BehaviorProfileAccessor(profile_store, behavior_config, timeout)
        self._features = FeatureComputer(lookup, self._config)
        self._rules_engine = RulesEngine()
        self._anomaly = AnomalyScorer(self._config)
        self._aggregator = RiskAggregator(self._config)
        self._alerts = AlertEmitter(alert_sink, self._config)
        self._recorder = recorder

    @property
    def profiles(self) -> BehaviorProfileAccessor:
        return self._profiles

    async def process_transaction(
        self,
        transaction: Transaction,
        rules: RuleSet | Mapping[str, Any] | None = None,
    ) -> ScoringResult:
        """Score a transaction, store an alert when warranted and update the user's profile.

        Raises InvalidTransaction before touching any collaborator. Raises
        PersistenceError, carrying the computed result, when alert storage,
        the profile commit or recording the transaction fails.
        """
        transaction.ensure_scorable()

        async with self._profiles.lock(transaction.user_id):
            return await self._process_locked(transaction, rules)

    async def _process_locked(
        self,
        transaction: Transaction,
        rules: RuleSet | Mapping[str, Any] | None,
    ) -> ScoringResult:
        warnings: list[ScoringWarning] = []
        user_id = transaction.user_id

        # 1. Profile
        try:
            profile = await self._profiles.fetch(user_id)
        except ProfileUnavailable as exc:
            logger.warning("profile_unavailable", user_id=user_id, reason=exc.reason)
            warnings.append(ScoringWarning(code="profile_unavailable", message=str(exc)))
            profile = self._profiles.fallback_profile(user_id)

        # 2. Rules and velocity features
        if isinstance(rules, RuleSet):
            rule_set = rules
        else:
            rule_set = load_rules(DEFAULT_RULES if rules is None else rules)
        features, feature_warnings = await self._features.compute(transaction, rule_set)
        warnings.extend(feature_warnings)

        # 3. Independent scoring subsystems
        rule_eval = self._rules_engine.evaluate(transaction, profile, rule_set, features)
        anomaly_eval = self._anomaly.score(transaction, profile, features)
        warnings.extend(rule_eval.warnings)
        warnings.extend(anomaly_eval.warnings)

        # 4. Aggregate
        final_score, confidence = self._aggregator.aggregate(
            rule_eval.partial_score, anomaly_eval.partial_score
        )
        raw_total = rule_eval.partial_score + anomaly_eval.partial_score
        if raw_total > self._config.aggregation.max_score:
            warnings.append(
                ScoringWarning(
                    code="score_clamped",
                    message=f"Combined score {raw_total:.2f} clamped to {final_score:g}",
                )
            )
        factors = rule_eval.factors + anomaly_eval.factors
        alert_raised = self._aggregator.should_alert(final_score)

        scored = transaction.with_score(final_score, alert_raised)

        # 5. Persist: alert, profile, transaction record; all are attempted
        failures: list[str] = []
        errors: list[str] = []

        alert: FraudAlert | None = None
        if alert_raised:
            alert = self._alerts.build(transaction, final_score, confidence, factors)
            try:
                await self._alerts.store(alert)
            except PersistenceError as exc:
                logger.error("alert_store_failed", transaction_id=transaction.transaction_id, error=str(exc))
                failures.extend(exc.failures)
                errors.append(str(exc))

        updated = self._profiles.update(user_id, transaction, profile)
        if profile.profile_status == ProfileStatus.FALLBACK:
            warnings.append(
                ScoringWarning(
                    code="profile_commit_skipped",
                    message="Profile store unavailable; profile update not committed",
                )
            )
        else:
            try:
                await self._profiles.commit(updated)
            except PersistenceError as exc:
                logger.error("profile_commit_failed", user_id=user_id, error=str(exc))
                failures.extend(exc.failures)
                errors.append(str(exc))

        if self._recorder is not None:
            try:
                await self._record(scored)
            except PersistenceError as exc:
                logger.error("transaction_record_failed", transaction_id=transaction.transaction_id, error=str(exc))
                failures.extend(exc.failures)
                errors.append(str(exc))

        result = ScoringResult(
            transaction_id=transaction.transaction_id,
            user_id=user_id,
            final_score=final_score,
            confidence=confidence,
            factors=factors,
            alert_raised=alert_raised,
            alert=alert,
            rule_score=rule_eval.partial_score,
            anomaly_score=anomaly_eval.partial_score,
            warnings=warnings,
            scored_transaction=scored,
            profile=updated,
            model_version=self._config.alerts.model_version,
            scored_at=datetime.now(UTC),
        )

        logger.info(
            "transaction_scored",
            transaction_id=transaction.transaction_id,
            user_id=user_id,
            final_score=final_score,
            rule_score=rule_eval.partial_score,
            anomaly_score=anomaly_eval.partial_score,
            confidence=confidence.value,
            triggered=[f.identifier for f in factors],
            alert_raised=alert_raised,
            warning_count=len(warnings),
        )

        if failures:
            raise PersistenceError("; ".join(errors), failures=failures, result=result)
        return result

    async def _record(self, transaction: Transaction) -> None:
        timeout = self._config.collaborators.timeout_seconds
        try:
            await call_with_timeout(self._recorder.record(transaction), timeout)
        except TimeoutError as exc:
            raise PersistenceError(
                f"Recording transaction {transaction.transaction_id} timed out after {timeout}s",
                failures=["transaction_record"],
            ) from exc
        except Exception as exc:
            raise PersistenceError(
                f"Recording transaction {transaction.transaction_id} failed: {exc}",
                failures=["transaction_record"],
            ) from exc
