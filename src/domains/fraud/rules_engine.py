"""Rule-based fraud detection engine over host-supplied rule configuration."""

from collections.abc import Mapping
from typing import Any

import structlog

from src.domains.behavior.models import UserBehaviorProfile

from .models import (
    FactorSource,
    RiskFactor,
    RuleEvaluation,
    RuleResult,
    RuleType,
    ScoringWarning,
    Transaction,
    TransactionFeatures,
)
from .rule_config import RuleSet, load_rules
from .rules import EVALUATORS, RuleEvaluator

logger = structlog.get_logger()


class RulesEngine:
    """Evaluates a transaction against configured weighted rules.

    Scoring is additive on the 0-100 scale:
    1. Parse the supplied rule configuration (never cached here)
    2. Skip inactive rules entirely
    3. Dispatch each active rule to the evaluator for its type
    4. Each firing rule contributes its weight (amount_threshold scales)
    5. Factors keep configuration order
    """

    def __init__(self, evaluators: Mapping[RuleType, RuleEvaluator] | None = None) -> None:
        self._evaluators = dict(evaluators or EVALUATORS)

    def evaluate(
        self,
        transaction: Transaction,
        profile: UserBehaviorProfile,
        rules: RuleSet | Mapping[str, Any],
        features: TransactionFeatures | None = None,
    ) -> RuleEvaluation:
        """Evaluate all active rules. Malformed or failing rules become warnings."""
        rule_set = rules if isinstance(rules, RuleSet) else load_rules(rules)
        features = features or TransactionFeatures()

        results: list[RuleResult] = []
        factors: list[RiskFactor] = []
        warnings: list[ScoringWarning] = list(rule_set.warnings)

        for rule in rule_set.rules:
            if not rule.is_active:
                continue

            rule_type = RuleType(rule.rule_type)
            evaluator = self._evaluators.get(rule_type)
            if evaluator is None:
                warnings.append(
                    ScoringWarning(
                        code="invalid_rule",
                        message=f"No evaluator registered for rule type {rule_type.value}",
                        rule_name=rule.name,
                    )
                )
                continue

            try:
                result = evaluator.evaluate(rule, transaction, profile, features)
            except Exception:
                logger.exception("rule_evaluation_error", rule_name=rule.name)
                warnings.append(
                    ScoringWarning(
                        code="rule_evaluation_failed",
                        message="Rule evaluation failed",
                        rule_name=rule.name,
                    )
                )
                continue

            results.append(result)
            if result.triggered and result.score > 0:
                factors.append(
                    RiskFactor(
                        source=FactorSource.RULE,
                        identifier=rule.name,
                        category=rule_type.value,
                        reason=result.details,
                        contribution=round(result.score, 2),
                    )
                )

        partial = sum(f.contribution for f in factors)

        logger.debug(
            "rules_evaluated",
            transaction_id=transaction.transaction_id,
            rule_score=partial,
            triggered=[f.identifier for f in factors],
            warning_count=len(warnings),
        )

        return RuleEvaluation(
            partial_score=round(partial, 2),
            factors=factors,
            results=results,
            warnings=warnings,
        )
