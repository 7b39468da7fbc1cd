"""Abstract base class for fraud rule evaluators."""

from abc import ABC, abstractmethod
from typing import Any

from src.domains.behavior.models import UserBehaviorProfile

from ..models import RuleResult, RuleType, Transaction, TransactionFeatures


class RuleEvaluator(ABC):
    """Evaluates every configured rule of one rule type.

    Evaluators hold no rule state: the rule definition passed in (its type
    and conditions) is the sole driver of the outcome. Evaluation is pure and
    reads the profile snapshot without mutating it.
    """

    rule_type: RuleType

    @abstractmethod
    def evaluate(
        self,
        rule: Any,
        transaction: Transaction,
        profile: UserBehaviorProfile,
        features: TransactionFeatures,
    ) -> RuleResult:
        """Evaluate ``rule`` and return a RuleResult."""
        ...

    def _not_triggered(self, rule: Any, details: str = "") -> RuleResult:
        """Convenience: return a non-triggered result for this rule."""
        return RuleResult(
            rule_name=rule.name,
            rule_type=self.rule_type,
            triggered=False,
            details=details,
        )

    def _triggered(
        self,
        rule: Any,
        details: str,
        score: float | None = None,
        evidence: dict | None = None,
    ) -> RuleResult:
        """Convenience: return a triggered result contributing the rule weight unless scaled."""
        return RuleResult(
            rule_name=rule.name,
            rule_type=self.rule_type,
            triggered=True,
            score=rule.risk_weight if score is None else min(score, rule.risk_weight),
            details=details,
            evidence=evidence or {},
        )
