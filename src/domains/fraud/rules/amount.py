"""Amount-based fraud rules."""

from typing import Any

from src.domains.behavior.models import UserBehaviorProfile

from ..models import RuleResult, RuleType, Transaction, TransactionFeatures
from .base import RuleEvaluator


class AmountThresholdEvaluator(RuleEvaluator):
    """Triggers when the amount exceeds a multiple of the user's average (or max) amount.

    Unlike the other rule types the contribution is scaled: half the weight
    just above the threshold, rising linearly to the full weight at twice
    the threshold.
    """

    rule_type = RuleType.AMOUNT_THRESHOLD

    def evaluate(
        self,
        rule: Any,
        transaction: Transaction,
        profile: UserBehaviorProfile,
        features: TransactionFeatures,
    ) -> RuleResult:
        cond = rule.conditions
        if cond.base == "user_max":
            base = profile.max_transaction_amount
        else:
            base = profile.avg_transaction_amount

        # No baseline yet: any amount would exceed 0 x multiplier
        if base <= 0:
            return self._not_triggered(rule, "no amount baseline")

        amount = transaction.amount_float
        threshold = base * cond.multiplier
        if amount <= threshold:
            return self._not_triggered(rule)

        excess_ratio = (amount - threshold) / threshold
        scale = min(1.0, 0.5 + 0.5 * excess_ratio)

        return self._triggered(
            rule,
            details=(
                f"Amount ${amount:,.2f} exceeds {cond.multiplier:g}x {cond.base}"
                f" (threshold ${threshold:,.2f})"
            ),
            score=rule.risk_weight * scale,
            evidence={"amount": amount, "threshold": threshold, "excess_ratio": excess_ratio},
        )
