"""Merchant fraud rules."""

from typing import Any

from src.domains.behavior.models import UserBehaviorProfile

from ..models import RuleResult, RuleType, Transaction, TransactionFeatures
from .base import RuleEvaluator


class MerchantRiskEvaluator(RuleEvaluator):
    """Triggers for large amounts spent at merchants outside the user's frequent set."""

    rule_type = RuleType.MERCHANT_RISK

    def evaluate(
        self,
        rule: Any,
        transaction: Transaction,
        profile: UserBehaviorProfile,
        features: TransactionFeatures,
    ) -> RuleResult:
        cond = rule.conditions
        merchant = transaction.merchant_name
        mean = profile.avg_transaction_amount
        if mean <= 0:
            return self._not_triggered(rule, "no amount baseline")

        if cond.new_merchant:
            if not merchant or merchant in profile.frequent_merchants:
                return self._not_triggered(rule)

        amount = transaction.amount_float
        threshold = mean * cond.amount_multiplier
        if amount <= threshold:
            return self._not_triggered(rule)

        label = f"new merchant {merchant}" if cond.new_merchant else f"merchant {merchant}"
        return self._triggered(
            rule,
            details=f"${amount:,.2f} at {label} exceeds ${threshold:,.2f}",
            evidence={"merchant": merchant, "amount": amount, "threshold": threshold},
        )
