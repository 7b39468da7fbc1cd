"""Velocity and time-pattern fraud rules."""

from typing import Any

from src.domains.behavior.models import UserBehaviorProfile

from ..models import RuleResult, RuleType, Transaction, TransactionFeatures
from .base import RuleEvaluator


class VelocityCheckEvaluator(RuleEvaluator):
    """Triggers when too many transactions land inside a trailing time window.

    The count covers the user's prior transactions in the window plus the
    current one.
    """

    rule_type = RuleType.VELOCITY_CHECK

    def evaluate(
        self,
        rule: Any,
        transaction: Transaction,
        profile: UserBehaviorProfile,
        features: TransactionFeatures,
    ) -> RuleResult:
        cond = rule.conditions
        window = cond.window_seconds
        prior = features.window_counts.get(window)
        if not features.velocity_available or prior is None:
            return self._not_triggered(rule, "velocity data unavailable")

        count = prior + 1
        if count <= cond.max_transactions:
            return self._not_triggered(rule)

        return self._triggered(
            rule,
            details=(
                f"{count} transactions within {cond.time_window}"
                f" (max {cond.max_transactions})"
            ),
            evidence={
                "count": count,
                "max_transactions": cond.max_transactions,
                "window_seconds": window,
            },
        )


class TimePatternEvaluator(RuleEvaluator):
    """Triggers on night-hour ranges and large weekend transactions."""

    rule_type = RuleType.TIME_PATTERN

    def evaluate(
        self,
        rule: Any,
        transaction: Transaction,
        profile: UserBehaviorProfile,
        features: TransactionFeatures,
    ) -> RuleResult:
        cond = rule.conditions
        hour = transaction.hour
        if hour is None:
            return self._not_triggered(rule)

        reasons: list[str] = []

        if cond.has_hour_range:
            if not cond.covers_hour(hour):
                return self._not_triggered(rule)
            reasons.append(f"transaction at {hour:02d}:00 in {cond.start_hour:02d}-{cond.end_hour:02d}")

        if cond.is_weekend:
            if not transaction.is_weekend:
                return self._not_triggered(rule)
            if cond.amount_multiplier is not None:
                mean = profile.avg_transaction_amount
                if mean <= 0:
                    return self._not_triggered(rule, "no amount baseline")
                threshold = mean * cond.amount_multiplier
                if transaction.amount_float <= threshold:
                    return self._not_triggered(rule)
                reasons.append(
                    f"weekend amount ${transaction.amount_float:,.2f} above ${threshold:,.2f}"
                )
            else:
                reasons.append("weekend transaction")

        return self._triggered(
            rule,
            details="Time pattern: " + "; ".join(reasons),
            evidence={"hour": hour, "is_weekend": transaction.is_weekend},
        )
