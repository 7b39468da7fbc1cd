"""Compute velocity features from the recent-transaction lookup."""

from datetime import timedelta

import structlog

from .collaborators import RecentTransactionLookup, call_with_timeout
from .config import FraudConfig, default_config
from .models import ScoringWarning, Transaction, TransactionFeatures
from .rule_config import RuleSet

logger = structlog.get_logger()


class FeatureComputer:
    """Queries the recent-transaction lookup for every window the scoring needs.

    Windows come from the active velocity rules plus the anomaly scorer's
    burst window. A lookup failure degrades to "velocity unavailable" with a
    warning: velocity signals are skipped rather than failing the transaction.
    """

    def __init__(
        self,
        lookup: RecentTransactionLookup,
        config: FraudConfig | None = None,
    ) -> None:
        self._lookup = lookup
        self._config = config or default_config

    async def compute(
        self,
        transaction: Transaction,
        rule_set: RuleSet,
    ) -> tuple[TransactionFeatures, list[ScoringWarning]]:
        now = transaction.transaction_time
        burst_window = self._config.anomaly.burst_window_minutes * 60
        windows = sorted(rule_set.velocity_windows() | {burst_window})
        timeout = self._config.collaborators.timeout_seconds

        counts: dict[int, int] = {}
        try:
            for window in windows:
                since = now - timedelta(seconds=window)
                counts[window] = await call_with_timeout(
                    self._lookup.count_since(transaction.user_id, since), timeout
                )
        except Exception as exc:
            reason = "timed out" if isinstance(exc, TimeoutError) else str(exc) or type(exc).__name__
            logger.warning(
                "velocity_lookup_failed",
                user_id=transaction.user_id,
                transaction_id=transaction.transaction_id,
                error=reason,
            )
            warning = ScoringWarning(
                code="velocity_unavailable",
                message=f"Recent-transaction lookup failed ({reason}); velocity signals skipped",
            )
            return TransactionFeatures(velocity_available=False), [warning]

        return (
            TransactionFeatures(
                window_counts=counts,
                burst_count=counts[burst_window] + 1,
            ),
            [],
        )
