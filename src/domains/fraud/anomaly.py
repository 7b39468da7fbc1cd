"""Statistical anomaly scoring against a user's behavior profile.

Computes four deviation signals independently of the configured rule set:
amount z-score, time-of-day rarity, velocity burst and geographic novelty.
Each signal is a bounded sub-score; their sum is capped so anomaly detection
alone cannot saturate the final risk score. All functions are deterministic
and never mutate the profile.
"""

import math

import structlog

from src.domains.behavior.models import UserBehaviorProfile

from .config import AnomalyThresholds, FraudConfig, default_config
from .models import (
    AnomalyEvaluation,
    AnomalySignal,
    FactorSource,
    RiskFactor,
    ScoringWarning,
    Transaction,
    TransactionFeatures,
)

logger = structlog.get_logger()

MINUTES_PER_DAY = 1440.0


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class AnomalyScorer:
    """Scores a transaction across statistical anomaly signals."""

    def __init__(self, config: FraudConfig | None = None) -> None:
        self._config = config or default_config

    @property
    def thresholds(self) -> AnomalyThresholds:
        return self._config.anomaly

    def score(
        self,
        transaction: Transaction,
        profile: UserBehaviorProfile,
        features: TransactionFeatures | None = None,
    ) -> AnomalyEvaluation:
        features = features or TransactionFeatures()
        t = self.thresholds

        signals = [
            (AnomalySignal.AMOUNT_ZSCORE, self._score_amount(transaction, profile)),
            (AnomalySignal.TIME_RARITY, self._score_time(transaction, profile)),
            (AnomalySignal.VELOCITY_BURST, self._score_burst(profile, features)),
            (AnomalySignal.GEOGRAPHIC_NOVELTY, self._score_geo(transaction, profile)),
        ]

        factors = [
            RiskFactor(
                source=FactorSource.ANOMALY,
                identifier=signal.value,
                category=signal.value,
                reason=reason,
                contribution=round(contribution, 2),
            )
            for signal, (contribution, reason) in signals
            if contribution > 0
        ]

        raw = sum(f.contribution for f in factors)
        warnings: list[ScoringWarning] = []
        partial = min(raw, t.max_partial_score)
        if raw > t.max_partial_score:
            warnings.append(
                ScoringWarning(
                    code="anomaly_score_capped",
                    message=f"Anomaly signals summed to {raw:.2f}, capped at {t.max_partial_score:g}",
                )
            )

        logger.debug(
            "anomaly_scored",
            transaction_id=transaction.transaction_id,
            anomaly_score=partial,
            signals=[f.identifier for f in factors],
        )

        return AnomalyEvaluation(
            partial_score=round(partial, 2),
            factors=factors,
            warnings=warnings,
        )

    # --- Signals ---

    def _score_amount(
        self, transaction: Transaction, profile: UserBehaviorProfile
    ) -> tuple[float, str]:
        """Upward deviation of the amount from the user's mean, in standard deviations.

        Only amounts above the mean contribute, so the signal never decreases
        as the amount grows.
        """
        t = self.thresholds
        amount = transaction.amount_float
        mean = profile.avg_transaction_amount
        std = profile.std_transaction_amount

        if std > 0:
            z = (amount - mean) / std
            contribution = _clamp((z - t.amount_zscore_free) * t.amount_zscore_scale, 0.0, t.amount_max_score)
            return contribution, f"Amount ${amount:,.2f} is {z:.2f} std devs from mean ${mean:,.2f}"

        # No spread to measure against: only flag amounts that are large in absolute terms
        if amount > mean and amount > t.zero_std_amount_floor:
            return (
                t.zero_std_score,
                f"Amount ${amount:,.2f} above ${t.zero_std_amount_floor:,.2f} with no spending history spread",
            )
        return 0.0, ""

    def _score_time(
        self, transaction: Transaction, profile: UserBehaviorProfile
    ) -> tuple[float, str]:
        t = self.thresholds
        hour = transaction.hour
        total = profile.hour_total
        if hour is None or total == 0:
            return 0.0, ""

        share = profile.typical_transaction_times.get(hour, 0) / total
        rarity = 1.0 - min(1.0, share / t.time_common_share)
        contribution = t.time_max_score * rarity
        if share == 0:
            return contribution, f"No previous transactions at {hour:02d}:00"
        return contribution, f"Only {share:.0%} of transactions occur at {hour:02d}:00"

    def _score_burst(
        self, profile: UserBehaviorProfile, features: TransactionFeatures
    ) -> tuple[float, str]:
        """Poisson z-score of the short-window count against the daily frequency estimate."""
        t = self.thresholds
        observed = features.burst_count
        if not features.velocity_available or observed is None or observed < t.burst_min_count:
            return 0.0, ""

        expected = profile.transaction_frequency_daily * t.burst_window_minutes / MINUTES_PER_DAY
        if expected <= 0:
            return 0.0, ""

        z = (observed - expected) / math.sqrt(expected)
        contribution = _clamp((z - t.burst_zscore_threshold) * t.burst_zscore_scale, 0.0, t.burst_max_score)
        return (
            contribution,
            f"{observed} transactions in {t.burst_window_minutes} min vs {expected:.2f} expected (z={z:.2f})",
        )

    def _score_geo(
        self, transaction: Transaction, profile: UserBehaviorProfile
    ) -> tuple[float, str]:
        t = self.thresholds
        country = transaction.location_country
        city = transaction.location_city

        if country and profile.usual_countries and country not in profile.usual_countries:
            return t.country_novelty_score, f"First transaction from country {country}"
        if city and profile.usual_cities and city not in profile.usual_cities:
            return t.city_novelty_score, f"First transaction from city {city}"
        return 0.0, ""
