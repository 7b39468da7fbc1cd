"""Combine rule and anomaly partial scores into a final risk score."""

from .config import FraudConfig, default_config
from .models import ConfidenceLevel


class RiskAggregator:
    """Stateless mapping from partial scores to (final score, confidence, alert decision).

    Confidence reflects agreement between the two independent subsystems:
    high when both the rules and the anomaly scorer contribute meaningfully,
    medium when only one does, low otherwise.
    """

    def __init__(self, config: FraudConfig | None = None) -> None:
        self._config = config or default_config

    def aggregate(self, rule_partial: float, anomaly_partial: float) -> tuple[float, ConfidenceLevel]:
        agg = self._config.aggregation
        final = max(0.0, min(agg.max_score, rule_partial + anomaly_partial))

        rule_signal = rule_partial >= agg.rule_signal_min
        anomaly_signal = anomaly_partial >= agg.anomaly_signal_min
        if rule_signal and anomaly_signal:
            confidence = ConfidenceLevel.HIGH
        elif rule_signal or anomaly_signal:
            confidence = ConfidenceLevel.MEDIUM
        else:
            confidence = ConfidenceLevel.LOW

        return round(final, 2), confidence

    def should_alert(self, final_score: float) -> bool:
        return final_score >= self._config.alerts.alert_threshold
