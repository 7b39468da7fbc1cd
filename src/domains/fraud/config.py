"""Fraud risk engine configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class AnomalyThresholds:
    # Amount z-score signal
    amount_max_score: float = 35.0
    amount_zscore_free: float = 1.0
    amount_zscore_scale: float = 5.0
    # Used when std == 0 (one sample or identical samples)
    zero_std_amount_floor: float = 1_000.0
    zero_std_score: float = 10.0

    # Time-of-day rarity signal
    time_max_score: float = 10.0
    time_common_share: float = 0.10

    # Velocity burst signal
    burst_window_minutes: int = 60
    burst_min_count: int = 3
    burst_zscore_threshold: float = 3.0
    burst_zscore_scale: float = 3.0
    burst_max_score: float = 15.0

    # Geographic novelty signal
    country_novelty_score: float = 20.0
    city_novelty_score: float = 8.0

    # Ceiling for the whole anomaly partial score
    max_partial_score: float = 70.0


@dataclass
class AggregationSettings:
    # Minimum partial scores for a subsystem to count as a meaningful signal
    rule_signal_min: float = 15.0
    anomaly_signal_min: float = 15.0
    max_score: float = 100.0


@dataclass
class AlertSettings:
    alert_threshold: float = 50.0
    model_version: str = "rules-anomaly-v1"
    max_message_reasons: int = 3


@dataclass
class CollaboratorSettings:
    timeout_seconds: float = 2.0


@dataclass
class FraudConfig:
    anomaly: AnomalyThresholds = field(default_factory=AnomalyThresholds)
    aggregation: AggregationSettings = field(default_factory=AggregationSettings)
    alerts: AlertSettings = field(default_factory=AlertSettings)
    collaborators: CollaboratorSettings = field(default_factory=CollaboratorSettings)

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Anomaly overrides
        if v := os.getenv("FRAUD_ANOMALY_MAX_SCORE"):
            config.anomaly.max_partial_score = float(v)
        if v := os.getenv("FRAUD_ZERO_STD_AMOUNT_FLOOR"):
            config.anomaly.zero_std_amount_floor = float(v)
        if v := os.getenv("FRAUD_BURST_WINDOW_MINUTES"):
            config.anomaly.burst_window_minutes = int(v)

        # Aggregation overrides
        if v := os.getenv("FRAUD_RULE_SIGNAL_MIN"):
            config.aggregation.rule_signal_min = float(v)
        if v := os.getenv("FRAUD_ANOMALY_SIGNAL_MIN"):
            config.aggregation.anomaly_signal_min = float(v)

        # Alert overrides
        if v := os.getenv("FRAUD_ALERT_THRESHOLD"):
            config.alerts.alert_threshold = float(v)

        # Collaborator overrides
        if v := os.getenv("FRAUD_COLLABORATOR_TIMEOUT_SECONDS"):
            config.collaborators.timeout_seconds = float(v)

        return config


# Module-level default instance
default_config = FraudConfig()
