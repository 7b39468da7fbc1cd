"""Fraud detection domain.

Import the orchestrator from ``src.domains.fraud.scorer`` directly; it
depends on the behavior domain, which imports this package.
"""

from .aggregator import RiskAggregator
from .alerts import AlertEmitter
from .anomaly import AnomalyScorer
from .collaborators import (
    AlertSink,
    InMemoryAlertSink,
    InMemoryProfileStore,
    InMemoryTransactionLog,
    ProfileStore,
    RecentTransactionLookup,
    TransactionRecorder,
)
from .exceptions import (
    ConfigError,
    FraudEngineError,
    InvalidTransaction,
    PersistenceError,
    ProfileUnavailable,
)
from .feature_computer import FeatureComputer
from .models import (
    ConfidenceLevel,
    FraudAlert,
    RiskFactor,
    RuleResult,
    ScoringResult,
    ScoringWarning,
    Transaction,
    TransactionFeatures,
)
from .rule_config import DEFAULT_RULES, RuleSet, load_rules
from .rules_engine import RulesEngine

__all__ = [
    "DEFAULT_RULES",
    "AlertEmitter",
    "AlertSink",
    "AnomalyScorer",
    "ConfidenceLevel",
    "ConfigError",
    "FeatureComputer",
    "FraudAlert",
    "FraudEngineError",
    "InMemoryAlertSink",
    "InMemoryProfileStore",
    "InMemoryTransactionLog",
    "InvalidTransaction",
    "PersistenceError",
    "ProfileStore",
    "ProfileUnavailable",
    "RecentTransactionLookup",
    "RiskAggregator",
    "RiskFactor",
    "RuleResult",
    "RuleSet",
    "RulesEngine",
    "ScoringResult",
    "ScoringWarning",
    "Transaction",
    "TransactionFeatures",
    "TransactionRecorder",
    "load_rules",
]
