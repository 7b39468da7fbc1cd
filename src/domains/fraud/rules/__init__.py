"""Fraud rule evaluators.

Exports EVALUATORS (rule type -> evaluator instance) and the evaluator
classes for direct use.
"""

from ..models import RuleType
from .amount import AmountThresholdEvaluator
from .base import RuleEvaluator
from .geo import DeviceCheckEvaluator, LocationCheckEvaluator
from .merchant import MerchantRiskEvaluator
from .velocity import TimePatternEvaluator, VelocityCheckEvaluator

EVALUATORS: dict[RuleType, RuleEvaluator] = {
    RuleType.AMOUNT_THRESHOLD: AmountThresholdEvaluator(),
    RuleType.LOCATION_CHECK: LocationCheckEvaluator(),
    RuleType.VELOCITY_CHECK: VelocityCheckEvaluator(),
    RuleType.TIME_PATTERN: TimePatternEvaluator(),
    RuleType.MERCHANT_RISK: MerchantRiskEvaluator(),
    RuleType.DEVICE_CHECK: DeviceCheckEvaluator(),
}

__all__ = [
    "EVALUATORS",
    "RuleEvaluator",
    "AmountThresholdEvaluator",
    "LocationCheckEvaluator",
    "DeviceCheckEvaluator",
    "VelocityCheckEvaluator",
    "TimePatternEvaluator",
    "MerchantRiskEvaluator",
]
