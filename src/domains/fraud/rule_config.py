"""Fraud rule definitions: rules are data, typed per rule type.

Hosts supply rules as a mapping of rule name to
``{"type": ..., "conditions": {...}, "weight": ..., "active": ...}``. Each
entry is validated into a tagged variant keyed on ``rule_type`` so the rules
engine can dispatch exhaustively while parameter values stay runtime-loaded.
The database column names (``rule_type``, ``risk_weight``, ``is_active``)
are accepted as well.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigError
from .models import ScoringWarning

logger = structlog.get_logger()

_TIME_WINDOW_RE = re.compile(r"^\s*(\d+)\s*(second|minute|hour|day)s?\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}

_FIELD_ALIASES = {"type": "rule_type", "weight": "risk_weight", "active": "is_active"}


def parse_time_window(value: str) -> int:
    """Parse an interval such as ``"5 minutes"`` or ``"1 hour"`` into seconds."""
    match = _TIME_WINDOW_RE.match(value)
    if not match:
        raise ValueError(f"Unrecognized time window: {value!r}")
    amount = int(match.group(1))
    if amount <= 0:
        raise ValueError(f"Time window must be positive: {value!r}")
    return amount * _UNIT_SECONDS[match.group(2).lower()]


# --- Condition variants ---


class _Conditions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class AmountThresholdConditions(_Conditions):
    multiplier: float = Field(default=5.0, gt=0)
    base: Literal["user_average", "user_max"] = "user_average"


class LocationCheckConditions(_Conditions):
    check_country: bool = True
    check_city: bool = False
    different_country: bool = False
    min_amount: float = Field(default=0.0, ge=0)


class VelocityCheckConditions(_Conditions):
    max_transactions: int = Field(ge=1)
    time_window: str

    @field_validator("time_window")
    @classmethod
    def _valid_window(cls, v: str) -> str:
        parse_time_window(v)
        return v

    @property
    def window_seconds(self) -> int:
        return parse_time_window(self.time_window)


class TimePatternConditions(_Conditions):
    start_hour: int | None = Field(default=None, ge=0, le=23)
    end_hour: int | None = Field(default=None, ge=0, le=23)
    is_weekend: bool = False
    amount_multiplier: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _has_pattern(self) -> "TimePatternConditions":
        if (self.start_hour is None) != (self.end_hour is None):
            raise ValueError("start_hour and end_hour must be configured together")
        if self.start_hour is not None and self.start_hour == self.end_hour:
            raise ValueError("start_hour and end_hour describe an empty range")
        if self.start_hour is None and not self.is_weekend:
            raise ValueError("time_pattern needs an hour range or is_weekend")
        return self

    @property
    def has_hour_range(self) -> bool:
        return self.start_hour is not None

    def covers_hour(self, hour: int) -> bool:
        """Whether ``hour`` falls in [start_hour, end_hour), wrapping past midnight."""
        if self.start_hour is None or self.end_hour is None:
            return False
        if self.start_hour < self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour


class MerchantRiskConditions(_Conditions):
    new_merchant: bool = True
    amount_multiplier: float = Field(default=2.0, gt=0)


class DeviceCheckConditions(_Conditions):
    new_device: bool = True
    min_amount: float = Field(default=0.0, ge=0)


# --- Rule variants ---


class _RuleDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    risk_weight: float = Field(ge=0, le=100)
    is_active: bool = True
    description: str = ""


class AmountThresholdRule(_RuleDefinition):
    rule_type: Literal["amount_threshold"]
    conditions: AmountThresholdConditions = Field(default_factory=AmountThresholdConditions)


class LocationCheckRule(_RuleDefinition):
    rule_type: Literal["location_check"]
    conditions: LocationCheckConditions = Field(default_factory=LocationCheckConditions)


class VelocityCheckRule(_RuleDefinition):
    rule_type: Literal["velocity_check"]
    conditions: VelocityCheckConditions


class TimePatternRule(_RuleDefinition):
    rule_type: Literal["time_pattern"]
    conditions: TimePatternConditions


class MerchantRiskRule(_RuleDefinition):
    rule_type: Literal["merchant_risk"]
    conditions: MerchantRiskConditions = Field(default_factory=MerchantRiskConditions)


class DeviceCheckRule(_RuleDefinition):
    rule_type: Literal["device_check"]
    conditions: DeviceCheckConditions = Field(default_factory=DeviceCheckConditions)


RuleDefinition = Annotated[
    AmountThresholdRule
    | LocationCheckRule
    | VelocityCheckRule
    | TimePatternRule
    | MerchantRiskRule
    | DeviceCheckRule,
    Field(discriminator="rule_type"),
]

_rule_adapter: TypeAdapter[Any] = TypeAdapter(RuleDefinition)


@dataclass
class RuleSet:
    """Parsed rules in configuration order plus the warnings raised while parsing."""

    rules: list[Any] = field(default_factory=list)
    warnings: list[ScoringWarning] = field(default_factory=list)

    @property
    def active_rules(self) -> list[Any]:
        return [r for r in self.rules if r.is_active]

    def velocity_windows(self) -> set[int]:
        return {
            r.conditions.window_seconds
            for r in self.active_rules
            if isinstance(r, VelocityCheckRule)
        }


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "rule"
    return f"{location}: {first['msg']}"


def parse_rule(name: str, raw: Any) -> Any:
    """Validate a single raw rule definition. Raises ConfigError when malformed."""
    if not isinstance(raw, Mapping):
        raise ConfigError(name, f"rule definition must be a mapping, got {type(raw).__name__}")

    data: dict[str, Any] = {_FIELD_ALIASES.get(k, k): v for k, v in raw.items()}
    data["name"] = name
    if "rule_type" not in data:
        raise ConfigError(name, "rule definition has no type")
    if data.get("conditions") is None:
        data.pop("conditions", None)

    try:
        return _rule_adapter.validate_python(data)
    except ValidationError as exc:
        raise ConfigError(name, _describe(exc)) from exc


def load_rules(config: Mapping[str, Any]) -> RuleSet:
    """Parse a host rule mapping, skipping malformed entries with a warning."""
    rule_set = RuleSet()
    for name, raw in config.items():
        try:
            rule_set.rules.append(parse_rule(name, raw))
        except ConfigError as exc:
            logger.warning("invalid_rule_skipped", rule_name=name, error=exc.message)
            rule_set.warnings.append(
                ScoringWarning(code="invalid_rule", message=exc.message, rule_name=name)
            )
    return rule_set


# Product defaults carried over from the original rule seed data. They are
# configuration defaults only, not tuned against a false-positive target.
DEFAULT_RULES: dict[str, dict[str, Any]] = {
    "High Amount Transaction": {
        "type": "amount_threshold",
        "conditions": {"multiplier": 5, "base": "user_average"},
        "weight": 30.0,
        "active": True,
        "description": "Transaction amount 5x higher than user average",
    },
    "Unusual Location": {
        "type": "location_check",
        "conditions": {"check_country": True, "check_city": False},
        "weight": 25.0,
        "active": True,
        "description": "Transaction from unusual country",
    },
    "High Frequency": {
        "type": "velocity_check",
        "conditions": {"max_transactions": 5, "time_window": "1 hour"},
        "weight": 40.0,
        "active": True,
        "description": "More than 5 transactions in 1 hour",
    },
    "Night Transaction": {
        "type": "time_pattern",
        "conditions": {"start_hour": 23, "end_hour": 5},
        "weight": 15.0,
        "active": True,
        "description": "Transaction during night hours (11PM - 5AM)",
    },
    "Weekend Large Amount": {
        "type": "time_pattern",
        "conditions": {"is_weekend": True, "amount_multiplier": 3},
        "weight": 20.0,
        "active": True,
        "description": "Large transaction during weekend",
    },
    "New Merchant High Amount": {
        "type": "merchant_risk",
        "conditions": {"new_merchant": True, "amount_multiplier": 2},
        "weight": 25.0,
        "active": True,
        "description": "High amount transaction with new merchant",
    },
    "Rapid Successive Transactions": {
        "type": "velocity_check",
        "conditions": {"max_transactions": 3, "time_window": "5 minutes"},
        "weight": 35.0,
        "active": True,
        "description": "More than 3 transactions in 5 minutes",
    },
    "Cross-border Transaction": {
        "type": "location_check",
        "conditions": {"different_country": True, "min_amount": 1000},
        "weight": 30.0,
        "active": True,
        "description": "International transaction over $1000",
    },
}
