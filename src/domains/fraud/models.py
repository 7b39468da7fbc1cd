"""Pydantic models for the fraud domain."""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from src.domains.behavior.models import UserBehaviorProfile

from .exceptions import InvalidTransaction

NIGHT_START_HOUR = 23
NIGHT_END_HOUR = 5
CENTS = Decimal("0.01")
# Amounts are stored as NUMERIC(15, 2)
MAX_AMOUNT = Decimal(10) ** 13


def is_night_hour(hour: int) -> bool:
    return hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR


class TransactionType(StrEnum):
    DEBIT = "debit"
    CREDIT = "credit"
    TRANSFER = "transfer"
    WITHDRAWAL = "withdrawal"
    DEPOSIT = "deposit"
    PAYMENT = "payment"


class PaymentMethod(StrEnum):
    CARD = "card"
    ONLINE = "online"
    MOBILE = "mobile"
    ATM = "atm"
    WIRE = "wire"


class RuleType(StrEnum):
    AMOUNT_THRESHOLD = "amount_threshold"
    LOCATION_CHECK = "location_check"
    VELOCITY_CHECK = "velocity_check"
    TIME_PATTERN = "time_pattern"
    MERCHANT_RISK = "merchant_risk"
    DEVICE_CHECK = "device_check"


class AnomalySignal(StrEnum):
    AMOUNT_ZSCORE = "amount_zscore"
    TIME_RARITY = "time_rarity"
    VELOCITY_BURST = "velocity_burst"
    GEOGRAPHIC_NOVELTY = "geographic_novelty"


class FactorSource(StrEnum):
    RULE = "rule"
    ANOMALY = "anomaly"


class ConfidenceLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED_FRAUD = "confirmed_fraud"
    FALSE_POSITIVE = "false_positive"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"


class Transaction(BaseModel):
    """An immutable transaction event as received from the ingestion boundary.

    ``is_weekend`` and ``is_night`` are derived from ``transaction_time`` when
    the transaction is constructed and are never recomputed. ``risk_score``
    and ``is_flagged`` are written once, via :meth:`with_score`.
    """

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    user_id: str
    amount: Decimal
    currency: str = "USD"
    transaction_type: TransactionType = TransactionType.PAYMENT
    merchant_name: str | None = None
    merchant_category: str | None = None
    location_country: str | None = None
    location_city: str | None = None
    ip_address: str | None = None
    device_fingerprint: str | None = None
    payment_method: PaymentMethod | None = None
    card_last_four: str | None = None
    transaction_time: datetime | None = None
    sequence: int = 0
    is_weekend: bool = False
    is_night: bool = False
    risk_score: Decimal | None = None
    is_flagged: bool = False

    @model_validator(mode="before")
    @classmethod
    def _derive_time_flags(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        ts = data.get("transaction_time")
        if isinstance(ts, str):
            ts = datetime.fromisoformat(ts)
        if isinstance(ts, datetime):
            data = dict(data)
            data.setdefault("is_weekend", ts.weekday() >= 5)
            data.setdefault("is_night", is_night_hour(ts.hour))
        return data

    @field_validator("amount")
    @classmethod
    def _quantize_amount(cls, v: Decimal) -> Decimal:
        if abs(v) >= MAX_AMOUNT:
            raise ValueError(f"amount must be below {MAX_AMOUNT}")
        try:
            return v.quantize(CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation as exc:
            raise ValueError(f"amount {v} cannot be represented in cents") from exc

    @field_validator("transaction_time")
    @classmethod
    def _assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Transaction":
        """Build a transaction from a raw ingestion payload."""
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise InvalidTransaction(
                f"Malformed transaction payload: {exc.error_count()} error(s)",
                transaction_id=payload.get("transaction_id"),
            ) from exc

    @property
    def amount_float(self) -> float:
        return float(self.amount)

    @property
    def hour(self) -> int | None:
        return self.transaction_time.hour if self.transaction_time else None

    def ensure_scorable(self) -> None:
        """Raise InvalidTransaction unless every field scoring depends on is present."""
        if not self.transaction_id:
            raise InvalidTransaction("Transaction is missing transaction_id")
        if not self.user_id:
            raise InvalidTransaction("Transaction is missing user_id", self.transaction_id)
        if self.transaction_time is None:
            raise InvalidTransaction("Transaction is missing transaction_time", self.transaction_id)
        if self.amount <= 0:
            raise InvalidTransaction(
                f"Transaction amount must be positive, got {self.amount}", self.transaction_id
            )

    def with_score(self, risk_score: float, is_flagged: bool) -> "Transaction":
        """Return a copy carrying the engine's score. A transaction is scored once."""
        if self.risk_score is not None:
            raise ValueError(f"Transaction {self.transaction_id} has already been scored")
        return self.model_copy(
            update={
                "risk_score": Decimal(str(risk_score)).quantize(CENTS, rounding=ROUND_HALF_UP),
                "is_flagged": is_flagged,
            }
        )


class TransactionFeatures(BaseModel):
    """Collaborator-derived inputs computed before scoring."""

    # Window length in seconds -> prior transactions for the user inside that window
    window_counts: dict[int, int] = Field(default_factory=dict)
    # Transactions in the burst window, including the current one
    burst_count: int | None = None
    velocity_available: bool = True


class RuleResult(BaseModel):
    rule_name: str
    rule_type: RuleType
    triggered: bool
    score: float = 0.0
    details: str = ""
    evidence: dict = Field(default_factory=dict)


class RiskFactor(BaseModel):
    source: FactorSource
    identifier: str
    category: str
    reason: str
    contribution: float = Field(ge=0.0)


class ScoringWarning(BaseModel):
    code: str
    message: str
    rule_name: str | None = None


class RuleEvaluation(BaseModel):
    partial_score: float = 0.0
    factors: list[RiskFactor] = Field(default_factory=list)
    results: list[RuleResult] = Field(default_factory=list)
    warnings: list[ScoringWarning] = Field(default_factory=list)


class AnomalyEvaluation(BaseModel):
    partial_score: float = 0.0
    factors: list[RiskFactor] = Field(default_factory=list)
    warnings: list[ScoringWarning] = Field(default_factory=list)


class FraudAlert(BaseModel):
    alert_id: str
    transaction_id: str
    user_id: str
    alert_type: str
    risk_score: float = Field(ge=0, le=100)
    confidence_level: ConfidenceLevel
    status: AlertStatus = AlertStatus.PENDING
    alert_message: str
    factors: list[RiskFactor] = Field(default_factory=list)
    model_version: str = "rules-anomaly-v1"
    created_at: datetime


class ScoringResult(BaseModel):
    transaction_id: str
    user_id: str
    final_score: float = Field(ge=0, le=100)
    confidence: ConfidenceLevel
    factors: list[RiskFactor] = Field(default_factory=list)
    alert_raised: bool = False
    alert: FraudAlert | None = None
    rule_score: float = 0.0
    anomaly_score: float = 0.0
    warnings: list[ScoringWarning] = Field(default_factory=list)
    scored_transaction: Transaction | None = None
    profile: UserBehaviorProfile | None = None
    model_version: str = "rules-anomaly-v1"
    scored_at: datetime
