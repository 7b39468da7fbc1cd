"""Pydantic models for per-user behavior profiles."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class ProfileStatus(StrEnum):
    BUILDING = "building"
    ACTIVE = "active"
    # Conservative stand-in used when the profile store is unreachable; never persisted.
    FALLBACK = "fallback"


class UserBehaviorProfile(BaseModel):
    """Rolling statistical summary of one user's transaction behavior.

    Amount statistics are maintained with Welford's streaming algorithm:
    ``amount_m2`` holds the running sum of squared deviations, from which
    ``std_transaction_amount`` (sample standard deviation) is derived.
    """

    user_id: str
    profile_status: ProfileStatus = ProfileStatus.BUILDING
    transaction_count: int = Field(default=0, ge=0)

    # Amount statistics
    avg_transaction_amount: float = 0.0
    std_transaction_amount: float = Field(default=0.0, ge=0.0)
    amount_m2: float = Field(default=0.0, ge=0.0)
    max_transaction_amount: float = 0.0
    total_amount: float = 0.0

    # Temporal baseline: hour of day (0-23) -> transaction count
    typical_transaction_times: dict[int, int] = Field(default_factory=dict)

    # Bounded recency sets; least recently seen entries come first
    frequent_merchants: dict[str, datetime] = Field(default_factory=dict)
    usual_countries: list[str] = Field(default_factory=list)
    usual_cities: list[str] = Field(default_factory=list)
    known_devices: list[str] = Field(default_factory=list)

    preferred_payment_methods: dict[str, int] = Field(default_factory=dict)
    spending_by_category: dict[str, float] = Field(default_factory=dict)

    # Frequency and spending mix
    transaction_frequency_daily: float = 0.0
    monthly_spending_avg: float = 0.0
    weekend_amount: float = 0.0
    night_transaction_count: int = 0
    weekend_spending_ratio: float = 0.3
    night_transaction_ratio: float = 0.1

    first_transaction_at: datetime | None = None
    last_transaction_at: datetime | None = None
    last_sequence: int = 0
    last_updated: datetime | None = None
    profile_version: str = "behavior-profile-v1"

    @property
    def has_history(self) -> bool:
        return self.transaction_count > 0

    @property
    def hour_total(self) -> int:
        return sum(self.typical_transaction_times.values())


class ProfileSummary(BaseModel):
    """API-facing view of a behavior profile."""

    user_id: str
    profile_status: ProfileStatus
    transaction_count: int
    avg_transaction_amount: float
    std_transaction_amount: float
    max_transaction_amount: float
    transaction_frequency_daily: float
    usual_countries: list[str]
    usual_cities: list[str]
    frequent_merchants: list[str]
    typical_hours: list[int]
    last_transaction_at: datetime | None = None

    @classmethod
    def from_profile(cls, profile: UserBehaviorProfile) -> "ProfileSummary":
        return cls(
            user_id=profile.user_id,
            profile_status=profile.profile_status,
            transaction_count=profile.transaction_count,
            avg_transaction_amount=round(profile.avg_transaction_amount, 2),
            std_transaction_amount=round(profile.std_transaction_amount, 2),
            max_transaction_amount=profile.max_transaction_amount,
            transaction_frequency_daily=round(profile.transaction_frequency_daily, 4),
            usual_countries=list(profile.usual_countries),
            usual_cities=list(profile.usual_cities),
            frequent_merchants=list(profile.frequent_merchants),
            typical_hours=sorted(profile.typical_transaction_times),
            last_transaction_at=profile.last_transaction_at,
        )
