"""Behavior profile configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class ProfileConfig:
    """Per-user behavior profile parameters."""

    # Transactions before a profile is considered "active"
    min_transactions_active: int = 5
    # Bounded recency sets
    max_frequent_merchants: int = 25
    max_usual_countries: int = 10
    max_usual_cities: int = 20
    max_known_devices: int = 10
    # Spending is averaged over months of 30 days
    days_per_month: float = 30.0


@dataclass
class BehaviorConfig:
    """Top-level behavior profile configuration."""

    profile: ProfileConfig = field(default_factory=ProfileConfig)

    @classmethod
    def from_env(cls) -> "BehaviorConfig":
        """Load config with env var overrides. Env vars use BEHAVIOR_ prefix."""
        config = cls()

        if v := os.getenv("BEHAVIOR_MIN_TRANSACTIONS_ACTIVE"):
            config.profile.min_transactions_active = int(v)
        if v := os.getenv("BEHAVIOR_MAX_FREQUENT_MERCHANTS"):
            config.profile.max_frequent_merchants = int(v)
        if v := os.getenv("BEHAVIOR_MAX_USUAL_COUNTRIES"):
            config.profile.max_usual_countries = int(v)
        if v := os.getenv("BEHAVIOR_MAX_USUAL_CITIES"):
            config.profile.max_usual_cities = int(v)
        if v := os.getenv("BEHAVIOR_MAX_KNOWN_DEVICES"):
            config.profile.max_known_devices = int(v)

        return config


# Module-level default instance
default_config = BehaviorConfig()
