"""SQLAlchemy ORM models for the fraud risk engine's persistent state."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TransactionDB(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2))
    currency: Mapped[str] = mapped_column(String, default="USD")
    transaction_type: Mapped[str] = mapped_column(String)
    merchant_name: Mapped[str | None] = mapped_column(String, nullable=True)
    merchant_category: Mapped[str | None] = mapped_column(String, nullable=True)
    location_country: Mapped[str | None] = mapped_column(String, nullable=True)
    location_city: Mapped[str | None] = mapped_column(String, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String, nullable=True)
    device_fingerprint: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    card_last_four: Mapped[str | None] = mapped_column(String, nullable=True)
    transaction_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    sequence: Mapped[int] = mapped_column(BigInteger, default=0)
    is_weekend: Mapped[bool] = mapped_column(Boolean, default=False)
    is_night_transaction: Mapped[bool] = mapped_column(Boolean, default=False)
    risk_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True, index=True)
    is_flagged: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class UserBehaviorPatternDB(Base):
    __tablename__ = "user_behavior_patterns"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    profile_status: Mapped[str] = mapped_column(String, default="building")
    transaction_count: Mapped[int] = mapped_column(Integer, default=0)
    avg_transaction_amount: Mapped[float] = mapped_column(Float, default=0.0)
    std_transaction_amount: Mapped[float] = mapped_column(Float, default=0.0)
    max_transaction_amount: Mapped[float] = mapped_column(Float, default=0.0)
    transaction_frequency_daily: Mapped[float] = mapped_column(Float, default=0.0)
    monthly_spending_avg: Mapped[float] = mapped_column(Float, default=0.0)
    # Full serialized profile: hour histogram, recency sets, Welford state
    profile_data: Mapped[dict] = mapped_column(JSONB, default=dict)
    profile_version: Mapped[int] = mapped_column(Integer, default=1)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class FraudAlertDB(Base):
    __tablename__ = "fraud_alerts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    alert_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    transaction_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    alert_type: Mapped[str] = mapped_column(String)
    risk_score: Mapped[float] = mapped_column(Float, index=True)
    confidence_level: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, default="pending", index=True)
    alert_message: Mapped[str] = mapped_column(String)
    factors: Mapped[list] = mapped_column(JSONB, default=list)
    model_version: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class FraudRuleDB(Base):
    __tablename__ = "fraud_rules"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    rule_name: Mapped[str] = mapped_column(String, unique=True)
    rule_type: Mapped[str] = mapped_column(String)
    conditions: Mapped[dict] = mapped_column(JSONB, default=dict)
    risk_weight: Mapped[float] = mapped_column(Float)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
