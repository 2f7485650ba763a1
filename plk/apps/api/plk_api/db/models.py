"""SQLAlchemy ORM Models for PharmaLink entitlements."""

from datetime import datetime, timezone

from sqlalchemy import BIGINT, TEXT, TIMESTAMP, CheckConstraint, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class UsageCounter(Base):
    """Usage counter - one row per (account, feature, period).

    Created lazily on the first increment of a period. Rows of past periods
    are retained and never deleted by the engine.
    """

    __tablename__ = "usage_counters"

    account_id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    feature_key: Mapped[str] = mapped_column(TEXT, primary_key=True)
    period_key: Mapped[str] = mapped_column(TEXT, primary_key=True)
    used: Mapped[int] = mapped_column(BIGINT, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("used >= 0", name="ck_usage_counters_used_non_negative"),
        Index("idx_usage_counters_account", "account_id"),
    )
