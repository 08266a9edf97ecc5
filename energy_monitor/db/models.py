"""
SQLAlchemy ORM models for the energy monitor database.

Defines the DailyConsumption model holding one row of tariff-split energy
totals per (date, device_id). The unique constraint on (date, device_id)
backs the read-then-insert-or-update merge done by the processor.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-008)

TODO:
- None
"""

import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Double,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.UTC)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all energy monitor ORM models."""

    pass


class DailyConsumption(Base):
    """Energy consumed by one device on one local calendar day.

    Attributes:
        id: Surrogate primary key.
        date: Calendar day as ``YYYY-MM-DD`` in the reference timezone.
        device_id: Tuya device identifier.
        low_tariff_kwh: Energy consumed in low tariff windows (kWh).
        high_tariff_kwh: Energy consumed in high tariff windows (kWh).
        last_processed_timestamp: Newest merged reading for the day
            (epoch milliseconds); the device watermark is the max over rows.
        created_at: Row creation time (UTC).
        updated_at: Time of the last merge (UTC).
    """

    __tablename__ = "daily_consumption"
    __table_args__ = (UniqueConstraint("date", "device_id", name="unique_date_device"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[str] = mapped_column(Text, nullable=False)
    device_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    low_tariff_kwh: Mapped[float] = mapped_column(
        Double, nullable=False, default=0.0, server_default=text("0")
    )
    high_tariff_kwh: Mapped[float] = mapped_column(
        Double, nullable=False, default=0.0, server_default=text("0")
    )
    last_processed_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    def __repr__(self) -> str:
        """Return string representation of the DailyConsumption row."""
        return (
            f"DailyConsumption(date={self.date!r}, device_id={self.device_id!r}, "
            f"low_tariff_kwh={self.low_tariff_kwh!r}, "
            f"high_tariff_kwh={self.high_tariff_kwh!r})"
        )
