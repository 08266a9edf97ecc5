"""
Pydantic models for Tuya payloads, readings, buckets and report results.

Tuya payload models (RawLogEntry, LogPage, TokenResult) validate what the
remote API sends so that unexpected shapes surface as errors instead of
being coerced silently. NormalizedReading is the intermediate produced by
the aggregation step. DailyBucket mirrors a stored daily_consumption row.
The remaining models are the results returned by the reporting entry points.

CHANGELOG:
- 2026-10-16: Add report result models (STORY-009)
- 2026-10-16: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Tuya payloads
# ---------------------------------------------------------------------------


class RawLogEntry(BaseModel):
    """A single device log entry as returned by the Tuya logs endpoint.

    Attributes:
        code: Data point code, e.g. ``add_ele`` for energy increments.
        event_time: Epoch timestamp. Usually milliseconds, but some devices
            report seconds.
        value: Reported value as a string. For ``add_ele`` this is the
            energy increment in watt-hours (milli-kWh).
    """

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    code: str
    event_time: int
    value: str


class LogPage(BaseModel):
    """The ``result`` object of one page of device logs."""

    model_config = ConfigDict(extra="ignore")

    logs: list[RawLogEntry] = Field(default_factory=list)
    has_next: bool = False
    next_row_key: str | None = None


class TokenResult(BaseModel):
    """The ``result`` object of the token endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    expire_time: int | None = None
    refresh_token: str | None = None
    uid: str | None = None


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class NormalizedReading(BaseModel):
    """A log entry after timestamp unit correction and kWh conversion.

    Attributes:
        instant: Timezone-aware UTC datetime of the reading.
        timestamp_ms: The same instant as epoch milliseconds.
        energy_kwh: Energy increment in kilowatt-hours.
    """

    model_config = ConfigDict(frozen=True)

    instant: datetime
    timestamp_ms: int
    energy_kwh: float


class NewDailyBucket(BaseModel):
    """Values for a daily_consumption row that does not exist yet."""

    date: str
    device_id: str
    low_tariff_kwh: float = Field(default=0.0, ge=0)
    high_tariff_kwh: float = Field(default=0.0, ge=0)
    last_processed_timestamp: int


class DailyBucket(NewDailyBucket):
    """A stored daily_consumption row.

    Attributes:
        id: Surrogate primary key.
        date: Calendar day (YYYY-MM-DD) in the reference timezone.
        device_id: Owning device.
        low_tariff_kwh: Energy accumulated in low tariff windows.
        high_tariff_kwh: Energy accumulated outside low tariff windows.
        last_processed_timestamp: Newest reading (epoch ms) merged into
            this day by the most recent run.
        created_at: Row creation time.
        updated_at: Last merge time.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Report results
# ---------------------------------------------------------------------------


class ConsumptionTotals(BaseModel):
    """Summed low and high tariff energy over a date range."""

    total_low: float = 0.0
    total_high: float = 0.0


class Period(BaseModel):
    start: str
    end: str


class DailyRow(BaseModel):
    """One day of a daily breakdown.

    ``devices_count`` is only set for all-device breakdowns.
    """

    date: str
    low: float
    high: float
    total: float
    devices_count: int | None = None


class BreakdownSummary(BaseModel):
    total_low: float = 0.0
    total_high: float = 0.0
    grand_total: float = 0.0
    average_low: float = 0.0
    average_high: float = 0.0
    average_total: float = 0.0


class DailyBreakdown(BaseModel):
    """Per-day rows (newest first) plus a summary over those rows."""

    device_id: str | None
    period: Period
    daily_data: list[DailyRow]
    total_days: int
    summary: BreakdownSummary
