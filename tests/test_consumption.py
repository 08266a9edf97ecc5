"""
Unit tests for the consumption reporting entry points.

Tests verify:
- Missing, malformed and inverted date ranges raise ValidationError.
- Totals are summed per device or across all devices.
- The daily breakdown is newest first, limited to max_days, with a summary.
- All-device breakdowns are grouped by date with a devices count.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import pytest

from energy_monitor.db.store import ConsumptionStore
from energy_monitor.errors import ValidationError
from energy_monitor.models import NewDailyBucket
from energy_monitor.services.consumption import (
    get_consumption_totals,
    get_daily_breakdown,
    validate_date_range,
)
from tests.helpers import InMemoryStore


async def _seed(store, *rows: tuple[str, str, float, float]) -> None:
    for date, device, low, high in rows:
        await store.insert_bucket(
            NewDailyBucket(
                date=date,
                device_id=device,
                low_tariff_kwh=low,
                high_tariff_kwh=high,
                last_processed_timestamp=1_736_000_000_000,
            )
        )


# ---------------------------------------------------------------------------
# Date range validation
# ---------------------------------------------------------------------------


class TestValidateDateRange:
    """validate_date_range() rejects unusable ranges."""

    @pytest.mark.parametrize(
        ("start", "end"),
        [(None, "2025-01-31"), ("2025-01-01", ""), (None, None)],
    )
    def test_missing_bound(self, start, end) -> None:
        with pytest.raises(ValidationError, match="Missing"):
            validate_date_range(start, end)

    @pytest.mark.parametrize("bad", ["2025/01/01", "yesterday", "2025-13-01", "2025-02-30"])
    def test_malformed_bound(self, bad: str) -> None:
        with pytest.raises(ValidationError, match="expected YYYY-MM-DD"):
            validate_date_range(bad, "2025-12-31")

    def test_inverted_range(self) -> None:
        with pytest.raises(ValidationError, match="after end date"):
            validate_date_range("2025-02-01", "2025-01-01")

    def test_single_day_range_allowed(self) -> None:
        validate_date_range("2025-01-01", "2025-01-01")

    def test_validation_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            validate_date_range("nope", "2025-01-01")


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------


class TestTotals:
    """get_consumption_totals() sums both tariffs over the range."""

    @pytest.mark.asyncio
    async def test_one_device(self, memory_store: InMemoryStore) -> None:
        await _seed(
            memory_store,
            ("2025-01-05", "dev-a", 1.0, 2.0),
            ("2025-01-06", "dev-a", 0.5, 0.5),
            ("2025-01-06", "dev-b", 9.0, 9.0),
            ("2025-02-01", "dev-a", 9.0, 9.0),
        )
        totals = await get_consumption_totals(memory_store, "dev-a", "2025-01-01", "2025-01-31")
        assert totals.total_low == pytest.approx(1.5)
        assert totals.total_high == pytest.approx(2.5)

    @pytest.mark.asyncio
    async def test_all_devices(self, memory_store: InMemoryStore) -> None:
        await _seed(
            memory_store,
            ("2025-01-06", "dev-a", 0.5, 0.5),
            ("2025-01-06", "dev-b", 1.0, 2.0),
        )
        totals = await get_consumption_totals(memory_store, None, "2025-01-06", "2025-01-06")
        assert totals.total_low == pytest.approx(1.5)
        assert totals.total_high == pytest.approx(2.5)

    @pytest.mark.asyncio
    async def test_empty_range_is_zero(self, memory_store: InMemoryStore) -> None:
        totals = await get_consumption_totals(memory_store, "dev-a", "2025-01-01", "2025-01-31")
        assert totals.total_low == 0
        assert totals.total_high == 0

    @pytest.mark.asyncio
    async def test_invalid_range_skips_store(self, memory_store: InMemoryStore) -> None:
        with pytest.raises(ValidationError):
            await get_consumption_totals(memory_store, "dev-a", "2025-01-31", "2025-01-01")


# ---------------------------------------------------------------------------
# Daily breakdown
# ---------------------------------------------------------------------------


class TestDailyBreakdown:
    """get_daily_breakdown() returns rows and a summary."""

    @pytest.mark.asyncio
    async def test_newest_first_with_summary(self, memory_store: InMemoryStore) -> None:
        await _seed(
            memory_store,
            ("2025-01-05", "dev-a", 1.0, 3.0),
            ("2025-01-07", "dev-a", 2.0, 2.0),
            ("2025-01-06", "dev-a", 3.0, 1.0),
        )
        report = await get_daily_breakdown(memory_store, "dev-a", "2025-01-01", "2025-01-31")

        assert report.device_id == "dev-a"
        assert report.period.start == "2025-01-01"
        assert report.period.end == "2025-01-31"
        assert [row.date for row in report.daily_data] == [
            "2025-01-07",
            "2025-01-06",
            "2025-01-05",
        ]
        assert report.daily_data[0].total == pytest.approx(4.0)
        assert report.daily_data[0].devices_count is None
        assert report.total_days == 3
        assert report.summary.total_low == pytest.approx(6.0)
        assert report.summary.total_high == pytest.approx(6.0)
        assert report.summary.grand_total == pytest.approx(12.0)
        assert report.summary.average_low == pytest.approx(2.0)
        assert report.summary.average_total == pytest.approx(4.0)

    @pytest.mark.asyncio
    async def test_limited_to_max_days(self, memory_store: InMemoryStore) -> None:
        await _seed(memory_store, *((f"2025-01-{d:02d}", "dev-a", 1.0, 1.0) for d in range(1, 11)))
        report = await get_daily_breakdown(
            memory_store, "dev-a", "2025-01-01", "2025-01-31", max_days=3
        )
        assert [row.date for row in report.daily_data] == [
            "2025-01-10",
            "2025-01-09",
            "2025-01-08",
        ]
        assert report.summary.grand_total == pytest.approx(6.0)

    @pytest.mark.asyncio
    async def test_empty_breakdown(self, memory_store: InMemoryStore) -> None:
        report = await get_daily_breakdown(memory_store, "dev-a", "2025-01-01", "2025-01-31")
        assert report.daily_data == []
        assert report.total_days == 0
        assert report.summary.average_total == 0

    @pytest.mark.asyncio
    async def test_max_days_must_be_positive(self, memory_store: InMemoryStore) -> None:
        with pytest.raises(ValidationError, match="max_days"):
            await get_daily_breakdown(
                memory_store, "dev-a", "2025-01-01", "2025-01-31", max_days=0
            )

    @pytest.mark.asyncio
    async def test_all_devices_grouped_by_date(self, sqlite_store: ConsumptionStore) -> None:
        await _seed(
            sqlite_store,
            ("2025-01-06", "dev-a", 1.0, 1.0),
            ("2025-01-06", "dev-b", 2.0, 0.5),
            ("2025-01-07", "dev-a", 0.5, 0.5),
        )
        report = await get_daily_breakdown(sqlite_store, None, "2025-01-01", "2025-01-31")

        assert report.device_id is None
        assert [row.date for row in report.daily_data] == ["2025-01-07", "2025-01-06"]
        jan6 = report.daily_data[1]
        assert jan6.low == pytest.approx(3.0)
        assert jan6.high == pytest.approx(1.5)
        assert jan6.total == pytest.approx(4.5)
        assert jan6.devices_count == 2
        assert report.summary.grand_total == pytest.approx(5.5)
