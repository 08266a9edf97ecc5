"""
Read-side reporting over stored daily consumption rows.

Provides the two query entry points exposed to callers: summed tariff
totals over a date range, and a newest-first per-day breakdown with a
summary. Both work for one device or, with ``device_id=None``, for all
devices.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import datetime

from energy_monitor.db.store import ConsumptionGateway
from energy_monitor.errors import ValidationError
from energy_monitor.models import (
    BreakdownSummary,
    ConsumptionTotals,
    DailyBreakdown,
    DailyRow,
    Period,
)

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
DEFAULT_MAX_DAYS = 30


def validate_date_range(start_date: str | None, end_date: str | None) -> None:
    """Check that both bounds are ``YYYY-MM-DD`` and ``start <= end``.

    Raises:
        ValidationError: If a bound is missing, malformed or the range is
            inverted.
    """
    if not start_date or not end_date:
        raise ValidationError('Missing "start" or "end" date.')
    parsed: list[datetime] = []
    for label, value in (("start", start_date), ("end", end_date)):
        try:
            parsed.append(datetime.strptime(value, DATE_FORMAT))
        except ValueError:
            raise ValidationError(
                f'Invalid "{label}" date {value!r}; expected YYYY-MM-DD.'
            ) from None
    if parsed[0] > parsed[1]:
        raise ValidationError(f"Start date {start_date} is after end date {end_date}.")


async def get_consumption_totals(
    store: ConsumptionGateway,
    device_id: str | None,
    start_date: str,
    end_date: str,
) -> ConsumptionTotals:
    """Sum low and high tariff energy over an inclusive date range."""
    validate_date_range(start_date, end_date)
    total_low, total_high = await store.sum_totals(device_id, start_date, end_date)
    logger.debug(
        "Totals query: device_id=%s start=%s end=%s low=%.3f high=%.3f",
        device_id,
        start_date,
        end_date,
        total_low,
        total_high,
    )
    return ConsumptionTotals(total_low=total_low, total_high=total_high)


async def get_daily_breakdown(
    store: ConsumptionGateway,
    device_id: str | None,
    start_date: str,
    end_date: str,
    max_days: int = DEFAULT_MAX_DAYS,
) -> DailyBreakdown:
    """Return the newest *max_days* days in range with a summary.

    Args:
        store: Consumption gateway.
        device_id: Device to report on, or ``None`` for all devices summed
            per date.
        start_date: Inclusive start (YYYY-MM-DD).
        end_date: Inclusive end (YYYY-MM-DD).
        max_days: Maximum number of days returned.

    Raises:
        ValidationError: On an invalid range or ``max_days < 1``.
    """
    validate_date_range(start_date, end_date)
    if max_days < 1:
        raise ValidationError("max_days must be >= 1")

    rows = await store.daily_rows(device_id, start_date, end_date, max_days)
    daily_data = [
        DailyRow(
            date=row["date"],
            low=float(row["low"]),
            high=float(row["high"]),
            total=float(row["low"]) + float(row["high"]),
            devices_count=row.get("devices_count"),
        )
        for row in rows
    ]

    total_low = sum(row.low for row in daily_data)
    total_high = sum(row.high for row in daily_data)
    days = len(daily_data)
    summary = BreakdownSummary(
        total_low=total_low,
        total_high=total_high,
        grand_total=total_low + total_high,
        average_low=total_low / days if days else 0.0,
        average_high=total_high / days if days else 0.0,
        average_total=(total_low + total_high) / days if days else 0.0,
    )

    return DailyBreakdown(
        device_id=device_id,
        period=Period(start=start_date, end=end_date),
        daily_data=daily_data,
        total_days=days,
        summary=summary,
    )
