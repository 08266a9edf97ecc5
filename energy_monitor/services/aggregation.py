"""
Pure normalization and daily bucketing of raw Tuya energy log entries.

Turns RawLogEntry values into NormalizedReading values (timestamp unit
correction, watt-hour to kWh conversion, implausible-year guard) and folds
readings into an ordered ``date -> DayAccumulator`` mapping keyed by the
calendar day in the tariff rules' reference timezone.

This module performs no I/O and does not read the system clock; the
reference "now" is passed in by the caller.

CHANGELOG:
- 2026-10-16: Track the newest timestamp per day instead of per run
- 2026-10-16: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from energy_monitor.errors import RemoteError
from energy_monitor.models import NormalizedReading, RawLogEntry
from energy_monitor.services.tariff import Tariff, TariffRules, to_reference_time

logger = logging.getLogger(__name__)

MILLISECONDS_CUTOFF = 10**12
"""event_time values below this (before Sept 2001 in ms) are epoch seconds."""

MIN_PLAUSIBLE_YEAR = 2020


@dataclass
class DayAccumulator:
    """Running totals for one calendar day of one device."""

    low_tariff_kwh: float = 0.0
    high_tariff_kwh: float = 0.0
    last_processed_timestamp: int = 0

    def add(self, tariff: Tariff, energy_kwh: float, timestamp_ms: int) -> None:
        if tariff is Tariff.LOW:
            self.low_tariff_kwh += energy_kwh
        else:
            self.high_tariff_kwh += energy_kwh
        if timestamp_ms > self.last_processed_timestamp:
            self.last_processed_timestamp = timestamp_ms


def normalize_timestamp(event_time: int) -> int:
    """Return *event_time* in epoch milliseconds, converting from seconds."""
    if event_time < MILLISECONDS_CUTOFF:
        return event_time * 1000
    return event_time


def parse_energy_kwh(value: str) -> float:
    """Convert a Tuya ``add_ele`` value (watt-hours) into kWh.

    Raises:
        RemoteError: If the value is not a finite number.
    """
    try:
        watt_hours = float(value)
    except (TypeError, ValueError) as exc:
        raise RemoteError(f"Non-numeric energy value in device log: {value!r}") from exc
    if not math.isfinite(watt_hours):
        raise RemoteError(f"Non-finite energy value in device log: {value!r}")
    return watt_hours / 1000


def is_plausible_year(instant: datetime, now: datetime) -> bool:
    """Guard against corrupt timestamps (epoch zero, far future)."""
    return MIN_PLAUSIBLE_YEAR <= instant.year <= now.year + 1


def normalize_entry(entry: RawLogEntry, now: datetime) -> NormalizedReading | None:
    """Normalize one raw entry, or return ``None`` if it must be skipped.

    Entries with an implausible year or a negative energy increment are
    logged and skipped.
    """
    timestamp_ms = normalize_timestamp(entry.event_time)
    if timestamp_ms != entry.event_time:
        logger.debug(
            "Converted timestamp from seconds to milliseconds: %d -> %d",
            entry.event_time,
            timestamp_ms,
        )

    try:
        instant = datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        logger.warning("Suspicious timestamp detected: %d (out of range)", entry.event_time)
        return None

    if not is_plausible_year(instant, now):
        logger.warning(
            "Suspicious timestamp detected: %d -> %s (year %d)",
            entry.event_time,
            instant.isoformat(),
            instant.year,
        )
        return None

    energy_kwh = parse_energy_kwh(entry.value)
    if energy_kwh < 0:
        logger.warning(
            "Negative energy increment %r at %s skipped", entry.value, instant.isoformat()
        )
        return None

    return NormalizedReading(instant=instant, timestamp_ms=timestamp_ms, energy_kwh=energy_kwh)


def local_date_key(instant: datetime, rules: TariffRules) -> str:
    """Calendar day (YYYY-MM-DD) of *instant* in the rules' reference zone."""
    return to_reference_time(instant, rules.tz).strftime("%Y-%m-%d")


def aggregate_readings(
    readings: Iterable[NormalizedReading],
    rules: TariffRules,
) -> dict[str, DayAccumulator]:
    """Classify readings and fold them into per-day accumulators.

    Returns:
        Mapping of date key to accumulator, in ascending date order.
    """
    days: dict[str, DayAccumulator] = {}
    for reading in readings:
        date_key = local_date_key(reading.instant, rules)
        tariff = rules.classify(reading.instant)
        days.setdefault(date_key, DayAccumulator()).add(
            tariff, reading.energy_kwh, reading.timestamp_ms
        )
        logger.debug(
            "Reading %s (%s local) -> %s tariff, %.3f kWh",
            reading.instant.isoformat(),
            to_reference_time(reading.instant, rules.tz).isoformat(),
            tariff,
            reading.energy_kwh,
        )
    return {date_key: days[date_key] for date_key in sorted(days)}
