"""
Tariff classifier mapping an absolute instant to a low or high tariff.

Rules are evaluated against the wall-clock hour and weekday in one fixed
reference timezone, independent of the host timezone and of the timezone
the instant was expressed in. Rule sets are registered by name in
TARIFF_RULES so other jurisdictions can be plugged in through the same
interface.

Classification is a pure function: no I/O, no clock, no state.

CHANGELOG:
- 2026-10-16: Inject the reference timezone instead of reading the host zone
- 2026-10-16: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import StrEnum
from typing import Protocol

import pytz

DEFAULT_TIMEZONE = "Europe/Skopje"

# datetime.weekday() values
MONDAY = 0
SATURDAY = 5
SUNDAY = 6


class Tariff(StrEnum):
    LOW = "low"
    HIGH = "high"


def to_reference_time(instant: datetime, tz: tzinfo) -> datetime:
    """Convert an aware instant to wall-clock time in *tz*.

    Raises:
        ValueError: If *instant* is naive; a naive value has no absolute
            meaning and would silently pick up the host timezone.
    """
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError(f"Expected a timezone-aware datetime, got naive {instant!r}")
    return instant.astimezone(tz)


class TariffRules(Protocol):
    """Interface every jurisdiction rule set implements."""

    name: str

    @property
    def tz(self) -> tzinfo: ...

    def is_low_tariff(self, instant: datetime) -> bool: ...

    def classify(self, instant: datetime) -> Tariff: ...


@dataclass(frozen=True)
class NorthMacedoniaTariffRules:
    """Two-rate household tariff used in North Macedonia.

    Low tariff applies:

    - from Saturday 22:00 through Monday 07:00 (weekend window),
    - every day between 13:00 and 15:00 (midday window),
    - every night between 22:00 and 07:00 (nightly window).

    Everything else is high tariff. The weekend and nightly windows overlap
    on Saturday night and Sunday night; both resolve to low, so the order of
    evaluation does not matter.

    Args:
        timezone: IANA zone the windows are defined in.
    """

    timezone: str = DEFAULT_TIMEZONE
    name: str = "north_macedonia"

    @property
    def tz(self) -> tzinfo:
        return pytz.timezone(self.timezone)

    def is_low_tariff(self, instant: datetime) -> bool:
        local = to_reference_time(instant, self.tz)
        hour = local.hour
        day = local.weekday()

        if (day == SATURDAY and hour >= 22) or day == SUNDAY or (day == MONDAY and hour < 7):
            return True
        if 13 <= hour < 15:
            return True
        if hour >= 22 or hour < 7:
            return True
        return False

    def classify(self, instant: datetime) -> Tariff:
        return Tariff.LOW if self.is_low_tariff(instant) else Tariff.HIGH


TARIFF_RULES: dict[str, type[NorthMacedoniaTariffRules]] = {
    "north_macedonia": NorthMacedoniaTariffRules,
}
"""Registry of available rule sets by configuration name."""


def get_tariff_rules(name: str, timezone: str | None = None) -> TariffRules:
    """Build a registered rule set, optionally overriding its timezone.

    Args:
        name: Key in TARIFF_RULES.
        timezone: IANA zone name. Defaults to the rule set's own zone.

    Raises:
        ValueError: If *name* is not registered or *timezone* is unknown.
    """
    try:
        rules_cls = TARIFF_RULES[name]
    except KeyError:
        raise ValueError(
            f"Unknown tariff rule set '{name}'. Available: {sorted(TARIFF_RULES)}"
        ) from None
    if timezone is None:
        return rules_cls()
    if timezone not in pytz.all_timezones_set:
        raise ValueError(f"Unknown timezone '{timezone}'")
    return rules_cls(timezone=timezone)


def classify(instant: datetime, rules: TariffRules | None = None) -> Tariff:
    """Classify *instant* with *rules* (the North Macedonia set by default)."""
    if rules is None:
        rules = NorthMacedoniaTariffRules()
    return rules.classify(instant)
