"""
Test helpers: local-time builders, log entry factory and an in-memory gateway.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-001)
"""

from __future__ import annotations

from datetime import datetime

import pytz

from energy_monitor.errors import PersistenceError
from energy_monitor.models import DailyBucket, NewDailyBucket, RawLogEntry

SKOPJE = pytz.timezone("Europe/Skopje")


def local_time(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    """Return an aware datetime at the given Europe/Skopje wall-clock time."""
    return SKOPJE.localize(datetime(year, month, day, hour, minute))


def epoch_ms(instant: datetime) -> int:
    return int(instant.timestamp() * 1000)


def make_entry(
    instant: datetime | int,
    value: str = "100",
    code: str = "add_ele",
) -> RawLogEntry:
    """Build a RawLogEntry at *instant* (datetime or raw event_time)."""
    event_time = instant if isinstance(instant, int) else epoch_ms(instant)
    return RawLogEntry(code=code, event_time=event_time, value=value)


class InMemoryStore:
    """Dict-backed ConsumptionGateway that records every write.

    Attributes:
        rows: Stored buckets keyed by (date, device_id).
        writes: ("insert" | "update", date) tuples in call order.
        fail_watermark: Raise PersistenceError from max_watermark.
        fail_on_write: Raise PersistenceError on the n-th write (1-based).
    """

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], DailyBucket] = {}
        self.writes: list[tuple[str, str]] = []
        self.fail_watermark = False
        self.fail_on_write: int | None = None
        self._next_id = 1

    def _check_write(self) -> None:
        if self.fail_on_write is not None and len(self.writes) + 1 == self.fail_on_write:
            raise PersistenceError("simulated write failure")

    async def max_watermark(self, device_id: str) -> int | None:
        if self.fail_watermark:
            raise PersistenceError("simulated watermark failure")
        values = [
            row.last_processed_timestamp
            for (_, dev), row in self.rows.items()
            if dev == device_id
        ]
        return max(values) if values else None

    async def get_bucket(self, date: str, device_id: str) -> DailyBucket | None:
        return self.rows.get((date, device_id))

    async def insert_bucket(self, bucket: NewDailyBucket) -> DailyBucket:
        self._check_write()
        stored = DailyBucket(id=self._next_id, **bucket.model_dump())
        self._next_id += 1
        self.rows[(bucket.date, bucket.device_id)] = stored
        self.writes.append(("insert", bucket.date))
        return stored

    async def update_bucket(
        self,
        bucket_id: int,
        *,
        low_tariff_kwh: float,
        high_tariff_kwh: float,
        last_processed_timestamp: int,
        updated_at: datetime,
    ) -> None:
        self._check_write()
        for key, row in self.rows.items():
            if row.id == bucket_id:
                self.rows[key] = row.model_copy(
                    update={
                        "low_tariff_kwh": low_tariff_kwh,
                        "high_tariff_kwh": high_tariff_kwh,
                        "last_processed_timestamp": last_processed_timestamp,
                        "updated_at": updated_at,
                    }
                )
                self.writes.append(("update", row.date))
                return
        raise PersistenceError(f"no row with id {bucket_id}")

    async def sum_totals(
        self, device_id: str | None, start_date: str, end_date: str
    ) -> tuple[float, float]:
        rows = [
            row
            for row in self.rows.values()
            if start_date <= row.date <= end_date
            and (device_id is None or row.device_id == device_id)
        ]
        return (
            sum(row.low_tariff_kwh for row in rows),
            sum(row.high_tariff_kwh for row in rows),
        )

    async def daily_rows(
        self, device_id: str | None, start_date: str, end_date: str, limit: int
    ) -> list[dict]:
        rows = sorted(
            (
                row
                for row in self.rows.values()
                if start_date <= row.date <= end_date
                and (device_id is None or row.device_id == device_id)
            ),
            key=lambda row: row.date,
            reverse=True,
        )
        return [
            {"date": row.date, "low": row.low_tariff_kwh, "high": row.high_tariff_kwh}
            for row in rows[:limit]
        ]
