"""
Energy processor: incremental, idempotent ingestion of Tuya energy logs.

One run of :meth:`EnergyProcessor.process_energy_logs` for a device:

1. Determine the window start from the stored watermark (or a forced start).
2. Fetch ``add_ele`` data point reports from Tuya for ``[start, now]``.
3. Drop entries not newer than the watermark (boundary duplicates).
4. Normalize timestamps and skip implausible ones.
5. Classify each reading and bucket it by local calendar day.
6. Merge the day buckets into stored rows in ascending date order.

Re-running with the same remote data does not double count: the watermark
filter in step 3 removes everything already merged. Runs for the same
device must not overlap; the caller serializes them.

Forced reprocess (``force_start_timestamp=0``) skips step 3 on purpose and
therefore re-adds energy for entries that were already merged.

CHANGELOG:
- 2026-10-16: Keep sub-second forced starts from collapsing the fetch window
- 2026-10-16: Per-day watermarks instead of a single run maximum
- 2026-10-16: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from energy_monitor.db.store import ConsumptionGateway
from energy_monitor.errors import ValidationError
from energy_monitor.models import ConsumptionTotals, DailyBreakdown, NewDailyBucket
from energy_monitor.services import consumption
from energy_monitor.services.aggregation import (
    DayAccumulator,
    aggregate_readings,
    normalize_entry,
    normalize_timestamp,
)
from energy_monitor.services.tariff import NorthMacedoniaTariffRules, TariffRules
from energy_monitor.services.tuya_client import DEFAULT_MAX_PAGES, TuyaClient

logger = logging.getLogger(__name__)

STATUS_NO_NEW_LOGS = "No new logs."
STATUS_COMPLETED = "Scheduled task completed successfully."

ENERGY_EVENT_CODE = "add_ele"
DATA_POINT_EVENT_TYPE = "7"

DEFAULT_LOOKBACK_DAYS = 7
DEFAULT_FETCH_SIZE = 5000


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class EnergyProcessor:
    """Folds Tuya energy logs into per-day, per-device tariff totals.

    Args:
        store: Persistence gateway for daily consumption rows.
        client: Tuya client used to fetch device logs.
        tariff_rules: Rule set used for classification and day keys.
            Defaults to North Macedonia rules in Europe/Skopje.
        lookback_days: Window length for a device with no watermark.
        fetch_size: Target entry count per fetch (0 for no target).
        max_pages: Page ceiling per fetch.
        event_code: Log code carrying energy increments.
        event_types: Tuya event type filter for the fetch.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        store: ConsumptionGateway,
        client: TuyaClient,
        tariff_rules: TariffRules | None = None,
        *,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        fetch_size: int = DEFAULT_FETCH_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        event_code: str = ENERGY_EVENT_CODE,
        event_types: str = DATA_POINT_EVENT_TYPE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._client = client
        self._rules = tariff_rules or NorthMacedoniaTariffRules()
        self._lookback_days = lookback_days
        self._fetch_size = fetch_size
        self._max_pages = max_pages
        self._event_code = event_code
        self._event_types = event_types
        self._clock = clock

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def process_energy_logs(
        self,
        device_id: str,
        force_start_timestamp: int | None = None,
    ) -> str:
        """Fetch new energy logs for *device_id* and merge them into storage.

        Args:
            device_id: Tuya device id.
            force_start_timestamp: ``None`` to continue from the stored
                watermark; a positive epoch-ms value to fetch from there and
                treat it as the watermark; ``0`` to reprocess from the stored
                watermark without duplicate filtering.

        Returns:
            STATUS_NO_NEW_LOGS or STATUS_COMPLETED.

        Raises:
            ValidationError: If *force_start_timestamp* is negative.
            RemoteError / AuthError: If fetching logs fails.
            PersistenceError: If a bucket upsert fails; later buckets are
                not attempted.
        """
        if force_start_timestamp is not None and force_start_timestamp < 0:
            raise ValidationError("force_start_timestamp must be >= 0")

        logger.info("Processing energy logs for device %s", device_id)
        reprocess = force_start_timestamp == 0

        if force_start_timestamp:
            watermark = force_start_timestamp
        else:
            watermark = await self._read_watermark(device_id)
        logger.info("Last processed timestamp for device %s: %d", device_id, watermark)

        # A start of 0 means "one day before now" to resolve_window.
        result = await self._client.fetch_logs(
            device_id,
            start=max(watermark // 1000, 1) if watermark > 0 else -self._lookback_days,
            end=0,
            event_types=self._event_types,
            size=self._fetch_size,
            max_pages=self._max_pages,
        )

        energy_logs = [entry for entry in result.entries if entry.code == self._event_code]
        if reprocess:
            new_logs = energy_logs
        else:
            new_logs = [
                entry
                for entry in energy_logs
                if normalize_timestamp(entry.event_time) > watermark
            ]

        logger.info(
            "Found %d '%s' logs for device %s, processing %d after timestamp filtering",
            len(energy_logs),
            self._event_code,
            device_id,
            len(new_logs),
        )
        if not new_logs:
            logger.info("No new '%s' logs to process for device %s.", self._event_code, device_id)
            return STATUS_NO_NEW_LOGS

        now = self._clock()
        readings = [
            reading
            for reading in (normalize_entry(entry, now) for entry in new_logs)
            if reading is not None
        ]
        days = aggregate_readings(readings, self._rules)
        if not days:
            logger.warning(
                "All %d new logs for device %s were skipped as suspicious",
                len(new_logs),
                device_id,
            )
            return STATUS_NO_NEW_LOGS

        for date_key, day in days.items():
            await self._merge_bucket(device_id, date_key, day, now)

        logger.info(
            "Processed and saved %d daily aggregate(s) for device %s",
            len(days),
            device_id,
        )
        return STATUS_COMPLETED

    async def _read_watermark(self, device_id: str) -> int:
        """Return the stored watermark, or 0 when absent or unreadable."""
        try:
            watermark = await self._store.max_watermark(device_id)
        except Exception:
            logger.warning(
                "Watermark read failed for device %s; assuming first run",
                device_id,
                exc_info=True,
            )
            return 0
        return watermark or 0

    async def _merge_bucket(
        self,
        device_id: str,
        date_key: str,
        day: DayAccumulator,
        now: datetime,
    ) -> None:
        """Add one day's delta to its stored row, creating it if needed."""
        try:
            existing = await self._store.get_bucket(date_key, device_id)
            if existing is not None:
                await self._store.update_bucket(
                    existing.id,
                    low_tariff_kwh=existing.low_tariff_kwh + day.low_tariff_kwh,
                    high_tariff_kwh=existing.high_tariff_kwh + day.high_tariff_kwh,
                    last_processed_timestamp=day.last_processed_timestamp,
                    updated_at=now,
                )
            else:
                await self._store.insert_bucket(
                    NewDailyBucket(
                        date=date_key,
                        device_id=device_id,
                        low_tariff_kwh=day.low_tariff_kwh,
                        high_tariff_kwh=day.high_tariff_kwh,
                        last_processed_timestamp=day.last_processed_timestamp,
                    )
                )
        except Exception:
            logger.error("Failed to upsert data for %s/%s", device_id, date_key, exc_info=True)
            raise

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def get_consumption_totals(
        self,
        device_id: str | None,
        start_date: str,
        end_date: str,
    ) -> ConsumptionTotals:
        """Summed tariff totals for one device, or all devices when ``None``."""
        return await consumption.get_consumption_totals(
            self._store, device_id, start_date, end_date
        )

    async def get_daily_breakdown(
        self,
        device_id: str | None,
        start_date: str,
        end_date: str,
        max_days: int = consumption.DEFAULT_MAX_DAYS,
    ) -> DailyBreakdown:
        """Newest-first per-day rows with a summary."""
        return await consumption.get_daily_breakdown(
            self._store, device_id, start_date, end_date, max_days
        )
