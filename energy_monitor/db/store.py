"""
Consumption store: the persistence gateway used by the energy processor.

Wraps the daily_consumption table behind a small async interface. Each
operation runs in its own session and commits on its own, so every bucket
upsert is an independent commit point. SQLAlchemy errors are re-raised as
PersistenceError.

Operations:
- max_watermark(device_id): MAX(last_processed_timestamp) for a device.
- get_bucket(date, device_id): One row by its natural key.
- insert_bucket(bucket): INSERT a new row.
- update_bucket(id, ...): UPDATE totals and watermark of an existing row.
- sum_totals(device_id, start, end): SUM of both tariffs over a date range.
- daily_rows(device_id, start, end, limit): Newest-first rows per date.

CHANGELOG:
- 2026-10-16: Add range queries for the reporting entry points (STORY-009)
- 2026-10-16: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import distinct, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from energy_monitor.db.models import DailyConsumption
from energy_monitor.errors import PersistenceError
from energy_monitor.models import DailyBucket, NewDailyBucket

logger = logging.getLogger(__name__)


class ConsumptionGateway(Protocol):
    """Storage operations the processor and reports depend on."""

    async def max_watermark(self, device_id: str) -> int | None: ...

    async def get_bucket(self, date: str, device_id: str) -> DailyBucket | None: ...

    async def insert_bucket(self, bucket: NewDailyBucket) -> DailyBucket: ...

    async def update_bucket(
        self,
        bucket_id: int,
        *,
        low_tariff_kwh: float,
        high_tariff_kwh: float,
        last_processed_timestamp: int,
        updated_at: datetime,
    ) -> None: ...

    async def sum_totals(
        self, device_id: str | None, start_date: str, end_date: str
    ) -> tuple[float, float]: ...

    async def daily_rows(
        self, device_id: str | None, start_date: str, end_date: str, limit: int
    ) -> list[dict]: ...


class ConsumptionStore:
    """SQLAlchemy implementation of :class:`ConsumptionGateway`.

    Args:
        session_factory: Async session factory bound to the target database.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise PersistenceError(f"{operation} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Processor operations
    # ------------------------------------------------------------------

    async def max_watermark(self, device_id: str) -> int | None:
        """Return the newest processed timestamp for *device_id*, if any."""
        async with self._session("max_watermark") as session:
            result = await session.execute(
                select(func.max(DailyConsumption.last_processed_timestamp)).where(
                    DailyConsumption.device_id == device_id
                )
            )
            value = result.scalar_one_or_none()
        return int(value) if value is not None else None

    async def get_bucket(self, date: str, device_id: str) -> DailyBucket | None:
        async with self._session("get_bucket") as session:
            result = await session.execute(
                select(DailyConsumption).where(
                    DailyConsumption.date == date,
                    DailyConsumption.device_id == device_id,
                )
            )
            row = result.scalar_one_or_none()
        return DailyBucket.model_validate(row) if row is not None else None

    async def insert_bucket(self, bucket: NewDailyBucket) -> DailyBucket:
        """Insert a new daily row.

        Raises:
            PersistenceError: On any database error, including a unique
                violation when the (date, device_id) row already exists.
        """
        async with self._session("insert_bucket") as session:
            now = datetime.now(tz=UTC)
            row = DailyConsumption(**bucket.model_dump(), created_at=now, updated_at=now)
            session.add(row)
            await session.commit()
            stored = DailyBucket.model_validate(row)
        logger.debug("Inserted bucket %s/%s (id=%d)", bucket.device_id, bucket.date, stored.id)
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
        """Overwrite the totals and watermark of an existing row.

        Raises:
            PersistenceError: If the row does not exist or the update fails.
        """
        async with self._session("update_bucket") as session:
            result = await session.execute(
                update(DailyConsumption)
                .where(DailyConsumption.id == bucket_id)
                .values(
                    low_tariff_kwh=low_tariff_kwh,
                    high_tariff_kwh=high_tariff_kwh,
                    last_processed_timestamp=last_processed_timestamp,
                    updated_at=updated_at,
                )
            )
            if result.rowcount == 0:
                await session.rollback()
                raise PersistenceError(f"update_bucket failed: no row with id {bucket_id}")
            await session.commit()

    # ------------------------------------------------------------------
    # Report queries
    # ------------------------------------------------------------------

    async def sum_totals(
        self,
        device_id: str | None,
        start_date: str,
        end_date: str,
    ) -> tuple[float, float]:
        """Return ``(total_low, total_high)`` for ``start <= date <= end``.

        A *device_id* of ``None`` sums over all devices.
        """
        stmt = select(
            func.coalesce(func.sum(DailyConsumption.low_tariff_kwh), 0.0),
            func.coalesce(func.sum(DailyConsumption.high_tariff_kwh), 0.0),
        ).where(
            DailyConsumption.date >= start_date,
            DailyConsumption.date <= end_date,
        )
        if device_id is not None:
            stmt = stmt.where(DailyConsumption.device_id == device_id)

        async with self._session("sum_totals") as session:
            result = await session.execute(stmt)
            total_low, total_high = result.one()
        return float(total_low), float(total_high)

    async def daily_rows(
        self,
        device_id: str | None,
        start_date: str,
        end_date: str,
        limit: int,
    ) -> list[dict]:
        """Return up to *limit* dates in range, newest first.

        For a single device each dict has ``date``, ``low``, ``high``. With
        ``device_id=None`` the tariffs are summed across devices per date
        and ``devices_count`` is added.
        """
        in_range = (
            DailyConsumption.date >= start_date,
            DailyConsumption.date <= end_date,
        )
        if device_id is not None:
            stmt = (
                select(
                    DailyConsumption.date.label("date"),
                    DailyConsumption.low_tariff_kwh.label("low"),
                    DailyConsumption.high_tariff_kwh.label("high"),
                )
                .where(DailyConsumption.device_id == device_id, *in_range)
                .order_by(DailyConsumption.date.desc())
                .limit(limit)
            )
        else:
            stmt = (
                select(
                    DailyConsumption.date.label("date"),
                    func.sum(DailyConsumption.low_tariff_kwh).label("low"),
                    func.sum(DailyConsumption.high_tariff_kwh).label("high"),
                    func.count(distinct(DailyConsumption.device_id)).label("devices_count"),
                )
                .where(*in_range)
                .group_by(DailyConsumption.date)
                .order_by(DailyConsumption.date.desc())
                .limit(limit)
            )

        async with self._session("daily_rows") as session:
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]
