"""
Command-line entry point for the energy monitor.

Intended to be invoked by an external scheduler (cron, systemd timer).
Subcommands:

- ``process``: run one ingestion pass for each configured (or given) device.
- ``totals``: print summed tariff totals for a date range as JSON.
- ``daily``: print a per-day breakdown for a date range as JSON.
- ``init-db``: create the daily_consumption table if it is missing.

Devices are processed one after another; a failure for one device is
logged and does not stop the others, but makes the exit code non-zero.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-16: Add totals and daily report subcommands (STORY-010)
- 2026-10-16: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from energy_monitor.db.session import create_engine, create_schema, create_session_factory
from energy_monitor.db.store import ConsumptionStore
from energy_monitor.errors import EnergyMonitorError
from energy_monitor.services.processor import EnergyProcessor
from energy_monitor.services.tariff import get_tariff_rules
from energy_monitor.services.tuya_client import TuyaClient

if TYPE_CHECKING:
    from energy_monitor.config import MonitorSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging on the root logger (stderr)."""

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_secret(value: str | None) -> str:
    """Return a short non-reversible fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def log_config_summary(settings: MonitorSettings) -> None:
    """Log the effective configuration, fingerprinting the Tuya secret."""
    logger.info(
        "Energy monitor starting with config: "
        "tuya_base_url=%s, tuya_client_id=%s, device_ids=%s, "
        "reference_timezone=%s, tariff_rules=%s, lookback_days=%s, "
        "fetch_size=%s, max_pages=%s, tuya_secret_masked=%s",
        settings.tuya_base_url,
        settings.tuya_client_id,
        settings.device_ids,
        settings.reference_timezone,
        settings.tariff_rules,
        settings.lookback_days,
        settings.fetch_size,
        settings.max_pages,
        _masked_secret(settings.tuya_secret),
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def process_devices(processor: EnergyProcessor, device_ids: list[str], force_start: int | None) -> int:
    """Run one ingestion pass per device; return the number of failures."""
    failures = 0
    for device_id in device_ids:
        try:
            status = await processor.process_energy_logs(device_id, force_start)
        except EnergyMonitorError:
            failures += 1
            logger.error("Processing failed for device %s", device_id, exc_info=True)
            continue
        logger.info("Device %s: %s", device_id, status)
    return failures


async def run_command(args: argparse.Namespace, settings: MonitorSettings) -> int:
    """Build components from *settings* and execute the parsed command.

    Returns:
        Process exit code.
    """
    engine = create_engine(settings.database_url)
    try:
        if args.command == "init-db":
            await create_schema(engine)
            logger.info("Schema created")
            return 0

        store = ConsumptionStore(create_session_factory(engine))
        async with TuyaClient(
            client_id=settings.tuya_client_id,
            secret=settings.tuya_secret,
            base_url=settings.tuya_base_url,
            timeout_s=settings.http_timeout_s,
        ) as client:
            processor = EnergyProcessor(
                store,
                client,
                get_tariff_rules(settings.tariff_rules, settings.reference_timezone),
                lookback_days=settings.lookback_days,
                fetch_size=settings.fetch_size,
                max_pages=settings.max_pages,
            )

            if args.command == "process":
                device_ids = args.device or settings.device_ids
                failures = await process_devices(processor, device_ids, args.force_start)
                return 1 if failures else 0

            try:
                if args.command == "totals":
                    report = await processor.get_consumption_totals(
                        args.device, args.start, args.end
                    )
                else:
                    report = await processor.get_daily_breakdown(
                        args.device, args.start, args.end, args.max_days
                    )
            except EnergyMonitorError:
                logger.error("Report query failed", exc_info=True)
                return 1
            print(report.model_dump_json(indent=2))
            return 0
    finally:
        await engine.dispose()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(
        prog="energy-monitor",
        description="Tuya energy log ingestion and tariff consumption reports",
    )
    p.add_argument("--debug", action="store_true", help="Enable DEBUG logging")
    sub = p.add_subparsers(dest="command", required=True)

    process = sub.add_parser("process", help="Fetch and merge new energy logs")
    process.add_argument(
        "--device", action="append",
        help="Device id (repeatable; defaults to TUYA_DEVICE_IDS)",
    )
    process.add_argument(
        "--force-start", type=int, default=None, dest="force_start",
        help="Epoch ms to fetch from; 0 reprocesses without duplicate filtering",
    )

    for name, help_text in (
        ("totals", "Print tariff totals for a date range"),
        ("daily", "Print a per-day breakdown for a date range"),
    ):
        report = sub.add_parser(name, help=help_text)
        report.add_argument("--start", required=True, help="Start date YYYY-MM-DD")
        report.add_argument("--end", required=True, help="End date YYYY-MM-DD")
        report.add_argument("--device", default=None, help="Device id (default: all devices)")
        if name == "daily":
            report.add_argument(
                "--max-days", type=int, default=30, dest="max_days",
                help="Maximum number of days (default 30)",
            )

    sub.add_parser("init-db", help="Create the daily_consumption table")
    return p.parse_args(argv)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main(argv: list[str] | None = None) -> int:
    """Async entrypoint: parse args, load config, run the command."""
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.INFO)

    from energy_monitor.config import MonitorSettings

    settings = MonitorSettings()
    log_config_summary(settings)
    return await run_command(args, settings)


def main() -> None:
    """Synchronous entrypoint for the energy-monitor console script."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
