"""
Energy monitor configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Tuya credentials, the database URL and the tariff/timezone selection all come
from environment variables or a .env file; nothing is hardcoded.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-001)

TODO:
- None
"""

import pytz
from pydantic import field_validator
from pydantic_settings import BaseSettings

from energy_monitor.services.tariff import TARIFF_RULES


class MonitorSettings(BaseSettings):
    """Energy monitor configuration.

    All values are loaded from environment variables. Required variables
    must be set; optional variables have sensible defaults.

    Attributes:
        tuya_client_id: Tuya cloud project access id.
        tuya_secret: Tuya cloud project access secret (never logged).
        tuya_base_url: Regional Tuya OpenAPI base URL (must be HTTPS).
        tuya_device_ids: Comma-separated ids of the metering devices.
        database_url: SQLAlchemy async database URL.
        reference_timezone: IANA zone used for tariff windows and day keys.
        tariff_rules: Key of the tariff rule set in TARIFF_RULES.
        lookback_days: Days fetched on the first run of a device.
        fetch_size: Target number of log entries per run (0 = no target).
        max_pages: Ceiling on paginated log requests per run.
        http_timeout_s: Timeout per Tuya HTTP request in seconds.
    """

    tuya_client_id: str
    tuya_secret: str
    tuya_base_url: str = "https://openapi.tuyaeu.com"
    tuya_device_ids: str
    database_url: str = "sqlite+aiosqlite:///./energy.db"
    reference_timezone: str = "Europe/Skopje"
    tariff_rules: str = "north_macedonia"
    lookback_days: int = 7
    fetch_size: int = 5000
    max_pages: int = 50
    http_timeout_s: float = 30.0

    @property
    def device_ids(self) -> list[str]:
        """Parsed, de-duplicated list of configured device ids."""
        ids: list[str] = []
        for raw in self.tuya_device_ids.split(","):
            device_id = raw.strip()
            if device_id and device_id not in ids:
                ids.append(device_id)
        return ids

    @field_validator("tuya_base_url")
    @classmethod
    def tuya_base_url_must_be_https(cls, v: str) -> str:
        """Reject plain-HTTP Tuya endpoints; signed requests carry credentials."""
        if not v.lower().startswith("https://"):
            raise ValueError(f"TUYA_BASE_URL must use HTTPS (got: '{v[:20]}...').")
        return v.rstrip("/")

    @field_validator("tuya_device_ids")
    @classmethod
    def tuya_device_ids_must_not_be_empty(cls, v: str) -> str:
        """Require at least one non-blank device id."""
        if not any(part.strip() for part in v.split(",")):
            raise ValueError("TUYA_DEVICE_IDS must contain at least one device id")
        return v

    @field_validator("reference_timezone")
    @classmethod
    def reference_timezone_must_exist(cls, v: str) -> str:
        """Validate the zone name against the tz database."""
        if v not in pytz.all_timezones_set:
            raise ValueError(f"REFERENCE_TIMEZONE '{v}' is not a known timezone")
        return v

    @field_validator("tariff_rules")
    @classmethod
    def tariff_rules_must_be_registered(cls, v: str) -> str:
        """Validate the tariff rule set name."""
        if v not in TARIFF_RULES:
            raise ValueError(
                f"TARIFF_RULES must be one of {sorted(TARIFF_RULES)} (got: '{v}')"
            )
        return v

    @field_validator("lookback_days")
    @classmethod
    def lookback_days_must_be_valid(cls, v: int) -> int:
        """Validate the first-run lookback is between 1 and 90 days."""
        if v < 1 or v > 90:
            raise ValueError("LOOKBACK_DAYS must be >= 1 and <= 90")
        return v

    @field_validator("fetch_size")
    @classmethod
    def fetch_size_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("FETCH_SIZE must be >= 0")
        return v

    @field_validator("max_pages")
    @classmethod
    def max_pages_must_be_valid(cls, v: int) -> int:
        """Validate the page ceiling is between 1 and 1000."""
        if v < 1 or v > 1000:
            raise ValueError("MAX_PAGES must be >= 1 and <= 1000")
        return v

    @field_validator("http_timeout_s")
    @classmethod
    def http_timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("HTTP_TIMEOUT_S must be > 0")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
