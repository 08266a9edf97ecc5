"""
Shared test fixtures for the energy monitor tests.

Provides environment isolation for MonitorSettings, an in-memory consumption
gateway and an in-memory SQLite-backed ConsumptionStore.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from energy_monitor.db.session import create_engine, create_schema, create_session_factory
from energy_monitor.db.store import ConsumptionStore
from tests.helpers import InMemoryStore

# All MonitorSettings environment variable names, used for cleanup.
_ALL_MONITOR_ENV_VARS = (
    "TUYA_CLIENT_ID",
    "TUYA_SECRET",
    "TUYA_BASE_URL",
    "TUYA_DEVICE_IDS",
    "DATABASE_URL",
    "REFERENCE_TIMEZONE",
    "TARIFF_RULES",
    "LOOKBACK_DAYS",
    "FETCH_SIZE",
    "MAX_PAGES",
    "HTTP_TIMEOUT_S",
)


@pytest.fixture(autouse=True)
def _clean_monitor_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all monitor env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_MONITOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones)."""
    env = {
        "TUYA_CLIENT_ID": "client-abc",
        "TUYA_SECRET": "secret-xyz",
        "TUYA_DEVICE_IDS": "bf-device-1",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest_asyncio.fixture()
async def sqlite_store() -> AsyncGenerator[ConsumptionStore, None]:
    """ConsumptionStore over a fresh in-memory SQLite database."""
    engine = create_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await create_schema(engine)
    try:
        yield ConsumptionStore(create_session_factory(engine))
    finally:
        await engine.dispose()
