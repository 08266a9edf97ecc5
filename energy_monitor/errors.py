"""
Exception hierarchy for the energy monitor core.

Every error raised on purpose by the library derives from EnergyMonitorError
so callers (the CLI, an HTTP layer, a scheduler) can catch one type and
translate it into their own signal.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-002)
"""


class EnergyMonitorError(Exception):
    """Base class for all energy monitor errors."""


class AuthError(EnergyMonitorError):
    """The Tuya token endpoint refused to issue an access token."""


class RemoteError(EnergyMonitorError):
    """A Tuya API call failed or returned an unexpected payload."""


class PersistenceError(EnergyMonitorError):
    """A storage operation against the consumption table failed."""


class ValidationError(EnergyMonitorError, ValueError):
    """Caller-supplied input (typically a date range) is missing or invalid."""
