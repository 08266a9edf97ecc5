"""
Tuya energy monitor package.

Pulls energy-meter event logs from the Tuya OpenAPI, classifies each reading
into a low/high tariff by local wall-clock time, and folds the readings into
per-day, per-device totals stored in a SQL database.

CHANGELOG:
- 2026-10-16: Initial creation (STORY-001)

TODO:
- None
"""
