"""Shared constants for empath."""

APP_NAME = "empath"
DB_FILE = "state.sqlite3"
UNREADABLE_TABLE = "legacy_unreadable"
LEGACY_EVENT_TABLES = {
    "empath": "time",
    "log": "at",
}
HALF_LIFE_DAYS = 30.0
SECONDS_PER_DAY = 86400.0
BUSY_TIMEOUT_SECONDS = 30
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
