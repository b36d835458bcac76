"""Shared constants for vestry."""

DEFAULT_TIMEZONE = "Europe/Moscow"
DEFAULT_GRACE_MINUTES = 15

# Fields inside a session's ``data`` bag that are revived to date/datetime on read.
DATE_FIELDS = ("date", "date_start", "date_end")

SCHEMA_VERSION = 1

# Transport callback payload limit, in bytes.
MAX_CALLBACK_BYTES = 64

# Sentinel choice that diverts a multi-select into free-text entry.
OTHER = "other"

SCHEDULER_KIND = "scheduler"
