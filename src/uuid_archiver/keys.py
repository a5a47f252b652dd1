# src/uuid_archiver/keys.py

"""
Object key layout for the shard and archive namespaces.

    shards/YYYY/MM/DD/HH/mm-ss-fff[-token].csv
    archive/YYYY/MM/DD/HH.csv

All timestamps are rendered in UTC; naive datetimes are taken to be UTC.
"""

import re
from datetime import datetime, timedelta, timezone

DEFAULT_SHARD_PREFIX = "shards"
DEFAULT_ARCHIVE_PREFIX = "archive"

_UNSAFE_TOKEN_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def truncate_to_hour(moment: datetime) -> datetime:
    return as_utc(moment).replace(minute=0, second=0, microsecond=0)


def hours_before(moment: datetime, hours: int) -> datetime:
    return truncate_to_hour(moment) - timedelta(hours=hours)


def shard_hour_prefix(hour: datetime, prefix: str = DEFAULT_SHARD_PREFIX) -> str:
    """Listing prefix for every shard written during *hour*."""
    return f"{prefix}/{as_utc(hour):%Y/%m/%d/%H}/"


def shard_key(
    now: datetime, prefix: str = DEFAULT_SHARD_PREFIX, token: str | None = None
) -> str:
    """
    Key for a shard flushed at *now*, down to the millisecond. The optional
    *token* (e.g. a request id) keeps simultaneous flushes apart.
    """
    moment = as_utc(now)
    name = f"{moment:%M-%S}-{moment.microsecond // 1000:03d}"
    safe_token = _UNSAFE_TOKEN_CHARS.sub("", token or "")
    if safe_token:
        name = f"{name}-{safe_token}"
    return f"{shard_hour_prefix(moment, prefix)}{name}.csv"


def archive_key(hour: datetime, prefix: str = DEFAULT_ARCHIVE_PREFIX) -> str:
    return f"{prefix}/{as_utc(hour):%Y/%m/%d/%H}.csv"
