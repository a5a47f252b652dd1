# tests/unit/test_keys.py

from datetime import datetime, timedelta, timezone

from uuid_archiver.keys import (
    archive_key,
    hours_before,
    shard_hour_prefix,
    shard_key,
    truncate_to_hour,
)

MOMENT = datetime(2024, 1, 2, 3, 4, 5, 678_901, tzinfo=timezone.utc)


def test_shard_key_has_millisecond_resolution():
    assert shard_key(MOMENT) == "shards/2024/01/02/03/04-05-678.csv"


def test_shard_key_appends_sanitised_token():
    key = shard_key(MOMENT, token="a1b2/../c3")
    assert key == "shards/2024/01/02/03/04-05-678-a1b2c3.csv"


def test_shard_key_ignores_empty_token():
    assert shard_key(MOMENT, token="///") == "shards/2024/01/02/03/04-05-678.csv"


def test_shard_key_uses_custom_prefix():
    assert shard_key(MOMENT, prefix="incoming").startswith("incoming/2024/01/02/03/")


def test_shard_key_converts_to_utc():
    local = MOMENT.astimezone(timezone(timedelta(hours=2)))
    assert shard_key(local) == shard_key(MOMENT)


def test_naive_datetimes_are_treated_as_utc():
    naive = MOMENT.replace(tzinfo=None)
    assert shard_key(naive) == shard_key(MOMENT)


def test_shard_hour_prefix_contains_every_shard_of_the_hour():
    prefix = shard_hour_prefix(MOMENT)
    assert prefix == "shards/2024/01/02/03/"
    assert shard_key(MOMENT).startswith(prefix)


def test_archive_key_is_truncated_to_the_hour():
    assert archive_key(MOMENT) == "archive/2024/01/02/03.csv"
    assert archive_key(MOMENT, prefix="cold") == "cold/2024/01/02/03.csv"


def test_truncate_and_hours_before():
    assert truncate_to_hour(MOMENT) == datetime(2024, 1, 2, 3, tzinfo=timezone.utc)
    assert hours_before(MOMENT, 4) == datetime(2024, 1, 1, 23, tzinfo=timezone.utc)
