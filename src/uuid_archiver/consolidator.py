# src/uuid_archiver/consolidator.py

"""
Hourly consolidation of shards into archive files.

Each invocation walks a bounded window of past hours, oldest first, and
consolidates the first hour that still has shards:

    SELECT_WINDOW -> LIST_SHARDS -> SKIP (no shards, next hour)
                                 -> LOAD_EXISTING -> MERGE -> PERSIST
                                    -> DELETE_SHARDS -> STOP

The merge is seeded with the hour's existing archive, so re-running an hour
never duplicates rows. Shards are deleted only after the archive write has
succeeded; a failure anywhere before that leaves every shard in place for
the next run, which converges to the same archive.

The current hour is never consolidated. At most one invocation may run at a
time: nothing here locks the bucket.
"""

import enum
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Iterator

from .clients import S3Client
from .codec import CONTENT_TYPE, parse_rows, serialize_records
from .config import AppConfig
from .exceptions import ConsolidationError, S3ObjectNotFoundError, UuidArchiverError
from .keys import (
    DEFAULT_ARCHIVE_PREFIX,
    DEFAULT_SHARD_PREFIX,
    archive_key,
    hours_before,
    shard_hour_prefix,
)
from .schemas import UuidRecord
from .validation import dedupe_key, filter_valid, parse_record

logger = logging.getLogger(__name__)

SHARD_SUFFIX = ".csv"


class ConsolidationState(enum.Enum):
    SELECT_WINDOW = "select_window"
    LIST_SHARDS = "list_shards"
    SKIP = "skip"
    LOAD_EXISTING = "load_existing"
    MERGE = "merge"
    PERSIST = "persist"
    DELETE_SHARDS = "delete_shards"
    STOP = "stop"


@dataclass(slots=True)
class ConsolidationResult:
    """What a single invocation did. `hour` is None when no hour had shards."""

    hour: datetime | None = None
    archive_key: str | None = None
    shard_keys: list[str] = field(default_factory=list)
    deleted_keys: list[str] = field(default_factory=list)
    existing_rows: int = 0
    archive_rows: int = 0
    states: list[ConsolidationState] = field(default_factory=list)

    @property
    def processed(self) -> bool:
        return self.hour is not None

    @property
    def new_rows(self) -> int:
        return self.archive_rows - self.existing_rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "hour": self.hour.isoformat() if self.hour else None,
            "archive_key": self.archive_key,
            "shards": len(self.shard_keys),
            "deleted": len(self.deleted_keys),
            "existing_rows": self.existing_rows,
            "archive_rows": self.archive_rows,
            "new_rows": self.new_rows,
            "states": [state.value for state in self.states],
        }


def select_window(now: datetime, lookback_hours: int) -> list[datetime]:
    """
    Candidate hours for a run at *now*, oldest first: `now - W` up to
    `now - 1`, truncated to the hour. The in-progress hour is excluded.
    """
    if lookback_hours <= 0:
        raise ValueError("lookback_hours must be positive")
    return [hours_before(now, offset) for offset in range(lookback_hours, 0, -1)]


class RecordAccumulator:
    """
    Dedupe set plus accumulator for one hour's merge. Not thread-safe:
    callers feed it from a single thread.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()
        self._records: list[UuidRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def add(self, candidate: Any) -> bool:
        """Adds *candidate* if it is a valid record not seen before."""
        record = parse_record(candidate)
        if record is None:
            return False
        key = dedupe_key(record)
        if key in self._seen:
            return False
        self._seen.add(key)
        self._records.append(record)
        return True

    def extend(self, candidates: Iterable[Any]) -> int:
        """Adds every candidate in order and returns how many were new."""
        return sum(1 for candidate in candidates if self.add(candidate))

    def sorted_records(self) -> list[UuidRecord]:
        # sorted() is stable, so equal timestamps keep their merge order.
        return sorted(self._records, key=lambda record: record.ts)


def merge_records(
    existing_rows: Iterable[Any], shard_batches: Iterable[Iterable[Any]]
) -> list[UuidRecord]:
    """
    Deduplicated, ts-sorted union of an archive's rows and any number of
    shards' rows. Invalid rows are dropped; the first occurrence of a
    duplicate wins, archive rows first.
    """
    accumulator = RecordAccumulator()
    accumulator.extend(existing_rows)
    for rows in shard_batches:
        accumulator.extend(rows)
    return accumulator.sorted_records()


class Consolidator:
    """Runs the consolidation state machine against one bucket."""

    def __init__(
        self,
        s3_client: S3Client,
        bucket: str,
        *,
        shard_prefix: str = DEFAULT_SHARD_PREFIX,
        archive_prefix: str = DEFAULT_ARCHIVE_PREFIX,
        lookback_hours: int = 2,
        fetch_concurrency: int = 8,
    ):
        if lookback_hours <= 0:
            raise ValueError("lookback_hours must be positive")
        if fetch_concurrency <= 0:
            raise ValueError("fetch_concurrency must be positive")
        self._s3 = s3_client
        self.bucket = bucket
        self.shard_prefix = shard_prefix
        self.archive_prefix = archive_prefix
        self.lookback_hours = lookback_hours
        self.fetch_concurrency = fetch_concurrency

    @classmethod
    def from_config(
        cls, s3_client: S3Client, config: AppConfig, lookback_hours: int | None = None
    ) -> "Consolidator":
        return cls(
            s3_client,
            config.bucket_name,
            shard_prefix=config.shard_prefix,
            archive_prefix=config.archive_prefix,
            lookback_hours=lookback_hours or config.lookback_hours,
            fetch_concurrency=config.fetch_concurrency,
        )

    # --- Listing ---

    def _list_shards(self, hour: datetime) -> list[str]:
        keys = self._s3.list_keys(self.bucket, shard_hour_prefix(hour, self.shard_prefix))
        shard_keys = [key for key in keys if key.endswith(SHARD_SUFFIX)]
        if len(shard_keys) != len(keys):
            logger.warning(
                "Ignoring non-shard objects in shard namespace",
                extra={"hour": hour.isoformat(), "ignored": len(keys) - len(shard_keys)},
            )
        return shard_keys

    def pending_hours(self, now: datetime) -> list[tuple[datetime, int]]:
        """Shard counts for every hour in the window, oldest first."""
        return [
            (hour, len(self._list_shards(hour)))
            for hour in select_window(now, self.lookback_hours)
        ]

    # --- State machine ---

    def run(self, now: datetime) -> ConsolidationResult:
        """
        Consolidates the oldest hour in the window that has shards, then
        stops. Storage failures propagate; shards of an hour whose archive
        write failed are left untouched.
        """
        result = ConsolidationResult(states=[ConsolidationState.SELECT_WINDOW])
        window = select_window(now, self.lookback_hours)
        logger.info(
            "Starting consolidation run",
            extra={
                "bucket": self.bucket,
                "window": [hour.isoformat() for hour in window],
            },
        )

        for hour in window:
            result.states.append(ConsolidationState.LIST_SHARDS)
            shard_keys = self._list_shards(hour)
            if not shard_keys:
                result.states.append(ConsolidationState.SKIP)
                logger.debug("No shards for hour", extra={"hour": hour.isoformat()})
                continue

            self._consolidate_hour(hour, shard_keys, result)
            break
        else:
            logger.info("No shards pending in the consolidation window.")

        result.states.append(ConsolidationState.STOP)
        return result

    def drain(self, now: datetime, max_runs: int | None = None) -> list[ConsolidationResult]:
        """
        Repeats `run` until no hour in the window has shards, or *max_runs*
        hours have been processed. Intended for operator backfills.
        """
        limit = max_runs if max_runs is not None else self.lookback_hours
        results: list[ConsolidationResult] = []
        while len(results) < limit:
            result = self.run(now)
            if not result.processed:
                break
            results.append(result)
        return results

    def _consolidate_hour(
        self, hour: datetime, shard_keys: list[str], result: ConsolidationResult
    ) -> None:
        target_key = archive_key(hour, self.archive_prefix)
        result.hour = hour
        result.archive_key = target_key
        result.shard_keys = list(shard_keys)
        log_extra = {"hour": hour.isoformat(), "archive_key": target_key}
        logger.info(
            "Consolidating hour", extra={**log_extra, "shards": len(shard_keys)}
        )

        try:
            # LOAD_EXISTING: seed from whatever earlier runs already merged.
            result.states.append(ConsolidationState.LOAD_EXISTING)
            accumulator = RecordAccumulator()
            existing_text = self._s3.get_text_if_exists(self.bucket, target_key)
            if existing_text is not None:
                existing_rows = parse_rows(existing_text)
                result.existing_rows = accumulator.extend(existing_rows)
                if result.existing_rows != len(existing_rows):
                    logger.warning(
                        "Dropped invalid or duplicate rows from existing archive",
                        extra={
                            **log_extra,
                            "dropped": len(existing_rows) - result.existing_rows,
                        },
                    )

            # MERGE: fetches fan out, inserts stay on this thread.
            result.states.append(ConsolidationState.MERGE)
            merged_keys: list[str] = []
            for key, rows in self._fetch_shards(shard_keys):
                if rows is None:
                    continue
                added = accumulator.extend(rows)
                merged_keys.append(key)
                logger.debug(
                    "Merged shard",
                    extra={"key": key, "rows": len(rows), "new_rows": added},
                )
            if not merged_keys:
                logger.warning(
                    "No listed shard could be read; leaving archive untouched",
                    extra={**log_extra, "shards": len(shard_keys)},
                )
                result.archive_rows = result.existing_rows
                return
            merged = accumulator.sorted_records()

            # PERSIST: one put replaces the whole archive.
            result.states.append(ConsolidationState.PERSIST)
            final_records = filter_valid(record.as_dict() for record in merged)
            self._s3.put_text(
                self.bucket, target_key, serialize_records(final_records), CONTENT_TYPE
            )
            result.archive_rows = len(final_records)

            # DELETE_SHARDS: only what was actually read into the archive.
            result.states.append(ConsolidationState.DELETE_SHARDS)
            self._s3.delete_keys(self.bucket, merged_keys)
            result.deleted_keys = merged_keys

        except UuidArchiverError:
            raise
        except Exception as e:
            raise ConsolidationError(
                hour.isoformat(), str(e), context={"archive_key": target_key}
            ) from e

        logger.info(
            "Hour consolidated",
            extra={
                **log_extra,
                "shards": len(shard_keys),
                "deleted": len(result.deleted_keys),
                "existing_rows": result.existing_rows,
                "archive_rows": result.archive_rows,
            },
        )

    def _fetch_rows(self, key: str) -> tuple[str, list[dict[str, Any]] | None]:
        try:
            return key, parse_rows(self._s3.get_text(self.bucket, key))
        except S3ObjectNotFoundError:
            # Listed but not readable yet: leave it for the next run.
            logger.warning("Listed shard could not be read; skipping", extra={"key": key})
            return key, None

    def _fetch_shards(
        self, shard_keys: list[str]
    ) -> Iterator[tuple[str, list[dict[str, Any]] | None]]:
        """Fetches shards concurrently and yields them in listing order."""
        workers = max(1, min(self.fetch_concurrency, len(shard_keys)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            yield from pool.map(self._fetch_rows, shard_keys)
