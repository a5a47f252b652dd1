# src/uuid_archiver/consumer.py

"""
Queue delivery processing.

A delivery batch becomes at most one shard. Nothing is retried or buffered
here: if the shard write fails the exception escapes, and the queue
redelivers the whole batch.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from .clients import S3Client
from .codec import serialize_records
from .keys import DEFAULT_SHARD_PREFIX
from .shards import write_shard
from .validation import filter_valid

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchOutcome:
    received: int
    accepted: int
    shard_key: str | None

    @property
    def rejected(self) -> int:
        return self.received - self.accepted


def process_delivery_batch(
    candidates: Sequence[Any],
    *,
    s3_client: S3Client,
    bucket: str,
    now: datetime,
    shard_prefix: str = DEFAULT_SHARD_PREFIX,
    token: str | None = None,
) -> BatchOutcome:
    """Filters a delivery batch down to valid records and flushes them as one shard."""
    records = filter_valid(candidates)
    rejected = len(candidates) - len(records)
    if rejected:
        logger.warning(
            "Dropped invalid records from delivery batch",
            extra={"received": len(candidates), "rejected": rejected},
        )

    if not records:
        logger.info("No valid records in delivery batch; nothing to write.")
        return BatchOutcome(received=len(candidates), accepted=0, shard_key=None)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Delivery batch", extra={"csv": serialize_records(records)})

    key = write_shard(
        s3_client, bucket, records, now, prefix=shard_prefix, token=token
    )
    return BatchOutcome(received=len(candidates), accepted=len(records), shard_key=key)
