# src/uuid_archiver/shards.py

import logging
from datetime import datetime
from typing import Sequence

from .clients import S3Client
from .codec import CONTENT_TYPE, serialize_records
from .keys import DEFAULT_SHARD_PREFIX, shard_key
from .schemas import UuidRecord

logger = logging.getLogger(__name__)


def write_shard(
    s3_client: S3Client,
    bucket: str,
    records: Sequence[UuidRecord],
    now: datetime,
    *,
    prefix: str = DEFAULT_SHARD_PREFIX,
    token: str | None = None,
) -> str:
    """
    Writes *records* to a brand-new shard object and returns its key.

    Records must already be validated. Every call targets a fresh key, so
    there is no read-modify-write and concurrent writers never collide.
    Storage failures propagate to the caller.
    """
    key = shard_key(now, prefix=prefix, token=token)
    s3_client.put_text(bucket, key, serialize_records(records), CONTENT_TYPE)
    logger.info(
        "Shard written", extra={"bucket": bucket, "key": key, "records": len(records)}
    )
    return key
