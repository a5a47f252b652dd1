# src/uuid_archiver/ingestion.py

"""
Single-record ingestion.

Authenticates the caller with the pre-shared key, validates the record and
enqueues it. Success only acknowledges receipt: the record reaches a shard
when the queue consumer flushes it, and the archive on a later
consolidation run.
"""

import enum
import json
import logging
import secrets
from dataclasses import dataclass
from typing import Any

from .clients import QueueClient
from .exceptions import InvalidRecordError
from .validation import describe_errors, parse_record

logger = logging.getLogger(__name__)


class IngestStatus(enum.Enum):
    ACCEPTED = "accepted"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True, slots=True)
class IngestResult:
    status: IngestStatus
    message_id: str | None = None


def is_authorized(api_key: str | None, expected_key: str | None) -> bool:
    """Constant-time key comparison. An unset secret authorizes nobody."""
    if not expected_key or api_key is None:
        return False
    return secrets.compare_digest(api_key.encode("utf-8"), expected_key.encode("utf-8"))


def accept_record(
    api_key: str | None,
    body: str | bytes | None,
    *,
    expected_key: str | None,
    queue_client: QueueClient,
    queue_url: str,
) -> IngestResult:
    """
    Handles one inbound record. Nothing is enqueued unless the caller is
    authorized and the body is a valid record.

    Raises InvalidRecordError for a body that is not JSON or not a record.
    Queue failures propagate.
    """
    if not is_authorized(api_key, expected_key):
        logger.warning("Rejected ingestion request with a bad key.")
        return IngestResult(status=IngestStatus.FORBIDDEN)

    try:
        candidate: Any = json.loads(body or "")
    except ValueError as e:
        logger.info("Rejected ingestion request with a non-JSON body.")
        raise InvalidRecordError(
            [{"field": "body", "message": f"Invalid JSON: {e}"}]
        ) from e

    record = parse_record(candidate)
    if record is None:
        errors = describe_errors(candidate)
        logger.info("Rejected invalid record.", extra={"errors": errors})
        raise InvalidRecordError(errors)

    message_id = queue_client.send_json(queue_url, record.as_dict())
    logger.debug("Record enqueued", extra={"message_id": message_id})
    return IngestResult(status=IngestStatus.ACCEPTED, message_id=message_id)
