# src/uuid_archiver/validation.py

"""
Record validation and identity.

Every stage that touches records (endpoint, consumer, consolidator) goes
through these functions, so invalid data is dropped wherever it is first
seen and duplicates are detected with one shared notion of identity.
"""

import json
from typing import Any, Iterable

import pydantic

from .schemas import UuidRecord


def parse_record(candidate: Any) -> UuidRecord | None:
    """Returns the validated, normalised record, or None if *candidate* is not one."""
    try:
        return UuidRecord.model_validate(candidate)
    except pydantic.ValidationError:
        return None


def is_valid(candidate: Any) -> bool:
    """True iff *candidate* has a non-empty string `id` and numeric `ts` and `id_type`."""
    return parse_record(candidate) is not None


def describe_errors(candidate: Any) -> list[dict[str, str]]:
    """
    Human-readable validation errors for *candidate*; empty when it is valid.
    Used by the ingestion endpoint to explain a rejection.
    """
    try:
        UuidRecord.model_validate(candidate)
    except pydantic.ValidationError as e:
        return [
            {
                "field": ".".join(str(part) for part in err["loc"]) or "record",
                "message": err["msg"],
            }
            for err in e.errors(include_url=False)
        ]
    return []


def dedupe_key(record: UuidRecord) -> str:
    """
    Composite identity of a record.

    Encoded as a compact JSON array, so an `id` containing separators,
    quotes or newlines can never make two different triples collide.
    """
    return json.dumps(
        [record.ts, record.id_type, record.id],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def filter_valid(candidates: Iterable[Any]) -> list[UuidRecord]:
    """Validates every candidate, keeping the valid ones in their original order."""
    valid: list[UuidRecord] = []
    for candidate in candidates:
        record = parse_record(candidate)
        if record is not None:
            valid.append(record)
    return valid
