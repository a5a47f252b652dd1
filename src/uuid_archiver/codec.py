# src/uuid_archiver/codec.py

"""
CSV encoding for shard and archive files.

Both file kinds share one layout: UTF-8 text, a `ts,id_type,id` header and
one row per record. Parsing is deliberately lenient: it turns numeric columns
back into numbers where it can and leaves everything else as found, so the
validator (not the parser) decides which rows survive.
"""

import csv
import io
import logging
import re
from typing import Any, Iterable

from .schemas import UuidRecord

COLUMNS = ("ts", "id_type", "id")
CONTENT_TYPE = "text/csv"
_NUMERIC_COLUMNS = ("ts", "id_type")

# Numbers exactly as serialize_records writes them: no whitespace,
# underscores, signs other than "-", or nan/inf.
_INT_PATTERN = re.compile(r"-?[0-9]+")
_FLOAT_PATTERN = re.compile(r"-?([0-9]+\.[0-9]*|\.[0-9]+|[0-9]+)([eE][-+]?[0-9]+)?")

# Ids have no length limit, so neither may a cell.
_FIELD_SIZE_LIMIT = 2**31 - 1

logger = logging.getLogger(__name__)


def serialize_records(records: Iterable[UuidRecord]) -> str:
    """Renders records as CSV with a header row and a stable column order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(COLUMNS)
    for record in records:
        writer.writerow((record.ts, record.id_type, record.id))
    return buffer.getvalue()


def _coerce_number(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        if _INT_PATTERN.fullmatch(value):
            return int(value)
        if _FLOAT_PATTERN.fullmatch(value):
            return float(value)
    except ValueError:
        # int() refuses digit strings past sys.get_int_max_str_digits().
        pass
    return value


def parse_rows(text: str) -> list[dict[str, Any]]:
    """
    Parses CSV text into raw row dictionaries keyed by the header.

    The rows are candidates, not records: missing cells come back as None and
    unparseable numbers stay strings, both of which fail validation later.
    Lines the CSV reader itself rejects are skipped with a warning.
    """
    if csv.field_size_limit() < _FIELD_SIZE_LIMIT:
        csv.field_size_limit(_FIELD_SIZE_LIMIT)
    if text.startswith("\ufeff"):
        text = text[1:]
    reader = csv.DictReader(io.StringIO(text, newline=""), restkey="_extra")
    rows: list[dict[str, Any]] = []
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            logger.warning(
                "Skipping unreadable CSV line",
                extra={"line": reader.line_num, "error": str(e)},
            )
            continue
        for column in _NUMERIC_COLUMNS:
            row[column] = _coerce_number(row.get(column))
        rows.append(row)
    return rows
