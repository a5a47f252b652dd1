# tests/unit/test_validation.py

import json

import pytest

from uuid_archiver.schemas import UuidRecord
from uuid_archiver.validation import (
    dedupe_key,
    describe_errors,
    filter_valid,
    is_valid,
    parse_record,
)


class TestIsValid:
    """Truth table for the record predicate."""

    @pytest.mark.parametrize(
        "candidate",
        [
            {"ts": 1714560000000, "id_type": 1, "id": "abc"},
            {"ts": 0, "id_type": 0, "id": "x"},
            {"ts": 1.5, "id_type": 2, "id": "x"},
            {"ts": -5, "id_type": -1, "id": "x"},
            {"ts": 100, "id_type": 1, "id": "x", "extra": "ignored"},
            {"ts": 100, "id_type": 1, "id": "has,comma and \"quotes\""},
        ],
    )
    def test_well_formed_records_are_valid(self, candidate):
        assert is_valid(candidate) is True

    @pytest.mark.parametrize(
        "candidate",
        [
            {"id_type": 1, "id": "x"},
            {"ts": 100, "id": "x"},
            {"ts": 100, "id_type": 1},
            {"ts": 100, "id_type": 1, "id": ""},
            {"ts": 100, "id_type": 1, "id": 42},
            {"ts": 100, "id_type": 1, "id": None},
            {"ts": "100", "id_type": 1, "id": "x"},
            {"ts": 100, "id_type": "1", "id": "x"},
            {"ts": True, "id_type": 1, "id": "x"},
            {"ts": 100, "id_type": False, "id": "x"},
            {"ts": None, "id_type": 1, "id": "x"},
            {"ts": float("nan"), "id_type": 1, "id": "x"},
            {"ts": float("inf"), "id_type": 1, "id": "x"},
        ],
    )
    def test_malformed_records_are_invalid(self, candidate):
        assert is_valid(candidate) is False

    @pytest.mark.parametrize("candidate", [None, "x", 42, [], [100, 1, "x"]])
    def test_non_mappings_are_invalid(self, candidate):
        assert is_valid(candidate) is False


def test_parse_record_normalises_integral_floats():
    record = parse_record({"ts": 100.0, "id_type": 1.0, "id": "x"})

    assert record is not None
    assert record.ts == 100 and isinstance(record.ts, int)
    assert record.id_type == 1 and isinstance(record.id_type, int)


def test_parse_record_keeps_fractional_floats():
    record = parse_record({"ts": 100.25, "id_type": 1, "id": "x"})
    assert record is not None
    assert record.ts == 100.25


def test_parse_record_returns_none_for_invalid():
    assert parse_record({"ts": 100, "id_type": 1, "id": ""}) is None


def test_describe_errors_names_the_failing_fields():
    errors = describe_errors({"ts": "soon", "id": ""})

    fields = {error["field"] for error in errors}
    assert fields == {"ts", "id_type", "id"}
    assert all(error["message"] for error in errors)


def test_describe_errors_for_a_non_object():
    errors = describe_errors(["not", "a", "record"])
    assert errors and errors[0]["field"] == "record"


def test_describe_errors_is_empty_for_a_valid_record():
    assert describe_errors({"ts": 1, "id_type": 1, "id": "x"}) == []


def test_filter_valid_keeps_order_and_drops_invalid():
    candidates = [
        {"ts": 3, "id_type": 1, "id": "c"},
        {"ts": 1, "id_type": 1, "id": ""},
        "garbage",
        {"ts": 2, "id_type": 1, "id": "b"},
    ]

    records = filter_valid(candidates)

    assert [r.id for r in records] == ["c", "b"]


class TestDedupeKey:
    def test_equal_triples_produce_equal_keys(self):
        a = UuidRecord(ts=100, id_type=1, id="x")
        b = UuidRecord.model_validate({"ts": 100.0, "id_type": 1, "id": "x", "other": 1})
        assert dedupe_key(a) == dedupe_key(b)

    @pytest.mark.parametrize(
        "other",
        [
            {"ts": 101, "id_type": 1, "id": "x"},
            {"ts": 100, "id_type": 2, "id": "x"},
            {"ts": 100, "id_type": 1, "id": "y"},
        ],
    )
    def test_any_differing_field_changes_the_key(self, other):
        base = UuidRecord(ts=100, id_type=1, id="x")
        assert dedupe_key(base) != dedupe_key(UuidRecord.model_validate(other))

    @pytest.mark.parametrize(
        "left, right",
        [
            ({"ts": 1, "id_type": 2, "id": "3-4"}, {"ts": 1, "id_type": 2, "id": "3"}),
            ({"ts": 1, "id_type": 2, "id": '","'}, {"ts": 1, "id_type": 2, "id": ","}),
            ({"ts": 1, "id_type": 2, "id": 'x",3,"y'}, {"ts": 1, "id_type": 2, "id": "x"}),
            ({"ts": 1, "id_type": 2, "id": "x\\"}, {"ts": 1, "id_type": 2, "id": "x"}),
        ],
    )
    def test_separators_in_id_do_not_collide(self, left, right):
        assert dedupe_key(UuidRecord.model_validate(left)) != dedupe_key(
            UuidRecord.model_validate(right)
        )

    def test_key_decodes_back_to_the_triple(self):
        record = UuidRecord(ts=5, id_type=3, id='we"ird,\nid')
        assert json.loads(dedupe_key(record)) == [5, 3, 'we"ird,\nid']
