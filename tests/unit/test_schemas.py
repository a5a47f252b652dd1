# tests/unit/test_schemas.py

import pydantic
import pytest

from uuid_archiver.schemas import UuidRecord


class TestUuidRecord:
    """Test suite for the UuidRecord Pydantic model."""

    def test_valid_record_is_parsed(self):
        record = UuidRecord.model_validate({"ts": 1714560000000, "id_type": 3, "id": "abc"})

        assert record.ts == 1714560000000
        assert record.id_type == 3
        assert record.id == "abc"
        assert record.as_dict() == {"ts": 1714560000000, "id_type": 3, "id": "abc"}

    def test_extra_fields_are_ignored(self):
        record = UuidRecord.model_validate(
            {"ts": 1, "id_type": 1, "id": "x", "source": "mobile"}
        )
        assert "source" not in record.model_dump()

    def test_records_are_frozen_and_hashable(self):
        record = UuidRecord(ts=1, id_type=1, id="x")

        with pytest.raises(pydantic.ValidationError):
            record.id = "y"
        assert len({record, UuidRecord(ts=1, id_type=1, id="x")}) == 1

    def test_numeric_strings_are_not_coerced(self):
        with pytest.raises(pydantic.ValidationError) as exc_info:
            UuidRecord.model_validate({"ts": "1", "id_type": "2", "id": "x"})

        error_locations = [e["loc"] for e in exc_info.value.errors()]
        assert ("ts",) in error_locations
        assert ("id_type",) in error_locations

    def test_id_must_be_a_non_empty_string(self):
        with pytest.raises(pydantic.ValidationError) as exc_info:
            UuidRecord.model_validate({"ts": 1, "id_type": 1, "id": ""})

        assert exc_info.value.errors()[0]["loc"] == ("id",)
