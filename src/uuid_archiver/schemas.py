# src/uuid_archiver/schemas.py

import math
from typing import Annotated, Any, TypedDict

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, StrictStr

# --- Static Type Hinting (for mypy and IDEs) ---


class RecordDict(TypedDict):
    ts: int | float
    id_type: int | float
    id: str


# --- Runtime Validation (using Pydantic) ---


def _require_number(value: Any) -> Any:
    # bool is an int subclass, and numeric strings must not be coerced.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("must be a finite number")
    return value


def _normalise_number(value: int | float) -> int | float:
    # 100.0 and 100 describe the same event.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


Number = Annotated[
    int | float,
    BeforeValidator(_require_number),
    AfterValidator(_normalise_number),
]


class UuidRecord(BaseModel):
    """
    One identifier event: when it happened, what kind of identifier it is,
    and the identifier itself. Extra fields are ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    ts: Number
    id_type: Number
    id: StrictStr = Field(..., min_length=1)

    def as_dict(self) -> RecordDict:
        return {"ts": self.ts, "id_type": self.id_type, "id": self.id}
