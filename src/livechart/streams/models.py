from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from livechart.timing.epochs import to_finite

PRED_BPS_KEY = re.compile(r"^pred_bps_(\d+)$", re.IGNORECASE)


@dataclass
class StreamRow:
    """One timestamped row of a stream.

    ``fields`` is the row as delivered (plus any derived ``pred_bps_<h>``
    fields); ``predictions`` maps horizon to basis-point value and is built
    once at ingestion.
    """

    epoch_ms: int
    fields: dict[str, Any]
    predictions: dict[int, float] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def prediction(self, horizon: int) -> Optional[float]:
        return self.predictions.get(horizon)

    @classmethod
    def from_fields(cls, epoch_ms: int, fields: dict[str, Any]) -> StreamRow:
        if fields.get("epoch") is None:
            fields["epoch"] = epoch_ms
        predictions: dict[int, float] = {}
        for key, value in fields.items():
            match = PRED_BPS_KEY.match(key)
            if match is None:
                continue
            number = to_finite(value)
            if number is not None:
                predictions[int(match.group(1))] = number
        return cls(epoch_ms=epoch_ms, fields=fields, predictions=predictions)


class FeedPayload(BaseModel):
    """Body of any of the four feed endpoints.

    Validation is lenient: a missing or non-list ``rows`` becomes empty,
    non-numeric horizons are dropped and an unusable ``max_epoch_ms`` becomes
    None. Individual rows are validated later, at ingestion.
    """

    rows: list[Any] = Field(default_factory=list)
    horizons: Optional[list[int]] = None
    unit: str = ""
    max_epoch_ms: Optional[float] = None

    @field_validator("rows", mode="before")
    @classmethod
    def _rows_as_list(cls, value: Any) -> list[Any]:
        return value if isinstance(value, list) else []

    @field_validator("horizons", mode="before")
    @classmethod
    def _numeric_horizons(cls, value: Any) -> Optional[list[int]]:
        if not isinstance(value, list):
            return None
        horizons = []
        for item in value:
            number = to_finite(item)
            if number is not None:
                horizons.append(int(number))
        return horizons or None

    @field_validator("unit", mode="before")
    @classmethod
    def _unit_as_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("max_epoch_ms", mode="before")
    @classmethod
    def _finite_max(cls, value: Any) -> Optional[float]:
        number = to_finite(value)
        if number is None or number <= 0:
            return None
        return number
