from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Literal, Mapping

from .exceptions import InvalidStockKey, UnknownCounterField

CounterField = Literal["runnable", "non_runnable"]

COUNTER_FIELDS: tuple[str, ...] = ("runnable", "non_runnable")

# Field names of the stored document, shared with existing DocketApp data.
_WIRE_FIELDS = {"runnable": "canRun", "non_runnable": "cantRun"}


class Origin(str, enum.Enum):
    """Where the most recent change to the counter map came from."""

    none = "NONE"
    local = "LOCAL"
    remote = "REMOTE"


class SyncStatus(str, enum.Enum):
    idle = "IDLE"
    syncing = "SYNCING"
    error = "ERROR"


@dataclass(frozen=True)
class StockCounter:
    """
    Pack counts for one stock line.

    - runnable: packs that can go through the machinery as-is ("can run")
    - non_runnable: packs that need handling first ("can't run" / racking)

    Both values are never negative.
    """

    runnable: int = 0
    non_runnable: int = 0

    @property
    def total(self) -> int:
        return self.runnable + self.non_runnable

    def incremented(self, field: CounterField) -> StockCounter:
        _check_field(field)
        return replace(self, **{field: getattr(self, field) + 1})

    def decremented(self, field: CounterField) -> StockCounter:
        _check_field(field)
        return replace(self, **{field: max(0, getattr(self, field) - 1)})

    def to_dict(self) -> dict[str, int]:
        return {_WIRE_FIELDS[f]: getattr(self, f) for f in COUNTER_FIELDS}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StockCounter:
        """
        Decode one stored record. Missing fields read as 0 and negative
        values are clamped so the non-negative invariant holds for data
        written by any client.
        """
        values = {
            f: max(0, int(data.get(_WIRE_FIELDS[f], 0) or 0)) for f in COUNTER_FIELDS
        }
        return cls(**values)


def _check_field(field: str) -> None:
    if field not in COUNTER_FIELDS:
        raise UnknownCounterField(
            f"timber_tally: unknown counter field {field!r}. "
            f"Available: {list(COUNTER_FIELDS)}"
        )


def check_key(key: str) -> None:
    if not isinstance(key, str) or not key.strip():
        raise InvalidStockKey(f"timber_tally: stock key must be a non-empty string, got {key!r}")


def encode_counters(counters: Mapping[str, StockCounter]) -> dict[str, dict[str, int]]:
    """Convert a counter map into its JSON-serializable stored form."""
    return {key: counter.to_dict() for key, counter in counters.items()}


def decode_counters(data: Mapping[str, Any] | None) -> dict[str, StockCounter]:
    """Inverse of `encode_counters`; ``None`` decodes to an empty map."""
    if not data:
        return {}
    return {str(key): StockCounter.from_dict(value or {}) for key, value in data.items()}
