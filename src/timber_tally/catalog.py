from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Mapping

from .counters import StockCounter
from .keys import make_stock_key, sort_lengths

STANDARD_LENGTHS = ("2.4m", "3m", "3.6m", "4.2m", "4.8m", "5.4m", "6m")

# treatment -> size -> lengths, in the order the stock sheet shows them
TIMBER_SIZES: dict[str, dict[str, tuple[str, ...]]] = {
    "untreated": {
        "90x45mm": STANDARD_LENGTHS,
        "90x35mm": STANDARD_LENGTHS,
        "70x45mm": STANDARD_LENGTHS,
        "70x35mm": STANDARD_LENGTHS,
    },
    "treated": {
        "240x45mm": STANDARD_LENGTHS,
        "190x45mm": STANDARD_LENGTHS,
        "190x35mm": STANDARD_LENGTHS,
        "140x45mm": STANDARD_LENGTHS,
        "140x35mm": STANDARD_LENGTHS,
        "90x45mm": STANDARD_LENGTHS,
        "90x35mm": STANDARD_LENGTHS,
        "70x45mm": STANDARD_LENGTHS,
        "70x35mm": STANDARD_LENGTHS,
        "CCA Sawn": STANDARD_LENGTHS,
    },
}

_EMPTY = StockCounter()


@dataclass(frozen=True)
class StockListItem:
    """One printable row of the stock list."""

    treatment: str
    size: str
    length: str
    runnable: int
    non_runnable: int

    @property
    def total(self) -> int:
        return self.runnable + self.non_runnable


def iter_catalog(
    sizes: Mapping[str, Mapping[str, tuple[str, ...]]] | None = None,
) -> Iterator[tuple[str, str, str]]:
    """
    Yield ``(treatment, size, length)`` for every line of the catalog,
    lengths shortest first within each size.
    """
    for treatment, by_size in (sizes or TIMBER_SIZES).items():
        for size, lengths in by_size.items():
            for length in sort_lengths(lengths):
                yield treatment, size, length


def stock_totals(counters: Mapping[str, StockCounter]) -> StockCounter:
    """Sum of every counter in the map, catalogued or not."""
    return StockCounter(
        runnable=sum(c.runnable for c in counters.values()),
        non_runnable=sum(c.non_runnable for c in counters.values()),
    )


def size_totals(
    counters: Mapping[str, StockCounter],
    treatment: str,
    size: str,
    lengths: tuple[str, ...] | None = None,
) -> StockCounter:
    """
    Sum the counters of one size card across its lengths.

    Lengths default to the catalog entry for ``treatment`` / ``size``; an
    unknown size with no explicit lengths totals to zero.
    """
    if lengths is None:
        lengths = TIMBER_SIZES.get(treatment, {}).get(size, ())

    found = [counters.get(make_stock_key(treatment, size, length), _EMPTY) for length in lengths]
    return StockCounter(
        runnable=sum(c.runnable for c in found),
        non_runnable=sum(c.non_runnable for c in found),
    )


def stock_list(
    counters: Mapping[str, StockCounter],
    sizes: Mapping[str, Mapping[str, tuple[str, ...]]] | None = None,
) -> list[StockListItem]:
    """
    Build the printable stock list: catalog order, untreated first, only
    lines holding at least one pack. Treatment names are title-cased for
    display.
    """
    items = []
    for treatment, size, length in iter_catalog(sizes):
        counter = counters.get(make_stock_key(treatment, size, length))
        if counter is None or counter.total == 0:
            continue
        items.append(
            StockListItem(
                treatment=treatment.title(),
                size=size,
                length=length,
                runnable=counter.runnable,
                non_runnable=counter.non_runnable,
            )
        )
    return items
