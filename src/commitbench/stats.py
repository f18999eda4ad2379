"""Aggregate statistics for a commit's timed runs.

All arithmetic uses :class:`decimal.Decimal` so that the median of an
even-sized sample (the mean of the two central values) is exact.
"""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class Aggregate:
    """Min, median and max of a non-empty sample of elapsed times."""

    minimum: Decimal
    median: Decimal
    maximum: Decimal
    n: int

    def formatted(self) -> tuple[str, str, str]:
        """Return ``(median, min, max)`` rendered with two decimals."""
        return (
            format_seconds(self.median),
            format_seconds(self.minimum),
            format_seconds(self.maximum),
        )


def format_seconds(value: Decimal) -> str:
    """Render seconds with exactly two decimals: ``Decimal('2.2') -> '2.20'``."""
    return str(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def aggregate(times: Sequence[Decimal]) -> Aggregate:
    """Compute min, median and max of *times*.

    Raises:
        ValueError: if *times* is empty.
    """
    if not times:
        raise ValueError("cannot aggregate an empty sample")
    sorted_t = sorted(times)
    return Aggregate(
        minimum=sorted_t[0],
        median=statistics.median(sorted_t),
        maximum=sorted_t[-1],
        n=len(sorted_t),
    )
