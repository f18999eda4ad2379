"""Tests for commitbench.stats — min/median/max aggregation."""

from __future__ import annotations

import random
import unittest
from decimal import Decimal

from commitbench.stats import Aggregate, aggregate, format_seconds


def _d(*values: str) -> list[Decimal]:
    return [Decimal(v) for v in values]


class TestAggregate(unittest.TestCase):
    def test_odd_sample_median_is_middle(self) -> None:
        agg = aggregate(_d("1.10", "1.20", "1.15"))
        self.assertEqual(agg.minimum, Decimal("1.10"))
        self.assertEqual(agg.median, Decimal("1.15"))
        self.assertEqual(agg.maximum, Decimal("1.20"))
        self.assertEqual(agg.n, 3)

    def test_even_sample_median_is_mean_of_central(self) -> None:
        agg = aggregate(_d("2.00", "2.50", "2.10", "2.30"))
        self.assertEqual(agg.median, Decimal("2.20"))
        self.assertEqual(agg.minimum, Decimal("2.00"))
        self.assertEqual(agg.maximum, Decimal("2.50"))

    def test_single_value(self) -> None:
        agg = aggregate(_d("0.42"))
        self.assertEqual((agg.minimum, agg.median, agg.maximum), (Decimal("0.42"),) * 3)

    def test_two_values(self) -> None:
        agg = aggregate(_d("1.00", "2.00"))
        self.assertEqual(agg.median, Decimal("1.50"))

    def test_empty_raises(self) -> None:
        with self.assertRaises(ValueError):
            aggregate([])

    def test_does_not_mutate_input(self) -> None:
        times = _d("3.00", "1.00", "2.00")
        aggregate(times)
        self.assertEqual(times, _d("3.00", "1.00", "2.00"))

    def test_median_between_min_and_max(self) -> None:
        rng = random.Random(1234)
        for n in range(1, 30):
            sample = [Decimal(rng.randint(0, 50000)) / 100 for _ in range(n)]
            agg = aggregate(sample)
            self.assertLessEqual(agg.minimum, agg.median)
            self.assertLessEqual(agg.median, agg.maximum)

    def test_median_matches_sorted_definition(self) -> None:
        rng = random.Random(99)
        for n in range(1, 20):
            sample = [Decimal(rng.randint(0, 1000)) / 100 for _ in range(n)]
            ordered = sorted(sample)
            if n % 2:
                expected = ordered[n // 2]
            else:
                expected = (ordered[n // 2 - 1] + ordered[n // 2]) / 2
            self.assertEqual(aggregate(sample).median, expected)


class TestFormatting(unittest.TestCase):
    def test_formatted_order_is_median_min_max(self) -> None:
        agg = aggregate(_d("1.10", "1.20", "1.15"))
        self.assertEqual(agg.formatted(), ("1.15", "1.10", "1.20"))

    def test_format_seconds_pads_two_places(self) -> None:
        self.assertEqual(format_seconds(Decimal("2.2")), "2.20")
        self.assertEqual(format_seconds(Decimal("3")), "3.00")

    def test_format_seconds_rounds_half_up(self) -> None:
        self.assertEqual(format_seconds(Decimal("1.125")), "1.13")
        self.assertEqual(format_seconds(Decimal("1.124")), "1.12")

    def test_aggregate_is_frozen(self) -> None:
        agg = Aggregate(
            minimum=Decimal("1"), median=Decimal("1"), maximum=Decimal("1"), n=1
        )
        with self.assertRaises(AttributeError):
            agg.n = 2  # type: ignore[misc]


if __name__ == "__main__":
    unittest.main()
