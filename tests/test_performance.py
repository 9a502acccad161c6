from __future__ import annotations

import math
import unittest
from datetime import datetime

from futures_quant.utils.performance import (
    create_compound_return,
    create_max_drawdown,
    create_monthly_returns,
    create_pearson,
    create_risk_adjusted,
    create_segment_scores,
    create_sharpe_ratio,
    describe,
)


class TestMonthlyReturns(unittest.TestCase):
    def test_compounds_within_month_and_fills_gaps(self):
        samples = [
            (datetime(2024, 1, 3), 0.10),
            (datetime(2024, 1, 20), 0.10),
            (datetime(2024, 3, 5), -0.05),
        ]
        monthly = create_monthly_returns(samples)
        self.assertEqual(len(monthly), 3)
        self.assertAlmostEqual(monthly[0], 0.21)
        self.assertEqual(monthly[1], 0.0)
        self.assertAlmostEqual(monthly[2], -0.05)

    def test_empty(self):
        self.assertEqual(create_monthly_returns([]), [])
        self.assertEqual(create_risk_adjusted([]), 0.0)


class TestRiskAdjusted(unittest.TestCase):
    def test_annualized_sharpe_of_monthly_returns(self):
        samples = [(datetime(2024, month, 1), value) for month, value in ((1, 0.02), (2, 0.01), (3, 0.03))]
        mean = 0.02
        std = 0.01
        self.assertAlmostEqual(create_risk_adjusted(samples), math.sqrt(12) * mean / std)

    def test_zero_std_scores_zero(self):
        samples = [(datetime(2024, month, 1), 0.01) for month in (1, 2, 3)]
        self.assertEqual(create_risk_adjusted(samples), 0.0)

    def test_segments_split_with_remainder_in_last(self):
        samples = [(datetime(2024, 1 + index % 12, 1), 0.01 * (index % 4)) for index in range(7)]
        scores = create_segment_scores(samples, 3)
        self.assertEqual(len(scores), 3)
        self.assertEqual(scores[-1], create_risk_adjusted(samples[4:]))


class TestCurveStats(unittest.TestCase):
    def test_sharpe_ratio(self):
        self.assertEqual(create_sharpe_ratio([0.01]), 0.0)
        self.assertAlmostEqual(create_sharpe_ratio([0.01, 0.03]), 0.02 / math.sqrt(0.0002))

    def test_compound_and_drawdown(self):
        self.assertAlmostEqual(create_compound_return([0.1, -0.5]), -0.45)
        self.assertAlmostEqual(create_max_drawdown([0.1, -0.5, 0.2]), 0.5)
        self.assertEqual(create_max_drawdown([]), 0.0)

    def test_pearson_undefined_is_zero(self):
        self.assertAlmostEqual(create_pearson([1, 2, 3], [2, 4, 6]), 1.0)
        self.assertAlmostEqual(create_pearson([1, 2, 3], [3, 2, 1]), -1.0)
        self.assertEqual(create_pearson([1], [1]), 0.0)
        self.assertEqual(create_pearson([1, 1, 1], [1, 2, 3]), 0.0)

    def test_describe(self):
        low, high, mean, std = describe([1.0, 2.0, 3.0])
        self.assertEqual((low, high, mean), (1.0, 3.0, 2.0))
        self.assertAlmostEqual(std, 1.0)


if __name__ == "__main__":
    unittest.main()
