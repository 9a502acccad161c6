"""Tests for Globex contract codes and asset row filters."""

import unittest
from datetime import date, datetime
from decimal import Decimal

from futures_quant.market.asset import Asset
from futures_quant.market.globex import GlobexCode


def _asset(**kwargs):
    return Asset(symbol="ES", tick_size=Decimal("0.25"), tick_value=Decimal("12.5"), **kwargs)


class TestGlobexCode(unittest.TestCase):
    def test_parse_and_render(self):
        code = GlobexCode.parse("ESH24")
        self.assertEqual(code.root, "ES")
        self.assertEqual(code.month, "H")
        self.assertEqual(code.year, 2024)
        self.assertEqual(str(code), "ESH24")

    def test_two_digit_year_pivot(self):
        self.assertEqual(GlobexCode.parse("CLZ69").year, 2069)
        self.assertEqual(GlobexCode.parse("CLZ70").year, 1970)

    def test_rejects_malformed_symbols(self):
        for symbol in ("ES", "ESA24", "ESH2", "esh24", "EH24"):
            with self.subTest(symbol=symbol):
                with self.assertRaises(ValueError):
                    GlobexCode.parse(symbol)

    def test_ordering_by_year_then_month(self):
        codes = [GlobexCode.parse(item) for item in ("ESZ23", "ESH24", "ESM23", "ESU24")]
        self.assertEqual([str(item) for item in sorted(codes)], ["ESM23", "ESZ23", "ESH24", "ESU24"])
        self.assertLess(GlobexCode.parse("ESZ99"), GlobexCode.parse("ESF00"))

    def test_comparing_different_roots_is_an_error(self):
        with self.assertRaises(ValueError):
            _ = GlobexCode.parse("ESH24") < GlobexCode.parse("NQH24")


class TestAssetFilters(unittest.TestCase):
    def test_series_symbol(self):
        asset = _asset()
        self.assertEqual(asset.series_symbol(1), "ES")
        self.assertEqual(asset.series_symbol(3), "ES.F3")
        self.assertEqual(asset.raw_symbol, "ES")
        self.assertEqual(_asset(vendor_symbol="EP").raw_symbol, "EP")

    def test_fees_are_per_side_sum(self):
        asset = _asset(broker_fee=Decimal("2.50"), exchange_fee=Decimal("1.00"))
        self.assertEqual(asset.fees, Decimal("3.50"))

    def test_legacy_cutoff_and_cutoff_date(self):
        asset = _asset(legacy_cutoff=GlobexCode.parse("ESH10"), cutoff_date=date(2010, 1, 1))
        day = date(2010, 6, 1)
        self.assertFalse(asset.include_daily_row(day, GlobexCode.parse("ESZ09")))
        self.assertTrue(asset.include_daily_row(day, GlobexCode.parse("ESH10")))
        self.assertFalse(asset.include_daily_row(date(2009, 12, 31), GlobexCode.parse("ESH10")))

    def test_month_filters_apply_inside_filter_range_only(self):
        asset = _asset(
            include_months=["Z"],
            first_filter_contract=GlobexCode.parse("GCG15"),
            last_filter_contract=GlobexCode.parse("GCG20"),
        )
        asset.symbol = "GC"
        day = date(2016, 1, 4)
        self.assertTrue(asset.include_daily_row(day, GlobexCode.parse("GCZ16")))
        self.assertFalse(asset.include_daily_row(day, GlobexCode.parse("GCJ16")))
        # Outside [first, last) every month is kept.
        self.assertTrue(asset.include_daily_row(day, GlobexCode.parse("GCJ14")))
        self.assertTrue(asset.include_daily_row(day, GlobexCode.parse("GCJ20")))

    def test_exclude_months(self):
        asset = _asset(exclude_months=["F", "G"])
        day = date(2020, 1, 2)
        self.assertFalse(asset.include_daily_row(day, GlobexCode.parse("ESF20")))
        self.assertTrue(asset.include_daily_row(day, GlobexCode.parse("ESH20")))

    def test_exclude_records(self):
        skipped = datetime(2020, 1, 2, 10, 0)
        asset = _asset(exclude_records=frozenset({skipped}))
        self.assertFalse(asset.include_hourly_row(skipped))
        self.assertTrue(asset.include_hourly_row(datetime(2020, 1, 2, 11, 0)))


if __name__ == "__main__":
    unittest.main()
