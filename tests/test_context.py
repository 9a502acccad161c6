"""Tests for the load-once runtime context."""

import unittest
from decimal import Decimal

from futures_quant.configuration.schema import PathsConfig, RuntimeConfig
from futures_quant.context import RuntimeContext
from futures_quant.exceptions import IntegrityError
from futures_quant.fx.currency import CurrencyConverter
from futures_quant.market.asset import Asset


def _asset(symbol: str, currency: str = "USD") -> Asset:
    return Asset(symbol=symbol, tick_size=Decimal("0.25"), tick_value=Decimal("12.5"), currency=currency)


class TestRuntimeContext(unittest.TestCase):
    def test_unloaded_access_raises(self):
        context = RuntimeContext()
        with self.assertRaises(RuntimeError):
            _ = context.config
        with self.assertRaises(RuntimeError):
            _ = context.assets
        with self.assertRaises(RuntimeError):
            _ = context.converter

    def test_each_piece_is_set_once(self):
        context = RuntimeContext()
        context.set_config(RuntimeConfig())
        context.set_assets([_asset("ES")])
        context.set_converter(CurrencyConverter())
        with self.assertRaises(RuntimeError):
            context.set_config(RuntimeConfig())
        with self.assertRaises(RuntimeError):
            context.load_config("config.yaml")
        with self.assertRaises(RuntimeError):
            context.set_assets([])
        with self.assertRaises(RuntimeError):
            context.load_currencies()

    def test_find_asset(self):
        context = RuntimeContext()
        context.set_assets([_asset("ES"), _asset("NQ")])
        self.assertEqual(context.find_asset("NQ").symbol, "NQ")
        with self.assertRaises(IntegrityError):
            context.find_asset("CL")

    def test_usd_only_assets_need_no_fx_files(self):
        context = RuntimeContext()
        context.set_config(RuntimeConfig(paths=PathsConfig(fx_path="/nonexistent")))
        context.set_assets([_asset("ES"), _asset("NQ")])
        converter = context.load_currencies()
        self.assertEqual(converter.currencies, [])
        self.assertIs(context.converter, converter)


if __name__ == "__main__":
    unittest.main()
