"""Trade admission, cash P&L and equity statistics of the backtest accumulator."""

from __future__ import annotations

import unittest
from datetime import datetime, time, timedelta
from decimal import Decimal

from futures_quant.backtesting.simulator import (
    BacktestAccumulator,
    Side,
    TradeCosts,
    count_trading_days,
)
from futures_quant.fx.currency import CurrencyConverter
from futures_quant.generation.features import FeatureRecord, ReturnsRecord, returns_by_name
from futures_quant.market.asset import Asset

RETURNS_4H = returns_by_name("returns_4h")
RETURNS_24H = returns_by_name("returns_24h")


def _asset(**kwargs) -> Asset:
    defaults = {
        "symbol": "ES",
        "tick_size": Decimal("0.25"),
        "tick_value": Decimal("12.50"),
        "spread": 1,
        "broker_fee": Decimal("2.50"),
        "exchange_fee": Decimal("1.00"),
    }
    defaults.update(kwargs)
    return Asset(**defaults)


def _record(timestamp: datetime, ticks: int, descriptor=RETURNS_24H, close1: int = 400) -> FeatureRecord:
    record = FeatureRecord.empty(timestamp)
    close2 = close1 + ticks
    record.returns[descriptor.index] = ReturnsRecord(
        high=max(close1, close2), low=min(close1, close2), close1=close1, close2=close2
    )
    return record


class TestTradeCash(unittest.TestCase):
    def setUp(self):
        self.costs = TradeCosts(_asset(), CurrencyConverter())
        self.start = datetime(2024, 1, 8, 10, 0)

    def test_long_with_spread_and_fees(self):
        backtest = BacktestAccumulator(returns=RETURNS_24H, side=Side.LONG)
        self.assertTrue(backtest.submit(_record(self.start, 6), self.costs))
        self.assertEqual(backtest.trades, 1)
        self.assertAlmostEqual(backtest.cash, 59.0)
        self.assertAlmostEqual(backtest.returns_samples[0][1], 59.0 / 5000.0)

    def test_short_inverts_the_tick_delta(self):
        backtest = BacktestAccumulator(returns=RETURNS_24H, side=Side.SHORT)
        backtest.submit(_record(self.start, 6), self.costs)
        self.assertAlmostEqual(backtest.cash, -91.0)

    def test_cash_accumulates_across_trades(self):
        backtest = BacktestAccumulator(returns=RETURNS_24H, side=Side.LONG)
        backtest.submit(_record(self.start, 6), self.costs)
        backtest.submit(_record(self.start + timedelta(days=1), 2), self.costs)
        # Second trade: (2 - 1) * 12.5 - 3.5 = 9.0
        self.assertAlmostEqual(backtest.cash, 68.0)

    def test_costs_can_be_disabled(self):
        costs = TradeCosts(_asset(), CurrencyConverter(), apply_costs=False)
        trade = costs.evaluate(Side.LONG, self.start, ReturnsRecord(406, 400, 400, 406))
        self.assertEqual(trade[0], Decimal("75.0"))

    def test_non_positive_notional_is_skipped(self):
        backtest = BacktestAccumulator(returns=RETURNS_24H, side=Side.LONG)
        self.assertFalse(backtest.submit(_record(self.start, 6, close1=0), self.costs))
        self.assertEqual(backtest.trades, 0)

    def test_leverage_scales_cash_not_percent(self):
        backtest = BacktestAccumulator(returns=RETURNS_24H, side=Side.LONG)
        backtest.submit(_record(self.start, 6), self.costs, leverage=2.0)
        self.assertAlmostEqual(backtest.cash, 118.0)
        self.assertAlmostEqual(backtest.returns_samples[0][1], 59.0 / 5000.0)

    def test_foreign_currency_is_converted(self):
        start = self.start
        converter = CurrencyConverter({"EUR": {start: Decimal("1.10")}})
        costs = TradeCosts(_asset(currency="EUR", broker_fee=Decimal("0"), exchange_fee=Decimal("0")), converter)
        net, percent = costs.evaluate(Side.LONG, start, ReturnsRecord(406, 400, 400, 406))
        self.assertEqual(net, Decimal("5") * Decimal("12.50") * Decimal("1.10"))
        self.assertAlmostEqual(percent, 5 / 400)


class TestAdmission(unittest.TestCase):
    def setUp(self):
        self.costs = TradeCosts(_asset(spread=0, broker_fee=Decimal(0), exchange_fee=Decimal(0)), CurrencyConverter())
        self.start = datetime(2024, 1, 8, 10, 0)

    def test_signals_closer_than_holding_time_are_rejected(self):
        backtest = BacktestAccumulator(returns=RETURNS_24H, side=Side.LONG)
        self.assertTrue(backtest.submit(_record(self.start, 1), self.costs))
        self.assertFalse(backtest.submit(_record(self.start, 1), self.costs))
        self.assertFalse(backtest.submit(_record(self.start + timedelta(hours=23), 1), self.costs))
        self.assertTrue(backtest.submit(_record(self.start + timedelta(hours=24), 1), self.costs))
        timestamps = [sample.timestamp for sample in backtest.equity_curve]
        for previous, current in zip(timestamps, timestamps[1:]):
            self.assertGreaterEqual(current - previous, backtest.holding_time)

    def test_missing_label_is_rejected(self):
        backtest = BacktestAccumulator(returns=RETURNS_4H, side=Side.LONG)
        self.assertFalse(backtest.submit(_record(self.start, 1, descriptor=RETURNS_24H), self.costs))

    def test_time_of_day_filter(self):
        backtest = BacktestAccumulator(returns=RETURNS_4H, side=Side.LONG, time_of_day=time(16, 0))
        self.assertFalse(backtest.submit(_record(self.start, 1, RETURNS_4H), self.costs))
        self.assertTrue(backtest.submit(_record(self.start.replace(hour=16), 1, RETURNS_4H), self.costs))

    def test_disabled_accumulator_ignores_signals(self):
        backtest = BacktestAccumulator(returns=RETURNS_4H, side=Side.LONG)
        backtest.submit(_record(self.start, 1, RETURNS_4H), self.costs)
        backtest.disable()
        self.assertEqual(backtest.trades, 0)
        self.assertFalse(backtest.submit(_record(self.start + timedelta(days=1), 1, RETURNS_4H), self.costs))

    def test_drawdown_invariants(self):
        backtest = BacktestAccumulator(returns=RETURNS_4H, side=Side.LONG)
        moves = [8, -20, 4, -40, 30, 12, -8, -60, 100, -5]
        for offset, ticks in enumerate(moves):
            backtest.submit(_record(self.start + timedelta(days=offset), ticks, RETURNS_4H), self.costs)
            self.assertGreaterEqual(backtest.cumulative_max, backtest.cumulative_return)
            self.assertGreaterEqual(backtest.cumulative_return, 0.0)
            self.assertGreaterEqual(backtest.drawdown_max, 0.0)
            self.assertLess(backtest.drawdown_max, 1.0)
        self.assertGreater(backtest.drawdown_max, 0.0)

    def test_post_process_scores_and_trades_ratio(self):
        backtest = BacktestAccumulator(returns=RETURNS_4H, side=Side.LONG)
        records = []
        for offset in range(120):
            timestamp = self.start + timedelta(days=offset)
            records.append(_record(timestamp, 4 if offset % 3 else -3, RETURNS_4H))
        for record in records[::2]:
            backtest.submit(record, self.costs)
        backtest.post_process(count_trading_days(records), segments=3)
        self.assertAlmostEqual(backtest.trades_ratio, 0.5)
        self.assertGreater(backtest.risk_adjusted, 0.0)
        self.assertLessEqual(backtest.risk_adjusted_min, backtest.risk_adjusted_recent)
        self.assertEqual(backtest.returns_samples, [])

    def test_replay_is_deterministic(self):
        def run():
            backtest = BacktestAccumulator(returns=RETURNS_4H, side=Side.SHORT)
            for offset in range(40):
                ticks = (offset * 7) % 11 - 5
                backtest.submit(_record(self.start + timedelta(hours=5 * offset), ticks, RETURNS_4H), self.costs)
            backtest.post_process(40, segments=2)
            return backtest.cash, backtest.drawdown_max, backtest.risk_adjusted

        self.assertEqual(run(), run())


class TestWeekdayOptimization(unittest.TestCase):
    def test_worst_weekday_is_banned_once_buffers_are_full(self):
        costs = TradeCosts(_asset(spread=0, broker_fee=Decimal(0), exchange_fee=Decimal(0)), CurrencyConverter())
        backtest = BacktestAccumulator(returns=RETURNS_4H, side=Side.LONG, optimize_weekdays=True)
        monday = datetime(2024, 1, 8, 10, 0)
        for week in range(35):
            for day in range(5):
                ticks = 2 + week % 3
                if day == 0:
                    ticks = -ticks
                timestamp = monday + timedelta(weeks=week, days=day)
                self.assertTrue(backtest.submit(_record(timestamp, ticks, RETURNS_4H), costs))
        self.assertEqual(backtest.banned_day, 0)
        self.assertEqual(backtest.trades, 175)

        next_monday = monday + timedelta(weeks=35)
        self.assertFalse(backtest.submit(_record(next_monday, 5, RETURNS_4H), costs))
        self.assertTrue(backtest.submit(_record(next_monday + timedelta(days=1), 5, RETURNS_4H), costs))
        self.assertEqual(len(backtest.weekday_returns[0]), 35)

    def test_nothing_is_banned_above_threshold(self):
        costs = TradeCosts(_asset(spread=0, broker_fee=Decimal(0), exchange_fee=Decimal(0)), CurrencyConverter())
        backtest = BacktestAccumulator(returns=RETURNS_4H, side=Side.LONG, optimize_weekdays=True)
        monday = datetime(2024, 1, 8, 10, 0)
        for week in range(36):
            for day in range(5):
                timestamp = monday + timedelta(weeks=week, days=day)
                backtest.submit(_record(timestamp, 2 + (week + day) % 3, RETURNS_4H), costs)
        self.assertIsNone(backtest.banned_day)
        self.assertEqual(backtest.trades, 180)


if __name__ == "__main__":
    unittest.main()
