"""Backtest of explicit strategies over an in-sample / out-of-sample split."""

from __future__ import annotations

import logging
import time as time_module
from dataclasses import dataclass, field
from datetime import date, time

import numpy as np

from futures_quant.backtesting.records import AssetRecords, RecordWindow, find_records, load_asset_records
from futures_quant.backtesting.simulator import BacktestAccumulator, Side, TradeCosts, count_trading_days
from futures_quant.configuration.schema import BacktestConfig, StrategyConfig
from futures_quant.fx.currency import CurrencyConverter
from futures_quant.generation.features import (
    FeatureDescriptor,
    FeatureRecord,
    feature_by_name,
    returns_by_horizon,
    returns_by_name,
)
from futures_quant.market.asset import Asset
from futures_quant.optimization.parallel import parallel_map
from futures_quant.utils.performance import create_pearson, create_risk_adjusted
from futures_quant.utils.timeutils import format_time_of_day

LOGGER = logging.getLogger(__name__)

_STATE: dict = {}


@dataclass(slots=True, frozen=True)
class StrategyCondition:
    records: AssetRecords
    feature: FeatureDescriptor
    min: float
    max: float

    def match(self, record: FeatureRecord | None) -> bool:
        if record is None:
            return False
        value = record.feature(self.feature)
        return value is not None and self.min <= value <= self.max


@dataclass(slots=True)
class StrategyComparison:
    strategy: StrategyConfig
    description: str
    in_sample: BacktestAccumulator
    out_of_sample: BacktestAccumulator
    complete: BacktestAccumulator


@dataclass(slots=True)
class BacktestReport:
    config: BacktestConfig
    comparisons: list[StrategyComparison] = field(default_factory=list)
    correlation: float = 0.0
    correlation_recent: float = 0.0
    buy_and_hold_is: float = 0.0
    buy_and_hold_oos: float = 0.0
    mean_is: float = 0.0
    mean_recent: float = 0.0
    mean_oos: float = 0.0
    portfolio_oos: float = 0.0
    outperform: int = 0
    underperform: int = 0
    loss: int = 0

    def lines(self) -> list[str]:
        out = []
        for index, comparison in enumerate(self.comparisons, start=1):
            out.append(f"{index}. {comparison.description}")
            out.append(f"\tIS RAR:    {comparison.in_sample.risk_adjusted:.3f}")
            out.append(f"\tIS RecRAR: {comparison.in_sample.risk_adjusted_recent:.3f}")
            out.append(f"\tOOS RAR:   {comparison.out_of_sample.risk_adjusted:.3f}")
            out.append("")
        count = len(self.comparisons)
        out.append(f"IS period: {self.config.date_min} to {self.config.date_split}")
        out.append(f"OOS period: {self.config.date_split} to {self.config.date_max}")
        out.append(f"Number of strategies: {count}")
        out.append("")
        out.append(f"PCC(IS RAR, OOS RAR):    {self.correlation:.3f}")
        out.append(f"PCC(IS RecRAR, OOS RAR): {self.correlation_recent:.3f}")
        out.append("")
        out.append(f"Buy and Hold IS RAR:  {self.buy_and_hold_is:.3f}")
        out.append(f"Buy and Hold OOS RAR: {self.buy_and_hold_oos:.3f}")
        out.append("")
        out.append(f"Mean(IS RAR):         {self.mean_is:.3f}")
        out.append(f"Mean(IS RecRAR):      {self.mean_recent:.3f}")
        out.append(f"Mean(OOS RAR):        {self.mean_oos:.3f}")
        out.append(f"Portfolio OOS RAR:    {self.portfolio_oos:.3f}")
        out.append("")
        out.append("OOS performance classifications:")
        for label, value in (
            ("Outperform:  ", self.outperform),
            ("Underperform:", self.underperform),
            ("Loss:        ", self.loss),
        ):
            share = 100.0 * value / count if count else 0.0
            out.append(f"\t{label} {share:.1f}% ({value} samples)")
        return out


def describe_strategy(strategy: StrategyConfig) -> str:
    conditions = []
    for condition in strategy.conditions:
        symbol = condition.symbol or strategy.symbol
        conditions.append(f"{symbol}.{condition.feature} ({condition.min:.2f}, {condition.max:.2f})")
    return (
        f"{', '.join(conditions)}, {strategy.side}, "
        f"{format_time_of_day(strategy.time)}, {strategy.holding_time}h"
    )


def strategy_symbols(config: BacktestConfig) -> list[str]:
    symbols = [config.benchmark_symbol]
    for strategy in config.strategies:
        symbols.append(strategy.symbol)
        symbols.extend(condition.symbol for condition in strategy.conditions if condition.symbol)
    return list(dict.fromkeys(symbols))


def build_conditions(strategy: StrategyConfig, records: list[AssetRecords]) -> list[StrategyCondition]:
    conditions = []
    for condition in strategy.conditions:
        conditions.append(
            StrategyCondition(
                records=find_records(records, condition.symbol or strategy.symbol),
                feature=feature_by_name(condition.feature),
                min=condition.min,
                max=condition.max,
            )
        )
    return conditions


def _condition_matches(condition: StrategyCondition, traded: AssetRecords, record: FeatureRecord) -> bool:
    if condition.records is traded:
        return condition.match(record)
    return condition.match(condition.records.by_timestamp.get(record.timestamp))


def perform_backtest(
    traded: AssetRecords,
    conditions: list[StrategyCondition],
    strategy: StrategyConfig,
    converter: CurrencyConverter,
    window: RecordWindow,
    leverage: float | None = None,
    segments: int = 3,
) -> BacktestAccumulator:
    """Run one strategy on ``traded`` records inside ``window``."""
    backtest = BacktestAccumulator(
        returns=returns_by_horizon(strategy.holding_time),
        side=Side(strategy.side),
        time_of_day=strategy.time,
    )
    costs = TradeCosts(traded.asset, converter)
    in_window = [record for record in traded.intraday_records if window.contains(record.timestamp)]
    for record in in_window:
        if not record.has_returns():
            continue
        if all(_condition_matches(condition, traded, record) for condition in conditions):
            backtest.submit(record, costs, leverage)
    backtest.post_process(count_trading_days(in_window), segments, retain_samples=True)
    return backtest


def buy_and_hold(
    records: AssetRecords,
    converter: CurrencyConverter,
    start: date,
    end: date,
    hour: int,
) -> BacktestAccumulator:
    """Daily long entry at ``hour`` held 24 hours, without spread or fees."""
    window = RecordWindow(date_min=start, date_max=end)
    benchmark = BacktestAccumulator(returns=returns_by_name("returns_24h"), side=Side.LONG, time_of_day=time(hour))
    costs = TradeCosts(records.asset, converter, apply_costs=False)
    for record in records.intraday_records:
        if window.contains(record.timestamp):
            benchmark.submit(record, costs)
    benchmark.risk_adjusted = create_risk_adjusted(benchmark.returns_samples)
    return benchmark


def _install_state(records: list[AssetRecords], converter: CurrencyConverter, config: BacktestConfig) -> None:
    _STATE["records"] = records
    _STATE["converter"] = converter
    _STATE["config"] = config


def _execute_strategy(strategy: StrategyConfig) -> StrategyComparison:
    records = _STATE["records"]
    converter = _STATE["converter"]
    config: BacktestConfig = _STATE["config"]
    traded = find_records(records, strategy.symbol)
    conditions = build_conditions(strategy, records)

    def perform(start: date, end: date) -> BacktestAccumulator:
        window = RecordWindow(date_min=start, date_max=end)
        return perform_backtest(traded, conditions, strategy, converter, window, config.leverage, config.segments)

    return StrategyComparison(
        strategy=strategy,
        description=describe_strategy(strategy),
        in_sample=perform(config.date_min, config.date_split),
        out_of_sample=perform(config.date_split, config.date_max),
        complete=perform(config.date_min, config.date_max),
    )


def evaluate_strategies(
    config: BacktestConfig,
    records: list[AssetRecords],
    converter: CurrencyConverter,
    max_workers: int = 0,
) -> BacktestReport:
    start = time_module.perf_counter()
    comparisons = parallel_map(
        _execute_strategy,
        config.strategies,
        max_workers=max_workers,
        initializer=_install_state,
        initargs=(records, converter, config),
    )
    LOGGER.info("Performed backtests in %.2f s", time_module.perf_counter() - start)

    report = BacktestReport(config=config, comparisons=comparisons)
    rar_is = [item.in_sample.risk_adjusted for item in comparisons]
    rar_recent = [item.in_sample.risk_adjusted_recent for item in comparisons]
    rar_oos = [item.out_of_sample.risk_adjusted for item in comparisons]
    report.correlation = create_pearson(rar_is, rar_oos)
    report.correlation_recent = create_pearson(rar_recent, rar_oos)

    benchmark = find_records(records, config.benchmark_symbol)
    report.buy_and_hold_is = buy_and_hold(
        benchmark, converter, config.date_min, config.date_split, config.benchmark_hour
    ).risk_adjusted
    report.buy_and_hold_oos = buy_and_hold(
        benchmark, converter, config.date_split, config.date_max, config.benchmark_hour
    ).risk_adjusted

    report.mean_is = float(np.mean(rar_is)) if rar_is else 0.0
    report.mean_recent = float(np.mean(rar_recent)) if rar_recent else 0.0
    report.mean_oos = float(np.mean(rar_oos)) if rar_oos else 0.0
    portfolio = sorted(
        (sample for item in comparisons for sample in item.out_of_sample.returns_samples),
        key=lambda sample: sample[0],
    )
    report.portfolio_oos = create_risk_adjusted(portfolio)
    for value in rar_oos:
        if value > report.buy_and_hold_oos:
            report.outperform += 1
        elif value > 0:
            report.underperform += 1
        else:
            report.loss += 1
    return report


def run_backtest(
    config: BacktestConfig,
    archive_dir: str,
    assets: list[Asset],
    converter: CurrencyConverter,
    max_workers: int = 0,
) -> BacktestReport:
    """Load the archives referenced by ``config`` and evaluate every strategy."""
    window = RecordWindow(date_min=config.date_min, date_max=config.date_max)
    records = load_asset_records(archive_dir, assets, strategy_symbols(config), window, max_workers)
    return evaluate_strategies(config, records, converter, max_workers)
