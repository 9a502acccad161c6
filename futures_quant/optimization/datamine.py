"""Exhaustive search over pairs of (series, feature, quantile bin) entry conditions.

Every task pairs a primary threshold (the traded series) with a secondary
threshold evaluated on the record with the same timestamp. A matched signal
is fed to one accumulator per (holding horizon, side, weekday mode).
"""

from __future__ import annotations

import logging
import time as time_module
from collections.abc import Sequence
from dataclasses import dataclass

from futures_quant.backtesting.records import AssetRecords, RecordWindow, load_asset_records
from futures_quant.backtesting.simulator import BacktestAccumulator, Side, TradeCosts, count_trading_days
from futures_quant.configuration.schema import DataMiningConfig
from futures_quant.fx.currency import CurrencyConverter
from futures_quant.generation.features import FEATURES, RETURNS, FeatureDescriptor, FeatureRecord
from futures_quant.market.asset import Asset
from futures_quant.optimization.parallel import parallel_map
from futures_quant.utils.timeutils import format_time_of_day

LOGGER = logging.getLogger(__name__)

_STATE: dict = {}


@dataclass(slots=True, frozen=True)
class FeatureThreshold:
    symbol: str
    feature: FeatureDescriptor
    min: float
    max: float

    def match(self, record: FeatureRecord) -> bool:
        value = record.features[self.feature.index]
        return value is not None and self.min <= value <= self.max

    def describe(self) -> str:
        return f"{self.symbol}.{self.feature.name} ({self.min:.2f}, {self.max:.2f})"


@dataclass(slots=True, frozen=True)
class MiningTask:
    primary: FeatureThreshold
    secondary: FeatureThreshold


@dataclass(slots=True)
class MiningResult:
    task: MiningTask
    backtest: BacktestAccumulator

    @property
    def symbol(self) -> str:
        return self.task.primary.symbol

    @property
    def enabled(self) -> bool:
        return self.backtest.enabled

    def describe(self) -> str:
        backtest = self.backtest
        parts = [self.task.primary.describe(), self.task.secondary.describe(), backtest.side.value]
        if backtest.time_of_day is not None:
            parts.append(format_time_of_day(backtest.time_of_day))
        parts.append(f"{backtest.returns.horizon}h")
        return ", ".join(parts)


def generate_tasks(
    records: Sequence[AssetRecords],
    config: DataMiningConfig,
    descriptors: Sequence[FeatureDescriptor] = FEATURES,
) -> list[MiningTask]:
    """Cartesian product of series x feature x bin for both positions.

    Features-only series are never traded; a task never pairs a feature of
    a series with itself.
    """
    tasks = []
    for i, primary in enumerate(records):
        if primary.asset.features_only or primary.symbol in config.features_only:
            continue
        for j, secondary in enumerate(records):
            for k, feature1 in enumerate(descriptors):
                for m, feature2 in enumerate(descriptors):
                    if i == j and k == m:
                        continue
                    for min1, max1 in config.bins:
                        for min2, max2 in config.bins:
                            tasks.append(
                                MiningTask(
                                    FeatureThreshold(primary.symbol, feature1, min1, max1),
                                    FeatureThreshold(secondary.symbol, feature2, min2, max2),
                                )
                            )
    return tasks


def initialize_accumulators(config: DataMiningConfig) -> list[BacktestAccumulator]:
    sides = []
    if config.enable_long:
        sides.append(Side.LONG)
    if config.enable_short:
        sides.append(Side.SHORT)
    modes = [False, True] if config.optimize_weekdays else [False]
    return [
        BacktestAccumulator(
            returns=returns,
            side=side,
            time_of_day=config.time_of_day,
            optimize_weekdays=optimize,
            weekday_sharpe_threshold=config.weekday_sharpe_threshold,
        )
        for returns in RETURNS
        for side in sides
        for optimize in modes
    ]


def is_correlation(config: DataMiningConfig) -> bool:
    return bool(config.correlation_splits)


def _should_disable(backtest: BacktestAccumulator, config: DataMiningConfig) -> bool:
    if not is_correlation(config) and backtest.drawdown_max > config.drawdown:
        return True
    strategy_filter = config.strategy_filter
    if strategy_filter is None:
        return False
    return backtest.trades >= strategy_filter.trades and backtest.cumulative_return < strategy_filter.limit


def execute_task(
    task: MiningTask,
    records: dict[str, AssetRecords],
    trading_days: dict[str, int],
    converter: CurrencyConverter,
    config: DataMiningConfig,
) -> list[MiningResult]:
    """Scan the primary series and return the results that survived every filter."""
    primary = records[task.primary.symbol]
    secondary = records[task.secondary.symbol]
    costs = TradeCosts(primary.asset, converter)
    accumulators = initialize_accumulators(config)

    for record in primary.intraday_records:
        if not record.has_returns() or not task.primary.match(record):
            continue
        other = secondary.by_timestamp.get(record.timestamp)
        if other is None or not task.secondary.match(other):
            continue
        working = False
        for backtest in accumulators:
            if not backtest.enabled:
                continue
            working = True
            backtest.submit(record, costs, config.leverage)
            if _should_disable(backtest, config):
                backtest.disable()
        if not working:
            break

    results = []
    for backtest in accumulators:
        if not backtest.enabled:
            continue
        if backtest.trades == 0 or backtest.trades < config.trades_min:
            continue
        backtest.post_process(
            trading_days[primary.symbol], config.segments, retain_samples=is_correlation(config)
        )
        if backtest.trades_ratio < config.trades_ratio:
            continue
        results.append(MiningResult(task, backtest))
    return results


def _install_state(
    records: list[AssetRecords], converter: CurrencyConverter, config: DataMiningConfig
) -> None:
    _STATE["records"] = {item.symbol: item for item in records}
    _STATE["trading_days"] = {item.symbol: count_trading_days(item.intraday_records) for item in records}
    _STATE["converter"] = converter
    _STATE["config"] = config


def _execute_worker_task(task: MiningTask) -> list[MiningResult]:
    return execute_task(
        task, _STATE["records"], _STATE["trading_days"], _STATE["converter"], _STATE["config"]
    )


def mine_records(
    records: list[AssetRecords],
    config: DataMiningConfig,
    converter: CurrencyConverter,
    progress: bool = True,
) -> list[MiningResult]:
    """Run every task over already loaded records; results are in task order."""
    tasks = generate_tasks(records, config)
    LOGGER.info("Data mining %d tasks over %d series", len(tasks), len(records))
    start = time_module.perf_counter()
    task_results = parallel_map(
        _execute_worker_task,
        tasks,
        max_workers=config.max_workers,
        initializer=_install_state,
        initargs=(records, converter, config),
        progress="Data mining strategies" if progress else None,
    )
    LOGGER.info("Finished data mining in %.2f s", time_module.perf_counter() - start)
    return [result for results in task_results for result in results]


def run_datamine(
    config: DataMiningConfig,
    archive_dir: str,
    assets: list[Asset],
    converter: CurrencyConverter,
) -> tuple[list[MiningResult], list[AssetRecords]]:
    window = RecordWindow(config.date_min, config.date_max, config.time_min, config.time_max)
    records = load_asset_records(archive_dir, assets, config.assets or None, window, config.max_workers)
    return mine_records(records, config, converter), records
