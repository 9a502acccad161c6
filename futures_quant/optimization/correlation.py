"""How well do in-sample metrics of mined strategies predict out-of-sample Sharpe?

The mining search runs once over the whole period with returns samples
retained. Each consecutive pair of ``correlation_splits`` then defines an
IS period ``[date_min, start)``, a recent period ``[start - 2y, start)`` and an
OOS period ``[start, end)``.
"""

from __future__ import annotations

import logging
import time as time_module
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from futures_quant.configuration.schema import DataMiningConfig
from futures_quant.exceptions import ConfigurationError
from futures_quant.fx.currency import CurrencyConverter
from futures_quant.optimization.datamine import MiningResult, run_datamine
from futures_quant.utils.performance import (
    create_compound_return,
    create_max_drawdown,
    create_pearson,
    create_risk_adjusted,
)
from futures_quant.utils.timeutils import add_years, start_of_day

LOGGER = logging.getLogger(__name__)

RECENT_YEARS = 2


@dataclass(slots=True, frozen=True)
class SegmentStats:
    returns: float
    max_drawdown: float
    sharpe: float


@dataclass(slots=True, frozen=True)
class CorrelationProperty:
    label: str
    get: Callable[[SegmentStats], float]
    ascending: bool = False


PROPERTIES = (
    CorrelationProperty("Returns", lambda stats: stats.returns),
    CorrelationProperty("Max Drawdown", lambda stats: stats.max_drawdown, ascending=True),
    CorrelationProperty("Sharpe", lambda stats: stats.sharpe),
)


@dataclass(slots=True)
class CollectedStats:
    in_sample: list[SegmentStats] = field(default_factory=list)
    recent: list[SegmentStats] = field(default_factory=list)
    out_of_sample: list[SegmentStats] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.in_sample)


@dataclass(slots=True)
class CorrelationReport:
    config: DataMiningConfig
    periods: int
    strategy_count: int
    samples: int
    features: list[tuple[str, float]]

    def lines(self) -> list[str]:
        config = self.config
        splits = config.correlation_splits
        out = ["Configuration:", ""]
        out.append(f"\tBacktested period: from {config.date_min} to {config.date_max or 'end of data'}")
        out.append(f"\tNumber of IS/OOS periods evaluated: {self.periods} periods")
        out.append(f"\tRange of IS/OOS splits: from {splits[0]} to {splits[-1]}")
        out.append(
            f"\tNumber of strategies evaluated per period: top {100.0 * config.strategy_ratio:.2f}% "
            f"out of {self.strategy_count}"
        )
        out.append(f"\tNumber of samples used for correlation: {self.samples}")
        out.append(f'\tRange of "most recent" data in each IS period: {RECENT_YEARS} years')
        out.append(f"\tAssets evaluated: {', '.join(config.assets) or 'all'}")
        out.append("")
        out.append("Best predictors of OOS RAR:")
        out.append("")
        for index, (name, coefficient) in enumerate(self.features, start=1):
            out.append(f"\t{index}. {name}: {coefficient:.3f}")
        return out


def validate_correlation_config(config: DataMiningConfig) -> None:
    splits = config.correlation_splits
    if config.date_min is None:
        raise ConfigurationError("date_min is required for OOS correlation.")
    if len(splits) < 2:
        raise ConfigurationError("correlation_splits needs at least two dates.")
    if not config.date_min < splits[0]:
        raise ConfigurationError("date_min must be earlier than the first correlation split.")


def segment_stats(
    samples: Sequence[tuple[datetime, float]], start: date, end: date
) -> SegmentStats | None:
    """Stats of the samples inside ``[start, end)``; None when the window has no trades."""
    lower = start_of_day(start)
    upper = start_of_day(end)
    window = [sample for sample in samples if lower <= sample[0] < upper]
    if not window:
        return None
    returns = [percent for _, percent in window]
    return SegmentStats(
        returns=create_compound_return(returns),
        max_drawdown=create_max_drawdown(returns),
        sharpe=create_risk_adjusted(window),
    )


def collect_segment_stats(
    results: Sequence[MiningResult], date_min: date, start: date, end: date
) -> CollectedStats:
    collected = CollectedStats()
    recent_start = max(date_min, add_years(start, -RECENT_YEARS))
    for result in results:
        if not result.enabled:
            continue
        samples = result.backtest.returns_samples
        in_sample = segment_stats(samples, date_min, start)
        recent = segment_stats(samples, recent_start, start)
        out_of_sample = segment_stats(samples, start, end)
        if in_sample is None or recent is None or out_of_sample is None:
            continue
        collected.in_sample.append(in_sample)
        collected.recent.append(recent)
        collected.out_of_sample.append(out_of_sample)
    return collected


def correlate_property(
    stats: Sequence[SegmentStats],
    collected: CollectedStats,
    prop: CorrelationProperty,
    strategy_ratio: float,
    drawdown: float,
) -> float:
    """Pearson(property, OOS Sharpe) over the top ``strategy_ratio`` share of samples."""
    order = sorted(
        range(len(stats)),
        key=lambda index: prop.get(stats[index]),
        reverse=not prop.ascending,
    )
    limit = int(strategy_ratio * len(order))
    x = []
    y = []
    for index in order:
        if len(x) >= limit:
            break
        if collected.in_sample[index].max_drawdown > drawdown:
            continue
        x.append(prop.get(stats[index]))
        y.append(collected.out_of_sample[index].sharpe)
    return create_pearson(x, y)


def correlate_results(results: Sequence[MiningResult], config: DataMiningConfig) -> CorrelationReport:
    validate_correlation_config(config)
    splits = config.correlation_splits
    merged = CollectedStats()
    strategy_count = 0
    started = time_module.perf_counter()
    for start, end in zip(splits, splits[1:]):
        collected = collect_segment_stats(results, config.date_min, start, end)
        LOGGER.debug("IS/OOS split %s to %s: %d samples", start, end, len(collected))
        strategy_count = len(collected)
        merged.in_sample.extend(collected.in_sample)
        merged.recent.extend(collected.recent)
        merged.out_of_sample.extend(collected.out_of_sample)
    LOGGER.info("Calculated IS/OOS segments in %.2f s", time_module.perf_counter() - started)

    features = []
    for label, stats in (("IS", merged.in_sample), ("recent", merged.recent)):
        for prop in PROPERTIES:
            coefficient = correlate_property(stats, merged, prop, config.strategy_ratio, config.drawdown)
            features.append((f"{prop.label} ({label})", coefficient))
    features.sort(key=lambda item: abs(item[1]), reverse=True)
    return CorrelationReport(
        config=config,
        periods=len(splits) - 1,
        strategy_count=strategy_count,
        samples=len(merged),
        features=features,
    )


def run_correlation(
    config: DataMiningConfig,
    archive_dir: str,
    assets,
    converter: CurrencyConverter,
) -> CorrelationReport:
    validate_correlation_config(config)
    results, _ = run_datamine(config, archive_dir, assets, converter)
    return correlate_results(results, config)
