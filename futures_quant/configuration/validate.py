"""Configuration validation."""

from __future__ import annotations

import math
from collections.abc import Iterable

from futures_quant.configuration.schema import (
    BacktestConfig,
    DataMiningConfig,
    RuntimeConfig,
)
from futures_quant.exceptions import ConfigurationError
from futures_quant.market.asset import Asset
from futures_quant.market.globex import MONTH_CODES

VALID_SIDES = {"long", "short"}
LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _require_unit_range(low: float, high: float, label: str) -> None:
    if math.isnan(low) or math.isnan(high) or not 0.0 <= low <= high <= 1.0:
        raise ConfigurationError(
            f"Invalid min/max values in {label} (min = {low}, max = {high}); "
            "expected 0 <= min <= max <= 1."
        )


def validate_runtime_config(runtime: RuntimeConfig) -> None:
    """Validate runtime configuration invariants."""
    if runtime.system.log_level not in LOG_LEVELS:
        raise ConfigurationError(f"system.log_level must be one of: {', '.join(sorted(LOG_LEVELS))}.")
    if not runtime.paths.raw_data_path:
        raise ConfigurationError("paths.raw_data_path must not be empty.")
    if not runtime.paths.archive_path:
        raise ConfigurationError("paths.archive_path must not be empty.")
    generation = runtime.generation
    if generation.quantile_buffer_size < 1:
        raise ConfigurationError("generation.quantile_buffer_size must be >= 1.")
    if generation.quantile_stride < 1:
        raise ConfigurationError("generation.quantile_stride must be >= 1.")
    if generation.quantile_stride >= generation.quantile_buffer_size:
        raise ConfigurationError(
            "generation.quantile_stride must be smaller than generation.quantile_buffer_size."
        )
    if runtime.analysis.min_non_null < 1:
        raise ConfigurationError("analysis.min_non_null must be >= 1.")
    if runtime.analysis.histogram_bins < 1:
        raise ConfigurationError("analysis.histogram_bins must be >= 1.")
    if runtime.execution.max_workers < 0:
        raise ConfigurationError("execution.max_workers must be >= 0.")


def _validate_months(months: Iterable[str] | None, label: str) -> None:
    for month in months or ():
        if len(month) != 1 or month not in MONTH_CODES:
            raise ConfigurationError(f"{label} contains an invalid month letter: {month!r}")


def validate_assets(assets: list[Asset]) -> None:
    seen: set[str] = set()
    for asset in assets:
        if asset.symbol in seen:
            raise ConfigurationError(f"Duplicate asset symbol: {asset.symbol}")
        seen.add(asset.symbol)
        if asset.tick_size <= 0 or asset.tick_value <= 0:
            raise ConfigurationError(f"[{asset.symbol}] tick_size and tick_value must be positive.")
        if asset.f_records < 1:
            raise ConfigurationError(f"[{asset.symbol}] f_records must be >= 1.")
        if asset.spread < 0:
            raise ConfigurationError(f"[{asset.symbol}] spread must be >= 0.")
        if len(asset.currency) != 3:
            raise ConfigurationError(f"[{asset.symbol}] currency must be an ISO code.")
        _validate_months(asset.include_months, f"[{asset.symbol}] include_months")
        _validate_months(asset.exclude_months, f"[{asset.symbol}] exclude_months")
        codes = [
            code
            for code in (asset.legacy_cutoff, asset.first_filter_contract, asset.last_filter_contract)
            if code is not None
        ]
        if len({code.root for code in codes}) > 1:
            raise ConfigurationError(f"[{asset.symbol}] contract filters use different roots.")


def validate_backtest_config(config: BacktestConfig) -> None:
    if config.date_min is None or config.date_split is None or config.date_max is None:
        raise ConfigurationError("date_min, date_split and date_max are required.")
    if not config.date_min < config.date_split < config.date_max:
        raise ConfigurationError(
            "Invalid dates: expected date_min < date_split < date_max "
            f"(got {config.date_min}, {config.date_split}, {config.date_max})."
        )
    if not config.strategies:
        raise ConfigurationError("No strategies configured.")
    if config.leverage is not None and config.leverage <= 0:
        raise ConfigurationError("leverage must be positive.")
    if config.segments < 1:
        raise ConfigurationError("segments must be >= 1.")
    if not 0 <= config.benchmark_hour <= 23:
        raise ConfigurationError("benchmark_hour must be in [0, 23].")
    for index, strategy in enumerate(config.strategies):
        label = f"strategies[{index}]"
        if not strategy.symbol:
            raise ConfigurationError(f"{label}.symbol is required.")
        if strategy.side not in VALID_SIDES:
            raise ConfigurationError(f"{label}.side must be long or short.")
        if strategy.holding_time < 1:
            raise ConfigurationError(f"{label}.holding_time must be a positive number of hours.")
        if not strategy.conditions:
            raise ConfigurationError(f"{label} defines no conditions.")
        for position, condition in enumerate(strategy.conditions):
            condition_label = f"{label}.conditions[{position}]"
            _require_unit_range(condition.min, condition.max, condition_label)
            if position == 0 and condition.symbol is not None:
                raise ConfigurationError(
                    f"The first condition must not set a symbol, encountered {condition.symbol!r}."
                )
            if position > 0 and condition.symbol is None:
                raise ConfigurationError(f"Only the first condition may omit the symbol ({condition_label}).")


def validate_datamine_config(config: DataMiningConfig) -> None:
    if not config.enable_long and not config.enable_short:
        raise ConfigurationError("At least one of enable_long and enable_short must be set.")
    if not config.bins:
        raise ConfigurationError("bins must not be empty.")
    for low, high in config.bins:
        _require_unit_range(low, high, "bins")
    if config.date_min is not None and config.date_max is not None:
        if not config.date_min < config.date_max:
            raise ConfigurationError("date_min must be earlier than date_max.")
    if config.time_min is not None and config.time_max is not None:
        if config.time_min > config.time_max:
            raise ConfigurationError("time_min must not be later than time_max.")
    if not 0.0 < config.drawdown <= 1.0:
        raise ConfigurationError("drawdown must be in (0, 1].")
    if config.strategy_filter is not None:
        if config.strategy_filter.trades < 1 or config.strategy_filter.limit == 0.0:
            raise ConfigurationError("Invalid strategy filter configuration.")
    if config.strategy_limit < 1:
        raise ConfigurationError("strategy_limit must be >= 1.")
    if config.segments < 1:
        raise ConfigurationError("segments must be >= 1.")
    if config.trades_min < 0 or config.trades_ratio < 0:
        raise ConfigurationError("trades_min and trades_ratio must be >= 0.")
    if config.leverage is not None and config.leverage <= 0:
        raise ConfigurationError("leverage must be positive.")
    if not 0.0 < config.strategy_ratio <= 1.0:
        raise ConfigurationError("strategy_ratio must be in (0, 1].")
    if config.correlation_splits and any(
        later <= earlier for earlier, later in zip(config.correlation_splits, config.correlation_splits[1:])
    ):
        raise ConfigurationError("correlation_splits must be strictly increasing.")
    if config.max_workers < 0:
        raise ConfigurationError("max_workers must be >= 0.")
