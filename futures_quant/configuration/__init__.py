"""Typed configuration API."""

from futures_quant.configuration.loader import (
    load_assets,
    load_backtest_config,
    load_datamine_config,
    load_runtime_config,
)
from futures_quant.configuration.schema import (
    AnalysisConfig,
    BacktestConfig,
    ConditionConfig,
    DataMiningConfig,
    ExecutionConfig,
    GenerationConfig,
    PathsConfig,
    RuntimeConfig,
    StorageConfig,
    StrategyConfig,
    StrategyFilterConfig,
    SystemConfig,
)
from futures_quant.configuration.validate import validate_runtime_config

__all__ = [
    "AnalysisConfig",
    "BacktestConfig",
    "ConditionConfig",
    "DataMiningConfig",
    "ExecutionConfig",
    "GenerationConfig",
    "PathsConfig",
    "RuntimeConfig",
    "StorageConfig",
    "StrategyConfig",
    "StrategyFilterConfig",
    "SystemConfig",
    "load_assets",
    "load_backtest_config",
    "load_datamine_config",
    "load_runtime_config",
    "validate_runtime_config",
]
