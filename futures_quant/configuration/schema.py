"""Typed configuration schema."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time

DEFAULT_BINS: tuple[tuple[float, float], ...] = ((0.0, 0.3), (0.35, 0.65), (0.7, 1.0))


@dataclass(slots=True)
class SystemConfig:
    """System-level runtime settings."""

    log_level: str = "INFO"


@dataclass(slots=True)
class PathsConfig:
    """Filesystem locations of raw CSVs, FX CSVs and archives."""

    raw_data_path: str = "data/raw"
    archive_path: str = "data/archives"
    fx_path: str = "data/raw"


@dataclass(slots=True)
class GenerationConfig:
    """Archive generation settings."""

    cutoff_date: date | None = None
    overwrite_archives: bool = False
    quantile_transform: bool = True
    quantile_buffer_size: int = 2000
    quantile_stride: int = 250


@dataclass(slots=True)
class AnalysisConfig:
    min_non_null: int = 1000
    histogram_bins: int = 50


@dataclass(slots=True)
class StorageConfig:
    """Optional SQLite sink for ranked mining results."""

    results_db: str = ""


@dataclass(slots=True)
class ExecutionConfig:
    max_workers: int = 0


@dataclass(slots=True)
class RuntimeConfig:
    """Top-level runtime config."""

    system: SystemConfig = field(default_factory=SystemConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)


@dataclass(slots=True)
class ConditionConfig:
    """Feature range condition; the first condition of a strategy has no symbol."""

    feature: str
    min: float
    max: float
    symbol: str | None = None


@dataclass(slots=True)
class StrategyConfig:
    symbol: str
    side: str
    time: time
    holding_time: int
    conditions: list[ConditionConfig] = field(default_factory=list)


@dataclass(slots=True)
class BacktestConfig:
    """Backtest run settings loaded from a per-run YAML file."""

    date_min: date
    date_split: date
    date_max: date
    strategies: list[StrategyConfig] = field(default_factory=list)
    leverage: float | None = None
    segments: int = 3
    benchmark_symbol: str = "ES"
    benchmark_hour: int = 12


@dataclass(slots=True)
class StrategyFilterConfig:
    """Disable a result once it has ``trades`` trades and its cumulative return is below ``limit``."""

    trades: int = 0
    limit: float = 0.0


@dataclass(slots=True)
class DataMiningConfig:
    """Data-mining search settings loaded from a per-run YAML file."""

    assets: list[str] = field(default_factory=list)
    features_only: list[str] = field(default_factory=list)
    enable_long: bool = True
    enable_short: bool = True
    bins: list[tuple[float, float]] = field(default_factory=lambda: list(DEFAULT_BINS))
    date_min: date | None = None
    date_max: date | None = None
    time_min: time | None = None
    time_max: time | None = None
    time_of_day: time | None = None
    optimize_weekdays: bool = False
    weekday_sharpe_threshold: float = 0.0
    drawdown: float = 1.0
    strategy_filter: StrategyFilterConfig | None = None
    trades_min: int = 0
    trades_ratio: float = 0.0
    strategy_limit: int = 50
    segments: int = 3
    leverage: float | None = None
    correlation_splits: list[date] = field(default_factory=list)
    strategy_ratio: float = 0.1
    max_workers: int = 0
