"""Configuration loader with env overrides."""

import json
import os
from collections.abc import Mapping
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, TypeVar

import yaml
from dotenv import load_dotenv

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
from futures_quant.configuration.validate import (
    validate_assets,
    validate_backtest_config,
    validate_datamine_config,
    validate_runtime_config,
)
from futures_quant.exceptions import ConfigurationError
from futures_quant.market.asset import USD, Asset
from futures_quant.market.globex import GlobexCode
from futures_quant.utils.timeutils import parse_date, parse_time_of_day, parse_timestamp

T = TypeVar("T")

ENV_PREFIX = "FQ_"


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def _as_decimal(value: Any, key: str) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ConfigurationError(f"{key} is not a decimal number: {value!r}") from exc


def _as_date(value: Any, key: str):
    if value is None or value == "":
        return None
    try:
        return parse_date(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key} is not a YYYY-MM-DD date: {value!r}") from exc


def _as_time_of_day(value: Any, key: str):
    if value is None or value == "":
        return None
    try:
        return parse_time_of_day(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key} is not an HH:MM time: {value!r}") from exc


def _as_globex(value: Any, key: str) -> GlobexCode | None:
    if value is None or value == "":
        return None
    try:
        return GlobexCode.parse(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key}: {exc}") from exc


def _section(raw: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key, {})
    return value if isinstance(value, dict) else {}


def _resolve_path(config_path: str) -> Path:
    raw_path = Path(config_path)
    candidates: list[Path] = [raw_path] if raw_path.is_absolute() else [Path.cwd() / raw_path]
    path = next((candidate for candidate in candidates if candidate.exists()), None)
    if path is None:
        tried = ", ".join(str(candidate.absolute()) for candidate in candidates)
        raise ConfigurationError(f"Configuration file not found. Tried: {tried}")
    return path


def _load_yaml(config_path: str) -> Any:
    path = _resolve_path(config_path)
    try:
        with open(path, encoding="utf-8") as file:
            return yaml.safe_load(file)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse YAML file {path}: {exc}") from exc


def load_yaml_config(config_path: str = "config.yaml") -> dict[str, Any]:
    """Load a YAML mapping from the working directory or an absolute path."""
    loaded = _load_yaml(config_path) or {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"{config_path} must contain a YAML mapping.")
    return loaded


def _parse_env_scalar(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if raw.strip().startswith(("[", "{")):
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return raw
    try:
        if "." in raw:
            return float(raw)
        return int(raw)
    except ValueError:
        return raw


def _set_nested_value(container: dict[str, Any], path_tokens: list[str], value: Any) -> None:
    cur: dict[str, Any] = container
    for token in path_tokens[:-1]:
        key = token.lower()
        node = cur.get(key)
        if not isinstance(node, dict):
            node = {}
        else:
            node = dict(node)
        cur[key] = node
        cur = node
    cur[path_tokens[-1].lower()] = value


def apply_env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Apply ``FQ__SECTION__KEY`` env overrides onto the config dictionary."""
    merged = dict(data)
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        body = key[4:] if key.startswith("FQ__") else key[3:]
        tokens = [token for token in body.split("__") if token]
        # Single-token keys such as FQ_LOG_DIR belong to the logging layer.
        if len(tokens) < 2:
            continue
        _set_nested_value(merged, tokens, _parse_env_scalar(raw_value))
    return merged


def _coerce_dataclass_kwargs(raw: dict[str, Any], model_cls: type[T]) -> dict[str, Any]:
    allowed = {item.name for item in fields(model_cls)}
    return {key: value for key, value in raw.items() if key in allowed}


def build_runtime_config(data: dict[str, Any], env: Mapping[str, str]) -> RuntimeConfig:
    """Build a strongly typed runtime config from raw dict + environment."""
    mapped = apply_env_overrides(data, env)

    generation_raw = _section(mapped, "generation")
    runtime = RuntimeConfig(
        system=SystemConfig(**_coerce_dataclass_kwargs(_section(mapped, "system"), SystemConfig)),
        paths=PathsConfig(**_coerce_dataclass_kwargs(_section(mapped, "paths"), PathsConfig)),
        generation=GenerationConfig(**_coerce_dataclass_kwargs(generation_raw, GenerationConfig)),
        analysis=AnalysisConfig(**_coerce_dataclass_kwargs(_section(mapped, "analysis"), AnalysisConfig)),
        storage=StorageConfig(**_coerce_dataclass_kwargs(_section(mapped, "storage"), StorageConfig)),
        execution=ExecutionConfig(
            **_coerce_dataclass_kwargs(_section(mapped, "execution"), ExecutionConfig)
        ),
    )

    runtime.system.log_level = str(runtime.system.log_level or "INFO").strip().upper()
    for name in ("raw_data_path", "archive_path", "fx_path"):
        setattr(runtime.paths, name, str(getattr(runtime.paths, name) or "").strip())
    runtime.generation.cutoff_date = _as_date(
        runtime.generation.cutoff_date, "generation.cutoff_date"
    )
    runtime.generation.overwrite_archives = _as_bool(runtime.generation.overwrite_archives)
    runtime.generation.quantile_transform = _as_bool(runtime.generation.quantile_transform, True)
    runtime.generation.quantile_buffer_size = _as_int(runtime.generation.quantile_buffer_size, 2000)
    runtime.generation.quantile_stride = _as_int(runtime.generation.quantile_stride, 250)
    runtime.analysis.min_non_null = _as_int(runtime.analysis.min_non_null, 1000)
    runtime.analysis.histogram_bins = _as_int(runtime.analysis.histogram_bins, 50)
    runtime.storage.results_db = str(runtime.storage.results_db or "").strip()
    runtime.execution.max_workers = _as_int(runtime.execution.max_workers, 0)
    validate_runtime_config(runtime)
    return runtime


def load_runtime_config(
    config_path: str = "config.yaml", env: Mapping[str, str] | None = None
) -> RuntimeConfig:
    """Load `.env`, read YAML, apply overrides, and produce typed config."""
    load_dotenv()
    effective_env = env if env is not None else os.environ
    raw = load_yaml_config(config_path=config_path)
    return build_runtime_config(raw, effective_env)


def _month_list(value: Any, key: str) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigurationError(f"{key} must be a list of month letters.")
    return [str(item).strip().upper() for item in value]


def build_asset(raw: dict[str, Any]) -> Asset:
    symbol = str(raw.get("symbol") or "").strip()
    if not symbol:
        raise ConfigurationError("Every asset needs a symbol.")
    prefix = f"assets[{symbol}]"
    for required in ("tick_size", "tick_value"):
        if raw.get(required) is None:
            raise ConfigurationError(f"{prefix}.{required} is required.")
    exclude_records = set()
    for value in raw.get("exclude_records") or []:
        try:
            exclude_records.add(parse_timestamp(value))
        except ValueError as exc:
            raise ConfigurationError(f"{prefix}.exclude_records: invalid timestamp {value!r}") from exc
    return Asset(
        symbol=symbol,
        tick_size=_as_decimal(raw["tick_size"], f"{prefix}.tick_size"),
        tick_value=_as_decimal(raw["tick_value"], f"{prefix}.tick_value"),
        vendor_symbol=str(raw.get("vendor_symbol") or "").strip(),
        name=str(raw.get("name") or ""),
        currency=str(raw.get("currency") or USD).strip().upper(),
        broker_fee=_as_decimal(raw.get("broker_fee", 0), f"{prefix}.broker_fee"),
        exchange_fee=_as_decimal(raw.get("exchange_fee", 0), f"{prefix}.exchange_fee"),
        spread=_as_int(raw.get("spread"), 0),
        f_records=_as_int(raw.get("f_records"), 1),
        features_only=_as_bool(raw.get("features_only")),
        legacy_cutoff=_as_globex(raw.get("legacy_cutoff"), f"{prefix}.legacy_cutoff"),
        first_filter_contract=_as_globex(
            raw.get("first_filter_contract"), f"{prefix}.first_filter_contract"
        ),
        last_filter_contract=_as_globex(
            raw.get("last_filter_contract"), f"{prefix}.last_filter_contract"
        ),
        include_months=_month_list(raw.get("include_months"), f"{prefix}.include_months"),
        exclude_months=_month_list(raw.get("exclude_months"), f"{prefix}.exclude_months"),
        cutoff_date=_as_date(raw.get("cutoff_date"), f"{prefix}.cutoff_date"),
        exclude_records=frozenset(exclude_records),
    )


def build_assets(data: Any) -> list[Asset]:
    """Build assets from either a bare list or a mapping with an ``assets`` key."""
    if isinstance(data, dict):
        data = data.get("assets")
    if not isinstance(data, list):
        raise ConfigurationError("Asset configuration must be a list of asset mappings.")
    assets = []
    for item in data:
        if not isinstance(item, dict):
            raise ConfigurationError(f"Invalid asset entry: {item!r}")
        assets.append(build_asset(item))
    validate_assets(assets)
    return assets


def load_assets(path: str = "assets.yaml") -> list[Asset]:
    return build_assets(_load_yaml(path))


def _build_condition(raw: Any, key: str) -> ConditionConfig:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{key} must be a mapping.")
    feature = str(raw.get("feature") or "").strip()
    if not feature:
        raise ConfigurationError(f"{key}.feature is required.")
    symbol = raw.get("symbol")
    return ConditionConfig(
        feature=feature,
        min=_as_float(raw.get("min"), float("nan")),
        max=_as_float(raw.get("max"), float("nan")),
        symbol=str(symbol).strip() if symbol not in (None, "") else None,
    )


def _build_strategy(raw: Any, index: int) -> StrategyConfig:
    key = f"strategies[{index}]"
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{key} must be a mapping.")
    time_of_day = _as_time_of_day(raw.get("time"), f"{key}.time")
    if time_of_day is None:
        raise ConfigurationError(f"{key}.time is required.")
    conditions = raw.get("conditions") or []
    if not isinstance(conditions, list):
        raise ConfigurationError(f"{key}.conditions must be a list.")
    return StrategyConfig(
        symbol=str(raw.get("symbol") or "").strip(),
        side=str(raw.get("side") or "").strip().lower(),
        time=time_of_day,
        holding_time=_as_int(raw.get("holding_time"), 0),
        conditions=[
            _build_condition(item, f"{key}.conditions[{position}]")
            for position, item in enumerate(conditions)
        ],
    )


def build_backtest_config(data: dict[str, Any]) -> BacktestConfig:
    strategies = data.get("strategies") or []
    if not isinstance(strategies, list):
        raise ConfigurationError("strategies must be a list.")
    leverage = data.get("leverage")
    config = BacktestConfig(
        date_min=_as_date(data.get("date_min"), "date_min"),
        date_split=_as_date(data.get("date_split"), "date_split"),
        date_max=_as_date(data.get("date_max"), "date_max"),
        strategies=[_build_strategy(item, index) for index, item in enumerate(strategies)],
        leverage=None if leverage is None else _as_float(leverage, 1.0),
        segments=_as_int(data.get("segments"), 3),
        benchmark_symbol=str(data.get("benchmark_symbol") or "ES").strip(),
        benchmark_hour=_as_int(data.get("benchmark_hour"), 12),
    )
    validate_backtest_config(config)
    return config


def load_backtest_config(path: str) -> BacktestConfig:
    return build_backtest_config(load_yaml_config(path))


def _build_bins(value: Any) -> list[tuple[float, float]] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ConfigurationError("bins must be a list of [min, max] pairs.")
    bins = []
    for item in value:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise ConfigurationError(f"Invalid bin {item!r}; expected [min, max].")
        bins.append((_as_float(item[0], float("nan")), _as_float(item[1], float("nan"))))
    return bins


def _symbol_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigurationError(f"{key} must be a list of symbols.")
    return [str(item).strip() for item in value if str(item).strip()]


def build_datamine_config(data: dict[str, Any]) -> DataMiningConfig:
    kwargs = _coerce_dataclass_kwargs(data, DataMiningConfig)
    config = DataMiningConfig()
    config.assets = _symbol_list(kwargs.get("assets"), "assets")
    config.features_only = _symbol_list(kwargs.get("features_only"), "features_only")
    config.enable_long = _as_bool(kwargs.get("enable_long"), True)
    config.enable_short = _as_bool(kwargs.get("enable_short"), True)
    bins = _build_bins(kwargs.get("bins"))
    if bins is not None:
        config.bins = bins
    config.date_min = _as_date(kwargs.get("date_min"), "date_min")
    config.date_max = _as_date(kwargs.get("date_max"), "date_max")
    config.time_min = _as_time_of_day(kwargs.get("time_min"), "time_min")
    config.time_max = _as_time_of_day(kwargs.get("time_max"), "time_max")
    config.time_of_day = _as_time_of_day(kwargs.get("time_of_day"), "time_of_day")
    config.optimize_weekdays = _as_bool(kwargs.get("optimize_weekdays"))
    config.weekday_sharpe_threshold = _as_float(kwargs.get("weekday_sharpe_threshold"), 0.0)
    config.drawdown = _as_float(kwargs.get("drawdown"), 1.0)
    strategy_filter = kwargs.get("strategy_filter")
    if isinstance(strategy_filter, dict):
        config.strategy_filter = StrategyFilterConfig(
            trades=_as_int(strategy_filter.get("trades"), 0),
            limit=_as_float(strategy_filter.get("limit"), 0.0),
        )
    elif strategy_filter is not None:
        raise ConfigurationError("strategy_filter must be a mapping with trades and limit.")
    config.trades_min = _as_int(kwargs.get("trades_min"), 0)
    config.trades_ratio = _as_float(kwargs.get("trades_ratio"), 0.0)
    config.strategy_limit = _as_int(kwargs.get("strategy_limit"), 50)
    config.segments = _as_int(kwargs.get("segments"), 3)
    leverage = kwargs.get("leverage")
    config.leverage = None if leverage is None else _as_float(leverage, 1.0)
    config.correlation_splits = [
        _as_date(item, "correlation_splits") for item in kwargs.get("correlation_splits") or []
    ]
    config.strategy_ratio = _as_float(kwargs.get("strategy_ratio"), 0.1)
    config.max_workers = _as_int(kwargs.get("max_workers"), 0)
    validate_datamine_config(config)
    # Features-only instruments still take part as the secondary dimension.
    for symbol in config.features_only:
        if symbol not in config.assets and config.assets:
            config.assets.append(symbol)
    return config


def load_datamine_config(path: str) -> DataMiningConfig:
    return build_datamine_config(load_yaml_config(path))
