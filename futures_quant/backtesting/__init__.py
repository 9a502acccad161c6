"""Backtesting package exports."""

from futures_quant.backtesting.records import (
    AssetRecords,
    RecordWindow,
    find_records,
    load_asset_records,
    series_paths,
)
from futures_quant.backtesting.simulator import (
    BacktestAccumulator,
    EquitySample,
    Side,
    TradeCosts,
    count_trading_days,
)

__all__ = [
    "AssetRecords",
    "BacktestAccumulator",
    "EquitySample",
    "RecordWindow",
    "Side",
    "TradeCosts",
    "count_trading_days",
    "find_records",
    "load_asset_records",
    "series_paths",
]
