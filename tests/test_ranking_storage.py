from __future__ import annotations

import json
from datetime import datetime, time
from pathlib import Path

import pytest

from futures_quant.backtesting.simulator import BacktestAccumulator, EquitySample, Side
from futures_quant.exceptions import IntegrityError
from futures_quant.generation.features import FEATURES, returns_by_name
from futures_quant.optimization.datamine import FeatureThreshold, MiningResult, MiningTask
from futures_quant.optimization.ranking import (
    rank_results,
    ranked_rows,
    result_row,
    summarize_weekday_optimization,
    write_results_json,
)
from futures_quant.optimization.storage import load_optimization_rows, save_optimization_rows
from futures_quant.strategy_yaml import parse_strategy_line


def _result(symbol: str, rar_min: float, rar_recent: float, optimize: bool = False) -> MiningResult:
    backtest = BacktestAccumulator(
        returns=returns_by_name("returns_24h"),
        side=Side.LONG,
        time_of_day=time(16, 0),
        optimize_weekdays=optimize,
    )
    backtest.equity_curve = [EquitySample(datetime(2024, 1, 8, 16, 0), 125.0)]
    backtest.risk_adjusted = (rar_min + rar_recent) / 2
    backtest.risk_adjusted_min = rar_min
    backtest.risk_adjusted_recent = rar_recent
    backtest.trades_ratio = 0.25
    task = MiningTask(
        FeatureThreshold(symbol, FEATURES[4], 0.7, 1.0),
        FeatureThreshold("VX", FEATURES[0], 0.0, 0.3),
    )
    return MiningResult(task, backtest)


def test_rank_keeps_best_worst_segment_then_orders_by_recent():
    results = [
        _result("ES", 0.1, 0.9),
        _result("ES", 0.8, 0.2),
        _result("ES", 0.5, 0.6),
        _result("NQ", 0.3, 0.3),
    ]
    ranked = rank_results(results, strategy_limit=2, symbol_order=["NQ", "ES"])
    assert list(ranked) == ["NQ", "ES"]
    assert [(item.backtest.risk_adjusted_min, item.backtest.risk_adjusted_recent) for item in ranked["ES"]] == [
        (0.5, 0.6),
        (0.8, 0.2),
    ]


def test_rank_without_enabled_results_is_an_error():
    disabled = _result("ES", 0.1, 0.1)
    disabled.backtest.disable()
    with pytest.raises(IntegrityError):
        rank_results([disabled], strategy_limit=5)


def test_result_row_and_description():
    result = _result("ES", 0.5, 0.6)
    row = result_row(result)
    assert row["strategy"] == "ES.momentum_1d (0.70, 1.00), VX.momentum_1h (0.00, 0.30), long, 16:00, 24h"
    assert row["exit"] == "returns_24h"
    assert row["time_of_day"] == "16:00"
    assert row["returns"] == 125.0
    assert row["trades"] == 1
    assert row["features"][1] == {"symbol": "VX", "name": "momentum_1h", "min": 0.0, "max": 0.3}
    parsed = parse_strategy_line(row["strategy"])
    assert parsed["symbol"] == "ES"
    assert parsed["holding_time"] == 24


def test_weekday_summary_lines():
    ranked = rank_results(
        [_result("ES", 0.2, 0.4), _result("ES", 0.6, 0.8, optimize=True)], strategy_limit=5
    )
    lines = summarize_weekday_optimization(ranked)
    assert lines[0].startswith("[All] Not optimized: mean RAR = 0.30000")
    assert lines[1].startswith("[All] Optimized: mean RAR = 0.70000")
    assert len(lines) == 4


def test_results_json(tmp_path: Path):
    ranked = rank_results([_result("ES", 0.2, 0.4)], strategy_limit=5)
    path = tmp_path / "out" / "results.json"
    write_results_json(path, ranked)
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["results"][0]["symbol"] == "ES"
    assert payload["results"][0]["strategies"][0]["side"] == "long"


def test_save_and_load_optimization_rows(tmp_path: Path):
    ranked = rank_results([_result("ES", 0.2, 0.4), _result("NQ", 0.1, 0.3)], strategy_limit=5)
    rows = ranked_rows(ranked)
    db_path = str(tmp_path / "db" / "results.db")
    assert save_optimization_rows(db_path, "run-1", rows) == 2
    assert save_optimization_rows(db_path, "run-2", rows[:1]) == 1
    assert save_optimization_rows(db_path, "run-3", []) == 0
    loaded = load_optimization_rows(db_path, "run-1")
    assert [item["symbol"] for item in loaded] == ["ES", "NQ"]
    assert loaded[0]["risk_adjusted_min"] == pytest.approx(0.2)
    assert loaded[0]["features"][0]["name"] == "momentum_1d"
    assert len(load_optimization_rows(db_path, "run-2")) == 1
