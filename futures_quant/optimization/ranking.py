"""Per-series ranking and serialization of data-mining results."""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import numpy as np

from futures_quant.exceptions import IntegrityError
from futures_quant.optimization.datamine import MiningResult
from futures_quant.utils.timeutils import format_time_of_day

LOGGER = logging.getLogger(__name__)


def rank_results(
    results: Iterable[MiningResult],
    strategy_limit: int,
    symbol_order: Sequence[str] = (),
) -> dict[str, list[MiningResult]]:
    """Keep the ``strategy_limit`` best results per series.

    Selection uses the worst segment score, the retained results are then
    ordered by the most recent segment score.
    """
    by_symbol: dict[str, list[MiningResult]] = defaultdict(list)
    for result in results:
        if result.enabled:
            by_symbol[result.symbol].append(result)
    if not by_symbol:
        raise IntegrityError("No results")

    ranked = {}
    position = {symbol: index for index, symbol in enumerate(symbol_order)}
    for symbol in sorted(by_symbol, key=lambda item: (position.get(item, len(position)), item)):
        selected = sorted(by_symbol[symbol], key=lambda item: item.backtest.risk_adjusted_min, reverse=True)
        selected = selected[:strategy_limit]
        selected.sort(key=lambda item: item.backtest.risk_adjusted_recent, reverse=True)
        ranked[symbol] = selected
    return ranked


def result_row(result: MiningResult) -> dict[str, Any]:
    backtest = result.backtest
    return {
        "symbol": result.symbol,
        "strategy": result.describe(),
        "side": backtest.side.value,
        "optimize_weekdays": backtest.optimize_weekdays,
        "time_of_day": None if backtest.time_of_day is None else format_time_of_day(backtest.time_of_day),
        "features": [
            {
                "symbol": threshold.symbol,
                "name": threshold.feature.name,
                "min": threshold.min,
                "max": threshold.max,
            }
            for threshold in (result.task.primary, result.task.secondary)
        ],
        "exit": backtest.returns.name,
        "returns": backtest.cash,
        "risk_adjusted": backtest.risk_adjusted,
        "risk_adjusted_min": backtest.risk_adjusted_min,
        "risk_adjusted_recent": backtest.risk_adjusted_recent,
        "max_drawdown": backtest.drawdown_max,
        "trades_ratio": backtest.trades_ratio,
        "trades": backtest.trades,
    }


def ranked_rows(ranked: dict[str, list[MiningResult]]) -> list[dict[str, Any]]:
    return [result_row(result) for results in ranked.values() for result in results]


def write_results_json(path: str | Path, ranked: dict[str, list[MiningResult]]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "results": [
            {"symbol": symbol, "strategies": [result_row(result) for result in results]}
            for symbol, results in ranked.items()
        ]
    }
    with open(path, "w", encoding="utf-8") as file:
        json.dump(payload, file, indent=2)
    LOGGER.info("Wrote %d ranked strategies to %s", sum(len(item) for item in ranked.values()), path)


def summarize_weekday_optimization(ranked: dict[str, list[MiningResult]]) -> list[str]:
    """Mean scores of weekday-optimized vs plain results, overall and per series."""
    lines = []
    groups = [("All", [result for results in ranked.values() for result in results])]
    groups.extend(ranked.items())
    for category, results in groups:
        for optimized, label in ((False, "Not optimized"), (True, "Optimized")):
            selected = [item.backtest for item in results if item.backtest.optimize_weekdays == optimized]
            if not selected:
                continue
            lines.append(
                f"[{category}] {label}: "
                f"mean RAR = {np.mean([item.risk_adjusted for item in selected]):.5f}, "
                f"mean MinRAR = {np.mean([item.risk_adjusted_min for item in selected]):.5f}, "
                f"mean RecRAR = {np.mean([item.risk_adjusted_recent for item in selected]):.5f}"
            )
    return lines


def format_ranked(ranked: dict[str, list[MiningResult]]) -> list[str]:
    lines = []
    for symbol, results in ranked.items():
        lines.append(f"{symbol}:")
        for index, result in enumerate(results, start=1):
            backtest = result.backtest
            lines.append(
                f"\t{index}. {result.describe()} | RAR {backtest.risk_adjusted:.3f} "
                f"MinRAR {backtest.risk_adjusted_min:.3f} RecRAR {backtest.risk_adjusted_recent:.3f} "
                f"MDD {backtest.drawdown_max:.3f} trades {backtest.trades} ({backtest.trades_ratio:.2%})"
            )
    return lines
