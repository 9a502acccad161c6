"""Turn strategy description lines into a backtest ``strategies:`` YAML file.

Accepted lines (as printed by the data-mining ranking)::

    ES.momentum_1d (0.70, 1.00), NQ.momentum_8h (0.00, 0.30), long, 16:00, 24h
    ES.momentum_1d (0.70, 1.00), short, 09:00, 8h, SL 1.5%
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from futures_quant.exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)

_NUMBER = r"(\d+(?:\.\d+)?)"
_CONDITION = rf"(.+?)\.(momentum\w+?) \({_NUMBER}, {_NUMBER}\)"
_TAIL = r"(long|short), (\d{1,2}:\d{2}), (\d+)h(?:, SL (\d+(?:\.\d+)?)%)?"

TWO_CONDITIONS = re.compile(rf"^{_CONDITION}, {_CONDITION}, {_TAIL}$")
ONE_CONDITION = re.compile(rf"^{_CONDITION}, {_TAIL}$")


def _strategy(conditions: list[tuple[str, str, str, str]], tail: tuple[str, ...]) -> dict[str, Any]:
    side, time_of_day, holding_time, stop_loss = tail
    strategy: dict[str, Any] = {
        "symbol": conditions[0][0],
        "side": side,
        "time": time_of_day,
        "holding_time": int(holding_time),
    }
    if stop_loss:
        strategy["stop_loss"] = round(float(stop_loss) / 100.0, 6)
    strategy["conditions"] = []
    for position, (symbol, feature, low, high) in enumerate(conditions):
        condition: dict[str, Any] = {}
        if position > 0:
            condition["symbol"] = symbol
        condition.update({"feature": feature, "min": float(low), "max": float(high)})
        strategy["conditions"].append(condition)
    return strategy


def parse_strategy_line(line: str) -> dict[str, Any]:
    text = line.strip()
    match = TWO_CONDITIONS.match(text)
    if match:
        groups = match.groups()
        return _strategy([groups[0:4], groups[4:8]], groups[8:])
    match = ONE_CONDITION.match(text)
    if match:
        groups = match.groups()
        return _strategy([groups[0:4]], groups[4:])
    raise ConfigurationError(f"Unable to parse strategy line: {text}")


def render_strategies(lines: list[str]) -> str:
    strategies = [parse_strategy_line(line) for line in lines if line.strip()]
    return yaml.safe_dump({"strategies": strategies}, sort_keys=False, default_flow_style=False)


def generate_strategy_yaml(input_path: str | Path, output_path: str | Path) -> int:
    """Convert every non-empty line of ``input_path``; return the number of strategies written."""
    input_path = Path(input_path)
    try:
        with open(input_path, encoding="utf-8") as file:
            lines = file.read().replace("\r", "").split("\n")
    except OSError as exc:
        raise ConfigurationError(f"Failed to read {input_path}: {exc}") from exc
    content = render_strategies(lines)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as file:
        file.write(content)
    count = sum(1 for line in lines if line.strip())
    LOGGER.info("Wrote %d strategies to %s", count, output_path)
    return count
