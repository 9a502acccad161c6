"""Equity-curve simulator for matched entry signals.

One ``BacktestAccumulator`` tracks a single (holding horizon, side, weekday
mode) combination. Signals must be submitted in ascending timestamp order;
a signal closer to the previous trade than the holding horizon is rejected.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from decimal import Decimal
from enum import Enum

from futures_quant.fx.currency import CurrencyConverter
from futures_quant.generation.features import FeatureRecord, ReturnsDescriptor, ReturnsRecord
from futures_quant.market.asset import Asset
from futures_quant.utils.performance import (
    create_risk_adjusted,
    create_segment_scores,
    create_sharpe_ratio,
)

WEEKDAYS = 5
DAYS_PER_WEEK = 7
WEEKDAY_OPTIMIZATION_BUFFER = 35


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"


@dataclass(slots=True, frozen=True)
class EquitySample:
    timestamp: datetime
    cash: float


@dataclass(slots=True)
class TradeCosts:
    """Tick P&L -> USD cash with spread and per-side fees."""

    asset: Asset
    converter: CurrencyConverter
    apply_costs: bool = True

    def evaluate(self, side: Side, timestamp: datetime, returns: ReturnsRecord) -> tuple[Decimal, float] | None:
        """Return (net USD P&L, P&L / notional), or None when the notional is not positive."""
        asset = self.asset
        ticks = returns.ticks
        spread = asset.spread if self.apply_costs else 0
        if side is Side.LONG:
            effective = ticks - spread
        else:
            effective = -(ticks + spread)
        rate = self.converter.rate(asset.currency, timestamp)
        net = Decimal(effective) * asset.tick_value * rate
        if self.apply_costs:
            net -= asset.fees
        notional = Decimal(returns.close1) * asset.tick_value * rate
        if notional <= 0:
            return None
        return net, float(net / notional)


@dataclass(slots=True)
class BacktestAccumulator:
    returns: ReturnsDescriptor
    side: Side
    time_of_day: time | None = None
    optimize_weekdays: bool = False
    weekday_sharpe_threshold: float = 0.0
    equity_curve: list[EquitySample] = field(default_factory=list)
    returns_samples: list[tuple[datetime, float]] = field(default_factory=list)
    weekday_returns: list[list[float]] = field(default_factory=lambda: [[] for _ in range(DAYS_PER_WEEK)])
    optimization_returns: list[deque] = field(
        default_factory=lambda: [deque(maxlen=WEEKDAY_OPTIMIZATION_BUFFER) for _ in range(WEEKDAYS)]
    )
    banned_day: int | None = None
    cumulative_return: float = 1.0
    cumulative_max: float = 1.0
    drawdown_max: float = 0.0
    trades_ratio: float = 0.0
    risk_adjusted: float = 0.0
    risk_adjusted_min: float = 0.0
    risk_adjusted_recent: float = 0.0
    enabled: bool = True

    @property
    def holding_time(self) -> timedelta:
        return timedelta(hours=self.returns.horizon)

    @property
    def trades(self) -> int:
        return len(self.equity_curve)

    @property
    def cash(self) -> float:
        return self.equity_curve[-1].cash if self.equity_curve else 0.0

    def submit(self, record: FeatureRecord, costs: TradeCosts, leverage: float | None = None) -> bool:
        """Try to open a trade at ``record``; return whether it was admitted."""
        if not self.enabled:
            return False
        timestamp = record.timestamp
        if self.time_of_day is not None and (timestamp.hour, timestamp.minute) != (
            self.time_of_day.hour,
            self.time_of_day.minute,
        ):
            return False
        returns = record.returns_for(self.returns)
        if returns is None:
            return False
        if self.equity_curve and timestamp - self.equity_curve[-1].timestamp < self.holding_time:
            return False
        trade = costs.evaluate(self.side, timestamp, returns)
        if trade is None:
            return False
        net, percent = trade

        weekday = timestamp.weekday()
        banned_day = self.banned_day
        if self.optimize_weekdays and weekday < WEEKDAYS:
            self._optimize_weekdays(percent, weekday)
        if banned_day is not None and weekday == banned_day:
            return False

        # Leverage scales cash only; percent stays unlevered.
        pnl = float(net) * leverage if leverage is not None else float(net)
        self.equity_curve.append(EquitySample(timestamp, self.cash + pnl))
        self.returns_samples.append((timestamp, percent))
        self.weekday_returns[weekday].append(percent)
        self.cumulative_return *= max(0.0, 1.0 + percent)
        self.cumulative_max = max(self.cumulative_max, self.cumulative_return)
        drawdown = 1.0 - self.cumulative_return / self.cumulative_max
        self.drawdown_max = max(self.drawdown_max, drawdown)
        return True

    def _optimize_weekdays(self, percent: float, weekday: int) -> None:
        self.optimization_returns[weekday].append(percent)
        if any(len(buffer) < WEEKDAY_OPTIMIZATION_BUFFER for buffer in self.optimization_returns):
            return
        sharpe = [create_sharpe_ratio(list(buffer)) for buffer in self.optimization_returns]
        worst = min(range(WEEKDAYS), key=lambda index: sharpe[index])
        self.banned_day = worst if sharpe[worst] < self.weekday_sharpe_threshold else None

    def post_process(self, trading_days: int, segments: int, retain_samples: bool = False) -> None:
        days_traded = len({sample.timestamp.date() for sample in self.equity_curve})
        self.trades_ratio = days_traded / trading_days if trading_days > 0 else 0.0
        scores = create_segment_scores(self.returns_samples, segments)
        self.risk_adjusted = create_risk_adjusted(self.returns_samples)
        self.risk_adjusted_min = min(scores)
        self.risk_adjusted_recent = scores[-1]
        if not retain_samples:
            self.returns_samples = []

    def disable(self) -> None:
        self.enabled = False
        self.equity_curve = []
        self.returns_samples = []
        self.weekday_returns = [[] for _ in range(DAYS_PER_WEEK)]
        for buffer in self.optimization_returns:
            buffer.clear()


def count_trading_days(records: Iterable[FeatureRecord]) -> int:
    return len({record.timestamp.date() for record in records})
