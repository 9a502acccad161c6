import math
from collections.abc import Sequence
from datetime import datetime

import numpy as np

MONTHS_PER_YEAR = 12


def _finite_array(values):
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return arr
    return arr[np.isfinite(arr)]


def _month_index(timestamp: datetime) -> int:
    return timestamp.year * MONTHS_PER_YEAR + timestamp.month - 1


def create_monthly_returns(samples: Sequence[tuple[datetime, float]]) -> list[float]:
    """Compound per-trade returns into calendar-month returns.

    Every month between the first and the last sample is present; months
    without trades contribute 0.0.
    """
    if not samples:
        return []
    first = _month_index(samples[0][0])
    last = _month_index(samples[-1][0])
    factors = [1.0] * (last - first + 1)
    for timestamp, percent in samples:
        factors[_month_index(timestamp) - first] *= 1.0 + percent
    return [factor - 1.0 for factor in factors]


def create_risk_adjusted(samples: Sequence[tuple[datetime, float]], risk_free=0.0):
    """Annualized Sharpe ratio of the monthly returns of (timestamp, percent) samples."""
    monthly = _finite_array(create_monthly_returns(samples))
    if monthly.size < 2:
        return 0.0
    std = np.std(monthly, ddof=1)
    if std == 0 or not np.isfinite(std):
        return 0.0
    ratio = np.sqrt(MONTHS_PER_YEAR) * (np.mean(monthly) - risk_free) / std
    if not np.isfinite(ratio):
        return 0.0
    return float(ratio)


def create_segment_scores(samples: Sequence[tuple[datetime, float]], segments: int) -> list[float]:
    """Risk-adjusted score of ``segments`` equal slices; the last slice takes the remainder."""
    segments = max(1, int(segments))
    size = len(samples) // segments
    scores = []
    for index in range(segments):
        start = index * size
        end = len(samples) if index == segments - 1 else start + size
        scores.append(create_risk_adjusted(samples[start:end]))
    return scores


def create_sharpe_ratio(returns):
    """Plain mean / sample stddev, used to rank weekdays."""
    clean = _finite_array(returns)
    if clean.size < 2:
        return 0.0
    std = np.std(clean, ddof=1)
    if std == 0 or not np.isfinite(std):
        return 0.0
    return float(np.mean(clean) / std)


def create_compound_return(returns) -> float:
    clean = _finite_array(returns)
    if clean.size == 0:
        return 0.0
    return float(np.prod(np.maximum(1.0 + clean, 0.0)) - 1.0)


def create_max_drawdown(returns) -> float:
    """Largest peak-to-trough decline of the compounded curve of ``returns``."""
    clean = _finite_array(returns)
    if clean.size == 0:
        return 0.0
    curve = np.concatenate(([1.0], np.cumprod(np.maximum(1.0 + clean, 0.0))))
    peaks = np.maximum.accumulate(curve)
    return float(np.max(1.0 - curve / peaks))


def create_pearson(x, y) -> float:
    """Pearson correlation; 0.0 when it is undefined (fewer than two points or no variance)."""
    left = np.asarray(x, dtype=np.float64)
    right = np.asarray(y, dtype=np.float64)
    if left.size < 2 or left.size != right.size:
        return 0.0
    if np.std(left) == 0 or np.std(right) == 0:
        return 0.0
    coefficient = float(np.corrcoef(left, right)[0, 1])
    return coefficient if math.isfinite(coefficient) else 0.0


def describe(values):
    """Return (min, max, mean, sample stddev) of a non-empty sequence."""
    arr = np.asarray(values, dtype=np.float64)
    std = float(np.std(arr, ddof=1)) if arr.size > 1 else 0.0
    return float(np.min(arr)), float(np.max(arr)), float(np.mean(arr)), std
