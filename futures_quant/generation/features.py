"""Momentum features and forward-return labels on a rolled hourly series."""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from futures_quant.exceptions import IntegrityError
from futures_quant.generation.roller import RolledSeries
from futures_quant.market.globex import GlobexCode

LOGGER = logging.getLogger(__name__)

_DAY = timedelta(hours=24)


@dataclass(slots=True, frozen=True)
class FeatureDescriptor:
    """Momentum over ``horizon`` hours ending ``lag`` hours before the bar."""

    index: int
    name: str
    archive_name: str
    horizon: int
    lag: int = 0
    anchored: bool = False
    quantile: bool = True


@dataclass(slots=True, frozen=True)
class ReturnsDescriptor:
    index: int
    name: str
    archive_name: str
    horizon: int


FEATURES: tuple[FeatureDescriptor, ...] = (
    FeatureDescriptor(0, "momentum_1h", "Momentum1H", 1),
    FeatureDescriptor(1, "momentum_2h", "Momentum2H", 2),
    FeatureDescriptor(2, "momentum_4h", "Momentum4H", 4),
    FeatureDescriptor(3, "momentum_8h", "Momentum8H", 8),
    FeatureDescriptor(4, "momentum_1d", "Momentum1D", 24, anchored=True),
    FeatureDescriptor(5, "momentum_2d", "Momentum2D", 48, anchored=True),
    FeatureDescriptor(6, "momentum_5d", "Momentum5D", 120, anchored=True),
    FeatureDescriptor(7, "momentum_10d", "Momentum10D", 240, anchored=True),
    FeatureDescriptor(8, "momentum_1d_lag", "Momentum1DLag", 48, lag=24, anchored=True),
)

RETURNS: tuple[ReturnsDescriptor, ...] = (
    ReturnsDescriptor(0, "returns_4h", "Returns4H", 4),
    ReturnsDescriptor(1, "returns_8h", "Returns8H", 8),
    ReturnsDescriptor(2, "returns_16h", "Returns16H", 16),
    ReturnsDescriptor(3, "returns_24h", "Returns24H", 24),
    ReturnsDescriptor(4, "returns_48h", "Returns48H", 48),
    ReturnsDescriptor(5, "returns_72h", "Returns72H", 72),
)


def _normalize_name(name: str) -> str:
    return str(name).strip().lower().replace("_", "")


_FEATURES_BY_NAME = {_normalize_name(item.name): item for item in FEATURES}
_FEATURES_BY_NAME.update({_normalize_name(item.archive_name): item for item in FEATURES})
_RETURNS_BY_NAME = {_normalize_name(item.name): item for item in RETURNS}
_RETURNS_BY_NAME.update({_normalize_name(item.archive_name): item for item in RETURNS})


def feature_by_name(name: str) -> FeatureDescriptor:
    """Resolve ``momentum_1d`` or ``Momentum1D`` to its descriptor."""
    try:
        return _FEATURES_BY_NAME[_normalize_name(name)]
    except KeyError:
        raise IntegrityError(f"Unable to find a feature named {name!r}") from None


def returns_by_name(name: str) -> ReturnsDescriptor:
    try:
        return _RETURNS_BY_NAME[_normalize_name(name)]
    except KeyError:
        raise IntegrityError(f"Unable to find a returns label named {name!r}") from None


def returns_by_horizon(hours: int) -> ReturnsDescriptor:
    for descriptor in RETURNS:
        if descriptor.horizon == hours:
            return descriptor
    raise IntegrityError(f"No returns label with a holding time of {hours}h")


@dataclass(slots=True, frozen=True)
class ReturnsRecord:
    """Tick counts for a holding period starting at the bar close."""

    high: int
    low: int
    close1: int
    close2: int

    @property
    def ticks(self) -> int:
        return self.close2 - self.close1


@dataclass(slots=True)
class FeatureRecord:
    timestamp: datetime
    features: list[float | None]
    returns: list[ReturnsRecord | None]

    @classmethod
    def empty(cls, timestamp: datetime) -> FeatureRecord:
        return cls(timestamp, [None] * len(FEATURES), [None] * len(RETURNS))

    def feature(self, descriptor: FeatureDescriptor) -> float | None:
        return self.features[descriptor.index]

    def returns_for(self, descriptor: ReturnsDescriptor) -> ReturnsRecord | None:
        return self.returns[descriptor.index]

    def has_features(self) -> bool:
        return any(value is not None for value in self.features)

    def has_returns(self) -> bool:
        return any(value is not None for value in self.returns)


def business_hours_adjust(timestamp: datetime, offset_hours: int) -> datetime:
    """Shift by ``offset_hours`` and step whole days past weekends in the same direction."""
    candidate = timestamp + timedelta(hours=offset_hours)
    step = -_DAY if offset_hours < 0 else _DAY
    while candidate.weekday() >= 5:
        candidate += step
    return candidate


def rate_of_change(current: Decimal | float, previous: Decimal | float) -> tuple[float, bool]:
    """Return ``(current / previous - 1, True)``, or ``(0.0, False)`` for a non-positive base."""
    if previous <= 0 or current < 0:
        return 0.0, False
    if isinstance(current, Decimal) and isinstance(previous, Decimal):
        return float(current / previous - 1), True
    return float(current) / float(previous) - 1.0, True


def price_to_ticks(price: Decimal, tick_size: Decimal) -> int:
    return int((price / tick_size).quantize(Decimal(1), rounding=ROUND_HALF_UP))


class _ContractCloses:
    """Sorted hourly closes of a single contract for range high/low lookups."""

    __slots__ = ("timestamps", "closes")

    def __init__(self, points: list[tuple[datetime, Decimal]]):
        points.sort(key=lambda point: point[0])
        self.timestamps = [point[0] for point in points]
        self.closes = [point[1] for point in points]

    def window(self, start: datetime, end: datetime) -> list[Decimal]:
        """Closes with ``start < timestamp <= end``."""
        lo = bisect_right(self.timestamps, start)
        hi = bisect_right(self.timestamps, end)
        return self.closes[lo:hi]


def generate_feature_records(
    series: RolledSeries,
    hourly_closes: Mapping[tuple[GlobexCode, datetime], Decimal],
    tick_size: Decimal,
    symbol: str = "",
) -> list[FeatureRecord]:
    """Emit one record per hourly bar of the mapped contract that carries a feature or label."""
    by_contract: dict[GlobexCode, list[tuple[datetime, Decimal]]] = defaultdict(list)
    for (contract, timestamp), close in hourly_closes.items():
        by_contract[contract].append((timestamp, close))
    contract_closes = {contract: _ContractCloses(points) for contract, points in by_contract.items()}
    timestamps = sorted({timestamp for _, timestamp in hourly_closes})

    records: list[FeatureRecord] = []
    unmapped = 0
    for timestamp in timestamps:
        contract = series.contracts.get(timestamp.date())
        if contract is None:
            unmapped += 1
            continue
        close = hourly_closes.get((contract, timestamp))
        if close is None:
            continue
        record = FeatureRecord.empty(timestamp)

        for descriptor in FEATURES:
            start = business_hours_adjust(timestamp, -descriptor.horizon)
            end = business_hours_adjust(timestamp, -descriptor.lag) if descriptor.lag > 0 else timestamp
            start_close = hourly_closes.get((contract, start))
            end_close = close if end == timestamp else hourly_closes.get((contract, end))
            if start_close is None or end_close is None:
                continue
            value, valid = rate_of_change(end_close, start_close)
            if valid:
                record.features[descriptor.index] = value

        close1 = price_to_ticks(close, tick_size)
        for descriptor in RETURNS:
            exit_time = business_hours_adjust(timestamp, descriptor.horizon)
            exit_close = hourly_closes.get((contract, exit_time))
            if exit_close is None:
                continue
            window = contract_closes[contract].window(timestamp, exit_time)
            record.returns[descriptor.index] = ReturnsRecord(
                high=price_to_ticks(max(window), tick_size),
                low=price_to_ticks(min(window), tick_size),
                close1=close1,
                close2=price_to_ticks(exit_close, tick_size),
            )

        if record.has_features() or record.has_returns():
            records.append(record)
    if unmapped:
        LOGGER.debug("[%s] F%d: %d hourly timestamps without a mapped contract", symbol, series.f_number, unmapped)
    return records
