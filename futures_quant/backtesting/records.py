"""In-memory view of archives restricted to a date and time-of-day window."""

from __future__ import annotations

import logging
import time as time_module
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path

from futures_quant.exceptions import IntegrityError
from futures_quant.generation.features import FeatureRecord
from futures_quant.generation.roller import DailyRecord
from futures_quant.market.asset import Asset
from futures_quant.optimization.parallel import parallel_map
from futures_quant.storage.archive import archive_path, read_archive
from futures_quant.utils.timeutils import start_of_day

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RecordWindow:
    """``[date_min, date_max)`` on calendar dates, ``[time_min, time_max]`` on time of day."""

    date_min: date | None = None
    date_max: date | None = None
    time_min: time | None = None
    time_max: time | None = None

    def contains(self, timestamp: datetime) -> bool:
        if self.date_min is not None and timestamp < start_of_day(self.date_min):
            return False
        if self.date_max is not None and timestamp >= start_of_day(self.date_max):
            return False
        time_of_day = timestamp.time()
        if self.time_min is not None and time_of_day < self.time_min:
            return False
        if self.time_max is not None and time_of_day > self.time_max:
            return False
        return True

    def contains_date(self, value: date) -> bool:
        if self.date_min is not None and value < self.date_min:
            return False
        if self.date_max is not None and value >= self.date_max:
            return False
        return True


@dataclass(slots=True)
class AssetRecords:
    """One continuous series (``ES``, ``ES.F2``) of an asset."""

    asset: Asset
    symbol: str
    daily_records: list[DailyRecord] = field(default_factory=list)
    intraday_records: list[FeatureRecord] = field(default_factory=list)
    by_timestamp: dict[datetime, FeatureRecord] = field(default_factory=dict)

    @classmethod
    def from_records(
        cls,
        asset: Asset,
        symbol: str,
        daily_records: Iterable[DailyRecord],
        intraday_records: Iterable[FeatureRecord],
        window: RecordWindow | None = None,
    ) -> AssetRecords:
        window = window or RecordWindow()
        daily = [record for record in daily_records if window.contains_date(record.date)]
        intraday = [record for record in intraday_records if window.contains(record.timestamp)]
        return cls(
            asset=asset,
            symbol=symbol,
            daily_records=daily,
            intraday_records=intraday,
            by_timestamp={record.timestamp: record for record in intraday},
        )


@dataclass(slots=True, frozen=True)
class SeriesPath:
    asset: Asset
    symbol: str
    path: Path


def series_paths(archive_dir: str | Path, assets: Sequence[Asset], symbols: Iterable[str] | None = None) -> list[SeriesPath]:
    """Archive paths of every F-number series, optionally restricted to ``symbols``."""
    wanted = set(symbols) if symbols else None
    paths = []
    for asset in assets:
        for f_number in range(1, asset.f_records + 1):
            symbol = asset.series_symbol(f_number)
            if wanted is not None and symbol not in wanted:
                continue
            paths.append(SeriesPath(asset, symbol, archive_path(archive_dir, asset.symbol, f_number)))
    if wanted is not None:
        missing = wanted - {item.symbol for item in paths}
        if missing:
            raise IntegrityError(f"Unable to find records matching symbol(s): {', '.join(sorted(missing))}")
    return paths


def _load_series(job: tuple[SeriesPath, RecordWindow]) -> AssetRecords:
    series, window = job
    archive = read_archive(series.path)
    return AssetRecords.from_records(
        series.asset, series.symbol, archive.daily_records, archive.intraday_records, window
    )


def load_asset_records(
    archive_dir: str | Path,
    assets: Sequence[Asset],
    symbols: Iterable[str] | None,
    window: RecordWindow,
    max_workers: int = 0,
) -> list[AssetRecords]:
    """Read the archives of the requested series in parallel."""
    start = time_module.perf_counter()
    jobs = [(series, window) for series in series_paths(archive_dir, assets, symbols)]
    records = parallel_map(_load_series, jobs, max_workers=max_workers)
    LOGGER.info("Loaded %d archives in %.2f s", len(records), time_module.perf_counter() - start)
    return records


def find_records(records: Sequence[AssetRecords], symbol: str) -> AssetRecords:
    for item in records:
        if item.symbol == symbol:
            return item
    raise IntegrityError(f"Unable to find records matching symbol: {symbol}")
