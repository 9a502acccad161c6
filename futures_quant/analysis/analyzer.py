"""Summary statistics of the features and returns labels stored in an archive."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from futures_quant.exceptions import IntegrityError
from futures_quant.generation.features import FEATURES, RETURNS, FeatureRecord
from futures_quant.storage.archive import ARCHIVE_EXTENSION, Archive, read_archive

LOGGER = logging.getLogger(__name__)

DEFAULT_MIN_NON_NULL = 1000
DEFAULT_HISTOGRAM_BINS = 50


@dataclass(slots=True)
class FeatureStats:
    name: str
    count: int
    null_ratio: float
    min: float
    max: float
    mean: float
    std: float
    histogram: list[int] = field(default_factory=list)
    bin_edges: list[float] = field(default_factory=list)


@dataclass(slots=True)
class ArchiveSummary:
    symbol: str
    daily_records: int
    intraday_records: int
    first_timestamp: str | None
    last_timestamp: str | None
    features: list[FeatureStats] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def lines(self) -> list[str]:
        out = [
            f"Symbol: {self.symbol}",
            f"Daily records: {self.daily_records}",
            f"Intraday records: {self.intraday_records} ({self.first_timestamp} to {self.last_timestamp})",
            "",
        ]
        for stats in self.features:
            out.append(
                f"{stats.name:<16} n={stats.count:<8d} null={stats.null_ratio:6.2%} "
                f"min={stats.min:.5f} max={stats.max:.5f} mean={stats.mean:.5f} std={stats.std:.5f}"
            )
        return out


def resolve_archive_path(archive_dir: str | Path, symbol: str) -> Path:
    """``ES`` selects the F1 archive, ``ES.F2`` names the series explicitly."""
    if "." in symbol:
        return Path(archive_dir) / f"{symbol}.{ARCHIVE_EXTENSION}"
    return Path(archive_dir) / f"{symbol}.F1.{ARCHIVE_EXTENSION}"


def _series_stats(
    name: str,
    values: list[float],
    nulls: int,
    symbol: str,
    min_non_null: int,
    bins: int,
) -> FeatureStats:
    if len(values) < min_non_null:
        raise IntegrityError(
            f"Not enough non-null values ({len(values)}) for {name} in archive {symbol}"
        )
    array = np.asarray(values, dtype=np.float64)
    histogram, edges = np.histogram(array, bins=bins)
    return FeatureStats(
        name=name,
        count=int(array.size),
        null_ratio=nulls / (nulls + array.size),
        min=float(np.min(array)),
        max=float(np.max(array)),
        mean=float(np.mean(array)),
        std=float(np.std(array, ddof=1)) if array.size > 1 else 0.0,
        histogram=[int(item) for item in histogram],
        bin_edges=[float(item) for item in edges],
    )


def _collect(records: list[FeatureRecord], select) -> tuple[list[float], int]:
    values = []
    nulls = 0
    for record in records:
        value = select(record)
        if value is None:
            nulls += 1
        else:
            values.append(float(value))
    return values, nulls


def analyze_archive(
    archive: Archive,
    min_non_null: int = DEFAULT_MIN_NON_NULL,
    bins: int = DEFAULT_HISTOGRAM_BINS,
) -> ArchiveSummary:
    """Stats for every feature and every returns label (as tick deltas)."""
    records = archive.intraday_records
    summary = ArchiveSummary(
        symbol=archive.symbol,
        daily_records=len(archive.daily_records),
        intraday_records=len(records),
        first_timestamp=records[0].timestamp.isoformat(sep=" ") if records else None,
        last_timestamp=records[-1].timestamp.isoformat(sep=" ") if records else None,
    )
    for descriptor in FEATURES:
        values, nulls = _collect(records, lambda record, d=descriptor: record.features[d.index])
        summary.features.append(
            _series_stats(descriptor.name, values, nulls, archive.symbol, min_non_null, bins)
        )
    for descriptor in RETURNS:

        def ticks(record: FeatureRecord, d=descriptor) -> int | None:
            returns = record.returns[d.index]
            return None if returns is None else returns.ticks

        values, nulls = _collect(records, ticks)
        summary.features.append(
            _series_stats(descriptor.name, values, nulls, archive.symbol, min_non_null, bins)
        )
    return summary


def analyze(
    archive_dir: str | Path,
    symbol: str,
    min_non_null: int = DEFAULT_MIN_NON_NULL,
    bins: int = DEFAULT_HISTOGRAM_BINS,
    output: str | Path | None = None,
) -> ArchiveSummary:
    path = resolve_archive_path(archive_dir, symbol)
    LOGGER.info("Analyzing %s", path)
    summary = analyze_archive(read_archive(path), min_non_null=min_non_null, bins=bins)
    if output:
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w", encoding="utf-8") as file:
            json.dump(summary.to_dict(), file, indent=2)
        LOGGER.info("Wrote archive statistics to %s", output)
    return summary
