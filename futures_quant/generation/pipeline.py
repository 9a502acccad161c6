"""Archive generation: raw CSVs -> rolled series -> features -> quantiles -> ``.gobz``."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from futures_quant.configuration.schema import RuntimeConfig
from futures_quant.exceptions import IntegrityError
from futures_quant.generation.features import generate_feature_records
from futures_quant.generation.quantile import quantile_transform
from futures_quant.generation.roller import group_by_date, roll_contracts
from futures_quant.ingest.csv_reader import raw_csv_path, read_daily_rows, read_hourly_closes
from futures_quant.market.asset import Asset
from futures_quant.optimization.parallel import parallel_for_each
from futures_quant.storage.archive import Archive, archive_path, write_archive
from futures_quant.utils.logging_utils import setup_logging

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GenerationJob:
    asset: Asset
    config: RuntimeConfig
    force_overwrite: bool = False


def build_archives(asset: Asset, config: RuntimeConfig) -> list[Archive]:
    """Build one archive per F-number of ``asset`` without touching the disk."""
    cutoff = config.generation.cutoff_date
    raw_dir = config.paths.raw_data_path
    daily = read_daily_rows(raw_csv_path(raw_dir, asset, "D1"), asset, cutoff)
    hourly = read_hourly_closes(raw_csv_path(raw_dir, asset, "H1"), asset, cutoff)
    LOGGER.info("[%s] Excluded %.2f%% of records", asset.symbol, daily.exclusion_ratio * 100.0)
    ranked = group_by_date(daily.rows)

    archives = []
    for f_number in range(1, asset.f_records + 1):
        series = roll_contracts(ranked, f_number, asset.symbol)
        records = generate_feature_records(series, hourly, asset.tick_size, asset.symbol)
        if config.generation.quantile_transform and records:
            records = quantile_transform(
                records,
                config.generation.quantile_buffer_size,
                config.generation.quantile_stride,
            )
        archives.append(
            Archive(
                symbol=asset.series_symbol(f_number),
                daily_records=series.daily_records,
                intraday_records=records,
            )
        )
    return archives


def generate_asset(job: GenerationJob) -> int:
    """Generate and write the archives of one asset; return the number written."""
    asset = job.asset
    config = job.config
    first_path = archive_path(config.paths.archive_path, asset.symbol, 1)
    if not job.force_overwrite and not config.generation.overwrite_archives and first_path.exists():
        LOGGER.info("[%s] Archive already exists, skipping: %s", asset.symbol, first_path)
        return 0
    written = 0
    for f_number, archive in enumerate(build_archives(asset, config), start=1):
        path = archive_path(config.paths.archive_path, asset.symbol, f_number)
        size = write_archive(path, archive)
        LOGGER.info(
            "[%s] Wrote archive to %s (%.1f MiB, %d intraday records)",
            archive.symbol,
            path,
            size / 1024.0 / 1024.0,
            len(archive.intraday_records),
        )
        written += 1
    return written


def _init_worker(log_level: str) -> None:
    setup_logging("futures_quant", log_level)


def generate(config: RuntimeConfig, assets: list[Asset], symbol: str | None = None) -> None:
    """Generate archives for every asset, or force-regenerate a single symbol."""
    start = time.perf_counter()
    if symbol is not None:
        matches = [asset for asset in assets if asset.symbol == symbol]
        if not matches:
            raise IntegrityError(f"Unable to find an asset matching symbol {symbol}")
        generate_asset(GenerationJob(matches[0], config, force_overwrite=True))
    else:
        parallel_for_each(
            generate_asset,
            [GenerationJob(asset, config) for asset in assets],
            max_workers=config.execution.max_workers,
            initializer=_init_worker,
            initargs=(config.system.log_level,),
        )
    LOGGER.info("Generated archives in %.2f s", time.perf_counter() - start)
