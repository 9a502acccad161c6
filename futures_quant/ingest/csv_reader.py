"""Vendor CSV ingestion.

Every column is read as text through polars and converted row by row so that
prices stay exact ``Decimal`` values and malformed cells can be reported with
their file and line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import polars as pl

from futures_quant.exceptions import InputDataError
from futures_quant.market.asset import Asset
from futures_quant.market.globex import GlobexCode
from futures_quant.utils.timeutils import parse_date, parse_timestamp

LOGGER = logging.getLogger(__name__)

DAILY_COLUMNS: tuple[str, ...] = ("symbol", "time", "close", "open_interest")
HOURLY_COLUMNS: tuple[str, ...] = ("symbol", "time", "close")
FX_COLUMNS: tuple[str, ...] = ("time", "close")


@dataclass(slots=True, frozen=True)
class RawDailyRow:
    contract: GlobexCode
    date: date
    close: Decimal
    open_interest: int


@dataclass(slots=True)
class DailyRowsResult:
    rows: list[RawDailyRow]
    included: int
    excluded: int

    @property
    def exclusion_ratio(self) -> float:
        total = self.included + self.excluded
        return self.excluded / total if total else 0.0


def raw_csv_path(raw_data_path: str | Path, asset: Asset, suffix: str) -> Path:
    return Path(raw_data_path) / f"{asset.raw_symbol}.{suffix}.csv"


def read_csv_columns(path: str | Path, columns: tuple[str, ...]) -> pl.DataFrame:
    """Read a CSV with every column as text and project it onto ``columns``."""
    path = Path(path)
    if not path.exists():
        raise InputDataError(f"CSV file not found: {path}")
    try:
        frame = pl.read_csv(path, infer_schema_length=0)
    except pl.exceptions.PolarsError as exc:
        raise InputDataError(f"Failed to read CSV file {path}: {exc}") from exc
    missing = [column for column in columns if column not in frame.columns]
    if missing:
        raise InputDataError(f"CSV file {path} is missing required column(s): {', '.join(missing)}")
    return frame.select(list(columns))


def _cell_error(path: Path, line: int, column: str, value: object) -> InputDataError:
    return InputDataError(f"Failed to parse {column} value {value!r} in {path} (line {line})")


def parse_decimal(value: object, path: Path, line: int, column: str) -> Decimal:
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, TypeError) as exc:
        raise _cell_error(path, line, column, value) from exc
    if not parsed.is_finite():
        raise _cell_error(path, line, column, value)
    return parsed


def _parse_contract(value: object, path: Path, line: int) -> GlobexCode:
    try:
        return GlobexCode.parse(str(value))
    except ValueError as exc:
        raise InputDataError(f"{exc} in {path} (line {line})") from exc


def _parse_date(value: object, path: Path, line: int) -> date:
    try:
        return parse_date(value)
    except (TypeError, ValueError) as exc:
        raise _cell_error(path, line, "time", value) from exc


def _parse_timestamp(value: object, path: Path, line: int) -> datetime:
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError) as exc:
        raise _cell_error(path, line, "time", value) from exc


def read_daily_rows(path: str | Path, asset: Asset, cutoff_date: date | None = None) -> DailyRowsResult:
    """Read ``symbol,time,close,open_interest`` rows, applying the cutoff and asset filters."""
    path = Path(path)
    frame = read_csv_columns(path, DAILY_COLUMNS)
    rows: list[RawDailyRow] = []
    excluded = 0
    # Line 1 is the header.
    for line, (symbol, time_value, close, open_interest) in enumerate(frame.iter_rows(), start=2):
        contract = _parse_contract(symbol, path, line)
        row_date = _parse_date(time_value, path, line)
        if cutoff_date is not None and row_date < cutoff_date:
            excluded += 1
            continue
        try:
            included = asset.include_daily_row(row_date, contract)
        except ValueError as exc:
            raise InputDataError(f"{exc} in {path} (line {line})") from exc
        if not included:
            excluded += 1
            continue
        try:
            interest = int(str(open_interest).strip())
        except (TypeError, ValueError) as exc:
            raise _cell_error(path, line, "open_interest", open_interest) from exc
        rows.append(
            RawDailyRow(
                contract=contract,
                date=row_date,
                close=parse_decimal(close, path, line, "close"),
                open_interest=interest,
            )
        )
    return DailyRowsResult(rows=rows, included=len(rows), excluded=excluded)


def read_hourly_closes(
    path: str | Path, asset: Asset, cutoff_date: date | None = None
) -> dict[tuple[GlobexCode, datetime], Decimal]:
    """Read ``symbol,time,close`` rows into a (contract, timestamp) -> close map."""
    path = Path(path)
    frame = read_csv_columns(path, HOURLY_COLUMNS)
    closes: dict[tuple[GlobexCode, datetime], Decimal] = {}
    for line, (symbol, time_value, close) in enumerate(frame.iter_rows(), start=2):
        contract = _parse_contract(symbol, path, line)
        timestamp = _parse_timestamp(time_value, path, line)
        if cutoff_date is not None and timestamp.date() < cutoff_date:
            continue
        if not asset.include_hourly_row(timestamp):
            continue
        closes[(contract, timestamp)] = parse_decimal(close, path, line, "close")
    LOGGER.debug("[%s] Read %d hourly closes from %s", asset.symbol, len(closes), path)
    return closes


def read_fx_rates(path: str | Path) -> dict[datetime, Decimal]:
    """Read an hourly ``time,close`` FX file into a timestamp -> rate map."""
    path = Path(path)
    frame = read_csv_columns(path, FX_COLUMNS)
    rates: dict[datetime, Decimal] = {}
    for line, (time_value, close) in enumerate(frame.iter_rows(), start=2):
        rates[_parse_timestamp(time_value, path, line)] = parse_decimal(close, path, line, "close")
    return rates
