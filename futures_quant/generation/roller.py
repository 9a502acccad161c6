"""Open-interest contract roller."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from futures_quant.ingest.csv_reader import RawDailyRow
from futures_quant.market.globex import GlobexCode

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DailyRecord:
    date: date
    close: float


@dataclass(slots=True)
class RolledSeries:
    """Continuous F-number series: which contract is held on each date, and its daily closes."""

    f_number: int
    contracts: dict[date, GlobexCode] = field(default_factory=dict)
    daily_records: list[DailyRecord] = field(default_factory=list)


def group_by_date(rows: Iterable[RawDailyRow]) -> dict[date, list[RawDailyRow]]:
    """Group rows by calendar date, ranked by open interest descending.

    The sort is stable so equal open interest keeps the first-seen contract first.
    """
    grouped: dict[date, list[RawDailyRow]] = defaultdict(list)
    for row in rows:
        grouped[row.date].append(row)
    return {
        row_date: sorted(grouped[row_date], key=lambda row: row.open_interest, reverse=True)
        for row_date in sorted(grouped)
    }


def roll_contracts(ranked: dict[date, list[RawDailyRow]], f_number: int, symbol: str = "") -> RolledSeries:
    """Select the contract ranked ``f_number`` (1 = highest open interest) for every date."""
    if f_number < 1:
        raise ValueError("f_number must be >= 1")
    series = RolledSeries(f_number=f_number)
    index = f_number - 1
    for row_date, rows in ranked.items():
        if index >= len(rows):
            LOGGER.debug("[%s] Unable to determine F%d record at %s", symbol, f_number, row_date)
            continue
        row = rows[index]
        series.contracts[row_date] = row.contract
        series.daily_records.append(DailyRecord(date=row_date, close=float(row.close)))
    return series
