"""Raw vendor CSV readers."""

from futures_quant.ingest.csv_reader import (
    DailyRowsResult,
    RawDailyRow,
    raw_csv_path,
    read_csv_columns,
    read_daily_rows,
    read_fx_rates,
    read_hourly_closes,
)

__all__ = [
    "DailyRowsResult",
    "RawDailyRow",
    "raw_csv_path",
    "read_csv_columns",
    "read_daily_rows",
    "read_fx_rates",
    "read_hourly_closes",
]
