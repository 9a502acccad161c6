from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

# Monday 2024-01-01 to Friday 2024-03-29.
SAMPLE_START = date(2024, 1, 1)
SAMPLE_DAYS = 89
CONTRACTS = (("ESH24", 100, 0), ("ESM24", 50, 40))


def sample_weekdays() -> list[date]:
    days = [SAMPLE_START + timedelta(days=offset) for offset in range(SAMPLE_DAYS)]
    return [day for day in days if day.weekday() < 5]


def _price(step: int, offset: int) -> str:
    ticks = 16000 + offset + (step * 37) % 61 + step // 10
    return f"{ticks * 0.25:.2f}"


def write_raw_data(raw_dir: Path, symbol: str = "ES") -> Path:
    """Hourly and daily CSVs for two overlapping contracts ranked by open interest."""
    raw_dir.mkdir(parents=True, exist_ok=True)
    daily = ["symbol,time,close,open_interest"]
    hourly = ["symbol,time,close"]
    step = 0
    for day in sample_weekdays():
        for hour in range(24):
            timestamp = datetime(day.year, day.month, day.day, hour)
            for contract, _, offset in CONTRACTS:
                hourly.append(f"{contract},{timestamp:%Y-%m-%d %H:%M},{_price(step, offset)}")
            step += 1
        for contract, open_interest, offset in CONTRACTS:
            daily.append(f"{contract},{day:%Y-%m-%d},{_price(step, offset)},{open_interest}")
    (raw_dir / f"{symbol}.D1.csv").write_text("\n".join(daily) + "\n", encoding="utf-8")
    (raw_dir / f"{symbol}.H1.csv").write_text("\n".join(hourly) + "\n", encoding="utf-8")
    return raw_dir


@pytest.fixture(autouse=True)
def _isolated_log_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("FQ_LOG_DIR", str(tmp_path / "logs"))
    yield
    for logger in (logging.getLogger("futures_quant"), logging.getLogger()):
        for handler in list(logger.handlers):
            if logger.name == "futures_quant" or getattr(handler, "_futures_root_file_handler", False):
                logger.removeHandler(handler)
                handler.close()


@pytest.fixture
def raw_data_dir(tmp_path) -> Path:
    return write_raw_data(tmp_path / "raw")
