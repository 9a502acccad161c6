"""Point-in-time FX conversion of instrument-currency amounts into USD.

Rates are hourly closes of ``^<CUR>USD.H1.csv``. Timezones are ignored and a
missing hour falls back to the most recent close at most 50 hours earlier.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

from futures_quant.exceptions import IntegrityError
from futures_quant.ingest.csv_reader import read_fx_rates
from futures_quant.market.asset import USD

LOGGER = logging.getLogger(__name__)

MAX_LOOKBACK_HOURS = 50
_HOUR = timedelta(hours=1)


def fx_csv_path(fx_path: str | Path, currency: str) -> Path:
    return Path(fx_path) / f"^{currency}{USD}.H1.csv"


class CurrencyConverter:
    """Read-only map of currency -> (timestamp -> USD rate)."""

    __slots__ = ("_rates",)

    def __init__(self, rates: Mapping[str, Mapping[datetime, Decimal]] | None = None):
        self._rates = {currency.upper(): dict(series) for currency, series in (rates or {}).items()}

    @classmethod
    def load(cls, fx_path: str | Path, currencies: Iterable[str]) -> CurrencyConverter:
        rates = {}
        for currency in sorted({str(item).upper() for item in currencies} - {USD}):
            path = fx_csv_path(fx_path, currency)
            rates[currency] = read_fx_rates(path)
            LOGGER.info("Loaded %d %s%s rates from %s", len(rates[currency]), currency, USD, path)
        return cls(rates)

    @property
    def currencies(self) -> list[str]:
        return sorted(self._rates)

    def rate(self, currency: str, timestamp: datetime) -> Decimal:
        """USD value of one unit of ``currency`` at ``timestamp``."""
        if currency == USD:
            return Decimal(1)
        series = self._rates.get(currency)
        if series is None:
            raise IntegrityError(f"Failed to find currency {currency}")
        probe = timestamp
        for _ in range(MAX_LOOKBACK_HOURS + 1):
            close = series.get(probe)
            if close is not None:
                return close
            probe -= _HOUR
        raise IntegrityError(
            f"Failed to find a matching record for timestamp {timestamp:%Y-%m-%d %H:%M} "
            f"for currency {currency}"
        )

    def convert(self, amount: Decimal, currency: str, timestamp: datetime) -> Decimal:
        if currency == USD:
            return amount
        return amount * self.rate(currency, timestamp)
