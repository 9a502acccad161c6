"""Instrument definitions and per-contract row filters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from futures_quant.market.globex import GlobexCode

USD = "USD"


@dataclass(slots=True)
class Asset:
    """A futures instrument as configured in ``assets.yaml``."""

    symbol: str
    tick_size: Decimal
    tick_value: Decimal
    vendor_symbol: str = ""
    name: str = ""
    currency: str = USD
    broker_fee: Decimal = Decimal("0")
    exchange_fee: Decimal = Decimal("0")
    spread: int = 0
    f_records: int = 1
    features_only: bool = False
    legacy_cutoff: GlobexCode | None = None
    first_filter_contract: GlobexCode | None = None
    last_filter_contract: GlobexCode | None = None
    include_months: list[str] | None = None
    exclude_months: list[str] | None = None
    cutoff_date: date | None = None
    exclude_records: frozenset[datetime] = field(default_factory=frozenset)

    @property
    def raw_symbol(self) -> str:
        return self.vendor_symbol or self.symbol

    @property
    def fees(self) -> Decimal:
        return self.broker_fee + self.exchange_fee

    def series_symbol(self, f_number: int) -> str:
        """Label of the F-number stream: ``ES`` for F1, ``ES.F2`` for F2 and so on."""
        if f_number <= 1:
            return self.symbol
        return f"{self.symbol}.F{f_number}"

    def include_daily_row(self, row_date: date, contract: GlobexCode) -> bool:
        if self.cutoff_date is not None and row_date < self.cutoff_date:
            return False
        if self.legacy_cutoff is not None and contract < self.legacy_cutoff:
            return False
        # Month filters only apply to contracts inside [first, last).
        first = self.first_filter_contract
        last = self.last_filter_contract
        if first is not None and contract < first:
            return True
        if last is not None and not contract < last:
            return True
        if self.include_months is not None:
            return contract.month in self.include_months
        if self.exclude_months is not None:
            return contract.month not in self.exclude_months
        return True

    def include_hourly_row(self, timestamp: datetime) -> bool:
        if self.cutoff_date is not None and timestamp.date() < self.cutoff_date:
            return False
        return timestamp not in self.exclude_records
