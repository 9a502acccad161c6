"""Currency conversion."""

from futures_quant.fx.currency import MAX_LOOKBACK_HOURS, CurrencyConverter, fx_csv_path

__all__ = ["MAX_LOOKBACK_HOURS", "CurrencyConverter", "fx_csv_path"]
