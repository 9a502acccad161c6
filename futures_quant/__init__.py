"""Futures research pipeline: continuous series, features, data mining and backtests."""

__version__ = "0.1.0"
