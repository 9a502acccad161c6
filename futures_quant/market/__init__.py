"""Instrument and contract-code model."""

from futures_quant.market.asset import USD, Asset
from futures_quant.market.globex import GlobexCode

__all__ = ["USD", "Asset", "GlobexCode"]
