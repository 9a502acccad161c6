"""Process-wide inputs threaded explicitly through the command entry points."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from futures_quant.configuration.loader import load_assets, load_runtime_config
from futures_quant.configuration.schema import RuntimeConfig
from futures_quant.exceptions import IntegrityError
from futures_quant.fx.currency import CurrencyConverter
from futures_quant.market.asset import Asset

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RuntimeContext:
    """Configuration, instruments and FX rates; each piece may be loaded once."""

    _config: RuntimeConfig | None = None
    _assets: list[Asset] | None = None
    _converter: CurrencyConverter | None = None

    def load_config(self, path: str = "config.yaml") -> RuntimeConfig:
        if self._config is not None:
            raise RuntimeError("Runtime configuration has already been loaded.")
        self._config = load_runtime_config(path)
        return self._config

    def load_assets(self, path: str = "assets.yaml") -> list[Asset]:
        if self._assets is not None:
            raise RuntimeError("Assets have already been loaded.")
        self._assets = load_assets(path)
        LOGGER.debug("Loaded %d assets from %s", len(self._assets), path)
        return self._assets

    def load_currencies(self) -> CurrencyConverter:
        if self._converter is not None:
            raise RuntimeError("Currencies have already been loaded.")
        currencies = {asset.currency for asset in self.assets}
        self._converter = CurrencyConverter.load(self.config.paths.fx_path, currencies)
        return self._converter

    def set_config(self, config: RuntimeConfig) -> None:
        if self._config is not None:
            raise RuntimeError("Runtime configuration has already been loaded.")
        self._config = config

    def set_assets(self, assets: list[Asset]) -> None:
        if self._assets is not None:
            raise RuntimeError("Assets have already been loaded.")
        self._assets = list(assets)

    def set_converter(self, converter: CurrencyConverter) -> None:
        if self._converter is not None:
            raise RuntimeError("Currencies have already been loaded.")
        self._converter = converter

    @property
    def config(self) -> RuntimeConfig:
        if self._config is None:
            raise RuntimeError("Runtime configuration has not been loaded.")
        return self._config

    @property
    def assets(self) -> list[Asset]:
        if self._assets is None:
            raise RuntimeError("Assets have not been loaded.")
        return self._assets

    @property
    def converter(self) -> CurrencyConverter:
        if self._converter is None:
            raise RuntimeError("Currencies have not been loaded.")
        return self._converter

    def find_asset(self, symbol: str) -> Asset:
        for asset in self.assets:
            if asset.symbol == symbol:
                return asset
        raise IntegrityError(f"Unable to find an asset matching symbol {symbol}")
