"""
Binance public REST price feed (no API key needed).

Reads /ticker/price for all pairs, keeps the universe symbols quoted in the
configured quote asset (USDT), and converts to the display currency with a
fixed FX multiplier. Push delivery goes through SubscribableFeed.refresh().
"""

import logging
from typing import Any, Iterable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from data.defaults import TOP_SYMBOLS
from data.feed import PriceFeedError, SubscribableFeed

logger = logging.getLogger("spotsim.feed.binance")

DEFAULT_BASE_URL = "https://api.binance.com/api/v3"
DEFAULT_FX_RATE = 150.0  # USD -> JPY


def _create_session(max_retries: int) -> requests.Session:
    session = requests.Session()
    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=0.5,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class BinancePriceFeed(SubscribableFeed):
    """Quotes for the configured universe from Binance spot tickers."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        quote_asset: str = "USDT",
        fx_rate: float = DEFAULT_FX_RATE,
        universe: Iterable[str] = TOP_SYMBOLS,
        timeout_s: float = 5.0,
        max_retries: int = 2,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.quote_asset = quote_asset.upper()
        self.fx_rate = fx_rate
        self.universe = tuple(universe)
        self.timeout_s = timeout_s
        self._session = session or _create_session(max_retries)

    def _get(self, path: str, params: dict | None = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self._session.get(url, params=params, timeout=self.timeout_s)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise PriceFeedError(f"GET {url} failed: {exc}") from exc

    def current_prices(self) -> dict[str, float]:
        """Converted price per universe symbol. Symbols Binance does not list are omitted."""
        payload = self._get("ticker/price")
        if not isinstance(payload, list):
            raise PriceFeedError(f"Unexpected /ticker/price payload: {type(payload).__name__}")
        wanted = set(self.universe)
        prices: dict[str, float] = {}
        for ticker in payload:
            pair = str(ticker.get("symbol", ""))
            if not pair.endswith(self.quote_asset):
                continue
            base = pair[: -len(self.quote_asset)]
            if base not in wanted:
                continue
            try:
                prices[base] = float(ticker["price"]) * self.fx_rate
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed ticker %r", ticker)
        missing = wanted - prices.keys()
        if missing:
            logger.debug("No %s quote for %d symbol(s): %s", self.quote_asset, len(missing), sorted(missing))
        return prices

    def stats_24h(self, symbol: str) -> dict[str, float]:
        """24h rolling statistics for one base symbol, money fields converted."""
        data = self._get("ticker/24hr", params={"symbol": f"{symbol.upper()}{self.quote_asset}"})
        try:
            fx = self.fx_rate
            return {
                "price_change": float(data["priceChange"]) * fx,
                "price_change_percent": float(data["priceChangePercent"]),
                "weighted_avg_price": float(data["weightedAvgPrice"]) * fx,
                "prev_close_price": float(data["prevClosePrice"]) * fx,
                "last_price": float(data["lastPrice"]) * fx,
                "bid_price": float(data["bidPrice"]) * fx,
                "ask_price": float(data["askPrice"]) * fx,
                "open_price": float(data["openPrice"]) * fx,
                "high_price": float(data["highPrice"]) * fx,
                "low_price": float(data["lowPrice"]) * fx,
                "volume": float(data["volume"]),
                "quote_volume": float(data["quoteVolume"]) * fx,
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise PriceFeedError(f"Malformed 24hr stats for {symbol}: {exc}") from exc

    def close(self) -> None:
        self._session.close()
