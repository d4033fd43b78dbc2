"""
Price feed contract, latest-quote book, and a static offline feed.

Feeds give no guarantee of completeness or ordering. Consumers treat a
missing, non-positive or non-finite quote as "price unavailable", never as
zero.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Protocol

from data.defaults import DEFAULT_PRICES, TOP_SYMBOLS, default_price

logger = logging.getLogger("spotsim.feed")

OnUpdate = Callable[[str, float], None]


class PriceFeedError(Exception):
    """Transport or payload failure while fetching quotes."""


class PriceFeed(Protocol):
    """Protocol for price feeds. Implement per provider."""

    def current_prices(self) -> dict[str, float]:
        """Latest quote per symbol. May omit symbols. Raises PriceFeedError."""
        ...

    def subscribe(self, symbols: Iterable[str] | None, on_update: OnUpdate) -> "Subscription":
        """Register *on_update(symbol, price)* for push updates on *symbols* (None = all)."""
        ...


def is_valid_price(price: object) -> bool:
    return isinstance(price, (int, float)) and not isinstance(price, bool) and math.isfinite(price) and price > 0


class Subscription:
    """Handle returned by subscribe(); close() stops delivery."""

    def __init__(self, feed: "SubscribableFeed", symbols: Iterable[str] | None, on_update: OnUpdate) -> None:
        self._feed = feed
        self.symbols = frozenset(symbols) if symbols is not None else None
        self.on_update = on_update
        self.active = True

    def wants(self, symbol: str) -> bool:
        return self.active and (self.symbols is None or symbol in self.symbols)

    def close(self) -> None:
        if self.active:
            self.active = False
            self._feed._unsubscribe(self)


class SubscribableFeed:
    """Push delivery on top of a pull feed: refresh() fetches and dispatches."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._sub_lock = threading.Lock()

    def current_prices(self) -> dict[str, float]:  # pragma: no cover - abstract
        raise NotImplementedError

    def subscribe(self, symbols: Iterable[str] | None, on_update: OnUpdate) -> Subscription:
        sub = Subscription(self, symbols, on_update)
        with self._sub_lock:
            self._subscriptions.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._sub_lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def refresh(self) -> dict[str, float]:
        """Pull current quotes and push every valid one to matching subscribers.

        Raises PriceFeedError when the pull fails; subscribers then keep
        whatever they had.
        """
        prices = self.current_prices()
        with self._sub_lock:
            subs = list(self._subscriptions)
        delivered = 0
        for symbol, price in prices.items():
            if not is_valid_price(price):
                logger.debug("Dropping invalid quote %s=%r", symbol, price)
                continue
            for sub in subs:
                if not sub.wants(symbol):
                    continue
                try:
                    sub.on_update(symbol, float(price))
                    delivered += 1
                except Exception:
                    logger.exception("Price subscriber failed on %s", symbol)
        logger.debug("Refreshed %d quotes, %d deliveries", len(prices), delivered)
        return prices


class StaticPriceFeed(SubscribableFeed):
    """Offline feed serving a fixed table (the default JPY quotes unless given)."""

    def __init__(self, prices: dict[str, float] | None = None) -> None:
        super().__init__()
        self._prices = dict(prices) if prices is not None else {s: default_price(s) for s in DEFAULT_PRICES}

    def current_prices(self) -> dict[str, float]:
        return dict(self._prices)

    def set_price(self, symbol: str, price: float) -> None:
        self._prices[symbol] = price

    def universe(self) -> list[str]:
        return [s for s in TOP_SYMBOLS if s in self._prices] or sorted(self._prices)


@dataclass(frozen=True)
class Quote:
    price: float
    received_at: datetime


class PriceBook:
    """Latest known quote per symbol with its receive time.

    Satisfies the current_prices() contract so the executor can resolve
    prices from it. Updates may arrive from a feed thread.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._quotes: dict[str, Quote] = {}
        self._lock = threading.Lock()

    def update(self, symbol: str, price: float) -> bool:
        """Record a quote. Invalid prices are ignored; returns whether it was kept."""
        if not is_valid_price(price):
            return False
        with self._lock:
            self._quotes[symbol] = Quote(float(price), self._clock())
        return True

    def update_many(self, prices: dict[str, float]) -> int:
        return sum(1 for symbol, price in prices.items() if self.update(symbol, price))

    def get(self, symbol: str) -> float | None:
        with self._lock:
            quote = self._quotes.get(symbol)
        return quote.price if quote else None

    def quote(self, symbol: str) -> Quote | None:
        with self._lock:
            return self._quotes.get(symbol)

    def current_prices(self) -> dict[str, float]:
        with self._lock:
            return {s: q.price for s, q in self._quotes.items()}

    prices = current_prices

    def symbols(self) -> list[str]:
        with self._lock:
            return list(self._quotes)

    def age_seconds(self, symbol: str) -> float | None:
        quote = self.quote(symbol)
        if quote is None:
            return None
        return (self._clock() - quote.received_at).total_seconds()

    def is_stale(self, symbol: str, max_age_s: float) -> bool:
        age = self.age_seconds(symbol)
        return age is None or age > max_age_s

    def clear(self) -> None:
        with self._lock:
            self._quotes.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._quotes)
