"""
Price data: feed contract, latest-quote book, offline defaults, Binance adapter.

Depends on nothing in execution/portfolio/strategy; they depend on this.
"""

from data.defaults import DEFAULT_PRICES, TOP_SYMBOLS, default_price
from data.feed import (
    PriceBook,
    PriceFeed,
    PriceFeedError,
    Quote,
    StaticPriceFeed,
    SubscribableFeed,
    Subscription,
)

__all__ = [
    "DEFAULT_PRICES",
    "PriceBook",
    "PriceFeed",
    "PriceFeedError",
    "Quote",
    "StaticPriceFeed",
    "SubscribableFeed",
    "Subscription",
    "TOP_SYMBOLS",
    "default_price",
    "get_binance_feed",
]


def get_binance_feed(**kwargs):
    """Lazy import to avoid loading requests when running offline."""
    from data.binance_feed import BinancePriceFeed

    return BinancePriceFeed(**kwargs)
