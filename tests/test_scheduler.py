"""Tests for the live session scheduler. Tiny intervals, static or failing feeds, no network."""

import asyncio
import io
import json
import random
from dataclasses import replace

import pytest

from cli.scheduler import RunStats, load_initial_prices, run_session
from cli.structured_log import StructuredEventLogger
from config.loader import SchedulerConfig
from config.session_config import SessionConfig
from data.defaults import DEFAULT_PRICES
from data.feed import PriceFeedError, StaticPriceFeed, SubscribableFeed
from engine.session import TradingSession

FAST = SchedulerConfig(price_interval_s=0.01, trade_interval_s=0.001, stats_interval_s=0.01)


class DownFeed(SubscribableFeed):
    def current_prices(self) -> dict[str, float]:
        raise PriceFeedError("connection refused")


class FlakyFeed(SubscribableFeed):
    """Answers once, then fails every call."""

    def __init__(self, prices: dict[str, float]) -> None:
        super().__init__()
        self._prices = prices
        self.calls = 0

    def current_prices(self) -> dict[str, float]:
        self.calls += 1
        if self.calls > 1:
            raise PriceFeedError("timeout")
        return dict(self._prices)


@pytest.fixture
def session(session_config: SessionConfig) -> TradingSession:
    return TradingSession(session_config, symbols=["BTC", "ETH", "SOL"], rng=random.Random(0))


def _events(buf: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in buf.getvalue().splitlines()]


# ---------------------------------------------------------------------------
# Initial load
# ---------------------------------------------------------------------------


def test_initial_load_from_feed(session: TradingSession) -> None:
    feed = StaticPriceFeed({"BTC": 1.0, "ETH": 2.0})
    session.attach_feed(feed)
    stats = RunStats()
    assert load_initial_prices(session, feed, stats) == 2
    assert stats.price_refreshes == 1
    assert not stats.used_fallback_prices


def test_initial_load_falls_back_to_defaults(session: TradingSession) -> None:
    feed = DownFeed()
    session.attach_feed(feed)
    stats = RunStats()
    loaded = load_initial_prices(session, feed, stats)
    assert loaded == len(DEFAULT_PRICES)
    assert stats.used_fallback_prices
    assert stats.feed_errors == 1
    assert session.prices.get("BTC") == DEFAULT_PRICES["BTC"]


def test_initial_load_falls_back_when_feed_is_empty(session: TradingSession) -> None:
    feed = StaticPriceFeed({})
    session.attach_feed(feed)
    assert load_initial_prices(session, feed) == len(DEFAULT_PRICES)


# ---------------------------------------------------------------------------
# run_session
# ---------------------------------------------------------------------------


def test_stops_after_max_ticks(session: TradingSession) -> None:
    buf = io.StringIO()
    events = StructuredEventLogger("t", stream=buf)
    seen = []
    stats = asyncio.run(
        run_session(session, StaticPriceFeed(), FAST, events=events, max_ticks=5, on_tick=seen.append)
    )
    assert stats.ticks == 5
    assert len(seen) == 5
    assert stats.trades + stats.rejections <= 5

    records = _events(buf)
    assert sum(1 for r in records if r["event"] == "tick") == 5
    assert records[-1]["event"] == "shutdown"
    assert records[-1]["ticks"] == 5


def test_no_ticks_while_auto_trade_is_off(session_config: SessionConfig) -> None:
    session = TradingSession(replace(session_config, auto_trade=False), symbols=["BTC"])
    stats = asyncio.run(run_session(session, StaticPriceFeed(), FAST, duration_s=0.05))
    assert stats.ticks == 0
    assert session.executor.ledger.all_trades() == ()


def test_feed_down_uses_defaults_and_keeps_trading(session: TradingSession) -> None:
    stats = asyncio.run(run_session(session, DownFeed(), FAST, max_ticks=3, duration_s=5))
    assert stats.used_fallback_prices
    assert stats.ticks == 3
    assert session.prices.get("ETH") == DEFAULT_PRICES["ETH"]


def test_refresh_failures_keep_stale_quotes(session: TradingSession) -> None:
    buf = io.StringIO()
    events = StructuredEventLogger("t", stream=buf)
    feed = FlakyFeed({"BTC": 6_000_000.0})
    session.set_auto_trade(False)
    stats = asyncio.run(run_session(session, feed, FAST, events=events, duration_s=0.1))

    assert stats.feed_errors >= 1
    assert not stats.used_fallback_prices
    assert session.prices.get("BTC") == 6_000_000.0
    assert any(r["event"] == "error" and r["message"] == "price_refresh_failed" for r in _events(buf))


def test_external_stop_event(session: TradingSession) -> None:
    async def main() -> RunStats:
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, stop.set)
        return await run_session(session, StaticPriceFeed(), FAST, stop=stop)

    stats = asyncio.run(main())
    assert stats.ticks > 0


def test_feed_is_detached_after_run(session: TradingSession) -> None:
    feed = StaticPriceFeed({"BTC": 1.0})
    asyncio.run(run_session(session, feed, FAST, max_ticks=1))
    feed.set_price("BTC", 2.0)
    feed.refresh()
    assert session.prices.get("BTC") == 1.0
