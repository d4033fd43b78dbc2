"""
Live session scheduler: independent periodic tasks around one TradingSession.

    price task  - pulls the feed (in a worker thread) and pushes quotes to the book
    trade task  - one auto-trade decision per interval while auto-trade is on
    stats task  - emits a metrics event per interval

Ledger mutation happens only inside session.run_tick(), which is synchronous
and holds the executor lock, so cancelling the loop never interrupts a trade
halfway. Teardown cancels and awaits every task.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from cli.structured_log import StructuredEventLogger
from config.loader import SchedulerConfig
from data.feed import PriceFeedError, StaticPriceFeed, SubscribableFeed
from engine.session import TradingSession
from strategy.auto_trade import ACTION_NONE, TickResult

logger = logging.getLogger("spotsim.scheduler")


@dataclass
class RunStats:
    ticks: int = 0
    trades: int = 0
    rejections: int = 0
    price_refreshes: int = 0
    feed_errors: int = 0
    used_fallback_prices: bool = False


def load_initial_prices(session: TradingSession, feed: SubscribableFeed, stats: RunStats | None = None) -> int:
    """First quote load. Falls back to the default price table when the feed fails."""
    try:
        prices = feed.refresh()
        loaded = sum(1 for s in prices if session.prices.get(s) is not None)
        if stats is not None:
            stats.price_refreshes += 1
        if loaded:
            return loaded
        logger.warning("Feed returned no usable quotes; using default prices")
    except PriceFeedError as exc:
        logger.warning("Initial price load failed (%s); using default prices", exc)
        if stats is not None:
            stats.feed_errors += 1
    if stats is not None:
        stats.used_fallback_prices = True
    return session.prices.update_many(StaticPriceFeed().current_prices())


async def _price_loop(
    feed: SubscribableFeed,
    interval: float,
    stats: RunStats,
    events: StructuredEventLogger | None,
    source: str,
) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            prices = await asyncio.to_thread(feed.refresh)
        except PriceFeedError as exc:
            # Keep the previous quotes; stale beats zero.
            stats.feed_errors += 1
            logger.warning("Price refresh failed: %s", exc)
            if events:
                events.error("price_refresh_failed", detail=str(exc))
            continue
        stats.price_refreshes += 1
        if events:
            events.price_refresh(quotes=len(prices), source=source)


async def _trade_loop(
    session: TradingSession,
    interval: float,
    stats: RunStats,
    events: StructuredEventLogger | None,
    on_tick: Callable[[TickResult], None] | None,
    max_ticks: int | None,
    stop: asyncio.Event,
) -> None:
    while True:
        await asyncio.sleep(interval)
        if not session.auto_trade:
            continue
        result = session.run_tick()
        if result is None:
            continue
        stats.ticks += 1
        if result.error:
            stats.rejections += 1
            if events:
                events.order_rejected(reason=result.message, kind=result.error, symbol=result.symbol)
        elif result.action != ACTION_NONE:
            stats.trades += 1
            if events:
                side = "buy" if result.action == "entry" else "sell"
                events.trade_executed(side, result.symbol or "", result.amount, result.price, origin="auto")
        if events:
            events.tick(action=result.action, message=result.message)
        if on_tick:
            on_tick(result)
        if max_ticks is not None and stats.ticks >= max_ticks:
            stop.set()
            return


async def _stats_loop(session: TradingSession, interval: float, events: StructuredEventLogger) -> None:
    while True:
        await asyncio.sleep(interval)
        m = session.metrics.compute()
        events.metrics(
            total_value=m.total_value,
            profit_percentage=m.profit_percentage,
            win_rate=m.win_rate,
            open_positions=m.open_positions,
        )


async def run_session(
    session: TradingSession,
    feed: SubscribableFeed,
    cfg: SchedulerConfig,
    *,
    events: StructuredEventLogger | None = None,
    max_ticks: int | None = None,
    duration_s: float | None = None,
    on_tick: Callable[[TickResult], None] | None = None,
    stop: asyncio.Event | None = None,
    source: str = "feed",
) -> RunStats:
    """Run the periodic tasks until *stop* is set, *max_ticks* ticks ran, or *duration_s* elapsed."""
    stats = RunStats()
    stop = stop or asyncio.Event()
    session.attach_feed(feed)
    loaded = await asyncio.to_thread(load_initial_prices, session, feed, stats)
    logger.info("Loaded %d initial quotes", loaded)

    tasks = [
        asyncio.create_task(_price_loop(feed, cfg.price_interval_s, stats, events, source), name="price"),
        asyncio.create_task(
            _trade_loop(session, cfg.trade_interval_s, stats, events, on_tick, max_ticks, stop),
            name="trade",
        ),
    ]
    if events:
        tasks.append(asyncio.create_task(_stats_loop(session, cfg.stats_interval_s, events), name="stats"))

    def _stop_on_failure(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            stop.set()

    for t in tasks:
        t.add_done_callback(_stop_on_failure)

    try:
        if duration_s is not None:
            try:
                await asyncio.wait_for(stop.wait(), timeout=duration_s)
            except asyncio.TimeoutError:
                logger.info("Session duration of %.1fs reached", duration_s)
        else:
            await stop.wait()
    finally:
        for t in tasks:
            if not t.done():
                t.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for t, res in zip(tasks, results):
            if isinstance(res, Exception):
                logger.error("Task %s failed: %r", t.get_name(), res)
        session.detach_feeds()
        if events:
            events.shutdown(ticks=stats.ticks)
        logger.info("Session stopped after %d tick(s)", stats.ticks)
    return stats
