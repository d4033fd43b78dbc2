"""
Trading session: composition root for one memory-resident simulation run.

Owns the price book, the executor (single writer), the read-side views and
the auto-trade strategy. Manual orders and strategy ticks both go through
the executor lock, so they never interleave. Nothing is persisted; a new
session starts from the configured initial balance.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

from config.loader import AppConfig
from config.session_config import SessionConfig
from data.defaults import TOP_SYMBOLS
from data.feed import PriceBook, PriceFeed, Subscription
from execution.errors import TradingError
from execution.models import Position, Trade, TradeSide
from execution.order_executor import OrderExecutor
from portfolio.goals import GoalProgress, GoalTracker
from portfolio.metrics import MetricsReport, PerformanceMetrics
from portfolio.valuator import PortfolioValuator, PositionMark
from strategy.auto_trade import AutoTradeStrategy, TickResult

logger = logging.getLogger("spotsim.session")

IDLE_STATUS = "Idle"


@dataclass(frozen=True)
class OrderResult:
    """Outcome of a manual order request. Rejections carry the error kind."""

    accepted: bool
    side: TradeSide
    symbol: str
    amount: float
    message: str
    error: str | None = None
    opened: Position | None = None
    closed: tuple[Position, ...] = ()


@dataclass(frozen=True)
class SessionSnapshot:
    balance: float
    positions: tuple[Position, ...]
    recent_trades: tuple[Trade, ...]  # most recent first
    marks: tuple[PositionMark, ...]
    metrics: MetricsReport
    goal: GoalProgress
    ai_status: str
    auto_trade: bool


class TradingSession:
    def __init__(
        self,
        session_config: SessionConfig,
        app_config: AppConfig | None = None,
        *,
        symbols: Sequence[str] | None = None,
        prices: PriceBook | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.session_config = session_config
        self.app_config = app_config or AppConfig()
        self._rng = rng or random.Random()
        self.prices = prices or PriceBook(clock=clock)

        executor_kwargs = {"clock": clock} if clock else {}
        self.executor = OrderExecutor(
            session_config.initial_balance,
            price_feed=self.prices,
            fee_rate=self.app_config.engine.fee_rate,
            **executor_kwargs,
        )
        self.valuator = PortfolioValuator(self.executor, self.prices)
        self.metrics = PerformanceMetrics(self.executor, self.valuator)
        self.goals = GoalTracker(
            session_config.initial_balance,
            session_config.target_profit_pct,
            session_config.target_period_days,
        )
        self.symbols = list(symbols) if symbols is not None else self._pick_symbols()
        self.strategy = AutoTradeStrategy(
            self.executor,
            self.prices,
            self.symbols,
            config=self.app_config.strategy,
            rng=self._rng,
        )
        self._auto_trade = session_config.auto_trade
        self._ai_status = IDLE_STATUS
        self._subscriptions: list[Subscription] = []
        logger.info(
            "Session created: balance=%.2f strategy=%s auto_trade=%s symbols=%s",
            session_config.initial_balance, session_config.strategy.value, self._auto_trade, self.symbols,
        )

    def _pick_symbols(self) -> list[str]:
        n = self.app_config.feed.symbols_per_session
        universe = list(TOP_SYMBOLS)
        return self._rng.sample(universe, min(n, len(universe)))

    # ---------- feed wiring ----------

    def attach_feed(self, feed: PriceFeed) -> Subscription:
        """Route every push update from *feed* into the price book."""
        sub = feed.subscribe(None, self.prices.update)
        self._subscriptions.append(sub)
        return sub

    def detach_feeds(self) -> None:
        for sub in self._subscriptions:
            sub.close()
        self._subscriptions.clear()

    # ---------- auto-trade ----------

    @property
    def auto_trade(self) -> bool:
        return self._auto_trade

    def set_auto_trade(self, enabled: bool) -> None:
        """Stops or resumes scheduling of ticks; a tick already running completes."""
        if enabled != self._auto_trade:
            logger.info("Auto-trade %s", "enabled" if enabled else "disabled")
        self._auto_trade = enabled

    @property
    def ai_status(self) -> str:
        return self._ai_status

    def run_tick(self) -> TickResult | None:
        """One strategy decision, or None when auto-trade is off."""
        if not self._auto_trade:
            return None
        result = self.strategy.tick()
        self._ai_status = result.message
        return result

    # ---------- manual orders ----------

    def submit_order(self, side: TradeSide | str, symbol: str, amount: float, price: float | None = None) -> OrderResult:
        """Apply a manual market order. Domain errors come back as a rejected result."""
        side = TradeSide(side)
        try:
            if side is TradeSide.BUY:
                opened = self.executor.buy(symbol, amount, price)
                return OrderResult(
                    True, side, symbol, amount,
                    message=f"Bought {amount:.8g} {symbol} @ {opened.buy_price:,.2f}",
                    opened=opened,
                )
            closed = self.executor.sell(symbol, amount, price)
            sold = sum(p.amount for p in closed)
            profit = sum(p.profit or 0.0 for p in closed)
            return OrderResult(
                True, side, symbol, amount,
                message=f"Sold {sold:.8g} {symbol}, profit {profit:,.2f}",
                closed=tuple(closed),
            )
        except TradingError as exc:
            logger.info("Order rejected (%s): %s", exc.kind, exc)
            return OrderResult(False, side, symbol, amount, message=str(exc), error=exc.kind)

    # ---------- outputs ----------

    def snapshot(self) -> SessionSnapshot:
        with self.executor.lock:
            ledger_snap = self.executor.snapshot()
            metrics = self.metrics.compute()
            marks = tuple(self.valuator.marks(ledger_snap))
        limit = self.app_config.engine.recent_trades_limit
        recent = tuple(reversed(ledger_snap.trades[-limit:])) if limit > 0 else ()
        goal = self.goals.progress(metrics.total_value, ledger_snap.started_at, self.executor.now())
        return SessionSnapshot(
            balance=ledger_snap.balance,
            positions=ledger_snap.positions,
            recent_trades=recent,
            marks=marks,
            metrics=metrics,
            goal=goal,
            ai_status=self._ai_status,
            auto_trade=self._auto_trade,
        )

    def reset(self) -> None:
        """Fresh ledger at the initial balance. Quotes and symbol selection are kept."""
        self.executor.reset()
        self._ai_status = IDLE_STATUS
