"""
Auto-trade strategy: one decision per tick under fixed risk rules.

Exits take priority over entries and at most one action fires per tick:
    1. Scalp: first open lot up more than take_profit_pct -> sell scalp_fraction of it.
    2. Stop-loss: otherwise first open lot below stop_loss_pct -> sell all of it.
    3. Entry: otherwise, with entry_probability, buy a random tradable symbol
       sized at a random min_invest_pct..max_invest_pct slice of balance.

The random source is injected so a seeded Random replays the same decisions.
Domain rejections are reported in the TickResult and never retried within a tick.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Sequence

from config.loader import StrategyConfig
from data.feed import PriceBook, is_valid_price
from execution.errors import TradingError
from execution.models import Position
from execution.order_executor import OrderExecutor

logger = logging.getLogger("spotsim.strategy")

ACTION_NONE = "none"
ACTION_SCALP = "scalp_exit"
ACTION_STOP_LOSS = "stop_loss"
ACTION_ENTRY = "entry"


@dataclass(frozen=True)
class TickResult:
    action: str
    message: str
    symbol: str | None = None
    amount: float = 0.0
    price: float | None = None
    error: str | None = None  # TradingError.kind when the order was rejected

    @property
    def traded(self) -> bool:
        return self.action != ACTION_NONE and self.error is None


class AutoTradeStrategy:
    """Stateless apart from the injected random source."""

    def __init__(
        self,
        executor: OrderExecutor,
        prices: PriceBook,
        symbols: Sequence[str],
        config: StrategyConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._executor = executor
        self._prices = prices
        self._symbols = list(symbols)
        self._cfg = config or StrategyConfig()
        self._rng = rng or random.Random()

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def tradable_symbols(self) -> list[str]:
        """Session symbols that currently have a known positive price."""
        quotes = self._prices.current_prices()
        return [s for s in self._symbols if is_valid_price(quotes.get(s))]

    def tick(self) -> TickResult:
        """Run one decision. Holds the executor lock so the decision and its order are atomic."""
        with self._executor.lock:
            result = self._exit_pass()
            if result is None:
                result = self._entry_pass()
        if result.error:
            logger.info("Tick rejected (%s): %s", result.error, result.message)
        elif result.action != ACTION_NONE:
            logger.info("Tick: %s", result.message)
        return result

    # ---------- exits ----------

    def _unrealized_pct(self, position: Position, quotes: dict[str, float]) -> float | None:
        price = quotes.get(position.symbol)
        if not is_valid_price(price):
            return None
        return (price - position.buy_price) / position.buy_price * 100

    def _exit_pass(self) -> TickResult | None:
        quotes = self._prices.current_prices()
        lots = self._executor.ledger.open_positions()

        for lot in lots:
            pct = self._unrealized_pct(lot, quotes)
            if pct is not None and pct > self._cfg.take_profit_pct:
                amount = lot.amount * self._cfg.scalp_fraction
                return self._sell(
                    ACTION_SCALP, lot.symbol, amount, quotes[lot.symbol],
                    f"Took partial profit on {lot.symbol} (+{pct:.2f}%)",
                )

        for lot in lots:
            pct = self._unrealized_pct(lot, quotes)
            if pct is not None and pct < self._cfg.stop_loss_pct:
                return self._sell(
                    ACTION_STOP_LOSS, lot.symbol, lot.amount, quotes[lot.symbol],
                    f"Stop-loss on {lot.symbol} ({pct:.2f}%)",
                )
        return None

    def _sell(self, action: str, symbol: str, amount: float, price: float, message: str) -> TickResult:
        try:
            self._executor.sell(symbol, amount, price)
        except TradingError as exc:
            return TickResult(action, str(exc), symbol=symbol, amount=amount, price=price, error=exc.kind)
        return TickResult(action, message, symbol=symbol, amount=amount, price=price)

    # ---------- entries ----------

    def _entry_pass(self) -> TickResult:
        cfg = self._cfg
        if self._rng.random() >= cfg.entry_probability:
            return TickResult(ACTION_NONE, "Holding")

        balance = self._executor.balance
        if balance <= cfg.min_balance:
            return TickResult(ACTION_NONE, "Holding: balance below minimum")
        if self._executor.ledger.open_position_count() >= cfg.max_open_positions:
            return TickResult(ACTION_NONE, "Holding: position cap reached")

        candidates = self.tradable_symbols()
        if not candidates:
            return TickResult(ACTION_NONE, "Holding: no tradable symbols")

        symbol = self._rng.choice(candidates)
        price = self._prices.get(symbol)
        invest_pct = cfg.min_invest_pct + self._rng.random() * (cfg.max_invest_pct - cfg.min_invest_pct)
        amount = balance * invest_pct / price
        if amount <= cfg.min_trade_amount:
            return TickResult(ACTION_NONE, f"Holding: {symbol} size below minimum unit", symbol=symbol)

        try:
            self._executor.buy(symbol, amount, price)
        except TradingError as exc:
            return TickResult(ACTION_ENTRY, str(exc), symbol=symbol, amount=amount, price=price, error=exc.kind)
        return TickResult(
            ACTION_ENTRY,
            f"Bought {symbol} with {invest_pct * 100:.2f}% of balance",
            symbol=symbol,
            amount=amount,
            price=price,
        )
