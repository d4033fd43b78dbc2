"""
Order executor: the single writer of balance, positions and trades.

Market orders only: every buy/sell fills immediately at the resolved price.
All validation happens before the first mutation, and every mutating call
holds one re-entrant lock so no two orders interleave.
"""

from __future__ import annotations

import logging
import math
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Protocol

from data.feed import PriceFeedError
from execution.errors import InsufficientBalance, InvalidOrder, NoOpenPosition, PriceUnavailable
from execution.ledger import PositionLedger
from execution.models import CloseResult, LedgerSnapshot, Position, Trade, TradeSide

logger = logging.getLogger("spotsim.executor")

DEFAULT_FEE_RATE = 0.001

# Quantities this close (relative) to a lot's open amount close it fully.
AMOUNT_REL_TOL = 1e-9


class PriceSource(Protocol):
    def current_prices(self) -> dict[str, float]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class OrderExecutor:
    """
    Validate and apply buy/sell intents against the ledger and cash balance.

    price_feed is consulted only when an order carries no explicit price.
    """

    def __init__(
        self,
        initial_balance: float,
        *,
        price_feed: PriceSource | None = None,
        fee_rate: float = DEFAULT_FEE_RATE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if initial_balance <= 0:
            raise ValueError(f"initial_balance must be positive, got {initial_balance}")
        if not 0 <= fee_rate < 1:
            raise ValueError(f"fee_rate must be in [0, 1), got {fee_rate}")
        self._initial_balance = float(initial_balance)
        self._balance = float(initial_balance)
        self._feed = price_feed
        self._fee_rate = fee_rate
        self._clock = clock
        self._ledger = PositionLedger()
        self._started_at = clock()
        self._lock = threading.RLock()

    # ---------- properties ----------

    @property
    def lock(self) -> threading.RLock:
        """The mutation lock. Hold it to run a read-decide-write sequence atomically."""
        return self._lock

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def initial_balance(self) -> float:
        return self._initial_balance

    @property
    def fee_rate(self) -> float:
        return self._fee_rate

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def ledger(self) -> PositionLedger:
        return self._ledger

    def now(self) -> datetime:
        return self._clock()

    # ---------- price resolution ----------

    def resolve_price(self, symbol: str, price: float | None = None) -> float:
        """Explicit positive price wins; otherwise ask the feed. Never returns zero."""
        if _usable(price):
            return float(price)
        if self._feed is not None:
            try:
                quote = self._feed.current_prices().get(symbol)
            except PriceFeedError as exc:
                logger.warning("Price feed error while resolving %s: %s", symbol, exc)
                raise PriceUnavailable(symbol) from exc
            if _usable(quote):
                return float(quote)
        raise PriceUnavailable(symbol)

    # ---------- orders ----------

    def buy(self, symbol: str, amount: float, price: float | None = None) -> Position:
        """Open a new lot. Raises InvalidOrder, PriceUnavailable or InsufficientBalance."""
        with self._lock:
            _require_positive_amount(amount)
            buy_price = self.resolve_price(symbol, price)
            cost = amount * buy_price
            fee = cost * self._fee_rate
            total_cost = cost + fee
            if total_cost > self._balance:
                raise InsufficientBalance(total_cost, self._balance)

            now = self._clock()
            self._balance -= total_cost
            position = Position(
                id=_new_id(),
                symbol=symbol,
                amount=amount,
                original_amount=amount,
                buy_price=buy_price,
                cost=total_cost,
                fee=fee,
                opened_at=now,
            )
            self._ledger.add_position(position)
            self._ledger.append_trade(
                Trade(
                    id=_new_id(),
                    symbol=symbol,
                    side=TradeSide.BUY,
                    amount=amount,
                    price=buy_price,
                    total=total_cost,
                    fee=fee,
                    timestamp=now,
                    position_id=position.id,
                )
            )
            logger.info(
                "BUY %s %.8g @ %.8g cost=%.2f fee=%.4f balance=%.2f",
                symbol, amount, buy_price, total_cost, fee, self._balance,
            )
            return position

    def sell(self, symbol: str, amount: float, price: float | None = None) -> list[Position]:
        """Sell *amount* of *symbol* against open lots, oldest first.

        Returns the closed records produced: fully closed lots and the closed
        slices of partially sold lots. Asking for more than is open sells
        everything open.
        """
        with self._lock:
            _require_positive_amount(amount)
            sell_price = self.resolve_price(symbol, price)
            lots = self._ledger.open_positions(symbol)
            if not lots:
                raise NoOpenPosition(symbol)

            closed: list[Position] = []
            remaining = amount
            for lot in lots:
                if remaining <= amount * AMOUNT_REL_TOL:
                    break
                result = self._close_from_lot(lot, _fill_amount(lot, remaining), sell_price)
                closed.append(result.closed)
                remaining -= result.closed.amount

            if remaining > amount * AMOUNT_REL_TOL:
                logger.info("SELL %s: %.8g requested beyond open quantity, left unfilled", symbol, remaining)
            return closed

    def _close_from_lot(self, lot: Position, sell_amount: float, sell_price: float) -> CloseResult:
        # Cost basis comes from the original lot, not from what is still open.
        cost_per_unit = lot.cost / lot.original_amount
        revenue = sell_amount * sell_price
        fee = revenue * self._fee_rate
        net_revenue = revenue - fee
        proportional_cost = cost_per_unit * sell_amount
        profit = net_revenue - proportional_cost
        profit_percentage = profit / proportional_cost * 100

        now = self._clock()
        self._balance += net_revenue
        if sell_amount == lot.amount:
            result = self._ledger.close(
                lot,
                sell_price=sell_price,
                profit=profit,
                profit_percentage=profit_percentage,
                closed_at=now,
            )
        else:
            result = self._ledger.split_and_close(
                lot,
                sell_amount,
                sell_price=sell_price,
                profit=profit,
                profit_percentage=profit_percentage,
                closed_at=now,
            )
        self._ledger.append_trade(
            Trade(
                id=_new_id(),
                symbol=lot.symbol,
                side=TradeSide.SELL,
                amount=sell_amount,
                price=sell_price,
                total=net_revenue,
                fee=fee,
                timestamp=now,
                position_id=lot.id,
                profit=profit,
                profit_percentage=profit_percentage,
            )
        )
        logger.info(
            "SELL %s %.8g @ %.8g (%s) profit=%.4f (%.2f%%) balance=%.2f",
            lot.symbol, sell_amount, sell_price, result.kind, profit, profit_percentage, self._balance,
        )
        return result

    # ---------- reads ----------

    def snapshot(self) -> LedgerSnapshot:
        """Frozen copy of the ledger, consistent with respect to in-flight orders."""
        with self._lock:
            return LedgerSnapshot(
                balance=self._balance,
                initial_balance=self._initial_balance,
                started_at=self._started_at,
                positions=tuple(replace(p) for p in self._ledger.all_positions()),
                trades=self._ledger.all_trades(),
            )

    def reset(self) -> None:
        """Back to the initial balance with an empty ledger and a fresh clock."""
        with self._lock:
            self._balance = self._initial_balance
            self._ledger.reset()
            self._started_at = self._clock()
            logger.info("Ledger reset: balance=%.2f", self._balance)


def _usable(price: float | None) -> bool:
    return price is not None and math.isfinite(price) and price > 0


def _fill_amount(lot: Position, requested: float) -> float:
    """Quantity to take from *lot*; float residue left by earlier lots snaps to a full close."""
    if requested >= lot.amount or lot.amount - requested <= lot.original_amount * AMOUNT_REL_TOL:
        return lot.amount
    return requested


def _require_positive_amount(amount: float) -> None:
    if not (math.isfinite(amount) and amount > 0):
        raise InvalidOrder(f"Order amount must be positive, got {amount}")
