"""
Mark-to-market valuation: cash plus open lots at the latest known quote.

A symbol with no current quote is marked at the lot's buy price, never at
zero, so a feed gap cannot make the portfolio look like it lost money.
"""

from __future__ import annotations

from dataclasses import dataclass

from execution.models import LedgerSnapshot, Position
from execution.order_executor import OrderExecutor, PriceSource


@dataclass(frozen=True)
class PositionMark:
    position_id: str
    symbol: str
    amount: float
    buy_price: float
    current_price: float
    market_value: float
    unrealized_pnl: float
    unrealized_pct: float
    quoted: bool  # False when current_price fell back to buy_price


class PortfolioValuator:
    def __init__(self, executor: OrderExecutor, prices: PriceSource) -> None:
        self._executor = executor
        self._prices = prices

    def current_price(self, symbol: str, fallback: float) -> float:
        price = self._prices.current_prices().get(symbol)
        if price is None or price <= 0:
            return fallback
        return price

    def total_value(self, snapshot: LedgerSnapshot | None = None) -> float:
        snap = snapshot or self._executor.snapshot()
        quotes = self._prices.current_prices()
        value = snap.balance
        for position in snap.open_positions:
            value += position.amount * _mark(quotes, position)
        return value

    def unrealized_pnl(self, position: Position) -> float:
        current = self.current_price(position.symbol, position.buy_price)
        return (current - position.buy_price) * position.amount

    def unrealized_pct(self, position: Position) -> float:
        current = self.current_price(position.symbol, position.buy_price)
        return (current - position.buy_price) / position.buy_price * 100

    def marks(self, snapshot: LedgerSnapshot | None = None) -> list[PositionMark]:
        snap = snapshot or self._executor.snapshot()
        quotes = self._prices.current_prices()
        out = []
        for p in snap.open_positions:
            current = _mark(quotes, p)
            out.append(
                PositionMark(
                    position_id=p.id,
                    symbol=p.symbol,
                    amount=p.amount,
                    buy_price=p.buy_price,
                    current_price=current,
                    market_value=p.amount * current,
                    unrealized_pnl=(current - p.buy_price) * p.amount,
                    unrealized_pct=(current - p.buy_price) / p.buy_price * 100,
                    quoted=_quoted(quotes, p.symbol),
                )
            )
        return out


def _quoted(quotes: dict[str, float], symbol: str) -> bool:
    price = quotes.get(symbol)
    return price is not None and price > 0


def _mark(quotes: dict[str, float], position: Position) -> float:
    return quotes[position.symbol] if _quoted(quotes, position.symbol) else position.buy_price
