"""
Position ledger: ordered lots and the append-only trade log.

Insertion order of positions is FIFO priority for sells; append order of
trades is chronological. Only OrderExecutor calls the mutators.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from execution.errors import PositionClosedError
from execution.models import CloseResult, Position, PositionStatus, Trade


class PositionLedger:
    def __init__(self) -> None:
        self._positions: list[Position] = []
        self._trades: list[Trade] = []

    # ---------- reads ----------

    def open_positions(self, symbol: str | None = None) -> list[Position]:
        """Open lots, oldest first. Restricted to *symbol* when given."""
        return [
            p for p in self._positions
            if p.is_open and (symbol is None or p.symbol == symbol)
        ]

    def open_position_count(self) -> int:
        return sum(1 for p in self._positions if p.is_open)

    def all_positions(self) -> tuple[Position, ...]:
        return tuple(self._positions)

    def all_trades(self) -> tuple[Trade, ...]:
        return tuple(self._trades)

    def recent_trades(self, limit: int = 20) -> list[Trade]:
        """Most recent first, capped at *limit*. The full log is untouched."""
        return list(reversed(self._trades[-limit:])) if limit > 0 else []

    # ---------- writes (OrderExecutor only) ----------

    def add_position(self, position: Position) -> None:
        self._positions.append(position)

    def append_trade(self, trade: Trade) -> None:
        self._trades.append(trade)

    def close(
        self,
        position: Position,
        *,
        sell_price: float,
        profit: float,
        profit_percentage: float,
        closed_at: datetime,
    ) -> CloseResult:
        """Close the whole remaining lot."""
        _require_open(position)
        position.status = PositionStatus.CLOSED
        position.sell_price = sell_price
        position.profit = profit
        position.profit_percentage = profit_percentage
        position.closed_at = closed_at
        return CloseResult(kind="full", closed=position)

    def split_and_close(
        self,
        position: Position,
        amount: float,
        *,
        sell_price: float,
        profit: float,
        profit_percentage: float,
        closed_at: datetime,
    ) -> CloseResult:
        """Reduce an open lot by *amount* and record the sold slice as closed.

        The slice carries its proportional share of the lot's original cost
        basis and open fee so it reads as a self-contained closed lot.
        """
        _require_open(position)
        if not 0 < amount < position.amount:
            raise ValueError(
                f"Partial close amount {amount} must be between 0 and {position.amount} (exclusive)"
            )
        share = amount / position.original_amount
        closed = Position(
            id=str(uuid.uuid4()),
            symbol=position.symbol,
            amount=amount,
            original_amount=amount,
            buy_price=position.buy_price,
            cost=position.cost * share,
            fee=position.fee * share,
            opened_at=position.opened_at,
            status=PositionStatus.CLOSED,
            sell_price=sell_price,
            profit=profit,
            profit_percentage=profit_percentage,
            closed_at=closed_at,
            parent_id=position.id,
        )
        position.amount -= amount
        self._positions.append(closed)
        return CloseResult(kind="partial", closed=closed, remaining=position)

    def reset(self) -> None:
        self._positions.clear()
        self._trades.clear()


def _require_open(position: Position) -> None:
    if not position.is_open:
        raise PositionClosedError(f"Position {position.id} ({position.symbol}) is already closed")
