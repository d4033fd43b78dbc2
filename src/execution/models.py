"""Position, Trade and close results for the simulated spot ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class PositionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass
class Position:
    """One lot of a single instrument, acquired in a single buy.

    ``cost`` is the full cost basis of the original lot (notional + open fee)
    and never changes; ``amount`` is what is still open.
    """

    id: str
    symbol: str
    amount: float
    original_amount: float
    buy_price: float
    cost: float
    fee: float
    opened_at: datetime
    status: PositionStatus = PositionStatus.OPEN
    sell_price: float | None = None
    profit: float | None = None
    profit_percentage: float | None = None
    closed_at: datetime | None = None
    parent_id: str | None = None  # set on slices carved out by a partial sell

    @property
    def is_open(self) -> bool:
        return self.status is PositionStatus.OPEN

    @property
    def cost_per_unit(self) -> float:
        return self.cost / self.original_amount


@dataclass(frozen=True)
class Trade:
    """Immutable audit-log entry for one executed buy or sell leg."""

    id: str
    symbol: str
    side: TradeSide
    amount: float
    price: float
    total: float  # buy: amount * price + fee; sell: net revenue
    fee: float
    timestamp: datetime
    position_id: str
    profit: float | None = None
    profit_percentage: float | None = None


@dataclass(frozen=True)
class CloseResult:
    """Outcome of closing (part of) a lot.

    kind == "full":    ``closed`` is the lot itself, ``remaining`` is None.
    kind == "partial": ``closed`` is a new closed slice, ``remaining`` is the
                       reduced lot that stays open.
    """

    kind: str  # "full" | "partial"
    closed: Position
    remaining: Position | None = None


@dataclass(frozen=True)
class LedgerSnapshot:
    """Consistent read-only view of ledger state taken under the executor lock."""

    balance: float
    initial_balance: float
    started_at: datetime
    positions: tuple[Position, ...]
    trades: tuple[Trade, ...]

    @property
    def open_positions(self) -> tuple[Position, ...]:
        return tuple(p for p in self.positions if p.is_open)

    @property
    def sell_trades(self) -> tuple[Trade, ...]:
        return tuple(t for t in self.trades if t.side is TradeSide.SELL)
