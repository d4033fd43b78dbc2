"""
Simulated spot execution: market-order fills, FIFO lots, single-writer state.
Memory-resident. No live capital.
"""

from execution.errors import (
    InsufficientBalance,
    InvalidOrder,
    NoOpenPosition,
    PositionClosedError,
    PriceUnavailable,
    TradingError,
)
from execution.ledger import PositionLedger
from execution.models import CloseResult, LedgerSnapshot, Position, PositionStatus, Trade, TradeSide
from execution.order_executor import DEFAULT_FEE_RATE, OrderExecutor

__all__ = [
    "CloseResult",
    "DEFAULT_FEE_RATE",
    "InsufficientBalance",
    "InvalidOrder",
    "LedgerSnapshot",
    "NoOpenPosition",
    "OrderExecutor",
    "Position",
    "PositionClosedError",
    "PositionLedger",
    "PositionStatus",
    "PriceUnavailable",
    "Trade",
    "TradeSide",
    "TradingError",
]
