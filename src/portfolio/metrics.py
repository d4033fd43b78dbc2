"""
Performance metrics over the trade log.

Recomputed from a ledger snapshot on every call; nothing is cached.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable

from execution.order_executor import OrderExecutor
from portfolio.valuator import PortfolioValuator


@dataclass(frozen=True)
class MetricsReport:
    total_value: float
    balance: float
    total_profit: float
    profit_percentage: float
    total_trades: int
    open_positions: int
    closed_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    avg_win: float
    avg_loss: float
    profit_factor: float  # math.inf when there are wins and no losses
    simulation_duration_minutes: int

    def to_dict(self) -> dict:
        """JSON-friendly dict; an unbounded profit factor becomes the string "inf"."""
        d = asdict(self)
        if math.isinf(self.profit_factor):
            d["profit_factor"] = "inf"
        return d


def profit_factor(avg_win: float, avg_loss: float) -> float:
    """avg_win / avg_loss; unbounded with wins and no losses; 0 with neither."""
    if avg_loss > 0:
        return avg_win / avg_loss
    if avg_win > 0:
        return math.inf
    return 0.0


class PerformanceMetrics:
    def __init__(
        self,
        executor: OrderExecutor,
        valuator: PortfolioValuator,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._executor = executor
        self._valuator = valuator
        self._clock = clock or executor.now

    def compute(self) -> MetricsReport:
        snap = self._executor.snapshot()
        total_value = self._valuator.total_value(snap)
        total_profit = total_value - snap.initial_balance

        sells = snap.sell_trades
        wins = [t.profit for t in sells if t.profit is not None and t.profit > 0]
        losses = [t.profit for t in sells if t.profit is not None and t.profit < 0]

        win_rate = len(wins) / len(sells) * 100 if sells else 0.0
        avg_win = sum(wins) / len(wins) if wins else 0.0
        avg_loss = abs(sum(losses) / len(losses)) if losses else 0.0

        elapsed = (self._clock() - snap.started_at).total_seconds()
        return MetricsReport(
            total_value=total_value,
            balance=snap.balance,
            total_profit=total_profit,
            profit_percentage=total_profit / snap.initial_balance * 100,
            total_trades=len(snap.trades),
            open_positions=len(snap.open_positions),
            closed_trades=len(sells),
            winning_trades=len(wins),
            losing_trades=len(losses),
            win_rate=win_rate,
            avg_win=avg_win,
            avg_loss=avg_loss,
            profit_factor=profit_factor(avg_win, avg_loss),
            simulation_duration_minutes=max(0, int(elapsed // 60)),
        )
