"""
Goal tracking: progress of portfolio value towards the session's target
profit within its target period.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class GoalProgress:
    start_value: float
    current_value: float
    target_value: float
    progress_pct: float
    days_elapsed: int
    days_remaining: int
    daily_target_growth_pct: float
    actual_daily_growth_pct: float
    on_track: bool


class GoalTracker:
    """Compare current value with ``start * (1 + target_profit_pct / 100)`` over ``target_period_days``."""

    def __init__(self, start_value: float, target_profit_pct: float, target_period_days: int) -> None:
        if start_value <= 0:
            raise ValueError("start_value must be positive")
        if target_period_days <= 0:
            raise ValueError("target_period_days must be positive")
        self.start_value = start_value
        self.target_profit_pct = target_profit_pct
        self.target_period_days = target_period_days

    @property
    def target_value(self) -> float:
        return self.start_value * (1 + self.target_profit_pct / 100)

    @property
    def expected_return(self) -> float:
        return self.target_value - self.start_value

    @property
    def daily_target_growth_pct(self) -> float:
        return self.target_profit_pct / self.target_period_days

    def progress(self, current_value: float, started_at: datetime, now: datetime) -> GoalProgress:
        # Day one counts as a full day so growth rates stay finite.
        days_elapsed = max(1, (now - started_at).days)
        gain = current_value - self.start_value
        target_gain = self.target_value - self.start_value
        progress_pct = gain / target_gain * 100 if target_gain else 0.0
        actual_daily = gain / self.start_value / days_elapsed * 100
        return GoalProgress(
            start_value=self.start_value,
            current_value=current_value,
            target_value=self.target_value,
            progress_pct=progress_pct,
            days_elapsed=days_elapsed,
            days_remaining=self.target_period_days - days_elapsed,
            daily_target_growth_pct=self.daily_target_growth_pct,
            actual_daily_growth_pct=actual_daily,
            on_track=actual_daily >= self.daily_target_growth_pct,
        )
