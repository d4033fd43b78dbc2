"""Read-only views over the ledger: valuation, performance metrics, goal progress."""

from portfolio.goals import GoalProgress, GoalTracker
from portfolio.metrics import MetricsReport, PerformanceMetrics, profit_factor
from portfolio.valuator import PortfolioValuator, PositionMark

__all__ = [
    "GoalProgress",
    "GoalTracker",
    "MetricsReport",
    "PerformanceMetrics",
    "PortfolioValuator",
    "PositionMark",
    "profit_factor",
]
