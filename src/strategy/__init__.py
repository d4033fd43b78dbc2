"""Auto-trade decision procedure driven by the session scheduler."""

from strategy.auto_trade import (
    ACTION_ENTRY,
    ACTION_NONE,
    ACTION_SCALP,
    ACTION_STOP_LOSS,
    AutoTradeStrategy,
    TickResult,
)

__all__ = [
    "ACTION_ENTRY",
    "ACTION_NONE",
    "ACTION_SCALP",
    "ACTION_STOP_LOSS",
    "AutoTradeStrategy",
    "TickResult",
]
