"""Session wiring: one in-memory ledger, its views, and the auto-trade loop hooks."""

from engine.session import IDLE_STATUS, OrderResult, SessionSnapshot, TradingSession

__all__ = ["IDLE_STATUS", "OrderResult", "SessionSnapshot", "TradingSession"]
