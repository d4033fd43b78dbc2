"""
Domain errors for order execution.

Every TradingError is an expected, recoverable rejection: the order is not
applied and ledger state is unchanged. ``kind`` is the stable identifier
surfaced to callers.
"""


class TradingError(Exception):
    kind = "trading_error"


class PriceUnavailable(TradingError):
    kind = "price_unavailable"

    def __init__(self, symbol: str) -> None:
        super().__init__(f"No price available for {symbol}")
        self.symbol = symbol


class InsufficientBalance(TradingError):
    kind = "insufficient_balance"

    def __init__(self, required: float, balance: float) -> None:
        super().__init__(f"Insufficient balance: required {required:,.2f}, available {balance:,.2f}")
        self.required = required
        self.balance = balance


class NoOpenPosition(TradingError):
    kind = "no_open_position"

    def __init__(self, symbol: str) -> None:
        super().__init__(f"No open position to sell for {symbol}")
        self.symbol = symbol


class InvalidOrder(TradingError):
    kind = "invalid_order"


class PositionClosedError(RuntimeError):
    """Attempt to mutate a closed position. A bug, not a trading rejection."""
