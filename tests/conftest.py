"""Pytest fixtures: controllable clock, executor, price book, session setup."""

from datetime import datetime, timedelta, timezone

import pytest

from config.session_config import SessionConfig, StrategyKind
from data.feed import PriceBook
from execution.order_executor import OrderExecutor


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 2, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def book(clock: FakeClock) -> PriceBook:
    return PriceBook(clock=clock)


@pytest.fixture
def executor(book: PriceBook, clock: FakeClock) -> OrderExecutor:
    """1,000,000 starting balance, 0.1% fee, prices resolved from *book*."""
    return OrderExecutor(1_000_000.0, price_feed=book, clock=clock)


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(
        initial_balance=1_000_000.0,
        target_profit_pct=20.0,
        target_period_days=30,
        strategy=StrategyKind.COMBINED,
        auto_trade=True,
    )
