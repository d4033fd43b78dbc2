"""Tests for the order executor: fees, FIFO sells, cost basis, rejections."""

import random
import threading

import pytest

from data.feed import PriceBook, PriceFeedError
from execution.errors import InsufficientBalance, InvalidOrder, NoOpenPosition, PriceUnavailable, TradingError
from execution.models import PositionStatus, TradeSide
from execution.order_executor import OrderExecutor
from portfolio.valuator import PortfolioValuator
from strategy.auto_trade import AutoTradeStrategy


def _state(ex: OrderExecutor) -> tuple:
    snap = ex.snapshot()
    return (
        snap.balance,
        [(p.id, p.amount, p.status) for p in snap.positions],
        [t.id for t in snap.trades],
    )


# ---------------------------------------------------------------------------
# Reference scenario
# ---------------------------------------------------------------------------


def test_buy_scenario(executor: OrderExecutor) -> None:
    pos = executor.buy("BTC", 0.01, 6_500_000)
    assert pos.amount == 0.01
    assert pos.buy_price == 6_500_000
    assert pos.fee == pytest.approx(65.0)
    assert pos.cost == pytest.approx(65_065.0)
    assert pos.status is PositionStatus.OPEN
    assert executor.balance == pytest.approx(934_935.0)
    assert executor.ledger.open_position_count() == 1

    trades = executor.ledger.all_trades()
    assert len(trades) == 1
    assert trades[0].side is TradeSide.BUY
    assert trades[0].total == pytest.approx(65_065.0)
    assert trades[0].profit is None


def test_partial_sell_scenario(executor: OrderExecutor) -> None:
    executor.buy("BTC", 0.01, 6_500_000)
    closed = executor.sell("BTC", 0.005, 6_565_000)

    assert len(closed) == 1
    sliced = closed[0]
    assert sliced.status is PositionStatus.CLOSED
    assert sliced.amount == 0.005
    assert sliced.profit == pytest.approx(259.675)
    assert sliced.profit_percentage == pytest.approx(259.675 / 32_532.5 * 100)

    sell = executor.ledger.all_trades()[-1]
    assert sell.side is TradeSide.SELL
    assert sell.fee == pytest.approx(32.825)
    assert sell.total == pytest.approx(32_792.175)
    assert sell.profit == pytest.approx(259.675)

    (remaining,) = executor.ledger.open_positions("BTC")
    assert remaining.amount == pytest.approx(0.005)
    assert remaining.cost == pytest.approx(65_065.0)  # basis never rewritten
    assert executor.balance == pytest.approx(934_935.0 + 32_792.175)


# ---------------------------------------------------------------------------
# Buy
# ---------------------------------------------------------------------------


def test_buy_debits_cost_plus_fee_and_stays_non_negative(executor: OrderExecutor) -> None:
    before = executor.balance
    for price in (100.0, 250.0, 3_000.0):
        executor.buy("ETH", 10.0, price)
        assert executor.balance == pytest.approx(before - 10.0 * price * 1.001)
        assert executor.balance >= 0
        before = executor.balance


def test_buy_over_budget_is_rejected_without_mutation() -> None:
    ex = OrderExecutor(1_000.0)
    before = _state(ex)
    with pytest.raises(InsufficientBalance) as info:
        ex.buy("BTC", 10.0, 100.0)  # 1000 + 1 fee
    assert info.value.kind == "insufficient_balance"
    assert _state(ex) == before


def test_buy_exact_balance_is_allowed() -> None:
    ex = OrderExecutor(1_001.0)
    ex.buy("BTC", 10.0, 100.0)
    assert ex.balance == pytest.approx(0.0)


@pytest.mark.parametrize("amount", [0.0, -1.0, float("nan")])
def test_buy_rejects_non_positive_amount(executor: OrderExecutor, amount: float) -> None:
    with pytest.raises(InvalidOrder):
        executor.buy("BTC", amount, 100.0)
    assert executor.ledger.all_trades() == ()


def test_buy_resolves_price_from_feed(executor: OrderExecutor, book: PriceBook) -> None:
    book.update("SOL", 20_000.0)
    pos = executor.buy("SOL", 1.0)
    assert pos.buy_price == 20_000.0


def test_buy_without_any_price_is_unavailable(executor: OrderExecutor) -> None:
    with pytest.raises(PriceUnavailable) as info:
        executor.buy("SOL", 1.0)
    assert info.value.kind == "price_unavailable"
    assert executor.balance == 1_000_000.0


def test_zero_explicit_price_is_not_a_price() -> None:
    ex = OrderExecutor(1_000.0)
    with pytest.raises(PriceUnavailable):
        ex.buy("BTC", 1.0, 0.0)


def test_feed_error_becomes_price_unavailable() -> None:
    class BrokenFeed:
        def current_prices(self) -> dict[str, float]:
            raise PriceFeedError("timeout")

    ex = OrderExecutor(1_000.0, price_feed=BrokenFeed())
    with pytest.raises(PriceUnavailable):
        ex.buy("BTC", 1.0)
    assert ex.balance == 1_000.0


# ---------------------------------------------------------------------------
# Sell
# ---------------------------------------------------------------------------


def test_sell_without_open_position_is_rejected(executor: OrderExecutor) -> None:
    executor.buy("ETH", 1.0, 100.0)
    before = _state(executor)
    with pytest.raises(NoOpenPosition) as info:
        executor.sell("BTC", 1.0, 100.0)
    assert info.value.kind == "no_open_position"
    assert _state(executor) == before


def test_sell_without_price_is_rejected_before_position_check(executor: OrderExecutor) -> None:
    with pytest.raises(PriceUnavailable):
        executor.sell("BTC", 1.0)


def test_sell_smaller_than_oldest_lot_touches_only_oldest(executor: OrderExecutor) -> None:
    old = executor.buy("BTC", 0.02, 100.0)
    new = executor.buy("BTC", 0.03, 120.0)
    executor.sell("BTC", 0.005, 130.0)
    assert old.amount == pytest.approx(0.015)
    assert new.amount == 0.03
    assert new.is_open


def test_sell_walks_lots_oldest_first(executor: OrderExecutor) -> None:
    first = executor.buy("BTC", 1.0, 100.0)
    second = executor.buy("BTC", 2.0, 110.0)
    closed = executor.sell("BTC", 1.5, 120.0)

    assert len(closed) == 2
    assert closed[0] is first
    assert first.status is PositionStatus.CLOSED
    assert closed[1].parent_id == second.id
    assert second.amount == pytest.approx(1.5)

    sells = [t for t in executor.ledger.all_trades() if t.side is TradeSide.SELL]
    assert [t.position_id for t in sells] == [first.id, second.id]


def test_full_close_records_exit_fields(executor: OrderExecutor) -> None:
    lot = executor.buy("BTC", 1.0, 100.0)
    (closed,) = executor.sell("BTC", 1.0, 110.0)
    assert closed is lot
    assert lot.sell_price == 110.0
    expected = 110.0 * 0.999 - 100.1
    assert lot.profit == pytest.approx(expected)
    assert lot.profit_percentage == pytest.approx(expected / 100.1 * 100)
    assert lot.closed_at is not None


def test_sell_more_than_open_sells_everything(executor: OrderExecutor) -> None:
    executor.buy("BTC", 1.0, 100.0)
    closed = executor.sell("BTC", 5.0, 100.0)
    assert len(closed) == 1
    assert executor.ledger.open_positions("BTC") == []


def test_two_partial_sells_match_one_combined_sell() -> None:
    split = OrderExecutor(1_000_000.0)
    split.buy("BTC", 1.0, 100.0)
    profits = [p.profit for p in split.sell("BTC", 0.3, 110.0) + split.sell("BTC", 0.3, 110.0)]

    combined = OrderExecutor(1_000_000.0)
    combined.buy("BTC", 1.0, 100.0)
    (one,) = combined.sell("BTC", 0.6, 110.0)

    assert sum(profits) == pytest.approx(one.profit)
    assert split.balance == pytest.approx(combined.balance)


def test_repeated_partial_sells_use_original_cost_per_unit(executor: OrderExecutor) -> None:
    lot = executor.buy("BTC", 1.0, 100.0)
    for _ in range(3):
        (sliced,) = executor.sell("BTC", lot.amount / 2, 100.0)
        assert sliced.cost == pytest.approx(sliced.amount * 100.1)


def test_round_trip_loses_exactly_two_fees(executor: OrderExecutor, book: PriceBook) -> None:
    valuator = PortfolioValuator(executor, book)
    book.update("ETH", 400_000.0)
    before = valuator.total_value()
    amount = 0.25
    executor.buy("ETH", amount)
    executor.sell("ETH", amount)
    notional = amount * 400_000.0
    assert valuator.total_value() == pytest.approx(before - 2 * 0.001 * notional)


# ---------------------------------------------------------------------------
# Snapshot / reset
# ---------------------------------------------------------------------------


def test_snapshot_is_decoupled_from_live_positions(executor: OrderExecutor) -> None:
    lot = executor.buy("BTC", 1.0, 100.0)
    snap = executor.snapshot()
    executor.sell("BTC", 0.5, 100.0)
    assert snap.positions[0].amount == 1.0
    assert lot.amount == 0.5
    assert len(snap.trades) == 1


def test_reset_restores_initial_state(executor: OrderExecutor, clock) -> None:
    executor.buy("BTC", 1.0, 100.0)
    clock.advance(minutes=3)
    executor.reset()
    assert executor.balance == executor.initial_balance
    assert executor.ledger.all_positions() == ()
    assert executor.ledger.all_trades() == ()
    assert executor.started_at == clock.now


def test_constructor_validation() -> None:
    with pytest.raises(ValueError):
        OrderExecutor(0)
    with pytest.raises(ValueError):
        OrderExecutor(100.0, fee_rate=1.5)


# ---------------------------------------------------------------------------
# Float residue across lots
# ---------------------------------------------------------------------------


def test_sell_across_lots_leaves_no_dust_lot(executor: OrderExecutor) -> None:
    first = executor.buy("ETH", 0.1, 100.0)
    second = executor.buy("ETH", 0.2, 100.0)
    closed = executor.sell("ETH", 0.3, 100.0)

    assert executor.ledger.open_positions("ETH") == []
    assert [p.id for p in closed] == [first.id, second.id]
    assert second.status is PositionStatus.CLOSED
    assert second.amount == 0.2
    assert executor.ledger.open_position_count() == 0


def test_selling_summed_open_amount_closes_every_lot(executor: OrderExecutor) -> None:
    for amount in (0.1, 0.2, 0.7):
        executor.buy("ETH", amount, 100.0)
    total = sum(p.amount for p in executor.ledger.open_positions("ETH"))
    closed = executor.sell("ETH", total, 90.0)
    assert len(closed) == 3
    assert all(p.status is PositionStatus.CLOSED for p in closed)
    assert executor.ledger.open_positions("ETH") == []


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


def test_concurrent_orders_and_ticks_are_serialized(book: PriceBook) -> None:
    base = {"BTC": 100.0, "ETH": 50.0}
    book.update_many(base)
    ex = OrderExecutor(100_000.0, price_feed=book)
    strategy = AutoTradeStrategy(ex, book, list(base), rng=random.Random(5))
    failures: list[BaseException] = []

    def worker(seed: int) -> None:
        rng = random.Random(seed)
        for _ in range(300):
            symbol = rng.choice(list(base))
            op = rng.random()
            try:
                if op < 0.35:
                    ex.buy(symbol, rng.uniform(0.1, 20.0))
                elif op < 0.7:
                    ex.sell(symbol, rng.uniform(0.1, 20.0))
                elif op < 0.85:
                    strategy.tick()
                else:
                    book.update(symbol, base[symbol] * rng.uniform(0.95, 1.05))
            except TradingError:
                pass
            except Exception as exc:  # surfaced by the assertion below
                failures.append(exc)
            if ex.balance < 0:
                failures.append(AssertionError(f"negative balance {ex.balance}"))

    threads = [threading.Thread(target=worker, args=(seed,)) for seed in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert failures == []
    snap = ex.snapshot()
    assert len(snap.trades) > 0

    expected = snap.initial_balance
    for t in snap.trades:
        expected = expected - t.total if t.side is TradeSide.BUY else expected + t.total
    assert snap.balance == pytest.approx(expected)
    assert snap.balance >= 0

    position_ids = {p.id for p in snap.positions}
    assert all(t.position_id in position_ids for t in snap.trades)

    # A lot's remaining amount plus its closed slices adds back up to what was bought.
    for lot in (p for p in snap.positions if p.parent_id is None):
        slices = sum(p.amount for p in snap.positions if p.parent_id == lot.id)
        assert lot.amount + slices == pytest.approx(lot.original_amount)
