"""
Human-readable session output for the terminal.

Every CLI command uses these formatters; structured events carry the same
numbers for machines.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from engine.session import OrderResult, SessionSnapshot
    from execution.models import Trade
    from portfolio.goals import GoalProgress
    from portfolio.metrics import MetricsReport
    from portfolio.valuator import PositionMark
    from strategy.auto_trade import TickResult


def _fmt_money(value: float) -> str:
    return f"¥{value:,.2f}"


def _fmt_price(price: float) -> str:
    if price >= 1_000:
        return f"{price:,.0f}"
    if price >= 1:
        return f"{price:,.2f}"
    return f"{price:.6f}"


def format_profit_factor(pf: float) -> str:
    return "∞" if math.isinf(pf) else f"{pf:.2f}"


def format_prices(prices: dict[str, float], source: str) -> str:
    lines = [f"=== Prices ({source}, {len(prices)} symbols) ==="]
    for symbol in sorted(prices):
        lines.append(f"  {symbol:6s} {_fmt_price(prices[symbol]):>16s}")
    lines.append("===")
    return "\n".join(lines)


def format_order_result(result: OrderResult) -> str:
    tag = "OK " if result.accepted else "REJ"
    line = f"  [{tag}] {result.side.value:4s} {result.symbol:6s} {result.amount:.8g}: {result.message}"
    if result.error:
        line += f" ({result.error})"
    return line


def format_tick(result: TickResult) -> str:
    suffix = f" [{result.error}]" if result.error else ""
    return f"  [{result.action:10s}] {result.message}{suffix}"


def format_marks(marks: Iterable[PositionMark]) -> str:
    marks = list(marks)
    if not marks:
        return "  Open positions: none"
    lines = [f"  Open positions ({len(marks)}):"]
    for m in marks:
        stale = "" if m.quoted else "  (no quote, marked at cost)"
        lines.append(
            f"    {m.symbol:6s} {m.amount:.8g} @ {_fmt_price(m.buy_price)} -> {_fmt_price(m.current_price)}"
            f"  PnL {m.unrealized_pnl:+,.2f} ({m.unrealized_pct:+.2f}%){stale}"
        )
    return "\n".join(lines)


def format_trades(trades: Iterable[Trade]) -> str:
    trades = list(trades)
    if not trades:
        return "  Recent trades: none"
    lines = [f"  Recent trades ({len(trades)}, newest first):"]
    for t in trades:
        profit = f"  profit {t.profit:+,.2f}" if t.profit is not None else ""
        lines.append(
            f"    {t.timestamp:%H:%M:%S} {t.side.value:4s} {t.symbol:6s} {t.amount:.8g} @ {_fmt_price(t.price)}"
            f"  fee {t.fee:,.4f}{profit}"
        )
    return "\n".join(lines)


def format_metrics(m: MetricsReport) -> str:
    lines = [
        f"Total value  : {_fmt_money(m.total_value)}",
        f"Cash         : {_fmt_money(m.balance)}",
        f"Profit       : {m.total_profit:+,.2f} ({m.profit_percentage:+.2f}%)",
        f"Trades       : {m.total_trades} total, {m.closed_trades} closing (W:{m.winning_trades} / L:{m.losing_trades})",
        f"Win rate     : {m.win_rate:.1f}%",
        f"Avg win/loss : {m.avg_win:,.2f} / {m.avg_loss:,.2f}",
        f"Profit factor: {format_profit_factor(m.profit_factor)}",
        f"Open         : {m.open_positions} position(s)",
        f"Duration     : {m.simulation_duration_minutes} min",
    ]
    return "\n".join(lines)


def format_goal(g: GoalProgress) -> str:
    status = "on track" if g.on_track else "behind"
    return "\n".join([
        f"Goal         : {_fmt_money(g.target_value)} ({g.progress_pct:.1f}% reached, {status})",
        f"Daily growth : {g.actual_daily_growth_pct:+.3f}% actual vs {g.daily_target_growth_pct:.3f}% needed",
        f"Days         : {g.days_elapsed} elapsed, {g.days_remaining} remaining",
    ])


def format_session_summary(snap: SessionSnapshot) -> str:
    """Full end-of-session report."""
    parts = [
        "=== Session Summary ===",
        format_metrics(snap.metrics),
        format_goal(snap.goal),
        f"AI status    : {snap.ai_status}",
        "",
        format_marks(snap.marks),
        "",
        format_trades(snap.recent_trades),
        "===",
    ]
    return "\n".join(parts)
