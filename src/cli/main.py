"""
CLI entry point: spotsim prices | trade | run | health.

Every command loads config from --config (default config.yaml, built-in
defaults when that default file is absent) and the session setup from
--session (default: the session file packaged with config). All state lives in
memory for the duration of one command.
"""

import asyncio
import logging
import random
import sys
import uuid
from pathlib import Path

import click
from dotenv import load_dotenv

from config import AppConfig, SessionConfigError, load_config, load_session_config

load_dotenv()

logger = logging.getLogger("spotsim")

DEFAULT_CONFIG = "config.yaml"


def _setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _load_app_config(path: str) -> AppConfig:
    if path == DEFAULT_CONFIG and not Path(path).exists():
        return AppConfig()
    return load_config(path)


def _build_feed(cfg: AppConfig, offline: bool):
    """Static default-price feed offline or when configured; Binance otherwise."""
    from data import StaticPriceFeed, get_binance_feed

    if offline or cfg.feed.source == "static":
        return StaticPriceFeed(), "static"
    feed = get_binance_feed(
        base_url=cfg.feed.base_url,
        quote_asset=cfg.feed.quote_asset,
        fx_rate=cfg.feed.fx_rate,
        timeout_s=cfg.feed.timeout_s,
    )
    return feed, "binance"


def parse_order(text: str) -> tuple[str, str, float, float | None]:
    """Parse ``side:SYMBOL:amount[@price]``, e.g. ``buy:BTC:0.01`` or ``sell:BTC:0.005@6565000``."""
    parts = text.split(":")
    if len(parts) != 3:
        raise click.BadParameter(f"Order {text!r} must look like side:SYMBOL:amount[@price]")
    side, symbol, rest = parts[0].strip().lower(), parts[1].strip().upper(), parts[2].strip()
    if side not in ("buy", "sell"):
        raise click.BadParameter(f"Order side must be 'buy' or 'sell', got {side!r}")
    if not symbol:
        raise click.BadParameter(f"Order {text!r} has no symbol")
    amount_str, _, price_str = rest.partition("@")
    try:
        amount = float(amount_str)
        price = float(price_str) if price_str else None
    except ValueError as exc:
        raise click.BadParameter(f"Order {text!r} has a non-numeric amount or price") from exc
    return side, symbol, amount, price


@click.group()
@click.option("--config", "config_path", default=DEFAULT_CONFIG, help="Path to config file.")
@click.option("--session", "session_path", default=None, help="Path to session setup JSON.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: str, session_path: str | None, verbose: bool) -> None:
    """spotsim: simulated spot trading with FIFO lots, fees and an auto-trade loop."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["session_path"] = session_path


def _load_session(ctx: click.Context, cfg: AppConfig, **overrides):
    path = ctx.obj["session_path"] or cfg.session_path or None
    try:
        return load_session_config(path, overrides=overrides)
    except SessionConfigError as exc:
        raise click.ClickException(str(exc)) from exc


# ---------- spotsim prices ----------


@cli.command()
@click.option("--offline", is_flag=True, default=False, help="Use the built-in default price table.")
@click.pass_context
def prices(ctx: click.Context, offline: bool) -> None:
    """Show current quotes for the instrument universe."""
    from cli.output import format_prices
    from data import PriceFeedError, StaticPriceFeed

    cfg = _load_app_config(ctx.obj["config_path"])
    feed, source = _build_feed(cfg, offline)
    try:
        quotes = feed.current_prices()
    except PriceFeedError as exc:
        click.echo(f"Price feed unavailable ({exc}); showing default prices.")
        quotes, source = StaticPriceFeed().current_prices(), "static"
    click.echo(format_prices(quotes, source))


# ---------- spotsim trade ----------


@cli.command()
@click.argument("orders", nargs=-1, required=True)
@click.option("--offline", is_flag=True, default=False, help="Use the built-in default price table.")
@click.option("--balance", type=float, default=None, help="Override the initial balance.")
@click.pass_context
def trade(ctx: click.Context, orders: tuple[str, ...], offline: bool, balance: float | None) -> None:
    """Apply manual market orders in order, then print the session summary.

    ORDER is side:SYMBOL:amount[@price]; without @price the latest quote is used.
    """
    from cli.output import format_order_result, format_session_summary
    from cli.scheduler import load_initial_prices
    from cli.structured_log import StructuredEventLogger
    from engine import TradingSession

    parsed = [parse_order(o) for o in orders]
    cfg = _load_app_config(ctx.obj["config_path"])
    session_cfg = _load_session(ctx, cfg, initialBalance=balance, autoTrade=False)
    events = StructuredEventLogger(
        uuid.uuid4().hex[:8],
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )

    session = TradingSession(session_cfg, cfg)
    feed, source = _build_feed(cfg, offline)
    session.attach_feed(feed)
    load_initial_prices(session, feed)
    session.detach_feeds()
    events.session_start(session_cfg.initial_balance, session_cfg.strategy.value, False, session.symbols)

    click.echo(f"Applying {len(parsed)} order(s) with {source} prices:")
    for side, symbol, amount, price in parsed:
        result = session.submit_order(side, symbol, amount, price)
        click.echo(format_order_result(result))
        if result.accepted:
            events.trade_executed(side, symbol, amount, price, origin="manual")
        else:
            events.order_rejected(reason=result.message, kind=result.error or "", symbol=symbol)

    click.echo("")
    click.echo(format_session_summary(session.snapshot()))


# ---------- spotsim run ----------


@cli.command()
@click.option("--offline", is_flag=True, default=False, help="Use the built-in default price table.")
@click.option("--ticks", type=int, default=None, help="Stop after this many auto-trade ticks.")
@click.option("--duration", type=float, default=None, help="Stop after this many seconds.")
@click.option("--auto/--no-auto", "auto_trade", default=None, help="Override the session's autoTrade flag.")
@click.option("--balance", type=float, default=None, help="Override the initial balance.")
@click.option("--seed", type=int, default=None, help="Seed the strategy's random source.")
@click.pass_context
def run(
    ctx: click.Context,
    offline: bool,
    ticks: int | None,
    duration: float | None,
    auto_trade: bool | None,
    balance: float | None,
    seed: int | None,
) -> None:
    """Run a live session: price refresh, auto-trade ticks, periodic metrics.

    Ctrl+C for graceful shutdown; the summary is printed either way.
    """
    from cli.output import format_session_summary, format_tick
    from cli.scheduler import run_session
    from cli.structured_log import StructuredEventLogger
    from engine import TradingSession
    from strategy import ACTION_NONE

    cfg = _load_app_config(ctx.obj["config_path"])
    session_cfg = _load_session(ctx, cfg, initialBalance=balance, autoTrade=auto_trade)
    events = StructuredEventLogger(
        uuid.uuid4().hex[:8],
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )
    session = TradingSession(session_cfg, cfg, rng=random.Random(seed))
    feed, source = _build_feed(cfg, offline)

    if not session.auto_trade and duration is None:
        click.echo("Auto-trade is off and no --duration given; nothing would happen. Use --auto or --duration.")
        return

    events.session_start(session_cfg.initial_balance, session_cfg.strategy.value, session.auto_trade, session.symbols)
    click.echo(f"Session started: balance {session_cfg.initial_balance:,.0f}, strategy {session_cfg.strategy.value}, "
               f"{len(session.symbols)} symbols, {source} prices  |  Ctrl+C to stop\n")

    def on_tick(result) -> None:
        if result.action != ACTION_NONE:
            click.echo(format_tick(result))

    try:
        stats = asyncio.run(run_session(
            session, feed, cfg.scheduler,
            events=events, max_ticks=ticks, duration_s=duration, on_tick=on_tick, source=source,
        ))
        click.echo(f"\nStopped after {stats.ticks} tick(s): {stats.trades} trade(s), "
                   f"{stats.rejections} rejection(s), {stats.feed_errors} feed error(s).")
    except KeyboardInterrupt:
        click.echo("\n\nShutting down.")

    click.echo(format_session_summary(session.snapshot()))


# ---------- spotsim health ----------


@cli.command()
@click.option("--offline", is_flag=True, default=False, help="Skip the live feed check.")
@click.pass_context
def health(ctx: click.Context, offline: bool) -> None:
    """Check config, session setup and price feed.

    Exit code 0 = healthy, 1 = unhealthy.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = _load_app_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded (feed={cfg.feed.source})"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        session_cfg = load_session_config(ctx.obj["session_path"] or cfg.session_path or None)
        checks.append(("session", True, f"validated (balance={session_cfg.initial_balance:,.0f}, "
                                        f"strategy={session_cfg.strategy.value})"))
    except SessionConfigError as e:
        checks.append(("session", False, str(e)))

    if not offline:
        from data import PriceFeedError

        feed, source = _build_feed(cfg, offline=False)
        try:
            quotes = feed.current_prices()
            checks.append(("feed", bool(quotes), f"{len(quotes)} quotes from {source}"))
        except PriceFeedError as e:
            checks.append(("feed", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
