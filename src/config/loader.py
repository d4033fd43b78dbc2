"""
Config loader: YAML file -> frozen dataclass tree.

The Binance base URL may be overridden from the environment
(SPOTSIM_BINANCE_BASE_URL). Config file holds only non-secret values; the
user's session setup (balance, targets, strategy) lives in the session JSON,
see config.session_config.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class EngineConfig:
    fee_rate: float = 0.001
    recent_trades_limit: int = 20


@dataclass(frozen=True)
class FeedConfig:
    source: str = "binance"  # "binance" | "static"
    base_url: str = "https://api.binance.com/api/v3"
    quote_asset: str = "USDT"
    fx_rate: float = 150.0
    timeout_s: float = 5.0
    symbols_per_session: int = 20


@dataclass(frozen=True)
class SchedulerConfig:
    price_interval_s: float = 10.0
    trade_interval_s: float = 0.5
    stats_interval_s: float = 5.0


@dataclass(frozen=True)
class StrategyConfig:
    take_profit_pct: float = 0.5
    scalp_fraction: float = 0.5
    stop_loss_pct: float = -2.0
    entry_probability: float = 0.8
    min_balance: float = 1_000.0
    max_open_positions: int = 50
    min_invest_pct: float = 0.005
    max_invest_pct: float = 0.02
    min_trade_amount: float = 0.00001


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class AppConfig:
    engine: EngineConfig = EngineConfig()
    feed: FeedConfig = FeedConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    strategy: StrategyConfig = StrategyConfig()
    alerting: AlertingConfig = AlertingConfig()
    session_path: str = ""


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    Missing sections fall back to defaults. SPOTSIM_BINANCE_BASE_URL, when
    set, replaces feed.base_url.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    en_raw = raw.get("engine", {})
    en_cfg = EngineConfig(
        fee_rate=float(en_raw.get("fee_rate", 0.001)),
        recent_trades_limit=int(en_raw.get("recent_trades_limit", 20)),
    )
    if not 0 <= en_cfg.fee_rate < 1:
        raise ValueError(f"engine.fee_rate must be in [0, 1), got {en_cfg.fee_rate}")

    fd_raw = raw.get("feed", {})
    fd_cfg = FeedConfig(
        source=str(fd_raw.get("source", "binance")),
        base_url=os.environ.get("SPOTSIM_BINANCE_BASE_URL") or str(fd_raw.get("base_url", FeedConfig.base_url)),
        quote_asset=str(fd_raw.get("quote_asset", "USDT")),
        fx_rate=float(fd_raw.get("fx_rate", 150.0)),
        timeout_s=float(fd_raw.get("timeout_s", 5.0)),
        symbols_per_session=int(fd_raw.get("symbols_per_session", 20)),
    )
    if fd_cfg.source not in ("binance", "static"):
        raise ValueError(f"feed.source must be 'binance' or 'static', got {fd_cfg.source!r}")

    sc_raw = raw.get("scheduler", {})
    sc_cfg = SchedulerConfig(
        price_interval_s=float(sc_raw.get("price_interval_s", 10.0)),
        trade_interval_s=float(sc_raw.get("trade_interval_s", 0.5)),
        stats_interval_s=float(sc_raw.get("stats_interval_s", 5.0)),
    )

    st_raw = raw.get("strategy", {})
    st_cfg = StrategyConfig(
        take_profit_pct=float(st_raw.get("take_profit_pct", 0.5)),
        scalp_fraction=float(st_raw.get("scalp_fraction", 0.5)),
        stop_loss_pct=float(st_raw.get("stop_loss_pct", -2.0)),
        entry_probability=float(st_raw.get("entry_probability", 0.8)),
        min_balance=float(st_raw.get("min_balance", 1_000)),
        max_open_positions=int(st_raw.get("max_open_positions", 50)),
        min_invest_pct=float(st_raw.get("min_invest_pct", 0.005)),
        max_invest_pct=float(st_raw.get("max_invest_pct", 0.02)),
        min_trade_amount=float(st_raw.get("min_trade_amount", 0.00001)),
    )
    if st_cfg.min_invest_pct > st_cfg.max_invest_pct:
        raise ValueError("strategy.min_invest_pct must not exceed strategy.max_invest_pct")

    a_raw = raw.get("alerting", {})
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=str(a_raw.get("webhook_url", "")),
    )

    return AppConfig(
        engine=en_cfg,
        feed=fd_cfg,
        scheduler=sc_cfg,
        strategy=st_cfg,
        alerting=a_cfg,
        session_path=str(raw.get("session_path", "") or ""),
    )
