"""
Session config loader: JSON file -> frozen SessionConfig, validated against JSON Schema.

Default values: defaults/session.default.json (shipped inside this package)
Schema:         defaults/session_config.schema.json

The file uses the setup-form field names (camelCase). Overrides passed in
code (e.g. from CLI flags) are merged on top of the file before schema
validation, so a bad override is rejected the same way a bad file is.

Usage:
    from config.session_config import load_session_config
    cfg = load_session_config()                              # default
    cfg = load_session_config("my_session.json")             # custom file
    cfg = load_session_config(overrides={"autoTrade": True})
    cfg.initial_balance  # -> 1000000.0
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import jsonschema

logger = logging.getLogger("spotsim.config")


DEFAULTS_DIR = Path(__file__).resolve().parent / "defaults"

DEFAULT_SESSION_PATH = DEFAULTS_DIR / "session.default.json"
DEFAULT_SCHEMA_PATH = DEFAULTS_DIR / "session_config.schema.json"


class StrategyKind(str, Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    COMBINED = "combined"
    AGGRESSIVE = "aggressive"


@dataclass(frozen=True)
class SessionConfig:
    initial_balance: float
    target_profit_pct: float
    target_period_days: int
    strategy: StrategyKind
    auto_trade: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "initialBalance": self.initial_balance,
            "targetProfit": self.target_profit_pct,
            "targetPeriod": self.target_period_days,
            "strategy": self.strategy.value,
            "autoTrade": self.auto_trade,
        }


class SessionConfigError(Exception):
    """Raised when session config loading or validation fails."""


def _validate_schema(data: dict[str, Any], schema_path: Path) -> None:
    """Validate *data* against the JSON Schema at *schema_path*."""
    if not schema_path.exists():
        raise SessionConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise SessionConfigError(f"Session config validation failed: {exc.message}") from exc


def parse_session_config(
    data: dict[str, Any],
    schema_path: str | Path | None = None,
) -> SessionConfig:
    """Validate a raw setup dict and build the frozen SessionConfig."""
    _validate_schema(data, Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH)
    return SessionConfig(
        initial_balance=float(data["initialBalance"]),
        target_profit_pct=float(data["targetProfit"]),
        target_period_days=int(data["targetPeriod"]),
        strategy=StrategyKind(data["strategy"]),
        auto_trade=bool(data["autoTrade"]),
    )


def load_session_config(
    config_path: str | Path | None = None,
    schema_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SessionConfig:
    """Load and validate a session setup.

    Parameters
    ----------
    config_path:
        Path to a session JSON file. Defaults to the packaged ``defaults/session.default.json``.
    schema_path:
        Path to the JSON Schema file. Defaults to the packaged ``defaults/session_config.schema.json``.
    overrides:
        Keys replacing file values before validation (``None`` values are ignored).

    Raises
    ------
    SessionConfigError
        If the file is missing, unparseable, or fails schema validation.
    """
    cfg_path = Path(config_path) if config_path else DEFAULT_SESSION_PATH
    if not cfg_path.exists():
        raise SessionConfigError(f"Session config file not found: {cfg_path}")

    try:
        with open(cfg_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise SessionConfigError(f"Session config is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SessionConfigError(f"Session config must be a JSON object, got {type(data).__name__}")

    if overrides:
        applied = {k: v for k, v in overrides.items() if v is not None}
        if applied:
            data = {**data, **applied}
            logger.debug("Session overrides applied: %s", sorted(applied))

    return parse_session_config(data, schema_path)
