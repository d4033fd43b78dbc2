"""
Configuration loaders.

App config:      reads config.yaml (engine, feed, scheduler, strategy, alerting).
Session config:  reads session.default.json (or override), validates against JSON Schema.
"""

from config.loader import (
    AlertingConfig,
    AppConfig,
    EngineConfig,
    FeedConfig,
    SchedulerConfig,
    StrategyConfig,
    load_config,
)
from config.session_config import (
    SessionConfig,
    SessionConfigError,
    StrategyKind,
    load_session_config,
    parse_session_config,
)

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AppConfig",
    "EngineConfig",
    "FeedConfig",
    "SchedulerConfig",
    "StrategyConfig",
    "load_config",
    # Session config (JSON + schema)
    "SessionConfig",
    "SessionConfigError",
    "StrategyKind",
    "load_session_config",
    "parse_session_config",
]
