"""
Session event stream: one JSON object per line for every scheduler event.

Lines go to stderr by default so stdout stays readable for the terminal
summary. Trade-level events can additionally be forwarded to a webhook.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

import requests

logger = logging.getLogger("spotsim.events")

WEBHOOK_TIMEOUT_S = 5.0


class StructuredEventLogger:
    """Writes session events as JSON lines; forwards alert events to a webhook if one is set."""

    ALERT_EVENTS = frozenset({"trade_executed", "order_rejected", "error"})

    def __init__(
        self,
        session_id: str,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: TextIO | None = None,
        http_session: requests.Session | None = None,
    ) -> None:
        self.session_id = session_id
        self.enabled = enabled
        self.webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr
        self._http = http_session

    def _record(self, event: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "session": self.session_id,
        }
        record.update(fields)
        if self.enabled:
            self._write(record)
        if self.webhook_url and event in self.ALERT_EVENTS:
            self._notify(record)
        return record

    def _write(self, record: dict) -> None:
        self._stream.write(json.dumps(record) + "\n")
        self._stream.flush()

    def _notify(self, record: dict) -> None:
        if self._http is None:
            self._http = requests.Session()
        try:
            response = self._http.post(self.webhook_url, json=record, timeout=WEBHOOK_TIMEOUT_S)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Webhook delivery of %s failed: %s", record["event"], exc)

    # ---------- lifecycle ----------

    def session_start(self, initial_balance: float, strategy: str, auto_trade: bool, symbols: list[str]) -> dict:
        return self._record(
            "session_start",
            initial_balance=initial_balance,
            strategy=strategy,
            auto_trade=auto_trade,
            symbols=symbols,
        )

    def shutdown(self, ticks: int) -> dict:
        return self._record("shutdown", ticks=ticks)

    # ---------- loop events ----------

    def price_refresh(self, quotes: int, source: str) -> dict:
        return self._record("price_refresh", quotes=quotes, source=source)

    def tick(self, action: str, message: str) -> dict:
        return self._record("tick", action=action, message=message)

    def metrics(self, total_value: float, profit_percentage: float, win_rate: float, open_positions: int) -> dict:
        """Periodic stats line; floats rounded for readability in log viewers."""
        return self._record(
            "metrics",
            total_value=round(total_value, 2),
            profit_percentage=round(profit_percentage, 4),
            win_rate=round(win_rate, 2),
            open_positions=open_positions,
        )

    # ---------- alerts ----------

    def trade_executed(self, side: str, symbol: str, amount: float, price: float | None, origin: str) -> dict:
        return self._record("trade_executed", side=side, symbol=symbol, amount=amount, price=price, origin=origin)

    def order_rejected(self, reason: str, kind: str, symbol: str | None = None) -> dict:
        return self._record("order_rejected", reason=reason, kind=kind, symbol=symbol)

    def error(self, message: str, detail: str = "") -> dict:
        return self._record("error", message=message, detail=detail)
