"""Signal-change notices, market summaries and dispatchers.

Dispatchers group changed signals into one BUY alert and one SELL alert per
run. NEUTRAL changes are recorded by the tracker but never alerted. Separately,
every run with at least one processed ticker sends a market summary of all
tickers, grouped by signal and flagging the ones that changed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Protocol, Sequence, runtime_checkable

import requests

from .types import SignalType, StockAnalysis

logger = logging.getLogger(__name__)

BUY_ALERT = "buy_alert"
SELL_ALERT = "sell_alert"
MARKET_SUMMARY = "market_summary"


@dataclass(frozen=True)
class SignalNotice:
    ticker: str
    company_name: str
    current_price: float
    sma: float
    percent_distance: float
    signal_type: SignalType

    @classmethod
    def from_analysis(cls, analysis: StockAnalysis, company_name: str) -> "SignalNotice":
        return cls(
            ticker=analysis.ticker,
            company_name=company_name,
            current_price=float(analysis.current_price),
            sma=float(analysis.buy.sma),
            percent_distance=float(analysis.percent_distance),
            signal_type=analysis.signal_type,
        )

    def describe(self) -> str:
        head = f"{self.ticker} ({self.company_name}) {self.signal_type.value}: ${self.current_price:.2f}"
        if not self.sma:
            return f"{head}, not enough history for an SMA"
        return f"{head} vs SMA ${self.sma:.2f} ({self.percent_distance:+.2f}%)"


@dataclass(frozen=True)
class SendResult:
    alert_type: str
    tickers: tuple[str, ...]
    success: bool
    error: Optional[str] = None


def group_alerts(notices: Sequence[SignalNotice]) -> dict[str, list[SignalNotice]]:
    """Split notices into BUY and SELL alerts, dropping NEUTRAL."""
    groups: dict[str, list[SignalNotice]] = {BUY_ALERT: [], SELL_ALERT: []}
    for n in notices:
        if n.signal_type == SignalType.BUY:
            groups[BUY_ALERT].append(n)
        elif n.signal_type in (SignalType.SELL_HIGH, SignalType.SELL_LOW):
            groups[SELL_ALERT].append(n)
    return {k: v for k, v in groups.items() if v}


def format_market_summary(notices: Sequence[SignalNotice], changed_tickers: AbstractSet[str]) -> str:
    """Plain-text overview of every ticker; changed signals are marked with ``*``."""
    sections = [
        ("BUY", [n for n in notices if n.signal_type == SignalType.BUY]),
        ("SELL", [n for n in notices if n.signal_type in (SignalType.SELL_HIGH, SignalType.SELL_LOW)]),
        ("NEUTRAL", [n for n in notices if n.signal_type == SignalType.NEUTRAL]),
    ]
    n_changed = sum(1 for n in notices if n.ticker in changed_tickers)
    lines = [f"**Market Summary: {len(notices)} stocks, {n_changed} signal changes**"]
    for title, group in sections:
        if not group:
            continue
        lines.append(f"{title} ({len(group)})")
        for n in group:
            mark = "* " if n.ticker in changed_tickers else "  "
            lines.append(mark + n.describe())
    return "\n".join(lines)


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Anything that can deliver signal notices."""

    def dispatch(self, notices: Sequence[SignalNotice]) -> List[SendResult]:
        ...

    def dispatch_summary(self, notices: Sequence[SignalNotice], changed_tickers: AbstractSet[str]) -> SendResult:
        ...


class LoggingDispatcher:
    """Write alerts to the log instead of sending them anywhere."""

    def dispatch(self, notices: Sequence[SignalNotice]) -> List[SendResult]:
        results: List[SendResult] = []
        for alert_type, group in group_alerts(notices).items():
            for n in group:
                logger.info("[%s] %s", alert_type, n.describe())
            results.append(SendResult(alert_type, tuple(n.ticker for n in group), success=True))
        return results

    def dispatch_summary(self, notices: Sequence[SignalNotice], changed_tickers: AbstractSet[str]) -> SendResult:
        logger.info("[%s]\n%s", MARKET_SUMMARY, format_market_summary(notices, changed_tickers))
        return SendResult(MARKET_SUMMARY, tuple(n.ticker for n in notices), success=True)


class WebhookDispatcher:
    """Post one message per alert group to a chat webhook (Discord-style JSON)."""

    def __init__(self, webhook_url: str, timeout: float = 15.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def _post(self, alert_type: str, tickers: tuple[str, ...], content: str) -> SendResult:
        try:
            resp = requests.post(self.webhook_url, json={"content": content}, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Webhook %s failed for %s: %s", alert_type, tickers, exc)
            return SendResult(alert_type, tickers, success=False, error=str(exc))
        return SendResult(alert_type, tickers, success=True)

    def dispatch(self, notices: Sequence[SignalNotice]) -> List[SendResult]:
        results: List[SendResult] = []
        for alert_type, group in group_alerts(notices).items():
            tickers = tuple(n.ticker for n in group)
            heading = "BUY Alert" if alert_type == BUY_ALERT else "SELL Alert"
            content = f"**{heading}: {', '.join(tickers)}**\n" + "\n".join(n.describe() for n in group)
            results.append(self._post(alert_type, tickers, content))
        return results

    def dispatch_summary(self, notices: Sequence[SignalNotice], changed_tickers: AbstractSet[str]) -> SendResult:
        tickers = tuple(n.ticker for n in notices)
        return self._post(MARKET_SUMMARY, tickers, format_market_summary(notices, changed_tickers))
