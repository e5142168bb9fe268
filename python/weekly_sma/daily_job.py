"""Daily batch job: evaluate every tracked ticker and report signal changes.

For each ticker:
1. fetch the latest quote (missing quote -> error entry, ticker skipped)
2. fetch weekly history and upsert the current week's close
3. evaluate SMA / slope / buy / sell and classify
4. update the active-signal tracker

One ticker failing never stops the others. After all tickers, changed BUY and
SELL signals are handed to the notification dispatcher, a market summary of
every processed ticker is always sent, and the run is written to CSV.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .config import IndicatorConfig, JobConfig, SignalConfig
from .data_manager import WeeklySeriesManager, current_week_ending, upsert_weekly_close
from .data_provider import PriceHistoryProvider, QuoteProvider
from .notifications import NotificationDispatcher, SendResult, SignalNotice
from .tracker import SignalTracker, transitions_to_frame
from .types import SignalTransition, StockAnalysis

logger = logging.getLogger(__name__)


@dataclass
class JobSummary:
    processed: List[str] = field(default_factory=list)
    errors: List[Tuple[str, str]] = field(default_factory=list)
    analyses: List[StockAnalysis] = field(default_factory=list)
    company_names: Dict[str, str] = field(default_factory=dict)
    transitions: List[SignalTransition] = field(default_factory=list)
    notification_results: List[SendResult] = field(default_factory=list)
    summary_results: List[SendResult] = field(default_factory=list)
    paths: Dict[str, Path] = field(default_factory=dict)
    duration_sec: float = 0.0

    @property
    def notifications_sent(self) -> int:
        return sum(1 for r in self.notification_results + self.summary_results if r.success)

    @property
    def notifications_failed(self) -> int:
        return sum(1 for r in self.notification_results + self.summary_results if not r.success)

    @property
    def market_summaries_sent(self) -> int:
        return sum(1 for r in self.summary_results if r.success)

    def counts(self) -> dict:
        return {
            "processed": len(self.processed),
            "errors": len(self.errors),
            "signal_changes": len(self.transitions),
            "notifications_sent": self.notifications_sent,
            "notifications_failed": self.notifications_failed,
            "market_summaries_sent": self.market_summaries_sent,
            "duration_sec": round(self.duration_sec, 3),
        }


def evaluate_ticker(
    ticker: str,
    history_provider: PriceHistoryProvider,
    quote_provider: QuoteProvider,
    ind_cfg: IndicatorConfig = IndicatorConfig(),
    sig_cfg: SignalConfig = SignalConfig(),
    job_cfg: JobConfig = JobConfig(),
    today: Optional[date] = None,
) -> Tuple[StockAnalysis, str]:
    """Fetch and evaluate one ticker. Returns the analysis and display name."""
    quote = quote_provider.fetch_quote(ticker)
    if quote is None:
        raise RuntimeError("Failed to fetch latest price")

    series = history_provider.fetch_weekly(ticker, job_cfg.backfill_years)
    week = current_week_ending(today or date.today())
    series = upsert_weekly_close(series, week, quote.price)

    dm = WeeklySeriesManager(ticker, series, ind_cfg)
    analysis = dm.evaluate(quote.price, sig_cfg, recent_rows=job_cfg.recent_sma_rows)
    return analysis, quote.display_name or ticker


def run_daily_job(
    tickers: Iterable[str],
    history_provider: PriceHistoryProvider,
    quote_provider: QuoteProvider,
    tracker: SignalTracker,
    dispatcher: Optional[NotificationDispatcher] = None,
    ind_cfg: IndicatorConfig = IndicatorConfig(),
    sig_cfg: SignalConfig = SignalConfig(),
    job_cfg: JobConfig = JobConfig(),
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    write_outputs: bool = True,
) -> JobSummary:
    start = time.monotonic()
    now = now or datetime.now(timezone.utc)
    summary = JobSummary()
    notices: List[SignalNotice] = []
    all_notices: List[SignalNotice] = []

    # de-duplicate while keeping order
    for ticker in dict.fromkeys(t.strip().upper() for t in tickers if t and t.strip()):
        try:
            analysis, name = evaluate_ticker(ticker, history_provider, quote_provider, ind_cfg, sig_cfg, job_cfg, today)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to process %s", ticker)
            summary.errors.append((ticker, str(exc) or type(exc).__name__))
            continue

        summary.processed.append(ticker)
        summary.analyses.append(analysis)
        summary.company_names[ticker] = name
        all_notices.append(SignalNotice.from_analysis(analysis, name))

        transition = tracker.update(analysis, now=now)
        if transition is not None:
            summary.transitions.append(transition)
            notices.append(all_notices[-1])
            logger.info(
                "%s signal %s -> %s",
                ticker,
                transition.previous.value if transition.previous else "none",
                transition.current.value,
            )

    if dispatcher is not None:
        try:
            if notices:
                summary.notification_results = dispatcher.dispatch(notices)
            # the market summary goes out every run, changed or not
            if all_notices:
                changed = {t.ticker for t in summary.transitions}
                summary.summary_results = [dispatcher.dispatch_summary(all_notices, changed)]
        except Exception as exc:  # noqa: BLE001
            logger.exception("Notification processing failed")
            summary.errors.append(("NOTIFICATIONS", str(exc) or type(exc).__name__))

    summary.duration_sec = time.monotonic() - start
    if write_outputs:
        summary.paths = write_job_outputs(summary, job_cfg.output_dir)

    logger.info("Daily job finished: %s", summary.counts())
    return summary


def summary_frame(summary: JobSummary) -> pd.DataFrame:
    rows = []
    for a in summary.analyses:
        rows.append(
            {
                "ticker": a.ticker,
                "company_name": summary.company_names.get(a.ticker, a.ticker),
                "signal_type": a.signal_type.value,
                "current_price": a.current_price,
                "sma": a.sma,
                "percent_distance": a.percent_distance,
                "slope_direction": a.slope_direction.value,
                "slope_ever_negative": a.slope_ever_negative,
                "sma_period_used": a.sma_period_used,
            }
        )
    cols = [
        "ticker",
        "company_name",
        "signal_type",
        "current_price",
        "sma",
        "percent_distance",
        "slope_direction",
        "slope_ever_negative",
        "sma_period_used",
    ]
    return pd.DataFrame(rows, columns=cols)


def write_job_outputs(summary: JobSummary, output_dir: str | Path) -> dict[str, Path]:
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    sm_path = out_dir / "summary.csv"
    tr_path = out_dir / "transitions.csv"
    sma_path = out_dir / "recent_sma.csv"
    err_path = out_dir / "errors.csv"

    summary_frame(summary).to_csv(sm_path, index=False, encoding="utf-8")

    transitions_to_frame(summary.transitions).to_csv(tr_path, index=False, encoding="utf-8")

    sma_rows = [
        {"ticker": a.ticker, "week_ending": p.week_ending.isoformat(), "sma": p.sma_value}
        for a in summary.analyses
        for p in a.recent_sma
    ]
    pd.DataFrame(sma_rows, columns=["ticker", "week_ending", "sma"]).to_csv(sma_path, index=False, encoding="utf-8")

    pd.DataFrame(summary.errors, columns=["ticker", "error"]).to_csv(err_path, index=False, encoding="utf-8")

    return {"summary": sm_path, "transitions": tr_path, "recent_sma": sma_path, "errors": err_path}
