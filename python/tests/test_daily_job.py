from datetime import date, datetime, timezone

import pandas as pd
import pytest

from helpers import make_closes
from weekly_sma.config import JobConfig
from weekly_sma.daily_job import evaluate_ticker, run_daily_job
from weekly_sma.notifications import MARKET_SUMMARY, LoggingDispatcher, SendResult
from weekly_sma.tracker import SignalTracker
from weekly_sma.types import Quote, SignalType

TODAY = date(2024, 6, 5)
NOW = datetime(2024, 6, 5, 21, 0, tzinfo=timezone.utc)

# latest price per ticker; history is a flat 100 for every ticker
QUOTES = {"BUYME": 103.0, "DIP": 95.0, "FLAT": 100.0, "BROKEN": 100.0}


class FakeHistory:
    def __init__(self):
        self.calls = []

    def fetch_weekly(self, ticker, years):
        self.calls.append((ticker, years))
        if ticker == "BROKEN":
            raise RuntimeError("no data for BROKEN")
        return make_closes(210, 100)


class FakeQuotes:
    def fetch_quote(self, ticker):
        if ticker not in QUOTES:
            return None
        return Quote(QUOTES[ticker], f"{ticker} Inc")


class RecordingDispatcher(LoggingDispatcher):
    def __init__(self):
        self.batches = []
        self.summaries = []

    def dispatch(self, notices):
        self.batches.append(list(notices))
        return super().dispatch(notices)

    def dispatch_summary(self, notices, changed_tickers):
        self.summaries.append(([n.ticker for n in notices], set(changed_tickers)))
        return super().dispatch_summary(notices, changed_tickers)


class ExplodingDispatcher:
    def dispatch(self, notices):
        raise RuntimeError("webhook misconfigured")


def run(tickers, tracker=None, dispatcher=None, tmp_path=None):
    job_cfg = JobConfig(output_dir=str(tmp_path)) if tmp_path else JobConfig()
    return run_daily_job(
        tickers,
        FakeHistory(),
        FakeQuotes(),
        tracker or SignalTracker(),
        dispatcher=dispatcher,
        job_cfg=job_cfg,
        today=TODAY,
        now=NOW,
        write_outputs=tmp_path is not None,
    )


def test_evaluate_ticker_upserts_current_week():
    history = FakeHistory()
    analysis, name = evaluate_ticker("BUYME", history, FakeQuotes(), today=TODAY)
    assert name == "BUYME Inc"
    assert analysis.signal_type is SignalType.BUY
    assert analysis.current_price == 103.0
    assert analysis.recent_sma[-1].week_ending == date(2024, 6, 7)
    assert history.calls == [("BUYME", 10)]


def test_evaluate_ticker_missing_quote():
    with pytest.raises(RuntimeError, match="latest price"):
        evaluate_ticker("GHOST", FakeHistory(), FakeQuotes(), today=TODAY)


def test_failures_are_isolated():
    summary = run(["buyme", "BROKEN", "GHOST", "DIP"])
    assert summary.processed == ["BUYME", "DIP"]
    assert [t for t, _ in summary.errors] == ["BROKEN", "GHOST"]
    assert "no data" in summary.errors[0][1]
    assert summary.errors[1][1] == "Failed to fetch latest price"


def test_tickers_are_normalised_and_deduplicated():
    summary = run([" flat ", "FLAT", "", "Flat"])
    assert summary.processed == ["FLAT"]


def test_signals_and_notifications():
    dispatcher = RecordingDispatcher()
    summary = run(["BUYME", "DIP", "FLAT"], dispatcher=dispatcher)

    by_ticker = {a.ticker: a.signal_type for a in summary.analyses}
    assert by_ticker == {"BUYME": SignalType.BUY, "DIP": SignalType.SELL_LOW, "FLAT": SignalType.NEUTRAL}
    # first observation of every ticker is a transition
    assert len(summary.transitions) == 3
    assert len(dispatcher.batches) == 1
    # BUY alert, SELL alert and the market summary
    assert summary.notifications_sent == 3
    assert summary.market_summaries_sent == 1
    assert summary.counts()["signal_changes"] == 3
    assert dispatcher.summaries == [(["BUYME", "DIP", "FLAT"], {"BUYME", "DIP", "FLAT"})]


def test_unchanged_signals_still_get_market_summary():
    tracker = SignalTracker()
    run(["BUYME", "FLAT"], tracker=tracker)
    dispatcher = RecordingDispatcher()
    summary = run(["BUYME", "FLAT"], tracker=tracker, dispatcher=dispatcher)
    assert summary.transitions == []
    assert dispatcher.batches == []
    assert dispatcher.summaries == [(["BUYME", "FLAT"], set())]
    assert summary.notifications_sent == 1
    assert summary.counts()["market_summaries_sent"] == 1


def test_no_market_summary_without_processed_tickers():
    dispatcher = RecordingDispatcher()
    summary = run(["BROKEN", "GHOST"], dispatcher=dispatcher)
    assert dispatcher.summaries == []
    assert summary.market_summaries_sent == 0


def test_failed_market_summary_is_counted():
    class FailingSummary(LoggingDispatcher):
        def dispatch_summary(self, notices, changed_tickers):
            return SendResult(MARKET_SUMMARY, tuple(n.ticker for n in notices), success=False, error="503")

    summary = run(["BUYME"], dispatcher=FailingSummary())
    assert summary.notifications_sent == 1
    assert summary.notifications_failed == 1
    assert summary.market_summaries_sent == 0


def test_dispatcher_failure_is_recorded():
    summary = run(["BUYME"], dispatcher=ExplodingDispatcher())
    assert summary.processed == ["BUYME"]
    assert summary.errors == [("NOTIFICATIONS", "webhook misconfigured")]


def test_writes_outputs(tmp_path):
    summary = run(["BUYME", "BROKEN"], tmp_path=tmp_path)
    assert set(summary.paths) == {"summary", "transitions", "recent_sma", "errors"}

    sm = pd.read_csv(summary.paths["summary"])
    assert list(sm["ticker"]) == ["BUYME"]
    assert sm.loc[0, "signal_type"] == "BUY"
    assert sm.loc[0, "company_name"] == "BUYME Inc"

    tr = pd.read_csv(summary.paths["transitions"], keep_default_na=False)
    assert list(tr["current"]) == ["BUY"]
    assert list(tr["previous"]) == [""]

    assert len(pd.read_csv(summary.paths["recent_sma"])) == 10
    errors = pd.read_csv(summary.paths["errors"])
    assert list(errors["ticker"]) == ["BROKEN"]
