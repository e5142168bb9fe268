"""Data providers (yfinance / Alpha Vantage / CSV) returning weekly closes."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Protocol

import pandas as pd
import requests

from .data_manager import current_week_ending
from .types import Quote, WeeklyClose

logger = logging.getLogger(__name__)


class PriceHistoryProvider(Protocol):
    def fetch_weekly(self, ticker: str, years: int) -> list[WeeklyClose]: ...


class QuoteProvider(Protocol):
    def fetch_quote(self, ticker: str) -> Optional[Quote]: ...


def _close_column(df: pd.DataFrame) -> pd.Series:
    # yfinance can return MultiIndex columns depending on options/version.
    if isinstance(df.columns, pd.MultiIndex):
        tickers = list(dict.fromkeys(df.columns.get_level_values(-1)))
        if len(tickers) == 1:
            df = df.copy()
            df.columns = df.columns.get_level_values(0)
        else:
            df = df.xs(tickers[0], axis=1, level=-1, drop_level=True)

    by_lower = {str(c).strip().lower(): c for c in df.columns}
    for name in ("close", "close_price", "adj close", "adjclose"):
        if name in by_lower:
            return df[by_lower[name]]
    raise ValueError(f"Missing close column, got: {list(df.columns)}")


def weekly_closes_from_frame(df: pd.DataFrame) -> list[WeeklyClose]:
    """Convert a date-indexed frame with a close column into weekly closes.

    Every row is keyed by the Friday of its week (yfinance dates weekly bars by
    their Monday). Rows without a close are dropped, duplicate weeks keep the
    last row and the result is sorted oldest first.
    """
    close = pd.to_numeric(_close_column(df), errors="coerce")
    idx = pd.to_datetime(close.index)
    if getattr(idx, "tz", None) is not None:
        idx = idx.tz_localize(None)
    close = pd.Series(close.to_numpy(dtype=float), index=idx.normalize()).dropna()
    close = close[close > 0]
    rows: dict = {}
    for ts, px in close.sort_index().items():
        rows[current_week_ending(ts.date())] = float(px)
    return [WeeklyClose(week_ending=wk, close_price=px) for wk, px in sorted(rows.items())]


class YfinanceProvider:
    """Fetch weekly history and quotes from yfinance."""

    def fetch_weekly(self, ticker: str, years: int = 10) -> list[WeeklyClose]:
        import yfinance as yf  # local import to keep dependency optional in some environments

        df = yf.download(
            tickers=ticker,
            period=f"{int(years)}y",
            interval="1wk",
            auto_adjust=False,
            progress=False,
        )
        if df is None or len(df) == 0:
            raise RuntimeError(f"yfinance returned empty data for symbol={ticker}")
        return weekly_closes_from_frame(df)

    def fetch_quote(self, ticker: str) -> Optional[Quote]:
        """Latest price and display name, or None if the quote is unavailable."""
        import yfinance as yf

        try:
            t = yf.Ticker(ticker)
            price = t.fast_info.last_price
            if price is None or not price > 0:
                return None
        except Exception as exc:  # noqa: BLE001
            logger.warning("Quote lookup failed for %s: %s", ticker, exc)
            return None

        # the name comes from quoteSummary, which fails more often than the price
        try:
            info = t.info or {}
        except Exception as exc:  # noqa: BLE001
            logger.warning("Name lookup failed for %s, using ticker: %s", ticker, exc)
            info = {}

        name = info.get("shortName") or info.get("longName") or info.get("symbol") or ticker
        return Quote(price=float(price), display_name=str(name))


class AlphaVantageProvider:
    """Weekly adjusted closes from Alpha Vantage.

    The free tier limits request rate; a rate-limit note is raised as an error
    so the caller can fall back or skip the ticker.
    """

    BASE_URL = "https://www.alphavantage.co/query"

    def __init__(self, api_key: Optional[str] = None, timeout: float = 30.0):
        self.api_key = api_key or os.environ.get("ALPHA_VANTAGE_API_KEY")
        self.timeout = timeout

    def fetch_weekly(self, ticker: str, years: int = 10) -> list[WeeklyClose]:
        if not self.api_key:
            raise RuntimeError("ALPHA_VANTAGE_API_KEY not configured")

        resp = requests.get(
            self.BASE_URL,
            params={
                "function": "TIME_SERIES_WEEKLY_ADJUSTED",
                "symbol": ticker,
                "outputsize": "full",
                "apikey": self.api_key,
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        if "Note" in data:
            raise RuntimeError("Alpha Vantage rate limit reached")
        if "Error Message" in data:
            raise RuntimeError(f"Alpha Vantage: {data['Error Message']}")
        series = data.get("Weekly Adjusted Time Series")
        if not series:
            raise RuntimeError(f"No weekly data returned from Alpha Vantage for {ticker}")

        df = pd.DataFrame.from_dict(series, orient="index")
        df.index = pd.to_datetime(df.index)
        cutoff = pd.Timestamp.today().normalize() - pd.DateOffset(years=int(years))
        df = df[df.index >= cutoff]
        return weekly_closes_from_frame(df[["5. adjusted close"]].rename(columns={"5. adjusted close": "Close"}))


class FallbackPriceProvider:
    """Try ``primary`` first and ``fallback`` when it fails or returns nothing."""

    def __init__(self, primary: PriceHistoryProvider, fallback: PriceHistoryProvider):
        self.primary = primary
        self.fallback = fallback

    def fetch_weekly(self, ticker: str, years: int = 10) -> list[WeeklyClose]:
        try:
            data = self.primary.fetch_weekly(ticker, years)
            if data:
                return data
            raise RuntimeError("primary provider returned no data")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Primary provider failed for %s, trying fallback: %s", ticker, exc)

        try:
            return self.fallback.fetch_weekly(ticker, years)
        except Exception as exc:  # noqa: BLE001
            logger.error("Both data sources failed for %s: %s", ticker, exc)
            raise RuntimeError(f"Failed to fetch data for {ticker} from all sources") from exc


class CsvProvider:
    """Load weekly closes from a CSV file (date column + close column)."""

    def fetch_weekly_csv(self, csv_path: str | Path, datetime_col: str = "Date") -> list[WeeklyClose]:
        path = Path(csv_path)
        if not path.exists():
            raise FileNotFoundError(str(path))

        df = pd.read_csv(path)
        if datetime_col not in df.columns:
            # try common alternatives
            for cand in ["week_ending", "WeekEnding", "Datetime", "datetime", "date", "timestamp"]:
                if cand in df.columns:
                    datetime_col = cand
                    break

        if datetime_col not in df.columns:
            raise ValueError(f"CSV must contain a date column. Tried '{datetime_col}' and common aliases.")

        df[datetime_col] = pd.to_datetime(df[datetime_col])
        df = df.set_index(datetime_col).sort_index()
        return weekly_closes_from_frame(df)
