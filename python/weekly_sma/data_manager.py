"""Data manager: holds one ticker's weekly closes and evaluates them.

Indicators are computed once per manager; ``evaluate`` is a pure function of
the current price and the thresholds, so a manager can be evaluated repeatedly
(or from several threads) without changing.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence

from .config import IndicatorConfig, SignalConfig
from .indicators import (
    calculate_flexible_sma,
    calculate_rolling_slope,
    get_current_sma,
    get_current_slope_direction,
    has_never_had_negative_slope,
    validate_series,
)
from .signals import classify, evaluate_buy, evaluate_sell
from .types import StockAnalysis, WeeklyClose


def current_week_ending(today: date) -> date:
    """Friday of the current week; weekends roll forward to the next Friday."""
    day = today.weekday()  # Monday == 0
    diff = 4 - day if day <= 4 else 11 - day
    return today + timedelta(days=diff)


def upsert_weekly_close(series: Sequence[WeeklyClose], week_ending: date, price: float) -> list[WeeklyClose]:
    """Return a copy of ``series`` with ``week_ending`` set to ``price``.

    An existing week has its close replaced; a new week is inserted in order.
    """
    out = [row for row in series if row.week_ending != week_ending]
    out.append(WeeklyClose(week_ending=week_ending, close_price=float(price)))
    out.sort(key=lambda r: r.week_ending)
    return out


class WeeklySeriesManager:
    """Holds the weekly close series and indicator series for a single ticker."""

    def __init__(self, ticker: str, series: Sequence[WeeklyClose], ind_cfg: IndicatorConfig = IndicatorConfig()):
        validate_series(series)
        self.ticker = ticker
        self.series = list(series)
        self.ind_cfg = ind_cfg

        self._compute_indicators()

    def _compute_indicators(self) -> None:
        cfg = self.ind_cfg
        flex = calculate_flexible_sma(self.series, cfg.sma_weeks, cfg.min_sma_weeks)
        self.sma_points = flex.points
        self.sma_period_used = flex.period_used
        self.slopes = calculate_rolling_slope(self.sma_points, cfg.slope_rolling_weeks)

    def __len__(self) -> int:
        return len(self.series)

    @property
    def current_sma(self):
        return get_current_sma(self.sma_points)

    def evaluate(
        self,
        current_price: float,
        sig_cfg: SignalConfig = SignalConfig(),
        recent_rows: int = 10,
    ) -> StockAnalysis:
        """Classify ``current_price`` against the stored SMA and slope history."""
        cfg = self.ind_cfg
        buy = evaluate_buy(
            current_price,
            self.sma_points,
            self.slopes,
            max_above_pct=sig_cfg.buy_above_sma_max_pct,
            lookback_window=cfg.slope_history_weeks,
        )
        sell = evaluate_sell(
            current_price,
            self.sma_points,
            high_threshold_pct=sig_cfg.sell_above_sma_pct,
            low_threshold_pct=sig_cfg.sell_below_sma_pct,
        )
        return StockAnalysis(
            ticker=self.ticker,
            buy=buy,
            sell=sell,
            signal_type=classify(buy, sell),
            slope_direction=get_current_slope_direction(self.slopes),
            slope_ever_negative=not has_never_had_negative_slope(self.slopes, cfg.slope_history_weeks),
            sma_period_used=self.sma_period_used,
            recent_sma=list(self.sma_points[-recent_rows:]) if recent_rows > 0 else [],
        )
