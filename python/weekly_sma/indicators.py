"""Indicator computation utilities.

We compute a simple moving average on the weekly CLOSE series and a rolling
slope on top of it. Missing history is never an error: the functions return
empty sequences (or None) and callers treat that as "no signal".
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .types import FlexibleSMA, SlopeDirection, SlopePoint, SMAPoint, WeeklyClose


def _check_window(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive")


def validate_series(series: Sequence[WeeklyClose]) -> None:
    """Reject non-positive prices and out-of-order or duplicated weeks."""
    prev = None
    for row in series:
        px = float(row.close_price)
        if not np.isfinite(px) or px <= 0:
            raise ValueError(f"close price must be positive, got {row.close_price!r} for {row.week_ending}")
        if prev is not None and row.week_ending <= prev:
            raise ValueError(f"weeks must be strictly increasing: {row.week_ending} after {prev}")
        prev = row.week_ending


def calculate_sma(series: Sequence[WeeklyClose], window: int) -> list[SMAPoint]:
    """Simple moving average over ``window`` weeks, oldest first.

    One point is returned per week from index ``window - 1`` onwards. The
    running sum keeps this O(n) regardless of the window size.
    """
    _check_window("window", window)
    validate_series(series)

    results: list[SMAPoint] = []
    if len(series) < window:
        return results

    window_sum = 0.0
    for i in range(window):
        window_sum += series[i].close_price
    results.append(SMAPoint(series[window - 1].week_ending, window_sum / window))

    for i in range(window, len(series)):
        window_sum += series[i].close_price
        window_sum -= series[i - window].close_price
        results.append(SMAPoint(series[i].week_ending, window_sum / window))

    return results


def calculate_flexible_sma(series: Sequence[WeeklyClose], full_window: int, min_window: int) -> FlexibleSMA:
    """SMA that falls back to all available history for young tickers.

    - ``len(series) >= full_window``: regular SMA, ``period_used == full_window``
    - ``min_window <= len(series) < full_window``: one point averaging the whole
      series, ``period_used == len(series)``
    - otherwise: no points, ``period_used == 0``
    """
    _check_window("full_window", full_window)
    _check_window("min_window", min_window)
    if min_window > full_window:
        raise ValueError("min_window must not exceed full_window")

    n = len(series)
    if n >= full_window:
        return FlexibleSMA(points=calculate_sma(series, full_window), period_used=int(full_window))
    if n >= min_window:
        return FlexibleSMA(points=calculate_sma(series, n), period_used=n)
    validate_series(series)
    return FlexibleSMA(points=[], period_used=0)


def get_current_sma(points: Sequence[SMAPoint]) -> Optional[float]:
    """Most recent SMA value, or None without history."""
    if len(points) == 0:
        return None
    return points[-1].sma_value


def calculate_rolling_slope(sma_points: Sequence[SMAPoint], rolling_window: int) -> list[SlopePoint]:
    """Rolling slope of the SMA.

    slope(i) = (sma[i] - sma[i - rolling_window]) / rolling_window
    """
    _check_window("rolling_window", rolling_window)

    slopes: list[SlopePoint] = []
    if len(sma_points) <= rolling_window:
        return slopes

    for i in range(rolling_window, len(sma_points)):
        current = sma_points[i].sma_value
        previous = sma_points[i - rolling_window].sma_value
        slopes.append(SlopePoint(sma_points[i].week_ending, (current - previous) / rolling_window))

    return slopes


def has_never_had_negative_slope(slopes: Sequence[SlopePoint], lookback_window: int) -> bool:
    """True if every slope in the most recent ``lookback_window`` entries is >= 0.

    No slopes at all counts as a failed trend check, not a pass.
    """
    _check_window("lookback_window", lookback_window)
    if len(slopes) == 0:
        return False

    lookback = min(len(slopes), int(lookback_window))
    return all(s.slope >= 0 for s in slopes[len(slopes) - lookback:])


def get_current_slope_direction(slopes: Sequence[SlopePoint]) -> SlopeDirection:
    """Direction of the latest slope; zero counts as UP."""
    if len(slopes) == 0:
        return SlopeDirection.DOWN
    return SlopeDirection.UP if slopes[-1].slope >= 0 else SlopeDirection.DOWN
