"""Buy/sell evaluation and signal classification.

BUY when ALL three hold:
1. current price > SMA
2. the rolling SMA slope has not been negative within the lookback window
3. current price is at most ``max_above_pct`` percent above the SMA

SELL when EITHER holds:
1. price is at least ``high_threshold_pct`` percent above the SMA (SELL_HIGH)
2. price is at least ``low_threshold_pct`` percent below the SMA (SELL_LOW)
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .config import IndicatorConfig, SignalConfig
from .indicators import get_current_sma, has_never_had_negative_slope
from .types import BuyEvaluation, SellEvaluation, SignalType, SlopePoint, SMAPoint


def _check_price(current_price: float) -> None:
    px = float(current_price)
    if not np.isfinite(px) or px <= 0:
        raise ValueError(f"current_price must be positive, got {current_price!r}")


def _check_pct(name: str, value: float) -> None:
    v = float(value)
    if not np.isfinite(v) or v < 0:
        raise ValueError(f"{name} must be a non-negative percentage")


def percent_distance(current_price: float, sma: float) -> float:
    """Signed distance of price from the SMA, in percent."""
    # Multiply before dividing so round thresholds (57%, 8%) compare exactly.
    return (current_price - sma) * 100.0 / sma


def evaluate_buy(
    current_price: float,
    sma_points: Sequence[SMAPoint],
    slopes: Sequence[SlopePoint],
    max_above_pct: float = SignalConfig.buy_above_sma_max_pct,
    lookback_window: int = IndicatorConfig.slope_history_weeks,
) -> BuyEvaluation:
    _check_price(current_price)
    _check_pct("max_above_pct", max_above_pct)

    sma = get_current_sma(sma_points)
    if sma is None or sma == 0:
        return BuyEvaluation(
            meets_all_criteria=False,
            price_above_sma=False,
            slope_never_negative=False,
            within_threshold=False,
            current_price=current_price,
            sma=0.0,
            percent_distance=0.0,
        )

    pct = percent_distance(current_price, sma)
    price_above_sma = current_price > sma
    slope_never_negative = has_never_had_negative_slope(slopes, lookback_window)
    within_threshold = price_above_sma and pct <= max_above_pct

    return BuyEvaluation(
        meets_all_criteria=price_above_sma and slope_never_negative and within_threshold,
        price_above_sma=price_above_sma,
        slope_never_negative=slope_never_negative,
        within_threshold=within_threshold,
        current_price=current_price,
        sma=sma,
        percent_distance=pct,
    )


def evaluate_sell(
    current_price: float,
    sma_points: Sequence[SMAPoint],
    high_threshold_pct: float = SignalConfig.sell_above_sma_pct,
    low_threshold_pct: float = SignalConfig.sell_below_sma_pct,
) -> SellEvaluation:
    _check_price(current_price)
    _check_pct("high_threshold_pct", high_threshold_pct)
    _check_pct("low_threshold_pct", low_threshold_pct)

    sma = get_current_sma(sma_points)
    if sma is None or sma == 0:
        return SellEvaluation(
            has_sell_signal=False,
            is_far_above=False,
            is_far_below=False,
            current_price=current_price,
            sma=0.0,
            percent_distance=0.0,
        )

    pct = percent_distance(current_price, sma)
    is_far_above = pct >= high_threshold_pct
    is_far_below = pct <= -low_threshold_pct

    return SellEvaluation(
        has_sell_signal=is_far_above or is_far_below,
        is_far_above=is_far_above,
        is_far_below=is_far_below,
        current_price=current_price,
        sma=sma,
        percent_distance=pct,
    )


def classify(buy_eval: BuyEvaluation, sell_eval: SellEvaluation) -> SignalType:
    """Resolve one signal per stock. Precedence: BUY, SELL_HIGH, SELL_LOW."""
    if buy_eval.meets_all_criteria:
        return SignalType.BUY
    if sell_eval.is_far_above:
        return SignalType.SELL_HIGH
    if sell_eval.is_far_below:
        return SignalType.SELL_LOW
    return SignalType.NEUTRAL
