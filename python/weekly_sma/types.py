"""Shared types for the weekly SMA signal engine.

The guiding principle is to keep the runtime objects small, explicit and
immutable: every value here is produced per evaluation and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class SignalType(Enum):
    BUY = "BUY"
    SELL_HIGH = "SELL_HIGH"
    SELL_LOW = "SELL_LOW"
    NEUTRAL = "NEUTRAL"


class SlopeDirection(Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class WeeklyClose:
    """One weekly close. ``week_ending`` marks the week, not the trade day."""

    week_ending: date
    close_price: float


@dataclass(frozen=True)
class SMAPoint:
    week_ending: date
    sma_value: float


@dataclass(frozen=True)
class SlopePoint:
    week_ending: date
    slope: float


@dataclass(frozen=True)
class FlexibleSMA:
    """SMA points plus the period actually used (0 when no SMA was possible)."""

    points: list[SMAPoint]
    period_used: int


@dataclass(frozen=True)
class BuyEvaluation:
    meets_all_criteria: bool
    price_above_sma: bool
    slope_never_negative: bool
    within_threshold: bool
    current_price: float
    sma: float  # 0.0 when there is no usable SMA
    percent_distance: float


@dataclass(frozen=True)
class SellEvaluation:
    has_sell_signal: bool
    is_far_above: bool
    is_far_below: bool
    current_price: float
    sma: float  # 0.0 when there is no usable SMA
    percent_distance: float


@dataclass(frozen=True)
class Quote:
    """Latest quote from a market-data provider."""

    price: float
    display_name: str


@dataclass(frozen=True)
class StockAnalysis:
    """Everything computed for one ticker in one evaluation cycle."""

    ticker: str
    buy: BuyEvaluation
    sell: SellEvaluation
    signal_type: SignalType
    slope_direction: SlopeDirection
    slope_ever_negative: bool
    sma_period_used: int
    recent_sma: list[SMAPoint] = field(default_factory=list)

    @property
    def current_price(self) -> float:
        return self.buy.current_price

    @property
    def sma(self) -> Optional[float]:
        """Current SMA, or None when there was not enough history."""
        return self.buy.sma or None

    @property
    def percent_distance(self) -> float:
        return self.buy.percent_distance


@dataclass(frozen=True)
class SignalTransition:
    """A change of the active signal for one ticker."""

    ticker: str
    previous: Optional[SignalType]
    current: SignalType
    triggered_at: datetime
    price: float
    sma: float
    percent_distance: float
