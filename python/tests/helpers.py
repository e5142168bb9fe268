"""Builders for weekly test series (all weeks end on a Friday)."""

from datetime import date, timedelta

from weekly_sma.types import SlopePoint, SMAPoint, WeeklyClose

FIRST_FRIDAY = date(2010, 1, 1)


def weeks(n: int, start: date = FIRST_FRIDAY) -> list[date]:
    return [start + timedelta(weeks=i) for i in range(n)]


def make_closes(count: int, start_price: float, increment: float = 0.0) -> list[WeeklyClose]:
    return [WeeklyClose(wk, start_price + i * increment) for i, wk in enumerate(weeks(count))]


def make_sma(values: list[float]) -> list[SMAPoint]:
    return [SMAPoint(wk, v) for wk, v in zip(weeks(len(values)), values)]


def make_slopes(values: list[float]) -> list[SlopePoint]:
    return [SlopePoint(wk, v) for wk, v in zip(weeks(len(values)), values)]


