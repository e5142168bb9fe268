"""Configuration objects for the indicators, the signal thresholds and the daily job.

Thresholds are percentages (8.0 means 8%), never fractions. Every config can be
built from a flat params dict using the upper-case constant names.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path

import numpy as np


def _from_mapping(cls, d: dict, mapping: dict):
    """Build a config from upper-case constant names or field names.

    Unknown keys are ignored.
    """
    names = {f.name for f in fields(cls)}
    kwargs = {}
    for k, v in (d or {}).items():
        if k in mapping:
            kwargs[mapping[k]] = v
        elif k in names:
            kwargs[k] = v
    return cls(**kwargs)


@dataclass(frozen=True)
class IndicatorConfig:
    """Moving-average and slope windows (all counted in weeks)."""

    sma_weeks: int = 200
    # Young tickers with at least this much history get an SMA over all of it.
    min_sma_weeks: int = 20
    slope_rolling_weeks: int = 4
    # 7 years of weekly slopes.
    slope_history_weeks: int = 364

    def __post_init__(self) -> None:
        for name in ("sma_weeks", "min_sma_weeks", "slope_rolling_weeks", "slope_history_weeks"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, (int, np.integer)):
                raise ValueError(f"{name} must be an integer number of weeks, got {v!r}")
            if v <= 0:
                raise ValueError(f"{name} must be positive")
        if self.min_sma_weeks > self.sma_weeks:
            raise ValueError("min_sma_weeks must not exceed sma_weeks")

    @classmethod
    def from_params_dict(cls, d: dict) -> "IndicatorConfig":
        mapping = {
            "SMA_WEEKS": "sma_weeks",
            "MIN_SMA_WEEKS": "min_sma_weeks",
            "SLOPE_ROLLING_WEEKS": "slope_rolling_weeks",
            "SLOPE_HISTORY_WEEKS": "slope_history_weeks",
        }
        return _from_mapping(cls, d, mapping)


@dataclass(frozen=True)
class SignalConfig:
    """Buy/sell thresholds, in percent distance from the SMA.

    Defaults are the base set (5% / 60% / 5%) with a 3 point margin applied:
    BUY up to 8% above, SELL_HIGH from 57% above, SELL_LOW from 2% below.
    """

    buy_above_sma_max_pct: float = 8.0
    sell_above_sma_pct: float = 57.0
    sell_below_sma_pct: float = 2.0

    def __post_init__(self) -> None:
        for name in ("buy_above_sma_max_pct", "sell_above_sma_pct", "sell_below_sma_pct"):
            v = float(getattr(self, name))
            if not np.isfinite(v) or v < 0:
                raise ValueError(f"{name} must be a finite, non-negative percentage")

    @classmethod
    def base(cls) -> "SignalConfig":
        """Un-margined thresholds."""
        return cls(buy_above_sma_max_pct=5.0, sell_above_sma_pct=60.0, sell_below_sma_pct=5.0)

    @classmethod
    def with_margin(cls, margin_pct: float) -> "SignalConfig":
        """Widen BUY and bring both SELL triggers closer by ``margin_pct``."""
        b = cls.base()
        return cls(
            buy_above_sma_max_pct=b.buy_above_sma_max_pct + margin_pct,
            sell_above_sma_pct=b.sell_above_sma_pct - margin_pct,
            sell_below_sma_pct=b.sell_below_sma_pct - margin_pct,
        )

    @classmethod
    def from_params_dict(cls, d: dict) -> "SignalConfig":
        mapping = {
            "BUY_ABOVE_SMA_MAX_PCT": "buy_above_sma_max_pct",
            "SELL_ABOVE_SMA_PCT": "sell_above_sma_pct",
            "SELL_BELOW_SMA_PCT": "sell_below_sma_pct",
        }
        return _from_mapping(cls, d, mapping)


@dataclass(frozen=True)
class JobConfig:
    """Daily batch job settings."""

    backfill_years: int = 10
    output_dir: str = "outputs"
    # How many trailing SMA values are written per ticker.
    recent_sma_rows: int = 10

    def __post_init__(self) -> None:
        if int(self.backfill_years) <= 0:
            raise ValueError("backfill_years must be positive")
        if int(self.recent_sma_rows) < 0:
            raise ValueError("recent_sma_rows must be non-negative")

    @classmethod
    def from_params_dict(cls, d: dict) -> "JobConfig":
        mapping = {
            "BACKFILL_YEARS": "backfill_years",
            "OUTPUT_DIR": "output_dir",
            "RECENT_SMA_ROWS": "recent_sma_rows",
        }
        return _from_mapping(cls, d, mapping)


def load_params_json(path: str | Path) -> tuple[IndicatorConfig, SignalConfig, JobConfig]:
    """Load all three configs from one flat JSON object."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(p))
    d = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(d, dict):
        raise ValueError(f"config file must contain a JSON object: {p}")
    return (
        IndicatorConfig.from_params_dict(d),
        SignalConfig.from_params_dict(d),
        JobConfig.from_params_dict(d),
    )
