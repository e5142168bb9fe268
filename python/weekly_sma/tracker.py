"""Per-ticker active-signal bookkeeping.

Each ticker has at most one active signal. An evaluation cycle either keeps it
(same classified type) or resolves it and activates a new one with a fresh
trigger time. The resolve time of the prior signal is the trigger time of the
new one.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .types import SignalTransition, SignalType, StockAnalysis

_ACTIVE_COLUMNS = ["ticker", "signal_type", "triggered_at", "price", "sma", "percent_distance"]


@dataclass(frozen=True)
class _ActiveSignal:
    signal_type: SignalType
    triggered_at: datetime
    price: float
    sma: float
    percent_distance: float


class SignalTracker:
    """Tracks the active signal per ticker across evaluation cycles."""

    def __init__(self) -> None:
        self._active: Dict[str, _ActiveSignal] = {}
        self.history: List[SignalTransition] = []

    # ---------- public API ----------

    def active_signal(self, ticker: str) -> Optional[SignalType]:
        st = self._active.get(ticker)
        return st.signal_type if st is not None else None

    def tickers(self) -> list[str]:
        return sorted(self._active)

    def update(self, analysis: StockAnalysis, now: Optional[datetime] = None) -> Optional[SignalTransition]:
        """Apply one cycle's classification; return the transition if it changed."""
        ticker = analysis.ticker
        prev = self._active.get(ticker)
        if prev is not None and prev.signal_type == analysis.signal_type:
            return None

        ts = now or datetime.now(timezone.utc)
        self._active[ticker] = _ActiveSignal(
            signal_type=analysis.signal_type,
            triggered_at=ts,
            price=float(analysis.current_price),
            sma=float(analysis.buy.sma),
            percent_distance=float(analysis.percent_distance),
        )
        transition = SignalTransition(
            ticker=ticker,
            previous=prev.signal_type if prev is not None else None,
            current=analysis.signal_type,
            triggered_at=ts,
            price=float(analysis.current_price),
            sma=float(analysis.buy.sma),
            percent_distance=float(analysis.percent_distance),
        )
        self.history.append(transition)
        return transition

    # ---------- persistence ----------

    def active_frame(self) -> pd.DataFrame:
        rows = []
        for ticker in self.tickers():
            st = self._active[ticker]
            rows.append(
                {
                    "ticker": ticker,
                    "signal_type": st.signal_type.value,
                    "triggered_at": st.triggered_at.isoformat(),
                    "price": st.price,
                    "sma": st.sma,
                    "percent_distance": st.percent_distance,
                }
            )
        return pd.DataFrame(rows, columns=_ACTIVE_COLUMNS)

    def transitions_frame(self) -> pd.DataFrame:
        return transitions_to_frame(self.history)

    def to_csv(self, path: str | Path) -> Path:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        self.active_frame().to_csv(p, index=False, encoding="utf-8")
        return p

    @classmethod
    def from_csv(cls, path: str | Path) -> "SignalTracker":
        """Restore active signals; a missing file gives an empty tracker."""
        tracker = cls()
        p = Path(path)
        if not p.exists():
            return tracker

        # keep_default_na: tickers such as "NA" must stay strings
        df = pd.read_csv(p, dtype={"ticker": str}, keep_default_na=False)
        missing = [c for c in _ACTIVE_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns in {p}: {missing}")

        for row in df.itertuples(index=False):
            tracker._active[str(row.ticker)] = _ActiveSignal(
                signal_type=SignalType(row.signal_type),
                triggered_at=datetime.fromisoformat(str(row.triggered_at)),
                price=float(row.price),
                sma=float(row.sma),
                percent_distance=float(row.percent_distance),
            )
        return tracker


def transitions_to_frame(transitions: Sequence[SignalTransition]) -> pd.DataFrame:
    rows = []
    for tr in transitions:
        d = asdict(tr)
        d["previous"] = tr.previous.value if tr.previous is not None else ""
        d["current"] = tr.current.value
        d["triggered_at"] = tr.triggered_at.isoformat()
        rows.append(d)
    cols = ["ticker", "previous", "current", "triggered_at", "price", "sma", "percent_distance"]
    return pd.DataFrame(rows, columns=cols)
