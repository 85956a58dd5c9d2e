from __future__ import annotations
from dataclasses import dataclass
from typing import ClassVar, Dict, List, Union
import numpy as np
import pandas as pd

from ..errors import InvalidRequest

PERIODICITIES = ("daily", "weekly", "monthly", "yearly")


@dataclass(frozen=True)
class NoRebalance :
    """Buy and hold: weights drift with prices, holdings are never reset."""
    mode : ClassVar[str] = "none"

    def should_rebalance(self, day_index: int, weights: np.ndarray, targets: np.ndarray) -> bool:
        return False

    def to_dict(self) -> Dict:
        return {"mode": self.mode}


@dataclass(frozen=True)
class PeriodicRebalance :
    """
    Reset to target every `interval_days` days since the start (day 0 excluded).

    Attributes
    ----------
    interval_days : int
        Rebalance when days_since_start % interval_days == 0.
    """
    interval_days : int
    mode : ClassVar[str] = "periodic"

    def __post_init__(self):
        if isinstance(self.interval_days, bool) or int(self.interval_days) != self.interval_days:
            raise InvalidRequest(f"interval_days must be an integer, got {self.interval_days!r}.")
        if self.interval_days <= 0:
            raise InvalidRequest(f"interval_days must be > 0, got {self.interval_days}.")

    def should_rebalance(self, day_index: int, weights: np.ndarray, targets: np.ndarray) -> bool:
        return day_index > 0 and day_index % int(self.interval_days) == 0

    def to_dict(self) -> Dict:
        return {"mode": self.mode, "periodDays": int(self.interval_days)}


@dataclass(frozen=True)
class ThresholdRebalance :
    """
    Reset to target when any weight drifts more than `deviation_pct`
    percentage points (absolute, not relative) away from its target.
    """
    deviation_pct : float
    mode : ClassVar[str] = "threshold"

    def __post_init__(self):
        if not np.isfinite(self.deviation_pct) or self.deviation_pct <= 0:
            raise InvalidRequest(f"deviation_pct must be > 0, got {self.deviation_pct}.")

    def should_rebalance(self, day_index: int, weights: np.ndarray, targets: np.ndarray) -> bool:
        drift = np.abs(np.asarray(weights, dtype=float) - np.asarray(targets, dtype=float))
        return bool((drift > self.deviation_pct / 100.0).any())

    def to_dict(self) -> Dict:
        return {"mode": self.mode, "thresholdPct": float(self.deviation_pct)}


RebalancePolicy = Union[NoRebalance, PeriodicRebalance, ThresholdRebalance]


@dataclass(frozen=True)
class DCASchedule :
    """
    Fixed-amount periodic capital injection, bought at target weights.

    Attributes
    ----------
    amount : float
        Cash injected on each due day. Must be > 0.
    periodicity : {"daily", "weekly", "monthly", "yearly"}
    """
    amount : float
    periodicity : str = "monthly"

    def __post_init__(self):
        if not np.isfinite(self.amount) or self.amount <= 0:
            raise InvalidRequest(f"DCA amount must be > 0, got {self.amount}.")
        if self.periodicity not in PERIODICITIES:
            raise InvalidRequest(
                f"Unsupported periodicity '{self.periodicity}'. Use one of {list(PERIODICITIES)}."
            )

    def due_dates(self, dates: pd.DatetimeIndex) -> pd.DatetimeIndex:
        return dca_dates(dates, self.periodicity)

    def to_dict(self) -> Dict:
        return {"enabled": True, "amount": float(self.amount), "periodicity": self.periodicity}


def _anniversaries(start: pd.Timestamp, end: pd.Timestamp, unit: str) -> List[pd.Timestamp]:
    """
    start + k units for k = 1, 2, ... up to `end`.

    Always offset from `start` rather than chaining, so a 31st start lands on
    the 31st again after a short month. DateOffset clips to month end.
    """
    out = []
    k = 1
    while True:
        d = start + pd.DateOffset(**{unit: k})
        if d > end:
            break
        out.append(d)
        k += 1
    return out


def dca_dates(dates: pd.DatetimeIndex, periodicity: str) -> pd.DatetimeIndex:
    """
    Days of `dates` on which a DCA contribution is due. Day 0 is never due,
    it holds the initial capital split.

    - daily   : every day after day 0
    - weekly  : every 7th day since the start
    - monthly : the start's day-of-month each month, or the month's last day
    - yearly  : the start's calendar day each year (29 Feb -> 28 Feb)
    """
    dates = pd.DatetimeIndex(dates)
    if len(dates) < 2:
        return dates[:0]
    start, end = dates[0], dates[-1]

    if periodicity == "daily":
        return dates[1:]
    if periodicity == "weekly":
        due = pd.date_range(start + pd.Timedelta(days=7), end, freq="7D")
    elif periodicity == "monthly":
        due = _anniversaries(start, end, "months")
    elif periodicity == "yearly":
        due = _anniversaries(start, end, "years")
    else:
        raise InvalidRequest(f"Unsupported periodicity '{periodicity}'. Use one of {list(PERIODICITIES)}.")
    return dates[dates.isin(pd.DatetimeIndex(due))]


def periodic_rebalance_dates(dates: pd.DatetimeIndex, interval_days: int) -> pd.DatetimeIndex:
    """Days of a contiguous daily `dates` grid on which a periodic rebalance is due."""
    policy = PeriodicRebalance(interval_days)
    dates = pd.DatetimeIndex(dates)
    mask = [policy.should_rebalance(i, None, None) for i in range(len(dates))]
    return dates[np.asarray(mask, dtype=bool)]
