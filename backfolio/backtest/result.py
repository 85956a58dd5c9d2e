from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import numpy as np
import pandas as pd

from ..data.alignment import IntegrityReport
from ..metrics.performance import DCAMetrics, PerformanceMetrics, RiskMetrics


def _day(ts: pd.Timestamp) -> str:
    return pd.Timestamp(ts).strftime("%Y-%m-%d")


def _nullable(values: np.ndarray) -> List[Optional[float]]:
    return [float(v) if np.isfinite(v) else None for v in np.asarray(values, dtype=float)]


@dataclass(frozen=True, eq=False)
class BacktestSeries:
    """
    Daily series of one run, all indexed by the aligned timeline.

    Attributes
    ----------
    portfolio : pd.Series
        Portfolio value per day, contributions included.
    asset_prices, asset_weights, asset_values : pd.DataFrame
        (days x assets). Prices are NaN before an asset is listed.
    contributions : pd.Series
        DCA cash injected per day, 0 elsewhere.
    invested : pd.Series
        Cumulative capital put in (initial capital + contributions to date).
    rebalance_dates : pd.DatetimeIndex
        Days on which holdings were reset to target.
    rebalance_reasons : tuple of str
        Trigger of each rebalance ('periodic', 'threshold', 'listing').
    """
    timeline: pd.DatetimeIndex
    portfolio: pd.Series
    asset_prices: pd.DataFrame
    asset_weights: pd.DataFrame
    asset_values: pd.DataFrame
    contributions: pd.Series
    invested: pd.Series
    rebalance_dates: pd.DatetimeIndex
    rebalance_reasons: Tuple[str, ...] = ()

    @property
    def assets(self) -> Tuple[str, ...]:
        return tuple(self.asset_prices.columns)

    def to_dict(self) -> Dict[str, Any]:
        paid = self.contributions[self.contributions > 0]
        return {
            "timeline": [_day(d) for d in self.timeline],
            "portfolio": [
                {"date": _day(d), "value": float(v) if np.isfinite(v) else None}
                for d, v in self.portfolio.items()
            ],
            "perAssetPrices": {a: _nullable(self.asset_prices[a].to_numpy()) for a in self.assets},
            "perAssetWeights": {a: _nullable(self.asset_weights[a].to_numpy()) for a in self.assets},
            "perAssetValues": {a: _nullable(self.asset_values[a].to_numpy()) for a in self.assets},
            "contributions": [{"date": _day(d), "amount": float(v)} for d, v in paid.items()],
            "rebalanceDates": [_day(d) for d in self.rebalance_dates],
        }


@dataclass(frozen=True, eq=False)
class BacktestResult:
    """Immutable outcome of one backtest run."""
    series: BacktestSeries
    metrics: PerformanceMetrics
    risk: RiskMetrics
    integrity: IntegrityReport
    dca: Optional[DCAMetrics] = None
    logs: Tuple[str, ...] = ()

    def to_nav(self) -> pd.Series:
        """Return the value series normalized to 1.0 on the first day."""
        s = self.series.portfolio.dropna()
        if s.empty:
            return self.series.portfolio * np.nan
        return self.series.portfolio / float(s.iloc[0])

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready result. Non-computable values and NaN become None."""
        return {
            "series": self.series.to_dict(),
            "metrics": self.metrics.to_dict(),
            "risk": self.risk.to_dict(),
            "integrity": self.integrity.to_dict(),
            "dca": self.dca.to_dict() if self.dca is not None else None,
        }
