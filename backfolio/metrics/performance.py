from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
import numpy as np
import pandas as pd

# Crypto markets quote every calendar day.
PERIODS_PER_YEAR = 365
DAYS_PER_YEAR = 365.25

# Volatility below this (in percent) is treated as zero.
VOL_EPSILON = 1e-9


def _as_float(x: Any) -> Optional[float]:
    """float(x), or None when x is missing or not finite."""
    if x is None:
        return None
    x = float(x)
    return x if np.isfinite(x) else None


def _iso(ts: Any) -> Optional[str]:
    if ts is None or pd.isna(ts):
        return None
    return pd.Timestamp(ts).strftime("%Y-%m-%d")


def pure_log_returns(values: pd.Series, injections: Optional[pd.Series] = None) -> pd.Series:
    """
    Daily log returns with same-day capital injections stripped out.

    r_i = ln((V_i - inj_i) / V_{i-1}), so a contribution never shows up as
    performance. Days with a non-positive base are dropped.
    """
    v = values.astype(float)
    inj = (pd.Series(0.0, index=v.index) if injections is None
           else injections.reindex(v.index).fillna(0.0).astype(float))
    prev = v.shift(1)
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = (v - inj) / prev
        out = np.log(ratio.where((prev > 0) & (ratio > 0)))
    return out.iloc[1:].dropna()


def annualized_volatility_pct(
        returns: pd.Series,
        periods_per_year: int = PERIODS_PER_YEAR
    ) -> Optional[float]:
    """Population std (ddof=0) of daily log returns, annualized, in percent."""
    r = returns.dropna()
    if r.empty:
        return None
    return float(np.std(r.to_numpy(dtype=float), ddof=0) * np.sqrt(periods_per_year) * 100.0)


def cumulative_return_pct(final_value: float, total_invested: float) -> Optional[float]:
    if total_invested <= 0:
        return None
    return (final_value / total_invested - 1.0) * 100.0


def cagr_pct(
        final_value: float,
        total_invested: float,
        start: pd.Timestamp,
        end: pd.Timestamp,
        days_per_year: float = DAYS_PER_YEAR
    ) -> Optional[float]:
    """
    Compound annual growth of final value over invested capital.

    None when less than one calendar day elapsed or the ratio is undefined.
    """
    days = (pd.Timestamp(end) - pd.Timestamp(start)).days
    if days < 1 or total_invested <= 0 or final_value < 0:
        return None
    years = days / days_per_year
    return ((final_value / total_invested) ** (1.0 / years) - 1.0) * 100.0


def max_drawdown_pct(values: pd.Series) -> float:
    """Most negative peak-to-trough decline in percent (always <= 0)."""
    v = values.dropna().astype(float)
    if v.empty:
        return 0.0
    peak = v.cummax()
    dd = (v / peak - 1.0).where(peak > 0, 0.0)
    return float(min(0.0, dd.min() * 100.0))


def sharpe_ratio(
        returns: pd.Series,
        volatility_pct: Optional[float],
        risk_free_rate_pct: float = 0.0,
        periods_per_year: int = PERIODS_PER_YEAR
    ) -> Optional[float]:
    """(mean annualized log return % - risk free %) / annualized volatility %."""
    r = returns.dropna()
    if r.empty or volatility_pct is None or volatility_pct < VOL_EPSILON:
        return None
    mean_ann_pct = float(r.mean()) * periods_per_year * 100.0
    return (mean_ann_pct - float(risk_free_rate_pct)) / volatility_pct


def best_worst_day_pct(returns: pd.Series) -> Tuple[Optional[float], Optional[float]]:
    """Best and worst single-day simple return, in percent."""
    r = returns.dropna()
    if r.empty:
        return None, None
    simple = np.expm1(r.to_numpy(dtype=float)) * 100.0
    return float(simple.max()), float(simple.min())


def asset_volatility_pct(prices: pd.Series, periods_per_year: int = PERIODS_PER_YEAR) -> Optional[float]:
    """Annualized volatility of one asset's own price path; None with fewer than two prices."""
    p = prices.dropna().astype(float)
    p = p[p > 0]
    if len(p) < 2:
        return None
    return annualized_volatility_pct(np.log(p / p.shift(1)).iloc[1:], periods_per_year)


def risk_reward(cagr: Optional[float], max_drawdown: Optional[float]) -> Optional[float]:
    """CAGR per unit of drawdown. None when either side is not computable."""
    if cagr is None or max_drawdown is None or abs(max_drawdown) < 1e-12:
        return None
    return cagr / abs(max_drawdown)


@dataclass(frozen=True)
class PerformanceMetrics:
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    trading_days: int
    initial_capital: float
    final_value: float
    total_invested: float
    cumulative_return_pct: Optional[float]
    cagr_pct: Optional[float]
    volatility_pct: Optional[float]
    max_drawdown_pct: float
    sharpe: Optional[float]
    best_day_pct: Optional[float]
    worst_day_pct: Optional[float]
    rebalance_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "tradingDays": int(self.trading_days),
            "initialCapital": _as_float(self.initial_capital),
            "finalValue": _as_float(self.final_value),
            "totalInvested": _as_float(self.total_invested),
            "cumulativeReturnPct": _as_float(self.cumulative_return_pct),
            "cagrPct": _as_float(self.cagr_pct),
            "volatilityPct": _as_float(self.volatility_pct),
            "maxDrawdownPct": _as_float(self.max_drawdown_pct),
            "sharpe": _as_float(self.sharpe),
            "bestDayPct": _as_float(self.best_day_pct),
            "worstDayPct": _as_float(self.worst_day_pct),
            "rebalanceCount": int(self.rebalance_count),
        }


@dataclass(frozen=True)
class RiskMetrics:
    per_asset_volatility_pct: Dict[str, Optional[float]] = field(default_factory=dict)
    risk_reward: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "perAssetVolatilityPct": {k: _as_float(v) for k, v in self.per_asset_volatility_pct.items()},
            "riskReward": _as_float(self.risk_reward),
        }


@dataclass(frozen=True)
class DCAMetrics:
    """Accounting of a DCA run. `total_invested` includes the initial capital."""
    total_invested: float
    dca_contributions: float
    capital_growth: float
    capital_growth_pct: Optional[float]
    contribution_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalInvested": _as_float(self.total_invested),
            "dcaContributions": _as_float(self.dca_contributions),
            "capitalGrowth": _as_float(self.capital_growth),
            "capitalGrowthPct": _as_float(self.capital_growth_pct),
            "contributionCount": int(self.contribution_count),
        }


def performance_summary(
        values: pd.Series,
        asset_prices: pd.DataFrame,
        *,
        initial_capital: float,
        contributions: Optional[pd.Series] = None,
        risk_free_rate_pct: float = 0.0,
        rebalance_count: int = 0,
        dca_enabled: bool = False,
    ) -> Tuple[PerformanceMetrics, RiskMetrics, Optional[DCAMetrics]]:
    """
    Compute the full metrics bundle of one simulated value path.

    Parameters
    ----------
    values : pd.Series
        Daily portfolio value, DCA injections included.
    asset_prices : pd.DataFrame
        Aligned per-asset prices (NaN before listing), used for per-asset volatility.
    initial_capital : float
        Capital invested on day 0.
    contributions : pd.Series, optional
        DCA cash injected per day (0 on non-contribution days).
    """
    values = values.astype(float)
    inj = (pd.Series(0.0, index=values.index) if contributions is None
           else contributions.reindex(values.index).fillna(0.0).astype(float))

    dca_total = float(inj.sum())
    total_invested = float(initial_capital) + dca_total
    final_value = float(values.iloc[-1])
    start, end = values.index[0], values.index[-1]

    rets = pure_log_returns(values, inj)
    vol = annualized_volatility_pct(rets)
    cagr = cagr_pct(final_value, total_invested, start, end)
    mdd = max_drawdown_pct(values)
    best, worst = best_worst_day_pct(rets)

    metrics = PerformanceMetrics(
        start_date=start,
        end_date=end,
        trading_days=len(values),
        initial_capital=float(initial_capital),
        final_value=final_value,
        total_invested=total_invested,
        cumulative_return_pct=cumulative_return_pct(final_value, total_invested),
        cagr_pct=cagr,
        volatility_pct=vol,
        max_drawdown_pct=mdd,
        sharpe=sharpe_ratio(rets, vol, risk_free_rate_pct),
        best_day_pct=best,
        worst_day_pct=worst,
        rebalance_count=int(rebalance_count),
    )

    risk = RiskMetrics(
        per_asset_volatility_pct={str(c): asset_volatility_pct(asset_prices[c]) for c in asset_prices.columns},
        risk_reward=risk_reward(cagr, mdd),
    )

    dca = None
    if dca_enabled:
        growth = final_value - total_invested
        dca = DCAMetrics(
            total_invested=total_invested,
            dca_contributions=dca_total,
            capital_growth=growth,
            capital_growth_pct=(growth / total_invested * 100.0) if total_invested > 0 else None,
            contribution_count=int((inj > 0).sum()),
        )
    return metrics, risk, dca
