from .performance import (
    PERIODS_PER_YEAR,
    DAYS_PER_YEAR,
    PerformanceMetrics,
    RiskMetrics,
    DCAMetrics,
    pure_log_returns,
    annualized_volatility_pct,
    cumulative_return_pct,
    cagr_pct,
    max_drawdown_pct,
    sharpe_ratio,
    best_worst_day_pct,
    asset_volatility_pct,
    risk_reward,
    performance_summary,
)

__all__ = [
    "PERIODS_PER_YEAR",
    "DAYS_PER_YEAR",
    "PerformanceMetrics",
    "RiskMetrics",
    "DCAMetrics",
    "pure_log_returns",
    "annualized_volatility_pct",
    "cumulative_return_pct",
    "cagr_pct",
    "max_drawdown_pct",
    "sharpe_ratio",
    "best_worst_day_pct",
    "asset_volatility_pct",
    "risk_reward",
    "performance_summary",
]
