from .schedule import (
    NoRebalance,
    PeriodicRebalance,
    ThresholdRebalance,
    DCASchedule,
    dca_dates,
    periodic_rebalance_dates,
)
from .request import (
    AssetAllocation,
    RebalanceConfig,
    DCAConfig,
    BacktestRequest,
    parse_request,
)
from .result import BacktestSeries, BacktestResult
from .engine import BacktestEngine
from .runner import run_backtest
from .compare import PortfolioComparison, compare_portfolios

__all__ = [
    "NoRebalance",
    "PeriodicRebalance",
    "ThresholdRebalance",
    "DCASchedule",
    "dca_dates",
    "periodic_rebalance_dates",
    "AssetAllocation",
    "RebalanceConfig",
    "DCAConfig",
    "BacktestRequest",
    "parse_request",
    "BacktestSeries",
    "BacktestResult",
    "BacktestEngine",
    "run_backtest",
    "PortfolioComparison",
    "compare_portfolios",
]
