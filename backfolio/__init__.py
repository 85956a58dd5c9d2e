from .errors import BackfolioError, InvalidRequest, DataQualityIssue
from .data import (
    AlignedTimeline,
    IntegrityReport,
    PriceAlignment,
    align_prices,
    BasePriceSource,
    StaticPriceSource,
    DataFramePriceSource,
)
from .backtest import (
    NoRebalance,
    PeriodicRebalance,
    ThresholdRebalance,
    DCASchedule,
    BacktestRequest,
    parse_request,
    BacktestEngine,
    BacktestResult,
    run_backtest,
    PortfolioComparison,
    compare_portfolios,
)

__version__ = "0.1.0"

__all__ = [
    "BackfolioError",
    "InvalidRequest",
    "DataQualityIssue",
    "AlignedTimeline",
    "IntegrityReport",
    "PriceAlignment",
    "align_prices",
    "BasePriceSource",
    "StaticPriceSource",
    "DataFramePriceSource",
    "NoRebalance",
    "PeriodicRebalance",
    "ThresholdRebalance",
    "DCASchedule",
    "BacktestRequest",
    "parse_request",
    "BacktestEngine",
    "BacktestResult",
    "run_backtest",
    "PortfolioComparison",
    "compare_portfolios",
]
