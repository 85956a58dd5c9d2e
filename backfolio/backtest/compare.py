from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
import pandas as pd

from ..data.price_source import BasePriceSource
from ..errors import InvalidRequest
from ..utils.multiprocess import lin_parts, process_jobs
from .result import BacktestResult
from .runner import run_backtest

KPI_COLUMNS = [
    "finalValue",
    "cumulativeReturnPct",
    "cagrPct",
    "volatilityPct",
    "maxDrawdownPct",
    "riskReward",
]


@dataclass(frozen=True, eq=False)
class PortfolioComparison:
    """
    Several saved portfolio configurations lined up side by side.

    Attributes
    ----------
    values : pd.DataFrame
        Portfolio value per day on the union of all run dates, one column per
        portfolio, NaN where a portfolio has no value.
    kpis : pd.DataFrame
        Headline metrics indexed by portfolio name (see KPI_COLUMNS).
    results : Dict[str, BacktestResult]
    """
    values: pd.DataFrame
    kpis: pd.DataFrame
    results: Dict[str, BacktestResult] = field(default_factory=dict)

    @property
    def names(self) -> List[str]:
        return list(self.results)

    def to_nav(self) -> pd.DataFrame:
        """Each column rebased to 1.0 at its first valid value."""
        return self.values.apply(lambda s: s / s.dropna().iloc[0] if s.notna().any() else s)


def _run_batch(
        items: List[Tuple[str, Any]],
        prices: Optional[Mapping[str, Any]],
        price_source: Optional[BasePriceSource]
    ) -> List[Tuple[str, BacktestResult]]:
    out = []
    for name, request in items:
        try:
            out.append((name, run_backtest(request, prices=prices, price_source=price_source)))
        except InvalidRequest as exc:
            raise InvalidRequest(f"Portfolio '{name}': {exc}") from exc
    return out


def _kpi_row(result: BacktestResult) -> Dict[str, Optional[float]]:
    row = result.metrics.to_dict()
    row["riskReward"] = result.risk.to_dict()["riskReward"]
    return {k: row[k] for k in KPI_COLUMNS}


def compare_portfolios(
        requests: Mapping[str, Any],
        prices: Optional[Mapping[str, Any]] = None,
        price_source: Optional[BasePriceSource] = None,
        num_threads: int = 1,
        verbose: bool = False,
    ) -> PortfolioComparison:
    """
    Run every saved configuration and line them up on a common timeline.

    :param requests: {portfolio name: BacktestRequest or JSON-shaped mapping}
    :param prices: raw points per asset id shared by all runs
    :param price_source: provider used by requests without embedded prices
    :param num_threads: worker processes; runs are independent of each other
    :param verbose: show a progress bar
    :return: PortfolioComparison
    """
    if not isinstance(requests, Mapping) or not requests:
        raise InvalidRequest("[FATAL] Provide at least one named portfolio to compare.")

    items = [(str(name), req) for name, req in requests.items()]
    parts = lin_parts(len(items), max(1, int(num_threads)))
    jobs = [
        {"func": _run_batch, "items": items[parts[i - 1]:parts[i]], "prices": prices, "price_source": price_source}
        for i in range(1, len(parts))
    ]
    batches = process_jobs(jobs, num_threads=num_threads, verbose=verbose)

    results: Dict[str, BacktestResult] = {}
    for batch in batches:
        for name, result in batch:
            results[name] = result

    values = pd.concat(
        {name: res.series.portfolio for name, res in results.items()}, axis=1
    ).sort_index()
    values.index.name = "date"

    kpis = pd.DataFrame.from_dict(
        {name: _kpi_row(res) for name, res in results.items()}, orient="index", columns=KPI_COLUMNS
    ).astype(float)
    kpis.index.name = "portfolio"

    return PortfolioComparison(values=values, kpis=kpis, results=results)
