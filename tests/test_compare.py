import numpy as np
import pandas as pd
import pytest

from backfolio import InvalidRequest, compare_portfolios
from backfolio.backtest.compare import KPI_COLUMNS
from backfolio.utils.multiprocess import expand_call, lin_parts


@pytest.fixture
def raw_prices(make_points, trending_prices):
    return {asset: make_points("2024-01-01", p) for asset, p in trending_prices.items()}


@pytest.fixture
def saved(base_request):
    return {
        "hold": base_request,
        "monthly": {**base_request, "rebalance": {"mode": "periodic", "periodDays": 30}},
        "short": {**base_request, "endDate": "2024-02-15"},
    }


def test_values_on_union_timeline(saved, raw_prices):
    comparison = compare_portfolios(saved, prices=raw_prices)

    assert list(comparison.values.columns) == ["hold", "monthly", "short"]
    assert len(comparison.values) == 100
    assert comparison.values["short"].iloc[46:].isna().all()
    assert comparison.values["hold"].notna().all()
    assert comparison.names == ["hold", "monthly", "short"]


def test_kpis(saved, raw_prices):
    comparison = compare_portfolios(saved, prices=raw_prices)

    assert list(comparison.kpis.columns) == KPI_COLUMNS
    assert list(comparison.kpis.index) == ["hold", "monthly", "short"]
    assert comparison.kpis.loc["hold", "finalValue"] == pytest.approx(
        comparison.results["hold"].metrics.final_value
    )


def test_nav_starts_at_one(saved, raw_prices):
    nav = compare_portfolios(saved, prices=raw_prices).to_nav()
    assert np.allclose(nav.iloc[0], 1.0)


def test_worker_processes_match_sequential(saved, raw_prices):
    sequential = compare_portfolios(saved, prices=raw_prices)
    parallel = compare_portfolios(saved, prices=raw_prices, num_threads=2)

    pd.testing.assert_frame_equal(sequential.kpis, parallel.kpis)


def test_invalid_portfolio_is_named(saved, raw_prices):
    saved = {**saved, "broken": {**saved["hold"], "initialCapital": -1}}
    with pytest.raises(InvalidRequest, match="broken"):
        compare_portfolios(saved, prices=raw_prices)


def test_empty_comparison_raises():
    with pytest.raises(InvalidRequest):
        compare_portfolios({})


def test_lin_parts():
    assert lin_parts(5, 2).tolist() == [0, 3, 5]
    assert lin_parts(2, 4).tolist() == [0, 1, 2]


def test_expand_call_does_not_consume_job():
    job = {"func": lambda x, y: x + y, "x": 1, "y": 2}
    assert expand_call(job) == 3
    assert "func" in job
