import matplotlib.pyplot as plt
import pytest

from backfolio import compare_portfolios, run_backtest
from backfolio.graphics import plot_asset_weights, plot_comparison, plot_portfolio_value


@pytest.fixture
def result(base_request, make_points, trending_prices):
    prices = {asset: make_points("2024-01-01", p) for asset, p in trending_prices.items()}
    payload = {
        **base_request,
        "rebalance": {"mode": "periodic", "periodDays": 30},
        "dca": {"enabled": True, "amount": 50, "periodicity": "monthly"},
    }
    return run_backtest(payload, prices=prices)


def test_plot_portfolio_value(result):
    fig, ax = plot_portfolio_value(result)
    labels = [line.get_label() for line in ax.get_lines()]

    assert "Portfolio value" in labels
    assert "Invested capital" in labels
    plt.close(fig)


def test_plot_asset_weights(result):
    fig, ax = plot_asset_weights(result)
    assert ax.get_ylim() == (0, 1)
    plt.close(fig)


def test_plot_comparison(base_request, make_points, trending_prices):
    prices = {asset: make_points("2024-01-01", p) for asset, p in trending_prices.items()}
    comparison = compare_portfolios(
        {"hold": base_request, "short": {**base_request, "endDate": "2024-02-01"}}, prices=prices
    )
    fig, ax = plot_comparison(comparison, normalize=True)

    assert len(ax.get_lines()) == 2
    assert ax.get_ylabel() == "NAV"
    plt.close(fig)
