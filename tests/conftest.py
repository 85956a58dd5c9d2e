import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from backfolio.data.alignment import align_prices


@pytest.fixture
def make_points():
    """Build raw {'date', 'price'} points for consecutive days starting at `start`."""
    def _make(start, prices):
        dates = pd.date_range(start, periods=len(prices), freq="D")
        return [{"date": d.strftime("%Y-%m-%d"), "price": float(p)} for d, p in zip(dates, prices)]
    return _make


@pytest.fixture
def make_timeline(make_points):
    """Align {asset: prices list} starting at `start` over `days` calendar days."""
    def _make(series, start="2024-01-01", days=None):
        days = days or max(len(p) for p in series.values())
        end = pd.Timestamp(start) + pd.Timedelta(days=days - 1)
        raw = {asset: make_points(start, prices) for asset, prices in series.items()}
        return align_prices(raw, start, end)
    return _make


@pytest.fixture
def trending_prices():
    """Two assets over 100 days: one rising, one falling."""
    t = np.arange(100)
    return {"a": list(1.0 + 0.01 * t), "b": list(1.0 - 0.005 * t)}


@pytest.fixture
def noisy_prices():
    """Deterministic wiggly path for one asset."""
    t = np.arange(60)
    return {"a": list(100.0 * (1.0 + 0.002 * t) * (1.0 + 0.03 * np.sin(t)))}


@pytest.fixture
def base_request():
    return {
        "assets": [{"id": "a", "allocation": 0.6}, {"id": "b", "allocation": 0.4}],
        "startDate": "2024-01-01",
        "endDate": "2024-04-09",
        "rebalance": {"mode": "none"},
        "initialCapital": 1000,
    }
