import numpy as np
import pandas as pd
import pytest

from backfolio import (
    DataFramePriceSource,
    InvalidRequest,
    StaticPriceSource,
    run_backtest,
)


@pytest.fixture
def raw_prices(make_points, trending_prices):
    return {asset: make_points("2024-01-01", p) for asset, p in trending_prices.items()}


def test_run_with_explicit_prices(base_request, raw_prices):
    result = run_backtest(base_request, prices=raw_prices)

    assert result.metrics.initial_capital == 1000.0
    assert result.metrics.trading_days == 100
    assert result.integrity.score == 100
    assert result.dca is None


def test_result_json_shape(base_request, raw_prices):
    payload = {**base_request, "dca": {"enabled": True, "amount": 100, "periodicity": "monthly"}}
    d = run_backtest(payload, prices=raw_prices).to_dict()

    assert set(d) == {"series", "metrics", "risk", "integrity", "dca"}
    assert set(d["series"]) == {
        "timeline", "portfolio", "perAssetPrices", "perAssetWeights",
        "perAssetValues", "contributions", "rebalanceDates",
    }
    assert d["series"]["timeline"][0] == "2024-01-01"
    assert d["series"]["portfolio"][0] == {"date": "2024-01-01", "value": pytest.approx(1000.0)}
    assert len(d["series"]["perAssetPrices"]["a"]) == 100
    assert d["series"]["contributions"][0] == {"date": "2024-02-01", "amount": 100.0}
    assert set(d["risk"]) == {"perAssetVolatilityPct", "riskReward"}
    assert set(d["integrity"]) == {"score", "issues"}
    assert d["dca"]["contributionCount"] == 3
    assert d["metrics"]["totalInvested"] == pytest.approx(1300.0)


def test_unlisted_prices_serialize_as_none(make_points):
    request = {
        "assets": [{"id": "a", "allocation": 0.5}, {"id": "b", "allocation": 0.5}],
        "startDate": "2024-01-01",
        "endDate": "2024-01-10",
    }
    prices = {"a": make_points("2024-01-01", [10.0] * 10), "b": make_points("2024-01-06", [20.0] * 5)}
    d = run_backtest(request, prices=prices).to_dict()

    assert d["series"]["perAssetPrices"]["b"][:5] == [None] * 5
    assert d["series"]["rebalanceDates"] == ["2024-01-06"]
    assert d["integrity"]["score"] < 100


def test_prices_embedded_in_request(base_request, raw_prices):
    payload = {**base_request, "prices": raw_prices}
    result = run_backtest(payload)

    assert result.metrics.trading_days == 100
    assert result.metrics.final_value == pytest.approx(run_backtest(base_request, prices=raw_prices).metrics.final_value)


def test_price_source(base_request, trending_prices):
    frame = pd.DataFrame(trending_prices, index=pd.date_range("2024-01-01", periods=100, freq="D"))
    result = run_backtest(base_request, price_source=DataFramePriceSource(frame))

    assert result.integrity.score == 100
    assert result.metrics.final_value == pytest.approx(600 * frame["a"].iloc[-1] + 400 * frame["b"].iloc[-1])


def test_explicit_prices_win_over_source(base_request, raw_prices):
    empty = StaticPriceSource({})
    result = run_backtest(base_request, prices=raw_prices, price_source=empty)
    assert result.integrity.score == 100


def test_missing_prices_raise(base_request):
    with pytest.raises(InvalidRequest):
        run_backtest(base_request)


def test_no_data_anywhere_raises(base_request):
    with pytest.raises(InvalidRequest):
        run_backtest(base_request, prices={})


def test_logs_combine_alignment_and_engine(base_request, raw_prices):
    prices = dict(raw_prices)
    prices["a"] = prices["a"][:10] + prices["a"][20:]
    result = run_backtest({**base_request, "rebalance": {"mode": "periodic"}}, prices=prices)

    assert any(line.startswith("[WARN] missing data") for line in result.logs)
    assert any("periodic" in line for line in result.logs)


def test_risk_free_rate_moves_sharpe(base_request, raw_prices):
    plain = run_backtest(base_request, prices=raw_prices).metrics.sharpe
    with_rf = run_backtest({**base_request, "riskFreeRatePct": 5}, prices=raw_prices).metrics.sharpe

    assert plain is not None and with_rf is not None
    assert with_rf < plain
    assert np.isfinite(with_rf)


def test_bad_embedded_points_are_flagged_not_rejected(base_request, raw_prices):
    prices = {asset: list(points) for asset, points in raw_prices.items()}
    prices["a"].append({"date": "garbage", "price": 2.0})
    prices["b"][2] = {"date": prices["b"][2]["date"], "price": None}
    result = run_backtest({**base_request, "prices": prices})

    assert result.metrics.trading_days == 100
    assert {"invalid_price", "malformed_point"} <= set(result.integrity.categories)
    assert result.integrity.score < 100


def test_frame_source_matches_static_source():
    request = {
        "assets": [{"id": "a", "allocation": 1.0}],
        "startDate": "2024-01-01",
        "endDate": "2024-01-05",
    }
    idx = pd.to_datetime(["2023-12-28", "2024-01-03", "2024-01-04", "2024-01-05"])
    frame = pd.DataFrame({"a": [10.0, 11.0, 12.0, 13.0]}, index=idx)
    points = [{"date": d.strftime("%Y-%m-%d"), "price": p} for d, p in frame["a"].items()]

    from_frame = run_backtest(request, price_source=DataFramePriceSource(frame))
    from_points = run_backtest(request, price_source=StaticPriceSource({"a": points}))

    for result in (from_frame, from_points):
        assert result.series.asset_prices["a"].tolist() == [10.0, 10.0, 11.0, 12.0, 13.0]
        assert result.integrity.categories == ("missing_data",)
    assert from_frame.metrics.final_value == pytest.approx(from_points.metrics.final_value)
