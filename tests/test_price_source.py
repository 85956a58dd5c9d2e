import pandas as pd
import pytest

from backfolio.data.price_source import BasePriceSource, DataFramePriceSource, StaticPriceSource


@pytest.fixture
def frame():
    idx = pd.date_range("2024-01-01", periods=10, freq="D")
    return pd.DataFrame({"a": range(1, 11), "b": [2.0] * 10}, index=idx)


def test_dataframe_source_filters_window(frame):
    source = DataFramePriceSource(frame)
    s = source.get("a", "2024-01-03", "2024-01-05")

    assert s.tolist() == [3, 4, 5]
    assert source.get("zzz", "2024-01-01", "2024-01-10").empty


def test_dataframe_source_keeps_last_quote_before_start():
    idx = pd.to_datetime(["2023-12-20", "2023-12-28", "2024-01-03", "2024-01-04", "2024-01-05", "2024-01-08"])
    source = DataFramePriceSource(pd.DataFrame({"a": [9.0, 10.0, 11.0, 12.0, 13.0, 14.0]}, index=idx))
    s = source.get("a", "2024-01-01", "2024-01-05")

    assert s.tolist() == [10.0, 11.0, 12.0, 13.0]
    assert s.index[0] == pd.Timestamp("2023-12-28")
    assert source.get("a", "2023-12-01", "2023-12-10").empty


def test_dataframe_source_load(frame):
    loaded = DataFramePriceSource(frame).load(["a", "b"], "2024-01-01", "2024-01-10")

    assert set(loaded) == {"a", "b"}
    assert len(loaded["b"]) == 10


def test_dataframe_source_validation(frame):
    with pytest.raises(TypeError):
        DataFramePriceSource(frame["a"])
    dup = pd.concat([frame, frame["a"]], axis=1)
    with pytest.raises(ValueError):
        DataFramePriceSource(dup)


def test_static_source_hands_over_raw_points():
    points = [{"date": "2024-01-02", "price": 1.0}, {"date": "2024-01-01", "price": 1.0}]
    source = StaticPriceSource({"a": points})

    assert source.get("a", None, None) is points
    assert source.get("b", None, None) == []


def test_base_source_is_abstract():
    with pytest.raises(TypeError):
        BasePriceSource()
