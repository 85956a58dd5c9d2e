from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping
import pandas as pd

from .alignment import parse_day


class BasePriceSource(ABC):
    """
    Abstract base class for historical price providers.
    Concrete sources (in-memory mappings, wide frames, caches owned by the
    host application) should inherit this. The backtest core never fetches
    prices itself, it only consumes what a source hands over.
    """

    @abstractmethod
    def get(
            self,
            asset_id: str,
            start: Any,
            end: Any
        ) -> pd.Series :
        """
                Return the daily price history of one asset.

                Parameters:
                - asset_id: opaque asset identifier (coin slug, symbol, ...)
                - start: start date in 'YYYY-MM-DD'
                - end: end date in 'YYYY-MM-DD'

                Returns:
                - pd.Series: prices indexed by date, possibly gappy or empty
                """
        pass

    def load(
            self,
            asset_ids: List[str],
            start: Any,
            end: Any
        ) -> Dict[str, pd.Series] :
        """Return {asset_id: price series} for every requested asset."""
        return {asset_id: self.get(asset_id, start, end) for asset_id in asset_ids}


class StaticPriceSource(BasePriceSource):
    """
    In-memory price source over pre-fetched raw points.

    Points are handed over untouched (duplicates, ordering problems and bad
    prices included) so that price alignment can report them.
    """

    def __init__(self, prices: Mapping[str, Any]):
        self.prices = dict(prices)

    def get(self, asset_id: str, start: Any = None, end: Any = None) -> Any:
        return self.prices.get(asset_id, [])


class DataFramePriceSource(BasePriceSource):
    """
    Price source backed by a wide (date x asset) DataFrame.

    `get` returns the quotes inside [start, end] plus the last quote at or
    before start, matching what alignment needs to forward-fill day 0.

    :param data: DataFrame indexed by date, one column per asset id
    """

    def __init__(self, data: pd.DataFrame):
        if not isinstance(data, pd.DataFrame):
            raise TypeError(f"data must be a DataFrame, not {type(data)}")
        if data.columns.duplicated().any():
            raise ValueError("Duplicate asset columns.")
        self.data = data.copy()
        self.data.index = pd.to_datetime(self.data.index)

    def get(self, asset_id: str, start: Any, end: Any) -> pd.Series:
        if asset_id not in self.data.columns:
            return pd.Series(dtype=float)
        s = self.data[asset_id].dropna()
        lo, hi = parse_day(start), parse_day(end)
        if lo is not None:
            # last quote at or before start seeds the forward-fill
            s = pd.concat([s[s.index <= lo].tail(1), s[s.index > lo]])
        if hi is not None:
            s = s[s.index <= hi]
        return s
