from .alignment import AlignedTimeline, IntegrityReport, PriceAlignment, align_prices
from .price_source import BasePriceSource, StaticPriceSource, DataFramePriceSource

__all__ = [
    "AlignedTimeline",
    "IntegrityReport",
    "PriceAlignment",
    "align_prices",
    "BasePriceSource",
    "StaticPriceSource",
    "DataFramePriceSource"
]
