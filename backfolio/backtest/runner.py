from dataclasses import replace
from typing import Any, Mapping, Optional

from ..data.alignment import PriceAlignment
from ..data.price_source import BasePriceSource, StaticPriceSource
from ..errors import InvalidRequest
from .engine import BacktestEngine
from .request import BacktestRequest, parse_request
from .result import BacktestResult


def _resolve_prices(
        request: BacktestRequest,
        prices: Optional[Mapping[str, Any]],
        price_source: Optional[BasePriceSource]
    ) -> Mapping[str, Any]:
    """Explicit prices first, then prices carried by the request, then the source."""
    if prices is not None:
        return prices
    embedded = request.price_points()
    if embedded is not None:
        return StaticPriceSource(embedded).load(request.asset_ids, request.start_date, request.end_date)
    if price_source is not None:
        if not isinstance(price_source, BasePriceSource):
            raise TypeError(f"price_source must be a BasePriceSource, not {type(price_source)}")
        return price_source.load(request.asset_ids, request.start_date, request.end_date)
    raise InvalidRequest("[FATAL] No prices: pass `prices`, embed them in the request or give a `price_source`.")


def run_backtest(
        request: Any,
        prices: Optional[Mapping[str, Any]] = None,
        price_source: Optional[BasePriceSource] = None,
        *,
        penalties: Optional[Mapping[str, float]] = None,
    ) -> BacktestResult:
    """
    Validate, align and simulate one backtest request.

    :param request: BacktestRequest or mapping in the external JSON shape
    :param prices: raw points per asset id, overrides any other price input
    :param price_source: provider used when no prices are given or embedded
    :param penalties: overrides for the integrity issue penalties
    :return: BacktestResult
    """
    req = parse_request(request)
    raw = _resolve_prices(req, prices, price_source)

    alignment = PriceAlignment(
        raw, req.start_date, req.end_date, assets=req.asset_ids, penalties=penalties
    ).run()

    engine = BacktestEngine(
        alignment.timeline,
        req.allocations,
        initial_capital=req.initial_capital,
        rebalance=req.rebalance_policy(),
        dca=req.dca_schedule(),
        risk_free_rate_pct=req.risk_free_rate_pct,
        integrity=alignment.integrity,
    )
    result = engine.run().get_results()
    return replace(result, logs=tuple(alignment.logs) + result.logs)
