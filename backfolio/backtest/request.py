from __future__ import annotations
import math
import datetime as dt
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import InvalidRequest
from .schedule import (
    DCASchedule,
    NoRebalance,
    PeriodicRebalance,
    RebalancePolicy,
    ThresholdRebalance,
)

DEFAULT_PERIOD_DAYS = 30
DEFAULT_THRESHOLD_PCT = 5.0
WEIGHT_SUM_TOLERANCE = 1e-3


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class AssetAllocation(_RequestModel):
    id: str = Field(min_length=1)
    allocation: float = Field(ge=0.0, le=1.0)


class RebalanceConfig(_RequestModel):
    mode: Literal["none", "periodic", "threshold"] = "none"
    period_days: Optional[int] = Field(default=None, gt=0, alias="periodDays")
    threshold_pct: Optional[float] = Field(default=None, gt=0, alias="thresholdPct")

    def to_policy(self) -> RebalancePolicy:
        if self.mode == "periodic":
            return PeriodicRebalance(self.period_days or DEFAULT_PERIOD_DAYS)
        if self.mode == "threshold":
            return ThresholdRebalance(self.threshold_pct or DEFAULT_THRESHOLD_PCT)
        return NoRebalance()


class DCAConfig(_RequestModel):
    enabled: bool = False
    amount: float = Field(default=0.0, ge=0.0)
    periodicity: Literal["daily", "weekly", "monthly", "yearly"] = "monthly"

    def to_schedule(self) -> Optional[DCASchedule]:
        """Disabled or zero-amount DCA means a pure lump-sum backtest."""
        if not self.enabled or self.amount == 0:
            return None
        return DCASchedule(amount=self.amount, periodicity=self.periodicity)


class BacktestRequest(_RequestModel):
    """
    Validated backtest request, mirroring the JSON shape consumed by the
    surrounding application (camelCase aliases, snake_case attributes).
    """
    assets: List[AssetAllocation] = Field(min_length=1)
    start_date: dt.date = Field(alias="startDate")
    end_date: dt.date = Field(alias="endDate")
    rebalance: RebalanceConfig = Field(default_factory=RebalanceConfig)
    initial_capital: float = Field(default=100.0, gt=0.0, alias="initialCapital")
    risk_free_rate_pct: float = Field(default=0.0, alias="riskFreeRatePct")
    dca: Optional[DCAConfig] = None
    # points stay raw; bad dates and prices are flagged during alignment
    prices: Optional[Dict[str, List[Any]]] = None

    @field_validator("initial_capital", "risk_free_rate_pct")
    @classmethod
    def finite(cls, v):
        if not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v

    @field_validator("assets")
    @classmethod
    def unique_assets(cls, v):
        ids = [a.id for a in v]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"Duplicate asset ids: {dupes}")
        return v

    @model_validator(mode="after")
    def check_consistency(self):
        total = sum(a.allocation for a in self.assets)
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"Asset allocations must sum to 1, got {total:.6f}")
        if self.start_date > self.end_date:
            raise ValueError(f"startDate {self.start_date} is after endDate {self.end_date}")
        return self

    @property
    def allocations(self) -> Dict[str, float]:
        return {a.id: a.allocation for a in self.assets}

    @property
    def asset_ids(self) -> List[str]:
        return [a.id for a in self.assets]

    def rebalance_policy(self) -> RebalancePolicy:
        return self.rebalance.to_policy()

    def dca_schedule(self) -> Optional[DCASchedule]:
        return self.dca.to_schedule() if self.dca is not None else None

    def price_points(self) -> Optional[Dict[str, List[Any]]]:
        if self.prices is None:
            return None
        return {asset_id: list(points) for asset_id, points in self.prices.items()}


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ())) or "request"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def parse_request(payload: Any) -> BacktestRequest:
    """
    Validate a request payload eagerly.

    Accepts an existing BacktestRequest or a mapping in the external JSON
    shape. Any violation is raised as a single InvalidRequest.
    """
    if isinstance(payload, BacktestRequest):
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidRequest(f"Request must be a mapping, not {type(payload).__name__}.")
    try:
        return BacktestRequest.model_validate(dict(payload))
    except ValidationError as exc:
        raise InvalidRequest(f"Invalid backtest request: {_describe(exc)}") from exc
