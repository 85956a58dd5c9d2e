import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..data.alignment import AlignedTimeline, IntegrityReport, make_issue
from ..errors import DataQualityIssue, InvalidRequest
from ..metrics.performance import performance_summary
from .result import BacktestResult, BacktestSeries
from .schedule import DCASchedule, NoRebalance, RebalancePolicy

DEFAULT_INITIAL_CAPITAL = 100.0
WEIGHT_SUM_TOLERANCE = 1e-3


@dataclass
class _SimulationState:
    current_date: Optional[pd.Timestamp] = None
    units: np.ndarray = field(default_factory=lambda: np.zeros(0))
    cash_injected: float = 0.0
    # capital waiting for the first priced day
    pending_cash: float = 0.0


class BacktestEngine:
    """
    Day-by-day portfolio backtest over an aligned daily timeline.

    Core capabilities
    -----------------
    • Lump-sum buy at target weights on day 0, fractional units, no frictions.
    • Rebalancing policies: none (buy and hold), periodic (every N days since
      the start), threshold (any weight drifts more than X points from target).
    • Dollar-cost averaging: a fixed amount injected on schedule days and
      bought at target weights. Contributions are stripped from returns.
    • Late listings: until an asset has a price its weight is carried pro rata
      by the listed assets; on its listing day holdings are reset to target.
    • Assets excluded for lack of data give up their weight the same way,
      for the whole run.

    Parameters
    ----------
    timeline : AlignedTimeline
        Output of PriceAlignment. Never modified.
    allocations : Mapping[str, float]
        Target weight per asset id, each in [0, 1], summing to 1 within
        `weight_tolerance` (then renormalized).
    initial_capital : float, default 100.0
        Cash invested on day 0. Must be > 0.
    rebalance : RebalancePolicy, default NoRebalance()
    dca : DCASchedule, optional
        Periodic contribution schedule. None means lump sum only.
    risk_free_rate_pct : float, default 0.0
        Annual risk-free rate in percent, used by the Sharpe ratio.
    integrity : IntegrityReport, optional
        Report produced by the alignment; post-run consistency findings are
        appended to it.

    Attributes (after run)
    ----------------------
    value_series : pd.Series
        Daily portfolio value.
    prices_record, weights_record, values_record, units_record : pd.DataFrame
        Per-asset daily snapshots after the day's trades.
    contribution_series : pd.Series
        DCA cash injected per day.
    pending_series : pd.Series
        Cash held uninvested because no allocated asset was priced yet.
    rebalance_log : List[Dict]
        {'date', 'reason'} per rebalance event.
    result : BacktestResult
    logs : List[str]
        Validation and informational messages.
    """

    def __init__(
        self,
        timeline: AlignedTimeline,
        allocations: Mapping[str, float],
        *,
        initial_capital: float = DEFAULT_INITIAL_CAPITAL,
        rebalance: Optional[RebalancePolicy] = None,
        dca: Optional[DCASchedule] = None,
        risk_free_rate_pct: float = 0.0,
        integrity: Optional[IntegrityReport] = None,
        weight_tolerance: float = WEIGHT_SUM_TOLERANCE,
    ):
        self.timeline = timeline
        self.allocations = dict(allocations) if isinstance(allocations, Mapping) else allocations
        self.initial_capital = initial_capital
        self.rebalance = rebalance if rebalance is not None else NoRebalance()
        self.dca = dca
        self.risk_free_rate_pct = risk_free_rate_pct
        self.integrity = integrity
        self.weight_tolerance = float(weight_tolerance)

        # results
        self.value_series: Optional[pd.Series] = None
        self.prices_record: Optional[pd.DataFrame] = None
        self.weights_record: Optional[pd.DataFrame] = None
        self.values_record: Optional[pd.DataFrame] = None
        self.units_record: Optional[pd.DataFrame] = None
        self.contribution_series: Optional[pd.Series] = None
        self.pending_series: Optional[pd.Series] = None
        self.rebalance_log: List[Dict[str, Any]] = []
        self.result: Optional[BacktestResult] = None
        self.logs: List[str] = []
        self.issues: List[DataQualityIssue] = []

    # ------------------------- validation & alignment ------------------------- #
    def _log(self, msg: str):
        self.logs.append(msg)

    def _issue(self, category: str, message: str):
        issue = make_issue(category, message)
        self.issues.append(issue)
        self._log(f"[WARN] {issue.message}")

    def _validate_inputs(self) -> None:
        """Check structural input and derive target weights over priced assets."""
        if not isinstance(self.timeline, AlignedTimeline):
            raise TypeError(f"timeline must be an AlignedTimeline, not {type(self.timeline)}")
        if not isinstance(self.allocations, Mapping) or not self.allocations:
            raise InvalidRequest("[FATAL] Allocations must be a non-empty mapping of asset id -> weight.")
        non_str = [a for a in self.allocations if not isinstance(a, str)]
        if non_str:
            raise InvalidRequest(f"[FATAL] Asset ids must be strings, got {non_str!r}.")

        try:
            capital = float(self.initial_capital)
        except (TypeError, ValueError):
            raise InvalidRequest(f"[FATAL] initialCapital must be a number, got {self.initial_capital!r}.")
        if not np.isfinite(capital) or capital <= 0:
            raise InvalidRequest(f"[FATAL] initialCapital must be > 0, got {self.initial_capital}.")
        self.initial_capital = capital

        rf = float(self.risk_free_rate_pct)
        if not np.isfinite(rf):
            raise InvalidRequest(f"[FATAL] riskFreeRatePct must be finite, got {self.risk_free_rate_pct}.")
        self.risk_free_rate_pct = rf

        if len(self.timeline) < 2:
            raise InvalidRequest(
                f"[FATAL] Timeline must span at least two days, got {len(self.timeline)}."
            )

        known = set(self.timeline.assets) | set(self.timeline.excluded)
        unknown = sorted(a for a in self.allocations if a not in known)
        if unknown:
            raise InvalidRequest(f"[FATAL] Allocations reference assets absent from the timeline: {unknown}")

        self.assets = list(self.allocations)
        raw = np.array([float(self.allocations[a]) for a in self.assets], dtype=float)
        if (~np.isfinite(raw)).any() or (raw < 0).any() or (raw > 1).any():
            bad = {a: float(w) for a, w in zip(self.assets, raw) if not (np.isfinite(w) and 0 <= w <= 1)}
            raise InvalidRequest(f"[FATAL] Weights must lie in [0, 1]: {bad}")
        total = float(raw.sum())
        if abs(total - 1.0) > self.weight_tolerance:
            raise InvalidRequest(f"[FATAL] Weights must sum to 1 (tolerance {self.weight_tolerance}), got {total:.6f}.")
        self.requested_weights = raw / total

        ignored = sorted(set(self.timeline.assets) - set(self.assets))
        if ignored:
            self._log(f"[INFO] Ignoring timeline assets without allocation: {ignored}")

        priced = np.array([a in self.timeline.assets for a in self.assets])
        kept = self.requested_weights * priced
        if kept.sum() <= 0:
            raise InvalidRequest(
                "[FATAL] No allocated asset has price data in the requested window; nothing to simulate."
            )
        self.target_weights = kept / kept.sum()

        dropped = [a for a, p in zip(self.assets, priced) if not p]
        if dropped:
            spread = ", ".join(f"{a}={w:.4f}" for a, w in zip(self.assets, self.target_weights) if w > 0)
            self._issue(
                "no_data",
                f"{', '.join(dropped)} excluded, weight redistributed across remaining assets ({spread})",
            )

        # unpriced columns stay all-NaN and carry zero target weight
        self.price_panel = self.timeline.prices.reindex(columns=self.assets)
        self.dates = self.timeline.dates

    # ------------------------------ helpers ------------------------------ #
    def _effective_targets(self, listed: np.ndarray) -> Optional[np.ndarray]:
        """Target weights restricted to listed assets, or None if nothing is investable."""
        w = self.target_weights * listed
        s = float(w.sum())
        if s <= 0:
            return None
        return w / s

    @staticmethod
    def _buy(amount: float, weights: np.ndarray, prices: np.ndarray) -> np.ndarray:
        units = np.zeros_like(weights)
        np.divide(amount * weights, prices, out=units, where=weights > 0)
        return units

    def _record_rebalance(self, date: pd.Timestamp, reason: str):
        self.rebalance_log.append({"date": date, "reason": reason})
        self._log(f"[INFO] {date.date()} rebalanced to target ({reason})")

    # ------------------------------ core run ------------------------------ #
    def run(self) -> "BacktestEngine":
        """
        Execute the simulation. Results are stored on the instance attributes.
        """
        self.logs, self.issues = [], []
        self._validate_inputs()

        dates = self.dates
        n_days, n_assets = len(dates), len(self.assets)
        px_all = self.price_panel.to_numpy(dtype=float)

        due = set(self.dca.due_dates(dates)) if self.dca is not None else set()

        values = np.zeros(n_days)
        prices_rec = np.full((n_days, n_assets), np.nan)
        weights_rec = np.zeros((n_days, n_assets))
        values_rec = np.zeros((n_days, n_assets))
        units_rec = np.zeros((n_days, n_assets))
        injected = np.zeros(n_days)
        pending = np.zeros(n_days)

        self.rebalance_log = []
        state = _SimulationState(units=np.zeros(n_assets))
        listed_prev = np.zeros(n_assets, dtype=bool)

        for i, dt in enumerate(dates):
            state.current_date = dt
            row = px_all[i]
            listed = np.isfinite(row)
            px = np.where(listed, row, 0.0)
            targets = self._effective_targets(listed)

            # 1) capital in: initial lump sum on day 0, DCA afterwards
            if i == 0:
                state.cash_injected = self.initial_capital
                state.pending_cash = self.initial_capital
            elif dt in due:
                amount = float(self.dca.amount)
                injected[i] = amount
                state.cash_injected += amount
                if targets is None:
                    state.pending_cash += amount
                else:
                    state.units = state.units + self._buy(amount, targets, px)
                self._log(f"[FLOW] {dt.date()} DCA contribution +{amount:,.2f}")

            # 2) revalue at today's prices
            value = float(state.units @ px) + state.pending_cash

            # 3) initial buy, listing events, parked cash
            reason = None
            if targets is not None:
                newly_listed = listed & ~listed_prev & (self.target_weights > 0)
                if i == 0:
                    state.units = self._buy(value, targets, px)
                    state.pending_cash = 0.0
                elif newly_listed.any() or state.pending_cash > 0:
                    state.units = self._buy(value, targets, px)
                    state.pending_cash = 0.0
                    reason = "listing"
                    names = [a for a, f in zip(self.assets, newly_listed) if f]
                    self._log(f"[INFO] {dt.date()} {', '.join(names) or 'capital'} now priced, holdings reset to target")

            # 4) rebalance policy, skipped if holdings were already reset today
            if i > 0 and reason is None and targets is not None and value > 0:
                current = (state.units * px) / value
                if self.rebalance.should_rebalance(i, current, targets):
                    state.units = self._buy(value, targets, px)
                    reason = self.rebalance.mode
            if reason is not None:
                self._record_rebalance(dt, reason)

            # 5) record end-of-day state
            held = state.units * px
            values[i] = float(held.sum()) + state.pending_cash
            prices_rec[i] = row
            values_rec[i] = held
            weights_rec[i] = held / values[i] if values[i] > 0 else 0.0
            units_rec[i] = state.units
            pending[i] = state.pending_cash
            listed_prev = listed

        if state.pending_cash > 0:
            self._log(f"[WARN] {state.pending_cash:,.2f} never invested: no allocated asset was priced")

        cols = pd.Index(self.assets, name="asset")
        self.value_series = pd.Series(values, index=dates, name="value")
        self.prices_record = pd.DataFrame(prices_rec, index=dates, columns=cols)
        self.weights_record = pd.DataFrame(weights_rec, index=dates, columns=cols)
        self.values_record = pd.DataFrame(values_rec, index=dates, columns=cols)
        self.units_record = pd.DataFrame(units_rec, index=dates, columns=cols)
        self.contribution_series = pd.Series(injected, index=dates, name="contribution")
        self.pending_series = pd.Series(pending, index=dates, name="pending_cash")

        self._check_consistency()
        self.result = self._build_result()
        return self

    def _check_consistency(self) -> None:
        """Post-run invariants: weights sum to 1, value = sum of holdings, prices > 0."""
        invested = (self.pending_series <= 0) & (self.value_series > 0)
        wsum = self.weights_record[invested].sum(axis=1)
        off = wsum[(wsum - 1.0).abs() > 1e-6]
        if not off.empty:
            self._issue(
                "consistency",
                f"weights do not sum to 1 on {len(off)} day(s), first {off.index[0].date()} ({off.iloc[0]:.6f})",
            )

        gap = (self.value_series - self.values_record.sum(axis=1) - self.pending_series).abs()
        bad = gap[gap > 1e-9 * np.maximum(1.0, self.value_series.abs())]
        if not bad.empty:
            self._issue("consistency", f"portfolio value differs from the sum of holdings on {len(bad)} day(s)")

        px = self.prices_record.to_numpy(dtype=float)
        if (px[np.isfinite(px)] <= 0).any():
            self._issue("consistency", "non-positive price used for valuation")

    def _build_result(self) -> BacktestResult:
        metrics, risk, dca = performance_summary(
            self.value_series,
            self.prices_record,
            initial_capital=self.initial_capital,
            contributions=self.contribution_series,
            risk_free_rate_pct=self.risk_free_rate_pct,
            rebalance_count=len(self.rebalance_log),
            dca_enabled=self.dca is not None,
        )
        base = self.integrity if self.integrity is not None else IntegrityReport.from_issues([])
        integrity = base.extend(self.issues)

        invested = self.initial_capital + self.contribution_series.cumsum()
        series = BacktestSeries(
            timeline=self.dates,
            portfolio=self.value_series,
            asset_prices=self.prices_record,
            asset_weights=self.weights_record,
            asset_values=self.values_record,
            contributions=self.contribution_series,
            invested=invested.rename("invested"),
            rebalance_dates=pd.DatetimeIndex([r["date"] for r in self.rebalance_log]),
            rebalance_reasons=tuple(r["reason"] for r in self.rebalance_log),
        )
        return BacktestResult(
            series=series,
            metrics=metrics,
            risk=risk,
            integrity=integrity,
            dca=dca,
            logs=tuple(self.logs),
        )

    def get_results(self) -> BacktestResult:
        """Return the result object."""
        if self.result is None:
            raise RuntimeError("Run the simulation first with `.run()`.")
        return self.result

    def to_nav(self) -> pd.Series:
        return self.get_results().to_nav()
