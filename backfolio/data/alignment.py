import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import DataQualityIssue, InvalidRequest

ISSUE_LABELS = {
    "no_data": "no data",
    "invalid_price": "invalid price",
    "consistency": "consistency",
    "late_start": "late start",
    "missing_data": "missing data",
    "non_monotonic": "non-monotonic dates",
    "duplicate_dates": "duplicate dates",
    "malformed_point": "malformed point",
}

# Deducted once per distinct category, never per occurrence.
ISSUE_PENALTIES = {
    "no_data": 25,
    "invalid_price": 15,
    "consistency": 20,
    "late_start": 10,
    "missing_data": 10,
    "non_monotonic": 5,
    "duplicate_dates": 5,
    "malformed_point": 5,
}

DEFAULT_PENALTY = 10


def make_issue(category: str, message: str) -> DataQualityIssue:
    """Build an issue whose message is prefixed with the category label."""
    label = ISSUE_LABELS.get(category, category.replace("_", " "))
    return DataQualityIssue(category=category, message=f"{label}: {message}")


def _resolve_penalties(penalties: Optional[Mapping[str, float]]) -> Dict[str, float]:
    resolved = dict(ISSUE_PENALTIES)
    if penalties:
        resolved.update({k: float(v) for k, v in penalties.items()})
    negative = sorted(k for k, v in resolved.items() if v < 0)
    if negative:
        raise ValueError(f"Issue penalties must be >= 0, got negative values for {negative}.")
    return resolved


@dataclass(frozen=True)
class IntegrityReport:
    """
    Data-quality summary of a backtest input.

    Attributes
    ----------
    score : int
        100 minus one fixed penalty per distinct issue category, floored at 0.
    issues : tuple of str
        Human readable issue messages, in discovery order.
    categories : tuple of str
        Distinct issue categories, in discovery order.
    """
    score: int
    issues: Tuple[str, ...]
    categories: Tuple[str, ...]
    records: Tuple[DataQualityIssue, ...] = field(default=(), repr=False)
    penalties: Dict[str, float] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_issues(
            cls,
            issues: Sequence[DataQualityIssue],
            penalties: Optional[Mapping[str, float]] = None
        ) -> "IntegrityReport":
        resolved = _resolve_penalties(penalties)
        categories = tuple(dict.fromkeys(issue.category for issue in issues))
        deduction = sum(resolved.get(c, DEFAULT_PENALTY) for c in categories)
        score = int(max(0.0, 100.0 - deduction))
        return cls(
            score=score,
            issues=tuple(issue.message for issue in issues),
            categories=categories,
            records=tuple(issues),
            penalties=resolved,
        )

    def extend(self, issues: Sequence[DataQualityIssue]) -> "IntegrityReport":
        """Return a new report with additional issues rescored under the same penalties."""
        if not issues:
            return self
        return IntegrityReport.from_issues(list(self.records) + list(issues), self.penalties)

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "issues": list(self.issues)}


@dataclass(frozen=True, eq=False)
class AlignedTimeline:
    """
    Common daily grid shared by every asset of one backtest run.

    `prices` is a (days x assets) frame. A NaN cell means the asset was not
    listed yet on that day; every later cell is filled. Treat the frame as
    read-only, the engine never writes to it.
    """
    dates: pd.DatetimeIndex
    prices: pd.DataFrame
    assets: Tuple[str, ...]
    excluded: Tuple[str, ...] = ()
    listing_dates: Dict[str, pd.Timestamp] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.dates)

    @property
    def start(self) -> pd.Timestamp:
        return self.dates[0]

    @property
    def end(self) -> pd.Timestamp:
        return self.dates[-1]

    def price_matrix(self) -> np.ndarray:
        return self.prices.to_numpy(dtype=float, copy=True)


def parse_day(value: Any) -> Optional[pd.Timestamp]:
    """Parse a calendar day, returning None when the value is not a date."""
    if value is None:
        return None
    ts = pd.to_datetime(value, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    ts = pd.Timestamp(ts)
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.normalize()


def _coerce_points(raw: Any) -> Tuple[List[Any], List[Any]]:
    """Split raw points into parallel (dates, prices) lists, keeping input order."""
    if raw is None:
        return [], []
    if isinstance(raw, pd.Series):
        return list(raw.index), list(raw.values)
    if isinstance(raw, pd.DataFrame):
        if not {"date", "price"} <= set(raw.columns):
            raise TypeError("Price frame must have 'date' and 'price' columns.")
        return list(raw["date"]), list(raw["price"])

    dates, prices = [], []
    for point in raw:
        if isinstance(point, Mapping):
            dates.append(point.get("date"))
            prices.append(point.get("price"))
        elif hasattr(point, "date") and hasattr(point, "price"):
            dates.append(point.date)
            prices.append(point.price)
        elif isinstance(point, (tuple, list)) and len(point) == 2:
            dates.append(point[0])
            prices.append(point[1])
        else:
            dates.append(None)
            prices.append(None)
    return dates, prices


def _longest_run(mask: np.ndarray) -> int:
    best = run = 0
    for flag in mask:
        run = run + 1 if flag else 0
        best = max(best, run)
    return best


class PriceAlignment:
    """
    Align N independent, possibly gappy price histories on one daily grid.

    Core rules
    ----------
    • Timeline is every calendar day in [start, end], inclusive.
    • Exact-date price if available, else last earlier valid price (forward fill,
      quotes before `start` included), else NaN until the asset's series begins.
    • Duplicate dates keep the last value in input order; unsorted input is sorted.
    • Zero/negative/non-finite prices are removed from the fill source.
    • An asset without a single valid quote inside the window is excluded.

    Every finding is recorded as a DataQualityIssue and scored into an
    IntegrityReport. Data problems never raise; only structural input does
    (no assets, inverted or unparseable date range).

    Parameters
    ----------
    prices : Mapping[str, points]
        Raw points per asset id. Points may be a pd.Series indexed by date, a
        DataFrame with 'date'/'price' columns, or an iterable of {'date','price'}
        mappings or (date, price) tuples.
    start, end : date-like
        Inclusive window.
    assets : Sequence[str], optional
        Requested asset ids in order. Defaults to the keys of `prices`.
        Requested ids missing from `prices` count as assets with no data.
    penalties : Mapping[str, float], optional
        Overrides for ISSUE_PENALTIES.
    """

    def __init__(
            self,
            prices: Mapping[str, Any],
            start: Any,
            end: Any,
            *,
            assets: Optional[Sequence[str]] = None,
            penalties: Optional[Mapping[str, float]] = None,
        ):
        self.raw_prices = dict(prices or {})
        self.assets = list(assets) if assets is not None else list(self.raw_prices)
        self.start = parse_day(start)
        self.end = parse_day(end)
        self.penalties = _resolve_penalties(penalties)

        if not self.assets:
            raise InvalidRequest("[FATAL] Asset list is empty.")
        if self.start is None or self.end is None:
            raise InvalidRequest(f"[FATAL] Unparseable date range: start={start!r}, end={end!r}.")
        if self.start > self.end:
            raise InvalidRequest(
                f"[FATAL] startDate {self.start.date()} is after endDate {self.end.date()}."
            )

        self.dates = pd.date_range(self.start, self.end, freq="D").astype("datetime64[ns]")

        # results
        self.timeline: Optional[AlignedTimeline] = None
        self.integrity: Optional[IntegrityReport] = None
        self.issues: List[DataQualityIssue] = []
        self.logs: List[str] = []

    def _log(self, msg: str):
        self.logs.append(msg)

    def _issue(self, category: str, message: str):
        issue = make_issue(category, message)
        self.issues.append(issue)
        self._log(f"[WARN] {issue.message}")

    # ------------------------------ cleaning ------------------------------ #
    def _clean_series(self, asset_id: str, raw: Any) -> pd.Series:
        """Turn raw points into a sorted, unique, strictly positive price series."""
        dates, values = _coerce_points(raw)
        parsed = [parse_day(d) for d in dates]

        malformed = sum(d is None for d in parsed)
        if malformed:
            self._issue("malformed_point", f"{asset_id} has {malformed} point(s) with an unparseable date, dropped")

        keep = [i for i, d in enumerate(parsed) if d is not None]
        s = pd.Series(
            [values[i] for i in keep],
            index=pd.DatetimeIndex([parsed[i] for i in keep]).astype("datetime64[ns]"),
            dtype=object,
        )
        s = pd.to_numeric(s, errors="coerce").astype(float)

        if not s.index.is_monotonic_increasing:
            self._issue("non_monotonic", f"{asset_id} dates are not in increasing order, sorted before filling")

        dup = s.index.duplicated(keep="last")
        if dup.any():
            self._issue("duplicate_dates", f"{asset_id} has {int(dup.sum())} duplicate date(s), last value kept")
            s = s[~dup]
        s = s.sort_index()

        vals = s.to_numpy(dtype=float)
        bad = ~np.isfinite(vals) | (vals <= 0)
        if bad.any():
            self._issue(
                "invalid_price",
                f"{asset_id} has {int(bad.sum())} zero, negative or missing price(s), excluded from filling",
            )
            s = s[~bad]
        return s

    def _fill(self, asset_id: str, clean: pd.Series) -> pd.Series:
        """Forward-fill a clean series onto the timeline and report gaps."""
        filled = clean.reindex(self.dates, method="ffill") if len(clean) else pd.Series(np.nan, index=self.dates)
        listed = filled.notna().to_numpy()
        exact = self.dates.isin(clean.index)

        missing = listed & ~exact
        if missing.any():
            self._issue(
                "missing_data",
                f"{asset_id} has {int(missing.sum())} day(s) without a quote, forward-filled "
                f"(longest gap {_longest_run(missing)} day(s))",
            )
        if not listed[0]:
            first = self.dates[int(np.argmax(listed))]
            self._issue(
                "late_start",
                f"{asset_id} has no price before {first.date()}, its weight is carried by the other assets until then",
            )
        filled.name = asset_id
        return filled

    # ------------------------------ core run ------------------------------ #
    def run(self) -> "PriceAlignment":
        """
        Build the aligned timeline and integrity report. Results are stored on
        the instance attributes.
        """
        self.issues = []
        columns: Dict[str, pd.Series] = {}
        listing: Dict[str, pd.Timestamp] = {}
        excluded: List[str] = []

        extra = sorted(set(self.raw_prices) - set(self.assets))
        if extra:
            self._log(f"[INFO] Ignoring prices for assets not in the request: {extra}")

        for asset_id in self.assets:
            clean = self._clean_series(asset_id, self.raw_prices.get(asset_id))
            in_window = clean.loc[self.start:self.end]
            if in_window.empty:
                self._issue(
                    "no_data",
                    f"{asset_id} has no valid price between {self.start.date()} and {self.end.date()}, "
                    f"excluded from the backtest",
                )
                excluded.append(asset_id)
                continue
            filled = self._fill(asset_id, clean)
            columns[asset_id] = filled
            listing[asset_id] = filled.first_valid_index()

        included = tuple(a for a in self.assets if a in columns)
        if included:
            panel = pd.concat([columns[a] for a in included], axis=1)
        else:
            panel = pd.DataFrame(index=self.dates, dtype=float)
        panel.index.name = "date"

        self.timeline = AlignedTimeline(
            dates=self.dates,
            prices=panel,
            assets=included,
            excluded=tuple(excluded),
            listing_dates=listing,
        )
        self.integrity = IntegrityReport.from_issues(self.issues, self.penalties)
        return self

    def get_results(self) -> Dict[str, Any]:
        """Return all result objects."""
        if self.timeline is None or self.integrity is None:
            raise RuntimeError("Run the alignment first with `.run()`.")
        return {
            "timeline": self.timeline,
            "integrity": self.integrity,
            "logs": self.logs,
        }


def align_prices(
        prices: Mapping[str, Any],
        start: Any,
        end: Any,
        *,
        assets: Optional[Sequence[str]] = None,
        penalties: Optional[Mapping[str, float]] = None,
    ) -> Tuple[AlignedTimeline, IntegrityReport]:
    """Shortcut for ``PriceAlignment(...).run()`` returning (timeline, integrity)."""
    alignment = PriceAlignment(prices, start, end, assets=assets, penalties=penalties).run()
    return alignment.timeline, alignment.integrity
