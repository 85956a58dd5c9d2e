import numpy as np
import pandas as pd
import pytest

from backfolio.backtest.schedule import (
    DCASchedule,
    NoRebalance,
    PeriodicRebalance,
    ThresholdRebalance,
    dca_dates,
    periodic_rebalance_dates,
)
from backfolio.errors import InvalidRequest


def _days(start, end):
    return pd.date_range(start, end, freq="D")


def _fmt(index):
    return [d.strftime("%Y-%m-%d") for d in index]


def test_daily_skips_day_zero():
    dates = _days("2024-01-01", "2024-01-05")
    assert _fmt(dca_dates(dates, "daily")) == ["2024-01-02", "2024-01-03", "2024-01-04", "2024-01-05"]


def test_weekly_every_seventh_day():
    dates = _days("2024-01-01", "2024-01-31")
    assert _fmt(dca_dates(dates, "weekly")) == ["2024-01-08", "2024-01-15", "2024-01-22", "2024-01-29"]


def test_monthly_clips_to_month_end_and_recovers():
    dates = _days("2024-01-31", "2024-06-15")
    assert _fmt(dca_dates(dates, "monthly")) == ["2024-02-29", "2024-03-31", "2024-04-30", "2024-05-31"]


def test_yearly_leap_day_start():
    dates = _days("2020-02-29", "2022-03-01")
    assert _fmt(dca_dates(dates, "yearly")) == ["2021-02-28", "2022-02-28"]


def test_short_window_has_no_contributions():
    dates = _days("2024-01-01", "2024-01-20")
    assert len(dca_dates(dates, "monthly")) == 0
    assert len(dca_dates(dates[:1], "daily")) == 0


def test_unknown_periodicity():
    with pytest.raises(InvalidRequest):
        dca_dates(_days("2024-01-01", "2024-01-10"), "hourly")
    with pytest.raises(InvalidRequest):
        DCASchedule(amount=10, periodicity="quarterly")


def test_dca_schedule_validation():
    with pytest.raises(InvalidRequest):
        DCASchedule(amount=0)
    with pytest.raises(InvalidRequest):
        DCASchedule(amount=-5)
    schedule = DCASchedule(amount=25, periodicity="weekly")
    assert schedule.to_dict() == {"enabled": True, "amount": 25.0, "periodicity": "weekly"}
    assert len(schedule.due_dates(_days("2024-01-01", "2024-01-15"))) == 2


def test_periodic_dates():
    dates = _days("2024-01-01", "2024-04-09")
    assert len(dates) == 100
    due = periodic_rebalance_dates(dates, 30)
    assert list(due) == [dates[30], dates[60], dates[90]]


def test_periodic_policy():
    policy = PeriodicRebalance(7)
    assert not policy.should_rebalance(0, None, None)
    assert policy.should_rebalance(7, None, None)
    assert not policy.should_rebalance(8, None, None)
    assert policy.to_dict() == {"mode": "periodic", "periodDays": 7}

    with pytest.raises(InvalidRequest):
        PeriodicRebalance(0)
    with pytest.raises(InvalidRequest):
        PeriodicRebalance(1.5)


def test_threshold_policy_uses_absolute_points():
    policy = ThresholdRebalance(5)
    targets = np.array([0.5, 0.5])
    assert not policy.should_rebalance(3, np.array([0.54, 0.46]), targets)
    assert policy.should_rebalance(3, np.array([0.56, 0.44]), targets)
    # 10% relative drift on a 10% target is only one point
    assert not ThresholdRebalance(5).should_rebalance(3, np.array([0.11, 0.89]), np.array([0.1, 0.9]))

    with pytest.raises(InvalidRequest):
        ThresholdRebalance(0)


def test_no_rebalance_never_fires():
    policy = NoRebalance()
    assert not policy.should_rebalance(30, np.array([0.9, 0.1]), np.array([0.5, 0.5]))
    assert policy.to_dict() == {"mode": "none"}
