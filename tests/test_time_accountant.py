from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from fieldclock.services.session.time_accountant import TimeAccountant

START = datetime(2024, 3, 4, 9, 0)


def session(**values):
    defaults = dict(
        check_in_time=START,
        check_out_time=None,
        paused_at=None,
        paused_duration_minutes=0.0,
    )
    defaults.update(values)
    return SimpleNamespace(**defaults)


@pytest.fixture
def accountant():
    return TimeAccountant(overtime_threshold_hours=8.0, manager_review_hours=10.0)


def test_active_session_counts_to_now(accountant):
    assert accountant.elapsed_worked_minutes(session(), START + timedelta(minutes=45)) == 45


def test_paused_session_is_frozen(accountant):
    paused = session(paused_at=START + timedelta(minutes=60))
    assert accountant.elapsed_worked_minutes(paused, START + timedelta(minutes=90)) == 60
    assert accountant.elapsed_worked_minutes(paused, START + timedelta(hours=5)) == 60


def test_previous_pauses_are_subtracted(accountant):
    resumed = session(paused_duration_minutes=30.0)
    assert accountant.elapsed_worked_minutes(resumed, START + timedelta(minutes=120)) == 90


def test_closed_session_measures_to_check_out(accountant):
    closed = session(check_out_time=START + timedelta(hours=2), paused_duration_minutes=15.0)
    assert accountant.elapsed_worked_minutes(closed, START + timedelta(hours=9)) == 105


def test_clock_skew_never_goes_negative(accountant):
    assert accountant.elapsed_worked_minutes(session(), START - timedelta(minutes=5)) == 0


def test_pause_interval(accountant):
    paused = session(paused_at=START + timedelta(minutes=10))
    assert accountant.pause_interval_minutes(paused, START + timedelta(minutes=25)) == 15
    assert accountant.pause_interval_minutes(session(), START) == 0


def test_regular_day(accountant):
    summary = accountant.summarize(session(), START + timedelta(hours=7))
    assert summary.total_hours == 7.0
    assert summary.regular_hours == 7.0
    assert summary.overtime_hours == 0.0
    assert not summary.needs_manager_review


def test_overtime_needs_review(accountant):
    summary = accountant.summarize(session(), START + timedelta(hours=9, minutes=30))
    assert summary.total_hours == 9.5
    assert summary.regular_hours == 8.0
    assert summary.overtime_hours == 1.5
    assert summary.needs_manager_review


def test_emergency_needs_review(accountant):
    summary = accountant.summarize(session(), START + timedelta(hours=1), is_emergency=True)
    assert summary.needs_manager_review
