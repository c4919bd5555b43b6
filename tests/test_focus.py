import logging
from datetime import date, datetime, timedelta

import pytest

from focus import (
    break_minutes,
    cancel_session,
    elapsed_minutes,
    end_break,
    end_session,
    log_distraction,
    on_break,
    reconcile_focus_streak,
    start_break,
    start_session,
)
from models import FocusStreak, Reward

T0 = datetime(2024, 1, 15, 9, 0)


def _minutes(n: int) -> datetime:
    return T0 + timedelta(minutes=n)


def test_distractions_lower_quality_with_a_cap() -> None:
    session = start_session(50, T0)
    session = log_distraction(session, 5, _minutes(5), "phone")
    assert session.focus_quality == 90
    session = log_distraction(session, 30, _minutes(10))
    assert session.focus_quality == 70
    assert len(session.distraction_log) == 2


def test_quality_never_goes_negative() -> None:
    session = start_session(50, T0)
    for i in range(6):
        session = log_distraction(session, 15, _minutes(i))
    assert session.focus_quality == 0


def test_breaks() -> None:
    session = start_break(start_session(50, T0), _minutes(10))
    assert on_break(session)
    assert start_break(session, _minutes(11)) is session
    assert break_minutes(session, _minutes(13)) == 3

    session = end_break(session, _minutes(15))
    assert not on_break(session)
    assert break_minutes(session, _minutes(40)) == 5
    assert elapsed_minutes(session, _minutes(40)) == 40


def test_end_session_pays_for_effective_minutes() -> None:
    session = start_break(start_session(50, T0), _minutes(10))
    session = end_break(session, _minutes(15))
    done = end_session(session, FocusStreak(), _minutes(60))

    assert done.effective_minutes == 55
    assert done.reward == Reward(xp=110, coins=28)
    assert done.session.actual_minutes == 55
    assert done.session.ended_at == _minutes(60)
    assert done.streak.current_streak == 1
    assert done.streak.today_minutes == 55
    assert done.streak.average_session_quality == 100


def test_end_session_closes_an_open_break() -> None:
    session = start_break(start_session(30, T0), _minutes(20))
    done = end_session(session, FocusStreak(), _minutes(30))
    assert done.effective_minutes == 20
    assert done.session.breaks[-1].end == _minutes(30)


def test_second_session_same_day_keeps_streak() -> None:
    first = end_session(start_session(50, T0), FocusStreak(), _minutes(60))
    session = log_distraction(start_session(30, _minutes(90)), 5, _minutes(95))
    second = end_session(session, first.streak, _minutes(120))

    assert second.reward == Reward(xp=54, coins=14)
    assert second.streak.current_streak == 1
    assert second.streak.sessions_recorded == 2
    assert second.streak.average_session_quality == 95
    assert second.streak.today_minutes == 90


def test_streak_resets_after_a_gap() -> None:
    streak = FocusStreak(current_streak=4, best_streak=4, last_session_date=date(2024, 1, 12), today_minutes=30)
    reset = reconcile_focus_streak(streak, date(2024, 1, 15))
    assert reset.current_streak == 0
    assert reset.best_streak == 4
    assert reset.today_minutes == 0

    yesterday = streak.model_copy(update={"last_session_date": date(2024, 1, 14)})
    kept = reconcile_focus_streak(yesterday, date(2024, 1, 15))
    assert kept.current_streak == 4
    assert kept.today_minutes == 0


def test_cancel_only_logs(caplog: pytest.LogCaptureFixture) -> None:
    session = log_distraction(start_session(25, T0), 5, _minutes(3))
    with caplog.at_level(logging.INFO, logger="focus"):
        cancel_session(session)
    assert f"Focus session {session.id} cancelled after 1 distraction(s)" in caplog.text
    assert session.ended_at is None
