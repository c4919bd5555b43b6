from datetime import date

import pytest

from analytics import (
    energy_balance,
    productivity_trend,
    record_day_activity,
    today_stats,
    week_start,
    weekly_report,
)
from models import EnergyType

MONDAY = date(2024, 1, 15)


def test_productivity_score() -> None:
    stats = record_day_activity(
        [], MONDAY, tasks_completed=2, focus_minutes=30, habits_completed=1, habits_missed=1
    )
    assert today_stats(stats, MONDAY).productivity_score == 45


def test_productivity_score_is_capped() -> None:
    stats = record_day_activity([], MONDAY, tasks_completed=20)
    assert stats[0].productivity_score == 100


def test_deltas_accumulate() -> None:
    stats = record_day_activity([], MONDAY, xp_earned=10)
    stats = record_day_activity(stats, MONDAY, xp_earned=15, energy={EnergyType.CREATIVE: 30})
    assert len(stats) == 1
    assert stats[0].xp_earned == 25
    assert energy_balance(stats)[EnergyType.CREATIVE] == 30


def test_unknown_counter_is_rejected() -> None:
    with pytest.raises(ValueError):
        record_day_activity([], MONDAY, naps=1)


def test_week_starts_on_sunday() -> None:
    assert week_start(date(2024, 1, 17)) == date(2024, 1, 14)
    assert week_start(date(2024, 1, 14)) == date(2024, 1, 14)


def test_weekly_report() -> None:
    stats = record_day_activity(
        [], MONDAY, tasks_completed=2, focus_minutes=30, habits_completed=1, habits_missed=1
    )
    stats = record_day_activity(stats, date(2024, 1, 13), tasks_completed=50)

    report = weekly_report(stats, date(2024, 1, 17), burnout_level=60)
    assert report.week_start == date(2024, 1, 14)
    assert report.total_tasks == 2
    assert report.habit_success_rate == 50.0
    assert report.most_productive_day == 1
    assert report.insights == []
    assert report.recommendations == [
        "Focus on habit consistency - aim for 70%+ completion",
        "Try adding more focus sessions to boost productivity",
        "Your burnout indicator is elevated - consider more rest",
    ]


def test_weekly_report_without_habits_skips_consistency_advice() -> None:
    stats = record_day_activity([], MONDAY, tasks_completed=21, focus_minutes=400)
    report = weekly_report(stats, MONDAY)
    assert report.insights == [
        "Great week! Completed 21 tasks.",
        "Strong focus: 7 hours of deep work.",
    ]
    assert report.recommendations == []


def test_productivity_trend() -> None:
    stats = record_day_activity([], date(2024, 1, 1), tasks_completed=1)
    stats = record_day_activity(stats, MONDAY, tasks_completed=3)
    assert productivity_trend(stats, MONDAY) == [(MONDAY, 30)]
