"""
Daily stats and weekly reports.

  productivity = min(100, round(tasks × 10 + focus_min × 0.5
                                + habits × 15 − missed × 5)), floored at 0
"""

from __future__ import annotations

from datetime import date, timedelta

from models import DailyStats, EnergyType, WeeklyReport
from rewards import round_half_up

STATS_RETENTION_DAYS = 365

_COUNTERS = (
    "tasks_completed",
    "tasks_created",
    "xp_earned",
    "coins_earned",
    "focus_minutes",
    "habits_completed",
    "habits_missed",
)


def productivity_score(day: DailyStats) -> int:
    raw = (
        day.tasks_completed * 10
        + day.focus_minutes * 0.5
        + day.habits_completed * 15
        - day.habits_missed * 5
    )
    return max(0, min(100, round_half_up(raw)))


def record_day_activity(
    stats: list[DailyStats],
    today: date,
    energy: dict[EnergyType, float] | None = None,
    **delta: float,
) -> list[DailyStats]:
    """Add counter deltas (``tasks_completed=1``, ``focus_minutes=25`` …) to today's row."""
    unknown = set(delta) - set(_COUNTERS)
    if unknown:
        raise ValueError(f"Unknown stat counter(s): {', '.join(sorted(unknown))}")

    existing = next((s for s in stats if s.date == today), None) or DailyStats(date=today)
    updates = {k: getattr(existing, k) + v for k, v in delta.items()}

    distribution = dict(existing.energy_distribution)
    for kind, amount in (energy or {}).items():
        kind = EnergyType(kind)
        distribution[kind] = distribution.get(kind, 0.0) + amount
    updates["energy_distribution"] = distribution

    row = existing.model_copy(update=updates)
    row = row.model_copy(update={"productivity_score": productivity_score(row)})

    others = [s for s in stats if s.date != today]
    return sorted([*others, row], key=lambda s: s.date)[-STATS_RETENTION_DAYS:]


def today_stats(stats: list[DailyStats], today: date) -> DailyStats | None:
    return next((s for s in stats if s.date == today), None)


def week_start(day: date) -> date:
    """The Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def weekly_report(stats: list[DailyStats], today: date, burnout_level: int = 0) -> WeeklyReport:
    start = week_start(today)
    week = [s for s in stats if start <= s.date <= today]

    tasks = sum(s.tasks_completed for s in week)
    xp = sum(s.xp_earned for s in week)
    coins = sum(s.coins_earned for s in week)
    focus = sum(s.focus_minutes for s in week)
    habits = sum(s.habits_completed for s in week)
    missed = sum(s.habits_missed for s in week)

    day_scores = [0] * 7  # Sun=0
    for s in week:
        day_scores[(s.date.weekday() + 1) % 7] += s.productivity_score
    most_productive_day = day_scores.index(max(day_scores))

    insights = []
    if tasks > 20:
        insights.append(f"Great week! Completed {tasks} tasks.")
    if focus > 300:
        insights.append(f"Strong focus: {round_half_up(focus / 60)} hours of deep work.")
    if habits > 0 and missed == 0:
        insights.append("Perfect habit completion!")

    tracked = habits + missed
    habit_rate = habits / tracked if tracked else 0.0

    recommendations = []
    if tracked and habit_rate < 0.7:
        recommendations.append("Focus on habit consistency - aim for 70%+ completion")
    if focus < 120:
        recommendations.append("Try adding more focus sessions to boost productivity")
    if burnout_level > 50:
        recommendations.append("Your burnout indicator is elevated - consider more rest")

    return WeeklyReport(
        week_start=start,
        week_end=today,
        total_tasks=tasks,
        total_xp=xp,
        total_coins=coins,
        total_focus_minutes=focus,
        habit_success_rate=habit_rate * 100,
        most_productive_day=most_productive_day,
        insights=insights,
        recommendations=recommendations,
    )


def productivity_trend(stats: list[DailyStats], today: date, days: int = 7) -> list[tuple[date, int]]:
    since = today - timedelta(days=days)
    return [(s.date, s.productivity_score) for s in stats if s.date >= since][-days:]


def energy_balance(stats: list[DailyStats]) -> dict[EnergyType, float]:
    """Energy spent per type over the last seven recorded days."""
    totals = {e: 0.0 for e in EnergyType}
    for s in stats[-7:]:
        for kind, amount in s.energy_distribution.items():
            totals[EnergyType(kind)] += amount
    return totals
