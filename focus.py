"""
Focus sessions: start → (breaks, distractions) → end | cancel.

The running session is transient; cancel discards it without touching any
other state. ``end_session`` is the single atomic finalization.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from config import EngineConfig
from models import (
    DistractionEntry,
    FocusBreak,
    FocusCompletion,
    FocusSession,
    FocusSessionType,
    FocusStreak,
)
from rewards import focus_reward, round_half_up

logger = logging.getLogger(__name__)

DISTRACTION_PENALTY_PER_MINUTE = 2
DISTRACTION_PENALTY_CAP = 20


def _minutes(start: datetime, end: datetime) -> int:
    return round_half_up((end - start).total_seconds() / 60)


def start_session(
    planned_minutes: int,
    now: datetime,
    session_type: FocusSessionType = FocusSessionType.DEEP_WORK,
    task_id: str | None = None,
) -> FocusSession:
    return FocusSession(
        type=session_type,
        task_id=task_id,
        planned_minutes=planned_minutes,
        started_at=now,
    )


def on_break(session: FocusSession) -> bool:
    return bool(session.breaks) and session.breaks[-1].end is None


def start_break(session: FocusSession, now: datetime) -> FocusSession:
    if on_break(session):
        return session
    return session.model_copy(update={"breaks": [*session.breaks, FocusBreak(start=now)]})


def end_break(session: FocusSession, now: datetime) -> FocusSession:
    if not on_break(session):
        return session
    closed = session.breaks[-1].model_copy(update={"end": now})
    return session.model_copy(update={"breaks": [*session.breaks[:-1], closed]})


def log_distraction(
    session: FocusSession,
    duration_minutes: float,
    now: datetime,
    description: str = "",
) -> FocusSession:
    penalty = min(duration_minutes * DISTRACTION_PENALTY_PER_MINUTE, DISTRACTION_PENALTY_CAP)
    entry = DistractionEntry(timestamp=now, description=description, duration_minutes=duration_minutes)
    return session.model_copy(update={
        "distraction_log": [*session.distraction_log, entry],
        "focus_quality": max(0.0, session.focus_quality - penalty),
    })


def break_minutes(session: FocusSession, now: datetime) -> int:
    # An open break counts up to ``now``.
    return sum(_minutes(b.start, b.end or now) for b in session.breaks)


def elapsed_minutes(session: FocusSession, now: datetime) -> int:
    """Snapshot for pollers; pure, safe to call every tick."""
    return max(0, _minutes(session.started_at, now))


def reconcile_focus_streak(streak: FocusStreak, today: date) -> FocusStreak:
    """More than a day without a session resets the current streak."""
    if streak.last_session_date is None:
        return streak
    gap = (today - streak.last_session_date).days
    updates = {}
    if gap > 1 and streak.current_streak:
        updates["current_streak"] = 0
    if gap >= 1 and streak.today_minutes:
        updates["today_minutes"] = 0
    return streak.model_copy(update=updates) if updates else streak


def end_session(
    session: FocusSession,
    streak: FocusStreak,
    now: datetime,
    cfg: EngineConfig | None = None,
) -> FocusCompletion:
    today = now.date()
    session = end_break(session, now)
    effective = max(0, elapsed_minutes(session, now) - break_minutes(session, now))
    reward = focus_reward(effective, session.focus_quality, cfg)

    finished = session.model_copy(update={
        "actual_minutes": effective,
        "ended_at": now,
        "xp_earned": reward.xp,
        "coins_earned": reward.coins,
    })

    streak = reconcile_focus_streak(streak, today)
    first_today = streak.last_session_date != today
    current = streak.current_streak + 1 if first_today else streak.current_streak
    recorded = streak.sessions_recorded + 1
    average = (streak.average_session_quality * streak.sessions_recorded + finished.focus_quality) / recorded

    new_streak = streak.model_copy(update={
        "current_streak": current,
        "best_streak": max(streak.best_streak, current),
        "last_session_date": today,
        "today_minutes": (streak.today_minutes if not first_today else 0) + effective,
        "average_session_quality": round_half_up(average),
        "sessions_recorded": recorded,
    })

    logger.info(f"Focus session ended: {effective} min, quality {finished.focus_quality:.0f}")
    return FocusCompletion(session=finished, streak=new_streak, reward=reward, effective_minutes=effective)


def cancel_session(session: FocusSession) -> None:
    """Log a discarded session. The caller drops it; no other state changes."""
    logger.info(f"Focus session {session.id} cancelled after {len(session.distraction_log)} distraction(s)")
