"""
Streak / momentum engine for habits.

Reducer-style: every function takes a Habit and returns a new one.

  completion → streak +1, momentum = 1 + min(streak × growth, 1), reward scales
               with momentum and difficulty; difficulty steps up every 7 days
  miss       → streak decays by ``streak_decay_rate`` (floored), momentum −0.1
  gap        → missed days beyond the tolerance decay the streak once per day,
               compounding
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date

from config import EngineConfig
from errors import guard_invariant
from models import Habit, HabitCompletion, HabitCompletionResult, HabitCreate, HabitStats, HabitType
from rewards import round_half_up

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────
# Pure helpers
# ──────────────────────────────────────────────────────────────

def decay_streak(streak: int, decay_rate: float) -> int:
    """floor(streak × (1 − rate)), never negative; 0 stays 0."""
    return max(0, int(streak * (1 - decay_rate)))


def momentum_for_streak(
    streak: int,
    growth_rate: float,
    cfg: EngineConfig | None = None,
) -> float:
    if cfg is None:
        cfg = EngineConfig()
    return 1 + min(streak * growth_rate, cfg.momentum_cap)


def _completed_on(habit: Habit, day: date) -> bool:
    return any(c.date == day and c.completed for c in habit.completion_history)


def _with_entry(habit: Habit, entry: HabitCompletion, cfg: EngineConfig) -> list[HabitCompletion]:
    """History with ``entry`` replacing any existing row for the same date."""
    history = [c for c in habit.completion_history if c.date != entry.date]
    history.append(entry)
    return history[-cfg.history_limit:]


def _checked_streak(value: int, cfg: EngineConfig) -> int:
    if not guard_invariant(value >= 0, f"negative streak {value}", cfg):
        return 0
    return value


# ──────────────────────────────────────────────────────────────
# Creation
# ──────────────────────────────────────────────────────────────

def create_habit(data: HabitCreate) -> Habit:
    """Fresh habit: streak 0, momentum 1×, difficulty 1."""
    return Habit(**data.model_dump())


# ──────────────────────────────────────────────────────────────
# Transitions
# ──────────────────────────────────────────────────────────────

def complete_habit(
    habit: Habit,
    today: date,
    value: float | None = None,
    cfg: EngineConfig | None = None,
) -> HabitCompletionResult:
    """
    Record today's completion. A second completion on the same day is a
    no-op and pays nothing.
    """
    if cfg is None:
        cfg = EngineConfig()

    if _completed_on(habit, today):
        return HabitCompletionResult(habit=habit, xp=0, coins=0)

    new_streak = habit.current_streak + 1
    momentum = momentum_for_streak(new_streak, habit.momentum_growth_rate, cfg)

    xp = round_half_up(habit.base_xp * momentum * habit.difficulty_level)
    coins = round_half_up(habit.base_coins * momentum)

    difficulty = habit.difficulty_level
    if new_streak % cfg.difficulty_step_every == 0:
        difficulty = min(cfg.difficulty_cap, difficulty + habit.difficulty_scale_rate)

    is_scaled = habit.type == HabitType.SCALED
    entry = HabitCompletion(date=today, completed=True, value=value if is_scaled else None)

    updated = habit.model_copy(update={
        "current_streak": new_streak,
        "best_streak": max(habit.best_streak, new_streak),
        "momentum_multiplier": momentum,
        "difficulty_level": difficulty,
        "total_completions": habit.total_completions + 1,
        "completion_history": _with_entry(habit, entry, cfg),
        "last_completed_date": today,
        "current_value": value if is_scaled else None,
    })

    if new_streak % cfg.difficulty_step_every == 0:
        logger.info(f"Habit '{habit.title}' reached a {new_streak}-day streak")

    return HabitCompletionResult(habit=updated, xp=xp, coins=coins)


def miss_habit(habit: Habit, today: date, cfg: EngineConfig | None = None) -> Habit:
    """Explicit miss: decay streak once, shave 0.1 off momentum."""
    if cfg is None:
        cfg = EngineConfig()

    # One history row per date: today is already settled either way.
    if any(c.date == today for c in habit.completion_history):
        return habit

    entry = HabitCompletion(date=today, completed=False)
    new_streak = _checked_streak(decay_streak(habit.current_streak, habit.streak_decay_rate), cfg)

    return habit.model_copy(update={
        "current_streak": new_streak,
        "total_misses": habit.total_misses + 1,
        "completion_history": _with_entry(habit, entry, cfg),
        "last_missed_date": today,
        "momentum_multiplier": max(1.0, habit.momentum_multiplier - cfg.momentum_miss_penalty),
    })


def undo_miss(habit: Habit, day: date, before: Habit) -> Habit:
    """
    Take back an explicit miss on ``day``.

    Only the miss itself is reverted: its history row goes, and streak,
    momentum and the miss counter return to ``before``. If the row was
    since replaced by a completion, that completion stands and nothing
    changes.
    """
    if not any(c.date == day and not c.completed for c in habit.completion_history):
        logger.info(f"Habit '{habit.title}': miss on {day.isoformat()} already superseded")
        return habit

    return habit.model_copy(update={
        "current_streak": before.current_streak,
        "momentum_multiplier": before.momentum_multiplier,
        "total_misses": max(0, habit.total_misses - 1),
        "completion_history": [c for c in habit.completion_history if c.date != day],
        "last_missed_date": before.last_missed_date,
    })


def reconcile_gap(habit: Habit, today: date, cfg: EngineConfig | None = None) -> Habit:
    """
    Passive decay for days that went by without a completion.

    The gap is measured from whichever is later, the last completion or the
    last reconciliation, so re-running for the same day never penalizes twice.
    """
    if cfg is None:
        cfg = EngineConfig()
    if habit.last_completed_date is None:
        return habit

    anchor = habit.last_completed_date
    already_missed = 0
    if habit.last_reconciled_date and habit.last_reconciled_date > anchor:
        # Days up to the previous reconciliation were already charged.
        prior_gap = (habit.last_reconciled_date - anchor).days
        already_missed = max(0, prior_gap - habit.miss_tolerance_days - 1)

    gap = (today - anchor).days
    missed_total = max(0, gap - habit.miss_tolerance_days - 1)
    missed = missed_total - already_missed
    if missed <= 0:
        if habit.last_reconciled_date == today:
            return habit
        return habit.model_copy(update={"last_reconciled_date": today})

    streak = habit.current_streak
    for _ in range(missed):
        streak = decay_streak(streak, habit.streak_decay_rate)
    streak = _checked_streak(streak, cfg)

    logger.warning(
        f"Habit '{habit.title}': {missed} missed day(s), streak "
        f"{habit.current_streak} → {streak}"
    )

    return habit.model_copy(update={
        "current_streak": streak,
        "total_misses": habit.total_misses + missed,
        "momentum_multiplier": max(
            1.0, habit.momentum_multiplier - missed * cfg.momentum_miss_penalty
        ),
        "last_reconciled_date": today,
    })


# ──────────────────────────────────────────────────────────────
# Analytics
# ──────────────────────────────────────────────────────────────

def habit_stats(habit: Habit) -> HabitStats:
    completions = [c for c in habit.completion_history if c.completed]
    total = len(habit.completion_history)

    # weekday(): Mon=0 … Sun=6  →  Sun=0 … Sat=6
    misses_by_day = Counter(
        (c.date.weekday() + 1) % 7 for c in habit.completion_history if not c.completed
    )
    day_counts = [misses_by_day.get(d, 0) for d in range(7)]
    weakest_day = day_counts.index(max(day_counts))

    average_value = None
    if habit.type == HabitType.SCALED and completions:
        average_value = sum(c.value or 0 for c in completions) / len(completions)

    return HabitStats(
        success_rate=(len(completions) / total) * 100 if total else 0.0,
        current_streak=habit.current_streak,
        best_streak=habit.best_streak,
        average_value=average_value,
        weakest_day=weakest_day,
    )
