"""
Companion progression — evolution state machine, energy/happiness, mood.

Evolution points: +5 per task, +0.5 per focus minute, +3 per habit.
Stages: 1 → 2 (100) → 3 (500) → 4 (2000) → 5 (10000); never regresses.
The archetype is re-evaluated only at the moment of a stage advance.
"""

from __future__ import annotations

import logging
from datetime import date

from config import EngineConfig
from errors import guard_invariant
from models import (
    Activity,
    Archetype,
    BonusType,
    Companion,
    CompanionBonus,
    mood_from_stats,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ARCHETYPE_BONUSES",
    "add_accessory",
    "archetype_bonus",
    "daily_tick",
    "dominant_archetype",
    "feed_companion",
    "mood_from_stats",
    "rename_companion",
    "revert_activity",
    "set_skin",
    "stage_for_points",
    "update_companion",
]


# ── Bonus table: four tiers per archetype, stage 2 → index 0 ──

def _tiers(kind: BonusType, values: list[float], label: str) -> list[CompanionBonus]:
    return [
        CompanionBonus(type=kind, value=v, description=f"+{round(v * 100)}% {label}")
        for v in values
    ]


ARCHETYPE_BONUSES: dict[Archetype, list[CompanionBonus]] = {
    Archetype.FOCUS: _tiers(BonusType.FOCUS, [0.05, 0.10, 0.15, 0.25], "focus session XP"),
    Archetype.HABIT: _tiers(
        BonusType.HABIT_STREAK, [0.05, 0.10, 0.15, 0.25], "habit streak protection"
    ),
    Archetype.PROJECT: _tiers(BonusType.XP, [0.05, 0.10, 0.15], "project XP")
    + _tiers(BonusType.COINS, [0.25], "project coins"),
    Archetype.BALANCED: [
        CompanionBonus(type=BonusType.XP, value=0.03, description="+3% all XP"),
        CompanionBonus(type=BonusType.COINS, value=0.05, description="+5% all coins"),
        CompanionBonus(
            type=BonusType.TASK_EFFICIENCY, value=0.08, description="+8% task efficiency"
        ),
        CompanionBonus(type=BonusType.XP, value=0.12, description="+12% all XP"),
    ],
}


def archetype_bonus(archetype: Archetype, stage: int) -> CompanionBonus | None:
    if stage < 2:
        return None
    tiers = ARCHETYPE_BONUSES[Archetype(archetype)]
    return tiers[max(0, min(stage - 2, len(tiers) - 1))]


def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


# ──────────────────────────────────────────────────────────────
# Evolution
# ──────────────────────────────────────────────────────────────

def stage_for_points(points: float, cfg: EngineConfig | None = None) -> int:
    if cfg is None:
        cfg = EngineConfig()
    stage = 1
    for s, threshold in sorted(cfg.stage_thresholds.items(), key=lambda kv: int(kv[0])):
        if points >= threshold:
            stage = int(s)
    return stage


def dominant_archetype(
    focus_minutes: float,
    habits_witnessed: int,
    tasks_witnessed: int,
) -> Archetype:
    """Strict argmax over the three behaviour scores; any tie → balanced."""
    focus_score = focus_minutes / 60
    habit_score = habits_witnessed * 2
    task_score = tasks_witnessed

    if focus_score > habit_score and focus_score > task_score:
        return Archetype.FOCUS
    if habit_score > focus_score and habit_score > task_score:
        return Archetype.HABIT
    if task_score > focus_score and task_score > habit_score:
        return Archetype.PROJECT
    return Archetype.BALANCED


def update_companion(
    companion: Companion,
    activity: Activity,
    today: date,
    energy_efficiency: float = 0.0,
    cfg: EngineConfig | None = None,
) -> Companion:
    """
    Fold one activity batch into the companion.

    ``energy_efficiency`` (from health skills) trims the energy cost of the
    batch proportionally, 0.25 → 25% cheaper.
    """
    if cfg is None:
        cfg = EngineConfig()

    tasks_witnessed = companion.total_tasks_witnessed + activity.tasks_completed
    focus_minutes = companion.total_focus_minutes + activity.focus_minutes
    habits_witnessed = companion.total_habits_witnessed + activity.habits_completed

    points = (
        companion.evolution_points
        + activity.tasks_completed * cfg.points_per_task
        + activity.focus_minutes * cfg.points_per_focus_minute
        + activity.habits_completed * cfg.points_per_habit
    )

    new_stage = max(companion.evolution_stage, stage_for_points(points, cfg))
    if not guard_invariant(
        new_stage >= companion.evolution_stage,
        f"evolution stage regressed {companion.evolution_stage} → {new_stage}",
        cfg,
    ):
        new_stage = companion.evolution_stage

    archetype = companion.archetype
    path = list(companion.evolution_path)
    if new_stage > companion.evolution_stage:
        archetype = dominant_archetype(focus_minutes, habits_witnessed, tasks_witnessed)
        path.append(archetype)
        logger.info(
            f"Companion '{companion.name}' evolved to stage {new_stage} ({archetype.value})"
        )

    cost = cfg.overwork_energy_cost if activity.is_overworking else cfg.activity_energy_cost
    cost *= 1 - _clamp(energy_efficiency, 0.0, 1.0)
    energy = _clamp(companion.energy - cost)

    happiness_boost = activity.tasks_completed * 3 + activity.habits_completed * 2
    if activity.is_overworking:
        happiness_boost -= cfg.overwork_happiness_penalty
    happiness = _clamp(companion.happiness + happiness_boost)

    return companion.model_copy(update={
        "total_tasks_witnessed": tasks_witnessed,
        "total_focus_minutes": focus_minutes,
        "total_habits_witnessed": habits_witnessed,
        "evolution_points": points,
        "evolution_stage": new_stage,
        "archetype": archetype,
        "evolution_path": path,
        "active_bonus": archetype_bonus(archetype, new_stage),
        "energy": energy,
        "happiness": happiness,
        "last_interaction_date": today,
    })


def revert_activity(
    companion: Companion,
    activity: Activity,
    cfg: EngineConfig | None = None,
) -> Companion:
    """
    Take a batch back out of the witnessed totals and evolution points.

    The stage stays where it is, and energy and happiness already spent or
    gained are left alone.
    """
    if cfg is None:
        cfg = EngineConfig()
    points = (
        activity.tasks_completed * cfg.points_per_task
        + activity.focus_minutes * cfg.points_per_focus_minute
        + activity.habits_completed * cfg.points_per_habit
    )
    return companion.model_copy(update={
        "total_tasks_witnessed": max(0, companion.total_tasks_witnessed - activity.tasks_completed),
        "total_focus_minutes": max(0.0, companion.total_focus_minutes - activity.focus_minutes),
        "total_habits_witnessed": max(0, companion.total_habits_witnessed - activity.habits_completed),
        "evolution_points": max(0.0, companion.evolution_points - points),
    })


# ──────────────────────────────────────────────────────────────
# Daily tick
# ──────────────────────────────────────────────────────────────

def daily_tick(companion: Companion, today: date, cfg: EngineConfig | None = None) -> Companion:
    """
    Overnight recovery. Runs once per new day; a second call on the same
    day is a no-op.
    """
    if cfg is None:
        cfg = EngineConfig()
    if companion.last_interaction_date >= today:
        return companion

    gap = (today - companion.last_interaction_date).days
    if gap == 1:
        happiness = _clamp(companion.happiness + cfg.daily_happiness_gain)
        consecutive = companion.consecutive_days_active + 1
    else:
        happiness = _clamp(companion.happiness - cfg.absence_happiness_penalty * gap)
        consecutive = 1

    return companion.model_copy(update={
        "energy": _clamp(companion.energy + cfg.daily_energy_recovery),
        "happiness": happiness,
        "consecutive_days_active": consecutive,
        "last_interaction_date": today,
    })


# ──────────────────────────────────────────────────────────────
# Care & cosmetics
# ──────────────────────────────────────────────────────────────

def feed_companion(companion: Companion, energy_amount: float) -> Companion:
    return companion.model_copy(update={
        "energy": _clamp(companion.energy + energy_amount),
        "happiness": _clamp(companion.happiness + 5),
    })


def rename_companion(companion: Companion, name: str) -> Companion:
    name = name.strip()
    if not name:
        raise ValueError("companion name must not be empty")
    return companion.model_copy(update={"name": name})


def set_skin(companion: Companion, skin: str) -> Companion:
    return companion.model_copy(update={"skin": skin})


def add_accessory(companion: Companion, accessory: str) -> Companion:
    if accessory in companion.accessories:
        return companion
    return companion.model_copy(update={"accessories": [*companion.accessories, accessory]})
