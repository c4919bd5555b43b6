"""
Quest/task state machine.

  active ──complete──▶ completed          (one-time tasks)
  active ──complete──▶ active             (repeating: subtasks reset)
  active ──add_dependency──▶ blocked ──deps done──▶ active
  active ──hard deadline passes──▶ missed

Rewards are fixed at creation from the estimate alone; completion may add
the bounded efficiency bonus once the real duration is known.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from config import EngineConfig
from models import (
    DependencyRelation,
    EnergyType,
    RepeatFrequency,
    Subtask,
    Task,
    TaskCompletion,
    TaskCreate,
    TaskDependency,
    TaskStatus,
    TaskSuggestion,
)
from rewards import compute_reward, round_half_up

logger = logging.getLogger(__name__)

QUICK_WIN_MINUTES = 15
DEFAULT_ESTIMATE_MINUTES = 30
DEADLINE_HORIZON_HOURS = 48
MAX_SUGGESTIONS = 5


def _find(tasks: list[Task], task_id: str) -> Task | None:
    return next((t for t in tasks if t.id == task_id), None)


def _replace(tasks: list[Task], updated: Task) -> list[Task]:
    return [updated if t.id == updated.id else t for t in tasks]


def _require(tasks: list[Task], task_id: str) -> Task:
    task = _find(tasks, task_id)
    if task is None:
        raise KeyError(task_id)
    return task


# ──────────────────────────────────────────────────────────────
# Creation & editing
# ──────────────────────────────────────────────────────────────

def create_task(data: TaskCreate, now: datetime | None = None, cfg: EngineConfig | None = None) -> Task:
    title = data.title.strip()
    if not title:
        raise ValueError("task title must not be empty")

    reward = compute_reward(data.difficulty, data.rarity, data.estimated_minutes, cfg=cfg)
    fields = data.model_dump(exclude={"subtasks", "title"})
    return Task(
        **fields,
        title=title,
        xp_reward=reward.xp,
        coin_reward=reward.coins,
        subtasks=[Subtask(title=s) for s in data.subtasks if s.strip()],
        created_at=now or datetime.now(),
    )


def start_task(tasks: list[Task], task_id: str, now: datetime) -> list[Task]:
    task = _require(tasks, task_id)
    return _replace(tasks, task.model_copy(update={"started_at": now}))


def complete_subtask(tasks: list[Task], task_id: str, subtask_id: str, now: datetime) -> list[Task]:
    task = _require(tasks, task_id)
    subtasks = [
        s.model_copy(update={"completed": True, "completed_at": now}) if s.id == subtask_id else s
        for s in task.subtasks
    ]
    return _replace(tasks, task.model_copy(update={"subtasks": subtasks}))


def update_task_status(tasks: list[Task], task_id: str, status: TaskStatus) -> list[Task]:
    """Manual status change. Completion must go through ``complete_task``."""
    status = TaskStatus(status)
    if status == TaskStatus.COMPLETED:
        raise ValueError("use complete_task to complete a task")
    task = _require(tasks, task_id)
    return _replace(tasks, task.model_copy(update={"status": status}))


def delete_task(tasks: list[Task], task_id: str) -> tuple[list[Task], Task | None]:
    removed = _find(tasks, task_id)
    return [t for t in tasks if t.id != task_id], removed


def restore_task(tasks: list[Task], task: Task) -> list[Task]:
    if _find(tasks, task.id) is not None:
        return tasks
    return [*tasks, task]


# ──────────────────────────────────────────────────────────────
# Dependencies
# ──────────────────────────────────────────────────────────────

def _unmet_dependencies(tasks: list[Task], task: Task) -> list[str]:
    unmet = []
    for dep in task.dependencies:
        if dep.relation != DependencyRelation.BLOCKED_BY:
            continue
        other = _find(tasks, dep.task_id)
        if other is not None and other.status != TaskStatus.COMPLETED:
            unmet.append(dep.task_id)
    return unmet


def add_dependency(tasks: list[Task], task_id: str, depends_on: str) -> list[Task]:
    if task_id == depends_on:
        raise ValueError("a task cannot depend on itself")
    task = _require(tasks, task_id)
    _require(tasks, depends_on)
    if any(d.task_id == depends_on for d in task.dependencies):
        return tasks

    updated = task.model_copy(update={
        "dependencies": [*task.dependencies, TaskDependency(task_id=depends_on)],
        "status": TaskStatus.BLOCKED,
    })
    return _replace(tasks, updated)


def refresh_blocked(tasks: list[Task]) -> list[Task]:
    """Unblock tasks whose blocked-by dependencies have all completed."""
    result = []
    for task in tasks:
        if task.status == TaskStatus.BLOCKED and not _unmet_dependencies(tasks, task):
            task = task.model_copy(update={"status": TaskStatus.ACTIVE})
        result.append(task)
    return result


# ──────────────────────────────────────────────────────────────
# Completion
# ──────────────────────────────────────────────────────────────

def complete_task(
    tasks: list[Task],
    task_id: str,
    now: datetime,
    cfg: EngineConfig | None = None,
) -> TaskCompletion:
    task = _find(tasks, task_id)
    if task is None:
        return TaskCompletion(ok=False, tasks=tasks, reason="not_found", message="Task not found")
    if task.status == TaskStatus.COMPLETED:
        return TaskCompletion(
            ok=False, tasks=tasks, task=task, reason="already_completed", message="Task already completed"
        )
    if task.status == TaskStatus.BLOCKED or _unmet_dependencies(tasks, task):
        return TaskCompletion(
            ok=False, tasks=tasks, task=task, reason="blocked", message="Task is blocked by a dependency"
        )

    actual_minutes = None
    if task.started_at is not None:
        actual_minutes = max(0, round_half_up((now - task.started_at).total_seconds() / 60))

    reward = compute_reward(task.difficulty, task.rarity, task.estimated_minutes, actual_minutes, cfg)

    if task.repeat_frequency != RepeatFrequency.NONE:
        updated = task.model_copy(update={
            "last_completed_date": now.date(),
            "subtasks": [s.model_copy(update={"completed": False, "completed_at": None}) for s in task.subtasks],
            "started_at": None,
            "actual_minutes": None,
        })
        logger.info(f"Repeating task '{task.title}' done for {now.date().isoformat()}")
        return TaskCompletion(
            ok=True, tasks=_replace(tasks, updated), task=updated, reward=reward, repeated=True
        )

    updated = task.model_copy(update={
        "status": TaskStatus.COMPLETED,
        "completed_at": now,
        "actual_minutes": actual_minutes,
        "xp_reward": reward.xp,
        "coin_reward": reward.coins,
    })
    new_tasks = refresh_blocked(_replace(tasks, updated))
    logger.info(f"Task '{task.title}' completed: +{reward.xp} XP, +{reward.coins} coins")
    return TaskCompletion(ok=True, tasks=new_tasks, task=updated, reward=reward)


def reopen_task(tasks: list[Task], snapshot: Task) -> list[Task]:
    """
    Put a task back to a pre-completion snapshot (undo). Dependents that the
    completion had unblocked go back to blocked.
    """
    if _find(tasks, snapshot.id) is None:
        return tasks
    tasks = _replace(tasks, snapshot)
    return [
        t.model_copy(update={"status": TaskStatus.BLOCKED})
        if t.status == TaskStatus.ACTIVE and _unmet_dependencies(tasks, t) else t
        for t in tasks
    ]


# ──────────────────────────────────────────────────────────────
# Deadlines & suggestions
# ──────────────────────────────────────────────────────────────

def mark_missed_deadlines(tasks: list[Task], now: datetime) -> list[Task]:
    result = []
    missed = 0
    for task in tasks:
        if task.status == TaskStatus.ACTIVE and task.hard_deadline and task.hard_deadline < now:
            task = task.model_copy(update={"status": TaskStatus.MISSED})
            missed += 1
        result.append(task)
    if missed:
        logger.warning(f"{missed} task(s) passed their hard deadline")
    return result


def upcoming_deadlines(tasks: list[Task], now: datetime, days: int = 7) -> list[Task]:
    horizon = now + timedelta(days=days)
    upcoming = [
        t for t in tasks
        if t.status == TaskStatus.ACTIVE and t.hard_deadline and now < t.hard_deadline <= horizon
    ]
    return sorted(upcoming, key=lambda t: t.hard_deadline)


def suggest_tasks(tasks: list[Task], energy: EnergyType, now: datetime) -> list[TaskSuggestion]:
    """Quick wins, energy matches and near deadlines; top five by priority."""
    energy = EnergyType(energy)
    open_tasks = [t for t in tasks if t.status in (TaskStatus.ACTIVE, TaskStatus.BLOCKED)]
    active = [t for t in open_tasks if t.status == TaskStatus.ACTIVE]
    suggestions: list[TaskSuggestion] = []

    quick = [t for t in active if (t.estimated_minutes or DEFAULT_ESTIMATE_MINUTES) <= QUICK_WIN_MINUTES]
    for i, t in enumerate(quick[:2]):
        suggestions.append(TaskSuggestion(
            task_id=t.id, reason="Quick win - easy to start", priority=80 - i * 10, category="quick-win"
        ))

    matches = [t for t in active if t.energy_type == energy]
    for i, t in enumerate(matches[:2]):
        suggestions.append(TaskSuggestion(
            task_id=t.id,
            reason=f"Matches your {energy.value} energy",
            priority=70 - i * 10,
            category="energy-match",
        ))

    def hours_left(t: Task) -> float:
        return (t.hard_deadline - now).total_seconds() / 3600

    urgent = [t for t in open_tasks if t.hard_deadline and 0 < hours_left(t) < DEADLINE_HORIZON_HOURS]
    for i, t in enumerate(urgent):
        suggestions.append(TaskSuggestion(
            task_id=t.id, reason="Deadline approaching", priority=90 - i * 5, category="time-sensitive"
        ))

    suggestions.sort(key=lambda s: s.priority, reverse=True)
    return suggestions[:MAX_SUGGESTIONS]
