from datetime import date, datetime, timedelta

import pytest

from models import (
    Difficulty,
    EnergyType,
    Rarity,
    RepeatFrequency,
    Reward,
    TaskCreate,
    TaskStatus,
)
from tasks import (
    add_dependency,
    complete_subtask,
    complete_task,
    create_task,
    delete_task,
    mark_missed_deadlines,
    reopen_task,
    restore_task,
    start_task,
    suggest_tasks,
    update_task_status,
    upcoming_deadlines,
)

NOW = datetime(2024, 1, 15, 10, 0)


def _task(title: str = "Write report", **kwargs):
    return create_task(TaskCreate(title=title, **kwargs), NOW)


def test_create_sets_rewards_from_estimate() -> None:
    task = _task(difficulty=Difficulty.HARD, rarity=Rarity.RARE, subtasks=["outline", " ", "draft"])
    assert task.xp_reward == 38
    assert task.coin_reward == 19
    assert task.status == TaskStatus.ACTIVE
    assert [s.title for s in task.subtasks] == ["outline", "draft"]


def test_blank_title_is_rejected() -> None:
    with pytest.raises(ValueError):
        _task("   ")


def test_complete_one_time_task() -> None:
    task = _task()
    done = complete_task([task], task.id, NOW)
    assert done.ok
    assert done.reward == Reward(xp=10, coins=5)
    assert done.task.status == TaskStatus.COMPLETED
    assert done.task.completed_at == NOW

    again = complete_task(done.tasks, task.id, NOW)
    assert not again.ok
    assert again.reason == "already_completed"


def test_complete_unknown_task() -> None:
    done = complete_task([], "missing", NOW)
    assert done.reason == "not_found"


def test_finishing_early_earns_time_bonus() -> None:
    task = _task(estimated_minutes=60)
    tasks = start_task([task], task.id, NOW - timedelta(minutes=30))
    done = complete_task(tasks, task.id, NOW)
    assert done.task.actual_minutes == 30
    assert done.reward == Reward(xp=12, coins=6)


def test_repeating_task_stays_active() -> None:
    task = _task(repeat_frequency=RepeatFrequency.DAILY, subtasks=["stretch"])
    tasks = complete_subtask([task], task.id, task.subtasks[0].id, NOW)
    done = complete_task(tasks, task.id, NOW)
    assert done.ok
    assert done.repeated
    assert done.task.status == TaskStatus.ACTIVE
    assert done.task.last_completed_date == date(2024, 1, 15)
    assert not done.task.subtasks[0].completed


def test_dependencies_block_until_done() -> None:
    first = _task("Research")
    second = _task("Write")
    tasks = add_dependency([first, second], second.id, first.id)
    assert tasks[1].status == TaskStatus.BLOCKED

    blocked = complete_task(tasks, second.id, NOW)
    assert blocked.reason == "blocked"

    tasks = complete_task(tasks, first.id, NOW).tasks
    assert tasks[1].status == TaskStatus.ACTIVE
    assert complete_task(tasks, second.id, NOW).ok


def test_dependency_validation() -> None:
    task = _task()
    with pytest.raises(ValueError):
        add_dependency([task], task.id, task.id)
    with pytest.raises(KeyError):
        add_dependency([task], task.id, "missing")


def test_status_change_cannot_complete() -> None:
    task = _task()
    with pytest.raises(ValueError):
        update_task_status([task], task.id, TaskStatus.COMPLETED)
    assert update_task_status([task], task.id, TaskStatus.POSTPONED)[0].status == TaskStatus.POSTPONED


def test_delete_and_restore() -> None:
    task = _task()
    tasks, removed = delete_task([task], task.id)
    assert tasks == []
    assert removed == task
    assert restore_task(tasks, removed) == [task]
    assert delete_task([task], "missing")[1] is None


def test_reopen_restores_snapshot() -> None:
    task = _task()
    tasks = complete_task([task], task.id, NOW).tasks
    assert reopen_task(tasks, task)[0].status == TaskStatus.ACTIVE


def test_reopen_blocks_dependents_again() -> None:
    first, second = _task("First"), _task("Second")
    tasks = add_dependency([first, second], second.id, first.id)
    tasks = complete_task(tasks, first.id, NOW).tasks
    assert tasks[1].status == TaskStatus.ACTIVE

    reopened = reopen_task(tasks, first)
    assert reopened[0].status == TaskStatus.ACTIVE
    assert reopened[1].status == TaskStatus.BLOCKED


def test_missed_hard_deadline() -> None:
    late = _task("Late", hard_deadline=NOW - timedelta(hours=1))
    soon = _task("Soon", hard_deadline=NOW + timedelta(days=2))
    tasks = mark_missed_deadlines([late, soon], NOW)
    assert tasks[0].status == TaskStatus.MISSED
    assert tasks[1].status == TaskStatus.ACTIVE
    assert upcoming_deadlines(tasks, NOW) == [tasks[1]]


def test_suggestions_rank_deadlines_first() -> None:
    urgent = _task("Urgent", hard_deadline=NOW + timedelta(hours=12), energy_type=EnergyType.PHYSICAL)
    quick = _task("Quick", estimated_minutes=10, energy_type=EnergyType.PHYSICAL)
    mental = _task("Think", estimated_minutes=90)

    suggestions = suggest_tasks([urgent, quick, mental], EnergyType.MENTAL, NOW)
    assert [(s.task_id, s.category) for s in suggestions] == [
        (urgent.id, "time-sensitive"),
        (quick.id, "quick-win"),
        (mental.id, "energy-match"),
    ]
