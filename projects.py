"""
Projects: ordered milestones, risk tracking, retrospectives.

Milestones complete strictly in order, so ``current_milestone_index`` always
equals the number of completed milestones.
"""

from __future__ import annotations

import logging
from datetime import datetime

from config import EngineConfig
from models import (
    Milestone,
    MilestoneCompletion,
    Project,
    ProjectRetrospective,
    ProjectStatus,
)
from rewards import milestone_reward, round_half_up

logger = logging.getLogger(__name__)

BEHIND_SCHEDULE = "Behind schedule"
RISK_BEHIND_MARGIN = 0.2
RISK_AHEAD_MARGIN = 0.1
RISK_STEP_UP = 20
RISK_STEP_DOWN = 10
AT_RISK_THRESHOLD = 50

_OPEN = (ProjectStatus.ACTIVE, ProjectStatus.PLANNING)
_CLOSED = (ProjectStatus.COMPLETED, ProjectStatus.ABANDONED)


def create_project(
    title: str,
    milestones: list[Milestone],
    description: str = "",
    target_end_date: datetime | None = None,
    now: datetime | None = None,
) -> Project:
    now = now or datetime.now()
    return Project(
        title=title,
        description=description,
        milestones=[m.model_copy(update={"completed_at": None}) for m in milestones],
        target_end_date=target_end_date,
        start_date=now,
        created_at=now,
    )


def _reassess_risk(project: Project, completed_index: int, now: datetime) -> tuple[float, list[str]]:
    risk = project.risk_level
    factors = list(project.risk_factors)
    if project.target_end_date is None:
        return risk, factors

    span = (project.target_end_date - project.start_date).total_seconds()
    if span <= 0:
        return risk, factors

    time_progress = (now - project.start_date).total_seconds() / span
    milestone_progress = (completed_index + 1) / len(project.milestones)

    if time_progress > milestone_progress + RISK_BEHIND_MARGIN:
        risk = min(100, risk + RISK_STEP_UP)
        if BEHIND_SCHEDULE not in factors:
            factors.append(BEHIND_SCHEDULE)
    elif time_progress < milestone_progress - RISK_AHEAD_MARGIN:
        risk = max(0, risk - RISK_STEP_DOWN)
        factors = [f for f in factors if f != BEHIND_SCHEDULE]
    return risk, factors


def complete_milestone(
    project: Project,
    milestone_id: str,
    now: datetime,
    cfg: EngineConfig | None = None,
) -> MilestoneCompletion:
    index = next((i for i, m in enumerate(project.milestones) if m.id == milestone_id), None)
    if index is None:
        return MilestoneCompletion(
            ok=False, project=project, reason="not_found", message="Milestone not found"
        )
    milestone = project.milestones[index]
    if milestone.completed_at is not None:
        return MilestoneCompletion(
            ok=False, project=project, reason="already_completed", message="Milestone already completed"
        )
    if index != project.current_milestone_index:
        return MilestoneCompletion(
            ok=False, project=project, reason="out_of_order", message="Complete earlier milestones first"
        )

    reward = milestone_reward(milestone.xp_reward, cfg)
    milestones = list(project.milestones)
    milestones[index] = milestone.model_copy(update={"completed_at": now})
    risk, factors = _reassess_risk(project, index, now)
    finished = index == len(milestones) - 1

    updated = project.model_copy(update={
        "milestones": milestones,
        "current_milestone_index": index + 1,
        "total_xp_earned": project.total_xp_earned + reward.xp,
        "total_coins_earned": project.total_coins_earned + reward.coins,
        "risk_level": risk,
        "risk_factors": factors,
        "status": ProjectStatus.COMPLETED if finished else ProjectStatus.ACTIVE,
        "actual_end_date": now if finished else None,
    })

    logger.info(f"Project '{project.title}': milestone '{milestone.title}' done (+{reward.xp} XP)")
    if finished:
        logger.info(f"Project '{project.title}' completed")
    return MilestoneCompletion(ok=True, project=updated, reward=reward, project_completed=finished)


def update_project_status(project: Project, status: ProjectStatus, now: datetime) -> Project:
    status = ProjectStatus(status)
    return project.model_copy(update={
        "status": status,
        "actual_end_date": now if status in _CLOSED else None,
    })


def add_milestone_task(project: Project, milestone_id: str, task_id: str) -> Project:
    milestones = [
        m.model_copy(update={"tasks": [*m.tasks, task_id]})
        if m.id == milestone_id and task_id not in m.tasks else m
        for m in project.milestones
    ]
    return project.model_copy(update={"milestones": milestones})


def add_retrospective(
    project: Project,
    rating: int,
    now: datetime,
    achievements: list[str] | None = None,
    challenges: list[str] | None = None,
    lessons_learned: list[str] | None = None,
) -> Project:
    retro = ProjectRetrospective(
        completed_at=now,
        rating=rating,
        achievements=achievements or [],
        challenges=challenges or [],
        lessons_learned=lessons_learned or [],
    )
    return project.model_copy(update={"retrospective": retro})


def project_progress(project: Project) -> int:
    """Percentage of milestones completed, 0 for a project with none."""
    if not project.milestones:
        return 0
    done = sum(1 for m in project.milestones if m.completed_at is not None)
    return round_half_up(done / len(project.milestones) * 100)


def active_projects(projects: list[Project]) -> list[Project]:
    return [p for p in projects if p.status in _OPEN]


def at_risk_projects(projects: list[Project]) -> list[Project]:
    return [p for p in active_projects(projects) if p.risk_level >= AT_RISK_THRESHOLD]
