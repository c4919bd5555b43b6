"""
Time reconciliation over the whole application state.

reconcile_on_load runs the day-rollover work at most once per calendar day
(keyed on ``last_processed_date``) and the cheap sweeps every time.
periodic_sweep only purges expired undo entries and shop effects.
Both are idempotent.
"""

from __future__ import annotations

import logging
from datetime import datetime

from achievements import merge_achievements
from challenges import ensure_board
from companion import daily_tick
from config import EngineConfig
from focus import reconcile_focus_streak
from habits import reconcile_gap
from models import AppState
from shop import reset_daily_stock, sweep_effects
from skill_tree import default_skill_nodes
from tasks import mark_missed_deadlines, refresh_blocked
from undo import sweep_undo

logger = logging.getLogger(__name__)


def periodic_sweep(state: AppState, now: datetime) -> AppState:
    undo = sweep_undo(state.undo, now)
    inventory = sweep_effects(state.inventory, now)
    if undo is state.undo and inventory is state.inventory:
        return state
    return state.model_copy(update={"undo": undo, "inventory": inventory})


def _seed_catalogues(state: AppState) -> AppState:
    updates = {}
    if not state.skills.nodes:
        updates["skills"] = state.skills.model_copy(update={"nodes": default_skill_nodes()})
    achievements = merge_achievements(state.achievements)
    if achievements != state.achievements:
        updates["achievements"] = achievements
    return state.model_copy(update=updates) if updates else state


def reconcile_on_load(state: AppState, now: datetime, cfg: EngineConfig | None = None) -> AppState:
    if cfg is None:
        cfg = EngineConfig()
    today = now.date()

    state = _seed_catalogues(state)

    if state.last_processed_date != today:
        logger.info(f"Reconciling state for {today.isoformat()} (last run {state.last_processed_date})")
        state = state.model_copy(update={
            "habits": [reconcile_gap(h, today, cfg) for h in state.habits],
            "companion": daily_tick(state.companion, today, cfg),
            "focus_streak": reconcile_focus_streak(state.focus_streak, today),
            "challenges": ensure_board(state.challenges, today),
            "inventory": reset_daily_stock(state.inventory, today),
            "tasks": refresh_blocked(mark_missed_deadlines(state.tasks, now)),
            "last_processed_date": today,
        })

    return periodic_sweep(state, now)
