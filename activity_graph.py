"""
LangGraph activity pipeline: one activity event through the progression engine.

5 nodes (all deterministic):
  1. reward     — stack skill / shop / companion bonuses, credit XP and coins,
                  daily stats and challenge progress
  2. leveling   — level before/after, skill points for each level gained
  3. companion  — evolution points, stage, energy and happiness
  4. burnout    — fold any factor update into the burnout report
  5. finalize   — achievement checks, serialize the new state

Graph wiring:
  START → reward → leveling
  leveling → [any companion activity? yes → companion → burnout]
  leveling → [any companion activity? no  → burnout]
  burnout → finalize → END
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TypedDict

from langgraph.graph import StateGraph, END

from achievements import check_achievements
from analytics import record_day_activity, today_stats
from burnout import update_burnout
from challenges import ensure_board, update_challenge_progress
from companion import update_companion
from config import EngineConfig
from leveling import level_from_total_xp
from models import (
    Activity,
    AchievementStats,
    AppState,
    BonusType,
    Rarity,
    Reward,
    ShopEffectType,
    SkillEffectType,
)
from rewards import apply_bonus
from shop import active_boost, earn_coins
from skill_tree import earn_skill_points, total_bonus

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────
# Pipeline State
# ──────────────────────────────────────────────────────────────

class ActivityState(TypedDict, total=False):
    # Inputs
    app_state: dict         # AppState as dict
    reward: dict            # base Reward from the domain module
    activity: dict          # Activity for the companion
    source: str             # task | habit | focus | milestone | manual
    rarity: str | None      # set for task completions
    counts_as_quest: bool
    burnout_factors: dict   # partial BurnoutFactors update
    now: datetime
    config: dict            # serialized EngineConfig overrides

    # Node outputs (accumulated)
    final_reward: dict
    level_before: int
    level_after: int
    leveled_up: bool
    skill_points_awarded: int
    challenges_completed: int
    new_achievements: list  # list[Achievement] as dict


def _cfg(state: ActivityState) -> EngineConfig:
    return EngineConfig.from_dict(state.get("config", {}))


def _app(state: ActivityState) -> AppState:
    return AppState.model_validate(state["app_state"])


# ──────────────────────────────────────────────────────────────
# Node 1: reward
# ──────────────────────────────────────────────────────────────

async def reward_node(state: ActivityState) -> dict:
    """Stack active bonuses on the base reward and credit it."""
    app = _app(state)
    now = state["now"]
    today = now.date()
    base = Reward(**state.get("reward", {}))

    xp_bonus = total_bonus(app.skills, SkillEffectType.XP_BONUS)
    xp_bonus += active_boost(app.inventory, ShopEffectType.XP_BOOST, now)
    coin_bonus = total_bonus(app.skills, SkillEffectType.COIN_BONUS)

    bonus = app.companion.active_bonus
    if bonus is not None and bonus.type == BonusType.XP:
        xp_bonus += bonus.value
    elif bonus is not None and bonus.type == BonusType.COINS:
        coin_bonus += bonus.value

    reward = apply_bonus(base, xp_bonus, coin_bonus)
    activity = Activity(**state.get("activity", {}))
    source = state.get("source", "manual")
    quest = bool(state.get("counts_as_quest", False))
    rarity = Rarity(state["rarity"]) if state.get("rarity") else None

    profile = app.profile.model_copy(update={
        "total_xp": app.profile.total_xp + reward.xp,
        "quests_completed": app.profile.quests_completed + (1 if quest else 0),
        "legendary_completed": app.profile.legendary_completed
        + (1 if quest and rarity == Rarity.LEGENDARY else 0),
    })
    inventory = earn_coins(app.inventory, reward.coins, source, now, f"{source} reward")

    stats = record_day_activity(
        app.daily_stats,
        today,
        tasks_completed=1 if quest else 0,
        xp_earned=reward.xp,
        coins_earned=reward.coins,
        focus_minutes=activity.focus_minutes,
        habits_completed=activity.habits_completed,
    )
    day = today_stats(stats, today)

    board = ensure_board(app.challenges, today)
    board, completed = update_challenge_progress(
        board, day.tasks_completed, day.xp_earned, rarity if quest else None
    )

    app = app.model_copy(update={
        "profile": profile,
        "inventory": inventory,
        "daily_stats": stats,
        "challenges": board,
    })
    return {
        "app_state": app.model_dump(),
        "final_reward": reward.model_dump(),
        "challenges_completed": completed,
        "level_before": level_from_total_xp(profile.total_xp - reward.xp, _cfg(state)).level,
    }


# ──────────────────────────────────────────────────────────────
# Node 2: leveling
# ──────────────────────────────────────────────────────────────

async def leveling_node(state: ActivityState) -> dict:
    """Recompute the level and award skill points for level-ups."""
    cfg = _cfg(state)
    app = _app(state)

    before = state.get("level_before", 1)
    after = level_from_total_xp(app.profile.total_xp, cfg).level
    gained = max(0, after - before)
    points = gained * cfg.skill_points_per_level

    if points:
        app = app.model_copy(update={"skills": earn_skill_points(app.skills, points)})
        logger.info(f"Level up: {before} → {after} (+{points} skill points)")

    return {
        "app_state": app.model_dump(),
        "level_after": after,
        "leveled_up": gained > 0,
        "skill_points_awarded": points,
    }


# ──────────────────────────────────────────────────────────────
# Node 3: companion
# ──────────────────────────────────────────────────────────────

async def companion_node(state: ActivityState) -> dict:
    cfg = _cfg(state)
    app = _app(state)
    activity = Activity(**state.get("activity", {}))
    efficiency = total_bonus(app.skills, SkillEffectType.ENERGY_EFFICIENCY)

    companion = update_companion(app.companion, activity, state["now"].date(), efficiency, cfg)
    app = app.model_copy(update={"companion": companion})
    return {"app_state": app.model_dump()}


# ──────────────────────────────────────────────────────────────
# Node 4: burnout
# ──────────────────────────────────────────────────────────────

async def burnout_node(state: ActivityState) -> dict:
    factors = state.get("burnout_factors") or {}
    if not factors:
        return {}
    app = _app(state)
    report = update_burnout(app.burnout, state["now"], _cfg(state), **factors)
    app = app.model_copy(update={"burnout": report})
    return {"app_state": app.model_dump()}


# ──────────────────────────────────────────────────────────────
# Node 5: finalize
# ──────────────────────────────────────────────────────────────

async def finalize_node(state: ActivityState) -> dict:
    """Run achievement checks against the updated totals."""
    app = _app(state)
    stats = AchievementStats(
        quests_completed=app.profile.quests_completed,
        xp_earned=app.profile.total_xp,
        streak=max((h.current_streak for h in app.habits), default=0),
        legendary_completed=app.profile.legendary_completed,
        daily_challenges_completed=app.challenges.completed_count,
    )
    achievements, newly = check_achievements(app.achievements, stats, state["now"])
    app = app.model_copy(update={"achievements": achievements})
    return {
        "app_state": app.model_dump(),
        "new_achievements": [a.model_dump() for a in newly],
    }


# ──────────────────────────────────────────────────────────────
# Conditional edge: companion activity → companion or burnout
# ──────────────────────────────────────────────────────────────

def should_update_companion(state: ActivityState) -> str:
    """Route after the leveling node."""
    activity = Activity(**state.get("activity", {}))
    if activity.tasks_completed or activity.focus_minutes or activity.habits_completed:
        return "companion"
    return "burnout"


# ──────────────────────────────────────────────────────────────
# Build the graph
# ──────────────────────────────────────────────────────────────

def build_graph() -> StateGraph:
    """Construct and compile the LangGraph StateGraph."""
    graph = StateGraph(ActivityState)

    graph.add_node("reward", reward_node)
    graph.add_node("leveling", leveling_node)
    graph.add_node("companion", companion_node)
    graph.add_node("burnout", burnout_node)
    graph.add_node("finalize", finalize_node)

    graph.set_entry_point("reward")
    graph.add_edge("reward", "leveling")

    graph.add_conditional_edges(
        "leveling",
        should_update_companion,
        {
            "companion": "companion",
            "burnout": "burnout",
        },
    )

    graph.add_edge("companion", "burnout")
    graph.add_edge("burnout", "finalize")
    graph.add_edge("finalize", END)

    return graph.compile()


# ── Module-level compiled graph ───────────────────────────────

activity_graph = build_graph()


async def run_activity(
    app: AppState,
    now: datetime,
    reward: Reward | None = None,
    activity: Activity | None = None,
    source: str = "manual",
    rarity: Rarity | None = None,
    counts_as_quest: bool = False,
    burnout_factors: dict | None = None,
    cfg: EngineConfig | None = None,
) -> dict:
    """Convenience wrapper: build the input state, run the graph, revalidate."""
    if cfg is None:
        cfg = EngineConfig()
    result = await activity_graph.ainvoke({
        "app_state": app.model_dump(),
        "reward": (reward or Reward()).model_dump(),
        "activity": (activity or Activity()).model_dump(),
        "source": source,
        "rarity": Rarity(rarity).value if rarity else None,
        "counts_as_quest": counts_as_quest,
        "burnout_factors": burnout_factors or {},
        "now": now,
        "config": cfg.to_dict(),
    })
    result["app_state"] = AppState.model_validate(result["app_state"])
    return result
