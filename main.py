"""
FastAPI server for the PixelQuest progression engine.

Endpoints:
  GET  /health                      — Liveness
  GET  /state                       — Reconciled application state
  POST /reward                      — Pure reward calculation
  GET  /level/{total_xp}            — Level lookup
  POST /tasks                       — Create a quest
  POST /tasks/{id}/start            — Start the clock for the efficiency bonus
  POST /tasks/{id}/dependencies     — Block a quest on another one
  POST /tasks/{id}/subtasks/{sid}/complete — Tick off a subtask
  POST /tasks/{id}/complete         — Complete a quest (LangGraph pipeline, undoable)
  DELETE /tasks/{id}                — Delete a quest (undoable)
  POST /habits                      — Create a habit
  POST /habits/{id}/complete        — Complete a habit for today
  POST /habits/{id}/miss            — Record a miss (undoable)
  GET  /projects                    — Projects with progress
  POST /projects                    — Create a project with ordered milestones
  POST /projects/{id}/milestones/{mid}/complete — Complete the next milestone
  POST /companion/feed              — Restore companion energy
  PUT  /burnout                     — Partial burnout factor update
  POST /skills/{id}/unlock          — Unlock a skill node (permanent)
  GET  /challenges                  — Today's daily challenges
  POST /focus/start|end|cancel      — Focus session lifecycle
  POST /shop/{item_id}/purchase     — Buy a shop item (undoable)
  POST /undo                        — Revert the most recent undoable action
  GET  /config                      — Current EngineConfig
  PUT  /config                      — Update EngineConfig parameters
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Path
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from models import (
    Activity,
    AppState,
    Difficulty,
    EnergyType,
    FocusSessionType,
    Habit,
    HabitCreate,
    Milestone,
    Project,
    Rarity,
    Reward,
    ShopEffectType,
    Task,
    TaskCreate,
    UndoActionType,
)
from config import EngineConfig
from activity_graph import run_activity
from analytics import record_day_activity, today_stats, weekly_report
from burnout import update_burnout
from challenges import completed_ids, revert_challenge_progress
from companion import feed_companion, revert_activity
from focus import cancel_session, end_session, end_break, log_distraction, start_break, start_session
from habits import complete_habit, create_habit, miss_habit, undo_miss
from leveling import level_from_total_xp, player_role
from projects import complete_milestone, create_project, project_progress
from reconcile import periodic_sweep, reconcile_on_load
from rewards import compute_reward
from shop import purchase_item, refund_purchase, revoke_coins, use_item
from skill_tree import unlock_skill_node
from tasks import (
    add_dependency,
    complete_subtask,
    complete_task,
    create_task,
    delete_task,
    reopen_task,
    restore_task,
    start_task,
    suggest_tasks,
)
from undo import pop_undo, push_undo
import supabase_client as supa

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Global config (mutable) ───────────────────────────────────

_config = EngineConfig.from_env()

# ── In-memory session state (single user, persisted after each change) ──

_state: AppState | None = None

# Held by every handler that awaits between reading ``_state`` and
# committing it. Handlers that never await cannot interleave.
_write_lock = asyncio.Lock()


def _now() -> datetime:
    return datetime.now()


def _current() -> AppState:
    """Load once, then reconcile against the clock on every access."""
    global _state
    if _state is None:
        _state = supa.load_state() or AppState()
    _state = reconcile_on_load(_state, _now(), _config)
    return _state


def _commit(state: AppState) -> AppState:
    global _state
    _state = state
    supa.save_state(state)
    return state


def _fail(result, not_found: str = "not_found"):
    """Map a structured precondition failure onto an HTTP error."""
    status = 404 if result.reason == not_found else 409
    raise HTTPException(status, {"reason": result.reason, "message": result.message})


def _find_task(state: AppState, task_id: str) -> Task:
    task = next((t for t in state.tasks if t.id == task_id), None)
    if task is None:
        raise HTTPException(404, f"Task not found: {task_id}")
    return task


def _find_habit(state: AppState, habit_id: str) -> Habit:
    habit = next((h for h in state.habits if h.id == habit_id), None)
    if habit is None:
        raise HTTPException(404, f"Habit not found: {habit_id}")
    return habit


def _find_project(state: AppState, project_id: str) -> Project:
    project = next((p for p in state.projects if p.id == project_id), None)
    if project is None:
        raise HTTPException(404, f"Project not found: {project_id}")
    return project


def _replace_habit(state: AppState, habit: Habit) -> list[Habit]:
    return [habit if h.id == habit.id else h for h in state.habits]


def _remember(state: AppState, action_type: UndoActionType, inverse: dict, description: str) -> AppState:
    ledger, _ = push_undo(state.undo, action_type, inverse, description, _now(), _config)
    return state.model_copy(update={"undo": ledger})


# ── Lifespan ──────────────────────────────────────────────────

async def _sweep_loop():
    global _state
    while True:
        await asyncio.sleep(_config.sweep_interval_seconds)
        if _state is not None:
            _state = periodic_sweep(_state, _now())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    logger.info("PixelQuest engine starting…")
    _current()
    sweeper = asyncio.create_task(_sweep_loop())
    yield
    sweeper.cancel()
    logger.info("Shutting down.")


# ── App ───────────────────────────────────────────────────────

app = FastAPI(
    title="PixelQuest",
    description="Gamified productivity: rewards, levels, habits and a companion",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ──────────────────────────────────────────────────────────────
# Health & state
# ──────────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    return {"status": "healthy", "service": "pixelquest"}


@app.get("/state")
async def get_state():
    return _current().model_dump(mode="json")


@app.post("/state/reset")
async def reset_state():
    global _state
    supa.delete_state()
    _state = None
    return _current().model_dump(mode="json")


# ──────────────────────────────────────────────────────────────
# Rewards & levels
# ──────────────────────────────────────────────────────────────

class RewardRequest(BaseModel):
    difficulty: Difficulty
    rarity: Rarity
    estimated_minutes: Optional[float] = Field(default=None, gt=0)
    actual_minutes: Optional[float] = Field(default=None, gt=0)


@app.post("/reward")
async def reward_endpoint(req: RewardRequest):
    """Pure calculation; no state change."""
    reward = compute_reward(req.difficulty, req.rarity, req.estimated_minutes, req.actual_minutes, _config)
    return reward.model_dump()


@app.get("/level/{total_xp}")
async def level_endpoint(total_xp: int = Path(..., ge=0)):
    progress = level_from_total_xp(total_xp, _config)
    role = player_role(progress.level)
    return {**progress.model_dump(), "role": role.name, "icon": role.icon}


# ──────────────────────────────────────────────────────────────
# Tasks
# ──────────────────────────────────────────────────────────────

class DependencyRequest(BaseModel):
    depends_on: str = Field(..., min_length=1)


@app.post("/tasks")
async def create_task_endpoint(data: TaskCreate):
    state = _current()
    try:
        task = create_task(data, _now(), _config)
    except ValueError as e:
        raise HTTPException(422, str(e))
    stats = record_day_activity(state.daily_stats, _now().date(), tasks_created=1)
    _commit(state.model_copy(update={"tasks": [*state.tasks, task], "daily_stats": stats}))
    return task.model_dump(mode="json")


@app.get("/tasks/suggestions")
async def suggestions_endpoint(energy: EnergyType = EnergyType.MENTAL):
    return [s.model_dump() for s in suggest_tasks(_current().tasks, energy, _now())]


@app.post("/tasks/{task_id}/start")
async def start_task_endpoint(task_id: str):
    state = _current()
    _find_task(state, task_id)
    tasks = start_task(state.tasks, task_id, _now())
    state = _commit(state.model_copy(update={"tasks": tasks}))
    return _find_task(state, task_id).model_dump(mode="json")


@app.post("/tasks/{task_id}/dependencies")
async def add_dependency_endpoint(task_id: str, req: DependencyRequest):
    state = _current()
    try:
        tasks = add_dependency(state.tasks, task_id, req.depends_on)
    except KeyError as e:
        raise HTTPException(404, f"Task not found: {e.args[0]}")
    except ValueError as e:
        raise HTTPException(422, str(e))
    state = _commit(state.model_copy(update={"tasks": tasks}))
    return _find_task(state, task_id).model_dump(mode="json")


@app.post("/tasks/{task_id}/subtasks/{subtask_id}/complete")
async def complete_subtask_endpoint(task_id: str, subtask_id: str):
    state = _current()
    task = _find_task(state, task_id)
    if not any(s.id == subtask_id for s in task.subtasks):
        raise HTTPException(404, f"Subtask not found: {subtask_id}")
    tasks = complete_subtask(state.tasks, task_id, subtask_id, _now())
    state = _commit(state.model_copy(update={"tasks": tasks}))
    return _find_task(state, task_id).model_dump(mode="json")


@app.post("/tasks/{task_id}/complete")
async def complete_task_endpoint(task_id: str):
    async with _write_lock:
        state = _current()
        now = _now()
        before = next((t for t in state.tasks if t.id == task_id), None)
        done = complete_task(state.tasks, task_id, now, _config)
        if not done.ok:
            _fail(done)

        task = done.task
        already_done = completed_ids(state.challenges) if state.challenges.date == now.date() else set()
        result = await run_activity(
            state.model_copy(update={"tasks": done.tasks}),
            now,
            reward=done.reward,
            activity=Activity(tasks_completed=1),
            source="task",
            rarity=task.rarity,
            counts_as_quest=True,
            cfg=_config,
        )
        new_state = result["app_state"]
        new_state = _remember(
            new_state,
            UndoActionType.TASK_COMPLETE,
            {
                "task": before.model_dump(mode="json"),
                "date": now.date().isoformat(),
                "challenges": sorted(completed_ids(new_state.challenges) - already_done),
                **result["final_reward"],
            },
            f"Completed '{task.title}'",
        )
        _commit(new_state)
    return {
        "task": task.model_dump(mode="json"),
        "reward": result["final_reward"],
        "repeated": done.repeated,
        "level": result["level_after"],
        "leveled_up": result["leveled_up"],
        "challenges_completed": result["challenges_completed"],
        "new_achievements": [a["id"] for a in result["new_achievements"]],
    }


@app.delete("/tasks/{task_id}")
async def delete_task_endpoint(task_id: str):
    state = _current()
    tasks, removed = delete_task(state.tasks, task_id)
    if removed is None:
        raise HTTPException(404, f"Task not found: {task_id}")
    state = state.model_copy(update={"tasks": tasks})
    state = _remember(
        state, UndoActionType.TASK_DELETE, {"task": removed.model_dump(mode="json")}, f"Deleted '{removed.title}'"
    )
    _commit(state)
    return {"status": "deleted", "id": task_id}


# ──────────────────────────────────────────────────────────────
# Habits
# ──────────────────────────────────────────────────────────────

class HabitCompleteRequest(BaseModel):
    value: Optional[float] = None


@app.post("/habits")
async def create_habit_endpoint(data: HabitCreate):
    state = _current()
    habit = create_habit(data)
    _commit(state.model_copy(update={"habits": [*state.habits, habit]}))
    return habit.model_dump(mode="json")


@app.post("/habits/{habit_id}/complete")
async def complete_habit_endpoint(habit_id: str, req: HabitCompleteRequest | None = None):
    async with _write_lock:
        state = _current()
        now = _now()
        habit = _find_habit(state, habit_id)
        result = complete_habit(habit, now.date(), req.value if req else None, _config)
        if result.habit is habit:
            # Already completed today.
            return {"habit": habit.model_dump(mode="json"), "reward": {"xp": 0, "coins": 0}}

        state = state.model_copy(update={"habits": _replace_habit(state, result.habit)})
        out = await run_activity(
            state,
            now,
            reward=Reward(xp=result.xp, coins=result.coins),
            activity=Activity(habits_completed=1),
            source="habit",
            cfg=_config,
        )
        _commit(out["app_state"])
    return {
        "habit": result.habit.model_dump(mode="json"),
        "reward": out["final_reward"],
        "level": out["level_after"],
        "leveled_up": out["leveled_up"],
    }


@app.post("/habits/{habit_id}/miss")
async def miss_habit_endpoint(habit_id: str):
    state = _current()
    now = _now()
    habit = _find_habit(state, habit_id)
    updated = miss_habit(habit, now.date(), _config)
    if updated is habit:
        return habit.model_dump(mode="json")

    stats = record_day_activity(state.daily_stats, now.date(), habits_missed=1)
    state = state.model_copy(update={"habits": _replace_habit(state, updated), "daily_stats": stats})
    state = _remember(
        state,
        UndoActionType.HABIT_MISS,
        {"habit": habit.model_dump(mode="json"), "date": now.date().isoformat()},
        f"Missed '{habit.title}'",
    )
    _commit(state)
    return updated.model_dump(mode="json")


# ──────────────────────────────────────────────────────────────
# Projects
# ──────────────────────────────────────────────────────────────

class ProjectRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    target_end_date: Optional[datetime] = None
    milestones: list[Milestone] = Field(default_factory=list)


def _project_view(project: Project) -> dict:
    return {**project.model_dump(mode="json"), "progress": project_progress(project)}


@app.get("/projects")
async def projects_endpoint():
    return [_project_view(p) for p in _current().projects]


@app.post("/projects")
async def create_project_endpoint(req: ProjectRequest):
    state = _current()
    project = create_project(req.title, req.milestones, req.description, req.target_end_date, _now())
    _commit(state.model_copy(update={"projects": [*state.projects, project]}))
    return _project_view(project)


@app.post("/projects/{project_id}/milestones/{milestone_id}/complete")
async def complete_milestone_endpoint(project_id: str, milestone_id: str):
    async with _write_lock:
        state = _current()
        now = _now()
        done = complete_milestone(_find_project(state, project_id), milestone_id, now, _config)
        if not done.ok:
            _fail(done)

        projects = [done.project if p.id == project_id else p for p in state.projects]
        out = await run_activity(
            state.model_copy(update={"projects": projects}),
            now,
            reward=done.reward,
            source="milestone",
            cfg=_config,
        )
        _commit(out["app_state"])
    return {
        "project": _project_view(done.project),
        "reward": out["final_reward"],
        "project_completed": done.project_completed,
        "level": out["level_after"],
        "leveled_up": out["leveled_up"],
        "new_achievements": [a["id"] for a in out["new_achievements"]],
    }


# ──────────────────────────────────────────────────────────────
# Companion & burnout
# ──────────────────────────────────────────────────────────────

class FeedRequest(BaseModel):
    energy: float = Field(default=20, gt=0, le=100)


@app.post("/companion/feed")
async def feed_endpoint(req: FeedRequest):
    state = _current()
    companion = feed_companion(state.companion, req.energy)
    _commit(state.model_copy(update={"companion": companion}))
    return companion.model_dump(mode="json")


class BurnoutUpdate(BaseModel):
    overwork: Optional[float] = Field(default=None, ge=0, le=100)
    missed_breaks: Optional[float] = Field(default=None, ge=0, le=100)
    streak_pressure: Optional[float] = Field(default=None, ge=0, le=100)
    deadline_density: Optional[float] = Field(default=None, ge=0, le=100)


@app.put("/burnout")
async def burnout_endpoint(req: BurnoutUpdate):
    state = _current()
    report = update_burnout(state.burnout, _now(), _config, **req.model_dump(exclude_none=True))
    _commit(state.model_copy(update={"burnout": report}))
    return report.model_dump(mode="json")


# ──────────────────────────────────────────────────────────────
# Skills & challenges
# ──────────────────────────────────────────────────────────────

@app.post("/skills/{node_id}/unlock")
async def unlock_skill_endpoint(node_id: str):
    """Unlocks are one-way, so nothing goes on the undo ledger."""
    state = _current()
    result = unlock_skill_node(state.skills, node_id)
    if not result.ok:
        _fail(result)
    _commit(state.model_copy(update={"skills": result.tree}))
    return result.model_dump(mode="json")


@app.get("/challenges")
async def challenges_endpoint():
    return _current().challenges.model_dump(mode="json")


@app.get("/report/weekly")
async def weekly_report_endpoint():
    state = _current()
    return weekly_report(state.daily_stats, _now().date(), state.burnout.level).model_dump(mode="json")


# ──────────────────────────────────────────────────────────────
# Focus sessions
# ──────────────────────────────────────────────────────────────

class FocusStartRequest(BaseModel):
    planned_minutes: int = Field(..., gt=0)
    type: FocusSessionType = FocusSessionType.DEEP_WORK
    task_id: Optional[str] = None


class DistractionRequest(BaseModel):
    duration_minutes: float = Field(..., ge=0)
    description: str = ""


def _active_focus(state: AppState):
    if state.active_focus is None:
        raise HTTPException(409, {"reason": "no_session", "message": "No focus session running"})
    return state.active_focus


@app.post("/focus/start")
async def focus_start_endpoint(req: FocusStartRequest):
    state = _current()
    if state.active_focus is not None:
        raise HTTPException(409, {"reason": "session_running", "message": "A focus session is already running"})
    session = start_session(req.planned_minutes, _now(), req.type, req.task_id)
    _commit(state.model_copy(update={"active_focus": session}))
    return session.model_dump(mode="json")


@app.post("/focus/break")
async def focus_break_endpoint():
    state = _current()
    session = start_break(_active_focus(state), _now())
    _commit(state.model_copy(update={"active_focus": session}))
    return session.model_dump(mode="json")


@app.post("/focus/resume")
async def focus_resume_endpoint():
    state = _current()
    session = end_break(_active_focus(state), _now())
    _commit(state.model_copy(update={"active_focus": session}))
    return session.model_dump(mode="json")


@app.post("/focus/distraction")
async def focus_distraction_endpoint(req: DistractionRequest):
    state = _current()
    session = log_distraction(_active_focus(state), req.duration_minutes, _now(), req.description)
    _commit(state.model_copy(update={"active_focus": session}))
    return session.model_dump(mode="json")


@app.post("/focus/end")
async def focus_end_endpoint():
    async with _write_lock:
        state = _current()
        now = _now()
        done = end_session(_active_focus(state), state.focus_streak, now, _config)
        state = state.model_copy(update={
            "active_focus": None,
            "focus_sessions": [*state.focus_sessions, done.session],
            "focus_streak": done.streak,
        })
        out = await run_activity(
            state,
            now,
            reward=done.reward,
            activity=Activity(focus_minutes=done.effective_minutes),
            source="focus",
            cfg=_config,
        )
        _commit(out["app_state"])
    return {
        "session": done.session.model_dump(mode="json"),
        "streak": done.streak.model_dump(mode="json"),
        "reward": out["final_reward"],
        "leveled_up": out["leveled_up"],
    }


@app.post("/focus/cancel")
async def focus_cancel_endpoint():
    state = _current()
    if state.active_focus is None:
        return {"status": "idle"}
    cancel_session(state.active_focus)
    _commit(state.model_copy(update={"active_focus": None}))
    return {"status": "cancelled"}


# ──────────────────────────────────────────────────────────────
# Shop
# ──────────────────────────────────────────────────────────────

@app.post("/shop/{item_id}/purchase")
async def purchase_endpoint(item_id: str):
    state = _current()
    result = purchase_item(state.inventory, item_id, _now())
    if not result.ok:
        _fail(result)
    state = state.model_copy(update={"inventory": result.inventory})
    state = _remember(state, UndoActionType.ITEM_PURCHASE, {"item_id": item_id}, result.message)
    _commit(state)
    return result.model_dump(mode="json")


@app.post("/shop/{item_id}/use")
async def use_item_endpoint(item_id: str):
    state = _current()
    result = use_item(state.inventory, item_id, _now())
    if not result.ok:
        _fail(result, not_found="not_owned")
    updates = {"inventory": result.inventory}
    if result.effect is not None and result.effect.type == ShopEffectType.COMPANION_ITEM:
        updates["companion"] = feed_companion(state.companion, result.effect.value)
    _commit(state.model_copy(update=updates))
    return result.model_dump(mode="json")


# ──────────────────────────────────────────────────────────────
# Undo
# ──────────────────────────────────────────────────────────────

def _undo_task_completion(state: AppState, data: dict, now: datetime) -> AppState:
    """Reverse the credit, day stats, challenge progress and companion points."""
    snapshot = Task.model_validate(data["task"])
    day = date.fromisoformat(data["date"])
    xp, coins = data.get("xp", 0), data.get("coins", 0)
    legendary = 1 if snapshot.rarity == Rarity.LEGENDARY else 0

    profile = state.profile.model_copy(update={
        "total_xp": max(0, state.profile.total_xp - xp),
        "quests_completed": max(0, state.profile.quests_completed - 1),
        "legendary_completed": max(0, state.profile.legendary_completed - legendary),
    })
    inventory = revoke_coins(state.inventory, coins, "undo", now, f"Undid '{snapshot.title}'")

    stats = state.daily_stats
    board = state.challenges
    if today_stats(stats, day) is not None:
        stats = record_day_activity(stats, day, tasks_completed=-1, xp_earned=-xp, coins_earned=-coins)
        if board.date == day:
            row = today_stats(stats, day)
            board = revert_challenge_progress(
                board, row.tasks_completed, row.xp_earned, snapshot.rarity, set(data.get("challenges", []))
            )

    return state.model_copy(update={
        "tasks": reopen_task(state.tasks, snapshot),
        "profile": profile,
        "inventory": inventory,
        "daily_stats": stats,
        "challenges": board,
        "companion": revert_activity(state.companion, Activity(tasks_completed=1), _config),
    })


def _undo_habit_miss(state: AppState, data: dict) -> AppState:
    before = Habit.model_validate(data["habit"])
    day = date.fromisoformat(data["date"])
    habit = next((h for h in state.habits if h.id == before.id), None)
    if habit is None:
        return state
    restored = undo_miss(habit, day, before)
    if restored is habit:
        return state

    stats = state.daily_stats
    if today_stats(stats, day) is not None:
        stats = record_day_activity(stats, day, habits_missed=-1)
    return state.model_copy(update={"habits": _replace_habit(state, restored), "daily_stats": stats})


def _apply_inverse(state: AppState, action) -> AppState:
    data = action.inverse_data
    now = _now()

    if action.type == UndoActionType.TASK_DELETE:
        return state.model_copy(update={"tasks": restore_task(state.tasks, Task.model_validate(data["task"]))})

    if action.type == UndoActionType.TASK_COMPLETE:
        return _undo_task_completion(state, data, now)

    if action.type == UndoActionType.HABIT_MISS:
        return _undo_habit_miss(state, data)

    if action.type == UndoActionType.ITEM_PURCHASE:
        return state.model_copy(update={"inventory": refund_purchase(state.inventory, data["item_id"], now)})

    logger.warning(f"No inverse for {action.type.value}; dropped")
    return state


@app.post("/undo")
async def undo_endpoint():
    state = _current()
    ledger, action = pop_undo(state.undo, _now())
    if action is None:
        raise HTTPException(404, "Nothing to undo")
    state = _apply_inverse(state.model_copy(update={"undo": ledger}), action)
    _commit(state)
    logger.info(f"Undid: {action.description}")
    return {"undone": action.description, "type": action.type.value}


# ──────────────────────────────────────────────────────────────
# GET / PUT /config
# ──────────────────────────────────────────────────────────────

@app.get("/config")
async def get_config():
    """Return the current engine configuration."""
    return _config.to_dict()


@app.put("/config")
async def update_config(updates: dict):
    """Update specific configuration parameters."""
    global _config
    for key, value in updates.items():
        if hasattr(_config, key):
            setattr(_config, key, value)
        else:
            raise HTTPException(400, f"Unknown config key: {key}")
    return _config.to_dict()
