"""
Pydantic schemas for the PixelQuest progression engine.

Groups:
  A. Vocabularies (closed enums)
  B. Quests / tasks and rewards
  C. Habits
  D. Companion
  E. Burnout, skills, challenges, achievements
  F. Projects and focus sessions
  G. Coins, shop and undo
  H. Analytics and the application state
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field

_Date = date  # for fields named ``date``


def _new_id() -> str:
    return str(uuid.uuid4())


# ──────────────────────────────────────────────────────────────
# A. Vocabularies
# ──────────────────────────────────────────────────────────────


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    LEGENDARY = "legendary"


class Difficulty(str, Enum):
    TRIVIAL = "trivial"
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"
    EPIC = "epic"
    BOSS = "boss"


class EnergyType(str, Enum):
    MENTAL = "mental"
    PHYSICAL = "physical"
    CREATIVE = "creative"


class TaskPriority(str, Enum):
    URGENT_IMPORTANT = "urgent-important"
    URGENT = "urgent"
    IMPORTANT = "important"
    NEITHER = "neither"


class TaskStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    MISSED = "missed"
    ABANDONED = "abandoned"
    POSTPONED = "postponed"
    BLOCKED = "blocked"


class RepeatFrequency(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class DependencyRelation(str, Enum):
    BLOCKS = "blocks"
    BLOCKED_BY = "blocked-by"


class HabitType(str, Enum):
    BINARY = "binary"
    SCALED = "scaled"


class HabitPolarity(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class Archetype(str, Enum):
    FOCUS = "focus"
    HABIT = "habit"
    PROJECT = "project"
    BALANCED = "balanced"


class Mood(str, Enum):
    ECSTATIC = "ecstatic"
    HAPPY = "happy"
    CONTENT = "content"
    NEUTRAL = "neutral"
    TIRED = "tired"
    EXHAUSTED = "exhausted"
    SAD = "sad"


class BonusType(str, Enum):
    XP = "xp"
    COINS = "coins"
    FOCUS = "focus"
    HABIT_STREAK = "habit-streak"
    TASK_EFFICIENCY = "task-efficiency"


class SkillCategory(str, Enum):
    TIME_MANAGEMENT = "time-management"
    FOCUS = "focus"
    DISCIPLINE = "discipline"
    LEARNING = "learning"
    HEALTH = "health"
    CREATIVITY = "creativity"


class SkillEffectType(str, Enum):
    XP_BONUS = "xp-bonus"
    COIN_BONUS = "coin-bonus"
    FOCUS_DURATION = "focus-duration"
    STREAK_PROTECTION = "streak-protection"
    TASK_SUGGESTION = "task-suggestion"
    DEADLINE_WARNING = "deadline-warning"
    ENERGY_EFFICIENCY = "energy-efficiency"
    MOMENTUM_BOOST = "momentum-boost"


class UnlockFailure(str, Enum):
    NOT_FOUND = "not_found"
    ALREADY_UNLOCKED = "already_unlocked"
    INSUFFICIENT_POINTS = "insufficient_points"
    PREREQUISITES_UNMET = "prerequisites_unmet"


class ChallengeType(str, Enum):
    COMPLETE_QUESTS = "complete_quests"
    EARN_XP = "earn_xp"
    COMPLETE_RARITY = "complete_rarity"


class AchievementType(str, Enum):
    QUESTS_COMPLETED = "quests_completed"
    XP_EARNED = "xp_earned"
    STREAK = "streak"
    LEGENDARY_COMPLETED = "legendary_completed"
    DAILY_CHALLENGES = "daily_challenges"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class FocusSessionType(str, Enum):
    DEEP_WORK = "deep-work"
    SHALLOW = "shallow"
    CREATIVE = "creative"
    LEARNING = "learning"


class UndoActionType(str, Enum):
    TASK_DELETE = "task-delete"
    TASK_COMPLETE = "task-complete"
    HABIT_MISS = "habit-miss"
    ITEM_PURCHASE = "item-purchase"
    SKILL_UNLOCK = "skill-unlock"


class ShopCategory(str, Enum):
    CONSUMABLE = "consumable"
    COSMETIC = "cosmetic"
    BOOST = "boost"
    COMPANION = "companion"


class ShopEffectType(str, Enum):
    STREAK_FREEZE = "streak-freeze"
    DEADLINE_EXTEND = "deadline-extend"
    CHALLENGE_REROLL = "challenge-reroll"
    XP_BOOST = "xp-boost"
    COMPANION_ITEM = "companion-item"


# ──────────────────────────────────────────────────────────────
# B. Quests / tasks and rewards
# ──────────────────────────────────────────────────────────────


class Reward(BaseModel):
    xp: int = 0
    coins: int = 0


class Subtask(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str = Field(..., min_length=1)
    completed: bool = False
    completed_at: Optional[datetime] = None


class TaskDependency(BaseModel):
    task_id: str
    relation: DependencyRelation = DependencyRelation.BLOCKED_BY


class Task(BaseModel):
    """A quest: a discrete trackable unit of work carrying a reward."""

    id: str = Field(default_factory=_new_id)
    title: str = Field(..., min_length=1)
    description: str = ""
    rarity: Rarity = Rarity.COMMON
    difficulty: Difficulty = Difficulty.NORMAL
    energy_type: EnergyType = EnergyType.MENTAL
    category: str = "other"
    priority: TaskPriority = TaskPriority.NEITHER
    status: TaskStatus = TaskStatus.ACTIVE

    xp_reward: int = Field(default=0, ge=0)
    coin_reward: int = Field(default=0, ge=0)

    estimated_minutes: Optional[int] = Field(default=None, gt=0)
    actual_minutes: Optional[int] = Field(default=None, ge=0)
    started_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    soft_deadline: Optional[datetime] = None
    hard_deadline: Optional[datetime] = None

    repeat_frequency: RepeatFrequency = RepeatFrequency.NONE
    repeat_days: Optional[list[int]] = None  # 0-6, Sun-Sat
    last_completed_date: Optional[date] = None

    dependencies: list[TaskDependency] = Field(default_factory=list)
    subtasks: list[Subtask] = Field(default_factory=list)


class TaskCreate(BaseModel):
    """Payload for creating a task; rewards are derived, never supplied."""

    title: str = Field(..., min_length=1)
    description: str = ""
    rarity: Rarity = Rarity.COMMON
    difficulty: Difficulty = Difficulty.NORMAL
    energy_type: EnergyType = EnergyType.MENTAL
    category: str = "other"
    priority: TaskPriority = TaskPriority.NEITHER
    estimated_minutes: Optional[int] = Field(default=None, gt=0)
    soft_deadline: Optional[datetime] = None
    hard_deadline: Optional[datetime] = None
    repeat_frequency: RepeatFrequency = RepeatFrequency.NONE
    repeat_days: Optional[list[int]] = None
    subtasks: list[str] = Field(default_factory=list)


class TaskSuggestion(BaseModel):
    task_id: str
    reason: str
    priority: int
    category: str  # quick-win | energy-match | time-sensitive


class TaskCompletion(BaseModel):
    """Result of completing a task. On failure ``tasks`` is the input list."""

    ok: bool
    tasks: list[Task]
    task: Optional[Task] = None
    reward: Reward = Field(default_factory=Reward)
    repeated: bool = False
    reason: Optional[str] = None  # not_found | already_completed | blocked
    message: str = ""


# ──────────────────────────────────────────────────────────────
# C. Habits
# ──────────────────────────────────────────────────────────────


class HabitCompletion(BaseModel):
    date: _Date
    completed: bool
    value: Optional[float] = None


class Habit(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str = Field(..., min_length=1)
    description: str = ""
    type: HabitType = HabitType.BINARY
    polarity: HabitPolarity = HabitPolarity.POSITIVE

    target_value: Optional[float] = None
    current_value: Optional[float] = None
    unit: Optional[str] = None

    current_streak: int = Field(default=0, ge=0)
    best_streak: int = Field(default=0, ge=0)
    miss_tolerance_days: int = Field(default=0, ge=0)
    streak_decay_rate: float = Field(default=0.5, ge=0, le=1)

    momentum_multiplier: float = Field(default=1.0, ge=1)
    momentum_growth_rate: float = Field(default=0.05, ge=0)

    difficulty_level: float = Field(default=1.0, ge=1, le=5)
    difficulty_scale_rate: float = Field(default=0.5, ge=0)

    total_completions: int = Field(default=0, ge=0)
    total_misses: int = Field(default=0, ge=0)
    completion_history: list[HabitCompletion] = Field(default_factory=list)

    base_xp: int = Field(default=10, ge=0)
    base_coins: int = Field(default=5, ge=0)

    created_at: datetime = Field(default_factory=datetime.now)
    last_completed_date: Optional[date] = None
    last_missed_date: Optional[date] = None
    last_reconciled_date: Optional[date] = None


class HabitCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    type: HabitType = HabitType.BINARY
    polarity: HabitPolarity = HabitPolarity.POSITIVE
    target_value: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = None
    miss_tolerance_days: int = Field(default=0, ge=0)
    streak_decay_rate: float = Field(default=0.5, ge=0, le=1)
    momentum_growth_rate: float = Field(default=0.05, ge=0)
    difficulty_scale_rate: float = Field(default=0.5, ge=0)
    base_xp: int = Field(default=10, ge=0)
    base_coins: int = Field(default=5, ge=0)


class HabitCompletionResult(BaseModel):
    habit: Habit
    xp: int = 0
    coins: int = 0


class HabitStats(BaseModel):
    success_rate: float
    current_streak: int
    best_streak: int
    average_value: Optional[float] = None
    weakest_day: int  # 0-6, Sun-Sat


# ──────────────────────────────────────────────────────────────
# D. Companion
# ──────────────────────────────────────────────────────────────

# Lower bound of (energy + happiness) / 2 for each mood, best first.
MOOD_BANDS: list[tuple[float, Mood]] = [
    (90, Mood.ECSTATIC),
    (70, Mood.HAPPY),
    (50, Mood.CONTENT),
    (30, Mood.NEUTRAL),
    (15, Mood.TIRED),
    (5, Mood.EXHAUSTED),
]


def mood_from_stats(energy: float, happiness: float) -> Mood:
    combined = (energy + happiness) / 2
    for floor, mood in MOOD_BANDS:
        if combined >= floor:
            return mood
    return Mood.SAD


class CompanionBonus(BaseModel):
    type: BonusType
    value: float
    description: str = ""


class Companion(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = "Pixel"
    archetype: Archetype = Archetype.BALANCED
    evolution_stage: int = Field(default=1, ge=1, le=5)

    energy: float = Field(default=100, ge=0, le=100)
    happiness: float = Field(default=70, ge=0, le=100)

    total_tasks_witnessed: int = Field(default=0, ge=0)
    total_focus_minutes: float = Field(default=0, ge=0)
    total_habits_witnessed: int = Field(default=0, ge=0)
    evolution_points: float = Field(default=0, ge=0)
    evolution_path: list[Archetype] = Field(default_factory=list)

    active_bonus: Optional[CompanionBonus] = None

    skin: str = "default"
    accessories: list[str] = Field(default_factory=list)

    last_interaction_date: date = Field(default_factory=date.today)
    consecutive_days_active: int = 0
    created_at: datetime = Field(default_factory=datetime.now)

    @computed_field
    @property
    def mood(self) -> Mood:
        return mood_from_stats(self.energy, self.happiness)


class Activity(BaseModel):
    """One batch of user activity reported to the companion."""

    tasks_completed: int = Field(default=0, ge=0)
    focus_minutes: float = Field(default=0, ge=0)
    habits_completed: int = Field(default=0, ge=0)
    is_overworking: bool = False


# ──────────────────────────────────────────────────────────────
# E. Burnout, skills, challenges, achievements
# ──────────────────────────────────────────────────────────────


class BurnoutFactors(BaseModel):
    overwork: float = Field(default=0, ge=0, le=100)
    missed_breaks: float = Field(default=0, ge=0, le=100)
    streak_pressure: float = Field(default=0, ge=0, le=100)
    deadline_density: float = Field(default=0, ge=0, le=100)


class BurnoutWarning(BaseModel):
    code: str
    message: str


class BurnoutReport(BaseModel):
    level: int = Field(default=0, ge=0, le=100)
    factors: BurnoutFactors = Field(default_factory=BurnoutFactors)
    warnings: list[BurnoutWarning] = Field(default_factory=list)
    last_checked: Optional[datetime] = None


class SkillEffect(BaseModel):
    type: SkillEffectType
    value: float
    description: str = ""


class SkillNode(BaseModel):
    id: str
    name: str
    description: str = ""
    category: SkillCategory
    tier: int = Field(..., ge=1, le=5)
    cost: int = Field(..., ge=0)
    prerequisites: list[str] = Field(default_factory=list)
    unlocked: bool = False
    effect: SkillEffect


class SkillTree(BaseModel):
    skill_points: int = Field(default=0, ge=0)
    total_points_earned: int = Field(default=0, ge=0)
    nodes: list[SkillNode] = Field(default_factory=list)
    unlocked_nodes: list[str] = Field(default_factory=list)
    active_effects: list[SkillEffect] = Field(default_factory=list)


class UnlockResult(BaseModel):
    ok: bool
    tree: SkillTree
    reason: Optional[UnlockFailure] = None
    message: str = ""


class DailyChallenge(BaseModel):
    id: str
    title: str
    description: str
    xp_reward: int
    requirement: int
    progress: int = 0
    type: ChallengeType
    rarity_required: Optional[Rarity] = None
    completed: bool = False
    date: _Date


class ChallengeBoard(BaseModel):
    date: Optional[_Date] = None
    challenges: list[DailyChallenge] = Field(default_factory=list)
    completed_count: int = 0


class Achievement(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    requirement: int
    type: AchievementType
    unlocked: bool = False
    unlocked_at: Optional[datetime] = None


class AchievementStats(BaseModel):
    quests_completed: int = 0
    xp_earned: int = 0
    streak: int = 0
    legendary_completed: int = 0
    daily_challenges_completed: int = 0


# ──────────────────────────────────────────────────────────────
# F. Projects and focus sessions
# ──────────────────────────────────────────────────────────────


class Milestone(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str = Field(..., min_length=1)
    description: str = ""
    target_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    xp_reward: int = Field(default=50, ge=0)
    tasks: list[str] = Field(default_factory=list)


class ProjectRetrospective(BaseModel):
    completed_at: datetime
    achievements: list[str] = Field(default_factory=list)
    challenges: list[str] = Field(default_factory=list)
    lessons_learned: list[str] = Field(default_factory=list)
    rating: int = Field(..., ge=1, le=5)


class Project(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str = Field(..., min_length=1)
    description: str = ""
    status: ProjectStatus = ProjectStatus.PLANNING

    milestones: list[Milestone] = Field(default_factory=list)
    current_milestone_index: int = Field(default=0, ge=0)

    risk_level: float = Field(default=0, ge=0, le=100)
    risk_factors: list[str] = Field(default_factory=list)

    start_date: datetime = Field(default_factory=datetime.now)
    target_end_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None

    total_xp_earned: int = 0
    total_coins_earned: int = 0
    retrospective: Optional[ProjectRetrospective] = None
    created_at: datetime = Field(default_factory=datetime.now)


class FocusBreak(BaseModel):
    start: datetime
    end: Optional[datetime] = None


class DistractionEntry(BaseModel):
    timestamp: datetime
    description: str = ""
    duration_minutes: float = Field(default=0, ge=0)


class FocusSession(BaseModel):
    id: str = Field(default_factory=_new_id)
    type: FocusSessionType = FocusSessionType.DEEP_WORK
    task_id: Optional[str] = None

    planned_minutes: int = Field(..., gt=0)
    actual_minutes: int = Field(default=0, ge=0)
    started_at: datetime
    ended_at: Optional[datetime] = None

    breaks: list[FocusBreak] = Field(default_factory=list)
    distraction_log: list[DistractionEntry] = Field(default_factory=list)
    focus_quality: float = Field(default=100, ge=0, le=100)

    xp_earned: int = 0
    coins_earned: int = 0


class FocusStreak(BaseModel):
    current_streak: int = Field(default=0, ge=0)
    best_streak: int = Field(default=0, ge=0)
    last_session_date: Optional[date] = None
    today_minutes: int = 0
    average_session_quality: float = 0
    sessions_recorded: int = 0


class MilestoneCompletion(BaseModel):
    ok: bool
    project: Project
    reward: Reward = Field(default_factory=Reward)
    project_completed: bool = False
    reason: Optional[str] = None  # not_found | already_completed | out_of_order
    message: str = ""


class FocusCompletion(BaseModel):
    session: FocusSession
    streak: FocusStreak
    reward: Reward
    effective_minutes: float


# ──────────────────────────────────────────────────────────────
# G. Coins, shop and undo
# ──────────────────────────────────────────────────────────────


class ShopItemEffect(BaseModel):
    type: ShopEffectType
    value: float
    duration_hours: Optional[float] = None


class ShopItem(BaseModel):
    id: str
    name: str
    description: str
    cost: int
    category: ShopCategory
    stock: int = -1  # -1 = unlimited, otherwise per day
    max_ownable: int
    effect: Optional[ShopItemEffect] = None


class OwnedItem(BaseModel):
    item_id: str
    quantity: int = Field(default=0, ge=0)


class ActiveEffect(BaseModel):
    effect_type: ShopEffectType
    value: float
    expires_at: datetime


class CoinTransaction(BaseModel):
    id: str = Field(default_factory=_new_id)
    amount: int
    kind: str  # earn | spend | revoke
    source: str
    description: str = ""
    timestamp: datetime


class Inventory(BaseModel):
    coins: int = Field(default=0, ge=0)
    owned_items: list[OwnedItem] = Field(default_factory=list)
    active_effects: list[ActiveEffect] = Field(default_factory=list)
    transactions: list[CoinTransaction] = Field(default_factory=list)
    shop_stock: dict[str, int] = Field(default_factory=dict)
    stock_date: Optional[date] = None


class UndoAction(BaseModel):
    id: str = Field(default_factory=_new_id)
    type: UndoActionType
    inverse_data: dict[str, Any] = Field(default_factory=dict)
    description: str = ""
    timestamp: datetime
    expires_at: datetime


class UndoLedger(BaseModel):
    entries: list[UndoAction] = Field(default_factory=list)


class Outcome(BaseModel):
    """Generic precondition result for operations without a richer payload."""

    ok: bool
    reason: Optional[str] = None
    message: str = ""


class ShopResult(BaseModel):
    ok: bool
    inventory: Inventory
    effect: Optional[ShopItemEffect] = None
    reason: Optional[str] = None
    message: str = ""


# ──────────────────────────────────────────────────────────────
# H. Analytics and the application state
# ──────────────────────────────────────────────────────────────


class DailyStats(BaseModel):
    date: _Date
    tasks_completed: int = 0
    tasks_created: int = 0
    xp_earned: int = 0
    coins_earned: int = 0
    focus_minutes: float = 0
    habits_completed: int = 0
    habits_missed: int = 0
    energy_distribution: dict[EnergyType, float] = Field(
        default_factory=lambda: {e: 0.0 for e in EnergyType}
    )
    productivity_score: int = 0


class WeeklyReport(BaseModel):
    week_start: date
    week_end: date
    total_tasks: int
    total_xp: int
    total_coins: int
    total_focus_minutes: float
    habit_success_rate: float
    most_productive_day: int
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class LevelProgress(BaseModel):
    level: int
    current_level_xp: int
    xp_for_next_level: int


class PlayerProfile(BaseModel):
    total_xp: int = Field(default=0, ge=0)
    quests_completed: int = 0
    legendary_completed: int = 0


class AppState(BaseModel):
    """Everything a single user session owns. Reducers return new copies."""

    profile: PlayerProfile = Field(default_factory=PlayerProfile)
    inventory: Inventory = Field(default_factory=Inventory)
    tasks: list[Task] = Field(default_factory=list)
    habits: list[Habit] = Field(default_factory=list)
    companion: Companion = Field(default_factory=Companion)
    skills: SkillTree = Field(default_factory=SkillTree)
    projects: list[Project] = Field(default_factory=list)
    focus_sessions: list[FocusSession] = Field(default_factory=list)
    active_focus: Optional[FocusSession] = None
    focus_streak: FocusStreak = Field(default_factory=FocusStreak)
    challenges: ChallengeBoard = Field(default_factory=ChallengeBoard)
    achievements: list[Achievement] = Field(default_factory=list)
    daily_stats: list[DailyStats] = Field(default_factory=list)
    burnout: BurnoutReport = Field(default_factory=BurnoutReport)
    undo: UndoLedger = Field(default_factory=UndoLedger)
    last_processed_date: Optional[date] = None
