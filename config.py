"""
EngineConfig — every tunable constant of the progression engine.

Defaults reproduce the shipped game balance. ``from_env`` reads the few
deployment knobs from the environment (``.env`` is honoured via python-dotenv);
everything else is changed at runtime through ``PUT /config``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields

from dotenv import load_dotenv


def _default_rarity_xp() -> dict:
    return {"common": 10, "rare": 25, "legendary": 50}


def _default_stage_thresholds() -> dict:
    return {1: 0, 2: 100, 3: 500, 4: 2000, 5: 10000}


@dataclass
class EngineConfig:
    # ── Rewards ────────────────────────────────────────────
    rarity_base_xp: dict = field(default_factory=_default_rarity_xp)
    coin_ratio: float = 0.5              # base coins = base XP × ratio
    time_bonus_slope: float = 0.2        # per unit of efficiency above 1
    time_bonus_cap: float = 0.3          # +30% max
    focus_xp_per_minute: float = 2.0
    focus_coins_per_minute: float = 0.5
    milestone_coin_ratio: float = 0.5

    # ── Level curve ────────────────────────────────────────
    level_base_xp: int = 100
    level_growth: float = 1.15
    max_level_iterations: int = 10_000
    skill_points_per_level: int = 1

    # ── Habits ─────────────────────────────────────────────
    momentum_cap: float = 1.0            # momentum bonus cap → 2× total
    momentum_miss_penalty: float = 0.1
    difficulty_cap: float = 5.0
    difficulty_step_every: int = 7       # streak days
    history_limit: int = 366

    # ── Companion ──────────────────────────────────────────
    stage_thresholds: dict = field(default_factory=_default_stage_thresholds)
    points_per_task: float = 5.0
    points_per_focus_minute: float = 0.5
    points_per_habit: float = 3.0
    overwork_energy_cost: float = 15.0
    activity_energy_cost: float = 3.0
    overwork_happiness_penalty: float = 10.0
    daily_energy_recovery: float = 20.0
    daily_happiness_gain: float = 5.0
    absence_happiness_penalty: float = 10.0   # per day away

    # ── Burnout ────────────────────────────────────────────
    weight_overwork: float = 0.4
    weight_missed_breaks: float = 0.2
    weight_streak_pressure: float = 0.2
    weight_deadline_density: float = 0.2

    # ── Undo ───────────────────────────────────────────────
    undo_window_seconds: int = 30
    undo_capacity: int = 10

    # ── Sweeps ─────────────────────────────────────────────
    sweep_interval_seconds: int = 60

    # ── Invariant handling (raise in dev, clamp in prod) ───
    strict_invariants: bool = True

    @classmethod
    def from_env(cls) -> "EngineConfig":
        load_dotenv()
        cfg = cls()
        env = os.getenv("PIXELQUEST_ENV", "development").lower()
        cfg.strict_invariants = env != "production"
        window = os.getenv("PIXELQUEST_UNDO_WINDOW_SECONDS")
        if window:
            cfg.undo_window_seconds = int(window)
        return cfg

    @classmethod
    def from_dict(cls, data: dict) -> "EngineConfig":
        """Build from a (possibly partial) dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict:
        return dict(self.__dict__)
