"""
Reward calculator — pure functions, no I/O.

Mechanics:
  - Base XP by rarity: common 10, rare 25, legendary 50
  - Base coins: half the rarity's base XP
  - Difficulty multiplies XP and coins through separate tables
  - Finishing faster than estimated adds up to +30% (never a penalty for slower)
  - Focus sessions: 2 XP and 0.5 coins per effective minute, scaled by quality
  - Milestones: coins are half the milestone's XP
"""

from __future__ import annotations

import math
from typing import NamedTuple

from config import EngineConfig
from models import Difficulty, Rarity, Reward


# ── Difficulty table ──────────────────────────────────────────

class DifficultyMultiplier(NamedTuple):
    xp: float
    coins: float
    base_minutes: int


DIFFICULTY_MULTIPLIERS: dict[Difficulty, DifficultyMultiplier] = {
    Difficulty.TRIVIAL: DifficultyMultiplier(0.5, 0.25, 5),
    Difficulty.EASY: DifficultyMultiplier(0.75, 0.5, 15),
    Difficulty.NORMAL: DifficultyMultiplier(1.0, 1.0, 30),
    Difficulty.HARD: DifficultyMultiplier(1.5, 1.5, 60),
    Difficulty.EPIC: DifficultyMultiplier(2.5, 2.5, 120),
    Difficulty.BOSS: DifficultyMultiplier(5.0, 5.0, 240),
}

DIFFICULTY_ORDER = list(DIFFICULTY_MULTIPLIERS)
RARITY_ORDER = [Rarity.COMMON, Rarity.RARE, Rarity.LEGENDARY]


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (``round`` would bank to even)."""
    return int(math.floor(value + 0.5))


def base_xp(rarity: Rarity, cfg: EngineConfig | None = None) -> int:
    if cfg is None:
        cfg = EngineConfig()
    return cfg.rarity_base_xp[Rarity(rarity).value]


def base_coins(rarity: Rarity, cfg: EngineConfig | None = None) -> float:
    if cfg is None:
        cfg = EngineConfig()
    return base_xp(rarity, cfg) * cfg.coin_ratio


def time_bonus(
    estimated_minutes: float | None,
    actual_minutes: float | None,
    cfg: EngineConfig | None = None,
) -> float:
    """
    1 + min((efficiency − 1) × slope, cap) where efficiency = estimated / actual.

    Returns 1.0 when either value is missing/non-positive or the task ran long.
    """
    if cfg is None:
        cfg = EngineConfig()
    if not estimated_minutes or not actual_minutes:
        return 1.0
    if estimated_minutes <= 0 or actual_minutes <= 0:
        return 1.0
    efficiency = estimated_minutes / actual_minutes
    if efficiency < 1:
        return 1.0
    return 1 + min((efficiency - 1) * cfg.time_bonus_slope, cfg.time_bonus_cap)


# ── Main reward function ──────────────────────────────────────

def compute_reward(
    difficulty: Difficulty,
    rarity: Rarity,
    estimated_minutes: float | None = None,
    actual_minutes: float | None = None,
    cfg: EngineConfig | None = None,
) -> Reward:
    """
    Map (difficulty, rarity, efficiency) → {xp, coins}.

    >>> compute_reward(Difficulty.HARD, Rarity.RARE)
    Reward(xp=38, coins=19)
    """
    if cfg is None:
        cfg = EngineConfig()

    mult = DIFFICULTY_MULTIPLIERS[Difficulty(difficulty)]
    bonus = time_bonus(estimated_minutes, actual_minutes, cfg)

    return Reward(
        xp=round_half_up(base_xp(rarity, cfg) * mult.xp * bonus),
        coins=round_half_up(base_coins(rarity, cfg) * mult.coins * bonus),
    )


def focus_reward(
    effective_minutes: float,
    focus_quality: float,
    cfg: EngineConfig | None = None,
) -> Reward:
    """Focus session payout: per-minute rates scaled by quality / 100."""
    if cfg is None:
        cfg = EngineConfig()
    minutes = max(0.0, effective_minutes)
    quality = max(0.0, min(100.0, focus_quality)) / 100
    return Reward(
        xp=round_half_up(minutes * cfg.focus_xp_per_minute * quality),
        coins=round_half_up(minutes * cfg.focus_coins_per_minute * quality),
    )


def milestone_reward(xp_reward: int, cfg: EngineConfig | None = None) -> Reward:
    if cfg is None:
        cfg = EngineConfig()
    return Reward(xp=xp_reward, coins=round_half_up(xp_reward * cfg.milestone_coin_ratio))


def apply_bonus(reward: Reward, xp_bonus: float = 0.0, coin_bonus: float = 0.0) -> Reward:
    """Stack additive percentage bonuses (0.1 = +10%) on top of a base reward."""
    return Reward(
        xp=round_half_up(reward.xp * (1 + max(0.0, xp_bonus))),
        coins=round_half_up(reward.coins * (1 + max(0.0, coin_bonus))),
    )
