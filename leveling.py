"""
Leveling model — exponential XP curve and its inverse.

  xp_for_level(n)   = floor(100 × 1.15^(n−1))
  level_from_total_xp walks the curve from level 1 until the running sum
  would exceed the player's total XP.

Roles: Novice(1) → Apprentice(5) → Warrior(10) → Knight(20) → Champion(35)
       → Hero(50) → Legend(75) → Mythic(100+)
"""

from __future__ import annotations

import math
from typing import NamedTuple

from config import EngineConfig
from errors import LevelCapExceeded
from models import LevelProgress


# ── Role bands ────────────────────────────────────────────────

class PlayerRole(NamedTuple):
    name: str
    min_level: int
    max_level: float
    icon: str


PLAYER_ROLES = [
    PlayerRole("Novice", 1, 4, "🗡️"),
    PlayerRole("Apprentice", 5, 9, "⚔️"),
    PlayerRole("Warrior", 10, 19, "🛡️"),
    PlayerRole("Knight", 20, 34, "🏰"),
    PlayerRole("Champion", 35, 49, "👑"),
    PlayerRole("Hero", 50, 74, "🌟"),
    PlayerRole("Legend", 75, 99, "⭐"),
    PlayerRole("Mythic", 100, math.inf, "🔥"),
]


def player_role(level: int) -> PlayerRole:
    for role in PLAYER_ROLES:
        if role.min_level <= level <= role.max_level:
            return role
    return PLAYER_ROLES[0]


# ── Curve ─────────────────────────────────────────────────────

def xp_for_level(level: int, cfg: EngineConfig | None = None) -> int:
    """XP needed to clear ``level`` (level 1 → 100)."""
    if cfg is None:
        cfg = EngineConfig()
    if level < 1:
        raise ValueError("level must be >= 1")
    return math.floor(cfg.level_base_xp * cfg.level_growth ** (level - 1))


def cumulative_xp(level: int, cfg: EngineConfig | None = None) -> int:
    """Total XP at which ``level`` starts."""
    if cfg is None:
        cfg = EngineConfig()
    return sum(xp_for_level(n, cfg) for n in range(1, level))


def level_from_total_xp(total_xp: int, cfg: EngineConfig | None = None) -> LevelProgress:
    """
    Inverse of the curve.

    Raises ValueError on negative input and LevelCapExceeded if the walk
    passes ``cfg.max_level_iterations`` levels.
    """
    if cfg is None:
        cfg = EngineConfig()
    if total_xp < 0:
        raise ValueError("total_xp must be non-negative")

    level = 1
    xp_used = 0
    while level <= cfg.max_level_iterations:
        try:
            needed = xp_for_level(level, cfg)
        except OverflowError as e:
            raise LevelCapExceeded(f"XP curve overflowed at level {level}") from e
        if xp_used + needed > total_xp:
            return LevelProgress(
                level=level,
                current_level_xp=total_xp - xp_used,
                xp_for_next_level=needed,
            )
        xp_used += needed
        level += 1

    raise LevelCapExceeded(
        f"total_xp={total_xp} exceeds {cfg.max_level_iterations} levels"
    )


def levels_gained(before_xp: int, after_xp: int, cfg: EngineConfig | None = None) -> int:
    """How many level-ups a change in total XP produced (0 if none or negative)."""
    before = level_from_total_xp(before_xp, cfg).level
    after = level_from_total_xp(after_xp, cfg).level
    return max(0, after - before)
