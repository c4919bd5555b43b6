"""Achievement catalogue and one-way unlock checks."""

from __future__ import annotations

import logging
from datetime import datetime

from models import Achievement, AchievementStats, AchievementType

logger = logging.getLogger(__name__)

T = AchievementType

# (id, name, description, icon, requirement, type)
_CATALOGUE = [
    ("first_quest", "First Steps", "Complete your first quest", "sword", 1, T.QUESTS_COMPLETED),
    ("quest_10", "Quest Hunter", "Complete 10 quests", "trophy", 10, T.QUESTS_COMPLETED),
    ("quest_50", "Quest Master", "Complete 50 quests", "crown", 50, T.QUESTS_COMPLETED),
    ("quest_100", "Legendary Adventurer", "Complete 100 quests", "star", 100, T.QUESTS_COMPLETED),
    ("xp_500", "Rising Star", "Earn 500 XP", "star", 500, T.XP_EARNED),
    ("xp_2000", "XP Collector", "Earn 2000 XP", "star", 2000, T.XP_EARNED),
    ("xp_10000", "XP Legend", "Earn 10000 XP", "crown", 10000, T.XP_EARNED),
    ("streak_3", "Consistent", "Maintain a 3 day streak", "flame", 3, T.STREAK),
    ("streak_7", "Dedicated", "Maintain a 7 day streak", "flame", 7, T.STREAK),
    ("streak_30", "Unstoppable", "Maintain a 30 day streak", "flame", 30, T.STREAK),
    ("legendary_1", "Dragon Slayer", "Complete a legendary quest", "crown", 1, T.LEGENDARY_COMPLETED),
    ("legendary_10", "Mythic Hero", "Complete 10 legendary quests", "crown", 10, T.LEGENDARY_COMPLETED),
    ("daily_5", "Daily Warrior", "Complete 5 daily challenges", "target", 5, T.DAILY_CHALLENGES),
    ("daily_20", "Daily Champion", "Complete 20 daily challenges", "target", 20, T.DAILY_CHALLENGES),
]

_STAT_FOR_TYPE = {
    T.QUESTS_COMPLETED: "quests_completed",
    T.XP_EARNED: "xp_earned",
    T.STREAK: "streak",
    T.LEGENDARY_COMPLETED: "legendary_completed",
    T.DAILY_CHALLENGES: "daily_challenges_completed",
}


def default_achievements() -> list[Achievement]:
    return [
        Achievement(id=i, name=n, description=d, icon=icon, requirement=req, type=kind)
        for i, n, d, icon, req, kind in _CATALOGUE
    ]


def merge_achievements(saved: list[Achievement]) -> list[Achievement]:
    """Defaults with any saved unlock state carried over; drops retired ids."""
    by_id = {a.id: a for a in saved}
    merged = []
    for default in default_achievements():
        prior = by_id.get(default.id)
        if prior is not None and prior.unlocked:
            default = default.model_copy(update={"unlocked": True, "unlocked_at": prior.unlocked_at})
        merged.append(default)
    return merged


def check_achievements(
    achievements: list[Achievement],
    stats: AchievementStats,
    now: datetime,
) -> tuple[list[Achievement], list[Achievement]]:
    """Returns (all achievements, the ones this call unlocked)."""
    updated = []
    newly = []
    for a in achievements:
        if not a.unlocked and getattr(stats, _STAT_FOR_TYPE[a.type]) >= a.requirement:
            a = a.model_copy(update={"unlocked": True, "unlocked_at": now})
            newly.append(a)
            logger.info(f"Achievement unlocked: {a.name}")
        updated.append(a)
    return updated, newly


def unlocked_achievements(achievements: list[Achievement]) -> list[Achievement]:
    return [a for a in achievements if a.unlocked]
