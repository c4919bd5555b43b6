from datetime import datetime

from achievements import (
    check_achievements,
    default_achievements,
    merge_achievements,
    unlocked_achievements,
)
from models import AchievementStats

NOW = datetime(2024, 1, 15, 12, 0)


def test_catalogue() -> None:
    achievements = default_achievements()
    assert len(achievements) == 14
    assert not any(a.unlocked for a in achievements)


def test_first_quest_unlocks_once() -> None:
    achievements, newly = check_achievements(default_achievements(), AchievementStats(quests_completed=1), NOW)
    assert [a.id for a in newly] == ["first_quest"]
    assert newly[0].unlocked_at == NOW

    achievements, newly = check_achievements(achievements, AchievementStats(quests_completed=1), NOW)
    assert newly == []


def test_unlocks_are_one_way() -> None:
    achievements, _ = check_achievements(default_achievements(), AchievementStats(streak=7), NOW)
    achievements, _ = check_achievements(achievements, AchievementStats(streak=0), NOW)
    assert {a.id for a in unlocked_achievements(achievements)} == {"streak_3", "streak_7"}


def test_merge_keeps_saved_unlocks() -> None:
    achievements, _ = check_achievements(default_achievements(), AchievementStats(legendary_completed=1), NOW)
    merged = merge_achievements([a for a in achievements if a.unlocked])
    assert len(merged) == 14
    legendary = next(a for a in merged if a.id == "legendary_1")
    assert legendary.unlocked
    assert legendary.unlocked_at == NOW
