import pytest

from config import EngineConfig
from errors import LevelCapExceeded
from leveling import (
    cumulative_xp,
    level_from_total_xp,
    levels_gained,
    player_role,
    xp_for_level,
)


def test_xp_curve() -> None:
    assert xp_for_level(1) == 100
    assert xp_for_level(2) == 115
    assert xp_for_level(3) == 132


def test_xp_for_level_rejects_zero() -> None:
    with pytest.raises(ValueError):
        xp_for_level(0)


def test_level_boundaries() -> None:
    assert level_from_total_xp(0).level == 1
    assert level_from_total_xp(99).level == 1
    assert level_from_total_xp(100).level == 2
    assert level_from_total_xp(214).level == 2
    assert level_from_total_xp(215).level == 3


def test_level_progress_within_level() -> None:
    progress = level_from_total_xp(214)
    assert progress.current_level_xp == 114
    assert progress.xp_for_next_level == 115


def test_cumulative_xp_is_inverse_of_lookup() -> None:
    assert cumulative_xp(1) == 0
    assert cumulative_xp(3) == 215
    for level in (2, 5, 10, 25):
        assert level_from_total_xp(cumulative_xp(level)).level == level
        assert level_from_total_xp(cumulative_xp(level) - 1).level == level - 1


def test_negative_xp_is_rejected() -> None:
    with pytest.raises(ValueError):
        level_from_total_xp(-1)


def test_lookup_stops_at_iteration_cap() -> None:
    with pytest.raises(LevelCapExceeded):
        level_from_total_xp(10**6, EngineConfig(max_level_iterations=5))


def test_levels_gained() -> None:
    assert levels_gained(90, 220) == 2
    assert levels_gained(220, 90) == 0


def test_player_roles() -> None:
    assert player_role(1).name == "Novice"
    assert player_role(4).name == "Novice"
    assert player_role(5).name == "Apprentice"
    assert player_role(35).name == "Champion"
    assert player_role(100).name == "Mythic"
    assert player_role(150).name == "Mythic"


def test_level_lookup_round_trips() -> None:
    for total in range(0, 5000, 37):
        progress = level_from_total_xp(total)
        assert cumulative_xp(progress.level) + progress.current_level_xp == total
        assert progress.current_level_xp < progress.xp_for_next_level
