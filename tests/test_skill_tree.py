import pytest

from models import (
    SkillCategory,
    SkillEffect,
    SkillEffectType,
    SkillNode,
    SkillTree,
    UnlockFailure,
)
from skill_tree import (
    can_unlock,
    default_skill_tree,
    earn_skill_points,
    nodes_by_category,
    total_bonus,
    unlock_skill_node,
    unlocked_count,
    validate_tree,
)


def _node(node_id: str, prerequisites: list[str]) -> SkillNode:
    return SkillNode(
        id=node_id,
        name=node_id.upper(),
        category=SkillCategory.FOCUS,
        tier=1,
        cost=1,
        prerequisites=prerequisites,
        effect=SkillEffect(type=SkillEffectType.XP_BONUS, value=0.1),
    )


def test_default_tree_shape() -> None:
    tree = default_skill_tree()
    validate_tree(tree.nodes)
    assert unlocked_count(tree) == (0, 30)
    focus = nodes_by_category(tree, SkillCategory.FOCUS)
    assert [n.cost for n in focus] == [1, 2, 3, 5, 8]
    assert focus[1].prerequisites == ["fo-1"]


def test_validate_rejects_cycles() -> None:
    with pytest.raises(ValueError, match="cycle"):
        validate_tree([_node("a", ["b"]), _node("b", ["a"])])


def test_validate_rejects_unknown_prerequisite() -> None:
    with pytest.raises(ValueError):
        validate_tree([_node("a", ["ghost"])])


def test_validate_rejects_duplicates() -> None:
    with pytest.raises(ValueError, match="Duplicate"):
        validate_tree([_node("a", []), _node("a", [])])


def test_unlock_without_points() -> None:
    tree = default_skill_tree()
    result = unlock_skill_node(tree, "tm-1")
    assert not result.ok
    assert result.reason == UnlockFailure.INSUFFICIENT_POINTS
    assert result.message == "Not enough skill points"
    assert result.tree is tree


def test_unlock_requires_prerequisites() -> None:
    tree = earn_skill_points(default_skill_tree(), 10)
    result = unlock_skill_node(tree, "tm-2")
    assert result.reason == UnlockFailure.PREREQUISITES_UNMET
    assert not can_unlock(tree, "tm-2")


def test_unlock_unknown_node() -> None:
    assert unlock_skill_node(default_skill_tree(), "zz-9").reason == UnlockFailure.NOT_FOUND


def test_unlock_spends_points_and_activates_effect() -> None:
    tree = earn_skill_points(default_skill_tree(), 3)
    result = unlock_skill_node(tree, "tm-1")
    assert result.ok
    assert result.message == "Unlocked Early Bird!"
    assert result.tree.skill_points == 2
    assert result.tree.total_points_earned == 3
    assert result.tree.unlocked_nodes == ["tm-1"]
    assert unlock_skill_node(result.tree, "tm-1").reason == UnlockFailure.ALREADY_UNLOCKED


def test_effects_stack_additively() -> None:
    tree = earn_skill_points(default_skill_tree(), 2)
    tree = unlock_skill_node(tree, "tm-1").tree
    tree = unlock_skill_node(tree, "fo-1").tree
    assert total_bonus(tree, SkillEffectType.XP_BONUS) == pytest.approx(0.15)
    assert total_bonus(tree, SkillEffectType.COIN_BONUS) == 0


def test_negative_award_is_rejected() -> None:
    with pytest.raises(ValueError):
        earn_skill_points(SkillTree(), -1)

