"""
Skill tree: a DAG of unlockable passive bonuses.

Six categories × five tiers. Each tier requires the previous one in its
category; costs are 1, 2, 3, 5, 8 skill points. Effects stack additively.
"""

from __future__ import annotations

import logging

from models import (
    SkillCategory,
    SkillEffect,
    SkillEffectType,
    SkillNode,
    SkillTree,
    UnlockFailure,
    UnlockResult,
)

logger = logging.getLogger(__name__)

TIER_COSTS = {1: 1, 2: 2, 3: 3, 4: 5, 5: 8}

X = SkillEffectType

# (prefix, category, [(name, description, effect type, value, effect description) × 5])
_CATALOGUE = [
    ("tm", SkillCategory.TIME_MANAGEMENT, [
        ("Early Bird", "Bonus XP for tasks completed before noon", X.XP_BONUS, 0.05, "+5% XP before noon"),
        ("Time Boxer", "Better time estimates", X.TASK_SUGGESTION, 1, "Smart time suggestions"),
        ("Deadline Warrior", "Warnings for approaching deadlines", X.DEADLINE_WARNING, 3, "3-day deadline warnings"),
        ("Master Scheduler", "Optimal task ordering suggestions", X.TASK_SUGGESTION, 2, "Priority scheduling"),
        ("Time Lord", "Significant time management bonuses", X.XP_BONUS, 0.15, "+15% all XP"),
    ]),
    ("fo", SkillCategory.FOCUS, [
        ("Focused Start", "Bonus for first focus session", X.XP_BONUS, 0.10, "+10% first session XP"),
        ("Deep Worker", "Extended focus duration bonuses", X.FOCUS_DURATION, 0.15, "+15% long session XP"),
        ("Flow State", "Reduced distraction impact", X.FOCUS_DURATION, 0.25, "-25% distraction penalty"),
        ("Zen Master", "Focus streak protection", X.STREAK_PROTECTION, 1, "1 focus streak miss protection"),
        ("Singularity", "Maximum focus bonuses", X.XP_BONUS, 0.20, "+20% focus XP"),
    ]),
    ("di", SkillCategory.DISCIPLINE, [
        ("Iron Will", "Reduced streak decay", X.STREAK_PROTECTION, 0.10, "-10% streak decay"),
        ("Consistency", "Habit momentum builds faster", X.MOMENTUM_BOOST, 0.20, "+20% momentum growth"),
        ("Resilience", "Miss tolerance increased", X.STREAK_PROTECTION, 1, "+1 day miss tolerance"),
        ("Unbreakable", "Major streak protection", X.STREAK_PROTECTION, 0.25, "-25% streak decay"),
        ("Legendary Discipline", "Ultimate discipline mastery", X.XP_BONUS, 0.25, "+25% habit XP"),
    ]),
    ("le", SkillCategory.LEARNING, [
        ("Quick Learner", "XP bonus for learning tasks", X.XP_BONUS, 0.10, "+10% learning task XP"),
        ("Knowledge Seeker", "Skill points earned faster", X.XP_BONUS, 0.05, "+5% skill point gain"),
        ("Pattern Recognition", "Better task suggestions", X.TASK_SUGGESTION, 1, "Smart task matching"),
        ("Mastery Path", "Reduced skill costs", X.COIN_BONUS, 0.10, "-10% skill point cost"),
        ("Enlightenment", "Maximum learning benefits", X.XP_BONUS, 0.30, "+30% all learning XP"),
    ]),
    ("he", SkillCategory.HEALTH, [
        ("Energy Boost", "Less companion fatigue", X.ENERGY_EFFICIENCY, 0.10, "-10% companion fatigue"),
        ("Vitality", "Faster energy recovery", X.ENERGY_EFFICIENCY, 0.15, "+15% energy recovery"),
        ("Balance", "Burnout warning improvements", X.ENERGY_EFFICIENCY, 0.20, "Earlier burnout warnings"),
        ("Stamina", "More tasks without fatigue", X.ENERGY_EFFICIENCY, 0.25, "+25% work capacity"),
        ("Immortal Vigor", "Peak health benefits", X.XP_BONUS, 0.15, "+15% all XP when healthy"),
    ]),
    ("cr", SkillCategory.CREATIVITY, [
        ("Spark", "Creative task bonuses", X.XP_BONUS, 0.10, "+10% creative XP"),
        ("Innovation", "Coin bonuses for creative work", X.COIN_BONUS, 0.15, "+15% creative coins"),
        ("Inspiration", "Random bonus events", X.COIN_BONUS, 0.05, "Random inspiration bonuses"),
        ("Visionary", "Project milestone bonuses", X.XP_BONUS, 0.20, "+20% milestone XP"),
        ("Genius", "Maximum creative potential", X.XP_BONUS, 0.35, "+35% creative XP"),
    ]),
]


def default_skill_nodes() -> list[SkillNode]:
    nodes: list[SkillNode] = []
    for prefix, category, tiers in _CATALOGUE:
        for tier, (name, desc, effect_type, value, effect_desc) in enumerate(tiers, start=1):
            nodes.append(SkillNode(
                id=f"{prefix}-{tier}",
                name=name,
                description=desc,
                category=category,
                tier=tier,
                cost=TIER_COSTS[tier],
                prerequisites=[f"{prefix}-{tier - 1}"] if tier > 1 else [],
                effect=SkillEffect(type=effect_type, value=value, description=effect_desc),
            ))
    return nodes


def default_skill_tree() -> SkillTree:
    return SkillTree(nodes=default_skill_nodes())


def validate_tree(nodes: list[SkillNode]) -> None:
    """Raise ValueError on duplicate ids, dangling prerequisites or cycles."""
    by_id: dict[str, SkillNode] = {}
    for node in nodes:
        if node.id in by_id:
            raise ValueError(f"Duplicate skill node id: {node.id}")
        by_id[node.id] = node

    for node in nodes:
        for prereq in node.prerequisites:
            if prereq not in by_id:
                raise ValueError(f"Skill node {node.id} requires unknown node {prereq}")

    # Kahn's algorithm: every node must drain.
    indegree = {nid: len(n.prerequisites) for nid, n in by_id.items()}
    dependents: dict[str, list[str]] = {nid: [] for nid in by_id}
    for node in nodes:
        for prereq in node.prerequisites:
            dependents[prereq].append(node.id)

    ready = [nid for nid, deg in indegree.items() if deg == 0]
    drained = 0
    while ready:
        nid = ready.pop()
        drained += 1
        for child in dependents[nid]:
            indegree[child] -= 1
            if indegree[child] == 0:
                ready.append(child)

    if drained != len(by_id):
        raise ValueError("Skill tree contains a prerequisite cycle")


# ──────────────────────────────────────────────────────────────
# Queries
# ──────────────────────────────────────────────────────────────

def _find(tree: SkillTree, node_id: str) -> SkillNode | None:
    return next((n for n in tree.nodes if n.id == node_id), None)


def _prerequisites_met(tree: SkillTree, node: SkillNode) -> bool:
    unlocked = {n.id for n in tree.nodes if n.unlocked}
    return all(p in unlocked for p in node.prerequisites)


def _unlock_blocker(tree: SkillTree, node_id: str) -> UnlockFailure | None:
    node = _find(tree, node_id)
    if node is None:
        return UnlockFailure.NOT_FOUND
    if node.unlocked:
        return UnlockFailure.ALREADY_UNLOCKED
    if not _prerequisites_met(tree, node):
        return UnlockFailure.PREREQUISITES_UNMET
    if tree.skill_points < node.cost:
        return UnlockFailure.INSUFFICIENT_POINTS
    return None


def can_unlock(tree: SkillTree, node_id: str) -> bool:
    return _unlock_blocker(tree, node_id) is None


def total_bonus(tree: SkillTree, effect_type: SkillEffectType) -> float:
    """Plain additive stacking over active effects of one type."""
    return sum(e.value for e in tree.active_effects if e.type == SkillEffectType(effect_type))


def nodes_by_category(tree: SkillTree, category: SkillCategory) -> list[SkillNode]:
    return sorted(
        (n for n in tree.nodes if n.category == SkillCategory(category)),
        key=lambda n: n.tier,
    )


def unlocked_count(tree: SkillTree) -> tuple[int, int]:
    """(unlocked, total)."""
    return sum(1 for n in tree.nodes if n.unlocked), len(tree.nodes)


# ──────────────────────────────────────────────────────────────
# Transitions
# ──────────────────────────────────────────────────────────────

_FAILURE_MESSAGES = {
    UnlockFailure.NOT_FOUND: "Skill not found",
    UnlockFailure.ALREADY_UNLOCKED: "Already unlocked",
    UnlockFailure.INSUFFICIENT_POINTS: "Not enough skill points",
    UnlockFailure.PREREQUISITES_UNMET: "Prerequisites not met",
}


def earn_skill_points(tree: SkillTree, amount: int) -> SkillTree:
    if amount < 0:
        raise ValueError("skill point award must be non-negative")
    return tree.model_copy(update={
        "skill_points": tree.skill_points + amount,
        "total_points_earned": tree.total_points_earned + amount,
    })


def unlock_skill_node(tree: SkillTree, node_id: str) -> UnlockResult:
    """
    Atomic unlock: deduct cost, flip the node, activate its effect.

    On any failed precondition the original tree comes back untouched with
    a typed reason.
    """
    blocker = _unlock_blocker(tree, node_id)
    if blocker is not None:
        return UnlockResult(
            ok=False, tree=tree, reason=blocker, message=_FAILURE_MESSAGES[blocker]
        )

    node = _find(tree, node_id)
    nodes = [
        n.model_copy(update={"unlocked": True}) if n.id == node_id else n
        for n in tree.nodes
    ]
    new_tree = tree.model_copy(update={
        "skill_points": tree.skill_points - node.cost,
        "nodes": nodes,
        "unlocked_nodes": [*tree.unlocked_nodes, node_id],
        "active_effects": [*tree.active_effects, node.effect],
    })
    logger.info(f"Unlocked skill {node.id} ({node.name})")
    return UnlockResult(ok=True, tree=new_tree, message=f"Unlocked {node.name}!")

