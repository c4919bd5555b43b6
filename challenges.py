"""
Three daily challenges, deterministically seeded by the date.

  seed = year + month + day
  1. Quest Warrior   complete 2 + seed%3 quests     reward 30 + seed%20
  2. XP Seeker       earn 50 + seed%50 XP           reward 25
  3. <Rarity> Hunter [common, rare, legendary][seed%3] with 3/20, 2/35, 1/75
"""

from __future__ import annotations

import logging
from datetime import date

from models import ChallengeBoard, ChallengeType, DailyChallenge, Rarity

logger = logging.getLogger(__name__)

RARITY_ROTATION = [Rarity.COMMON, Rarity.RARE, Rarity.LEGENDARY]

# rarity → (requirement, xp reward)
RARITY_CHALLENGES = {
    Rarity.COMMON: (3, 20),
    Rarity.RARE: (2, 35),
    Rarity.LEGENDARY: (1, 75),
}


def _parse_day(date_iso: str | date) -> date:
    if isinstance(date_iso, date):
        return date_iso
    try:
        return date.fromisoformat(date_iso)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid ISO date: {date_iso!r}") from e


def challenge_seed(day: date) -> int:
    return day.year + day.month + day.day


def generate_daily_challenges(date_iso: str | date) -> list[DailyChallenge]:
    """Same date in, same three challenges out, progress zeroed."""
    day = _parse_day(date_iso)
    seed = challenge_seed(day)
    iso = day.isoformat()

    quests_needed = 2 + seed % 3
    xp_needed = 50 + seed % 50
    rarity = RARITY_ROTATION[seed % 3]
    rarity_needed, rarity_reward = RARITY_CHALLENGES[rarity]
    plural = "s" if rarity_needed > 1 else ""

    return [
        DailyChallenge(
            id=f"daily-{iso}-1",
            title="Quest Warrior",
            description=f"Complete {quests_needed} quests today",
            xp_reward=30 + seed % 20,
            requirement=quests_needed,
            type=ChallengeType.COMPLETE_QUESTS,
            date=day,
        ),
        DailyChallenge(
            id=f"daily-{iso}-2",
            title="XP Seeker",
            description=f"Earn {xp_needed} XP today",
            xp_reward=25,
            requirement=xp_needed,
            type=ChallengeType.EARN_XP,
            date=day,
        ),
        DailyChallenge(
            id=f"daily-{iso}-3",
            title=f"{rarity.value.capitalize()} Hunter",
            description=f"Complete {rarity_needed} {rarity.value} quest{plural}",
            xp_reward=rarity_reward,
            requirement=rarity_needed,
            type=ChallengeType.COMPLETE_RARITY,
            rarity_required=rarity,
            date=day,
        ),
    ]


def ensure_board(board: ChallengeBoard, today: date) -> ChallengeBoard:
    """Roll the board over to ``today``; unchanged if it already is today's."""
    if board.date == today and board.challenges:
        return board
    logger.info(f"Generating daily challenges for {today.isoformat()}")
    return board.model_copy(update={
        "date": today,
        "challenges": generate_daily_challenges(today),
    })


def update_challenge_progress(
    board: ChallengeBoard,
    quests_today: int,
    xp_today: int,
    rarity_completed: Rarity | None = None,
) -> tuple[ChallengeBoard, int]:
    """
    Fold today's running totals into the board.

    Quest and XP challenges track the totals directly; the rarity challenge
    counts one per matching completion. Returns the board and how many
    challenges this call completed. ``completed_count`` is a lifetime tally.
    """
    newly_completed = 0
    updated: list[DailyChallenge] = []

    for challenge in board.challenges:
        if challenge.completed:
            updated.append(challenge)
            continue

        progress = challenge.progress
        if challenge.type == ChallengeType.COMPLETE_QUESTS:
            progress = quests_today
        elif challenge.type == ChallengeType.EARN_XP:
            progress = xp_today
        elif challenge.type == ChallengeType.COMPLETE_RARITY:
            if rarity_completed is not None and Rarity(rarity_completed) == challenge.rarity_required:
                progress = challenge.progress + 1

        done = progress >= challenge.requirement
        if done:
            newly_completed += 1
            logger.info(f"Daily challenge '{challenge.title}' completed")
        updated.append(challenge.model_copy(update={"progress": progress, "completed": done}))

    new_board = board.model_copy(update={
        "challenges": updated,
        "completed_count": board.completed_count + newly_completed,
    })
    return new_board, newly_completed


def completed_ids(board: ChallengeBoard) -> set[str]:
    return {c.id for c in board.challenges if c.completed}


def revert_challenge_progress(
    board: ChallengeBoard,
    quests_today: int,
    xp_today: int,
    rarity_reverted: Rarity | None = None,
    reopen: set[str] | frozenset[str] = frozenset(),
) -> ChallengeBoard:
    """
    Take one completion back out of the board.

    Only challenges in ``reopen`` (the ones that completion finished) may go
    back to open; every other completed challenge keeps its frozen progress.
    """
    updated: list[DailyChallenge] = []
    reopened = 0

    for challenge in board.challenges:
        if challenge.completed and challenge.id not in reopen:
            updated.append(challenge)
            continue

        progress = challenge.progress
        if challenge.type == ChallengeType.COMPLETE_QUESTS:
            progress = quests_today
        elif challenge.type == ChallengeType.EARN_XP:
            progress = xp_today
        elif challenge.type == ChallengeType.COMPLETE_RARITY:
            if rarity_reverted is not None and Rarity(rarity_reverted) == challenge.rarity_required:
                progress = max(0, challenge.progress - 1)

        if challenge.completed:
            reopened += 1
        updated.append(challenge.model_copy(update={"progress": max(0, progress), "completed": False}))

    return board.model_copy(update={
        "challenges": updated,
        "completed_count": max(0, board.completed_count - reopened),
    })


def challenge_reward(board: ChallengeBoard) -> int:
    return sum(c.xp_reward for c in board.challenges if c.completed)
