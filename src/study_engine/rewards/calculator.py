"""XP and gold reward computation for a single answer."""

import math
import random
from collections.abc import Callable

import structlog

from study_engine.errors import InvalidInput
from study_engine.models.answer import AnswerContext
from study_engine.models.equipment import BonusType, BonusVector
from study_engine.models.reward import Reward
from study_engine.rewards.bonuses import boost_multiplier

logger = structlog.get_logger()

RandomSource = Callable[[], float]

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5

BASE_XP = 10
XP_PER_DIFFICULTY = 2
FIRST_ATTEMPT_XP = 5
STREAK_BONUS_THRESHOLD = 5
STREAK_BONUS_CAP = 25

BASE_GOLD = 5
GOLD_PER_DIFFICULTY = 2
PERFECT_SCORE_GOLD = 100


def validate_difficulty(difficulty: int) -> int:
    if not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
        raise InvalidInput(
            f"difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}, got {difficulty}"
        )
    return difficulty


def _round_half_up(value: float) -> int:
    # Rewards are never negative, so floor(x + 0.5) rounds .5 upward.
    return math.floor(value + 0.5)


def base_xp(difficulty: int, context: AnswerContext) -> int:
    """XP subtotal before critical hits and equipment multipliers."""
    xp = BASE_XP + XP_PER_DIFFICULTY * (difficulty - 1)
    if context.first_attempt:
        xp += FIRST_ATTEMPT_XP
    if context.streak >= STREAK_BONUS_THRESHOLD:
        xp += min(context.streak, STREAK_BONUS_CAP)
    return xp


def base_gold(difficulty: int, context: AnswerContext) -> int:
    """Gold subtotal before equipment multipliers."""
    gold = BASE_GOLD + GOLD_PER_DIFFICULTY * difficulty
    if context.perfect_score:
        gold += PERFECT_SCORE_GOLD
    return gold


def compute_reward(
    is_correct: bool,
    difficulty: int,
    bonuses: BonusVector | None = None,
    random_source: RandomSource = random.random,
    context: AnswerContext | None = None,
) -> Reward:
    """Compute XP and gold for one answer.

    Incorrect answers earn nothing and are never penalized. A correct answer
    draws once from ``random_source``; a draw below the equipped critical
    chance doubles the XP subtotal before multipliers are applied.

    Args:
        is_correct: Whether the answer was correct.
        difficulty: Item difficulty, 1-5.
        bonuses: Aggregated equipment bonuses.
        random_source: Callable returning a float in [0, 1).
        context: Answer circumstances for conditional bonuses.

    Returns:
        Reward with non-negative XP and gold.

    Raises:
        InvalidInput: If difficulty is outside 1-5.
    """
    validate_difficulty(difficulty)
    if not is_correct:
        return Reward()

    bonuses = bonuses or BonusVector()
    context = context or AnswerContext()

    xp_subtotal = base_xp(difficulty, context)
    is_critical_hit = random_source() < bonuses.critical_chance
    if is_critical_hit:
        xp_subtotal *= 2

    xp_multiplier = boost_multiplier(bonuses, BonusType.XP_BOOST, context, difficulty)
    gold_multiplier = boost_multiplier(bonuses, BonusType.GOLD_BOOST, context, difficulty)

    reward = Reward(
        xp=_round_half_up(xp_subtotal * xp_multiplier),
        gold=_round_half_up(base_gold(difficulty, context) * gold_multiplier),
        is_critical_hit=is_critical_hit,
    )
    logger.debug(
        "reward_computed",
        difficulty=difficulty,
        xp=reward.xp,
        gold=reward.gold,
        critical_hit=is_critical_hit,
        xp_multiplier=xp_multiplier,
        gold_multiplier=gold_multiplier,
    )
    return reward


def should_show_hint(bonuses: BonusVector, random_source: RandomSource = random.random) -> bool:
    """Roll the equipped hint chance."""
    return random_source() < bonuses.hint_chance
