"""Equipment bonus aggregation and conditional bonus evaluation."""

from collections.abc import Callable
from typing import Protocol

import structlog

from study_engine.models.answer import AnswerContext
from study_engine.models.equipment import BonusCondition, BonusType, BonusVector, EquippedItem

logger = structlog.get_logger()

ConditionPredicate = Callable[[AnswerContext, int], bool]

# Condition tag -> predicate(context, difficulty)
_CONDITIONS: dict[str, ConditionPredicate] = {}

NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 6  # inclusive


def register_condition(tag: str) -> Callable[[ConditionPredicate], ConditionPredicate]:
    """Register a predicate for a bonus condition tag.

    Example:
        @register_condition("weekend")
        def _weekend(context, difficulty):
            return context.answered_at.weekday() >= 5
    """

    def decorator(predicate: ConditionPredicate) -> ConditionPredicate:
        _CONDITIONS[tag] = predicate
        return predicate

    return decorator


@register_condition(BonusCondition.ALWAYS)
def _always(context: AnswerContext, difficulty: int) -> bool:
    return True


@register_condition(BonusCondition.FIRST_ATTEMPT)
def _first_attempt(context: AnswerContext, difficulty: int) -> bool:
    return context.first_attempt


@register_condition(BonusCondition.NIGHTTIME)
def _nighttime(context: AnswerContext, difficulty: int) -> bool:
    hour = context.answered_at.hour
    return hour >= NIGHT_START_HOUR or hour <= NIGHT_END_HOUR


@register_condition(BonusCondition.HARD_QUESTIONS)
def _hard_questions(context: AnswerContext, difficulty: int) -> bool:
    return difficulty >= 4


@register_condition(BonusCondition.AFTER_ERROR)
def _after_error(context: AnswerContext, difficulty: int) -> bool:
    return context.after_error


@register_condition(BonusCondition.DAILY_LOGIN)
def _daily_login(context: AnswerContext, difficulty: int) -> bool:
    return context.daily_login


@register_condition(BonusCondition.REVIEW_MODE)
def _review_mode(context: AnswerContext, difficulty: int) -> bool:
    return context.review_mode


def condition_holds(condition: str, context: AnswerContext, difficulty: int) -> bool:
    """Evaluate a bonus condition for an answer.

    Unregistered tags are section tags: they hold when they equal the
    answer's section type.
    """
    predicate = _CONDITIONS.get(condition)
    if predicate is not None:
        return predicate(context, difficulty)
    return context.section_type is not None and context.section_type == condition


def aggregate_bonuses(items: list[EquippedItem]) -> BonusVector:
    """Sum bonus values per type over the equipped items.

    Items without a bonus type or value contribute nothing.
    """
    vector = BonusVector()
    for item in items:
        if item.bonus_type is None or not item.bonus_value:
            continue
        vector.totals[item.bonus_type] = vector.total(item.bonus_type) + item.bonus_value
        vector.items.append(item)
    return vector


def boost_multiplier(
    bonuses: BonusVector,
    bonus_type: BonusType,
    context: AnswerContext,
    difficulty: int,
) -> float:
    """Multiplier for an XP or gold subtotal.

    Starts at 1, adds every unconditional item of ``bonus_type`` and every
    conditional one whose condition holds for this answer.
    """
    multiplier = 1.0
    for item in bonuses.items:
        if item.bonus_type != bonus_type:
            continue
        if condition_holds(item.bonus_condition, context, difficulty):
            multiplier += item.bonus_value
    return multiplier


_SUMMARY_LABELS: dict[BonusType, str] = {
    BonusType.XP_BOOST: "XP Boost",
    BonusType.GOLD_BOOST: "Gold Boost",
    BonusType.HINT_CHANCE: "Hint Chance",
    BonusType.CRITICAL_CHANCE: "Critical Chance",
}


def active_bonus_summary(bonuses: BonusVector) -> list[dict[str, str]]:
    """Human-readable list of non-zero bonus totals, e.g. ``+20%``."""
    active = []
    for bonus_type, label in _SUMMARY_LABELS.items():
        value = bonuses.total(bonus_type)
        if value:
            active.append({"type": label, "value": f"+{round(value * 100)}%"})
    return active


class InventorySource(Protocol):
    """Collaborator listing a user's currently equipped items."""

    async def list_equipped(self, user_id: str) -> list[EquippedItem]: ...


class EquipmentBonusCache:
    """Per-user cache of aggregated bonuses.

    Entries live until ``invalidate`` is called; callers must invalidate
    whenever the user's equipped set changes.
    """

    def __init__(self, inventory: InventorySource):
        self._inventory = inventory
        self._cache: dict[str, BonusVector] = {}

    async def get(self, user_id: str) -> BonusVector:
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached
        items = await self._inventory.list_equipped(user_id)
        vector = aggregate_bonuses(items)
        self._cache[user_id] = vector
        logger.debug(
            "bonuses_loaded",
            user_id=user_id,
            item_count=len(vector.items),
            totals={str(k): v for k, v in vector.totals.items()},
        )
        return vector

    def invalidate(self, user_id: str) -> None:
        self._cache.pop(user_id, None)
