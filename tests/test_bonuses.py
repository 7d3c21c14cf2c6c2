"""Tests for equipment bonus aggregation and condition evaluation."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from study_engine.models.answer import AnswerContext
from study_engine.models.equipment import BonusType, BonusVector, EquippedItem
from study_engine.rewards import bonuses
from study_engine.rewards.bonuses import (
    EquipmentBonusCache,
    active_bonus_summary,
    aggregate_bonuses,
    boost_multiplier,
    condition_holds,
    register_condition,
)


def _item(bonus_type, value, condition="always", name="item"):
    return EquippedItem(
        name=name, bonus_type=bonus_type, bonus_value=value, bonus_condition=condition
    )


class TestAggregateBonuses:
    def test_empty(self):
        vector = aggregate_bonuses([])
        assert vector.totals == {}
        assert vector.items == []

    def test_sums_per_type(self):
        vector = aggregate_bonuses([
            _item(BonusType.XP_BOOST, 0.2),
            _item(BonusType.XP_BOOST, 0.1, "first_attempt"),
            _item(BonusType.GOLD_BOOST, 0.5),
            _item(BonusType.CRITICAL_CHANCE, 0.05),
        ])
        assert vector.total(BonusType.XP_BOOST) == pytest.approx(0.3)
        assert vector.total(BonusType.GOLD_BOOST) == pytest.approx(0.5)
        assert vector.critical_chance == pytest.approx(0.05)
        assert vector.hint_chance == 0.0
        assert len(vector.items) == 4

    def test_skips_items_without_bonus(self):
        vector = aggregate_bonuses([
            EquippedItem(name="Plain Hat"),
            EquippedItem(name="Broken Ring", bonus_type=BonusType.XP_BOOST),
            EquippedItem(name="Empty Charm", bonus_value=0.4),
            _item(BonusType.HINT_CHANCE, 0.25),
        ])
        assert vector.totals == {BonusType.HINT_CHANCE: 0.25}
        assert [i.name for i in vector.items] == ["item"]


class TestConditionHolds:
    @pytest.mark.parametrize(
        ("hour", "expected"),
        [(21, False), (22, True), (23, True), (0, True), (6, True), (7, False), (14, False)],
    )
    def test_nighttime(self, hour, expected):
        context = AnswerContext(answered_at=datetime(2026, 3, 2, hour, 30))
        assert condition_holds("nighttime", context, 3) is expected

    def test_first_attempt(self):
        assert condition_holds("first_attempt", AnswerContext(first_attempt=True), 1)
        assert not condition_holds("first_attempt", AnswerContext(), 1)

    def test_hard_questions(self):
        assert not condition_holds("hard_questions", AnswerContext(), 3)
        assert condition_holds("hard_questions", AnswerContext(), 4)
        assert condition_holds("hard_questions", AnswerContext(), 5)

    def test_context_flags(self):
        context = AnswerContext(after_error=True, daily_login=True, review_mode=True)
        assert condition_holds("after_error", context, 1)
        assert condition_holds("daily_login", context, 1)
        assert condition_holds("review_mode", context, 1)
        assert not condition_holds("review_mode", AnswerContext(), 1)

    def test_section_tag_matches_section_type(self):
        context = AnswerContext(section_type="crimes_justice")
        assert condition_holds("crimes_justice", context, 2)
        assert not condition_holds("crimes_funcionais", context, 2)

    def test_unknown_tag_without_section(self):
        assert not condition_holds("mystery", AnswerContext(), 2)

    def test_register_condition(self, monkeypatch):
        monkeypatch.setattr(bonuses, "_CONDITIONS", dict(bonuses._CONDITIONS))

        @register_condition("weekend")
        def _weekend(context, difficulty):
            return context.answered_at.weekday() >= 5

        saturday = AnswerContext(answered_at=datetime(2026, 3, 7, 12, 0))
        monday = AnswerContext(answered_at=datetime(2026, 3, 2, 12, 0))
        assert condition_holds("weekend", saturday, 1)
        assert not condition_holds("weekend", monday, 1)


class TestBoostMultiplier:
    def test_no_items(self):
        assert boost_multiplier(BonusVector(), BonusType.XP_BOOST, AnswerContext(), 3) == 1.0

    def test_unconditional_only(self):
        vector = aggregate_bonuses([_item(BonusType.XP_BOOST, 0.2)])
        assert boost_multiplier(vector, BonusType.XP_BOOST, AnswerContext(), 1) == pytest.approx(1.2)

    def test_conditional_counted_only_when_holding(self):
        vector = aggregate_bonuses([
            _item(BonusType.XP_BOOST, 0.2),
            _item(BonusType.XP_BOOST, 0.3, "first_attempt"),
        ])
        miss = boost_multiplier(vector, BonusType.XP_BOOST, AnswerContext(), 1)
        hit = boost_multiplier(vector, BonusType.XP_BOOST, AnswerContext(first_attempt=True), 1)
        assert miss == pytest.approx(1.2)
        assert hit == pytest.approx(1.5)

    def test_ignores_other_bonus_types(self):
        vector = aggregate_bonuses([
            _item(BonusType.GOLD_BOOST, 0.5),
            _item(BonusType.CRITICAL_CHANCE, 0.5),
        ])
        assert boost_multiplier(vector, BonusType.XP_BOOST, AnswerContext(), 1) == 1.0
        assert boost_multiplier(vector, BonusType.GOLD_BOOST, AnswerContext(), 1) == 1.5


class TestActiveBonusSummary:
    def test_summary_lists_non_zero_totals(self):
        vector = aggregate_bonuses([
            _item(BonusType.XP_BOOST, 0.2),
            _item(BonusType.CRITICAL_CHANCE, 0.05),
        ])
        assert active_bonus_summary(vector) == [
            {"type": "XP Boost", "value": "+20%"},
            {"type": "Critical Chance", "value": "+5%"},
        ]

    def test_empty_summary(self):
        assert active_bonus_summary(BonusVector()) == []


class TestEquipmentBonusCache:
    async def test_loads_once_until_invalidated(self):
        inventory = AsyncMock()
        inventory.list_equipped.return_value = [_item(BonusType.XP_BOOST, 0.2)]
        cache = EquipmentBonusCache(inventory)

        first = await cache.get("user-1")
        second = await cache.get("user-1")
        assert first is second
        assert inventory.list_equipped.await_count == 1

        cache.invalidate("user-1")
        inventory.list_equipped.return_value = []
        third = await cache.get("user-1")
        assert inventory.list_equipped.await_count == 2
        assert third.totals == {}

    async def test_cache_is_per_user(self):
        inventory = AsyncMock()
        inventory.list_equipped.return_value = []
        cache = EquipmentBonusCache(inventory)

        await cache.get("user-1")
        await cache.get("user-2")
        cache.invalidate("user-unknown")
        await cache.get("user-1")
        assert inventory.list_equipped.await_count == 2


def test_equipped_item_is_immutable():
    item = _item(BonusType.XP_BOOST, 0.2)
    with pytest.raises(ValidationError):
        item.bonus_value = 0.9


@pytest.mark.parametrize("bonus_type", list(BonusType))
def test_negative_bonus_value_rejected(bonus_type):
    with pytest.raises(ValidationError):
        EquippedItem(bonus_type=bonus_type, bonus_value=-2.0)
