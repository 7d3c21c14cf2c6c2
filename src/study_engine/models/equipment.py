"""Equipment and bonus data models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class BonusType(StrEnum):
    """Kinds of bonus an equipped item can grant."""

    XP_BOOST = "xp_boost"
    GOLD_BOOST = "gold_boost"
    HINT_CHANCE = "hint_chance"
    CRITICAL_CHANCE = "critical_chance"


class BonusCondition(StrEnum):
    """Built-in bonus conditions.

    The set is open: any other string is treated as a section tag and
    matched against the answer's section type.
    """

    ALWAYS = "always"
    FIRST_ATTEMPT = "first_attempt"
    NIGHTTIME = "nighttime"
    HARD_QUESTIONS = "hard_questions"
    AFTER_ERROR = "after_error"
    DAILY_LOGIN = "daily_login"
    REVIEW_MODE = "review_mode"


class EquippedItem(BaseModel):
    """An item from the user's inventory that is currently equipped."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    category: str | None = None
    bonus_type: BonusType | None = None
    bonus_value: float | None = Field(default=None, ge=0)
    bonus_condition: str = BonusCondition.ALWAYS


class BonusVector(BaseModel):
    """Accumulated bonuses of a user's equipped items.

    Totals add up every contributing item regardless of condition; the
    raw items are kept so conditional bonuses can be re-evaluated per answer.
    """

    totals: dict[BonusType, float] = Field(default_factory=dict)
    items: list[EquippedItem] = Field(default_factory=list)

    def total(self, bonus_type: BonusType) -> float:
        return self.totals.get(bonus_type, 0.0)

    @property
    def critical_chance(self) -> float:
        return self.total(BonusType.CRITICAL_CHANCE)

    @property
    def hint_chance(self) -> float:
        return self.total(BonusType.HINT_CHANCE)
