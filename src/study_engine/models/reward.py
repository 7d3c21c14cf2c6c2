"""Reward and progression result models."""

from pydantic import BaseModel, Field

from study_engine.models.profile import Profile
from study_engine.models.review import RecallGrade, ReviewRecord


class Reward(BaseModel):
    """XP and gold earned by one answer."""

    xp: int = Field(default=0, ge=0)
    gold: int = Field(default=0, ge=0)
    is_critical_hit: bool = False


class Progression(BaseModel):
    """Result of applying a reward to a profile."""

    profile: Profile
    leveled_up: bool = False
    new_level: int
    new_streak: int


class AnswerOutcome(BaseModel):
    """Everything that changed because of one answer event."""

    reward: Reward
    progression: Progression
    review: ReviewRecord
    grade: RecallGrade
    show_hint: bool = False
