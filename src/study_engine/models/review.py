"""Spaced-repetition review record models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

MIN_EASE_FACTOR = 1.3


class RecallGrade(StrEnum):
    """How hard a recall felt; drives ease-factor adjustment."""

    HARD = "HARD"
    GOOD = "GOOD"
    EASY = "EASY"

    @property
    def initial_ease(self) -> float:
        """Ease factor assigned on first exposure."""
        return INITIAL_EASE[self]


INITIAL_EASE: dict[RecallGrade, float] = {
    RecallGrade.HARD: 1.3,
    RecallGrade.GOOD: 2.5,
    RecallGrade.EASY: 2.8,
}


class ReviewRecord(BaseModel):
    """Review state of one item for one user."""

    user_id: str
    item_id: str
    repetition_count: int = Field(default=0, ge=0)
    ease_factor: float = Field(default=2.5, ge=MIN_EASE_FACTOR)
    interval_hours: int = Field(default=1, gt=0)
    next_review_at: datetime
    last_review_at: datetime

    def is_due(self, now: datetime) -> bool:
        return self.next_review_at <= now


class Found(BaseModel):
    """Store lookup hit."""

    model_config = ConfigDict(frozen=True)

    record: ReviewRecord


class NotFound(BaseModel):
    """Store lookup miss; the item has never been reviewed."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    item_id: str


LookupResult = Found | NotFound
