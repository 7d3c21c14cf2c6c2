"""Adaptive study session models."""

from enum import StrEnum

from pydantic import BaseModel, Field

from study_engine.models.review import ReviewRecord


class QueuePriority(StrEnum):
    """Why an item was put in the study queue."""

    DUE = "due"
    STRUGGLING = "struggling"


class RecommendationType(StrEnum):
    WARNING = "warning"
    TIP = "tip"
    SUCCESS = "success"


class Recommendation(BaseModel):
    type: RecommendationType
    message: str


class QueuedItem(BaseModel):
    """An item scheduled in an adaptive session."""

    item_id: str
    priority: QueuePriority
    review: ReviewRecord


class StudySession(BaseModel):
    """Prioritized review queue sized to a time budget."""

    queue: list[QueuedItem] = Field(default_factory=list)
    due_count: int = 0
    struggling_count: int = 0
    total_available: int = 0
    estimated_minutes: float = 0.0
    recommendations: list[Recommendation] = Field(default_factory=list)
