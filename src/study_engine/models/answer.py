"""Answer event models produced by a study session."""

from datetime import datetime

from pydantic import BaseModel, Field

from study_engine.models.review import RecallGrade


class AnswerContext(BaseModel):
    """Circumstances of an answer that bonus conditions are evaluated against."""

    first_attempt: bool = False
    section_type: str | None = None
    review_mode: bool = False
    after_error: bool = False
    daily_login: bool = False
    perfect_score: bool = False
    streak: int = Field(default=0, ge=0)
    answered_at: datetime = Field(default_factory=datetime.now)  # local time


class AnswerEvent(BaseModel):
    """A single answer to a single item.

    ``difficulty`` is validated by the answer processor rather than here so
    that out-of-range values surface as ``InvalidInput``.
    """

    user_id: str
    item_id: str
    is_correct: bool
    difficulty: int = 3
    response_time_ms: int = 30000
    context: AnswerContext = Field(default_factory=AnswerContext)
    grade: RecallGrade | None = None  # derived from timing when absent
