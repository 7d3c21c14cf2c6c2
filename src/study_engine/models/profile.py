"""Player profile model tracking XP, gold, level and streaks."""

from pydantic import BaseModel, Field, model_validator

XP_PER_LEVEL = 1000


def level_for_xp(xp: int) -> int:
    """Level reached with the given XP (1000 XP per level, starting at 1)."""
    return xp // XP_PER_LEVEL + 1


class Profile(BaseModel):
    user_id: str
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    gold: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    max_streak: int = Field(default=0, ge=0)
    total_questions: int = Field(default=0, ge=0)
    total_correct: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_totals(self) -> "Profile":
        if self.total_correct > self.total_questions:
            raise ValueError("total_correct cannot exceed total_questions")
        return self
