"""Adaptive study session construction from review state."""

import math
from datetime import datetime

import structlog

from study_engine.errors import InvalidInput
from study_engine.models.session import (
    QueuedItem,
    QueuePriority,
    Recommendation,
    RecommendationType,
    StudySession,
)
from study_engine.scheduling.scheduler import SpacedRepetitionScheduler

logger = structlog.get_logger()

DUE_WARNING_THRESHOLD = 10
STRUGGLING_TIP_THRESHOLD = 5
CAUGHT_UP_THRESHOLD = 5


def build_recommendations(
    due_count: int, struggling_count: int, available: int
) -> list[Recommendation]:
    """Short study advice driven by queue composition."""
    recommendations = []
    if due_count > DUE_WARNING_THRESHOLD:
        recommendations.append(Recommendation(
            type=RecommendationType.WARNING,
            message=f"You have {due_count} overdue reviews. Focus on them first!",
        ))
    if struggling_count > STRUGGLING_TIP_THRESHOLD:
        recommendations.append(Recommendation(
            type=RecommendationType.TIP,
            message=(
                f"{struggling_count} questions are giving you trouble. "
                "Consider reviewing the theory before practicing."
            ),
        ))
    if available < CAUGHT_UP_THRESHOLD:
        recommendations.append(Recommendation(
            type=RecommendationType.SUCCESS,
            message="You're caught up on your reviews. How about studying something new?",
        ))
    return recommendations


class SessionBuilder:
    """Builds a prioritized review queue sized to a time budget.

    Due items come first, oldest-due first; struggling items that are not
    already due follow, weakest first.

    Args:
        scheduler: Source of review state.
        due_limit: Maximum due items fetched.
        struggling_limit: Maximum struggling items fetched.
        minutes_per_question: Time budget per question.
    """

    def __init__(
        self,
        scheduler: SpacedRepetitionScheduler,
        due_limit: int = 50,
        struggling_limit: int = 20,
        minutes_per_question: float = 1.5,
    ):
        self.scheduler = scheduler
        self.due_limit = due_limit
        self.struggling_limit = struggling_limit
        self.minutes_per_question = minutes_per_question

    async def build(
        self, user_id: str, target_minutes: float = 20, now: datetime | None = None
    ) -> StudySession:
        """Build a session for ``user_id``.

        Raises:
            InvalidInput: If ``target_minutes`` is negative.
        """
        if target_minutes < 0:
            raise InvalidInput(f"target_minutes must not be negative, got {target_minutes}")

        due = await self.scheduler.due_items(user_id, limit=self.due_limit, now=now)
        struggling = await self.scheduler.struggling_items(user_id, limit=self.struggling_limit)

        due_ids = {r.item_id for r in due}
        queue = [QueuedItem(item_id=r.item_id, priority=QueuePriority.DUE, review=r) for r in due]
        queue += [
            QueuedItem(item_id=r.item_id, priority=QueuePriority.STRUGGLING, review=r)
            for r in struggling
            if r.item_id not in due_ids
        ]
        struggling_count = len(queue) - len(due)

        estimated = min(math.floor(target_minutes / self.minutes_per_question), len(queue))
        session = StudySession(
            queue=queue[:estimated],
            due_count=len(due),
            struggling_count=struggling_count,
            total_available=len(queue),
            estimated_minutes=estimated * self.minutes_per_question,
            recommendations=build_recommendations(len(due), struggling_count, len(queue)),
        )
        logger.info(
            "session_built",
            user_id=user_id,
            due=session.due_count,
            struggling=session.struggling_count,
            queued=len(session.queue),
        )
        return session
