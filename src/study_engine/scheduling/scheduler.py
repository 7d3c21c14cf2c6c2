"""Spaced-repetition scheduler.

Each (user, item) pair has one review record. A correct recall climbs a fixed
ladder of intervals; past the top of the ladder the interval grows by the
item's ease factor. An incorrect recall drops the item back to the bottom.
"""

import asyncio
import math
from collections import defaultdict
from datetime import date, datetime, timedelta

import structlog

from study_engine.errors import InvalidInput
from study_engine.models.review import (
    MIN_EASE_FACTOR,
    Found,
    NotFound,
    RecallGrade,
    ReviewRecord,
)
from study_engine.storage.base import ReviewStore

logger = structlog.get_logger()

# Hours: 1h, 4h, 1d, 3d, 1w, 2w, 1mo, 3mo, 6mo
REVIEW_SCHEDULE_HOURS: tuple[int, ...] = (1, 4, 24, 72, 168, 336, 720, 2160, 4320)

HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.1
LAPSE_EASE_PENALTY = 0.2

MASTERED_REPETITIONS = 5
MASTERED_EASE = 2.5
STATS_STRUGGLING_EASE = 1.5

QUICK_ANSWER_MS = 10_000
SLOW_ANSWER_MS = 30_000


def _clamp_ease(ease: float) -> float:
    return round(max(MIN_EASE_FACTOR, ease), 2)


def initial_record(
    user_id: str,
    item_id: str,
    grade: RecallGrade,
    now: datetime,
) -> ReviewRecord:
    """Review record for an item seen for the first time."""
    interval = REVIEW_SCHEDULE_HOURS[0]
    return ReviewRecord(
        user_id=user_id,
        item_id=item_id,
        repetition_count=0,
        ease_factor=grade.initial_ease,
        interval_hours=interval,
        next_review_at=now + timedelta(hours=interval),
        last_review_at=now,
    )


def next_record(
    record: ReviewRecord,
    correct: bool,
    grade: RecallGrade,
    now: datetime,
    max_interval_hours: int | None = None,
) -> ReviewRecord:
    """Review record after one more recall attempt.

    Args:
        record: Current state.
        correct: Whether the item was recalled.
        grade: Perceived difficulty of a correct recall.
        now: Review time.
        max_interval_hours: Cap for ease-driven intervals.

    Returns:
        New record; the input is not modified.
    """
    if not correct:
        repetitions = 0
        ease = _clamp_ease(record.ease_factor - LAPSE_EASE_PENALTY)
        interval = REVIEW_SCHEDULE_HOURS[0]
    else:
        repetitions = record.repetition_count + 1
        ease = record.ease_factor
        if grade == RecallGrade.HARD:
            ease = _clamp_ease(ease - HARD_EASE_PENALTY)
        elif grade == RecallGrade.EASY:
            ease = _clamp_ease(ease + EASY_EASE_BONUS)

        if repetitions < len(REVIEW_SCHEDULE_HOURS):
            interval = REVIEW_SCHEDULE_HOURS[repetitions]
        else:
            interval = math.ceil(record.interval_hours * ease)
            if max_interval_hours is not None:
                interval = min(interval, max_interval_hours)

    return record.model_copy(
        update={
            "repetition_count": repetitions,
            "ease_factor": ease,
            "interval_hours": interval,
            "next_review_at": now + timedelta(hours=interval),
            "last_review_at": now,
        }
    )


def recommend_grade(record: ReviewRecord | None, correct: bool, response_time_ms: int) -> RecallGrade:
    """Infer how hard a recall was from correctness and answer speed."""
    if not correct:
        return RecallGrade.HARD

    ease = record.ease_factor if record is not None else RecallGrade.GOOD.initial_ease
    if response_time_ms < QUICK_ANSWER_MS and ease >= 2.5:
        return RecallGrade.EASY
    if response_time_ms > SLOW_ANSWER_MS or ease < 2.0:
        return RecallGrade.HARD
    return RecallGrade.GOOD


class SpacedRepetitionScheduler:
    """Maintains review records in a store.

    Updates for the same (user, item) pair are serialized so concurrent
    answers cannot both advance from the same stale record.

    Args:
        store: Review record store.
        max_interval_hours: Cap for ease-driven intervals.
        struggling_threshold: Ease factor below which an item is struggling.
    """

    def __init__(
        self,
        store: ReviewStore,
        max_interval_hours: int = 43800,
        struggling_threshold: float = 2.0,
    ):
        if max_interval_hours < REVIEW_SCHEDULE_HOURS[-1]:
            # Below the last fixed step, intervals would shrink after the ladder
            raise InvalidInput(
                f"max_interval_hours must be at least {REVIEW_SCHEDULE_HOURS[-1]}, "
                f"got {max_interval_hours}"
            )
        self.store = store
        self.max_interval_hours = max_interval_hours
        self.struggling_threshold = struggling_threshold
        self._locks: defaultdict[tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    async def initialize(
        self,
        user_id: str,
        item_id: str,
        grade: RecallGrade = RecallGrade.GOOD,
        now: datetime | None = None,
    ) -> ReviewRecord:
        """Create the record for a first exposure, replacing nothing that exists."""
        now = now or datetime.now()
        async with self._locks[(user_id, item_id)]:
            match await self.store.read(user_id, item_id):
                case Found(record=record):
                    return record
                case NotFound():
                    record = initial_record(user_id, item_id, grade, now)
                    return await self.store.upsert(user_id, item_id, record)

    async def record_review(
        self,
        user_id: str,
        item_id: str,
        correct: bool,
        grade: RecallGrade = RecallGrade.GOOD,
        now: datetime | None = None,
    ) -> ReviewRecord:
        """Apply one review outcome and persist the new record.

        An item without a record is initialized with the grade's ease factor
        and the outcome is then applied to it.

        Raises:
            StoreUnavailable: If the store fails; the stored record is unchanged.
        """
        now = now or datetime.now()
        async with self._locks[(user_id, item_id)]:
            match await self.store.read(user_id, item_id):
                case Found(record=record):
                    current = record
                case NotFound():
                    current = initial_record(user_id, item_id, grade, now)

            updated = next_record(current, correct, grade, now, self.max_interval_hours)
            saved = await self.store.upsert(user_id, item_id, updated)

        logger.debug(
            "review_updated",
            user_id=user_id,
            item_id=item_id,
            correct=correct,
            grade=grade.value,
            repetitions=saved.repetition_count,
            ease=saved.ease_factor,
            interval_hours=saved.interval_hours,
        )
        return saved

    async def lookup(self, user_id: str, item_id: str) -> ReviewRecord | None:
        match await self.store.read(user_id, item_id):
            case Found(record=record):
                return record
            case NotFound():
                return None

    async def due_items(
        self, user_id: str, limit: int = 20, now: datetime | None = None
    ) -> list[ReviewRecord]:
        """Items due for review, oldest-due first."""
        return await self.store.query_due(user_id, now or datetime.now(), limit)

    async def struggling_items(self, user_id: str, limit: int = 20) -> list[ReviewRecord]:
        """Items with a low ease factor, weakest first."""
        return await self.store.query_struggling(user_id, self.struggling_threshold, limit)

    async def review_schedule(
        self, user_id: str, days: int = 7, now: datetime | None = None
    ) -> dict[date, list[ReviewRecord]]:
        """Upcoming reviews within ``days``, grouped by calendar date."""
        now = now or datetime.now()
        end = now + timedelta(days=days)
        upcoming = [
            r for r in await self.store.list_for_user(user_id) if now <= r.next_review_at <= end
        ]
        upcoming.sort(key=lambda r: r.next_review_at)

        schedule: dict[date, list[ReviewRecord]] = {}
        for record in upcoming:
            schedule.setdefault(record.next_review_at.date(), []).append(record)
        return schedule

    async def stats(self, user_id: str, now: datetime | None = None) -> dict[str, float | int]:
        """Summary of a user's review records."""
        now = now or datetime.now()
        records = await self.store.list_for_user(user_id)
        if not records:
            return {
                "total_items": 0,
                "due_today": 0,
                "average_ease_factor": 0.0,
                "mastered_items": 0,
                "struggling_items": 0,
                "retention_rate": 0,
            }

        today = now.date()
        due_today = sum(1 for r in records if r.next_review_at.date() == today)
        mastered = sum(
            1
            for r in records
            if r.repetition_count >= MASTERED_REPETITIONS and r.ease_factor >= MASTERED_EASE
        )
        # Every stored record has been reviewed at least once
        struggling = sum(
            1
            for r in records
            if r.ease_factor < STATS_STRUGGLING_EASE or r.repetition_count == 0
        )
        average_ease = sum(r.ease_factor for r in records) / len(records)

        return {
            "total_items": len(records),
            "due_today": due_today,
            "average_ease_factor": round(average_ease, 2),
            "mastered_items": mastered,
            "struggling_items": struggling,
            "retention_rate": round(mastered / len(records) * 100),
        }
