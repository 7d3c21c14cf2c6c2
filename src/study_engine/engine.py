"""Answer processing pipeline and engine wiring."""

import random
from datetime import datetime

import structlog
from pydantic import BaseModel

from study_engine.config import Settings
from study_engine.errors import InvalidInput, StoreUnavailable
from study_engine.models.answer import AnswerEvent
from study_engine.models.equipment import BonusVector
from study_engine.models.profile import Profile
from study_engine.models.reward import AnswerOutcome, Progression, Reward
from study_engine.models.review import RecallGrade, ReviewRecord
from study_engine.rewards.bonuses import EquipmentBonusCache, InventorySource
from study_engine.rewards.calculator import (
    RandomSource,
    compute_reward,
    should_show_hint,
    validate_difficulty,
)
from study_engine.rewards.ledger import ProgressionLedger
from study_engine.scheduling.scheduler import SpacedRepetitionScheduler, recommend_grade
from study_engine.scheduling.session_builder import SessionBuilder
from study_engine.storage.base import ProfileStore, ReviewStore

logger = structlog.get_logger()


class _Stages(BaseModel):
    """Results of pipeline stages that already completed for one event."""

    bonuses: BonusVector | None = None
    profile: Profile | None = None
    reward: Reward | None = None
    show_hint: bool = False
    grade: RecallGrade | None = None
    progression: Progression | None = None
    review: ReviewRecord | None = None


class AnswerProcessor:
    """Turns one answer event into reward, progression and review updates.

    Events of one user are processed one at a time under the ledger's
    per-user lock, so the streak bonus always sees the profile the reward is
    committed to. A ``StoreUnavailable`` failure retries the event (once, by
    default). Stages that already committed are not repeated on retry, and
    the random draws are made only once, so a retry never double-credits a
    reward. When the last attempt fails, a committed profile change is
    written back before the error propagates.

    Args:
        ledger: Progression ledger for profile updates.
        scheduler: Spaced-repetition scheduler.
        bonus_cache: Per-user equipment bonus cache.
        random_source: Callable returning a float in [0, 1).
        max_attempts: Total attempts per event.
    """

    def __init__(
        self,
        ledger: ProgressionLedger,
        scheduler: SpacedRepetitionScheduler,
        bonus_cache: EquipmentBonusCache,
        random_source: RandomSource = random.random,
        max_attempts: int = 2,
    ):
        self.ledger = ledger
        self.scheduler = scheduler
        self.bonus_cache = bonus_cache
        self.random_source = random_source
        self.max_attempts = max_attempts

    @staticmethod
    def validate(event: AnswerEvent) -> None:
        validate_difficulty(event.difficulty)
        if event.response_time_ms < 0:
            raise InvalidInput(f"response_time_ms must not be negative, got {event.response_time_ms}")

    async def process(self, event: AnswerEvent, now: datetime | None = None) -> AnswerOutcome:
        """Process an answer event.

        Raises:
            InvalidInput: If the event is malformed; nothing is written.
            StoreUnavailable: If the store still fails after the retry; the
                profile is left as it was before the event.
        """
        self.validate(event)
        now = now or datetime.now()
        stages = _Stages()

        async with self.ledger.lock(event.user_id):
            attempt = 1
            while True:
                try:
                    return await self._run(event, stages, now)
                except StoreUnavailable as e:
                    if attempt >= self.max_attempts:
                        logger.error(
                            "answer_failed",
                            user_id=event.user_id,
                            item_id=event.item_id,
                            attempts=attempt,
                            error=str(e),
                        )
                        await self._roll_back(stages)
                        raise
                    logger.warning(
                        "answer_retry",
                        user_id=event.user_id,
                        item_id=event.item_id,
                        attempt=attempt,
                        error=str(e),
                    )
                    attempt += 1

    async def _roll_back(self, stages: _Stages) -> None:
        if stages.progression is None or stages.progression.profile is stages.profile:
            return
        try:
            await self.ledger.restore(stages.profile)
        except StoreUnavailable as e:
            logger.error("rollback_failed", user_id=stages.profile.user_id, error=str(e))

    async def _run(self, event: AnswerEvent, stages: _Stages, now: datetime) -> AnswerOutcome:
        if stages.bonuses is None:
            stages.bonuses = await self.bonus_cache.get(event.user_id)

        if stages.profile is None:
            stages.profile = await self.ledger.store.read(event.user_id)

        if stages.reward is None:
            # Streak bonus is based on the stored streak before this answer
            context = event.context.model_copy(update={"streak": stages.profile.current_streak})
            stages.reward = compute_reward(
                event.is_correct,
                event.difficulty,
                stages.bonuses,
                self.random_source,
                context,
            )
            stages.show_hint = should_show_hint(stages.bonuses, self.random_source)

        if stages.grade is None:
            stages.grade = event.grade
            if stages.grade is None:
                existing = await self.scheduler.lookup(event.user_id, event.item_id)
                stages.grade = recommend_grade(existing, event.is_correct, event.response_time_ms)

        if stages.progression is None:
            stages.progression = await self.ledger.commit_locked(
                stages.profile,
                stages.reward.xp,
                stages.reward.gold,
                event.is_correct,
            )

        if stages.review is None:
            stages.review = await self.scheduler.record_review(
                event.user_id,
                event.item_id,
                event.is_correct,
                stages.grade,
                now=now,
            )

        logger.info(
            "answer_processed",
            user_id=event.user_id,
            item_id=event.item_id,
            correct=event.is_correct,
            xp=stages.reward.xp,
            gold=stages.reward.gold,
            critical_hit=stages.reward.is_critical_hit,
            leveled_up=stages.progression.leveled_up,
            next_review_at=stages.review.next_review_at.isoformat(),
        )
        return AnswerOutcome(
            reward=stages.reward,
            progression=stages.progression,
            review=stages.review,
            grade=stages.grade,
            show_hint=stages.show_hint,
        )


class StudyEngine:
    """Wires the engine components over a set of stores."""

    def __init__(
        self,
        profiles: ProfileStore,
        reviews: ReviewStore,
        inventory: InventorySource,
        settings: Settings,
        random_source: RandomSource = random.random,
    ):
        self.profiles = profiles
        self.reviews = reviews
        self.inventory = inventory
        self.settings = settings
        self.bonus_cache = EquipmentBonusCache(inventory)
        self.ledger = ProgressionLedger(profiles)
        self.scheduler = SpacedRepetitionScheduler(
            reviews,
            max_interval_hours=settings.max_interval_hours,
            struggling_threshold=settings.struggling_ease_threshold,
        )
        self.session_builder = SessionBuilder(
            self.scheduler,
            due_limit=settings.due_query_limit,
            struggling_limit=settings.struggling_query_limit,
            minutes_per_question=settings.minutes_per_question,
        )
        self.processor = AnswerProcessor(
            self.ledger,
            self.scheduler,
            self.bonus_cache,
            random_source=random_source,
            max_attempts=settings.answer_max_attempts,
        )
