"""Progression ledger: applies rewards to player profiles."""

import asyncio
from collections import defaultdict

import structlog

from study_engine.errors import InvalidInput
from study_engine.models.profile import XP_PER_LEVEL, Profile, level_for_xp
from study_engine.models.reward import Progression
from study_engine.storage.base import ProfileStore

logger = structlog.get_logger()


def xp_for_level(level: int) -> int:
    """Total XP at which ``level`` starts."""
    return (level - 1) * XP_PER_LEVEL


def xp_for_next_level(level: int) -> int:
    return level * XP_PER_LEVEL


def xp_progress(xp: int, level: int) -> int:
    """Percentage of the way from ``level`` to the next one."""
    start = xp_for_level(level)
    needed = xp_for_next_level(level) - start
    return round((xp - start) / needed * 100)


def apply_reward(profile: Profile, xp_gain: int, gold_gain: int, correct: bool) -> Progression:
    """Compute the profile that results from one rewarded answer.

    Pure: the input profile is never mutated. A correct answer that earned
    nothing is not recorded and the input profile is returned. Incorrect
    answers always earn nothing but are still recorded so the streak resets
    and the question totals stay accurate.

    Args:
        profile: Profile before the answer.
        xp_gain: XP earned.
        gold_gain: Gold earned.
        correct: Whether the answer was correct.

    Returns:
        Progression with the updated profile and level-up flag.
    """
    if xp_gain < 0 or gold_gain < 0:
        raise InvalidInput("rewards cannot be negative")
    if correct and xp_gain == 0 and gold_gain == 0:
        return Progression(
            profile=profile,
            leveled_up=False,
            new_level=profile.level,
            new_streak=profile.current_streak,
        )

    new_xp = profile.xp + xp_gain
    new_level = level_for_xp(new_xp)

    if correct:
        new_streak = profile.current_streak + 1
        max_streak = max(profile.max_streak, new_streak)
    else:
        new_streak = 0
        max_streak = profile.max_streak

    updated = profile.model_copy(
        update={
            "xp": new_xp,
            "gold": profile.gold + gold_gain,
            "level": new_level,
            "current_streak": new_streak,
            "max_streak": max_streak,
            "total_questions": profile.total_questions + 1,
            "total_correct": profile.total_correct + (1 if correct else 0),
        }
    )
    return Progression(
        profile=updated,
        leveled_up=new_level > profile.level,
        new_level=new_level,
        new_streak=new_streak,
    )


class ProgressionLedger:
    """Serializes reward commits per user.

    Each commit is a read-modify-write of the whole profile held under a
    per-user lock, written back as a single update. Callers that must read
    the profile and commit in one critical section take ``lock(user_id)``
    themselves and use ``commit_locked``.

    Args:
        store: Profile store.
    """

    def __init__(self, store: ProfileStore):
        self.store = store
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock(self, user_id: str) -> asyncio.Lock:
        """The user's commit lock. Not reentrant."""
        return self._locks[user_id]

    async def commit(self, user_id: str, xp_gain: int, gold_gain: int, correct: bool) -> Progression:
        """Apply a reward to the stored profile.

        Raises:
            StoreUnavailable: If the store read or write fails; the stored
                profile is left as it was.
        """
        async with self._locks[user_id]:
            profile = await self.store.read(user_id)
            return await self.commit_locked(profile, xp_gain, gold_gain, correct)

    async def commit_locked(
        self,
        profile: Profile,
        xp_gain: int,
        gold_gain: int,
        correct: bool,
    ) -> Progression:
        """Apply a reward to ``profile``, read while holding ``lock(profile.user_id)``."""
        progression = apply_reward(profile, xp_gain, gold_gain, correct)
        if progression.profile is profile:
            return progression

        update = progression.profile.model_dump(exclude={"user_id"})
        saved = await self.store.write(profile.user_id, update)
        progression = progression.model_copy(update={"profile": saved})

        if progression.leveled_up:
            logger.info(
                "level_up",
                user_id=profile.user_id,
                old_level=profile.level,
                new_level=progression.new_level,
            )
        logger.debug(
            "progression_committed",
            user_id=profile.user_id,
            xp=saved.xp,
            gold=saved.gold,
            streak=saved.current_streak,
        )
        return progression

    async def restore(self, profile: Profile) -> Profile:
        """Write back a profile as it was before a commit.

        The caller holds ``lock(profile.user_id)`` across the commit and the
        restore, so no other commit can land in between.
        """
        saved = await self.store.write(profile.user_id, profile.model_dump(exclude={"user_id"}))
        logger.warning(
            "progression_restored",
            user_id=profile.user_id,
            xp=saved.xp,
            gold=saved.gold,
            streak=saved.current_streak,
        )
        return saved
