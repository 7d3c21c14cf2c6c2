"""In-memory record stores for local runs and tests."""

from datetime import datetime
from typing import Any

from pydantic import ValidationError

from study_engine.errors import InvalidInput, RecordNotFound
from study_engine.models.equipment import EquippedItem
from study_engine.models.profile import Profile
from study_engine.models.review import Found, LookupResult, NotFound, ReviewRecord


class InMemoryProfileStore:
    """Profile store backed by a dict. Returned profiles are copies.

    Args:
        create_missing: Start unknown users on a fresh profile instead of
            raising ``RecordNotFound``.
    """

    def __init__(self, create_missing: bool = False) -> None:
        self._profiles: dict[str, Profile] = {}
        self.create_missing = create_missing

    def put(self, profile: Profile) -> None:
        self._profiles[profile.user_id] = profile.model_copy()

    async def read(self, user_id: str) -> Profile:
        profile = self._profiles.get(user_id)
        if profile is None:
            if not self.create_missing:
                raise RecordNotFound("profile", user_id)
            profile = Profile(user_id=user_id)
            self._profiles[user_id] = profile
        return profile.model_copy()

    async def write(self, user_id: str, update: dict[str, Any]) -> Profile:
        current = await self.read(user_id)
        try:
            # Validate the whole record before replacing it
            updated = Profile.model_validate({**current.model_dump(), **update, "user_id": user_id})
        except ValidationError as e:
            raise InvalidInput(f"rejected profile update: {e}") from e
        self._profiles[user_id] = updated
        return updated.model_copy()


class InMemoryReviewStore:
    """Review store keyed by (user_id, item_id); one record per pair."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], ReviewRecord] = {}

    def put(self, record: ReviewRecord) -> None:
        self._records[(record.user_id, record.item_id)] = record.model_copy()

    async def read(self, user_id: str, item_id: str) -> LookupResult:
        record = self._records.get((user_id, item_id))
        if record is None:
            return NotFound(user_id=user_id, item_id=item_id)
        return Found(record=record.model_copy())

    async def upsert(self, user_id: str, item_id: str, record: ReviewRecord) -> ReviewRecord:
        if (record.user_id, record.item_id) != (user_id, item_id):
            raise InvalidInput("record key does not match user_id/item_id")
        self._records[(user_id, item_id)] = record.model_copy()
        return record.model_copy()

    def _for_user(self, user_id: str) -> list[ReviewRecord]:
        return [r for (uid, _), r in self._records.items() if uid == user_id]

    async def query_due(self, user_id: str, now: datetime, limit: int) -> list[ReviewRecord]:
        due = [r for r in self._for_user(user_id) if r.is_due(now)]
        due.sort(key=lambda r: r.next_review_at)
        return [r.model_copy() for r in due[:limit]]

    async def query_struggling(
        self, user_id: str, threshold: float, limit: int
    ) -> list[ReviewRecord]:
        weak = [r for r in self._for_user(user_id) if r.ease_factor < threshold]
        weak.sort(key=lambda r: r.ease_factor)
        return [r.model_copy() for r in weak[:limit]]

    async def list_for_user(self, user_id: str) -> list[ReviewRecord]:
        return [r.model_copy() for r in self._for_user(user_id)]


class InMemoryInventory:
    """Equipped items per user."""

    def __init__(self) -> None:
        self._equipped: dict[str, list[EquippedItem]] = {}

    def equip(self, user_id: str, item: EquippedItem) -> None:
        self._equipped.setdefault(user_id, []).append(item)

    async def list_equipped(self, user_id: str) -> list[EquippedItem]:
        return list(self._equipped.get(user_id, []))
