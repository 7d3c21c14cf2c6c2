"""Record store interfaces consumed by the engine.

Implementations raise ``StoreUnavailable`` for transient failures and must
leave stored state untouched when a write fails.
"""

from datetime import datetime
from typing import Any, Protocol

from study_engine.models.profile import Profile
from study_engine.models.review import LookupResult, ReviewRecord


class ProfileStore(Protocol):
    async def read(self, user_id: str) -> Profile:
        """Return the profile. Raises ``RecordNotFound`` for unknown users."""
        ...

    async def write(self, user_id: str, update: dict[str, Any]) -> Profile:
        """Apply ``update`` to the profile as one atomic write."""
        ...


class ReviewStore(Protocol):
    async def read(self, user_id: str, item_id: str) -> LookupResult: ...

    async def upsert(self, user_id: str, item_id: str, record: ReviewRecord) -> ReviewRecord: ...

    async def query_due(self, user_id: str, now: datetime, limit: int) -> list[ReviewRecord]:
        """Records with ``next_review_at <= now``, oldest-due first."""
        ...

    async def query_struggling(
        self, user_id: str, threshold: float, limit: int
    ) -> list[ReviewRecord]:
        """Records with ``ease_factor < threshold``, weakest first."""
        ...

    async def list_for_user(self, user_id: str) -> list[ReviewRecord]: ...
