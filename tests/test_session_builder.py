"""Tests for adaptive session construction."""

from datetime import datetime, timedelta

import pytest

from study_engine.errors import InvalidInput
from study_engine.models.review import ReviewRecord
from study_engine.models.session import QueuePriority, RecommendationType
from study_engine.scheduling.scheduler import SpacedRepetitionScheduler
from study_engine.scheduling.session_builder import SessionBuilder, build_recommendations
from study_engine.storage.memory import InMemoryReviewStore

NOW = datetime(2026, 3, 2, 14, 0, 0)


def _record(item_id, ease=2.5, next_in_hours=1.0):
    return ReviewRecord(
        user_id="u1",
        item_id=item_id,
        repetition_count=2,
        ease_factor=ease,
        interval_hours=24,
        next_review_at=NOW + timedelta(hours=next_in_hours),
        last_review_at=NOW - timedelta(hours=24),
    )


@pytest.fixture
def store():
    return InMemoryReviewStore()


@pytest.fixture
def builder(store):
    return SessionBuilder(SpacedRepetitionScheduler(store))


async def _seed(store, records):
    for record in records:
        await store.upsert(record.user_id, record.item_id, record)


class TestBuildSession:
    async def test_due_first_then_struggling(self, builder, store):
        await _seed(store, [
            _record("due-late", next_in_hours=-1),
            _record("due-early", next_in_hours=-8),
            _record("weak", ease=1.5, next_in_hours=10),
            _record("weaker", ease=1.3, next_in_hours=10),
            _record("fine", ease=2.5, next_in_hours=10),
        ])

        session = await builder.build("u1", target_minutes=30, now=NOW)

        assert [q.item_id for q in session.queue] == ["due-early", "due-late", "weaker", "weak"]
        assert [q.priority for q in session.queue] == [
            QueuePriority.DUE, QueuePriority.DUE,
            QueuePriority.STRUGGLING, QueuePriority.STRUGGLING,
        ]
        assert session.due_count == 2
        assert session.struggling_count == 2
        assert session.total_available == 4

    async def test_due_struggling_item_not_duplicated(self, builder, store):
        await _seed(store, [
            _record("both", ease=1.4, next_in_hours=-2),
            _record("weak", ease=1.8, next_in_hours=5),
        ])

        session = await builder.build("u1", target_minutes=30, now=NOW)

        assert [q.item_id for q in session.queue] == ["both", "weak"]
        assert session.queue[0].priority == QueuePriority.DUE
        assert session.due_count == 1
        assert session.struggling_count == 1

    async def test_truncated_to_time_budget(self, builder, store):
        await _seed(store, [_record(f"q{i}", next_in_hours=-i - 1) for i in range(10)])

        session = await builder.build("u1", target_minutes=4, now=NOW)

        assert len(session.queue) == 2  # floor(4 / 1.5)
        assert session.estimated_minutes == 3.0
        assert session.total_available == 10
        assert session.due_count == 10

    async def test_zero_minutes(self, builder, store):
        await _seed(store, [_record("a", next_in_hours=-1)])
        session = await builder.build("u1", target_minutes=0, now=NOW)
        assert session.queue == []
        assert session.due_count == 1

    async def test_negative_minutes_rejected(self, builder):
        with pytest.raises(InvalidInput):
            await builder.build("u1", target_minutes=-5, now=NOW)

    async def test_respects_query_limits(self, store):
        builder = SessionBuilder(SpacedRepetitionScheduler(store), due_limit=3, struggling_limit=1)
        await _seed(store, [_record(f"d{i}", next_in_hours=-i - 1) for i in range(6)])
        await _seed(store, [_record(f"s{i}", ease=1.3 + i / 10, next_in_hours=5) for i in range(4)])

        session = await builder.build("u1", target_minutes=60, now=NOW)

        assert session.due_count == 3
        assert session.struggling_count == 1
        assert [q.item_id for q in session.queue] == ["d5", "d4", "d3", "s0"]

    async def test_empty_user_gets_encouragement(self, builder):
        session = await builder.build("nobody", target_minutes=20, now=NOW)
        assert session.queue == []
        assert [r.type for r in session.recommendations] == [RecommendationType.SUCCESS]


class TestRecommendations:
    def test_overdue_warning(self):
        recs = build_recommendations(due_count=11, struggling_count=0, available=11)
        assert [r.type for r in recs] == [RecommendationType.WARNING]
        assert "11" in recs[0].message

    def test_struggling_tip(self):
        recs = build_recommendations(due_count=2, struggling_count=6, available=8)
        assert [r.type for r in recs] == [RecommendationType.TIP]

    def test_thresholds_are_exclusive(self):
        assert build_recommendations(due_count=10, struggling_count=5, available=15) == []

    def test_all_three(self):
        recs = build_recommendations(due_count=11, struggling_count=6, available=4)
        assert [r.type for r in recs] == [
            RecommendationType.WARNING,
            RecommendationType.TIP,
            RecommendationType.SUCCESS,
        ]
