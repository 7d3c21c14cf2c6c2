"""REST API routes exposing answer processing and review planning."""

import functools
from typing import NoReturn

import structlog
from fastapi import APIRouter, HTTPException, Query

from study_engine.config import get_settings
from study_engine.engine import StudyEngine
from study_engine.errors import InvalidInput, RecordNotFound, StoreUnavailable, StudyEngineError
from study_engine.models.answer import AnswerEvent
from study_engine.rewards.bonuses import active_bonus_summary
from study_engine.rewards.ledger import xp_for_next_level, xp_progress
from study_engine.storage.memory import InMemoryInventory, InMemoryProfileStore, InMemoryReviewStore

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


@functools.lru_cache
def get_engine() -> StudyEngine:
    """Engine singleton over in-memory stores; unknown users start on a fresh profile."""
    return StudyEngine(
        profiles=InMemoryProfileStore(create_missing=True),
        reviews=InMemoryReviewStore(),
        inventory=InMemoryInventory(),
        settings=get_settings(),
    )


def _raise_http(error: StudyEngineError) -> NoReturn:
    if isinstance(error, InvalidInput):
        raise HTTPException(status_code=400, detail=str(error))
    if isinstance(error, RecordNotFound):
        raise HTTPException(status_code=404, detail=str(error))
    if isinstance(error, StoreUnavailable):
        logger.warning("store_unavailable", error=str(error))
        raise HTTPException(status_code=503, detail="Store unavailable, try again")
    raise HTTPException(status_code=500, detail="Internal error")


@router.post("/answers")
async def submit_answer(event: AnswerEvent) -> dict:
    """Process one answer and return rewards and the next review time."""
    engine = get_engine()
    try:
        outcome = await engine.processor.process(event)
    except StudyEngineError as e:
        _raise_http(e)
    return outcome.model_dump(mode="json")


@router.get("/users/{user_id}/profile")
async def get_profile(user_id: str) -> dict:
    engine = get_engine()
    try:
        profile = await engine.profiles.read(user_id)
    except StudyEngineError as e:
        _raise_http(e)
    return {
        **profile.model_dump(),
        "level_progress": xp_progress(profile.xp, profile.level),
        "xp_for_next_level": xp_for_next_level(profile.level),
    }


@router.get("/users/{user_id}/session")
async def get_adaptive_session(
    user_id: str,
    target_minutes: float = Query(default=20.0),
) -> dict:
    """Build an adaptive review session sized to ``target_minutes``."""
    engine = get_engine()
    try:
        session = await engine.session_builder.build(user_id, target_minutes)
    except StudyEngineError as e:
        _raise_http(e)
    return session.model_dump(mode="json")


@router.get("/users/{user_id}/reviews/stats")
async def get_review_stats(user_id: str) -> dict:
    engine = get_engine()
    try:
        return await engine.scheduler.stats(user_id)
    except StudyEngineError as e:
        _raise_http(e)


@router.get("/users/{user_id}/reviews/schedule")
async def get_review_schedule(user_id: str, days: int = Query(default=7, ge=1, le=365)) -> dict:
    """Upcoming reviews grouped by ISO date."""
    engine = get_engine()
    try:
        schedule = await engine.scheduler.review_schedule(user_id, days)
    except StudyEngineError as e:
        _raise_http(e)
    return {
        day.isoformat(): [r.model_dump(mode="json") for r in records]
        for day, records in schedule.items()
    }


@router.get("/users/{user_id}/bonuses")
async def get_active_bonuses(user_id: str) -> list[dict]:
    engine = get_engine()
    try:
        bonuses = await engine.bonus_cache.get(user_id)
    except StudyEngineError as e:
        _raise_http(e)
    return active_bonus_summary(bonuses)


@router.post("/users/{user_id}/bonuses/invalidate")
async def invalidate_bonuses(user_id: str) -> dict:
    """Drop cached bonuses after the user's equipment changed."""
    get_engine().bonus_cache.invalidate(user_id)
    return {"status": "ok"}


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
