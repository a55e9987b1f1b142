"""
Quests router.

GET  /api/quests/{user_id}
POST /api/quests/create
POST /api/quests/{quest_id}/complete
POST /api/ai/quest/generate
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.directive import (
    QuestCompleteRequest,
    QuestCompleteResponse,
    QuestCreateRequest,
    QuestGenerateResponse,
    QuestResponse,
)
from app.schemas.oracle import QuestGenerateRequest
from app.services.oracle import Oracle, get_oracle
from app.services.quests import (
    complete_quest,
    create_quest,
    generate_quests,
    list_quests,
    quest_to_dict,
)

router = APIRouter(prefix="/api", tags=["quests"])


@router.get(
    "/quests/{user_id}",
    response_model=list[QuestResponse],
    summary="List a user's quests (newest first)",
    responses={404: {"model": ErrorResponse, "description": "Profile not found."}},
)
def read_quests(user_id: str, db: Session = Depends(get_db)):
    return [quest_to_dict(q) for q in list_quests(db, user_id)]


@router.post(
    "/quests/create",
    response_model=QuestResponse,
    status_code=201,
    summary="Create a manual quest",
)
def create(payload: QuestCreateRequest, db: Session = Depends(get_db)):
    return quest_to_dict(create_quest(db, payload))


@router.post(
    "/quests/{quest_id}/complete",
    response_model=QuestCompleteResponse,
    summary="Complete a quest and credit its reward",
    responses={
        200: {"description": "Reward credited; `stats` and `version` are authoritative."},
        404: {"model": ErrorResponse, "description": "Quest not found."},
        409: {
            "model": ErrorResponse,
            "description": "QUEST_ALREADY_COMPLETED, QUEST_EXPIRED or STALE_PROFILE.",
        },
    },
)
def complete(
    quest_id: int,
    payload: Optional[QuestCompleteRequest] = None,
    db: Session = Depends(get_db),
):
    """
    Completion is a one-shot transition. A second call (double tap, retry,
    second tab) returns **409 QUEST_ALREADY_COMPLETED** and grants nothing.
    """
    user_id = payload.user_id if payload else None
    _, outcome = complete_quest(db, quest_id, user_id=user_id)
    return QuestCompleteResponse(quest_id=quest_id, **outcome.to_response())


@router.post(
    "/ai/quest/generate",
    response_model=QuestGenerateResponse,
    summary="Ask the oracle for new trials",
    responses={404: {"model": ErrorResponse, "description": "Profile not found."}},
)
def generate(
    payload: QuestGenerateRequest,
    db: Session = Depends(get_db),
    oracle: Oracle = Depends(get_oracle),
):
    """
    Creates up to three quests, never exceeding the active quest limit.
    `fallback` is true when the oracle failed and the default trio was used.
    """
    created, used_fallback, message = generate_quests(db, oracle, payload.userId, payload.goals)
    return QuestGenerateResponse(created=created, fallback=used_fallback, message=message)
