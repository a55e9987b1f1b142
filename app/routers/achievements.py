"""
Feats and achievements router.

POST /api/achievements/calculate
GET  /api/achievements/{user_id}
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.oracle import AchievementResponse, FeatRequest, FeatResponse
from app.services.oracle import Oracle, get_oracle
from app.services.rewards import achievement_to_dict, list_achievements, log_feat

router = APIRouter(prefix="/api/achievements", tags=["achievements"])


@router.post(
    "/calculate",
    response_model=FeatResponse,
    summary="Have the oracle judge a real-world feat",
    responses={404: {"model": ErrorResponse, "description": "Profile not found."}},
)
def calculate(
    payload: FeatRequest,
    db: Session = Depends(get_db),
    oracle: Oracle = Depends(get_oracle),
):
    """
    The judged xp and stat deltas are clamped before they reach the ledger;
    the response echoes what was actually credited.
    """
    judgement, outcome = log_feat(db, oracle, payload.userId, payload.text)
    return FeatResponse(
        xpGained=outcome.reward.xp,
        statsIncreased=outcome.reward.stat_reward,
        systemMessage=judgement.systemMessage,
        **outcome.to_response(),
    )


@router.get(
    "/{user_id}",
    response_model=list[AchievementResponse],
    summary="List a user's achievements",
    responses={404: {"model": ErrorResponse, "description": "Profile not found."}},
)
def read_achievements(user_id: str, db: Session = Depends(get_db)):
    return [achievement_to_dict(a) for a in list_achievements(db, user_id)]
