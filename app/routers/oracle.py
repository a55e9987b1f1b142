"""
Oracle router: AI-backed utilities.

POST /api/ai/identity
GET  /api/ai/wisdom
POST /api/ai/mysterious-name
POST /api/ai/advisor
POST /api/ai/mirror/scenario
POST /api/ai/mirror/evaluate

Every route answers with an in-domain fallback when the upstream model
is unreachable or returns something unparseable.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.oracle import (
    AdvisorRequest,
    AdvisorResponse,
    IdentityRequest,
    IdentityVerdict,
    MirrorEvaluateRequest,
    MirrorEvaluateResponse,
    MirrorScenario,
    MirrorScenarioRequest,
    NameResponse,
    Wisdom,
)
from app.schemas.stats import UserStats
from app.services import oracle as oracle_service
from app.services.oracle import Oracle, get_oracle
from app.services.profiles import get_profile_or_404
from app.services.rewards import resolve_mirror_choice

router = APIRouter(prefix="/api/ai", tags=["oracle"])


@router.post("/identity", response_model=IdentityVerdict, summary="Judge a manifesto")
def identity(payload: IdentityRequest, oracle: Oracle = Depends(get_oracle)):
    return oracle_service.analyze_identity(oracle, payload.manifesto)


@router.get("/wisdom", response_model=Wisdom, summary="Daily wisdom")
def wisdom(oracle: Oracle = Depends(get_oracle)):
    return oracle_service.daily_wisdom(oracle)


@router.post("/mysterious-name", response_model=NameResponse, summary="Generate a display name")
def mysterious_name(oracle: Oracle = Depends(get_oracle)):
    return NameResponse(name=oracle_service.mysterious_name(oracle))


@router.post("/advisor", response_model=AdvisorResponse, summary="Ask an advisor")
def advisor(payload: AdvisorRequest, oracle: Oracle = Depends(get_oracle)):
    return AdvisorResponse(reply=oracle_service.advise(oracle, payload.type, payload.message))


@router.post(
    "/mirror/scenario",
    response_model=MirrorScenario,
    summary="Generate a moral dilemma",
    responses={404: {"model": ErrorResponse, "description": "Profile not found."}},
)
def mirror_scenario(
    payload: MirrorScenarioRequest,
    db: Session = Depends(get_db),
    oracle: Oracle = Depends(get_oracle),
):
    profile = get_profile_or_404(db, payload.userId)
    return oracle_service.mirror_scenario(oracle, UserStats.from_document(profile.stats))


@router.post(
    "/mirror/evaluate",
    response_model=MirrorEvaluateResponse,
    summary="Resolve a dilemma choice",
    responses={
        404: {"model": ErrorResponse, "description": "Profile not found."},
        409: {"model": ErrorResponse, "description": "STALE_PROFILE after retries."},
    },
)
def mirror_evaluate(
    payload: MirrorEvaluateRequest,
    db: Session = Depends(get_db),
    oracle: Oracle = Depends(get_oracle),
):
    """
    `statChange.xp` becomes xp, the other keys attribute deltas; both are
    clamped before crediting. An artifact `reward`, if granted, is appended
    to the profile inventory.
    """
    judgement, artifact, outcome = resolve_mirror_choice(
        db, oracle, payload.userId, payload.situation, payload.choice, payload.testedStat
    )
    ledger = outcome.to_response()
    return MirrorEvaluateResponse(
        outcome=judgement.outcome,
        statChange={"xp": outcome.reward.xp, **outcome.reward.stat_reward},
        reward=artifact,
        stats=ledger["stats"],
        version=ledger["version"],
        leveledUp=ledger["leveledUp"],
        levelsGained=ledger["levelsGained"],
        rank=ledger["rank"],
    )
