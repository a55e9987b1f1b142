"""
Habits router.

GET  /api/habits/{user_id}
POST /api/habits
POST /api/habits/track
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.directive import (
    HabitCreateRequest,
    HabitResponse,
    HabitTrackRequest,
    HabitTrackResponse,
)
from app.services.habits import create_habit, habit_to_dict, list_habits, track_habit
from app.services.oracle import Oracle, get_oracle

router = APIRouter(prefix="/api/habits", tags=["habits"])


@router.get(
    "/{user_id}",
    response_model=list[HabitResponse],
    summary="List a user's habits",
    responses={404: {"model": ErrorResponse, "description": "Profile not found."}},
)
def read_habits(user_id: str, db: Session = Depends(get_db)):
    return [habit_to_dict(h) for h in list_habits(db, user_id)]


@router.post("", response_model=HabitResponse, status_code=201, summary="Create a habit")
def create(payload: HabitCreateRequest, db: Session = Depends(get_db)):
    return habit_to_dict(create_habit(db, payload.user_id, payload.name))


@router.post(
    "/track",
    response_model=HabitTrackResponse,
    summary="Track a habit for today",
    responses={
        404: {"model": ErrorResponse, "description": "Habit not found for this user."},
        409: {"model": ErrorResponse, "description": "HABIT_ALREADY_TRACKED or STALE_PROFILE."},
    },
)
def track(
    payload: HabitTrackRequest,
    db: Session = Depends(get_db),
    oracle: Oracle = Depends(get_oracle),
):
    """
    One track per UTC day. Tracking on consecutive days grows the streak;
    a gap restarts it at 1. XP is `50 * (1 + streak // 7)`.
    """
    habit, outcome, feedback = track_habit(
        db, oracle, payload.user_id, payload.habit_id, payload.action
    )
    return HabitTrackResponse(
        feedback=feedback,
        xp=outcome.reward.xp,
        streak=habit.streak,
        **outcome.to_response(),
    )
