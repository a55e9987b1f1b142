"""
Profiles router.

GET    /api/profile/{user_id}
POST   /api/profile/{user_id}/update
POST   /api/profile/{target_id}/follow
DELETE /api/profile/{user_id}
GET    /api/leaderboard
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.profile import (
    FollowRequest,
    FollowResponse,
    LeaderboardResponse,
    LeaderboardRow,
    LeaderboardSort,
    ProfileResponse,
    ProfileUpdateRequest,
)
from app.schemas.social import SuccessResponse
from app.services.profiles import (
    LEADERBOARD_MAX,
    delete_profile,
    get_profile_or_404,
    leaderboard,
    profile_to_dict,
    toggle_follow,
    update_profile,
)

router = APIRouter(prefix="/api", tags=["profiles"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Profile not found."}}


@router.get(
    "/profile/{user_id}",
    response_model=ProfileResponse,
    summary="Read a profile with its authoritative stats",
    responses=_NOT_FOUND,
)
def read_profile(user_id: str, db: Session = Depends(get_db)):
    return profile_to_dict(db, get_profile_or_404(db, user_id))


@router.post(
    "/profile/{user_id}/update",
    response_model=ProfileResponse,
    summary="Update cosmetic and social fields",
    responses={
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "`expectedVersion` is stale."},
    },
)
def update(user_id: str, payload: ProfileUpdateRequest, db: Session = Depends(get_db)):
    """
    Only avatarUrl, coverUrl, manifesto, goals, inventory, tasks and entropy are
    writable. Any `stats` sent by the client is ignored; the ledger moves
    only through quest, habit, feat and mirror rewards.

    On **409 STALE_PROFILE** the `details` carry the current `version` and
    `stats` so the client can roll back its optimistic copy.
    """
    return profile_to_dict(db, update_profile(db, user_id, payload))


@router.post(
    "/profile/{target_id}/follow",
    response_model=FollowResponse,
    summary="Follow or unfollow a profile",
    responses={
        **_NOT_FOUND,
        422: {"model": ErrorResponse, "description": "Self-follow."},
    },
)
def follow(target_id: str, payload: FollowRequest, db: Session = Depends(get_db)):
    is_following, count = toggle_follow(db, payload.followerId, target_id)
    return FollowResponse(isFollowing=is_following, followersCount=count)


@router.delete(
    "/profile/{user_id}",
    response_model=SuccessResponse,
    summary="Delete a profile and everything it owns",
    responses=_NOT_FOUND,
)
def remove_profile(user_id: str, db: Session = Depends(get_db)):
    delete_profile(db, user_id)
    return SuccessResponse()


@router.get(
    "/leaderboard",
    response_model=LeaderboardResponse,
    summary="Top seekers by level or by one attribute",
)
def read_leaderboard(
    sort_by: LeaderboardSort = Query(default="level"),
    limit: int = Query(default=50, ge=1, le=LEADERBOARD_MAX),
    db: Session = Depends(get_db),
):
    rows = leaderboard(db, sort_by=sort_by, limit=limit)
    return LeaderboardResponse(sort_by=sort_by, items=[LeaderboardRow(**r) for r in rows])
