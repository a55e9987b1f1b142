"""
Auth router.

GET  /api/check-username
POST /api/auth/register
POST /api/auth/login
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.profile import (
    LoginRequest,
    ProfileResponse,
    RegisterRequest,
    RegisterResponse,
    UsernameAvailability,
)
from app.services.profiles import authenticate, is_username_available, profile_to_dict, register

router = APIRouter(prefix="/api", tags=["auth"])


@router.get(
    "/check-username",
    response_model=UsernameAvailability,
    summary="Is a username still free?",
)
def check_username(
    username: str = Query(min_length=1, max_length=64, examples=["seeker_01"]),
    db: Session = Depends(get_db),
):
    return UsernameAvailability(available=is_username_available(db, username))


@router.post(
    "/auth/register",
    response_model=RegisterResponse,
    status_code=201,
    summary="Create a profile",
    responses={
        201: {"description": "Profile created."},
        409: {"model": ErrorResponse, "description": "Username already exists."},
    },
)
def register_profile(payload: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new seeker. The username is stored lowercased; the starting
    stats come from the identity analysis with progress reset to level 1
    and attributes clamped to 0..10.
    """
    profile = register(db, payload)
    return RegisterResponse(id=profile.id, username=profile.username)


@router.post(
    "/auth/login",
    response_model=ProfileResponse,
    summary="Log in with username and password",
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials."}},
)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    profile = authenticate(db, payload.username, payload.password)
    return profile_to_dict(db, profile)
