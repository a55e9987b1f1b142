"""
Auth and profile request / response schemas.

Request bodies keep the field names the web client already sends
(camelCase for profile fields, snake_case where the client uses it).
"""
from __future__ import annotations

import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[a-z0-9_.]{3,32}$")
BCRYPT_MAX_BYTES = 72

LeaderboardSort = Literal["level", "intelligence", "physical", "spiritual", "social", "wealth"]


class RegisterRequest(BaseModel):
    username: str
    password: str = Field(min_length=6, max_length=128)
    manifesto: Optional[str] = Field(default=None, max_length=5000)
    stats: Optional[dict[str, Any]] = None
    originStory: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("username", mode="before")
    @classmethod
    def _username(cls, v: Any) -> Any:
        if not isinstance(v, str):
            return v
        value = v.strip().lower()
        if not USERNAME_PATTERN.match(value):
            raise ValueError("username must be 3-32 chars of a-z, 0-9, '_' or '.'")
        return value

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes")
        return v


class RegisterResponse(BaseModel):
    success: bool = True
    id: str
    username: str


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UsernameAvailability(BaseModel):
    available: bool


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    isVerified: bool = True
    created_at: Optional[str] = None
    stats: dict[str, Any]
    rank: str
    version: int
    inventory: list[Any]
    goals: list[Any]
    tasks: list[Any] = []
    manifesto: Optional[str] = None
    origin_story: Optional[str] = None
    avatar_url: Optional[str] = None
    cover_url: Optional[str] = None
    entropy: int = 0
    following: list[str]
    followersCount: int = 0


class ProfileUpdateRequest(BaseModel):
    """Cosmetic / social fields only; the stats ledger changes through rewards."""
    model_config = ConfigDict(extra="ignore")

    avatarUrl: Optional[str] = Field(default=None, max_length=2048)
    coverUrl: Optional[str] = Field(default=None, max_length=2048)
    manifesto: Optional[str] = Field(default=None, max_length=5000)
    goals: Optional[list[str]] = Field(default=None, max_length=20)
    inventory: Optional[list[dict[str, Any]]] = Field(default=None, max_length=500)
    tasks: Optional[list[dict[str, Any]]] = Field(default=None, max_length=200)
    entropy: Optional[int] = Field(default=None, ge=0)
    expectedVersion: Optional[int] = Field(
        default=None,
        description="Optimistic check: reject with 409 STALE_PROFILE if the row moved on.",
    )


class FollowRequest(BaseModel):
    followerId: str


class FollowResponse(BaseModel):
    success: bool = True
    isFollowing: bool
    followersCount: int


class LeaderboardRow(BaseModel):
    position: int
    id: str
    username: str
    avatarUrl: Optional[str] = None
    class_name: str = Field(serialization_alias="class")
    level: int
    rank: str
    intelligence: int
    physical: int
    spiritual: int
    social: int
    wealth: int


class LeaderboardResponse(BaseModel):
    sort_by: str
    items: list[LeaderboardRow]
