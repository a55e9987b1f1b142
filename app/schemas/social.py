"""
Feed, comment, notification and report schemas.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def _strip_non_empty(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
    return v


class PostCreateRequest(BaseModel):
    author_id: str
    content: str = Field(min_length=1, max_length=2000)

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, v: Any) -> Any:
        return _strip_non_empty(v)


class PostLikeRequest(BaseModel):
    post_id: int
    user_id: str


class PostLikeResponse(BaseModel):
    success: bool = True
    isLiked: bool
    resonance: int


class PostResponse(BaseModel):
    id: int
    author_id: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    cover_url: Optional[str] = None
    author_class: Optional[str] = None
    content: str
    resonance: int
    liked_by: list[str]
    comment_count: int
    is_system_post: bool
    created_at: Optional[str] = None


class CommentCreateRequest(BaseModel):
    author_id: str
    content: str = Field(min_length=1, max_length=1000)
    parent_id: Optional[int] = None

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, v: Any) -> Any:
        return _strip_non_empty(v)


class CommentResponse(BaseModel):
    id: int
    post_id: int
    author_id: str
    author_name: Optional[str] = None
    author_avatar: Optional[str] = None
    content: str
    parent_id: Optional[int] = None
    created_at: Optional[str] = None
    replies: list["CommentResponse"] = Field(default_factory=list)


class NotificationResponse(BaseModel):
    id: int
    user_id: str
    type: str
    sender_id: Optional[str] = None
    sender_username: Optional[str] = None
    sender_avatar: Optional[str] = None
    post_id: Optional[int] = None
    content: Optional[str] = None
    is_read: bool
    created_at: Optional[str] = None


class ReportCreateRequest(BaseModel):
    reporterId: str
    targetUserId: Optional[str] = None
    targetPostId: Optional[int] = None
    reason: str = Field(min_length=1, max_length=2000)

    @model_validator(mode="after")
    def _needs_target(self) -> "ReportCreateRequest":
        if self.targetUserId is None and self.targetPostId is None:
            raise ValueError("a report needs targetUserId or targetPostId")
        return self


class ReportResponse(BaseModel):
    id: int
    reporter_id: str
    target_user_id: Optional[str] = None
    target_post_id: Optional[int] = None
    reason: Optional[str] = None
    action_taken: str
    created_at: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True
