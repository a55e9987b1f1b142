"""
Directive (quest / habit) request and response schemas.

POST /api/quests/create      → QuestCreateRequest
POST /api/quests/{id}/complete → QuestCompleteRequest → RewardOutcomeResponse
POST /api/habits             → HabitCreateRequest   → HabitResponse
POST /api/habits/track       → HabitTrackRequest    → HabitTrackResponse
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.quest import Difficulty
from app.schemas.stats import RewardOutcomeResponse

QUEST_MAX_XP = 1000
QUEST_MAX_HOURS = 168


def _strip_non_empty(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
    return v


class QuestCreateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    user_id: str
    text: str = Field(min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=2000)
    difficulty: Difficulty
    xp_reward: int = Field(default=100, ge=0, le=QUEST_MAX_XP)
    stat_reward: dict[str, Any] = Field(default_factory=dict)
    duration_hours: Optional[int] = Field(default=None, ge=1, le=QUEST_MAX_HOURS)

    @field_validator("text", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Any:
        return _strip_non_empty(v)


class QuestCompleteRequest(BaseModel):
    user_id: Optional[str] = None


class QuestResponse(BaseModel):
    id: int
    user_id: str
    text: str
    description: Optional[str] = None
    difficulty: str
    completed: bool
    status: str
    xp_reward: int
    stat_reward: dict[str, int]
    is_generated: bool
    expires_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: Optional[str] = None


class QuestCompleteResponse(RewardOutcomeResponse):
    quest_id: int


class QuestGenerateResponse(BaseModel):
    success: bool = True
    created: int
    fallback: bool = False
    message: Optional[str] = None


class HabitCreateRequest(BaseModel):
    user_id: str
    name: str = Field(min_length=1, max_length=200)

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v: Any) -> Any:
        return _strip_non_empty(v)


class HabitTrackRequest(BaseModel):
    user_id: str
    habit_id: int
    action: str = Field(default="", max_length=500)


class HabitResponse(BaseModel):
    id: int
    user_id: str
    name: str
    streak: int
    last_logged: Optional[str] = None
    tracked_today: bool
    created_at: Optional[str] = None


class HabitTrackResponse(RewardOutcomeResponse):
    feedback: str
    xp: int
    streak: int
