"""
Typed shapes for JSON the oracle (external LLM) is asked to return, plus
request bodies for the /api/ai routes.

Every field has a default or a lenient validator so a half-correct answer
still decodes; a payload that cannot be decoded at all is replaced by the
caller's fallback value.
"""
from __future__ import annotations

import math
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.stats import RewardOutcomeResponse

DIFFICULTIES = ("E", "D", "C", "B", "A", "S")
RARITIES = ("COMMON", "RARE", "LEGENDARY", "MYTHIC")


def _lenient_int(v: Any) -> Any:
    if isinstance(v, float):
        return math.floor(v) if math.isfinite(v) else 0
    if isinstance(v, str):
        m = re.search(r"-?\d+(?:\.\d+)?", v)
        return math.floor(float(m.group(0))) if m else 0
    return v


# ---------------------------------------------------------------------------
# Oracle payloads
# ---------------------------------------------------------------------------

class IdentityVerdict(BaseModel):
    model_config = ConfigDict(extra="ignore")

    approved: bool = True
    reason: str = "You walk the path."
    initialStats: dict[str, Any] = Field(default_factory=dict)


class Wisdom(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = Field(min_length=1)
    author: str = "The Oracle"


class CouncilVerdict(BaseModel):
    model_config = ConfigDict(extra="ignore")

    feedback: str = Field(min_length=1)


class FeatJudgement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    xpGained: int = 0
    statsIncreased: dict[str, Any] = Field(default_factory=dict)
    systemMessage: str = "The void acknowledges your effort."

    @field_validator("xpGained", mode="before")
    @classmethod
    def _xp(cls, v: Any) -> Any:
        return _lenient_int(v)


class MirrorScenario(BaseModel):
    model_config = ConfigDict(extra="ignore")

    situation: str = Field(min_length=1)
    choiceA: str = Field(min_length=1)
    choiceB: str = Field(min_length=1)
    testedStat: str = "spiritual"


class Artifact(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    description: str = ""
    rarity: str = "COMMON"
    effect: str = ""
    icon: str = "✦"

    @field_validator("rarity", mode="before")
    @classmethod
    def _rarity(cls, v: Any) -> str:
        value = str(v or "").strip().upper()
        return value if value in RARITIES else "COMMON"


class MirrorJudgement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    outcome: str = Field(min_length=1)
    statChange: dict[str, Any] = Field(default_factory=dict)
    reward: Optional[Artifact] = None


class GeneratedQuest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = Field(min_length=1, max_length=500)
    difficulty: str = "E"
    xp_reward: int = 100
    stat_reward: dict[str, Any] = Field(default_factory=dict)
    duration_hours: int = 24

    @field_validator("text", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("difficulty", mode="before")
    @classmethod
    def _difficulty(cls, v: Any) -> str:
        value = str(v or "").strip().upper()[:1]
        return value if value in DIFFICULTIES else "E"

    @field_validator("xp_reward", "duration_hours", mode="before")
    @classmethod
    def _ints(cls, v: Any) -> Any:
        return _lenient_int(v)


class GeneratedQuestBatch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    quests: list[GeneratedQuest] = Field(min_length=1)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class IdentityRequest(BaseModel):
    manifesto: str = Field(min_length=1, max_length=5000)


class AdvisorRequest(BaseModel):
    type: str = Field(default="life", max_length=64)
    message: str = Field(min_length=1, max_length=2000)


class MirrorScenarioRequest(BaseModel):
    userId: str


class MirrorEvaluateRequest(BaseModel):
    userId: str
    situation: str = Field(min_length=1, max_length=4000)
    choice: Literal["A", "B"]
    testedStat: Optional[str] = None


class QuestGenerateRequest(BaseModel):
    userId: str
    goals: list[str] = Field(default_factory=list, max_length=20)


class FeatRequest(BaseModel):
    userId: str
    text: str = Field(min_length=1, max_length=2000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class NameResponse(BaseModel):
    name: str


class AdvisorResponse(BaseModel):
    reply: str


class FeatResponse(RewardOutcomeResponse):
    xpGained: int
    statsIncreased: dict[str, int]
    systemMessage: str


class MirrorEvaluateResponse(BaseModel):
    """`reward` is the artifact (if any); the ledger result sits beside it."""
    success: bool = True
    outcome: str
    statChange: dict[str, Any]
    reward: Optional[dict[str, Any]] = None
    stats: dict[str, Any]
    version: int
    leveledUp: bool
    levelsGained: int
    rank: str


class AchievementResponse(BaseModel):
    id: int
    user_id: str
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    unlocked_at: Optional[str] = None
