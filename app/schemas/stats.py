"""
Progression ledger document and reward payload.

UserStats is the JSON document stored in `profiles.stats`. Field aliases
keep the camelCase wire/storage names the client already reads
(`xpToNextLevel`, `maxResonance`, `maxHealth`, `class`).
"""
from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ATTRIBUTES: tuple[str, ...] = ("intelligence", "physical", "spiritual", "social", "wealth")


def _to_int(value: Any) -> Any:
    """Floor floats coming from AI output or legacy rows; leave the rest to pydantic."""
    if isinstance(value, float) and math.isfinite(value):
        return math.floor(value)
    return value


class UserStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    xp_to_next_level: int = Field(default=100, ge=1, alias="xpToNextLevel")
    intelligence: int = 1
    physical: int = 1
    spiritual: int = 1
    social: int = 1
    wealth: int = 1
    resonance: int = 10
    max_resonance: int = Field(default=100, alias="maxResonance")
    health: int = 10
    max_health: int = Field(default=100, alias="maxHealth")
    class_name: str = Field(default="Initiate", alias="class")

    @field_validator(
        "level", "xp", "xp_to_next_level", *ATTRIBUTES,
        "resonance", "max_resonance", "health", "max_health",
        mode="before",
    )
    @classmethod
    def _floor_numbers(cls, v: Any) -> Any:
        return _to_int(v)

    @classmethod
    def from_document(cls, doc: dict[str, Any] | None) -> "UserStats":
        return cls.model_validate(doc or {})

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def attribute(self, name: str) -> int:
        return getattr(self, name)


class RewardOut(BaseModel):
    xp: int
    stat_reward: dict[str, int]


class RewardOutcomeResponse(BaseModel):
    """Authoritative ledger state after a reward; the client replaces its cache with it."""
    success: bool = True
    reward: RewardOut
    stats: dict[str, Any]
    version: int
    leveledUp: bool
    levelsGained: int
    rank: str
