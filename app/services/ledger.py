"""
Progression Ledger: the single place where rewards touch a user's stats.

Every reward source (quest completion, habit tracking, feats, mirror
choices) funnels through here:

  normalize_reward(xp, stat_reward)   → RewardPayload   (validate + clamp)
  apply_reward(stats, reward)         → LevelUpResult   (pure arithmetic)
  credit_profile(db, profile, ...)    → RewardOutcome   (flush, no commit)
  run_with_stale_retry(db, fn, ...)   → fn's result     (retry on version clash)

Level-up rule
-------------
  xp += reward.xp
  while xp >= xpToNextLevel:
      level += 1
      xp -= xpToNextLevel
      xpToNextLevel = floor(xpToNextLevel * 1.2)

so after every update 0 <= xp < xpToNextLevel, however large the reward.

stat_reward keys outside the five attributes are ignored (dropped with a
debug log), never rejected. Attribute scores never go below 0.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.errors import StaleProfileError
from app.models.profile import Profile
from app.models.reward_event import RewardEvent
from app.schemas.stats import ATTRIBUTES, UserStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

LEVEL_GROWTH_FACTOR = 1.2
STALE_RETRY_ATTEMPTS = 3


class RewardSource:
    QUEST  = "quest"
    HABIT  = "habit"
    FEAT   = "feat"
    MIRROR = "mirror"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RewardPayload:
    xp: int
    stat_reward: dict[str, int]


@dataclass(frozen=True)
class LevelUpResult:
    stats: UserStats
    levels_gained: int


@dataclass
class RewardOutcome:
    """What the caller returns to the client: the applied reward and the new ledger."""
    reward: RewardPayload
    stats: UserStats
    version: int
    levels_gained: int

    def to_response(self) -> dict[str, Any]:
        return {
            "success": True,
            "reward": {"xp": self.reward.xp, "stat_reward": dict(self.reward.stat_reward)},
            "stats": self.stats.to_document(),
            "version": self.version,
            "leveledUp": self.levels_gained > 0,
            "levelsGained": self.levels_gained,
            "rank": get_rank(self.stats.level),
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return math.floor(value)
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return math.floor(parsed) if math.isfinite(parsed) else None
    return None


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def normalize_stat_reward(
    stat_reward: Any,
    max_delta: Optional[int] = None,
) -> dict[str, int]:
    """Keep known attributes with numeric deltas, clamped to ±max_delta."""
    limit = settings.MAX_STAT_DELTA if max_delta is None else max_delta
    if not isinstance(stat_reward, dict):
        return {}
    clean: dict[str, int] = {}
    for key, raw in stat_reward.items():
        if key not in ATTRIBUTES:
            logger.debug("Ignoring unknown stat_reward key %r", key)
            continue
        delta = coerce_int(raw)
        if delta is None:
            logger.debug("Ignoring non-numeric stat_reward value %r for %s", raw, key)
            continue
        delta = _clamp(delta, -limit, limit)
        if delta:
            clean[key] = delta
    return clean


def normalize_reward(
    xp: Any,
    stat_reward: Any = None,
    max_xp: Optional[int] = None,
    max_delta: Optional[int] = None,
) -> RewardPayload:
    """
    Turn an untrusted reward (static table, AI response, or user-authored
    quest fields) into a RewardPayload. Non-numeric xp counts as 0.
    """
    xp_cap = settings.MAX_AI_XP_REWARD if max_xp is None else max_xp
    xp_value = coerce_int(xp) or 0
    return RewardPayload(
        xp=_clamp(xp_value, 0, xp_cap),
        stat_reward=normalize_stat_reward(stat_reward, max_delta),
    )


# ---------------------------------------------------------------------------
# Pure arithmetic
# ---------------------------------------------------------------------------

def next_threshold(xp_to_next_level: int) -> int:
    return max(1, math.floor(xp_to_next_level * LEVEL_GROWTH_FACTOR))


def apply_reward(stats: UserStats, reward: RewardPayload) -> LevelUpResult:
    """Return a new UserStats with the reward applied. Does not mutate `stats`."""
    level = stats.level
    xp = stats.xp + max(0, reward.xp)
    threshold = stats.xp_to_next_level

    while xp >= threshold:
        level += 1
        xp -= threshold
        threshold = next_threshold(threshold)

    updates: dict[str, Any] = {
        "level": level,
        "xp": xp,
        "xp_to_next_level": threshold,
    }
    for key, delta in reward.stat_reward.items():
        if key in ATTRIBUTES:
            updates[key] = max(0, stats.attribute(key) + delta)

    return LevelUpResult(
        stats=stats.model_copy(update=updates),
        levels_gained=level - stats.level,
    )


def get_rank(level: int) -> str:
    if level >= 100:
        return "NATIONAL"
    if level >= 80:
        return "S"
    if level >= 60:
        return "A"
    if level >= 40:
        return "B"
    if level >= 20:
        return "C"
    if level >= 10:
        return "D"
    return "E"


# ---------------------------------------------------------------------------
# Persistence: flush only, the caller owns the transaction
# ---------------------------------------------------------------------------

def credit_profile(
    db: Session,
    profile: Profile,
    reward: RewardPayload,
    source: str,
    source_ref: Optional[str] = None,
) -> RewardOutcome:
    """
    Apply `reward` to `profile.stats`, append a RewardEvent and flush.
    The flush raises StaleDataError if the profile version moved, and
    IntegrityError if (source, source_ref) was already credited.
    """
    current = UserStats.from_document(profile.stats)
    result = apply_reward(current, reward)

    profile.stats = result.stats.to_document()
    db.add(RewardEvent(
        user_id=profile.id,
        source=source,
        source_ref=source_ref,
        xp=reward.xp,
        stat_reward=dict(reward.stat_reward),
        level_before=current.level,
        level_after=result.stats.level,
    ))
    db.flush()

    logger.info(
        "Reward applied user=%s source=%s ref=%s xp=%d level %d->%d",
        profile.id, source, source_ref, reward.xp, current.level, result.stats.level,
    )
    return RewardOutcome(
        reward=reward,
        stats=result.stats,
        version=profile.version,
        levels_gained=result.levels_gained,
    )


def run_with_stale_retry(
    db: Session,
    fn: Callable[[], T],
    user_id: str,
    attempts: int = STALE_RETRY_ATTEMPTS,
) -> T:
    """
    Run a read-modify-write unit of work (which must commit) and retry it
    from scratch when the optimistic version check fails.
    """
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except StaleDataError:
            db.rollback()
            logger.warning("Stale profile %s on attempt %d/%d", user_id, attempt, attempts)
    raise StaleProfileError(user_id=user_id)
