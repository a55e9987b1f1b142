"""
Quest service.

State machine
-------------
  PENDING ──complete──▶ COMPLETED   (terminal)
     └────expires_at───▶ EXPIRED     (terminal, enforced here at completion)

Completion is one transaction:
  1. conditional UPDATE quests SET completed = true WHERE id = :id AND completed = false
  2. credit the owner's ledger (optimistic version check on the profile)
  3. append RewardEvent("quest", "<id>"), the unique final idempotency guard
A second completion of the same quest never re-grants the reward.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError, QuestAlreadyCompletedError, QuestExpiredError
from app.models.quest import Quest, QuestStatus
from app.schemas.directive import QUEST_MAX_HOURS, QUEST_MAX_XP, QuestCreateRequest
from app.schemas.stats import UserStats
from app.services import oracle as oracle_service
from app.services.ledger import (
    RewardOutcome,
    RewardSource,
    credit_profile,
    normalize_reward,
    normalize_stat_reward,
    run_with_stale_retry,
)
from app.services.profiles import get_profile_or_404

logger = logging.getLogger(__name__)

GENERATED_BATCH_SIZE = 3
DEFAULT_DURATION_HOURS = 24


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; every stored value is UTC."""
    if dt is None:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def quest_status(quest: Quest, now: Optional[datetime] = None) -> QuestStatus:
    if quest.completed:
        return QuestStatus.completed
    expires = _as_utc(quest.expires_at)
    if expires is not None and expires <= (now or _now()):
        return QuestStatus.expired
    return QuestStatus.pending


def quest_to_dict(q: Quest, now: Optional[datetime] = None) -> dict[str, Any]:
    return {
        "id": q.id,
        "user_id": q.user_id,
        "text": q.text,
        "description": q.description,
        "difficulty": q.difficulty,
        "completed": q.completed,
        "status": quest_status(q, now).value,
        "xp_reward": q.xp_reward,
        "stat_reward": q.stat_reward or {},
        "is_generated": q.is_generated,
        "expires_at": _as_utc(q.expires_at).isoformat() if q.expires_at else None,
        "completed_at": _as_utc(q.completed_at).isoformat() if q.completed_at else None,
        "created_at": q.created_at.isoformat() if q.created_at else None,
    }


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_quests(db: Session, user_id: str) -> list[Quest]:
    get_profile_or_404(db, user_id)
    return list(db.scalars(
        select(Quest)
        .where(Quest.user_id == user_id)
        .order_by(Quest.created_at.desc(), Quest.id.desc())
    ))


def count_active_quests(db: Session, user_id: str, now: Optional[datetime] = None) -> int:
    """Uncompleted and unexpired quests."""
    now = now or _now()
    pending = db.scalars(
        select(Quest).where(Quest.user_id == user_id, Quest.completed.is_(False))
    )
    return sum(1 for q in pending if quest_status(q, now) is QuestStatus.pending)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def create_quest(db: Session, payload: QuestCreateRequest) -> Quest:
    get_profile_or_404(db, payload.user_id)
    expires_at = (
        _now() + timedelta(hours=payload.duration_hours) if payload.duration_hours else None
    )
    quest = Quest(
        user_id=payload.user_id,
        text=payload.text,
        description=payload.description or "",
        difficulty=payload.difficulty,
        xp_reward=payload.xp_reward,
        stat_reward=normalize_stat_reward(payload.stat_reward),
        is_generated=False,
        expires_at=expires_at,
    )
    db.add(quest)
    db.commit()
    db.refresh(quest)
    return quest


def complete_quest(
    db: Session, quest_id: int, user_id: Optional[str] = None
) -> tuple[Quest, RewardOutcome]:
    """Mark a quest complete and credit its reward exactly once."""

    def _unit() -> tuple[Quest, RewardOutcome]:
        quest = db.get(Quest, quest_id)
        if quest is None or (user_id is not None and quest.user_id != user_id):
            raise NotFoundError("quest", quest_id)
        if quest.completed:
            raise QuestAlreadyCompletedError(quest_id)

        now = _now()
        if quest_status(quest, now) is QuestStatus.expired:
            raise QuestExpiredError(quest_id, _as_utc(quest.expires_at).isoformat())

        claimed = db.execute(
            update(Quest)
            .where(Quest.id == quest_id, Quest.completed.is_(False))
            .values(completed=True, completed_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            db.rollback()
            raise QuestAlreadyCompletedError(quest_id)

        profile = get_profile_or_404(db, quest.user_id)
        reward = normalize_reward(quest.xp_reward, quest.stat_reward, max_xp=QUEST_MAX_XP)
        try:
            outcome = credit_profile(
                db, profile, reward, RewardSource.QUEST, source_ref=str(quest_id)
            )
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise QuestAlreadyCompletedError(quest_id) from exc

        db.refresh(quest)
        return quest, outcome

    return run_with_stale_retry(db, _unit, user_id=user_id or f"quest:{quest_id}")


def generate_quests(
    db: Session,
    oracle: oracle_service.Oracle,
    user_id: str,
    goals: Optional[list[str]] = None,
) -> tuple[int, bool, Optional[str]]:
    """
    Ask the oracle for new trials. Returns (created, used_fallback, message).
    Nothing is generated while the user already holds ACTIVE_QUEST_LIMIT
    pending quests.
    """
    profile = get_profile_or_404(db, user_id)
    active = count_active_quests(db, user_id)
    room = settings.ACTIVE_QUEST_LIMIT - active
    if room <= 0:
        return 0, False, "Your spirit is already laden with trials. Complete them first."

    stats = UserStats.from_document(profile.stats)
    batch, used_fallback = oracle_service.generate_quests(
        oracle, stats, goals or list(profile.goals or [])
    )

    now = _now()
    created = 0
    for generated in batch.quests[: min(GENERATED_BATCH_SIZE, room)]:
        reward = normalize_reward(generated.xp_reward, generated.stat_reward)
        hours = max(1, min(QUEST_MAX_HOURS, generated.duration_hours or DEFAULT_DURATION_HOURS))
        db.add(Quest(
            user_id=user_id,
            text=generated.text,
            description="",
            difficulty=generated.difficulty,
            xp_reward=reward.xp,
            stat_reward=reward.stat_reward,
            is_generated=True,
            expires_at=now + timedelta(hours=hours),
        ))
        created += 1
    db.commit()

    if used_fallback:
        logger.warning("Quest generation for %s fell back to the default trials", user_id)
    return created, used_fallback, None
