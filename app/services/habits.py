"""
Habit service.

Tracking policy (one per UTC calendar day)
------------------------------------------
  last tracked yesterday   → streak + 1
  never / older than that  → streak restarts at 1
  already tracked today    → HabitAlreadyTrackedError (409), nothing granted

Reward: xp = 50 * (1 + floor(streak / 7)) using the post-increment streak,
no attribute deltas. The council only supplies the flavour message.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import HabitAlreadyTrackedError, NotFoundError
from app.models.habit import Habit
from app.services import oracle as oracle_service
from app.services.ledger import (
    RewardOutcome,
    RewardPayload,
    RewardSource,
    credit_profile,
    run_with_stale_retry,
)
from app.services.profiles import get_profile_or_404

logger = logging.getLogger(__name__)

HABIT_BASE_XP = 50
STREAK_BONUS_EVERY = 7


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def habit_xp(streak: int) -> int:
    return HABIT_BASE_XP * (1 + streak // STREAK_BONUS_EVERY)


def next_streak(current: int, last_logged_on: Optional[date], today: date) -> int:
    if last_logged_on == today - timedelta(days=1):
        return current + 1
    return 1


def habit_to_dict(h: Habit, today: Optional[date] = None) -> dict[str, Any]:
    today = today or _now().date()
    return {
        "id": h.id,
        "user_id": h.user_id,
        "name": h.name,
        "streak": h.streak,
        "last_logged": h.last_logged.isoformat() if h.last_logged else None,
        "tracked_today": h.last_logged_on == today,
        "created_at": h.created_at.isoformat() if h.created_at else None,
    }


def list_habits(db: Session, user_id: str) -> list[Habit]:
    get_profile_or_404(db, user_id)
    return list(db.scalars(
        select(Habit).where(Habit.user_id == user_id).order_by(Habit.id)
    ))


def create_habit(db: Session, user_id: str, name: str) -> Habit:
    get_profile_or_404(db, user_id)
    habit = Habit(user_id=user_id, name=name, streak=0)
    db.add(habit)
    db.commit()
    db.refresh(habit)
    return habit


def track_habit(
    db: Session,
    oracle: oracle_service.Oracle,
    user_id: str,
    habit_id: int,
    action: str = "",
    now: Optional[datetime] = None,
) -> tuple[Habit, RewardOutcome, str]:
    """Advance the streak once for today and credit the habit reward."""
    moment = now or _now()
    today = moment.date()

    def _unit() -> tuple[Habit, RewardOutcome]:
        habit = db.scalar(select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id))
        if habit is None:
            raise NotFoundError("habit", habit_id)
        if habit.last_logged_on == today:
            raise HabitAlreadyTrackedError(habit_id, today.isoformat())

        streak = next_streak(habit.streak or 0, habit.last_logged_on, today)
        claimed = db.execute(
            update(Habit)
            .where(
                Habit.id == habit_id,
                or_(Habit.last_logged_on.is_(None), Habit.last_logged_on < today),
            )
            .values(streak=streak, last_logged=moment, last_logged_on=today)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            db.rollback()
            raise HabitAlreadyTrackedError(habit_id, today.isoformat())

        profile = get_profile_or_404(db, user_id)
        reward = RewardPayload(xp=habit_xp(streak), stat_reward={})
        try:
            outcome = credit_profile(
                db, profile, reward, RewardSource.HABIT,
                source_ref=f"{habit_id}:{today.isoformat()}",
            )
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise HabitAlreadyTrackedError(habit_id, today.isoformat()) from exc

        db.refresh(habit)
        return habit, outcome

    habit, outcome = run_with_stale_retry(db, _unit, user_id=user_id)

    # Flavour text only; called after commit so a slow oracle holds no locks.
    feedback = oracle_service.council_feedback(
        oracle, habit.name, action or habit.name, outcome.stats
    )
    return habit, outcome, feedback
