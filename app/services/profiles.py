"""
Profile service: registration, login, profile reads/updates, follows,
account deletion and the leaderboard.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import (
    InvalidActionError,
    InvalidCredentialsError,
    NotFoundError,
    StaleProfileError,
    UsernameTakenError,
)
from app.core.security import get_password_hash, verify_password
from app.models.notification import Notification, NotificationType
from app.models.profile import Follow, Profile
from app.schemas.profile import ProfileUpdateRequest, RegisterRequest
from app.schemas.stats import ATTRIBUTES, UserStats
from app.services.ledger import coerce_int, get_rank

logger = logging.getLogger(__name__)

INITIAL_ATTRIBUTE_CAP = 10
LEADERBOARD_MAX = 100


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def get_profile_or_404(db: Session, user_id: str) -> Profile:
    profile = db.get(Profile, user_id)
    if profile is None:
        raise NotFoundError("profile", user_id)
    return profile


def initial_stats(doc: Optional[dict[str, Any]]) -> UserStats:
    """
    Starting ledger from the identity analysis. Progress fields are always
    reset (level 1, 0 xp, 100 to next); attributes are clamped to 0..10.
    """
    base = UserStats()
    if not doc:
        return base
    updates: dict[str, Any] = {}
    for attr in ATTRIBUTES:
        value = coerce_int(doc.get(attr))
        if value is not None:
            updates[attr] = max(0, min(INITIAL_ATTRIBUTE_CAP, value))
    label = doc.get("class")
    if isinstance(label, str) and label.strip():
        updates["class_name"] = label.strip()[:64]
    return base.model_copy(update=updates)


def _following_ids(db: Session, user_id: str) -> list[str]:
    return list(db.scalars(
        select(Follow.followee_id).where(Follow.follower_id == user_id).order_by(Follow.id)
    ))


def _followers_count(db: Session, user_id: str) -> int:
    return db.scalar(
        select(func.count(Follow.id)).where(Follow.followee_id == user_id)
    ) or 0


def profile_to_dict(db: Session, p: Profile) -> dict[str, Any]:
    stats = UserStats.from_document(p.stats)
    return {
        "id": p.id,
        "username": p.username,
        "isVerified": True,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "stats": stats.to_document(),
        "rank": get_rank(stats.level),
        "version": p.version,
        "inventory": p.inventory or [],
        "tasks": p.tasks or [],
        "goals": p.goals or [],
        "manifesto": p.manifesto,
        "origin_story": p.origin_story,
        "avatar_url": p.avatar_url,
        "cover_url": p.cover_url,
        "entropy": p.entropy or 0,
        "following": _following_ids(db, p.id),
        "followersCount": _followers_count(db, p.id),
    }


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

def is_username_available(db: Session, username: str) -> bool:
    normalized = username.strip().lower()
    return db.scalar(select(Profile.id).where(Profile.username == normalized)) is None


def register(db: Session, payload: RegisterRequest) -> Profile:
    if not is_username_available(db, payload.username):
        raise UsernameTakenError(payload.username)

    profile = Profile(
        id=str(uuid.uuid4()),
        username=payload.username,
        password_hash=get_password_hash(payload.password),
        manifesto=payload.manifesto,
        origin_story=payload.originStory,
        stats=initial_stats(payload.stats).to_document(),
        inventory=[],
        tasks=[],
        goals=[],
        entropy=0,
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race on the unique username index
        db.rollback()
        raise UsernameTakenError(payload.username) from exc
    db.refresh(profile)
    logger.info("Registered profile %s (%s)", profile.id, profile.username)
    return profile


def authenticate(db: Session, username: str, password: str) -> Profile:
    profile = db.scalar(select(Profile).where(Profile.username == username.strip().lower()))
    if profile is None or not verify_password(password, profile.password_hash):
        raise InvalidCredentialsError()
    return profile


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

def update_profile(db: Session, user_id: str, payload: ProfileUpdateRequest) -> Profile:
    """
    Apply cosmetic/social field changes. With `expectedVersion` set, a
    mismatch raises StaleProfileError carrying the current ledger so the
    client can roll back its optimistic copy.
    """
    profile = get_profile_or_404(db, user_id)
    if payload.expectedVersion is not None and payload.expectedVersion != profile.version:
        raise StaleProfileError(
            user_id=user_id,
            current_version=profile.version,
            stats=UserStats.from_document(profile.stats).to_document(),
        )

    fields = payload.model_dump(exclude_unset=True, exclude={"expectedVersion"})
    mapping = {
        "avatarUrl": "avatar_url",
        "coverUrl": "cover_url",
        "manifesto": "manifesto",
        "goals": "goals",
        "inventory": "inventory",
        "tasks": "tasks",
        "entropy": "entropy",
    }
    for key, column in mapping.items():
        if key in fields:
            value = fields[key]
            if column in ("goals", "inventory", "tasks") and value is None:
                value = []
            setattr(profile, column, value)

    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise StaleProfileError(user_id=user_id) from exc
    db.refresh(profile)
    return profile


def delete_profile(db: Session, user_id: str) -> None:
    profile = get_profile_or_404(db, user_id)
    db.delete(profile)
    db.commit()
    logger.info("Deleted profile %s", user_id)


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------

def toggle_follow(db: Session, follower_id: str, target_id: str) -> tuple[bool, int]:
    """Follow or unfollow. Returns (is_following, target_followers_count)."""
    if follower_id == target_id:
        raise InvalidActionError("You cannot follow yourself.", details={"id": target_id})
    get_profile_or_404(db, follower_id)
    get_profile_or_404(db, target_id)

    removed = db.execute(
        delete(Follow).where(Follow.follower_id == follower_id, Follow.followee_id == target_id)
    ).rowcount
    if removed:
        is_following = False
    else:
        db.add(Follow(follower_id=follower_id, followee_id=target_id))
        db.add(Notification(
            user_id=target_id,
            type=NotificationType.follow.value,
            sender_id=follower_id,
            content="A new seeker follows your path.",
        ))
        is_following = True

    try:
        db.commit()
    except IntegrityError:
        # Concurrent follow already inserted the pair
        db.rollback()
        is_following = True
    return is_following, _followers_count(db, target_id)


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------

def leaderboard(db: Session, sort_by: str = "level", limit: int = 50) -> list[dict[str, Any]]:
    """
    Rank profiles by level (tie-break: xp) or by one attribute (tie-break:
    level), then username A-Z. Sorting happens in Python because `stats` is
    a JSON document, so every profile row is loaded on each call.
    """
    rows = db.execute(select(Profile.id, Profile.username, Profile.avatar_url, Profile.stats)).all()
    entries = [(r.id, r.username, r.avatar_url, UserStats.from_document(r.stats)) for r in rows]

    if sort_by == "level":
        key = lambda e: (-e[3].level, -e[3].xp, e[1])  # noqa: E731
    else:
        key = lambda e: (-e[3].attribute(sort_by), -e[3].level, e[1])  # noqa: E731
    entries.sort(key=key)

    result = []
    for position, (uid, username, avatar, stats) in enumerate(
        entries[: min(limit, LEADERBOARD_MAX)], start=1
    ):
        result.append({
            "position": position,
            "id": uid,
            "username": username,
            "avatarUrl": avatar,
            "class_name": stats.class_name,
            "level": stats.level,
            "rank": get_rank(stats.level),
            **{attr: stats.attribute(attr) for attr in ATTRIBUTES},
        })
    return result
