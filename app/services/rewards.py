"""
Oracle-judged reward sources: real-world feats and mirror dilemmas.

The oracle is consulted first, outside any transaction; its (validated,
clamped) verdict is then credited to the ledger in one unit of work.
"""
from __future__ import annotations

import time
import uuid
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.achievement import Achievement
from app.schemas.oracle import FeatJudgement, MirrorJudgement
from app.schemas.stats import UserStats
from app.services import oracle as oracle_service
from app.services.ledger import (
    RewardOutcome,
    RewardSource,
    credit_profile,
    normalize_reward,
    run_with_stale_retry,
)
from app.services.profiles import get_profile_or_404

FEAT_TITLE = "Great Feat Logged"
FEAT_ICON = "🏆"


def log_feat(
    db: Session, oracle: oracle_service.Oracle, user_id: str, text: str
) -> tuple[FeatJudgement, RewardOutcome]:
    profile = get_profile_or_404(db, user_id)
    judgement = oracle_service.judge_feat(oracle, text, UserStats.from_document(profile.stats))
    reward = normalize_reward(judgement.xpGained, judgement.statsIncreased)

    def _unit() -> RewardOutcome:
        fresh = get_profile_or_404(db, user_id)
        outcome = credit_profile(db, fresh, reward, RewardSource.FEAT)
        db.add(Achievement(user_id=user_id, title=FEAT_TITLE, description=text, icon=FEAT_ICON))
        db.commit()
        return outcome

    return judgement, run_with_stale_retry(db, _unit, user_id=user_id)


def split_stat_change(stat_change: dict[str, Any]) -> tuple[Any, dict[str, Any]]:
    """A mirror `statChange` mixes `xp` with attribute deltas."""
    deltas = {k: v for k, v in stat_change.items() if k != "xp"}
    return stat_change.get("xp", 0), deltas


def _artifact_item(judgement: MirrorJudgement) -> Optional[dict[str, Any]]:
    if judgement.reward is None:
        return None
    item = judgement.reward.model_dump()
    item["id"] = uuid.uuid4().hex
    item["dateAcquired"] = int(time.time() * 1000)
    return item


def resolve_mirror_choice(
    db: Session,
    oracle: oracle_service.Oracle,
    user_id: str,
    situation: str,
    choice: str,
    tested_stat: Optional[str] = None,
) -> tuple[MirrorJudgement, Optional[dict[str, Any]], RewardOutcome]:
    get_profile_or_404(db, user_id)
    judgement = oracle_service.judge_mirror_choice(oracle, situation, choice, tested_stat)
    xp, deltas = split_stat_change(judgement.statChange)
    reward = normalize_reward(xp, deltas)
    artifact = _artifact_item(judgement)

    def _unit() -> RewardOutcome:
        profile = get_profile_or_404(db, user_id)
        if artifact is not None:
            profile.inventory = [*(profile.inventory or []), artifact]
        outcome = credit_profile(db, profile, reward, RewardSource.MIRROR)
        db.commit()
        return outcome

    return judgement, artifact, run_with_stale_retry(db, _unit, user_id=user_id)


def achievement_to_dict(a: Achievement) -> dict[str, Any]:
    return {
        "id": a.id,
        "user_id": a.user_id,
        "title": a.title,
        "description": a.description,
        "icon": a.icon,
        "unlocked_at": a.unlocked_at.isoformat() if a.unlocked_at else None,
    }


def list_achievements(db: Session, user_id: str) -> list[Achievement]:
    get_profile_or_404(db, user_id)
    return list(db.scalars(
        select(Achievement)
        .where(Achievement.user_id == user_id)
        .order_by(Achievement.unlocked_at.desc(), Achievement.id.desc())
    ))
