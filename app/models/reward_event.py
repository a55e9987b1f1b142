"""
RewardEvent: append-only audit of every reward applied to a profile ledger.

One row per (source, source_ref); the unique constraint is the DB-level
idempotency guard behind quest completion ("quest", "<quest id>") and
habit tracking ("habit", "<habit id>:<YYYY-MM-DD>"). Feats and mirror
choices carry a NULL source_ref, which never collides.

source values:
  "quest"   quest completion
  "habit"   daily habit tracking
  "feat"    AI-judged real-world feat
  "mirror"  mirror dilemma choice
"""
from datetime import datetime
from sqlalchemy import JSON, Integer, String, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class RewardEvent(Base):
    __tablename__ = "reward_events"
    __table_args__ = (
        UniqueConstraint("source", "source_ref", name="uq_reward_event_source_ref"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    source_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stat_reward: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    level_before: Mapped[int] = mapped_column(Integer, nullable=False)
    level_after: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
