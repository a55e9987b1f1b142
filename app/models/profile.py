"""
Profile: one row per user, owning the progression ledger (`stats`).

`stats` is a JSON document replaced wholesale on every reward. The
`version` column is SQLAlchemy's optimistic version counter: every UPDATE
is issued as `... WHERE id = :id AND version = :old` and raises
StaleDataError when another writer got there first.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.schemas.stats import UserStats


def _default_stats() -> dict[str, Any]:
    return UserStats().to_document()


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    manifesto: Mapped[str | None] = mapped_column(Text, nullable=True)
    origin_story: Mapped[str | None] = mapped_column(Text, nullable=True)
    stats: Mapped[dict] = mapped_column(JSON, nullable=False, default=_default_stats)
    inventory: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    tasks: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    goals: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    entropy: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Children are removed by ON DELETE CASCADE; passive_deletes skips loading them.
    quests = relationship("Quest", cascade="all, delete-orphan", passive_deletes=True)
    habits = relationship("Habit", cascade="all, delete-orphan", passive_deletes=True)
    posts = relationship("Post", cascade="all, delete-orphan", passive_deletes=True)
    achievements = relationship("Achievement", cascade="all, delete-orphan", passive_deletes=True)
    reward_events = relationship("RewardEvent", cascade="all, delete-orphan", passive_deletes=True)

    __mapper_args__ = {"version_id_col": version}


class Follow(Base):
    __tablename__ = "follows"
    __table_args__ = (
        UniqueConstraint("follower_id", "followee_id", name="uq_follow_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    follower_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    followee_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
