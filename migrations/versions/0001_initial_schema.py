"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Profiles own the stats ledger (JSON document + optimistic `version`).
reward_events is append-only; (source, source_ref) is unique so a quest
completion or a habit day can be credited at most once.
Every child table cascades on profile deletion.
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def _profile_fk(name: str, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        name,
        sa.String(64),
        sa.ForeignKey("profiles.id", ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    # --- profiles ---
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("cover_url", sa.Text(), nullable=True),
        sa.Column("manifesto", sa.Text(), nullable=True),
        sa.Column("origin_story", sa.Text(), nullable=True),
        sa.Column("stats", sa.JSON(), nullable=False),
        sa.Column("inventory", sa.JSON(), nullable=False),
        sa.Column("tasks", sa.JSON(), nullable=False),
        sa.Column("goals", sa.JSON(), nullable=False),
        sa.Column("entropy", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_profiles_username", "profiles", ["username"], unique=True)

    # --- follows ---
    op.create_table(
        "follows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _profile_fk("follower_id"),
        _profile_fk("followee_id"),
        _created_at(),
        sa.UniqueConstraint("follower_id", "followee_id", name="uq_follow_pair"),
    )
    op.create_index("ix_follows_follower_id", "follows", ["follower_id"])
    op.create_index("ix_follows_followee_id", "follows", ["followee_id"])

    # --- quests ---
    op.create_table(
        "quests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _profile_fk("user_id"),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("difficulty", sa.String(1), nullable=False, server_default="E"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("xp_reward", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("stat_reward", sa.JSON(), nullable=False),
        sa.Column("is_generated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_quests_user_id", "quests", ["user_id"])

    # --- habits ---
    op.create_table(
        "habits",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _profile_fk("user_id"),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_logged", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_logged_on", sa.Date(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_habits_user_id", "habits", ["user_id"])

    # --- posts / likes / comments ---
    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _profile_fk("author_id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_system_post", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_posts_author_id", "posts", ["author_id"])

    op.create_table(
        "post_likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
        ),
        _profile_fk("user_id"),
        _created_at(),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_like"),
    )
    op.create_index("ix_post_likes_post_id", "post_likes", ["post_id"])
    op.create_index("ix_post_likes_user_id", "post_likes", ["user_id"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
        ),
        _profile_fk("author_id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        _created_at(),
    )
    op.create_index("ix_comments_post_id", "comments", ["post_id"])

    # --- notifications / reports ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _profile_fk("user_id"),
        sa.Column("type", sa.String(50), nullable=False),
        _profile_fk("sender_id", nullable=True, ondelete="SET NULL"),
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "reports",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _profile_fk("reporter_id"),
        _profile_fk("target_user_id", nullable=True),
        sa.Column(
            "target_post_id",
            sa.Integer(),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "action_taken", sa.String(50), nullable=False, server_default="pending_review"
        ),
        _created_at(),
    )

    # --- achievements ---
    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _profile_fk("user_id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(16), nullable=True),
        sa.Column(
            "unlocked_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_achievements_user_id", "achievements", ["user_id"])

    # --- reward_events (append-only) ---
    op.create_table(
        "reward_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _profile_fk("user_id"),
        sa.Column("source", sa.String(16), nullable=False),
        sa.Column("source_ref", sa.String(128), nullable=True),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stat_reward", sa.JSON(), nullable=False),
        sa.Column("level_before", sa.Integer(), nullable=False),
        sa.Column("level_after", sa.Integer(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("source", "source_ref", name="uq_reward_event_source_ref"),
    )
    op.create_index("ix_reward_events_user_id", "reward_events", ["user_id"])
    op.create_index("ix_reward_events_source", "reward_events", ["source"])


def downgrade() -> None:
    op.drop_table("reward_events")
    op.drop_table("achievements")
    op.drop_table("reports")
    op.drop_table("notifications")
    op.drop_table("comments")
    op.drop_table("post_likes")
    op.drop_table("posts")
    op.drop_table("habits")
    op.drop_table("quests")
    op.drop_table("follows")
    op.drop_table("profiles")
