"""
Feed service: posts, resonance (likes), threaded comments.
"""
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError, InvalidActionError, NotFoundError
from app.models.notification import Notification, NotificationType
from app.models.post import Comment, Post, PostLike
from app.services.profiles import get_profile_or_404

FEED_PAGE_SIZE = 50


def get_post_or_404(db: Session, post_id: int) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise NotFoundError("post", post_id)
    return post


def _likers(db: Session, post_id: int) -> list[str]:
    return list(db.scalars(
        select(PostLike.user_id).where(PostLike.post_id == post_id).order_by(PostLike.id)
    ))


def post_to_dict(db: Session, p: Post, comment_count: Optional[int] = None) -> dict[str, Any]:
    liked_by = _likers(db, p.id)
    if comment_count is None:
        comment_count = db.scalar(
            select(func.count(Comment.id)).where(Comment.post_id == p.id)
        ) or 0
    author = p.author
    return {
        "id": p.id,
        "author_id": p.author_id,
        "username": author.username if author else None,
        "avatar_url": author.avatar_url if author else None,
        "cover_url": author.cover_url if author else None,
        "author_class": (author.stats or {}).get("class") if author else None,
        "content": p.content,
        "resonance": len(liked_by),
        "liked_by": liked_by,
        "comment_count": comment_count,
        "is_system_post": p.is_system_post,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

def list_feed(db: Session, limit: int = FEED_PAGE_SIZE) -> list[dict[str, Any]]:
    comment_counts = (
        select(Comment.post_id, func.count(Comment.id).label("n"))
        .group_by(Comment.post_id)
        .subquery()
    )
    rows = db.execute(
        select(Post, func.coalesce(comment_counts.c.n, 0))
        .outerjoin(comment_counts, comment_counts.c.post_id == Post.id)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(limit)
    ).unique().all()
    return [post_to_dict(db, post, count) for post, count in rows]


def create_post(db: Session, author_id: str, content: str) -> Post:
    get_profile_or_404(db, author_id)
    post = Post(author_id=author_id, content=content)
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


def delete_post(db: Session, post_id: int, user_id: str) -> None:
    post = get_post_or_404(db, post_id)
    if post.author_id != user_id:
        raise ForbiddenError("Only the author can delete this post.", details={"post_id": post_id})
    db.delete(post)
    db.commit()


def toggle_like(db: Session, post_id: int, user_id: str) -> tuple[bool, int]:
    """Returns (is_liked, resonance). A new like notifies the author."""
    post = get_post_or_404(db, post_id)
    get_profile_or_404(db, user_id)

    removed = db.execute(
        delete(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
    ).rowcount
    if removed:
        is_liked = False
    else:
        db.add(PostLike(post_id=post_id, user_id=user_id))
        if post.author_id != user_id:
            db.add(Notification(
                user_id=post.author_id,
                type=NotificationType.resonance.value,
                sender_id=user_id,
                post_id=post_id,
                content="Your words resonated.",
            ))
        is_liked = True

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        is_liked = True
    resonance = db.scalar(
        select(func.count(PostLike.id)).where(PostLike.post_id == post_id)
    ) or 0
    return is_liked, resonance


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

def _comment_dict(c: Comment) -> dict[str, Any]:
    return {
        "id": c.id,
        "post_id": c.post_id,
        "author_id": c.author_id,
        "author_name": c.author.username if c.author else None,
        "author_avatar": c.author.avatar_url if c.author else None,
        "content": c.content,
        "parent_id": c.parent_id,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "replies": [],
    }


def comment_tree(db: Session, post_id: int) -> list[dict[str, Any]]:
    """Top-level comments oldest first, each with its nested replies."""
    get_post_or_404(db, post_id)
    comments = db.scalars(
        select(Comment).where(Comment.post_id == post_id).order_by(Comment.id)
    ).unique().all()

    nodes = {c.id: _comment_dict(c) for c in comments}
    roots: list[dict[str, Any]] = []
    for c in comments:
        node = nodes[c.id]
        parent = nodes.get(c.parent_id) if c.parent_id else None
        if parent is not None:
            parent["replies"].append(node)
        else:
            roots.append(node)
    return roots


def add_comment(
    db: Session, post_id: int, author_id: str, content: str, parent_id: Optional[int] = None
) -> Comment:
    get_post_or_404(db, post_id)
    get_profile_or_404(db, author_id)
    if parent_id is not None:
        parent = db.get(Comment, parent_id)
        if parent is None or parent.post_id != post_id:
            raise InvalidActionError(
                "Parent comment does not belong to this post.",
                details={"post_id": post_id, "parent_id": parent_id},
            )
    comment = Comment(post_id=post_id, author_id=author_id, content=content, parent_id=parent_id)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment
