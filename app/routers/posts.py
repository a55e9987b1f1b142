"""
Feed router.

GET    /api/posts
POST   /api/posts
DELETE /api/posts/{post_id}
POST   /api/posts/like
GET    /api/posts/{post_id}/comments
POST   /api/posts/{post_id}/comments
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.social import (
    CommentCreateRequest,
    CommentResponse,
    PostCreateRequest,
    PostLikeRequest,
    PostLikeResponse,
    PostResponse,
    SuccessResponse,
)
from app.services.feed import (
    FEED_PAGE_SIZE,
    add_comment,
    comment_tree,
    create_post,
    delete_post,
    list_feed,
    post_to_dict,
    toggle_like,
)

router = APIRouter(prefix="/api/posts", tags=["feed"])

_POST_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Post not found."}}


@router.get("", response_model=list[PostResponse], summary="Newest posts")
def read_feed(
    limit: int = Query(default=FEED_PAGE_SIZE, ge=1, le=FEED_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    return list_feed(db, limit=limit)


@router.post("", response_model=PostResponse, status_code=201, summary="Publish a post")
def publish(payload: PostCreateRequest, db: Session = Depends(get_db)):
    post = create_post(db, payload.author_id, payload.content)
    return post_to_dict(db, post)


@router.delete(
    "/{post_id}",
    response_model=SuccessResponse,
    summary="Delete your own post",
    responses={
        **_POST_NOT_FOUND,
        403: {"model": ErrorResponse, "description": "Not the author."},
    },
)
def remove(post_id: int, user_id: str = Query(min_length=1), db: Session = Depends(get_db)):
    delete_post(db, post_id, user_id)
    return SuccessResponse()


@router.post(
    "/like",
    response_model=PostLikeResponse,
    summary="Toggle resonance on a post",
    responses=_POST_NOT_FOUND,
)
def like(payload: PostLikeRequest, db: Session = Depends(get_db)):
    is_liked, resonance = toggle_like(db, payload.post_id, payload.user_id)
    return PostLikeResponse(isLiked=is_liked, resonance=resonance)


@router.get(
    "/{post_id}/comments",
    response_model=list[CommentResponse],
    summary="Comment tree of a post",
    responses=_POST_NOT_FOUND,
)
def read_comments(post_id: int, db: Session = Depends(get_db)):
    return comment_tree(db, post_id)


@router.post(
    "/{post_id}/comments",
    response_model=CommentResponse,
    status_code=201,
    summary="Comment on a post or reply to a comment",
    responses={
        **_POST_NOT_FOUND,
        422: {"model": ErrorResponse, "description": "Parent comment is on another post."},
    },
)
def comment(post_id: int, payload: CommentCreateRequest, db: Session = Depends(get_db)):
    c = add_comment(db, post_id, payload.author_id, payload.content, payload.parent_id)
    return CommentResponse(
        id=c.id,
        post_id=c.post_id,
        author_id=c.author_id,
        author_name=c.author.username if c.author else None,
        author_avatar=c.author.avatar_url if c.author else None,
        content=c.content,
        parent_id=c.parent_id,
        created_at=c.created_at.isoformat() if c.created_at else None,
    )
