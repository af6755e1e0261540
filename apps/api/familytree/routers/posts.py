import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from familytree.core.auth import AuthContext, require_auth
from familytree.core.config import settings
from familytree.core.db import get_db
from familytree.models.entities import Comment, PermissionLevelEnum, Post, PostVisibilityEnum
from familytree.schemas.posts import (
    CommentCreate,
    CommentResponse,
    Pagination,
    PostCreate,
    PostDetailResponse,
    PostListResponse,
    PostResponse,
    PostUpdate,
)
from familytree.services.access import PermissionResolver, get_permission_resolver, require_family
from familytree.services.errors import NotFound
from familytree.services.posts import (
    build_comment_tree,
    require_author_or_admin,
    require_post_view,
    visible_posts_condition,
)
from familytree.services.purge import purge_comment, purge_post

router = APIRouter(prefix="/v1/posts", tags=["posts"])


def _comment_count(db: Session, post_id: int) -> int:
    return db.execute(select(func.count(Comment.id)).where(Comment.post_id == post_id)).scalar_one()


def _to_post_response(db: Session, post: Post) -> PostResponse:
    return PostResponse(
        id=post.id,
        title=post.title,
        content=post.content,
        image_url=post.image_url,
        visibility=post.visibility.value,
        author_id=post.author_id,
        family_id=post.family_id,
        likes_count=post.likes_count,
        comment_count=_comment_count(db, post.id),
        created_at=post.created_at,
    )


def _to_comment_response(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        content=comment.content,
        post_id=comment.post_id,
        author_id=comment.author_id,
        parent_comment_id=comment.parent_comment_id,
        created_at=comment.created_at,
    )


def _ensure_post_exists(db: Session, post_id: int) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise NotFound("post not found")
    return post


@router.get("", response_model=PostListResponse)
def list_posts(
    family_id: int | None = Query(default=None),
    visibility: str | None = Query(default=None, pattern="^(public|family|admin)$"),
    author_id: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    conditions = []
    visible = visible_posts_condition(ctx)
    if visible is not None:
        conditions.append(visible)
    if family_id is not None:
        conditions.append(Post.family_id == family_id)
    if visibility is not None:
        conditions.append(Post.visibility == PostVisibilityEnum(visibility))
    if author_id is not None:
        conditions.append(Post.author_id == author_id)

    total = db.execute(select(func.count(Post.id)).where(*conditions)).scalar_one()
    posts = db.execute(
        select(Post)
        .where(*conditions)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    ).scalars().all()
    return PostListResponse(
        items=[_to_post_response(db, post) for post in posts],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


@router.get("/{post_id}", response_model=PostDetailResponse)
def get_post(
    post_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    post = _ensure_post_exists(db, post_id)
    require_post_view(resolver, ctx, post)
    comments = db.execute(
        select(Comment).where(Comment.post_id == post_id).order_by(Comment.created_at.asc(), Comment.id.asc())
    ).scalars().all()
    return PostDetailResponse(
        **_to_post_response(db, post).model_dump(),
        comments=build_comment_tree(list(comments)),
    )


@router.post("", response_model=PostResponse, status_code=201)
def create_post(
    payload: PostCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    if payload.family_id is not None:
        require_family(db, payload.family_id)
        resolver.require_family_permission(
            ctx, payload.family_id, PermissionLevelEnum.view, "access denied to this family"
        )
    post = Post(
        title=payload.title,
        content=payload.content,
        image_url=payload.image_url,
        visibility=PostVisibilityEnum(payload.visibility),
        family_id=payload.family_id,
        author_id=ctx.user_id,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return _to_post_response(db, post)


@router.put("/{post_id}", response_model=PostResponse)
def update_post(
    post_id: int,
    payload: PostUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    post = _ensure_post_exists(db, post_id)
    require_author_or_admin(ctx, post.author_id, "post")

    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="no fields to update")
    if "family_id" in changes and changes["family_id"] != post.family_id:
        require_family(db, changes["family_id"])
        resolver.require_family_permission(
            ctx, changes["family_id"], PermissionLevelEnum.view, "access denied to this family"
        )
    if "visibility" in changes:
        changes["visibility"] = PostVisibilityEnum(changes["visibility"])
    for key, value in changes.items():
        setattr(post, key, value)
    db.commit()
    db.refresh(post)
    return _to_post_response(db, post)


@router.delete("/{post_id}", status_code=204)
def delete_post(
    post_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    post = _ensure_post_exists(db, post_id)
    require_author_or_admin(ctx, post.author_id, "post")
    purge_post(db, post.id)
    db.commit()


@router.post("/{post_id}/comments", response_model=CommentResponse, status_code=201)
def add_comment(
    post_id: int,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    post = _ensure_post_exists(db, post_id)
    require_post_view(resolver, ctx, post)
    if payload.parent_comment_id is not None:
        parent = db.get(Comment, payload.parent_comment_id)
        if parent is None or parent.post_id != post_id:
            raise NotFound("parent comment not found")

    comment = Comment(
        content=payload.content,
        post_id=post_id,
        author_id=ctx.user_id,
        parent_comment_id=payload.parent_comment_id,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return _to_comment_response(comment)


@router.delete("/{post_id}/comments/{comment_id}", status_code=204)
def delete_comment(
    post_id: int,
    comment_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    comment = db.get(Comment, comment_id)
    if comment is None or comment.post_id != post_id:
        raise NotFound("comment not found")
    require_author_or_admin(ctx, comment.author_id, "comment")
    purge_comment(db, comment.id)
    db.commit()
