from __future__ import annotations

from sqlalchemy import and_, or_

from familytree.core.auth import AuthContext
from familytree.models.entities import Comment, PermissionLevelEnum, Post, PostVisibilityEnum
from familytree.services.access import PermissionResolver, granted_family_ids
from familytree.services.errors import Forbidden


def can_view_post(resolver: PermissionResolver, ctx: AuthContext, post: Post) -> bool:
    if ctx.is_admin or post.visibility == PostVisibilityEnum.public:
        return True
    if post.visibility == PostVisibilityEnum.admin:
        return False
    # Family posts need a grant; a public family does not open its family posts.
    if post.family_id is None:
        return True
    return resolver.has_permission(ctx.user_id, ctx.role, post.family_id, PermissionLevelEnum.view)


def require_post_view(resolver: PermissionResolver, ctx: AuthContext, post: Post) -> None:
    if not can_view_post(resolver, ctx, post):
        raise Forbidden("access denied to this post")


def require_author_or_admin(ctx: AuthContext, author_id: int, what: str) -> None:
    if not ctx.is_admin and author_id != ctx.user_id:
        raise Forbidden(f"only the author or an admin can modify this {what}")


def visible_posts_condition(ctx: AuthContext):
    """SQL filter matching can_view_post for list queries."""
    if ctx.is_admin:
        return None
    return or_(
        Post.visibility == PostVisibilityEnum.public,
        and_(
            Post.visibility == PostVisibilityEnum.family,
            or_(Post.family_id.is_(None), Post.family_id.in_(granted_family_ids(ctx))),
        ),
    )


def build_comment_tree(comments: list[Comment]) -> list[dict]:
    """Nest comments under their parents; orphans whose parent is gone are dropped."""
    nodes = {
        comment.id: {
            "id": comment.id,
            "content": comment.content,
            "post_id": comment.post_id,
            "author_id": comment.author_id,
            "parent_comment_id": comment.parent_comment_id,
            "created_at": comment.created_at,
            "replies": [],
        }
        for comment in comments
    }
    roots: list[dict] = []
    for comment in comments:
        node = nodes[comment.id]
        if comment.parent_comment_id is None:
            roots.append(node)
        elif comment.parent_comment_id in nodes:
            nodes[comment.parent_comment_id]["replies"].append(node)
    return roots
