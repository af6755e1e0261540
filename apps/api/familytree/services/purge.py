from __future__ import annotations

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from familytree.models.entities import Comment, Family, Person, Post, User, UserFamilyPermission

logger = logging.getLogger(__name__)


def purge_family(db: Session, family_id: int) -> None:
    """
    Delete a family and its grants; persons and posts are detached, not deleted.

    Done explicitly (instead of relying on ON DELETE rules) so the same code
    behaves identically on databases that do not enforce foreign keys.
    """
    db.execute(delete(UserFamilyPermission).where(UserFamilyPermission.family_id == family_id))
    detached_persons = db.execute(
        update(Person).where(Person.family_id == family_id).values(family_id=None)
    ).rowcount
    db.execute(update(Post).where(Post.family_id == family_id).values(family_id=None))
    db.execute(delete(Family).where(Family.id == family_id))
    logger.info("purged family %s (%s persons detached)", family_id, detached_persons)


def purge_post(db: Session, post_id: int) -> None:
    db.execute(delete(Comment).where(Comment.post_id == post_id))
    db.execute(delete(Post).where(Post.id == post_id))


def purge_comment(db: Session, comment_id: int) -> None:
    """Delete a comment together with its whole reply subtree."""
    to_delete = [comment_id]
    frontier = [comment_id]
    while frontier:
        frontier = list(
            db.execute(select(Comment.id).where(Comment.parent_comment_id.in_(frontier))).scalars().all()
        )
        to_delete.extend(frontier)
    db.execute(delete(Comment).where(Comment.id.in_(to_delete)))


def purge_user(db: Session, user_id: int) -> None:
    post_ids = list(db.execute(select(Post.id).where(Post.author_id == user_id)).scalars().all())
    if post_ids:
        db.execute(delete(Comment).where(Comment.post_id.in_(post_ids)))
        db.execute(delete(Post).where(Post.id.in_(post_ids)))
    for comment_id in db.execute(select(Comment.id).where(Comment.author_id == user_id)).scalars().all():
        purge_comment(db, comment_id)
    db.execute(delete(UserFamilyPermission).where(UserFamilyPermission.user_id == user_id))
    db.execute(update(Family).where(Family.created_by == user_id).values(created_by=None))
    db.execute(update(Person).where(Person.created_by == user_id).values(created_by=None))
    db.execute(delete(User).where(User.id == user_id))
