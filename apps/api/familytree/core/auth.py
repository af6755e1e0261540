from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from familytree.core.config import settings
from familytree.core.db import get_db
from familytree.models.entities import RoleEnum, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    email: str
    role: RoleEnum

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.admin


def _provision_user(db: Session, email: str) -> User:
    user = User(email=email, first_name="", last_name="", role=RoleEnum.family_member, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("provisioned user %s (id=%s)", email, user.id)
    return user


def get_auth_context(
    db: Session = Depends(get_db),
    x_forwarded_user: str | None = Header(default=None, alias="X-Forwarded-User"),
    x_dev_user: str | None = Header(default=None, alias="X-Dev-User"),
) -> AuthContext | None:
    """
    Auth boundary.

    Requests are expected to be behind a forward-auth proxy, which injects
    X-Forwarded-User (email). X-Dev-User is honoured only in dev mode.
    Returns None for anonymous requests.
    """
    email = x_forwarded_user
    if not email and settings.auth_mode == "dev":
        email = x_dev_user
    if not email:
        return None

    email = email.strip().lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        user = _provision_user(db, email)
    if not user.is_active:
        raise HTTPException(status_code=401, detail="user is deactivated")
    return AuthContext(user_id=user.id, email=user.email, role=user.role)


def require_auth(ctx: AuthContext | None = Depends(get_auth_context)) -> AuthContext:
    if ctx is None:
        raise HTTPException(status_code=401, detail="authentication required")
    return ctx
