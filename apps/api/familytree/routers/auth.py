from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from familytree.core.auth import AuthContext, get_auth_context, require_auth
from familytree.core.db import get_db
from familytree.models.entities import Family, UserFamilyPermission

router = APIRouter(prefix="/v1", tags=["auth"])


@router.get("/me")
def get_me(
    db: Session = Depends(get_db),
    ctx: AuthContext | None = Depends(get_auth_context),
):
    """
    Returns the authenticated user and the families they hold grants on.

    Anonymous callers get an unauthenticated response instead of a 401.
    """
    if ctx is None:
        return {"authenticated": False, "user_id": None, "email": None, "role": None, "grants": []}

    grants = db.execute(
        select(UserFamilyPermission, Family)
        .join(Family, Family.id == UserFamilyPermission.family_id)
        .where(UserFamilyPermission.user_id == ctx.user_id)
        .order_by(Family.name.asc())
    ).all()

    return {
        "authenticated": True,
        "user_id": ctx.user_id,
        "email": ctx.email,
        "role": ctx.role.value,
        "grants": [
            {
                "family_id": family.id,
                "family_name": family.name,
                "permission_level": grant.permission_level.value,
            }
            for grant, family in grants
        ],
    }


@router.post("/logout")
def logout(_: AuthContext = Depends(require_auth)):
    # With forward-auth, logout is handled by the IdP/proxy; the app doesn't hold a session.
    return {"ok": True}
