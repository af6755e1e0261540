from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from familytree.core.auth import AuthContext, require_auth
from familytree.core.db import get_db
from familytree.models.entities import RoleEnum, User
from familytree.schemas.users import (
    ProfileUpdate,
    UserActivation,
    UserListResponse,
    UserResponse,
    UserStatsResponse,
    UserUpdate,
)
from familytree.services.access import require_global_admin
from familytree.services.errors import Conflict, Forbidden, NotFound
from familytree.services.purge import purge_user

router = APIRouter(prefix="/v1/users", tags=["users"])


def _to_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role.value,
        is_active=user.is_active,
        created_at=user.created_at,
    )


def _ensure_user_exists(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("user not found")
    return user


def _commit_or_conflict(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("email already exists") from None


@router.get("", response_model=UserListResponse)
def list_users(
    role: str | None = Query(default=None, pattern="^(admin|family_member|visitor)$"),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    require_global_admin(ctx)
    query = select(User)
    if role is not None:
        query = query.where(User.role == RoleEnum(role))
    if is_active is not None:
        query = query.where(User.is_active.is_(is_active))
    if search:
        term = f"%{search}%"
        query = query.where(or_(User.first_name.ilike(term), User.last_name.ilike(term), User.email.ilike(term)))
    users = db.execute(query.order_by(User.created_at.desc(), User.id.desc())).scalars().all()
    return UserListResponse(items=[_to_user_response(user) for user in users])


@router.get("/stats", response_model=UserStatsResponse)
def user_stats(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    require_global_admin(ctx)

    def count(*conditions) -> int:
        return db.execute(select(func.count(User.id)).where(*conditions)).scalar_one()

    recent = db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()).limit(10)).scalars().all()
    return UserStatsResponse(
        total_users=count(),
        active_users=count(User.is_active.is_(True)),
        inactive_users=count(User.is_active.is_(False)),
        admin_users=count(User.role == RoleEnum.admin),
        family_member_users=count(User.role == RoleEnum.family_member),
        visitor_users=count(User.role == RoleEnum.visitor),
        recent_users=[_to_user_response(user) for user in recent],
    )


@router.put("/profile", response_model=UserResponse)
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    user = _ensure_user_exists(db, ctx.user_id)
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="no fields to update")
    if "email" in changes:
        changes["email"] = str(changes["email"]).lower()
    for key, value in changes.items():
        setattr(user, key, value)
    _commit_or_conflict(db)
    db.refresh(user)
    return _to_user_response(user)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    require_global_admin(ctx)
    return _to_user_response(_ensure_user_exists(db, user_id))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    require_global_admin(ctx)
    user = _ensure_user_exists(db, user_id)
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="no fields to update")
    if "email" in changes:
        changes["email"] = str(changes["email"]).lower()
    if "role" in changes:
        changes["role"] = RoleEnum(changes["role"])
    for key, value in changes.items():
        setattr(user, key, value)
    _commit_or_conflict(db)
    db.refresh(user)
    return _to_user_response(user)


@router.post("/{user_id}/activate", response_model=UserResponse)
def set_user_active(
    user_id: int,
    payload: UserActivation,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    require_global_admin(ctx)
    user = _ensure_user_exists(db, user_id)
    if user.id == ctx.user_id and not payload.is_active:
        raise Forbidden("cannot deactivate your own account")
    user.is_active = payload.is_active
    db.commit()
    db.refresh(user)
    return _to_user_response(user)


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    require_global_admin(ctx)
    _ensure_user_exists(db, user_id)
    if user_id == ctx.user_id:
        raise Forbidden("cannot delete your own account")
    purge_user(db, user_id)
    db.commit()
