from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from familytree.core.auth import AuthContext, require_auth
from familytree.core.db import get_db
from familytree.models.entities import Family, PermissionLevelEnum, Person, User, UserFamilyPermission
from familytree.schemas.families import (
    FamilyCreate,
    FamilyDetailResponse,
    FamilyListResponse,
    FamilyMemberCreate,
    FamilyMemberPermissionUpdate,
    FamilyMemberResponse,
    FamilyResponse,
    FamilyUpdate,
)
from familytree.services.access import (
    PermissionResolver,
    get_permission_resolver,
    require_family,
    require_family_creator_role,
    viewable_family_ids,
)
from familytree.services.errors import Conflict, NotFound
from familytree.services.purge import purge_family

router = APIRouter(prefix="/v1/families", tags=["families"])


def _member_count(db: Session, family_id: int) -> int:
    return db.execute(select(func.count(Person.id)).where(Person.family_id == family_id)).scalar_one()


def _to_family_response(db: Session, family: Family, permission_level: str | None = None) -> FamilyResponse:
    return FamilyResponse(
        id=family.id,
        name=family.name,
        description=family.description,
        is_public=family.is_public,
        created_by=family.created_by,
        created_at=family.created_at,
        member_count=_member_count(db, family.id),
        permission_level=permission_level,
    )


def _family_members(db: Session, family_id: int) -> list[FamilyMemberResponse]:
    rows = db.execute(
        select(User, UserFamilyPermission)
        .join(UserFamilyPermission, UserFamilyPermission.user_id == User.id)
        .where(UserFamilyPermission.family_id == family_id)
        .order_by(UserFamilyPermission.created_at.asc(), UserFamilyPermission.id.asc())
    ).all()
    return [
        FamilyMemberResponse(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role.value,
            permission_level=grant.permission_level.value,
            joined_at=grant.created_at,
        )
        for user, grant in rows
    ]


def _get_grant(db: Session, family_id: int, user_id: int) -> UserFamilyPermission | None:
    return db.execute(
        select(UserFamilyPermission).where(
            UserFamilyPermission.family_id == family_id,
            UserFamilyPermission.user_id == user_id,
        )
    ).scalar_one_or_none()


@router.get("", response_model=FamilyListResponse)
def list_families(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    query = select(Family)
    if not ctx.is_admin:
        query = query.where(Family.id.in_(viewable_family_ids(ctx)))
    families = db.execute(query.order_by(Family.name.asc())).scalars().all()
    items = []
    for family in families:
        level = resolver.grant_level(ctx.user_id, family.id)
        items.append(_to_family_response(db, family, level.value if level is not None else None))
    return FamilyListResponse(items=items)


@router.post("", response_model=FamilyResponse, status_code=201)
def create_family(
    payload: FamilyCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    require_family_creator_role(ctx)
    existing = db.execute(select(Family.id).where(Family.name == payload.name)).scalar_one_or_none()
    if existing is not None:
        raise Conflict("family with this name already exists")

    family = Family(
        name=payload.name,
        description=payload.description,
        is_public=payload.is_public,
        created_by=ctx.user_id,
    )
    db.add(family)
    db.flush()
    # Creator becomes the initial family admin.
    db.add(UserFamilyPermission(user_id=ctx.user_id, family_id=family.id, permission_level=PermissionLevelEnum.admin))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("family with this name already exists") from None
    db.refresh(family)
    return _to_family_response(db, family, PermissionLevelEnum.admin.value)


@router.get("/{family_id}", response_model=FamilyDetailResponse)
def get_family(
    family_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    family = require_family(db, family_id)
    resolver.require_family_view(ctx, family_id)
    level = resolver.grant_level(ctx.user_id, family_id)
    base = _to_family_response(db, family, level.value if level is not None else None)
    return FamilyDetailResponse(**base.model_dump(), members=_family_members(db, family_id))


@router.put("/{family_id}", response_model=FamilyResponse)
def update_family(
    family_id: int,
    payload: FamilyUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    family = require_family(db, family_id)
    resolver.require_family_permission(ctx, family_id, PermissionLevelEnum.admin, "admin access required to update family")

    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="no fields to update")
    for key, value in changes.items():
        setattr(family, key, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("family with this name already exists") from None
    db.refresh(family)
    return _to_family_response(db, family)


@router.delete("/{family_id}", status_code=204)
def delete_family(
    family_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    require_family(db, family_id)
    resolver.require_family_permission(ctx, family_id, PermissionLevelEnum.admin, "admin access required to delete family")
    purge_family(db, family_id)
    db.commit()


@router.post("/{family_id}/members", response_model=FamilyMemberResponse, status_code=201)
def add_family_member(
    family_id: int,
    payload: FamilyMemberCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    require_family(db, family_id)
    resolver.require_family_permission(ctx, family_id, PermissionLevelEnum.admin, "admin access required to add members")

    user = db.get(User, payload.user_id)
    if user is None or not user.is_active:
        raise NotFound("user not found")
    if _get_grant(db, family_id, user.id) is not None:
        raise Conflict("user is already a member of this family")

    grant = UserFamilyPermission(
        user_id=user.id,
        family_id=family_id,
        permission_level=PermissionLevelEnum(payload.permission_level),
    )
    db.add(grant)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("user is already a member of this family") from None
    db.refresh(grant)
    resolver.forget(user.id, family_id)
    return FamilyMemberResponse(
        user_id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role.value,
        permission_level=grant.permission_level.value,
        joined_at=grant.created_at,
    )


@router.delete("/{family_id}/members/{user_id}", status_code=204)
def remove_family_member(
    family_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    require_family(db, family_id)
    resolver.require_family_permission(ctx, family_id, PermissionLevelEnum.admin, "admin access required to remove members")
    grant = _get_grant(db, family_id, user_id)
    if grant is None:
        raise NotFound("family member not found")
    db.delete(grant)
    db.commit()
    resolver.forget(user_id, family_id)


@router.put("/{family_id}/members/{user_id}/permission", response_model=FamilyMemberResponse)
def update_member_permission(
    family_id: int,
    user_id: int,
    payload: FamilyMemberPermissionUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    require_family(db, family_id)
    resolver.require_family_permission(
        ctx, family_id, PermissionLevelEnum.admin, "admin access required to update permissions"
    )
    grant = _get_grant(db, family_id, user_id)
    if grant is None:
        raise NotFound("family member not found")
    grant.permission_level = PermissionLevelEnum(payload.permission_level)
    db.commit()
    db.refresh(grant)
    resolver.forget(user_id, family_id)
    user = db.get(User, user_id)
    return FamilyMemberResponse(
        user_id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role.value,
        permission_level=grant.permission_level.value,
        joined_at=grant.created_at,
    )
