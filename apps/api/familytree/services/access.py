from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy import Select, or_, select
from sqlalchemy.orm import Session

from familytree.core.auth import AuthContext
from familytree.core.db import get_db
from familytree.models.entities import Family, PermissionLevelEnum, Person, RoleEnum, UserFamilyPermission
from familytree.services.errors import Forbidden, NotFound

logger = logging.getLogger(__name__)

PERMISSION_LEVELS: dict[PermissionLevelEnum, int] = {
    PermissionLevelEnum.view: 1,
    PermissionLevelEnum.edit: 2,
    PermissionLevelEnum.admin: 3,
}

_MISSING = object()


def has_permission_level(
    actor_role: RoleEnum | str,
    granted_level: PermissionLevelEnum | str | None,
    required_level: PermissionLevelEnum | str,
) -> bool:
    """
    Decide a family-scoped permission from the actor's global role and grant.

    The global admin role wins before the grant is looked at. Without a grant
    the answer is always False; family publicity is not an input here.
    """
    if RoleEnum(actor_role) == RoleEnum.admin:
        return True
    if granted_level is None:
        return False
    return PERMISSION_LEVELS[PermissionLevelEnum(granted_level)] >= PERMISSION_LEVELS[PermissionLevelEnum(required_level)]


class PermissionResolver:
    """Request-scoped permission lookups with a per-request cache."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._grants: dict[tuple[int, int], PermissionLevelEnum | None] = {}
        self._public: dict[int, bool] = {}

    def grant_level(self, user_id: int, family_id: int) -> PermissionLevelEnum | None:
        key = (user_id, family_id)
        cached = self._grants.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        level = self.db.execute(
            select(UserFamilyPermission.permission_level).where(
                UserFamilyPermission.user_id == user_id,
                UserFamilyPermission.family_id == family_id,
            )
        ).scalar_one_or_none()
        self._grants[key] = level
        return level

    def forget(self, user_id: int, family_id: int) -> None:
        self._grants.pop((user_id, family_id), None)

    def has_permission(
        self,
        actor_id: int,
        actor_role: RoleEnum | str,
        family_id: int,
        required_level: PermissionLevelEnum | str = PermissionLevelEnum.view,
    ) -> bool:
        if RoleEnum(actor_role) == RoleEnum.admin:
            return True
        allowed = has_permission_level(actor_role, self.grant_level(actor_id, family_id), required_level)
        if not allowed:
            logger.debug(
                "permission denied: user=%s family=%s required=%s",
                actor_id,
                family_id,
                PermissionLevelEnum(required_level).value,
            )
        return allowed

    def is_public(self, family_id: int) -> bool:
        if family_id not in self._public:
            family = self.db.get(Family, family_id)
            self._public[family_id] = bool(family is not None and family.is_public)
        return self._public[family_id]

    def can_view_family(self, ctx: AuthContext, family_id: int) -> bool:
        # Grant-or-publication: the resolver itself never looks at is_public.
        return self.has_permission(ctx.user_id, ctx.role, family_id, PermissionLevelEnum.view) or self.is_public(
            family_id
        )

    def require_family_permission(
        self,
        ctx: AuthContext,
        family_id: int,
        required_level: PermissionLevelEnum | str,
        detail: str | None = None,
    ) -> None:
        if not self.has_permission(ctx.user_id, ctx.role, family_id, required_level):
            level = PermissionLevelEnum(required_level).value
            raise Forbidden(detail or f"{level} access required to this family")

    def require_family_view(self, ctx: AuthContext, family_id: int, detail: str = "access denied to this family") -> None:
        if not self.can_view_family(ctx, family_id):
            raise Forbidden(detail)

    def require_person_view(self, ctx: AuthContext, person: Person) -> None:
        if person.family_id is not None:
            self.require_family_view(ctx, person.family_id, "access denied to this person")

    def require_person_edit(
        self,
        ctx: AuthContext,
        person: Person,
        required_level: PermissionLevelEnum = PermissionLevelEnum.edit,
    ) -> None:
        if ctx.is_admin:
            return
        if person.family_id is None:
            raise Forbidden("cannot modify a person without family association")
        self.require_family_permission(
            ctx, person.family_id, required_level, f"{required_level.value} access required to this person's family"
        )


def get_permission_resolver(db: Session = Depends(get_db)) -> PermissionResolver:
    return PermissionResolver(db)


def require_family(db: Session, family_id: int) -> Family:
    family = db.get(Family, family_id)
    if family is None:
        raise NotFound("family not found")
    return family


def require_global_admin(ctx: AuthContext) -> None:
    if not ctx.is_admin:
        raise Forbidden("admin privileges required")


def require_family_creator_role(ctx: AuthContext) -> None:
    if ctx.role == RoleEnum.visitor:
        raise Forbidden("family member privileges required")


def viewable_family_ids(ctx: AuthContext) -> Select:
    """Families the actor holds any grant on, plus every public family."""
    granted = select(UserFamilyPermission.family_id).where(UserFamilyPermission.user_id == ctx.user_id)
    return select(Family.id).where(or_(Family.id.in_(granted), Family.is_public.is_(True)))


def granted_family_ids(ctx: AuthContext) -> Select:
    return select(UserFamilyPermission.family_id).where(UserFamilyPermission.user_id == ctx.user_id)
