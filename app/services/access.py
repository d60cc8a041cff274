"""Per-module access evaluation.

Admins are granted everything. Anyone else needs either an explicit
per-user permission level on the module, which takes precedence when
present, or membership in an active group that lists the module, which
grants view, edit and delete.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import Forbidden, Unauthenticated
from app.models.access import GroupModuleAccess, UserGroup, UserGroupMember, UserPermission
from app.models.records import Module
from app.services.permission_cache import PermissionCache, get_permission_cache
from app.services.schema_store import get_module

logger = logging.getLogger(__name__)

_VIEW_LEVELS = {"viewer", "editor", "admin"}
_EDIT_LEVELS = {"editor", "admin"}


class Operation(enum.Enum):
    view = "view"
    edit = "edit"
    delete = "delete"


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID
    email: str
    role: str = "user"
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class ModuleAccess:
    level: str = "none"
    group_grant: bool = False

    @property
    def can_view(self) -> bool:
        if self.level != "none":
            return self.level in _VIEW_LEVELS
        return self.group_grant

    @property
    def can_edit(self) -> bool:
        if self.level != "none":
            return self.level in _EDIT_LEVELS
        return self.group_grant

    @property
    def can_delete(self) -> bool:
        if self.level != "none":
            return self.level == "admin"
        return self.group_grant

    def allows(self, operation: Operation) -> bool:
        if operation == Operation.view:
            return self.can_view
        if operation == Operation.edit:
            return self.can_edit
        return self.can_delete


ADMIN_ACCESS = ModuleAccess(level="admin", group_grant=True)
NO_ACCESS = ModuleAccess()


def _user_level(db: Session, principal: Principal, module: Module) -> str:
    permission = db.scalars(
        select(UserPermission.permission)
        .where(UserPermission.user_id == principal.id)
        .where(UserPermission.module == module.name)
    ).first()
    return permission.value if permission is not None else "none"


def _has_group_grant(db: Session, principal: Principal, module: Module) -> bool:
    stmt = (
        select(GroupModuleAccess.id)
        .join(UserGroupMember, UserGroupMember.group_id == GroupModuleAccess.group_id)
        .join(UserGroup, UserGroup.id == GroupModuleAccess.group_id)
        .where(UserGroupMember.user_id == principal.id)
        .where(GroupModuleAccess.module_id == module.id)
        .where(UserGroup.is_active.is_(True))
        .limit(1)
    )
    return db.scalar(stmt) is not None


def resolve_access(
    db: Session,
    principal: Principal | None,
    module_name: str,
    cache: PermissionCache | None = None,
) -> ModuleAccess:
    if principal is None:
        raise Unauthenticated()
    if principal.is_admin:
        return ADMIN_ACCESS

    if cache is None:
        cache = get_permission_cache()
    cached = cache.get(principal.id, module_name)
    if cached is not None:
        return cached

    module = get_module(db, module_name)
    access = ModuleAccess(
        level=_user_level(db, principal, module),
        group_grant=_has_group_grant(db, principal, module),
    )
    cache.set(principal.id, module_name, access)
    return access


def can_view(db, principal, module_name, cache=None) -> bool:
    return resolve_access(db, principal, module_name, cache).can_view


def can_edit(db, principal, module_name, cache=None) -> bool:
    return resolve_access(db, principal, module_name, cache).can_edit


def can_delete(db, principal, module_name, cache=None) -> bool:
    return resolve_access(db, principal, module_name, cache).can_delete


def authorize(
    db: Session,
    principal: Principal | None,
    module_name: str,
    operation: Operation | str,
    cache: PermissionCache | None = None,
) -> ModuleAccess:
    operation = Operation(operation)
    access = resolve_access(db, principal, module_name, cache)
    if not access.allows(operation):
        logger.info(
            "Denied %s on module %s for %s",
            operation.value,
            module_name,
            principal.email,
        )
        raise Forbidden("Access denied to this module")
    return access


def check_permission(
    db: Session,
    principal: Principal | None,
    module_name: str | None,
    cache: PermissionCache | None = None,
) -> dict:
    """Report the principal's level and capabilities on a module.

    Unknown modules report ``none`` rather than raising.
    """
    if principal is None or not module_name:
        access = NO_ACCESS
    elif principal.is_admin:
        access = ADMIN_ACCESS
    elif db.scalars(select(Module.id).where(Module.name == module_name)).first() is None:
        access = NO_ACCESS
    else:
        access = resolve_access(db, principal, module_name, cache)
    return {
        "module": module_name or "",
        "permission": access.level,
        "can_view": access.can_view,
        "can_edit": access.can_edit,
        "can_delete": access.can_delete,
    }
