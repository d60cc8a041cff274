from __future__ import annotations

import logging
import re

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.models.access import (
    GroupMenuAccess,
    GroupModuleAccess,
    MenuItem,
    UserGroup,
    UserGroupMember,
)
from app.models.records import Module
from app.models.user import User
from app.schemas.access import (
    GroupCreate,
    GroupMembersUpdate,
    GroupMenuItemsUpdate,
    GroupModulesUpdate,
    GroupUpdate,
    MenuItemCreate,
)
from app.services.common import coerce_uuid
from app.services.permission_cache import PermissionCache, get_permission_cache
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    slug = re.sub(r"\s+", "_", name.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", slug)


def _member_ids(db: Session, group_id) -> list:
    return list(
        db.scalars(
            select(UserGroupMember.user_id).where(UserGroupMember.group_id == group_id)
        ).all()
    )


def _count(db: Session, model, group_id) -> int:
    return db.scalar(select(func.count(model.id)).where(model.group_id == group_id)) or 0


def _with_counts(db: Session, group: UserGroup) -> UserGroup:
    group.member_count = _count(db, UserGroupMember, group.id)
    group.module_count = _count(db, GroupModuleAccess, group.id)
    group.menu_item_count = _count(db, GroupMenuAccess, group.id)
    return group


def _check_ids(db: Session, model, ids: list, label: str) -> None:
    if not ids:
        return
    found = set(db.scalars(select(model.id).where(model.id.in_(ids))).all())
    missing = [str(item) for item in ids if item not in found]
    if missing:
        raise ValidationError(f"Unknown {label}", details={"ids": missing})


class Groups(ListResponseMixin):
    @staticmethod
    def list(db: Session, is_active: bool | None = None) -> list[UserGroup]:
        stmt = select(UserGroup).order_by(UserGroup.display_name.asc())
        if is_active is not None:
            stmt = stmt.where(UserGroup.is_active == is_active)
        return [_with_counts(db, group) for group in db.scalars(stmt).all()]

    @staticmethod
    def get(db: Session, group_id: str) -> UserGroup:
        group = db.get(UserGroup, coerce_uuid(group_id))
        if not group:
            raise NotFound("Group not found")
        return group

    @staticmethod
    def detail(db: Session, group_id: str) -> dict:
        group = _with_counts(db, Groups.get(db, group_id))
        members = db.scalars(
            select(User)
            .join(UserGroupMember, UserGroupMember.user_id == User.id)
            .where(UserGroupMember.group_id == group.id)
            .order_by(User.email.asc())
        ).all()
        modules = db.scalars(
            select(Module)
            .join(GroupModuleAccess, GroupModuleAccess.module_id == Module.id)
            .where(GroupModuleAccess.group_id == group.id)
            .order_by(Module.display_name.asc())
        ).all()
        menu_items = db.scalars(
            select(MenuItem)
            .join(GroupMenuAccess, GroupMenuAccess.menu_item_id == MenuItem.id)
            .where(GroupMenuAccess.group_id == group.id)
            .order_by(MenuItem.display_name.asc())
        ).all()
        return {
            "id": group.id,
            "name": group.name,
            "display_name": group.display_name,
            "description": group.description,
            "color": group.color,
            "is_active": group.is_active,
            "member_count": group.member_count,
            "module_count": group.module_count,
            "menu_item_count": group.menu_item_count,
            "created_at": group.created_at,
            "updated_at": group.updated_at,
            "members": [
                {"id": u.id, "email": u.email, "name": u.name, "role": u.role.value}
                for u in members
            ],
            "modules": [
                {"id": m.id, "name": m.name, "display_name": m.display_name}
                for m in modules
            ],
            "menu_items": [
                {
                    "id": item.id,
                    "name": item.name,
                    "display_name": item.display_name,
                    "path": item.path,
                }
                for item in menu_items
            ],
        }

    @staticmethod
    def create(db: Session, payload: GroupCreate) -> UserGroup:
        slug = slugify(payload.name)
        if not slug:
            raise ValidationError("Group name must contain letters or digits")
        if db.scalars(select(UserGroup).where(UserGroup.name == slug)).first():
            raise ValidationError("A group with this name already exists")
        group = UserGroup(
            name=slug,
            display_name=payload.display_name,
            description=payload.description,
            color=payload.color,
        )
        db.add(group)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationError("A group with this name already exists")
        db.refresh(group)
        logger.info("Created group %s (%s)", group.name, group.id)
        return _with_counts(db, group)

    @staticmethod
    def update(
        db: Session,
        group_id: str,
        payload: GroupUpdate,
        cache: PermissionCache | None = None,
    ) -> UserGroup:
        group = Groups.get(db, group_id)
        data = payload.model_dump(exclude_unset=True)
        for key, value in data.items():
            setattr(group, key, value)
        db.commit()
        db.refresh(group)
        if "is_active" in data:
            (cache or get_permission_cache()).invalidate_principals(
                _member_ids(db, group.id)
            )
        logger.info("Updated group %s", group.id)
        return _with_counts(db, group)

    @staticmethod
    def delete(
        db: Session, group_id: str, cache: PermissionCache | None = None
    ) -> None:
        group = Groups.get(db, group_id)
        members = _member_ids(db, group.id)
        db.delete(group)
        db.commit()
        (cache or get_permission_cache()).invalidate_principals(members)
        logger.info("Deleted group %s", group_id)

    @staticmethod
    def set_members(
        db: Session,
        group_id: str,
        payload: GroupMembersUpdate,
        cache: PermissionCache | None = None,
    ) -> dict:
        group = Groups.get(db, group_id)
        user_ids = list(dict.fromkeys(payload.user_ids))
        _check_ids(db, User, user_ids, "users")

        previous = _member_ids(db, group.id)
        db.execute(delete(UserGroupMember).where(UserGroupMember.group_id == group.id))
        for user_id in user_ids:
            db.add(UserGroupMember(group_id=group.id, user_id=user_id))
        db.commit()

        (cache or get_permission_cache()).invalidate_principals(
            set(previous) | set(user_ids)
        )
        logger.info("Set %d members on group %s", len(user_ids), group.id)
        return Groups.detail(db, str(group.id))

    @staticmethod
    def set_modules(
        db: Session,
        group_id: str,
        payload: GroupModulesUpdate,
        cache: PermissionCache | None = None,
    ) -> dict:
        group = Groups.get(db, group_id)
        module_ids = list(dict.fromkeys(payload.module_ids))
        _check_ids(db, Module, module_ids, "modules")

        db.execute(
            delete(GroupModuleAccess).where(GroupModuleAccess.group_id == group.id)
        )
        for module_id in module_ids:
            db.add(GroupModuleAccess(group_id=group.id, module_id=module_id))
        db.commit()

        (cache or get_permission_cache()).invalidate_principals(
            _member_ids(db, group.id)
        )
        logger.info("Set %d modules on group %s", len(module_ids), group.id)
        return Groups.detail(db, str(group.id))

    @staticmethod
    def set_menu_items(
        db: Session, group_id: str, payload: GroupMenuItemsUpdate
    ) -> dict:
        group = Groups.get(db, group_id)
        item_ids = list(dict.fromkeys(payload.menu_item_ids))
        _check_ids(db, MenuItem, item_ids, "menu items")

        db.execute(delete(GroupMenuAccess).where(GroupMenuAccess.group_id == group.id))
        for item_id in item_ids:
            db.add(GroupMenuAccess(group_id=group.id, menu_item_id=item_id))
        db.commit()
        logger.info("Set %d menu items on group %s", len(item_ids), group.id)
        return Groups.detail(db, str(group.id))

    @staticmethod
    def for_user(db: Session, user_id: str) -> list[UserGroup]:
        stmt = (
            select(UserGroup)
            .join(UserGroupMember, UserGroupMember.group_id == UserGroup.id)
            .where(UserGroupMember.user_id == coerce_uuid(user_id))
            .order_by(UserGroup.display_name.asc())
        )
        return [_with_counts(db, group) for group in db.scalars(stmt).all()]

    @staticmethod
    def modules_for_user(db: Session, user_id: str) -> list[Module]:
        stmt = (
            select(Module)
            .join(GroupModuleAccess, GroupModuleAccess.module_id == Module.id)
            .join(UserGroupMember, UserGroupMember.group_id == GroupModuleAccess.group_id)
            .join(UserGroup, UserGroup.id == UserGroupMember.group_id)
            .where(UserGroupMember.user_id == coerce_uuid(user_id))
            .where(UserGroup.is_active.is_(True))
            .distinct()
            .order_by(Module.display_name.asc())
        )
        return list(db.scalars(stmt).all())


class MenuItems(ListResponseMixin):
    @staticmethod
    def list(db: Session) -> list[MenuItem]:
        return list(
            db.scalars(select(MenuItem).order_by(MenuItem.display_name.asc())).all()
        )

    @staticmethod
    def create(db: Session, payload: MenuItemCreate) -> MenuItem:
        if db.scalars(select(MenuItem).where(MenuItem.name == payload.name)).first():
            raise ValidationError("A menu item with this name already exists")
        item = MenuItem(**payload.model_dump())
        db.add(item)
        db.commit()
        db.refresh(item)
        logger.info("Created menu item %s", item.id)
        return item


groups = Groups()
menu_items = MenuItems()
