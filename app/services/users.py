from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.models.access import PermissionLevel, UserPermission
from app.models.user import User, UserRole
from app.schemas.access import PermissionsUpdate, UserCreate, UserUpdate
from app.services.common import coerce_uuid
from app.services.permission_cache import PermissionCache, get_permission_cache
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def find_by_email(db: Session, email: str) -> User | None:
    return db.scalars(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).first()


class Users(ListResponseMixin):
    @staticmethod
    def list(db: Session, is_active: bool | None = None) -> list[User]:
        stmt = select(User).order_by(User.email.asc())
        if is_active is not None:
            stmt = stmt.where(User.is_active == is_active)
        return list(db.scalars(stmt).all())

    @staticmethod
    def get(db: Session, user_id: str) -> User:
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            raise NotFound("User not found")
        return user

    @staticmethod
    def get_or_create(db: Session, email: str, name: str | None = None) -> User:
        """Return the user for ``email``, creating a plain user on first sight."""
        user = find_by_email(db, email)
        if user:
            return user
        user = User(email=email.strip(), name=name or email, role=UserRole.user)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Auto-created user %s", user.email)
        return user

    @staticmethod
    def create(db: Session, payload: UserCreate) -> User:
        if find_by_email(db, payload.email):
            raise ValidationError("A user with this email already exists")
        user = User(
            email=payload.email.strip(),
            name=payload.name,
            role=UserRole(payload.role),
            is_active=payload.is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created user %s", user.id)
        return user

    @staticmethod
    def update(
        db: Session,
        user_id: str,
        payload: UserUpdate,
        cache: PermissionCache | None = None,
    ) -> User:
        user = Users.get(db, user_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("role") is not None:
            data["role"] = UserRole(data["role"])
        for key, value in data.items():
            if value is not None:
                setattr(user, key, value)
        db.commit()
        db.refresh(user)
        (cache or get_permission_cache()).invalidate_principal(user.id)
        logger.info("Updated user %s", user.id)
        return user

    @staticmethod
    def delete(db: Session, user_id: str, cache: PermissionCache | None = None) -> None:
        user = Users.get(db, user_id)
        db.delete(user)
        db.commit()
        (cache or get_permission_cache()).invalidate_principal(user_id)
        logger.info("Deleted user %s", user_id)


class Permissions:
    @staticmethod
    def list(db: Session, user_id: str) -> list[UserPermission]:
        user = Users.get(db, user_id)
        stmt = (
            select(UserPermission)
            .where(UserPermission.user_id == user.id)
            .order_by(UserPermission.module.asc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def update(
        db: Session,
        user_id: str,
        payload: PermissionsUpdate,
        cache: PermissionCache | None = None,
    ) -> list[UserPermission]:
        """Replace all levels, or set one module's level.

        Level ``none`` is stored as the absence of a row.
        """
        user = Users.get(db, user_id)
        if payload.permissions is not None:
            db.execute(delete(UserPermission).where(UserPermission.user_id == user.id))
            levels = {item.module: item.permission for item in payload.permissions}
            for module, level in levels.items():
                if level != "none":
                    db.add(
                        UserPermission(
                            user_id=user.id,
                            module=module,
                            permission=PermissionLevel(level),
                        )
                    )
        elif payload.module and payload.permission:
            db.execute(
                delete(UserPermission)
                .where(UserPermission.user_id == user.id)
                .where(UserPermission.module == payload.module)
            )
            if payload.permission != "none":
                db.add(
                    UserPermission(
                        user_id=user.id,
                        module=payload.module,
                        permission=PermissionLevel(payload.permission),
                    )
                )
        else:
            raise ValidationError("Provide either permissions or module and permission")
        db.commit()
        (cache or get_permission_cache()).invalidate_principal(user.id)
        logger.info("Updated permissions for user %s", user.id)
        return Permissions.list(db, user_id)


users = Users()
permissions = Permissions()
