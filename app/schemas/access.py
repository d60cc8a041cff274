from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

PermissionName = Literal["none", "viewer", "editor", "admin"]


def _unwrap(value):
    return getattr(value, "value", value)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    role: Literal["admin", "user"] = "user"
    is_active: bool = True


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    role: Literal["admin", "user"] | None = None
    is_active: bool | None = None


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str | None = None
    role: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("role", mode="before")
    @classmethod
    def unwrap_role(cls, value):
        return _unwrap(value)


class PermissionItem(BaseModel):
    module: str = Field(min_length=1, max_length=120)
    permission: PermissionName


class PermissionsUpdate(BaseModel):
    """Either replace all permissions or set a single module's level."""

    permissions: list[PermissionItem] | None = None
    module: str | None = None
    permission: PermissionName | None = None


class PermissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    module: str
    permission: str
    created_at: datetime

    @field_validator("permission", mode="before")
    @classmethod
    def unwrap_permission(cls, value):
        return _unwrap(value)


class PermissionCheck(BaseModel):
    module: str
    permission: PermissionName
    can_view: bool
    can_edit: bool
    can_delete: bool


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    display_name: str = Field(
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("display_name", "displayName"),
    )
    description: str | None = None
    color: str | None = Field(default=None, max_length=32)


class GroupUpdate(BaseModel):
    display_name: str | None = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("display_name", "displayName"),
    )
    description: str | None = None
    color: str | None = Field(default=None, max_length=32)
    is_active: bool | None = Field(
        default=None, validation_alias=AliasChoices("is_active", "isActive")
    )


class GroupRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    description: str | None = None
    color: str | None = None
    is_active: bool
    member_count: int = 0
    module_count: int = 0
    menu_item_count: int = 0
    created_at: datetime
    updated_at: datetime


class GroupMemberRead(BaseModel):
    id: UUID
    email: str
    name: str | None = None
    role: str


class GroupModuleRead(BaseModel):
    id: UUID
    name: str
    display_name: str


class GroupMenuItemRead(BaseModel):
    id: UUID
    name: str
    display_name: str
    path: str | None = None


class GroupDetail(GroupRead):
    members: list[GroupMemberRead] = []
    modules: list[GroupModuleRead] = []
    menu_items: list[GroupMenuItemRead] = []


class GroupMembersUpdate(BaseModel):
    user_ids: list[UUID] = Field(validation_alias=AliasChoices("user_ids", "userIds"))


class GroupModulesUpdate(BaseModel):
    module_ids: list[UUID] = Field(
        validation_alias=AliasChoices("module_ids", "moduleIds")
    )


class GroupMenuItemsUpdate(BaseModel):
    menu_item_ids: list[UUID] = Field(
        validation_alias=AliasChoices("menu_item_ids", "menuItemIds")
    )


class MenuItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    display_name: str = Field(min_length=1, max_length=255)
    icon: str | None = None
    path: str | None = None


class MenuItemRead(MenuItemCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    is_active: bool
