from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_admin
from app.schemas.access import (
    GroupCreate,
    GroupDetail,
    GroupMembersUpdate,
    GroupMenuItemsUpdate,
    GroupModulesUpdate,
    GroupRead,
    GroupUpdate,
    MenuItemCreate,
    MenuItemRead,
)
from app.schemas.common import ListResponse
from app.schemas.modules import ModuleRead
from app.services import groups as groups_service
from app.services.permission_cache import PermissionCache, get_permission_cache

router = APIRouter(
    prefix="/groups", tags=["groups"], dependencies=[Depends(require_admin)]
)


@router.get("", response_model=ListResponse[GroupRead])
def list_groups(is_active: bool | None = None, db: Session = Depends(get_db)):
    return groups_service.groups.list_response(db, is_active)


@router.post("", response_model=GroupRead, status_code=status.HTTP_201_CREATED)
def create_group(payload: GroupCreate, db: Session = Depends(get_db)):
    return groups_service.groups.create(db, payload)


@router.get("/menu-items", response_model=list[MenuItemRead])
def list_menu_items(db: Session = Depends(get_db)):
    return groups_service.menu_items.list(db)


@router.post(
    "/menu-items", response_model=MenuItemRead, status_code=status.HTTP_201_CREATED
)
def create_menu_item(payload: MenuItemCreate, db: Session = Depends(get_db)):
    return groups_service.menu_items.create(db, payload)


@router.get("/user/{user_id}", response_model=list[GroupRead])
def list_user_groups(user_id: str, db: Session = Depends(get_db)):
    return groups_service.groups.for_user(db, user_id)


@router.get("/user/{user_id}/modules", response_model=list[ModuleRead])
def list_user_modules(user_id: str, db: Session = Depends(get_db)):
    return groups_service.groups.modules_for_user(db, user_id)


@router.get("/{group_id}", response_model=GroupDetail)
def get_group(group_id: str, db: Session = Depends(get_db)):
    return groups_service.groups.detail(db, group_id)


@router.patch("/{group_id}", response_model=GroupRead)
def update_group(
    group_id: str,
    payload: GroupUpdate,
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
):
    return groups_service.groups.update(db, group_id, payload, cache)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group(
    group_id: str,
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
):
    groups_service.groups.delete(db, group_id, cache)


@router.put("/{group_id}/members", response_model=GroupDetail)
def set_members(
    group_id: str,
    payload: GroupMembersUpdate,
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
):
    return groups_service.groups.set_members(db, group_id, payload, cache)


@router.put("/{group_id}/modules", response_model=GroupDetail)
def set_modules(
    group_id: str,
    payload: GroupModulesUpdate,
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
):
    return groups_service.groups.set_modules(db, group_id, payload, cache)


@router.put("/{group_id}/menu-items", response_model=GroupDetail)
def set_menu_items(
    group_id: str, payload: GroupMenuItemsUpdate, db: Session = Depends(get_db)
):
    return groups_service.groups.set_menu_items(db, group_id, payload)
