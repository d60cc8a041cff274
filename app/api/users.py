from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_admin, require_user_auth
from app.schemas.access import (
    PermissionCheck,
    PermissionRead,
    PermissionsUpdate,
    UserCreate,
    UserRead,
    UserUpdate,
)
from app.schemas.common import ListResponse
from app.services import access as access_service
from app.services import users as users_service
from app.services.access import Principal
from app.services.permission_cache import PermissionCache, get_permission_cache

router = APIRouter(prefix="/users", tags=["users"])
permissions_router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("/me", response_model=UserRead)
def read_current_user(
    principal: Principal = Depends(require_user_auth), db: Session = Depends(get_db)
):
    return users_service.users.get_or_create(db, principal.email, principal.name)


@router.get(
    "",
    response_model=ListResponse[UserRead],
    dependencies=[Depends(require_admin)],
)
def list_users(is_active: bool | None = None, db: Session = Depends(get_db)):
    return users_service.users.list_response(db, is_active)


@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    return users_service.users.create(db, payload)


@router.get(
    "/{user_id}", response_model=UserRead, dependencies=[Depends(require_admin)]
)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return users_service.users.get(db, user_id)


@router.patch(
    "/{user_id}", response_model=UserRead, dependencies=[Depends(require_admin)]
)
def update_user(
    user_id: str,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
):
    return users_service.users.update(db, user_id, payload, cache)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
):
    users_service.users.delete(db, user_id, cache)


@router.get(
    "/{user_id}/permissions",
    response_model=list[PermissionRead],
    dependencies=[Depends(require_admin)],
)
def list_permissions(user_id: str, db: Session = Depends(get_db)):
    return users_service.permissions.list(db, user_id)


@router.put(
    "/{user_id}/permissions",
    response_model=list[PermissionRead],
    dependencies=[Depends(require_admin)],
)
def update_permissions(
    user_id: str,
    payload: PermissionsUpdate,
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
):
    return users_service.permissions.update(db, user_id, payload, cache)


@permissions_router.get("/check", response_model=PermissionCheck)
def check_permission(
    module: str = Query(min_length=1),
    principal: Principal = Depends(require_user_auth),
    db: Session = Depends(get_db),
    cache: PermissionCache = Depends(get_permission_cache),
):
    return access_service.check_permission(db, principal, module, cache)
