from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_admin
from app.schemas.common import ListResponse
from app.schemas.modules import (
    FieldCreate,
    FieldRead,
    FieldUpdate,
    ModuleCreate,
    ModuleRead,
    ModuleUpdate,
)
from app.services import schema_store

router = APIRouter(prefix="/modules", tags=["modules"])


# ------------------------------------------------------------------
# Module CRUD
# ------------------------------------------------------------------


@router.get("", response_model=ListResponse[ModuleRead])
def list_modules(
    is_active: bool | None = None,
    parent_module_id: str | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return schema_store.modules.list_response(
        db, is_active, parent_module_id, order_by, order_dir, limit, offset
    )


@router.post(
    "",
    response_model=ModuleRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_module(payload: ModuleCreate, db: Session = Depends(get_db)):
    return schema_store.modules.create(db, payload)


@router.get("/{module_name}", response_model=ModuleRead)
def get_module(module_name: str, db: Session = Depends(get_db)):
    return schema_store.modules.get(db, module_name)


@router.get("/{module_name}/sub-modules", response_model=list[ModuleRead])
def list_sub_modules(module_name: str, db: Session = Depends(get_db)):
    module = schema_store.get_module(db, module_name)
    return schema_store.get_sub_modules(db, module.id)


@router.patch(
    "/{module_name}",
    response_model=ModuleRead,
    dependencies=[Depends(require_admin)],
)
def update_module(
    module_name: str, payload: ModuleUpdate, db: Session = Depends(get_db)
):
    return schema_store.modules.update(db, module_name, payload)


@router.delete(
    "/{module_name}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_module(module_name: str, db: Session = Depends(get_db)):
    schema_store.modules.delete(db, module_name)


# ------------------------------------------------------------------
# Field CRUD
# ------------------------------------------------------------------


@router.get("/{module_name}/fields", response_model=list[FieldRead])
def list_fields(module_name: str, db: Session = Depends(get_db)):
    return schema_store.fields.list(db, module_name)


@router.post(
    "/{module_name}/fields",
    response_model=FieldRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_field(module_name: str, payload: FieldCreate, db: Session = Depends(get_db)):
    return schema_store.fields.create(db, module_name, payload)


@router.patch(
    "/{module_name}/fields/{field_id}",
    response_model=FieldRead,
    dependencies=[Depends(require_admin)],
)
def update_field(
    module_name: str,
    field_id: str,
    payload: FieldUpdate,
    db: Session = Depends(get_db),
):
    return schema_store.fields.update(db, module_name, field_id, payload)


@router.delete(
    "/{module_name}/fields/{field_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_field(module_name: str, field_id: str, db: Session = Depends(get_db)):
    schema_store.fields.delete(db, module_name, field_id)
