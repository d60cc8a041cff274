from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_module_access, require_user_auth
from app.schemas.records import (
    ChildrenCount,
    DocumentCreate,
    DocumentRead,
    HistoryRead,
    ImageCreate,
    ImageRead,
    ImageReorder,
    LinkCreate,
    LinkedCompanyRead,
    LinkRead,
    LinkUpdate,
    NoteCreate,
    RecordCompanyCreate,
    RecordCreate,
    RecordRead,
    RecordUpdate,
)
from app.services import attachments as attachment_service
from app.services import record_links as links_service
from app.services import records as records_service
from app.services.access import Operation, Principal, authorize
from app.services.permission_cache import PermissionCache, get_permission_cache

router = APIRouter(prefix="/modules/{module_name}/records", tags=["records"])

can_view = Depends(require_module_access(Operation.view))
can_edit = Depends(require_module_access(Operation.edit))
can_delete = Depends(require_module_access(Operation.delete))


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


@router.get("", response_model=list[RecordRead], dependencies=[can_view])
def list_records(
    module_name: str,
    limit: int | None = Query(default=None, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    principal: Principal = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return records_service.records.list(
        db, module_name, principal.email, limit=limit, offset=offset
    )


@router.post(
    "",
    response_model=RecordRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[can_edit],
)
def create_record(
    module_name: str,
    payload: RecordCreate,
    source: str | None = Query(default=None, max_length=64),
    principal: Principal = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    if not payload.created_by:
        payload.created_by = principal.email
    return records_service.records.create(db, module_name, payload, source=source)


@router.get("/{record_id}", response_model=RecordRead, dependencies=[can_view])
def get_record(
    module_name: str,
    record_id: str,
    principal: Principal = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return records_service.records.get(db, module_name, record_id, principal.email)


@router.put("/{record_id}", response_model=RecordRead, dependencies=[can_edit])
def update_record(
    module_name: str,
    record_id: str,
    payload: RecordUpdate,
    principal: Principal = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    if not payload.updated_by:
        payload.updated_by = principal.email
    return records_service.records.update(db, module_name, record_id, payload)


@router.delete(
    "/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[can_delete],
)
def delete_record(module_name: str, record_id: str, db: Session = Depends(get_db)):
    records_service.records.delete(db, module_name, record_id)


# ------------------------------------------------------------------
# Images
# ------------------------------------------------------------------


@router.get(
    "/{record_id}/images", response_model=list[ImageRead], dependencies=[can_view]
)
def list_images(module_name: str, record_id: str, db: Session = Depends(get_db)):
    return attachment_service.images.list(db, module_name, record_id)


@router.post(
    "/{record_id}/images",
    response_model=RecordRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[can_edit],
)
def add_image(
    module_name: str,
    record_id: str,
    payload: ImageCreate,
    principal: Principal = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    if not payload.created_by:
        payload.created_by = principal.email
    return attachment_service.images.add(db, module_name, record_id, payload)


@router.put(
    "/{record_id}/images/reorder",
    response_model=RecordRead,
    dependencies=[can_edit],
)
def reorder_images(
    module_name: str,
    record_id: str,
    payload: ImageReorder,
    db: Session = Depends(get_db),
):
    return attachment_service.images.reorder(db, module_name, record_id, payload)


@router.delete(
    "/{record_id}/images/{image_id}",
    response_model=RecordRead,
    dependencies=[can_edit],
)
def delete_image(
    module_name: str,
    record_id: str,
    image_id: str,
    principal: Principal = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return attachment_service.images.delete(
        db, module_name, record_id, image_id, principal.email
    )


# ------------------------------------------------------------------
# Documents
# ------------------------------------------------------------------


@router.get(
    "/{record_id}/documents",
    response_model=list[DocumentRead],
    dependencies=[can_view],
)
def list_documents(module_name: str, record_id: str, db: Session = Depends(get_db)):
    return attachment_service.documents.list(db, module_name, record_id)


@router.post(
    "/{record_id}/documents",
    response_model=DocumentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[can_edit],
)
def add_document(
    module_name: str,
    record_id: str,
    payload: DocumentCreate,
    principal: Principal = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    if not payload.created_by:
        payload.created_by = principal.email
    return attachment_service.documents.add(db, module_name, record_id, payload)


@router.delete("/{record_id}/documents/{document_id}", dependencies=[can_edit])
def delete_document(
    module_name: str,
    record_id: str,
    document_id: str,
    db: Session = Depends(get_db),
):
    warnings = attachment_service.documents.delete(
        db, module_name, record_id, document_id
    )
    return {"success": True, "warnings": warnings}


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------


@router.get(
    "/{record_id}/history", response_model=list[HistoryRead], dependencies=[can_view]
)
def list_history(module_name: str, record_id: str, db: Session = Depends(get_db)):
    return records_service.records.list_history(db, module_name, record_id)


@router.post(
    "/{record_id}/history",
    response_model=HistoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[can_edit],
)
def add_note(
    module_name: str,
    record_id: str,
    payload: NoteCreate,
    principal: Principal = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return records_service.records.add_note(
        db,
        module_name,
        record_id,
        payload.description,
        payload.changed_by or principal.email,
    )


# ------------------------------------------------------------------
# Links
# ------------------------------------------------------------------


@router.get(
    "/{record_id}/links", response_model=list[LinkRead], dependencies=[can_view]
)
def list_links(module_name: str, record_id: str, db: Session = Depends(get_db)):
    return links_service.links.list(db, module_name, record_id)


@router.post(
    "/{record_id}/links",
    response_model=LinkRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[can_edit],
)
def create_link(
    module_name: str,
    record_id: str,
    payload: LinkCreate,
    db: Session = Depends(get_db),
):
    return links_service.links.create(db, module_name, record_id, payload)


@router.put(
    "/{record_id}/links/{link_id}", response_model=LinkRead, dependencies=[can_edit]
)
def update_link(
    module_name: str,
    record_id: str,
    link_id: str,
    payload: LinkUpdate,
    db: Session = Depends(get_db),
):
    return links_service.links.update(db, module_name, record_id, link_id, payload)


@router.delete(
    "/{record_id}/links/{link_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[can_edit],
)
def delete_link(
    module_name: str, record_id: str, link_id: str, db: Session = Depends(get_db)
):
    links_service.links.delete(db, module_name, record_id, link_id)


# ------------------------------------------------------------------
# Companies
# ------------------------------------------------------------------


@router.get(
    "/{record_id}/companies",
    response_model=list[LinkedCompanyRead],
    dependencies=[can_view],
)
def list_record_companies(
    module_name: str, record_id: str, db: Session = Depends(get_db)
):
    return links_service.record_companies.list(db, module_name, record_id)


@router.post(
    "/{record_id}/companies",
    response_model=list[LinkedCompanyRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[can_edit],
)
def link_company(
    module_name: str,
    record_id: str,
    payload: RecordCompanyCreate,
    db: Session = Depends(get_db),
):
    return links_service.record_companies.link(db, module_name, record_id, payload)


@router.delete(
    "/{record_id}/companies/{company_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[can_edit],
)
def unlink_company(
    module_name: str, record_id: str, company_id: str, db: Session = Depends(get_db)
):
    links_service.record_companies.unlink(db, module_name, record_id, company_id)


# ------------------------------------------------------------------
# Children (sub-module records)
# ------------------------------------------------------------------


@router.get(
    "/{record_id}/children-count",
    response_model=ChildrenCount,
    dependencies=[can_view],
)
def children_count(module_name: str, record_id: str, db: Session = Depends(get_db)):
    record = records_service.get_record(
        db, records_service.get_module(db, module_name), record_id
    )
    return records_service.records.get_children_count(db, record.id)


@router.get(
    "/{record_id}/children/{sub_module_name}",
    response_model=list[RecordRead],
    dependencies=[can_view],
)
def list_children(
    module_name: str,
    record_id: str,
    sub_module_name: str,
    principal: Principal = Depends(require_user_auth),
    cache: PermissionCache = Depends(get_permission_cache),
    db: Session = Depends(get_db),
):
    authorize(db, principal, sub_module_name, Operation.view, cache)
    record = records_service.get_record(
        db, records_service.get_module(db, module_name), record_id
    )
    return records_service.records.get_children(
        db, record.id, sub_module_name, principal.email
    )
