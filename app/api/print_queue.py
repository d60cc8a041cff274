from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user_auth
from app.schemas.records import PrintQueueItemCreate, PrintQueueItemRead
from app.services.access import Operation, Principal, authorize
from app.services.permission_cache import PermissionCache, get_permission_cache
from app.services.print_queue import print_queue

router = APIRouter(prefix="/print-queue", tags=["print-queue"])


@router.get("", response_model=list[PrintQueueItemRead])
def list_print_queue(
    status: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    return print_queue.list(db, status)


@router.get("/pending", response_model=list[PrintQueueItemRead])
def list_pending(db: Session = Depends(get_db)):
    return print_queue.pending(db)


@router.post(
    "", response_model=PrintQueueItemRead, status_code=status.HTTP_201_CREATED
)
def add_to_print_queue(
    payload: PrintQueueItemCreate,
    principal: Principal = Depends(require_user_auth),
    cache: PermissionCache = Depends(get_permission_cache),
    db: Session = Depends(get_db),
):
    if payload.module_name:
        authorize(db, principal, payload.module_name, Operation.view, cache)
    if not payload.created_by:
        payload.created_by = principal.email
    return print_queue.add(db, payload)


@router.delete("/clear/printed")
def clear_printed(db: Session = Depends(get_db)):
    deleted = print_queue.clear_printed(db)
    return {"success": True, "deleted": deleted}


@router.put("/{item_id}/printed", response_model=PrintQueueItemRead)
def mark_printed(item_id: str, db: Session = Depends(get_db)):
    return print_queue.mark_printed(db, item_id)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_print_queue_item(item_id: str, db: Session = Depends(get_db)):
    print_queue.delete(db, item_id)
