"""Label print queue shared by every module that enables label printing."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.models.records import PrintQueueItem, PrintStatus
from app.schemas.records import PrintQueueItemCreate
from app.services.common import coerce_uuid
from app.services.records import get_record
from app.services.schema_store import get_module, module_config

logger = logging.getLogger(__name__)


def label_print_enabled(module) -> bool:
    return bool(module_config(module).get("enableLabelPrint"))


class PrintQueue:
    @staticmethod
    def list(db: Session, status: str | None = None) -> list[PrintQueueItem]:
        stmt = select(PrintQueueItem).order_by(PrintQueueItem.created_at.desc())
        if status is not None:
            try:
                stmt = stmt.where(PrintQueueItem.status == PrintStatus(status))
            except ValueError:
                raise ValidationError(f"Unknown print status '{status}'")
        return list(db.scalars(stmt).all())

    @staticmethod
    def pending(db: Session) -> list[PrintQueueItem]:
        stmt = (
            select(PrintQueueItem)
            .where(PrintQueueItem.status == PrintStatus.pending)
            .order_by(PrintQueueItem.created_at.asc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def get(db: Session, item_id: str) -> PrintQueueItem:
        item = db.get(PrintQueueItem, coerce_uuid(item_id))
        if not item:
            raise NotFound("Print queue item not found")
        return item

    @staticmethod
    def add(db: Session, payload: PrintQueueItemCreate) -> PrintQueueItem:
        if payload.record_id is None or not payload.module_name:
            raise ValidationError("Missing required fields")
        module = get_module(db, payload.module_name)
        if not label_print_enabled(module):
            raise ValidationError(
                f"Label printing is not enabled for module '{module.name}'"
            )
        if payload.module_id is not None and payload.module_id != module.id:
            raise ValidationError("moduleId does not match moduleName")
        record = get_record(db, module, payload.record_id)

        item = PrintQueueItem(
            module_id=module.id,
            record_id=record.id,
            module_name=module.name,
            record_name=(payload.record_name or "").strip() or record.name,
            status=PrintStatus.pending,
            created_by=payload.created_by or "unknown",
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        logger.info("Queued label for record %s (%s)", record.id, module.name)
        return item

    @staticmethod
    def mark_printed(db: Session, item_id: str) -> PrintQueueItem:
        item = PrintQueue.get(db, item_id)
        item.status = PrintStatus.printed
        item.printed_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def delete(db: Session, item_id: str) -> None:
        item = PrintQueue.get(db, item_id)
        db.delete(item)
        db.commit()
        logger.info("Removed print queue item %s", item_id)

    @staticmethod
    def clear_printed(db: Session) -> int:
        result = db.execute(
            delete(PrintQueueItem).where(PrintQueueItem.status == PrintStatus.printed)
        )
        db.commit()
        logger.info("Cleared %d printed label(s)", result.rowcount)
        return result.rowcount


print_queue = PrintQueue()
