from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import Conflict, NotFound, StorageError, ValidationError
from app.metrics import RECORD_MUTATIONS
from app.models.records import Module, ModuleRecord, RecordImage, RecordView
from app.schemas.records import RecordCreate, RecordUpdate
from app.services import history
from app.services.common import coerce_uuid
from app.services.event import EventType, publish_event
from app.services.field_values import validate_data
from app.services.response import ListResponseMixin
from app.services.schema_store import (
    get_fields,
    get_module,
    get_sub_modules,
    resolve_status,
)
from app.services.storage import storage

logger = logging.getLogger(__name__)


def get_record(db: Session, module: Module, record_id) -> ModuleRecord:
    record = db.get(ModuleRecord, coerce_uuid(record_id))
    if not record or record.module_id != module.id:
        raise NotFound("Record not found")
    return record


def _thumbnails(db: Session, record_ids: list) -> dict:
    if not record_ids:
        return {}
    rows = db.execute(
        select(RecordImage.record_id, RecordImage.image_path)
        .where(RecordImage.record_id.in_(record_ids))
        .order_by(RecordImage.sort_order.asc(), RecordImage.id.asc())
    ).all()
    thumbnails = {}
    for record_id, image_path in rows:
        thumbnails.setdefault(record_id, image_path)
    return thumbnails


def _viewed(db: Session, record_ids: list, viewer_email: str | None) -> set:
    if not record_ids or not viewer_email:
        return set()
    return set(
        db.scalars(
            select(RecordView.record_id)
            .where(RecordView.record_id.in_(record_ids))
            .where(RecordView.user_email == viewer_email)
        ).all()
    )


def decorate(
    db: Session, records: list[ModuleRecord], viewer_email: str | None = None
) -> list[ModuleRecord]:
    """Attach the derived ``thumbnail`` and ``is_viewed`` attributes."""
    ids = [record.id for record in records]
    thumbnails = _thumbnails(db, ids)
    viewed = _viewed(db, ids, viewer_email)
    for record in records:
        record.thumbnail = thumbnails.get(record.id)
        record.is_viewed = record.id in viewed
    return records


def mark_viewed(db: Session, record: ModuleRecord, viewer_email: str | None) -> None:
    """Upsert the viewed marker. Failures are logged and never raised."""
    if not viewer_email:
        return
    try:
        with db.begin_nested():
            view = db.scalars(
                select(RecordView)
                .where(RecordView.record_id == record.id)
                .where(RecordView.user_email == viewer_email)
            ).first()
            if view:
                view.viewed_at = datetime.now(timezone.utc)
            else:
                db.add(
                    RecordView(
                        record_id=record.id,
                        module_id=record.module_id,
                        user_email=viewer_email,
                    )
                )
        db.commit()
    except SQLAlchemyError as exc:
        logger.warning("Could not mark record %s viewed: %s", record.id, exc)
        db.rollback()


def _commit(db: Session, action: str, record_id) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to %s record %s: %s", action, record_id, exc)
        raise StorageError(f"Failed to {action} record")


def _require_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise ValidationError("Name is required")
    return name.strip()


def _attachment_paths(records: list[ModuleRecord]) -> list[str]:
    paths = []
    for record in records:
        paths.extend(image.image_path for image in record.images)
        paths.extend(doc.file_path for doc in record.documents)
    return paths


def _remove_files(paths: list[str]) -> None:
    for path in paths:
        storage.delete_quietly(path)


def _children(db: Session, record: ModuleRecord) -> list[ModuleRecord]:
    return list(
        db.scalars(
            select(ModuleRecord).where(ModuleRecord.parent_record_id == record.id)
        ).all()
    )


def _descendants(db: Session, record: ModuleRecord) -> list[ModuleRecord]:
    found = []
    pending = _children(db, record)
    seen = {record.id}
    while pending:
        child = pending.pop()
        if child.id in seen:
            continue
        seen.add(child.id)
        found.append(child)
        pending.extend(_children(db, child))
    return found


def purge_module_records(db: Session, module: Module) -> list[str]:
    """Delete every record of ``module`` without committing.

    Returns the stored file paths so they can be removed after commit.
    """
    records = list(
        db.scalars(select(ModuleRecord).where(ModuleRecord.module_id == module.id)).all()
    )
    paths = _attachment_paths(records)
    for record in records:
        db.delete(record)
    db.flush()
    logger.info("Purged %d records from module %s", len(records), module.name)
    return paths


class Records(ListResponseMixin):
    @staticmethod
    def list(
        db: Session,
        module_name: str,
        viewer_email: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ModuleRecord]:
        module = get_module(db, module_name)
        stmt = (
            select(ModuleRecord)
            .where(ModuleRecord.module_id == module.id)
            .order_by(ModuleRecord.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit).offset(offset)
        records = list(db.scalars(stmt).all())
        return decorate(db, records, viewer_email)

    @staticmethod
    def get(
        db: Session, module_name: str, record_id: str, viewer_email: str | None = None
    ) -> ModuleRecord:
        module = get_module(db, module_name)
        record = get_record(db, module, record_id)
        mark_viewed(db, record, viewer_email)
        decorate(db, [record], viewer_email)
        return record

    @staticmethod
    def create(
        db: Session,
        module_name: str,
        payload: RecordCreate,
        source: str | None = None,
    ) -> ModuleRecord:
        module = get_module(db, module_name)
        name = _require_name(payload.name)
        data = validate_data(
            db, get_fields(db, module.id), payload.data, apply_defaults=True
        )

        if payload.parent_record_id is not None:
            if module.parent_module_id is None:
                raise ValidationError(
                    f"Module '{module.name}' is not a sub-module; "
                    "records cannot have a parent"
                )
            parent = db.get(ModuleRecord, payload.parent_record_id)
            if not parent:
                raise NotFound("Parent record not found")
            if parent.module_id != module.parent_module_id:
                raise ValidationError(
                    "Parent record does not belong to the parent module"
                )

        record = ModuleRecord(
            module_id=module.id,
            name=name,
            status=resolve_status(module, payload.status),
            data=data,
            parent_record_id=payload.parent_record_id,
            assigned_to=payload.assigned_to or None,
            created_by=payload.created_by,
            updated_by=payload.created_by,
            version=1,
        )
        try:
            db.add(record)
            db.flush()
            history.record_created(db, record, payload.created_by)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to create record in %s: %s", module_name, exc)
            raise StorageError("Failed to create record")
        _commit(db, "create", record.id)
        db.refresh(record)
        logger.info("Created record %s in module %s", record.id, module_name)

        RECORD_MUTATIONS.labels(module_name, "create").inc()
        publish_event(EventType.record_created, module_name, record.id, source=source)
        return decorate(db, [record])[0]

    @staticmethod
    def update(
        db: Session, module_name: str, record_id: str, payload: RecordUpdate
    ) -> ModuleRecord:
        module = get_module(db, module_name)
        record = get_record(db, module, record_id)

        if payload.version is not None and payload.version != record.version:
            raise Conflict(
                "Record was modified by someone else",
                details={"expected": payload.version, "current": record.version},
            )

        supplied = payload.model_fields_set
        name = _require_name(payload.name) if payload.name is not None else None
        status = (
            resolve_status(module, payload.status) if payload.status is not None else None
        )
        assigned_to_set = "assigned_to" in supplied
        assigned_to = payload.assigned_to or None
        fields = get_fields(db, module.id)
        data = validate_data(db, fields, payload.data) if payload.data is not None else None

        changes = history.compute_changes(
            record,
            fields,
            name=name,
            status=status,
            assigned_to=assigned_to,
            data=data,
            assigned_to_set=assigned_to_set,
        )

        if name is not None:
            record.name = name
        if status is not None:
            record.status = status
        if assigned_to_set:
            record.assigned_to = assigned_to
        if data is not None:
            record.data = data
        if payload.updated_by:
            record.updated_by = payload.updated_by
        record.version = (record.version or 1) + 1

        try:
            history.record_updated(db, record, changes, payload.updated_by)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to record history for %s: %s", record_id, exc)
            raise StorageError("Failed to update record")
        _commit(db, "update", record.id)
        db.refresh(record)
        logger.info(
            "Updated record %s in module %s (%d changes)",
            record.id,
            module_name,
            len(changes),
        )

        RECORD_MUTATIONS.labels(module_name, "update").inc()
        publish_event(EventType.record_updated, module_name, record.id)
        return decorate(db, [record])[0]

    @staticmethod
    def delete(db: Session, module_name: str, record_id: str) -> None:
        module = get_module(db, module_name)
        record = get_record(db, module, record_id)
        children = _children(db, record)
        doomed = [record]

        if children:
            policy = settings.record_child_delete_policy
            if policy == "cascade":
                doomed = _descendants(db, record) + doomed
            elif policy == "orphan":
                for child in children:
                    child.parent_record_id = None
                logger.warning(
                    "Deleting record %s orphans %d child record(s)",
                    record.id,
                    len(children),
                )
            else:
                raise ValidationError(
                    f"Record has {len(children)} child record(s); delete them first",
                    details=Records.get_children_count(db, record.id),
                )

        paths = _attachment_paths(doomed)
        for target in doomed:
            db.delete(target)
        _commit(db, "delete", record_id)
        # Files go only after the rows are committed; a failed commit keeps them
        _remove_files(paths)

        RECORD_MUTATIONS.labels(module_name, "delete").inc()
        logger.info(
            "Deleted record %s from module %s (%d total)",
            record_id,
            module_name,
            len(doomed),
        )

    @staticmethod
    def list_history(db: Session, module_name: str, record_id: str):
        record = get_record(db, get_module(db, module_name), record_id)
        return history.list_history(db, record)

    @staticmethod
    def add_note(
        db: Session,
        module_name: str,
        record_id: str,
        description: str,
        changed_by: str | None = None,
    ):
        record = get_record(db, get_module(db, module_name), record_id)
        return history.add_note(db, record, description, changed_by)

    @staticmethod
    def get_children(
        db: Session,
        parent_record_id: str,
        sub_module_name: str,
        viewer_email: str | None = None,
    ) -> list[ModuleRecord]:
        parent = db.get(ModuleRecord, coerce_uuid(parent_record_id))
        if not parent:
            raise NotFound("Record not found")
        sub_module = get_module(db, sub_module_name)
        stmt = (
            select(ModuleRecord)
            .where(ModuleRecord.module_id == sub_module.id)
            .where(ModuleRecord.parent_record_id == parent.id)
            .order_by(ModuleRecord.created_at.desc())
        )
        return decorate(db, list(db.scalars(stmt).all()), viewer_email)

    @staticmethod
    def get_children_count(db: Session, parent_record_id) -> dict:
        parent = db.get(ModuleRecord, coerce_uuid(parent_record_id))
        if not parent:
            raise NotFound("Record not found")

        breakdown = []
        for sub_module in get_sub_modules(db, parent.module_id):
            count = db.scalar(
                select(func.count(ModuleRecord.id))
                .where(ModuleRecord.module_id == sub_module.id)
                .where(ModuleRecord.parent_record_id == parent.id)
            )
            if count:
                breakdown.append(
                    {
                        "module_name": sub_module.name,
                        "display_name": sub_module.display_name,
                        "count": count,
                    }
                )
        return {
            "total_count": sum(item["count"] for item in breakdown),
            "breakdown": breakdown,
        }


records = Records()
