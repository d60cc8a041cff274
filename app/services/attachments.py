from __future__ import annotations

import base64
import binascii
import logging
import re
import time

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import NotFound, PartialFailure, StorageError, ValidationError
from app.models.records import HistoryAction, Module, ModuleRecord, RecordDocument, RecordImage
from app.schemas.records import DocumentCreate, ImageCreate, ImageReorder
from app.services import history
from app.services.common import coerce_uuid
from app.services.records import decorate, get_record
from app.services.schema_store import feature_enabled, get_module
from app.services.storage import storage

logger = logging.getLogger(__name__)

IMAGE_DATA_URI = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)
FILE_DATA_URI = re.compile(r"^data:(.+?);base64,(.+)$", re.DOTALL)
UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def require_feature(module: Module, feature: str) -> None:
    if not feature_enabled(module, feature):
        raise ValidationError(
            f"The '{feature}' feature is not enabled for module '{module.name}'"
        )


def _decode(encoded: str) -> bytes:
    try:
        content = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Upload is not valid base64 data")
    if len(content) > settings.upload_max_size_bytes:
        raise ValidationError(
            "Upload exceeds the maximum allowed size",
            details={"max_bytes": settings.upload_max_size_bytes},
        )
    return content


def _timestamp() -> int:
    return time.time_ns()


def safe_filename(name: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub("_", name)


def _remove_file(path: str, label: str) -> None:
    try:
        storage.delete(path)
    except (OSError, BotoCoreError, ClientError) as exc:
        logger.warning("Orphaned %s file %s: %s", label, path, exc)
        raise PartialFailure(f"The {label} file could not be removed from storage")


def _commit(db: Session, stored_path: str | None = None) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to save attachment: %s", exc)
        if stored_path:
            storage.delete_quietly(stored_path)
        raise StorageError("Failed to save attachment")


def _load(db: Session, module_name: str, record_id: str, feature: str):
    module = get_module(db, module_name)
    require_feature(module, feature)
    return module, get_record(db, module, record_id)


def _with_images(db: Session, record: ModuleRecord) -> ModuleRecord:
    db.refresh(record)
    return decorate(db, [record])[0]


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


class Images:
    @staticmethod
    def list(db: Session, module_name: str, record_id: str) -> list[RecordImage]:
        _module, record = _load(db, module_name, record_id, "images")
        return list(record.images)

    @staticmethod
    def add(
        db: Session, module_name: str, record_id: str, payload: ImageCreate
    ) -> ModuleRecord:
        module, record = _load(db, module_name, record_id, "images")
        if not payload.image:
            raise ValidationError("Image is required")
        match = IMAGE_DATA_URI.match(payload.image)
        if not match:
            raise ValidationError("Invalid image format")
        ext, encoded = match.group(1), match.group(2)
        content = _decode(encoded)

        filename = f"{module.name}_{record.id}_{_timestamp()}.{ext}"
        image_path = storage.save(filename, content, f"image/{ext}")

        max_order = db.scalar(
            select(func.max(RecordImage.sort_order)).where(
                RecordImage.record_id == record.id
            )
        )
        image = RecordImage(
            module_id=module.id,
            record_id=record.id,
            image_path=image_path,
            sort_order=0 if max_order is None else max_order + 1,
            created_by=payload.created_by,
        )
        db.add(image)
        history.append(
            db, record, HistoryAction.image_added, "Image was added", payload.created_by
        )
        _commit(db, image_path)
        logger.info("Added image %s to record %s", image.id, record.id)
        return _with_images(db, record)

    @staticmethod
    def reorder(
        db: Session, module_name: str, record_id: str, payload: ImageReorder
    ) -> ModuleRecord:
        _module, record = _load(db, module_name, record_id, "images")
        by_id = {image.id: image for image in record.images}
        unknown = [str(image_id) for image_id in payload.image_ids if image_id not in by_id]
        if unknown:
            raise ValidationError(
                "Images do not belong to this record", details={"image_ids": unknown}
            )
        for index, image_id in enumerate(payload.image_ids):
            by_id[image_id].sort_order = index
        _commit(db)
        logger.info("Reordered %d images on record %s", len(payload.image_ids), record.id)
        return _with_images(db, record)

    @staticmethod
    def delete(
        db: Session,
        module_name: str,
        record_id: str,
        image_id: str,
        deleted_by: str | None = None,
    ) -> ModuleRecord:
        _module, record = _load(db, module_name, record_id, "images")
        image = db.get(RecordImage, coerce_uuid(image_id))
        if not image or image.record_id != record.id:
            raise NotFound("Image not found")

        image_path = image.image_path
        db.delete(image)
        history.append(
            db, record, HistoryAction.image_deleted, "Image was deleted", deleted_by
        )
        _commit(db)
        logger.info("Deleted image %s from record %s", image_id, record.id)

        warnings = []
        try:
            _remove_file(image_path, "image")
        except PartialFailure as exc:
            warnings.append(exc.message)
        record = _with_images(db, record)
        record.warnings = warnings
        return record


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class Documents:
    @staticmethod
    def list(db: Session, module_name: str, record_id: str) -> list[RecordDocument]:
        _module, record = _load(db, module_name, record_id, "documents")
        stmt = (
            select(RecordDocument)
            .where(RecordDocument.record_id == record.id)
            .order_by(RecordDocument.created_at.desc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def add(
        db: Session, module_name: str, record_id: str, payload: DocumentCreate
    ) -> RecordDocument:
        module, record = _load(db, module_name, record_id, "documents")
        if not payload.file or not payload.name:
            raise ValidationError("File and name are required")
        match = FILE_DATA_URI.match(payload.file)
        if not match:
            raise ValidationError("Invalid file format")
        mime_type, encoded = match.group(1), match.group(2)
        content = _decode(encoded)

        filename = (
            f"{module.name}_{record.id}_{_timestamp()}_{safe_filename(payload.name)}"
        )
        file_path = storage.save(filename, content, mime_type)

        document = RecordDocument(
            module_id=module.id,
            record_id=record.id,
            file_path=file_path,
            file_name=payload.name,
            file_type=payload.file_type or mime_type,
            file_size=len(content),
            created_by=payload.created_by,
        )
        db.add(document)
        history.append(
            db,
            record,
            HistoryAction.document_added,
            f'Document "{payload.name}" was added',
            payload.created_by,
        )
        _commit(db, file_path)
        db.refresh(document)
        logger.info("Added document %s to record %s", document.id, record.id)
        return document

    @staticmethod
    def delete(
        db: Session, module_name: str, record_id: str, document_id: str
    ) -> list[str]:
        """Delete a document. Returns warnings for side effects that failed."""
        _module, record = _load(db, module_name, record_id, "documents")
        document = db.get(RecordDocument, coerce_uuid(document_id))
        if not document or document.record_id != record.id:
            raise NotFound("Document not found")

        file_path = document.file_path
        db.delete(document)
        _commit(db)
        logger.info("Deleted document %s from record %s", document_id, record.id)

        try:
            _remove_file(file_path, "document")
        except PartialFailure as exc:
            return [exc.message]
        return []


images = Images()
documents = Documents()
