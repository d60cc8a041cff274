"""Append-only audit trail for records.

Entries are added to the caller's session and committed with the mutation
they describe. Only ``add_note`` commits on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models.records import HistoryAction, ModuleField, ModuleRecord, RecordHistory
from app.services.field_values import stringify

logger = logging.getLogger(__name__)

BUILTIN_LABELS = {
    "name": "Name",
    "status": "Status",
    "assigned_to": "Assigned To",
}
EMPTY = "(empty)"


@dataclass(frozen=True)
class FieldChange:
    field: str
    display_name: str
    old_value: str
    new_value: str

    @property
    def description(self) -> str:
        old = self.old_value or EMPTY
        new = self.new_value or EMPTY
        return f'{self.display_name} changed from "{old}" to "{new}"'


def _diff(field: str, label: str, old, new) -> FieldChange | None:
    old_str, new_str = stringify(old), stringify(new)
    if old_str == new_str:
        return None
    return FieldChange(field, label, old_str, new_str)


def compute_changes(
    record: ModuleRecord,
    fields: list[ModuleField],
    name=None,
    status=None,
    assigned_to=None,
    data: dict | None = None,
    assigned_to_set: bool = False,
) -> list[FieldChange]:
    """Diff a pending update against the stored record.

    Built-ins are compared only when supplied; data keys only when ``data``
    is supplied, over the union of old and new keys.
    """
    changes = []
    if name is not None:
        changes.append(_diff("name", BUILTIN_LABELS["name"], record.name, name))
    if status is not None:
        changes.append(_diff("status", BUILTIN_LABELS["status"], record.status, status))
    if assigned_to_set:
        changes.append(
            _diff(
                "assigned_to",
                BUILTIN_LABELS["assigned_to"],
                record.assigned_to,
                assigned_to,
            )
        )

    if data is not None:
        labels = {field.name: field.display_name for field in fields}
        old_data = record.data or {}
        keys = list(dict.fromkeys([*old_data.keys(), *data.keys()]))
        for key in keys:
            changes.append(
                _diff(key, labels.get(key, key), old_data.get(key), data.get(key))
            )

    return [change for change in changes if change is not None]


def append(
    db: Session,
    record: ModuleRecord,
    action: HistoryAction,
    description: str,
    changed_by: str | None = None,
    field_name: str | None = None,
    old_value: str | None = None,
    new_value: str | None = None,
) -> RecordHistory:
    entry = RecordHistory(
        module_id=record.module_id,
        record_id=record.id,
        action=action,
        description=description,
        field_name=field_name,
        old_value=old_value,
        new_value=new_value,
        changed_by=changed_by,
    )
    db.add(entry)
    return entry


def record_created(db: Session, record: ModuleRecord, changed_by: str | None):
    return append(
        db, record, HistoryAction.created, f"{record.name} was created", changed_by
    )


def record_updated(
    db: Session,
    record: ModuleRecord,
    changes: list[FieldChange],
    changed_by: str | None,
) -> list[RecordHistory]:
    if not changes:
        return [
            append(
                db,
                record,
                HistoryAction.updated,
                f"{record.name} was updated (no field changes)",
                changed_by,
            )
        ]
    return [
        append(
            db,
            record,
            HistoryAction.field_updated,
            change.description,
            changed_by,
            field_name=change.field,
            old_value=change.old_value,
            new_value=change.new_value,
        )
        for change in changes
    ]


def add_note(
    db: Session, record: ModuleRecord, description: str, changed_by: str | None
) -> RecordHistory:
    if not description or not description.strip():
        raise ValidationError("Note description is required")
    entry = append(db, record, HistoryAction.note, description, changed_by)
    db.commit()
    db.refresh(entry)
    logger.info("Added note to record %s", record.id)
    return entry


def list_history(db: Session, record: ModuleRecord) -> list[RecordHistory]:
    stmt = (
        select(RecordHistory)
        .where(RecordHistory.record_id == record.id)
        .order_by(RecordHistory.created_at.desc())
    )
    return list(db.scalars(stmt).all())
