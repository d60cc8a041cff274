"""Typed field values.

Record ``data`` is a JSON map keyed by field name. Values are coerced at the
write boundary according to the declared field type, so what is stored is
always one of: ``str``, ``int``/``float``, ``bool``, an ISO date string, a
record id string, or ``None``. Keys with no matching field pass through
unchanged.
"""

from __future__ import annotations

import json
import logging
import math
import re
import uuid
from datetime import date, datetime
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models.records import FieldType, Module, ModuleField, ModuleRecord

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_text(field: ModuleField, value):
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{field.display_name} must be text")
    return value if isinstance(value, str) else stringify(value)


def _coerce_number(field: ModuleField, value):
    if isinstance(value, bool):
        raise ValidationError(f"{field.display_name} must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            pass
    # NaN and infinities are not valid JSON numbers
    if isinstance(value, float) and math.isfinite(value):
        return value
    raise ValidationError(f"{field.display_name} must be a number")


def _coerce_boolean(field: ModuleField, value):
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ValidationError(f"{field.display_name} must be true or false")


def _coerce_date(field: ModuleField, value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text).isoformat()
            return datetime.fromisoformat(text.replace("Z", "+00:00")).isoformat()
        except ValueError:
            pass
    raise ValidationError(f"{field.display_name} must be an ISO date (YYYY-MM-DD)")


def _coerce_email(field: ModuleField, value):
    if isinstance(value, str) and EMAIL_RE.match(value.strip()):
        return value.strip()
    raise ValidationError(f"{field.display_name} must be a valid email address")


def _coerce_url(field: ModuleField, value):
    if isinstance(value, str):
        parsed = urlparse(value.strip())
        if parsed.scheme.lower() in {"http", "https"} and parsed.netloc:
            return value.strip()
    raise ValidationError(f"{field.display_name} must be an http(s) URL")


def _coerce_select(field: ModuleField, value):
    options = field.options or []
    candidate = value if isinstance(value, str) else stringify(value)
    if candidate not in options:
        raise ValidationError(
            f"{field.display_name} must be one of: {', '.join(options)}",
            details={"field": field.name, "options": options},
        )
    return candidate


def _coerce_relation(db: Session, field: ModuleField, value):
    try:
        record_id = value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field.display_name} must reference a record id")
    stmt = (
        select(ModuleRecord.id)
        .join(Module, Module.id == ModuleRecord.module_id)
        .where(ModuleRecord.id == record_id)
        .where(Module.name == field.relation_module)
    )
    if db.scalar(stmt) is None:
        raise ValidationError(
            f"{field.display_name} references a record that does not exist "
            f"in '{field.relation_module}'"
        )
    return str(record_id)


_COERCERS = {
    FieldType.text: _coerce_text,
    FieldType.textarea: _coerce_text,
    FieldType.user: _coerce_text,
    FieldType.number: _coerce_number,
    FieldType.boolean: _coerce_boolean,
    FieldType.date: _coerce_date,
    FieldType.email: _coerce_email,
    FieldType.url: _coerce_url,
    FieldType.select: _coerce_select,
}


def coerce_value(db: Session, field: ModuleField, value):
    """Coerce one raw value to the representation stored for ``field``."""
    if _is_empty(value):
        return None
    if field.field_type == FieldType.relation:
        return _coerce_relation(db, field, value)
    return _COERCERS[field.field_type](field, value)


def validate_data(
    db: Session,
    fields: list[ModuleField],
    data: dict | None,
    apply_defaults: bool = False,
) -> dict:
    """Coerce ``data`` against ``fields`` and enforce required fields."""
    data = dict(data or {})
    by_name = {field.name: field for field in fields}

    if apply_defaults:
        for field in fields:
            if field.name not in data and field.default_value not in (None, ""):
                data[field.name] = field.default_value

    result = {}
    for key, value in data.items():
        field = by_name.get(key)
        result[key] = coerce_value(db, field, value) if field else value

    missing = [
        field.name
        for field in fields
        if field.is_required and _is_empty(result.get(field.name))
    ]
    if missing:
        names = ", ".join(by_name[name].display_name for name in missing)
        raise ValidationError(
            f"Required field(s) missing: {names}", details={"fields": missing}
        )
    return result


def stringify(value) -> str:
    """Render a stored value the way history entries compare and record it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    return str(value)
