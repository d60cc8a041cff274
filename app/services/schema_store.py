"""Module and field definitions: the vocabulary every record operation reads.

Mutations here are administrator operations. They are gated by role at the
HTTP layer and never pass through the per-module access evaluator.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import NotFound, ValidationError
from app.models.records import FieldType, Module, ModuleField, ModuleRecord, WarningMode
from app.schemas.modules import FieldCreate, FieldUpdate, ModuleCreate, ModuleUpdate
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.permission_cache import get_permission_cache
from app.services.response import ListResponseMixin
from app.services.storage import storage

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "active"


def get_module(db: Session, name: str) -> Module:
    module = db.scalars(select(Module).where(Module.name == name)).first()
    if not module:
        raise NotFound("Module not found")
    return module


def get_fields(db: Session, module_id) -> list[ModuleField]:
    stmt = (
        select(ModuleField)
        .where(ModuleField.module_id == coerce_uuid(module_id))
        .order_by(ModuleField.weight.asc(), ModuleField.sort_order.asc())
    )
    return list(db.scalars(stmt).all())


def get_sub_modules(db: Session, parent_module_id) -> list[Module]:
    stmt = (
        select(Module)
        .where(Module.parent_module_id == coerce_uuid(parent_module_id))
        .order_by(Module.name.asc())
    )
    return list(db.scalars(stmt).all())


def module_config(module: Module) -> dict:
    return dict(module.config or {})


def default_status(module: Module) -> str:
    return module_config(module).get("defaultStatus") or DEFAULT_STATUS


def resolve_status(module: Module, requested: str | None) -> str:
    """Return ``requested`` if the module allows it, else the default status."""
    fallback = default_status(module)
    if not requested:
        return fallback
    statuses = module_config(module).get("statuses")
    if statuses and requested not in statuses:
        logger.info(
            "Status %r not configured for module %s; using %r",
            requested,
            module.name,
            fallback,
        )
        return fallback
    return requested


def feature_enabled(module: Module, feature: str) -> bool:
    features = module_config(module).get("features")
    if not features:
        return True
    return feature in features


def _config_dict(config) -> dict | None:
    if config is None:
        return None
    return config.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------


class Modules(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ModuleCreate) -> Module:
        if db.scalars(select(Module).where(Module.name == payload.name)).first():
            raise ValidationError(f"A module named '{payload.name}' already exists")
        if payload.parent_module_id is not None:
            if not db.get(Module, payload.parent_module_id):
                raise NotFound("Parent module not found")

        data = payload.model_dump(exclude={"config"})
        module = Module(**data, config=_config_dict(payload.config))
        db.add(module)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationError(f"A module named '{payload.name}' already exists")
        db.refresh(module)
        logger.info("Created module %s (%s)", module.name, module.id)
        return module

    @staticmethod
    def get(db: Session, name: str) -> Module:
        return get_module(db, name)

    @staticmethod
    def list(
        db: Session,
        is_active: bool | None,
        parent_module_id: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Module]:
        stmt = select(Module)
        if is_active is not None:
            stmt = stmt.where(Module.is_active == is_active)
        if parent_module_id is not None:
            stmt = stmt.where(Module.parent_module_id == coerce_uuid(parent_module_id))
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "name": Module.name,
                "display_name": Module.display_name,
                "created_at": Module.created_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(db: Session, name: str, payload: ModuleUpdate) -> Module:
        module = get_module(db, name)
        data = payload.model_dump(exclude_unset=True, exclude={"config"})

        if data.get("parent_module_id") is not None:
            Modules._check_parent(db, module, data["parent_module_id"])

        for key, value in data.items():
            setattr(module, key, value)
        if "config" in payload.model_fields_set:
            module.config = _config_dict(payload.config)

        db.commit()
        db.refresh(module)
        logger.info("Updated module %s", module.name)
        return module

    @staticmethod
    def delete(db: Session, name: str) -> None:
        module = get_module(db, name)
        record_count = db.scalar(
            select(func.count(ModuleRecord.id)).where(ModuleRecord.module_id == module.id)
        )
        paths = []
        if record_count:
            if settings.module_delete_policy != "cascade":
                raise ValidationError(
                    f"Module '{name}' still has {record_count} record(s); "
                    "delete them first"
                )
            from app.services.records import purge_module_records

            paths = purge_module_records(db, module)

        db.delete(module)
        db.commit()
        # A module recreated under the same name must not inherit old decisions
        get_permission_cache().invalidate_module(name)
        for path in paths:
            storage.delete_quietly(path)
        logger.info("Deleted module %s", name)

    @staticmethod
    def _check_parent(db: Session, module: Module, parent_module_id) -> None:
        parent = db.get(Module, coerce_uuid(parent_module_id))
        if not parent:
            raise NotFound("Parent module not found")
        seen = set()
        cursor = parent
        while cursor is not None:
            if cursor.id == module.id:
                raise ValidationError("A module cannot be its own ancestor")
            if cursor.id in seen:
                break
            seen.add(cursor.id)
            cursor = cursor.parent_module


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------


class Fields(ListResponseMixin):
    @staticmethod
    def create(db: Session, module_name: str, payload: FieldCreate) -> ModuleField:
        module = get_module(db, module_name)
        existing = db.scalars(
            select(ModuleField)
            .where(ModuleField.module_id == module.id)
            .where(ModuleField.name == payload.name)
        ).first()
        if existing:
            raise ValidationError(
                f"Field '{payload.name}' already exists in module '{module_name}'"
            )

        data = payload.model_dump()
        Fields._check_definition(db, data)
        data["field_type"] = FieldType(data["field_type"])
        if data.get("warning_mode") is not None:
            data["warning_mode"] = WarningMode(data["warning_mode"])

        field = ModuleField(module_id=module.id, **data)
        db.add(field)
        db.commit()
        db.refresh(field)
        logger.info("Created field %s on module %s", field.name, module_name)
        return field

    @staticmethod
    def get(db: Session, module_name: str, field_id: str) -> ModuleField:
        module = get_module(db, module_name)
        field = db.get(ModuleField, coerce_uuid(field_id))
        if not field or field.module_id != module.id:
            raise NotFound("Field not found")
        return field

    @staticmethod
    def list(db: Session, module_name: str) -> list[ModuleField]:
        module = get_module(db, module_name)
        return get_fields(db, module.id)

    @staticmethod
    def update(
        db: Session, module_name: str, field_id: str, payload: FieldUpdate
    ) -> ModuleField:
        field = Fields.get(db, module_name, field_id)
        data = payload.model_dump(exclude_unset=True)

        merged = {
            "field_type": data.get("field_type", field.field_type.value),
            "options": data.get("options", field.options),
            "relation_module": data.get("relation_module", field.relation_module),
        }
        Fields._check_definition(db, merged)
        data["relation_module"] = merged["relation_module"]

        if "field_type" in data:
            data["field_type"] = FieldType(data["field_type"])
        if data.get("warning_mode") is not None:
            data["warning_mode"] = WarningMode(data["warning_mode"])
        for key, value in data.items():
            setattr(field, key, value)

        db.commit()
        db.refresh(field)
        logger.info("Updated field %s on module %s", field.name, module_name)
        return field

    @staticmethod
    def delete(db: Session, module_name: str, field_id: str) -> None:
        field = Fields.get(db, module_name, field_id)
        db.delete(field)
        db.commit()
        logger.info("Deleted field %s from module %s", field_id, module_name)

    @staticmethod
    def _check_definition(db: Session, data: dict) -> None:
        field_type = data.get("field_type")
        if field_type == FieldType.select.value and not data.get("options"):
            raise ValidationError("Select fields require at least one option")
        if field_type == FieldType.relation.value:
            target = data.get("relation_module")
            if not target:
                raise ValidationError("Relation fields require relation_module")
            get_module(db, target)
        else:
            data["relation_module"] = None


modules = Modules()
fields = Fields()
