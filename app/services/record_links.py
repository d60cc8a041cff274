from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.models.records import Company, RecordCompany, RecordLink
from app.schemas.records import CompanyCreate, LinkCreate, LinkUpdate, RecordCompanyCreate
from app.services.attachments import require_feature
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.records import get_record
from app.services.response import ListResponseMixin
from app.services.schema_store import get_module

logger = logging.getLogger(__name__)


def _record(db: Session, module_name: str, record_id: str, feature: str | None = None):
    module = get_module(db, module_name)
    if feature:
        require_feature(module, feature)
    return module, get_record(db, module, record_id)


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


class Links:
    @staticmethod
    def list(db: Session, module_name: str, record_id: str) -> list[RecordLink]:
        _module, record = _record(db, module_name, record_id, "links")
        stmt = (
            select(RecordLink)
            .where(RecordLink.record_id == record.id)
            .order_by(RecordLink.created_at.desc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def create(
        db: Session, module_name: str, record_id: str, payload: LinkCreate
    ) -> RecordLink:
        module, record = _record(db, module_name, record_id, "links")
        if not payload.url or not payload.url.strip():
            raise ValidationError("URL is required")
        link = RecordLink(
            module_id=module.id,
            record_id=record.id,
            url=payload.url.strip(),
            title=payload.title or None,
            description=payload.description or None,
        )
        db.add(link)
        db.commit()
        db.refresh(link)
        logger.info("Added link %s to record %s", link.id, record.id)
        return link

    @staticmethod
    def get(db: Session, module_name: str, record_id: str, link_id: str) -> RecordLink:
        _module, record = _record(db, module_name, record_id, "links")
        link = db.get(RecordLink, coerce_uuid(link_id))
        if not link or link.record_id != record.id:
            raise NotFound("Link not found")
        return link

    @staticmethod
    def update(
        db: Session,
        module_name: str,
        record_id: str,
        link_id: str,
        payload: LinkUpdate,
    ) -> RecordLink:
        link = Links.get(db, module_name, record_id, link_id)
        data = payload.model_dump(exclude_unset=True)
        if "url" in data and not (data["url"] or "").strip():
            raise ValidationError("URL is required")
        for key, value in data.items():
            setattr(link, key, value.strip() if key == "url" else value or None)
        db.commit()
        db.refresh(link)
        logger.info("Updated link %s", link.id)
        return link

    @staticmethod
    def delete(db: Session, module_name: str, record_id: str, link_id: str) -> None:
        link = Links.get(db, module_name, record_id, link_id)
        db.delete(link)
        db.commit()
        logger.info("Deleted link %s", link_id)


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------


class Companies(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: CompanyCreate) -> Company:
        company = Company(**payload.model_dump())
        db.add(company)
        db.commit()
        db.refresh(company)
        logger.info("Created company %s", company.id)
        return company

    @staticmethod
    def get(db: Session, company_id: str) -> Company:
        company = db.get(Company, coerce_uuid(company_id))
        if not company:
            raise NotFound("Company not found")
        return company

    @staticmethod
    def list(
        db: Session,
        search: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Company]:
        stmt = select(Company).where(Company.is_active.is_(True))
        if search:
            stmt = stmt.where(Company.name.ilike(f"%{search}%"))
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {"name": Company.name, "created_at": Company.created_at},
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()


class RecordCompanies:
    @staticmethod
    def list(db: Session, module_name: str, record_id: str) -> list[dict]:
        _module, record = _record(db, module_name, record_id)
        rows = db.execute(
            select(Company, RecordCompany)
            .join(RecordCompany, RecordCompany.company_id == Company.id)
            .where(RecordCompany.record_id == record.id)
            .order_by(Company.name.asc())
        ).all()
        return [
            {
                "id": company.id,
                "name": company.name,
                "email": company.email,
                "phone": company.phone,
                "website": company.website,
                "is_active": company.is_active,
                "created_at": company.created_at,
                "link_id": link.id,
                "relationship_type": link.relationship_type,
            }
            for company, link in rows
        ]

    @staticmethod
    def link(
        db: Session, module_name: str, record_id: str, payload: RecordCompanyCreate
    ) -> list[dict]:
        module, record = _record(db, module_name, record_id)
        if payload.company_id is None:
            raise ValidationError("company_id is required")
        Companies.get(db, str(payload.company_id))
        db.add(
            RecordCompany(
                module_id=module.id,
                record_id=record.id,
                company_id=payload.company_id,
                relationship_type=payload.relationship_type or "related",
            )
        )
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationError("Company is already linked to this record")
        logger.info("Linked company %s to record %s", payload.company_id, record.id)
        return RecordCompanies.list(db, module_name, record_id)

    @staticmethod
    def unlink(db: Session, module_name: str, record_id: str, company_id: str) -> None:
        _module, record = _record(db, module_name, record_id)
        link = db.scalars(
            select(RecordCompany)
            .where(RecordCompany.record_id == record.id)
            .where(RecordCompany.company_id == coerce_uuid(company_id))
        ).first()
        if not link:
            raise NotFound("Company is not linked to this record")
        db.delete(link)
        db.commit()
        logger.info("Unlinked company %s from record %s", company_id, record.id)


links = Links()
companies = Companies()
record_companies = RecordCompanies()
