import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class FieldType(enum.Enum):
    text = "text"
    textarea = "textarea"
    number = "number"
    boolean = "boolean"
    date = "date"
    email = "email"
    url = "url"
    select = "select"
    relation = "relation"
    user = "user"


class WarningMode(enum.Enum):
    overdue = "overdue"
    predate = "predate"


class HistoryAction(enum.Enum):
    created = "created"
    field_updated = "field_updated"
    updated = "updated"
    image_added = "image_added"
    image_deleted = "image_deleted"
    document_added = "document_added"
    note = "note"


# ---------------------------------------------------------------------------
# Schema: modules and fields
# ---------------------------------------------------------------------------


class Module(Base):
    __tablename__ = "modules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(120))
    config: Mapped[dict | None] = mapped_column(JSON)
    parent_module_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id", ondelete="SET NULL")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    parent_module = relationship(
        "Module", remote_side="Module.id", back_populates="sub_modules"
    )
    sub_modules = relationship("Module", back_populates="parent_module")
    fields = relationship(
        "ModuleField",
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="[ModuleField.weight, ModuleField.sort_order]",
    )


class ModuleField(Base):
    __tablename__ = "module_fields"
    __table_args__ = (
        UniqueConstraint("module_id", "name", name="uq_module_fields_module_name"),
        Index("ix_module_fields_module_id", "module_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    field_type: Mapped[FieldType] = mapped_column(
        Enum(FieldType), nullable=False, default=FieldType.text
    )
    options: Mapped[list | None] = mapped_column(JSON)
    relation_module: Mapped[str | None] = mapped_column(String(120))
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    show_in_list: Mapped[bool] = mapped_column(Boolean, default=False)
    weight: Mapped[int] = mapped_column(Integer, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    default_value: Mapped[str | None] = mapped_column(Text)
    warning_yellow_days: Mapped[int | None] = mapped_column(Integer)
    warning_red_days: Mapped[int | None] = mapped_column(Integer)
    warning_mode: Mapped[WarningMode | None] = mapped_column(Enum(WarningMode))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    module = relationship("Module", back_populates="fields")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class ModuleRecord(Base):
    __tablename__ = "module_records"
    __table_args__ = (
        Index("ix_module_records_module_id", "module_id"),
        Index("ix_module_records_parent_record_id", "parent_record_id"),
        Index("ix_module_records_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(120), nullable=False, default="active")
    data: Mapped[dict | None] = mapped_column(JSON)
    parent_record_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("module_records.id", ondelete="SET NULL")
    )
    assigned_to: Mapped[str | None] = mapped_column(String(255))
    created_by: Mapped[str | None] = mapped_column(String(255))
    updated_by: Mapped[str | None] = mapped_column(String(255))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    module = relationship("Module")
    parent_record = relationship("ModuleRecord", remote_side="ModuleRecord.id")
    images = relationship(
        "RecordImage",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="[RecordImage.sort_order, RecordImage.id]",
    )
    documents = relationship(
        "RecordDocument", back_populates="record", cascade="all, delete-orphan"
    )
    links = relationship(
        "RecordLink", back_populates="record", cascade="all, delete-orphan"
    )
    company_links = relationship(
        "RecordCompany", back_populates="record", cascade="all, delete-orphan"
    )
    history = relationship(
        "RecordHistory", back_populates="record", cascade="all, delete-orphan"
    )
    views = relationship(
        "RecordView", back_populates="record", cascade="all, delete-orphan"
    )


class RecordView(Base):
    __tablename__ = "record_views"
    __table_args__ = (
        UniqueConstraint("record_id", "user_email", name="uq_record_views_record_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("module_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), nullable=False
    )
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    record = relationship("ModuleRecord", back_populates="views")


# ---------------------------------------------------------------------------
# Attachments: images and documents
# ---------------------------------------------------------------------------


class RecordImage(Base):
    __tablename__ = "record_images"
    __table_args__ = (Index("ix_record_images_record_id", "record_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), nullable=False
    )
    record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("module_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    image_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    record = relationship("ModuleRecord", back_populates="images")


class RecordDocument(Base):
    __tablename__ = "record_documents"
    __table_args__ = (Index("ix_record_documents_record_id", "record_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), nullable=False
    )
    record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("module_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[str | None] = mapped_column(String(255))
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_by: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    record = relationship("ModuleRecord", back_populates="documents")


# ---------------------------------------------------------------------------
# Links and companies
# ---------------------------------------------------------------------------


class RecordLink(Base):
    __tablename__ = "record_links"
    __table_args__ = (Index("ix_record_links_record_id", "record_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), nullable=False
    )
    record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("module_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    title: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    record = relationship("ModuleRecord", back_populates="links")


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(64))
    website: Mapped[str | None] = mapped_column(String(2048))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class RecordCompany(Base):
    __tablename__ = "record_companies"
    __table_args__ = (
        UniqueConstraint("record_id", "company_id", name="uq_record_companies"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), nullable=False
    )
    record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("module_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    relationship_type: Mapped[str] = mapped_column(
        String(64), nullable=False, default="related"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    record = relationship("ModuleRecord", back_populates="company_links")
    company = relationship("Company")


# ---------------------------------------------------------------------------
# History (immutable, no updated_at)
# ---------------------------------------------------------------------------


class RecordHistory(Base):
    __tablename__ = "record_history"
    __table_args__ = (
        Index("ix_record_history_record_id", "record_id"),
        Index("ix_record_history_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id"), nullable=False
    )
    record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("module_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    action: Mapped[HistoryAction] = mapped_column(Enum(HistoryAction), nullable=False)
    field_name: Mapped[str | None] = mapped_column(String(120))
    old_value: Mapped[str | None] = mapped_column(Text)
    new_value: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    changed_by: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    record = relationship("ModuleRecord", back_populates="history")


# ---------------------------------------------------------------------------
# Label print queue
# ---------------------------------------------------------------------------


class PrintStatus(enum.Enum):
    pending = "pending"
    printed = "printed"


class PrintQueueItem(Base):
    __tablename__ = "print_queue"
    __table_args__ = (Index("ix_print_queue_status", "status"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    module_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False
    )
    record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("module_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    module_name: Mapped[str] = mapped_column(String(120), nullable=False)
    record_name: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[PrintStatus] = mapped_column(
        Enum(PrintStatus), nullable=False, default=PrintStatus.pending
    )
    created_by: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    printed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
