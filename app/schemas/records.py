from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


class RecordCreate(BaseModel):
    # Name is checked by the service so a missing name is a 400, not a 422
    name: str | None = None
    data: dict[str, Any] | None = None
    status: str | None = None
    parent_record_id: UUID | None = Field(
        default=None,
        validation_alias=AliasChoices("parent_record_id", "parentRecordId"),
    )
    assigned_to: str | None = Field(
        default=None, validation_alias=AliasChoices("assigned_to", "assignedTo")
    )
    created_by: str | None = Field(
        default=None, validation_alias=AliasChoices("created_by", "createdBy")
    )


class RecordUpdate(BaseModel):
    """Partial update. ``module_id`` is not part of the contract and is ignored."""

    name: str | None = None
    data: dict[str, Any] | None = None
    status: str | None = None
    assigned_to: str | None = Field(
        default=None, validation_alias=AliasChoices("assigned_to", "assignedTo")
    )
    updated_by: str | None = Field(
        default=None, validation_alias=AliasChoices("updated_by", "updatedBy")
    )
    version: int | None = Field(default=None, ge=1)


class ImageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    record_id: UUID
    image_path: str
    sort_order: int
    created_by: str | None = None
    created_at: datetime


class RecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    module_id: UUID
    name: str
    status: str
    data: dict[str, Any] | None = None
    parent_record_id: UUID | None = None
    assigned_to: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime
    thumbnail: str | None = None
    is_viewed: bool = False
    images: list[ImageRead] = []
    warnings: list[str] = []


class ChildrenBreakdown(BaseModel):
    module_name: str
    display_name: str
    count: int


class ChildrenCount(BaseModel):
    total_count: int
    breakdown: list[ChildrenBreakdown]


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


class ImageCreate(BaseModel):
    image: str | None = None
    created_by: str | None = Field(
        default=None, validation_alias=AliasChoices("created_by", "createdBy")
    )


class ImageReorder(BaseModel):
    image_ids: list[UUID] = Field(
        validation_alias=AliasChoices("image_ids", "imageIds")
    )


class DocumentCreate(BaseModel):
    file: str | None = None
    name: str | None = Field(
        default=None, validation_alias=AliasChoices("name", "file_name", "fileName")
    )
    file_type: str | None = Field(
        default=None, validation_alias=AliasChoices("file_type", "fileType")
    )
    created_by: str | None = Field(
        default=None,
        validation_alias=AliasChoices("created_by", "createdBy", "uploadedBy"),
    )


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    record_id: UUID
    file_path: str
    file_name: str
    file_type: str | None = None
    file_size: int
    created_by: str | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class NoteCreate(BaseModel):
    description: str = Field(min_length=1)
    changed_by: str | None = Field(
        default=None, validation_alias=AliasChoices("changed_by", "changedBy")
    )


class HistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    record_id: UUID
    action: str
    field_name: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    description: str
    changed_by: str | None = None
    created_at: datetime

    @field_validator("action", mode="before")
    @classmethod
    def unwrap_enum(cls, value):
        return getattr(value, "value", value)


# ---------------------------------------------------------------------------
# Links and companies
# ---------------------------------------------------------------------------


class LinkCreate(BaseModel):
    url: str | None = None
    title: str | None = Field(default=None, max_length=500)
    description: str | None = None


class LinkUpdate(BaseModel):
    url: str | None = None
    title: str | None = Field(default=None, max_length=500)
    description: str | None = None


class LinkRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    record_id: UUID
    url: str
    title: str | None = None
    description: str | None = None
    created_at: datetime


class CompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    website: str | None = Field(default=None, max_length=2048)


class CompanyRead(CompanyCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    is_active: bool
    created_at: datetime


class RecordCompanyCreate(BaseModel):
    company_id: UUID | None = Field(
        default=None, validation_alias=AliasChoices("company_id", "companyId")
    )
    relationship_type: str | None = Field(
        default=None,
        max_length=64,
        validation_alias=AliasChoices("relationship_type", "relationshipType"),
    )


class LinkedCompanyRead(CompanyRead):
    link_id: UUID
    relationship_type: str


# ---------------------------------------------------------------------------
# Label print queue
# ---------------------------------------------------------------------------


class PrintQueueItemCreate(BaseModel):
    """``module_id`` and ``record_name`` are derived from the record when omitted."""

    record_id: UUID | None = Field(
        default=None, validation_alias=AliasChoices("record_id", "recordId")
    )
    module_name: str | None = Field(
        default=None, validation_alias=AliasChoices("module_name", "moduleName")
    )
    module_id: UUID | None = Field(
        default=None, validation_alias=AliasChoices("module_id", "moduleId")
    )
    record_name: str | None = Field(
        default=None,
        max_length=500,
        validation_alias=AliasChoices("record_name", "recordName"),
    )
    created_by: str | None = Field(
        default=None, validation_alias=AliasChoices("created_by", "createdBy")
    )


class PrintQueueItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    module_id: UUID
    record_id: UUID
    module_name: str
    record_name: str
    status: str
    created_by: str | None = None
    created_at: datetime
    printed_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def unwrap_enum(cls, value):
        return getattr(value, "value", value)
