from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

FeatureName = Literal["images", "documents", "history", "links"]
FieldTypeName = Literal[
    "text",
    "textarea",
    "number",
    "boolean",
    "date",
    "email",
    "url",
    "select",
    "relation",
    "user",
]


# ---------------------------------------------------------------------------
# Module config blob
# ---------------------------------------------------------------------------


class ModuleConfig(BaseModel):
    """Recognized options of a module's ``config``; unknown keys are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    default_status: str | None = Field(default=None, alias="defaultStatus")
    statuses: list[str] | None = None
    features: list[FeatureName] | None = None
    enable_email: bool | None = Field(default=None, alias="enableEmail")
    enable_email_inbox: bool | None = Field(default=None, alias="enableEmailInbox")
    enable_label_print: bool | None = Field(default=None, alias="enableLabelPrint")

    @field_validator("features")
    @classmethod
    def dedupe_features(cls, value):
        if value is None:
            return value
        return list(dict.fromkeys(value))


# ---------------------------------------------------------------------------
# Module
# ---------------------------------------------------------------------------


class ModuleBase(BaseModel):
    display_name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    icon: str | None = Field(default=None, max_length=120)
    config: ModuleConfig | None = None
    parent_module_id: UUID | None = None
    is_active: bool = True


class ModuleCreate(ModuleBase):
    name: str = Field(min_length=1, max_length=120, pattern=r"^[a-z0-9][a-z0-9_-]*$")


class ModuleUpdate(BaseModel):
    display_name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    icon: str | None = Field(default=None, max_length=120)
    config: ModuleConfig | None = None
    parent_module_id: UUID | None = None
    is_active: bool | None = None


class ModuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    description: str | None = None
    icon: str | None = None
    config: dict[str, Any] | None = None
    parent_module_id: UUID | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Field
# ---------------------------------------------------------------------------


class FieldBase(BaseModel):
    display_name: str = Field(min_length=1, max_length=255)
    field_type: FieldTypeName = "text"
    options: list[str] | None = None
    relation_module: str | None = Field(default=None, max_length=120)
    is_required: bool = False
    show_in_list: bool = False
    weight: int = 0
    sort_order: int = 0
    default_value: str | None = None
    warning_yellow_days: int | None = Field(default=None, ge=0)
    warning_red_days: int | None = Field(default=None, ge=0)
    warning_mode: Literal["overdue", "predate"] | None = None


class FieldCreate(FieldBase):
    name: str = Field(min_length=1, max_length=120, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")


class FieldUpdate(BaseModel):
    display_name: str | None = Field(default=None, max_length=255)
    field_type: FieldTypeName | None = None
    options: list[str] | None = None
    relation_module: str | None = Field(default=None, max_length=120)
    is_required: bool | None = None
    show_in_list: bool | None = None
    weight: int | None = None
    sort_order: int | None = None
    default_value: str | None = None
    warning_yellow_days: int | None = Field(default=None, ge=0)
    warning_red_days: int | None = Field(default=None, ge=0)
    warning_mode: Literal["overdue", "predate"] | None = None


class FieldRead(FieldBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    module_id: UUID
    name: str
    created_at: datetime

    @field_validator("field_type", "warning_mode", mode="before")
    @classmethod
    def unwrap_enum(cls, value):
        return getattr(value, "value", value)
