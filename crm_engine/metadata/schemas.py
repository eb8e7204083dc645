"""Pydantic schemas for object and field metadata."""

from typing import List, Optional, Dict, Any
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldDataType(str, Enum):
    """Data types a field definition can declare."""

    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    NUMBER = "number"
    CURRENCY = "currency"
    PERCENT = "percent"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    SELECT = "select"
    MULTISELECT = "multiselect"
    REFERENCE = "reference"

    @property
    def is_numeric(self) -> bool:
        return self in (FieldDataType.NUMBER, FieldDataType.CURRENCY, FieldDataType.PERCENT)

    @property
    def is_temporal(self) -> bool:
        return self in (FieldDataType.DATE, FieldDataType.DATETIME)

    @property
    def is_textual(self) -> bool:
        return self in (
            FieldDataType.TEXT,
            FieldDataType.TEXTAREA,
            FieldDataType.EMAIL,
            FieldDataType.PHONE,
            FieldDataType.URL,
            FieldDataType.SELECT,
            FieldDataType.MULTISELECT,
            FieldDataType.REFERENCE,
        )


class FieldDefinitionRead(BaseModel):
    """Immutable snapshot of a field definition."""

    api_name: str
    label: str
    data_type: FieldDataType
    is_visible: bool = True
    display_order: int = 0

    model_config = ConfigDict(from_attributes=True, frozen=True)


class ObjectDefinitionRead(BaseModel):
    """Immutable snapshot of an object definition."""

    api_name: str
    label: str
    plural_label: str
    description: Optional[str] = None
    table_name: Optional[str] = None
    base_filters: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("base_filters", mode="before")
    @classmethod
    def default_base_filters(cls, v):
        return v or []

    @property
    def storage_table(self) -> str:
        return self.table_name or self.api_name


class ObjectMetadata(BaseModel):
    """An object together with its ordered fields."""

    object: ObjectDefinitionRead
    fields: List[FieldDefinitionRead]

    model_config = ConfigDict(frozen=True)

    def field_map(self) -> Dict[str, FieldDefinitionRead]:
        return {f.api_name: f for f in self.fields}


class ObjectMetadataResponse(ObjectMetadata):
    """Metadata plus the derived default display and search fields."""

    display_fields: List[str]
    search_fields: List[str]
