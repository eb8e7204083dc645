"""Pydantic schemas for the reporting module."""

from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_validator

from crm_engine.query.schemas import FilterCondition
from crm_engine.records.schemas import FilterConditionIn

# Field name a count aggregation uses when it does not dereference a field
COUNT_ALL = "*"


def _clean_report_name(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Report name cannot be empty")
    if len(v.strip()) > 255:
        raise ValueError("Report name cannot exceed 255 characters")
    return v.strip()


class AggregationFunction(str, Enum):
    """Available aggregation functions."""

    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"

    @property
    def requires_numeric(self) -> bool:
        return self != AggregationFunction.COUNT


class AggregationSpec(BaseModel):
    """One computed summary value per group."""

    field: str = COUNT_ALL
    function: AggregationFunction
    label: str

    model_config = ConfigDict(from_attributes=True, extra="forbid")

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Aggregation label cannot be empty")
        return v.strip()


class ColumnConfig(BaseModel):
    """Display column; only visible columns appear in descriptions."""

    api_name: str
    label: str
    visible: bool = True

    model_config = ConfigDict(from_attributes=True, extra="forbid")


class ReportDefinition(BaseModel):
    """Object type plus filters, groupings, aggregations and columns."""

    object_type: str
    filters: List[FilterConditionIn] = []
    groupings: List[str] = []
    aggregations: List[AggregationSpec] = []
    columns: List[ColumnConfig] = []

    model_config = ConfigDict(from_attributes=True)

    def filter_conditions(self) -> List[FilterCondition]:
        return [f.to_condition() for f in self.filters]


class ReportBase(ReportDefinition):
    """Base schema for persisted reports."""

    name: str
    description: Optional[str] = None
    created_by: str = "system"

    model_config = ConfigDict(from_attributes=True, extra="forbid")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_report_name(v)


class ReportCreate(ReportBase):
    """Create schema for reports."""


class ReportUpdate(BaseModel):
    """Update schema for reports; unset fields are left unchanged."""

    name: Optional[str] = None
    description: Optional[str] = None
    object_type: Optional[str] = None
    filters: Optional[List[FilterConditionIn]] = None
    groupings: Optional[List[str]] = None
    aggregations: Optional[List[AggregationSpec]] = None
    columns: Optional[List[ColumnConfig]] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> str:
        # Only runs when a name is supplied; null is not a valid new name
        return _clean_report_name(v)

    @field_validator("object_type", "filters", "groupings", "aggregations", "columns")
    @classmethod
    def reject_null_definition(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class ReportRead(ReportBase):
    """Read schema for reports."""

    id: int
    organization_id: Optional[str] = None
    is_active: bool = True
    created_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class ReportResult(BaseModel):
    """Aggregated rows plus the report's formula description."""

    rows: List[Dict[str, Any]]
    description: str
    record_count: int


class ReportDescription(BaseModel):
    description: str
