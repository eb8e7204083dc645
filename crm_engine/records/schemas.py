"""Pydantic schemas for the record list API."""

import math
import os
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from crm_engine.query.schemas import FilterCondition, PaginationConfig, SortConfig

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "50"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "1000"))
DEFAULT_LOOKUP_LIMIT = 10
MAX_LOOKUP_LIMIT = 100


class FilterConditionIn(BaseModel):
    """A filter condition as it arrives over the wire.

    The operator is kept as a plain string here so an unknown operator is
    reported as INVALID_OPERATOR by the engine rather than as a generic
    request validation error.
    """

    # Client-side row key; accepted and dropped
    id: Any = Field(None, exclude=True)
    field: str
    operator: str
    value: Any = None

    model_config = ConfigDict(extra="forbid")

    def to_condition(self) -> FilterCondition:
        return FilterCondition(field=self.field, operator=self.operator, value=self.value)


class SortIn(BaseModel):
    field: str
    direction: str = "desc"

    def to_config(self) -> SortConfig:
        return SortConfig(field=self.field, direction=self.direction)


class RecordListRequest(BaseModel):
    """Filters, sort, pagination and search for one list call."""

    filters: List[FilterConditionIn] = []
    sort: Optional[SortIn] = None
    page: int = 1
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    search: Optional[str] = None
    search_fields: Optional[List[str]] = None

    model_config = ConfigDict(extra="forbid")

    def filter_conditions(self) -> List[FilterCondition]:
        return [f.to_condition() for f in self.filters]

    def sort_config(self) -> Optional[SortConfig]:
        # None lets the query builder pick the object's default sort
        return self.sort.to_config() if self.sort else None

    def pagination(self) -> PaginationConfig:
        return PaginationConfig(page=self.page, page_size=self.page_size)


class RecordPage(BaseModel):
    """One page of records plus the total count matching filters and search."""

    rows: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, rows: List[Dict[str, Any]], total: int, pagination: PaginationConfig) -> "RecordPage":
        return cls(
            rows=rows,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=math.ceil(total / pagination.page_size),
        )


class LookupRequest(BaseModel):
    """Type-ahead search for a reference field's target object."""

    search: Optional[str] = None
    limit: int = Field(DEFAULT_LOOKUP_LIMIT, ge=1, le=MAX_LOOKUP_LIMIT)

    model_config = ConfigDict(extra="forbid")


class LookupRecord(BaseModel):
    id: str
    display_value: str
    secondary_value: Optional[str] = None
