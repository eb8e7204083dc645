"""
QueryBuilder: turns object metadata plus a declarative request into a RecordQuery.

This is the single place where filters, search, sort and pagination are
validated against an object's field definitions. Both the SQL storage and
the in-memory evaluator consume the RecordQuery it produces, so every
object type goes through identical validation.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from crm_engine.core.errors import InvalidFieldError, InvalidOperatorError
from crm_engine.metadata.resolver import default_search_fields
from crm_engine.metadata.schemas import FieldDataType, FieldDefinitionRead, ObjectMetadata
from crm_engine.query.dates import resolve_window
from crm_engine.query.schemas import (
    FilterCondition,
    Operator,
    OperatorArity,
    PaginationConfig,
    RecordQuery,
    ResolvedCondition,
    SearchClause,
    SortConfig,
    SortDirection,
)
from crm_engine.query.values import coerce_filter_value

logger = logging.getLogger(__name__)

FilterInput = Union[FilterCondition, Dict[str, Any]]


def as_conditions(filters: Optional[Iterable[FilterInput]]) -> List[FilterCondition]:
    """Accept FilterCondition instances or raw dicts."""
    conditions = []
    for item in filters or []:
        conditions.append(item if isinstance(item, FilterCondition) else FilterCondition.from_dict(item))
    return conditions


class QueryBuilder:
    """Builds RecordQuery descriptions for one object type."""

    def __init__(self, metadata: ObjectMetadata, now: datetime):
        self.metadata = metadata
        self.now = now
        self._fields = metadata.field_map()

    def build(
        self,
        filters: Optional[Iterable[FilterInput]] = None,
        search: Optional[str] = None,
        search_fields: Optional[Sequence[str]] = None,
        sort: Optional[SortConfig] = None,
        pagination: Optional[PaginationConfig] = None,
    ) -> RecordQuery:
        """Validate every part of the request and compose the query description.

        The object's base filters are ANDed ahead of the caller's filters.
        ``search_fields=None`` means "use the object's default search fields";
        an explicit empty list turns search off.
        """
        conditions = self.resolve_conditions(as_conditions(self.metadata.object.base_filters))
        conditions += self.resolve_conditions(as_conditions(filters))

        query = RecordQuery(
            object_type=self.metadata.object.api_name,
            table_name=self.metadata.object.storage_table,
            fields=tuple(self.metadata.fields),
            conditions=tuple(conditions),
            search=self._build_search(search, search_fields),
            sort=self._validate_sort(sort or self._default_sort()),
            pagination=pagination or PaginationConfig(),
        )
        logger.debug(
            "Built query for %s: %d conditions, search=%s, sort=%s %s, page=%d/%d",
            query.object_type,
            len(query.conditions),
            bool(query.search),
            query.sort.field,
            query.sort.direction.value,
            query.pagination.page,
            query.pagination.page_size,
        )
        return query

    def resolve_conditions(self, filters: Sequence[FilterCondition]) -> Tuple[ResolvedCondition, ...]:
        return tuple(self.resolve_condition(f) for f in filters)

    def resolve_condition(self, condition: FilterCondition) -> ResolvedCondition:
        """Check the field exists and accepts the operator, then coerce the value."""
        field = self.field(condition.field)
        operator = condition.operator
        self._check_operator_applies(field, operator)

        arity = operator.arity
        if arity == OperatorArity.NONE:
            value = None
        elif arity in (OperatorArity.PERIOD, OperatorArity.DAYS):
            value = resolve_window(operator, condition.value, self.now)
        elif arity in (OperatorArity.LIST, OperatorArity.RANGE):
            value = tuple(coerce_filter_value(field, v, operator.value) for v in condition.value)
        elif arity == OperatorArity.TEXT:
            value = condition.value if isinstance(condition.value, str) else str(condition.value)
        else:
            value = coerce_filter_value(field, condition.value, operator.value)
        return ResolvedCondition(field=field, operator=operator, value=value)

    def field(self, api_name: str) -> FieldDefinitionRead:
        field = self._fields.get(api_name)
        if field is None:
            logger.warning("Rejected unknown field '%s' on %s", api_name, self.metadata.object.api_name)
            raise InvalidFieldError(
                f"Unknown field '{api_name}' on object '{self.metadata.object.api_name}'",
                field=api_name,
            )
        return field

    def _check_operator_applies(self, field: FieldDefinitionRead, operator: Operator) -> None:
        arity = operator.arity
        data_type = field.data_type
        if arity == OperatorArity.TEXT and not data_type.is_textual:
            allowed = False
        elif arity in (OperatorArity.PERIOD, OperatorArity.DAYS) and not data_type.is_temporal:
            allowed = False
        elif arity in (OperatorArity.ORDINAL, OperatorArity.RANGE) and data_type == FieldDataType.BOOLEAN:
            allowed = False
        else:
            allowed = True
        if not allowed:
            raise InvalidOperatorError(
                f"Operator '{operator.value}' does not apply to {data_type.value} field '{field.api_name}'",
                field=field.api_name,
                operator=operator.value,
            )

    def _build_search(self, search: Optional[str], search_fields: Optional[Sequence[str]]) -> Optional[SearchClause]:
        term = (search or "").strip()
        if not term:
            return None
        names = default_search_fields(self.metadata.fields) if search_fields is None else list(search_fields)
        if not names:
            return None
        return SearchClause(term=term, fields=tuple(self.field(name) for name in names))

    def _validate_sort(self, sort: SortConfig) -> SortConfig:
        self.field(sort.field)
        return sort

    def _default_sort(self) -> SortConfig:
        """Newest first; objects without ``created_at`` sort by their first field."""
        default = SortConfig()
        if default.field in self._fields or not self.metadata.fields:
            return default
        return SortConfig(field=self.metadata.fields[0].api_name, direction=SortDirection.ASC)
