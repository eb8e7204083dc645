"""
Query module for the record engine.

Provides the operator vocabulary, relative date resolution, and the
QueryBuilder that validates a declarative list request against an
object's field definitions. The resulting RecordQuery is executed either
by the SQL storage or by the in-memory evaluator.
"""

from .builder import QueryBuilder, as_conditions
from .evaluator import matches, filter_records, sort_records
from .schemas import (
    DateRange,
    FilterCondition,
    Operator,
    OperatorArity,
    OPERATOR_LABELS,
    PaginationConfig,
    RecordQuery,
    ResolvedCondition,
    SearchClause,
    SortConfig,
    SortDirection,
)

__all__ = [
    "QueryBuilder",
    "as_conditions",
    "matches",
    "filter_records",
    "sort_records",
    "DateRange",
    "FilterCondition",
    "Operator",
    "OperatorArity",
    "OPERATOR_LABELS",
    "PaginationConfig",
    "RecordQuery",
    "ResolvedCondition",
    "SearchClause",
    "SortConfig",
    "SortDirection",
]
