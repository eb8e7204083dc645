"""
Query building schemas and types for the record engine.

Operators form a closed set; each belongs to an arity class that decides
what shape of value it accepts. Filter conditions validate that shape on
construction, so a malformed condition never reaches the builder.
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from crm_engine.core.errors import InvalidFieldError, InvalidOperatorError, InvalidValueError
from crm_engine.metadata.schemas import FieldDefinitionRead


class OperatorArity(str, Enum):
    """Shape of the value an operator takes."""

    SCALAR = "scalar"  # equals / not_equals
    TEXT = "text"  # substring family, case-insensitive
    ORDINAL = "ordinal"  # ordered comparisons
    NONE = "none"  # null checks
    LIST = "list"  # membership
    RANGE = "range"  # inclusive two-element range
    PERIOD = "period"  # current calendar period
    DAYS = "days"  # trailing window of N days


class Operator(str, Enum):
    """Filter operators."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    IN = "in"
    NOT_IN = "not_in"
    BETWEEN = "between"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"
    THIS_QUARTER = "this_quarter"
    LAST_N_DAYS = "last_n_days"

    @property
    def arity(self) -> OperatorArity:
        return OPERATOR_ARITY[self]

    @property
    def label(self) -> str:
        return OPERATOR_LABELS[self]

    @classmethod
    def parse(cls, raw: Any) -> "Operator":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw)
        except ValueError:
            raise InvalidOperatorError(f"Unknown operator: {raw}", operator=str(raw)) from None


OPERATOR_ARITY: Dict[Operator, OperatorArity] = {
    Operator.EQUALS: OperatorArity.SCALAR,
    Operator.NOT_EQUALS: OperatorArity.SCALAR,
    Operator.CONTAINS: OperatorArity.TEXT,
    Operator.NOT_CONTAINS: OperatorArity.TEXT,
    Operator.STARTS_WITH: OperatorArity.TEXT,
    Operator.ENDS_WITH: OperatorArity.TEXT,
    Operator.GREATER_THAN: OperatorArity.ORDINAL,
    Operator.LESS_THAN: OperatorArity.ORDINAL,
    Operator.GREATER_OR_EQUAL: OperatorArity.ORDINAL,
    Operator.LESS_OR_EQUAL: OperatorArity.ORDINAL,
    Operator.IS_NULL: OperatorArity.NONE,
    Operator.IS_NOT_NULL: OperatorArity.NONE,
    Operator.IN: OperatorArity.LIST,
    Operator.NOT_IN: OperatorArity.LIST,
    Operator.BETWEEN: OperatorArity.RANGE,
    Operator.THIS_WEEK: OperatorArity.PERIOD,
    Operator.THIS_MONTH: OperatorArity.PERIOD,
    Operator.THIS_QUARTER: OperatorArity.PERIOD,
    Operator.LAST_N_DAYS: OperatorArity.DAYS,
}

# Human-readable operator text used in report descriptions
OPERATOR_LABELS: Dict[Operator, str] = {
    Operator.EQUALS: "=",
    Operator.NOT_EQUALS: "!=",
    Operator.CONTAINS: "contains",
    Operator.NOT_CONTAINS: "does not contain",
    Operator.STARTS_WITH: "starts with",
    Operator.ENDS_WITH: "ends with",
    Operator.GREATER_THAN: ">",
    Operator.LESS_THAN: "<",
    Operator.GREATER_OR_EQUAL: ">=",
    Operator.LESS_OR_EQUAL: "<=",
    Operator.IS_NULL: "is empty",
    Operator.IS_NOT_NULL: "is not empty",
    Operator.IN: "is one of",
    Operator.NOT_IN: "is not one of",
    Operator.BETWEEN: "is between",
    Operator.THIS_WEEK: "is this week",
    Operator.THIS_MONTH: "is this month",
    Operator.THIS_QUARTER: "is this quarter",
    Operator.LAST_N_DAYS: "in the last",
}


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _check_value_shape(operator: Operator, value: Any) -> None:
    arity = operator.arity
    name = operator.value
    if arity in (OperatorArity.NONE, OperatorArity.PERIOD):
        if value is not None:
            raise InvalidValueError(f"Operator '{name}' takes no value", operator=name)
    elif arity == OperatorArity.LIST:
        if not isinstance(value, (list, tuple)):
            raise InvalidValueError(f"Operator '{name}' requires a list value", operator=name)
    elif arity == OperatorArity.RANGE:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise InvalidValueError(f"Operator '{name}' requires a [low, high] pair", operator=name)
    elif arity == OperatorArity.DAYS:
        if isinstance(value, bool) or value is None or isinstance(value, (list, tuple, dict)):
            raise InvalidValueError(f"Operator '{name}' requires a number of days", operator=name)
    else:
        if value is None or isinstance(value, (list, tuple, dict)):
            raise InvalidValueError(f"Operator '{name}' requires a single value", operator=name)


@dataclass(frozen=True)
class FilterCondition:
    """One predicate (field, operator, value) narrowing a record set."""

    field: str
    operator: Operator
    value: Any = None

    def __post_init__(self):
        if not isinstance(self.field, str) or not self.field:
            raise InvalidFieldError("Filter field is required", field=str(self.field))
        object.__setattr__(self, "operator", Operator.parse(self.operator))
        if isinstance(self.value, list):
            object.__setattr__(self, "value", tuple(self.value))
        _check_value_shape(self.operator, self.value)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FilterCondition":
        if not isinstance(raw, dict):
            raise InvalidValueError(f"Malformed filter condition: {raw!r}")
        return cls(field=raw.get("field"), operator=raw.get("operator"), value=raw.get("value"))

    def to_dict(self) -> Dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"field": self.field, "operator": self.operator.value, "value": value}


@dataclass(frozen=True)
class SortConfig:
    field: str = "created_at"
    direction: SortDirection = SortDirection.DESC

    def __post_init__(self):
        try:
            object.__setattr__(self, "direction", SortDirection(self.direction))
        except ValueError:
            raise InvalidValueError(f"Invalid sort direction: {self.direction}", field=self.field) from None


@dataclass(frozen=True)
class PaginationConfig:
    page: int = 1
    page_size: int = 50

    def __post_init__(self):
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int) or self.page_size < 1:
            raise InvalidValueError(f"Page size must be a positive integer, got {self.page_size!r}")
        if isinstance(self.page, bool) or not isinstance(self.page, int):
            raise InvalidValueError(f"Page must be an integer, got {self.page!r}")
        # Pages below one are clamped rather than rejected
        object.__setattr__(self, "page", max(1, self.page))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


@dataclass(frozen=True)
class DateRange:
    """Concrete instants a relative window resolves to."""

    start: datetime
    end: datetime
    end_inclusive: bool = False

    def contains(self, instant: datetime) -> bool:
        if instant < self.start:
            return False
        return instant <= self.end if self.end_inclusive else instant < self.end


@dataclass(frozen=True)
class ResolvedCondition:
    """A filter condition validated against a field and with its value coerced.

    ``value`` holds a scalar, a tuple (membership / between), a DateRange
    (relative windows) or None (null checks).
    """

    field: FieldDefinitionRead
    operator: Operator
    value: Any = None


@dataclass(frozen=True)
class SearchClause:
    """Free-text term matched case-insensitively against any of ``fields``."""

    term: str
    fields: Tuple[FieldDefinitionRead, ...]


@dataclass(frozen=True)
class RecordQuery:
    """Executable description of one list request against a single object."""

    object_type: str
    table_name: str
    fields: Tuple[FieldDefinitionRead, ...]
    conditions: Tuple[ResolvedCondition, ...] = ()
    search: Optional[SearchClause] = None
    sort: SortConfig = field(default_factory=SortConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)

    @property
    def offset(self) -> int:
        return self.pagination.offset

    @property
    def limit(self) -> int:
        return self.pagination.limit

    def column_names(self) -> List[str]:
        return [f.api_name for f in self.fields]
