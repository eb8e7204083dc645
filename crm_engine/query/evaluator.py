"""In-memory evaluation of a RecordQuery against plain record dicts.

Mirrors the SQL semantics: a missing (None) value satisfies only
``is_null``; every other comparison against it is false.
"""

from typing import Any, Dict, Iterable, List, Mapping

from crm_engine.query.schemas import DateRange, Operator, RecordQuery, ResolvedCondition, SearchClause
from crm_engine.query.values import as_text, coerce_record_value

Record = Mapping[str, Any]


def evaluate_condition(condition: ResolvedCondition, record: Record) -> bool:
    operator = condition.operator
    raw = record.get(condition.field.api_name)

    if operator == Operator.IS_NULL:
        return raw is None
    if operator == Operator.IS_NOT_NULL:
        return raw is not None
    if raw is None:
        return False

    if operator in (Operator.CONTAINS, Operator.NOT_CONTAINS, Operator.STARTS_WITH, Operator.ENDS_WITH):
        haystack = as_text(raw).lower()
        needle = condition.value.lower()
        if operator == Operator.CONTAINS:
            return needle in haystack
        if operator == Operator.NOT_CONTAINS:
            return needle not in haystack
        if operator == Operator.STARTS_WITH:
            return haystack.startswith(needle)
        return haystack.endswith(needle)

    value = coerce_record_value(condition.field, raw)
    expected = condition.value

    if operator == Operator.EQUALS:
        return value == expected
    if operator == Operator.NOT_EQUALS:
        return value != expected
    if operator == Operator.GREATER_THAN:
        return value > expected
    if operator == Operator.LESS_THAN:
        return value < expected
    if operator == Operator.GREATER_OR_EQUAL:
        return value >= expected
    if operator == Operator.LESS_OR_EQUAL:
        return value <= expected
    if operator == Operator.IN:
        return value in expected
    if operator == Operator.NOT_IN:
        return value not in expected
    if operator == Operator.BETWEEN:
        low, high = expected
        return low <= value <= high
    if isinstance(expected, DateRange):
        return expected.contains(value)
    raise AssertionError(f"unhandled operator {operator}")


def evaluate_search(search: SearchClause, record: Record) -> bool:
    term = search.term.lower()
    for field in search.fields:
        raw = record.get(field.api_name)
        if raw is not None and term in as_text(raw).lower():
            return True
    return False


def matches(query: RecordQuery, record: Record) -> bool:
    """True when every condition holds (AND) and, if searching, any search field matches."""
    if not all(evaluate_condition(c, record) for c in query.conditions):
        return False
    if query.search is not None and not evaluate_search(query.search, record):
        return False
    return True


def filter_records(query: RecordQuery, records: Iterable[Record]) -> List[Dict[str, Any]]:
    return [dict(r) for r in records if matches(query, r)]


def sort_records(query: RecordQuery, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Stable sort on the query's sort field; None values sort last in either direction."""
    field = next(f for f in query.fields if f.api_name == query.sort.field)
    reverse = query.sort.direction.value == "desc"
    present = [r for r in records if r.get(field.api_name) is not None]
    missing = [r for r in records if r.get(field.api_name) is None]
    present.sort(key=lambda r: coerce_record_value(field, r[field.api_name]), reverse=reverse)
    return present + missing
