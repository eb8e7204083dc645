"""
Storage collaborators that execute a RecordQuery.

SqlRecordStorage compiles the query into SQLAlchemy Core against a table
built from the object's field definitions. InMemoryRecordStorage runs the
same query through the in-memory evaluator and is used where no database
table backs an object (and in tests).
"""

import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    MetaData,
    String,
    Table,
    Text,
    and_,
    cast,
    func,
    not_,
    or_,
    select,
)
from sqlalchemy.orm import Session

from crm_engine.metadata.schemas import FieldDataType, FieldDefinitionRead
from crm_engine.query.evaluator import filter_records, sort_records
from crm_engine.query.schemas import DateRange, Operator, RecordQuery, ResolvedCondition, SearchClause

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# Field data type -> SQLAlchemy column type
COLUMN_TYPES = {
    FieldDataType.TEXT: String,
    FieldDataType.TEXTAREA: Text,
    FieldDataType.EMAIL: String,
    FieldDataType.PHONE: String,
    FieldDataType.URL: String,
    FieldDataType.NUMBER: Float,
    FieldDataType.CURRENCY: Float,
    FieldDataType.PERCENT: Float,
    FieldDataType.BOOLEAN: Boolean,
    FieldDataType.DATE: Date,
    FieldDataType.DATETIME: DateTime,
    FieldDataType.SELECT: String,
    FieldDataType.MULTISELECT: String,
    FieldDataType.REFERENCE: String,
}


@lru_cache(maxsize=256)
def _build_table(table_name: str, columns: Tuple[Tuple[str, str], ...]) -> Table:
    table_columns = [
        Column(name, COLUMN_TYPES[FieldDataType(data_type)], primary_key=(name == "id"))
        for name, data_type in columns
    ]
    return Table(table_name, MetaData(), *table_columns)


def record_table(table_name: str, fields: Sequence[FieldDefinitionRead]) -> Table:
    """SQLAlchemy Table for an object's records, one column per field."""
    return _build_table(table_name, tuple((f.api_name, f.data_type.value) for f in fields))


def _escape_like(value: str) -> str:
    """Escape LIKE metacharacters so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _ilike(column, pattern: str):
    return column.ilike(pattern, escape="\\")


def compile_condition(table: Table, condition: ResolvedCondition):
    """Translate one resolved condition into a SQL expression."""
    column = table.c[condition.field.api_name]
    operator = condition.operator
    value = condition.value

    if operator == Operator.EQUALS:
        return column == value
    if operator == Operator.NOT_EQUALS:
        return column != value
    if operator == Operator.CONTAINS:
        return _ilike(column, f"%{_escape_like(value)}%")
    if operator == Operator.NOT_CONTAINS:
        return not_(_ilike(column, f"%{_escape_like(value)}%"))
    if operator == Operator.STARTS_WITH:
        return _ilike(column, f"{_escape_like(value)}%")
    if operator == Operator.ENDS_WITH:
        return _ilike(column, f"%{_escape_like(value)}")
    if operator == Operator.GREATER_THAN:
        return column > value
    if operator == Operator.LESS_THAN:
        return column < value
    if operator == Operator.GREATER_OR_EQUAL:
        return column >= value
    if operator == Operator.LESS_OR_EQUAL:
        return column <= value
    if operator == Operator.IS_NULL:
        return column.is_(None)
    if operator == Operator.IS_NOT_NULL:
        return column.isnot(None)
    if operator == Operator.IN:
        return column.in_(list(value))
    if operator == Operator.NOT_IN:
        return and_(column.isnot(None), column.not_in(list(value)))
    if operator == Operator.BETWEEN:
        low, high = value
        return column.between(low, high)
    if isinstance(value, DateRange):
        upper = column <= value.end if value.end_inclusive else column < value.end
        return and_(column >= value.start, upper)
    raise AssertionError(f"unhandled operator {operator}")


def compile_search(table: Table, search: SearchClause):
    pattern = f"%{_escape_like(search.term)}%"
    clauses = []
    for field in search.fields:
        column = table.c[field.api_name]
        if not field.data_type.is_textual:
            column = cast(column, String)
        clauses.append(_ilike(column, pattern))
    return or_(*clauses)


class RecordStorage(ABC):
    """Boundary to wherever an object's records live."""

    @abstractmethod
    def fetch_page(self, query: RecordQuery) -> Tuple[List[Row], int]:
        """Return the requested page and the total count of matching rows."""

    @abstractmethod
    def fetch_all(self, query: RecordQuery) -> List[Row]:
        """Return every matching row, ignoring pagination."""

    @abstractmethod
    def fetch_one(self, table_name: str, fields: Sequence[FieldDefinitionRead], record_id: Any) -> Optional[Row]:
        """Return a single row by id, or None."""


class SqlRecordStorage(RecordStorage):
    """Executes queries through SQLAlchemy sessions.

    Each call opens and closes its own session, so a call that outlives its
    request never shares the request's session.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _where(self, table: Table, query: RecordQuery) -> list:
        clauses = [compile_condition(table, c) for c in query.conditions]
        if query.search is not None:
            clauses.append(compile_search(table, query.search))
        return clauses

    def _order_by(self, table: Table, query: RecordQuery) -> list:
        column = table.c[query.sort.field]
        ordered = column.asc() if query.sort.direction.value == "asc" else column.desc()
        order = [ordered.nulls_last()]
        if "id" in table.c and query.sort.field != "id":
            order.append(table.c["id"].asc())
        return order

    def fetch_page(self, query: RecordQuery) -> Tuple[List[Row], int]:
        table = record_table(query.table_name, query.fields)
        where = self._where(table, query)

        count_stmt = select(func.count()).select_from(table).where(*where)
        page_stmt = (
            select(table)
            .where(*where)
            .order_by(*self._order_by(table, query))
            .offset(query.offset)
            .limit(query.limit)
        )
        with self.session_factory() as db:
            total = db.execute(count_stmt).scalar_one()
            rows = [dict(row._mapping) for row in db.execute(page_stmt)]
        logger.debug("Fetched %d of %d rows from %s", len(rows), total, query.table_name)
        return rows, total

    def fetch_all(self, query: RecordQuery) -> List[Row]:
        table = record_table(query.table_name, query.fields)
        stmt = select(table).where(*self._where(table, query)).order_by(*self._order_by(table, query))
        with self.session_factory() as db:
            return [dict(row._mapping) for row in db.execute(stmt)]

    def fetch_one(self, table_name: str, fields: Sequence[FieldDefinitionRead], record_id: Any) -> Optional[Row]:
        table = record_table(table_name, fields)
        with self.session_factory() as db:
            row = db.execute(select(table).where(table.c["id"] == record_id)).first()
        return dict(row._mapping) if row is not None else None


class InMemoryRecordStorage(RecordStorage):
    """Holds records as lists of dicts keyed by table name."""

    def __init__(self, tables: Optional[Dict[str, List[Row]]] = None):
        self.tables = tables if tables is not None else {}

    def _matching(self, query: RecordQuery) -> List[Row]:
        rows = filter_records(query, self.tables.get(query.table_name, []))
        return sort_records(query, rows)

    def fetch_page(self, query: RecordQuery) -> Tuple[List[Row], int]:
        rows = self._matching(query)
        return rows[query.offset:query.offset + query.limit], len(rows)

    def fetch_all(self, query: RecordQuery) -> List[Row]:
        return self._matching(query)

    def fetch_one(self, table_name: str, fields: Sequence[FieldDefinitionRead], record_id: Any) -> Optional[Row]:
        for row in self.tables.get(table_name, []):
            if row.get("id") == record_id:
                return dict(row)
        return None
