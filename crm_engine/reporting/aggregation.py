"""
Report aggregation engine.

Validates a report's groupings and aggregations against the object's
fields, then partitions the matching records by their grouping values and
computes one value per AggregationSpec for each partition.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from crm_engine.core.errors import InvalidFieldError, InvalidValueError
from crm_engine.metadata.schemas import FieldDefinitionRead, ObjectMetadata
from crm_engine.query.values import coerce_record_value
from crm_engine.reporting.schemas import COUNT_ALL, AggregationFunction, AggregationSpec, ReportDefinition

logger = logging.getLogger(__name__)

AggregateRow = Dict[str, Any]


class AggregationEngine:
    """Groups and aggregates records for one object type."""

    def __init__(self, metadata: ObjectMetadata):
        self.metadata = metadata
        self._fields = metadata.field_map()

    def _field(self, api_name: str, context: str) -> FieldDefinitionRead:
        field = self._fields.get(api_name)
        if field is None:
            raise InvalidFieldError(
                f"Unknown {context} field '{api_name}' on object '{self.metadata.object.api_name}'",
                field=api_name,
            )
        return field

    def validate(self, definition: ReportDefinition) -> None:
        """Reject unknown grouping fields, non-numeric sum/avg/min/max fields
        and aggregation labels that would overwrite another column of the row.
        """
        for name in definition.groupings:
            self._field(name, "grouping")
        self._check_labels(definition)
        for agg in definition.aggregations:
            if agg.function == AggregationFunction.COUNT and agg.field == COUNT_ALL:
                continue
            field = self._field(agg.field, "aggregation")
            if agg.function.requires_numeric and not field.data_type.is_numeric:
                raise InvalidFieldError(
                    f"{agg.function.value.upper()} requires a numeric field; "
                    f"'{field.api_name}' is {field.data_type.value}",
                    field=field.api_name,
                )

    def _check_labels(self, definition: ReportDefinition) -> None:
        taken = set(definition.groupings)
        for agg in definition.aggregations:
            if agg.label in taken:
                raise InvalidValueError(
                    f"Aggregation label '{agg.label}' is already used by a grouping or another aggregation"
                )
            taken.add(agg.label)

    def aggregate(self, definition: ReportDefinition, records: Iterable[Mapping[str, Any]]) -> List[AggregateRow]:
        """One row per distinct grouping tuple, ordered by the grouping values.

        With no groupings the result is a single row over all records, even
        when there are none.
        """
        self.validate(definition)
        grouping_fields = [self._fields[name] for name in definition.groupings]

        groups: Dict[Tuple[Any, ...], List[Mapping[str, Any]]] = {}
        for record in records:
            key = tuple(record.get(f.api_name) for f in grouping_fields)
            groups.setdefault(key, []).append(record)

        if not grouping_fields and not groups:
            groups[()] = []

        rows = []
        for key in sorted(groups, key=lambda k: self._sort_key(grouping_fields, k)):
            row: AggregateRow = {f.api_name: value for f, value in zip(grouping_fields, key)}
            for agg in definition.aggregations:
                row[agg.label] = self.compute(agg, groups[key])
            rows.append(row)
        logger.debug("Aggregated %s into %d rows", self.metadata.object.api_name, len(rows))
        return rows

    def compute(self, agg: AggregationSpec, records: List[Mapping[str, Any]]) -> Optional[Any]:
        """Evaluate one aggregation; null values are excluded, never treated as zero."""
        if agg.function == AggregationFunction.COUNT:
            return len(records)

        field = self._fields[agg.field]
        values = [
            coerce_record_value(field, r.get(field.api_name))
            for r in records
            if r.get(field.api_name) is not None
        ]
        if not values:
            return None
        if agg.function == AggregationFunction.SUM:
            return sum(values)
        if agg.function == AggregationFunction.AVG:
            return sum(values) / len(values)
        if agg.function == AggregationFunction.MIN:
            return min(values)
        return max(values)

    @staticmethod
    def _sort_key(fields: List[FieldDefinitionRead], key: Tuple[Any, ...]):
        return tuple(
            (value is None, coerce_record_value(field, value) if value is not None else 0)
            for field, value in zip(fields, key)
        )
