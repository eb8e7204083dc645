"""
Unit tests for the report aggregation engine.
"""

import pytest

from crm_engine.core.errors import InternalEngineError, InvalidFieldError, InvalidValueError
from crm_engine.reporting.aggregation import AggregationEngine
from crm_engine.reporting.schemas import ReportDefinition


def definition(groupings=(), aggregations=()):
    return ReportDefinition(
        object_type="invoices",
        groupings=list(groupings),
        aggregations=list(aggregations),
    )


class TestAggregationValidation:
    """Test grouping and aggregation field checks"""

    @pytest.fixture
    def engine(self, invoice_metadata):
        return AggregationEngine(invoice_metadata)

    def test_count_uses_sentinel_field(self, engine):
        engine.validate(definition(aggregations=[{"function": "count", "label": "Count"}]))

    def test_unknown_grouping_rejected(self, engine):
        with pytest.raises(InvalidFieldError) as exc_info:
            engine.validate(definition(groupings=["region"]))
        assert exc_info.value.field == "region"

    @pytest.mark.parametrize("function", ["sum", "avg", "min", "max"])
    def test_numeric_functions_require_numeric_field(self, engine, function):
        with pytest.raises(InvalidFieldError):
            engine.validate(definition(aggregations=[{"field": "status", "function": function, "label": "X"}]))

    def test_label_colliding_with_grouping_rejected(self, engine):
        with pytest.raises(InvalidValueError) as exc_info:
            engine.validate(definition(groupings=["status"], aggregations=[{"function": "count", "label": "status"}]))
        assert "'status'" in exc_info.value.message

    def test_duplicate_labels_rejected(self, engine):
        aggregations = [
            {"field": "amount", "function": "sum", "label": "Amount"},
            {"field": "amount", "function": "max", "label": "Amount"},
        ]
        with pytest.raises(InvalidValueError) as exc_info:
            engine.validate(definition(aggregations=aggregations))
        assert "'Amount'" in exc_info.value.message

    def test_sentinel_rejected_for_numeric_functions(self, engine):
        with pytest.raises(InvalidFieldError):
            engine.validate(definition(aggregations=[{"function": "sum", "label": "X"}]))


class TestAggregate:
    """Test grouping and computation"""

    @pytest.fixture
    def engine(self, invoice_metadata):
        return AggregationEngine(invoice_metadata)

    def test_grouped_sum_count_and_avg(self, engine, invoice_rows):
        rows = engine.aggregate(
            definition(
                groupings=["owner_id"],
                aggregations=[
                    {"field": "amount", "function": "sum", "label": "Total"},
                    {"field": "amount", "function": "avg", "label": "Average"},
                    {"function": "count", "label": "Count"},
                ],
            ),
            invoice_rows,
        )
        assert rows == [
            {"owner_id": "u1", "Total": 350.0, "Average": 175.0, "Count": 2},
            {"owner_id": "u2", "Total": 75.5, "Average": 75.5, "Count": 2},
            {"owner_id": None, "Total": 40.0, "Average": 40.0, "Count": 1},
        ]

    def test_nulls_excluded_not_zero(self, engine, invoice_rows):
        rows = engine.aggregate(
            definition(
                aggregations=[
                    {"field": "amount", "function": "min", "label": "Min"},
                    {"field": "amount", "function": "avg", "label": "Avg"},
                ]
            ),
            invoice_rows,
        )
        assert rows == [{"Min": 40.0, "Avg": (100.0 + 250.0 + 75.5 + 40.0) / 4}]

    def test_avg_of_all_null_group_is_none(self, engine):
        records = [{"id": "a", "owner_id": "u9", "amount": None}, {"id": "b", "owner_id": "u9", "amount": None}]
        rows = engine.aggregate(
            definition(
                groupings=["owner_id"],
                aggregations=[
                    {"field": "amount", "function": "avg", "label": "Avg"},
                    {"field": "amount", "function": "sum", "label": "Sum"},
                    {"function": "count", "label": "Count"},
                ],
            ),
            records,
        )
        assert rows == [{"owner_id": "u9", "Avg": None, "Sum": None, "Count": 2}]

    def test_no_groupings_yields_single_row_even_when_empty(self, engine):
        rows = engine.aggregate(definition(aggregations=[{"function": "count", "label": "Count"}]), [])
        assert rows == [{"Count": 0}]

    def test_grouped_empty_input_yields_no_rows(self, engine):
        assert engine.aggregate(definition(groupings=["status"]), []) == []

    def test_multi_field_grouping_sorted(self, engine, invoice_rows):
        rows = engine.aggregate(
            definition(groupings=["status", "paid"], aggregations=[{"function": "count", "label": "N"}]),
            invoice_rows,
        )
        assert [(r["status"], r["paid"], r["N"]) for r in rows] == [
            ("open", False, 3),
            ("paid", True, 1),
            ("void", False, 1),
        ]

    def test_non_numeric_stored_value_is_internal_error(self, engine):
        records = [{"id": "a", "amount": "a lot"}]
        with pytest.raises(InternalEngineError):
            engine.aggregate(definition(aggregations=[{"field": "amount", "function": "sum", "label": "S"}]), records)
