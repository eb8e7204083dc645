"""
Unit tests for the reporting service logic.
Tests report validation, persistence calls, evaluation and CSV export.
"""

import pytest
from unittest.mock import Mock, AsyncMock
from datetime import datetime

from crm_engine.core.errors import InvalidFieldError, InvalidOperatorError, InvalidValueError, NotFoundError
from crm_engine.records.service import RecordService
from crm_engine.records.storage import InMemoryRecordStorage
from crm_engine.reporting.models import Report
from crm_engine.reporting.schemas import ReportCreate, ReportDefinition, ReportUpdate
from crm_engine.reporting.service import ReportService
from tests.conftest import FIXED_NOW


class TestReportServiceCore:
    """Test core report service functionality"""

    @pytest.fixture
    def mock_report_dao(self):
        """Mock report DAO with async methods"""
        dao = Mock()
        dao.get_all = AsyncMock(return_value=[])
        dao.get_by_id = AsyncMock(return_value=None)
        dao.create = AsyncMock()
        dao.update = AsyncMock()
        dao.delete = AsyncMock(return_value=True)
        return dao

    @pytest.fixture
    def record_service(self, invoice_metadata, invoice_rows):
        """Record service over in-memory invoices"""
        resolver = Mock()
        resolver.resolve = Mock(return_value=invoice_metadata)
        return RecordService(resolver, InMemoryRecordStorage({"invoices": invoice_rows}), clock=lambda: FIXED_NOW)

    @pytest.fixture
    def report_service(self, mock_report_dao, record_service):
        return ReportService(report_dao=mock_report_dao, record_service=record_service)

    @pytest.fixture
    def saved_report(self, sample_report_payload):
        return Report(
            id=7,
            is_active=True,
            created_date=datetime(2026, 10, 1, 9, 0),
            updated_date=datetime(2026, 10, 1, 9, 0),
            **sample_report_payload,
        )

    async def test_create_report_success(self, report_service, mock_report_dao, sample_report_payload, saved_report):
        """Test successful report creation"""
        mock_report_dao.create.return_value = saved_report

        result = await report_service.create(ReportCreate(**sample_report_payload))

        assert result.id == 7
        assert result.name == "Open invoices by owner"
        stored = mock_report_dao.create.call_args.args[0]
        assert stored["filters"] == [{"field": "status", "operator": "equals", "value": "open"}]
        assert stored["aggregations"][1] == {"field": "*", "function": "count", "label": "Count"}

    async def test_create_rejects_unknown_operator(self, report_service, mock_report_dao, sample_report_payload):
        sample_report_payload["filters"] = [{"field": "status", "operator": "resembles", "value": "open"}]
        with pytest.raises(InvalidOperatorError):
            await report_service.create(ReportCreate(**sample_report_payload))
        mock_report_dao.create.assert_not_called()

    async def test_create_rejects_non_numeric_sum(self, report_service, mock_report_dao, sample_report_payload):
        sample_report_payload["aggregations"] = [{"field": "status", "function": "sum", "label": "Total"}]
        with pytest.raises(InvalidFieldError):
            await report_service.create(ReportCreate(**sample_report_payload))
        mock_report_dao.create.assert_not_called()

    async def test_create_rejects_bad_value(self, report_service, sample_report_payload):
        sample_report_payload["filters"] = [{"field": "created_at", "operator": "last_n_days", "value": 0}]
        with pytest.raises(InvalidValueError):
            await report_service.create(ReportCreate(**sample_report_payload))

    async def test_get_missing_report(self, report_service):
        with pytest.raises(NotFoundError):
            await report_service.get_by_id(99999)

    async def test_update_revalidates_merged_definition(self, report_service, mock_report_dao, saved_report):
        mock_report_dao.get_by_id.return_value = saved_report
        with pytest.raises(InvalidFieldError):
            await report_service.update(7, ReportUpdate(groupings=["region"]))
        mock_report_dao.update.assert_not_called()

    async def test_update_name_only(self, report_service, mock_report_dao, saved_report):
        mock_report_dao.get_by_id.return_value = saved_report
        mock_report_dao.update.return_value = saved_report

        await report_service.update(7, ReportUpdate(name="  Renamed  "))

        mock_report_dao.update.assert_called_once_with(7, {"name": "Renamed"}, None)

    async def test_delete_missing_report(self, report_service, mock_report_dao):
        mock_report_dao.delete.return_value = False
        with pytest.raises(NotFoundError):
            await report_service.delete(12)

    async def test_evaluate_definition(self, report_service, sample_report_payload):
        definition = ReportDefinition(
            **{k: sample_report_payload[k] for k in ("object_type", "filters", "groupings", "aggregations")}
        )
        result = await report_service.evaluate(definition)

        assert result.record_count == 3
        assert result.rows == [
            {"owner_id": "u1", "Total": 350.0, "Count": 2},
            {"owner_id": "u2", "Total": None, "Count": 1},
        ]
        assert result.description.startswith("Data Source: Invoices\n\nFilters:\n  - status = open")

    async def test_describe_report_does_not_touch_records(self, report_service, mock_report_dao, saved_report):
        mock_report_dao.get_by_id.return_value = saved_report
        report_service.record_service = Mock()

        description = await report_service.describe_report(7)

        assert "Grouped By: owner_id" in description
        report_service.record_service.assert_not_called()
        report_service.record_service.fetch_matching.assert_not_called()

    async def test_export_csv(self, report_service, mock_report_dao, saved_report):
        mock_report_dao.get_by_id.return_value = saved_report

        csv_text = await report_service.export_csv(7)

        lines = csv_text.strip().splitlines()
        assert lines[0] == "owner_id,Total,Count"
        assert lines[1] == "u1,350.0,2"
        assert lines[2] == "u2,,1"

    async def test_tenant_scopes_metadata_and_persistence(
        self, report_service, record_service, mock_report_dao, sample_report_payload, saved_report
    ):
        mock_report_dao.create.return_value = saved_report

        await report_service.create(ReportCreate(**sample_report_payload), organization_id="org-1")

        record_service.resolver.resolve.assert_called_with("invoices", "org-1")
        assert mock_report_dao.create.call_args.args[0]["organization_id"] == "org-1"

    async def test_tenant_scopes_report_lookup(self, report_service, mock_report_dao, saved_report):
        mock_report_dao.get_by_id.return_value = saved_report

        await report_service.evaluate_report(7, organization_id="org-1")

        mock_report_dao.get_by_id.assert_called_once_with(7, "org-1")

    async def test_colliding_label_rejected_before_persisting(
        self, report_service, mock_report_dao, sample_report_payload
    ):
        sample_report_payload["aggregations"] = [{"function": "count", "label": "owner_id"}]
        with pytest.raises(InvalidValueError):
            await report_service.create(ReportCreate(**sample_report_payload))
        mock_report_dao.create.assert_not_called()
