# crm_engine/reporting/service.py - Report persistence, evaluation and description

import logging
from typing import List, Optional

import pandas as pd

from crm_engine.core.errors import NotFoundError
from crm_engine.query.builder import QueryBuilder
from crm_engine.records.service import RecordService
from crm_engine.reporting.aggregation import AggregationEngine
from crm_engine.reporting.dao import ReportDAO
from crm_engine.reporting.description import describe
from crm_engine.reporting.schemas import (
    ReportCreate,
    ReportDefinition,
    ReportRead,
    ReportResult,
    ReportUpdate,
)

logger = logging.getLogger(__name__)

_DEFINITION_FIELDS = ("object_type", "filters", "groupings", "aggregations", "columns")


class ReportService:
    """Saved report CRUD plus evaluation through the record access facade.

    Every call acts for one tenant (``organization_id``, None for shared):
    reports are scoped to it and object types resolve through its metadata.
    """

    def __init__(self, report_dao: ReportDAO, record_service: RecordService):
        self.report_dao = report_dao
        self.record_service = record_service

    # ===== CRUD =====

    async def get_all(self, organization_id: Optional[str] = None) -> List[ReportRead]:
        reports = await self.report_dao.get_all(organization_id)
        return [ReportRead.model_validate(r) for r in reports]

    async def get_by_id(self, report_id: int, organization_id: Optional[str] = None) -> ReportRead:
        report = await self.report_dao.get_by_id(report_id, organization_id)
        if not report:
            raise NotFoundError(f"Report not found: {report_id}")
        return ReportRead.model_validate(report)

    async def create(self, report_data: ReportCreate, organization_id: Optional[str] = None) -> ReportRead:
        """Validate the definition against the object's fields, then persist it."""
        await self.validate_definition(report_data, organization_id)
        data = report_data.model_dump(mode="json")
        data["organization_id"] = organization_id
        report = await self.report_dao.create(data)
        logger.info("Created report %s (%s) on %s", report.id, report.name, report.object_type)
        return ReportRead.model_validate(report)

    async def update(
        self, report_id: int, report_data: ReportUpdate, organization_id: Optional[str] = None
    ) -> ReportRead:
        existing = await self.get_by_id(report_id, organization_id)
        changes = report_data.model_dump(mode="json", exclude_unset=True)
        if any(key in changes for key in _DEFINITION_FIELDS):
            merged = existing.model_dump(mode="json", include=set(_DEFINITION_FIELDS))
            merged.update({k: v for k, v in changes.items() if k in _DEFINITION_FIELDS})
            await self.validate_definition(ReportDefinition.model_validate(merged), organization_id)

        report = await self.report_dao.update(report_id, changes, organization_id)
        if not report:
            raise NotFoundError(f"Report not found: {report_id}")
        return ReportRead.model_validate(report)

    async def delete(self, report_id: int, organization_id: Optional[str] = None) -> None:
        if not await self.report_dao.delete(report_id, organization_id):
            raise NotFoundError(f"Report not found: {report_id}")

    # ===== EVALUATION =====

    async def validate_definition(self, definition: ReportDefinition, organization_id: Optional[str] = None) -> None:
        """Raise the matching validation error for unknown fields, operators or bad values."""
        metadata = await self.record_service.metadata(definition.object_type, organization_id)
        self.record_service.query_builder(metadata).build(filters=definition.filter_conditions())
        AggregationEngine(metadata).validate(definition)

    async def evaluate(self, definition: ReportDefinition, organization_id: Optional[str] = None) -> ReportResult:
        """Aggregate the records matching the definition's filters and describe the report."""
        metadata = await self.record_service.metadata(definition.object_type, organization_id)
        builder: QueryBuilder = self.record_service.query_builder(metadata)
        query = builder.build(filters=definition.filter_conditions())
        engine = AggregationEngine(metadata)
        engine.validate(definition)

        records = await self.record_service.fetch_matching(query)
        rows = engine.aggregate(definition, records)
        return ReportResult(rows=rows, description=describe(definition), record_count=len(records))

    async def evaluate_report(self, report_id: int, organization_id: Optional[str] = None) -> ReportResult:
        return await self.evaluate(await self.get_by_id(report_id, organization_id), organization_id)

    async def describe_report(self, report_id: int, organization_id: Optional[str] = None) -> str:
        return describe(await self.get_by_id(report_id, organization_id))

    async def export_csv(self, report_id: int, organization_id: Optional[str] = None) -> str:
        """CSV of the evaluated rows: grouping columns, then aggregation labels."""
        report = await self.get_by_id(report_id, organization_id)
        result = await self.evaluate(report, organization_id)
        columns: List[str] = list(report.groupings) + [a.label for a in report.aggregations]
        df = pd.DataFrame(result.rows, columns=columns)
        return df.to_csv(index=False)
