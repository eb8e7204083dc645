"""API router for the reporting module."""

from typing import Dict, List
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from crm_engine.core.dependencies import OrganizationDep, get_report_service
from crm_engine.reporting.schemas import (
    ReportCreate,
    ReportDefinition,
    ReportDescription,
    ReportRead,
    ReportResult,
    ReportUpdate,
)
from crm_engine.reporting.service import ReportService

router = APIRouter(prefix="/reports", tags=["reporting"])


# ===== REPORT CONFIGURATION ENDPOINTS =====


@router.get("/", response_model=List[ReportRead])
async def get_all_reports(
    organization_id: OrganizationDep, service: ReportService = Depends(get_report_service)
) -> List[ReportRead]:
    """Get all saved reports."""
    return await service.get_all(organization_id)


@router.post("/", response_model=ReportRead)
async def create_report(
    report_data: ReportCreate,
    organization_id: OrganizationDep,
    service: ReportService = Depends(get_report_service),
) -> ReportRead:
    """Create a new saved report."""
    return await service.create(report_data, organization_id)


@router.post("/preview", response_model=ReportResult)
async def preview_report(
    definition: ReportDefinition,
    organization_id: OrganizationDep,
    service: ReportService = Depends(get_report_service),
) -> ReportResult:
    """Evaluate an unsaved report definition."""
    return await service.evaluate(definition, organization_id)


@router.get("/{report_id}", response_model=ReportRead)
async def get_report_by_id(
    report_id: int, organization_id: OrganizationDep, service: ReportService = Depends(get_report_service)
) -> ReportRead:
    """Get a specific report by ID."""
    return await service.get_by_id(report_id, organization_id)


@router.patch("/{report_id}", response_model=ReportRead)
async def update_report(
    report_id: int,
    report_data: ReportUpdate,
    organization_id: OrganizationDep,
    service: ReportService = Depends(get_report_service),
) -> ReportRead:
    """Update an existing report."""
    return await service.update(report_id, report_data, organization_id)


@router.delete("/{report_id}")
async def delete_report(
    report_id: int, organization_id: OrganizationDep, service: ReportService = Depends(get_report_service)
) -> Dict[str, str]:
    """Delete a report."""
    await service.delete(report_id, organization_id)
    return {"message": "Report deleted successfully"}


# ===== REPORT EXECUTION ENDPOINTS =====


@router.post("/{report_id}/run", response_model=ReportResult)
async def run_report(
    report_id: int, organization_id: OrganizationDep, service: ReportService = Depends(get_report_service)
) -> ReportResult:
    """Evaluate a saved report: grouped aggregates plus its description."""
    return await service.evaluate_report(report_id, organization_id)


@router.get("/{report_id}/description", response_model=ReportDescription)
async def get_report_description(
    report_id: int, organization_id: OrganizationDep, service: ReportService = Depends(get_report_service)
) -> ReportDescription:
    """Get a report's formula description without touching record data."""
    return ReportDescription(description=await service.describe_report(report_id, organization_id))


@router.get("/{report_id}/export")
async def export_report(
    report_id: int, organization_id: OrganizationDep, service: ReportService = Depends(get_report_service)
) -> Response:
    """Export evaluated report rows as CSV."""
    csv_data = await service.export_csv(report_id, organization_id)
    return Response(
        content=csv_data,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=report_{report_id}.csv"},
    )
