"""API router for listing and fetching records of any object type."""

from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends

from crm_engine.core.dependencies import OrganizationDep, get_record_service
from crm_engine.records.schemas import LookupRecord, LookupRequest, RecordListRequest, RecordPage
from crm_engine.records.service import RecordService

router = APIRouter(prefix="/records", tags=["records"])


@router.post("/{object_type}/query", response_model=RecordPage)
async def list_records(
    object_type: str,
    organization_id: OrganizationDep,
    request: Optional[RecordListRequest] = None,
    service: RecordService = Depends(get_record_service),
) -> RecordPage:
    """Filter, search, sort and paginate records; returns the page and the total."""
    return await service.list_records(object_type, request, organization_id)


@router.post("/{object_type}/lookup", response_model=List[LookupRecord])
async def search_lookup(
    object_type: str,
    organization_id: OrganizationDep,
    request: Optional[LookupRequest] = None,
    service: RecordService = Depends(get_record_service),
) -> List[LookupRecord]:
    """Lookup candidates for a reference field pointing at this object type."""
    return await service.search_lookup(object_type, request, organization_id)


@router.post("/{object_type}/related/{parent_field}/{parent_id}", response_model=RecordPage)
async def list_related_records(
    object_type: str,
    parent_field: str,
    parent_id: str,
    organization_id: OrganizationDep,
    request: Optional[RecordListRequest] = None,
    service: RecordService = Depends(get_record_service),
) -> RecordPage:
    """Records whose reference field points at the given parent record."""
    return await service.list_related_records(object_type, parent_field, parent_id, request, organization_id)


@router.get("/{object_type}/{record_id}", response_model=Dict[str, Any])
async def get_record(
    object_type: str,
    record_id: str,
    organization_id: OrganizationDep,
    service: RecordService = Depends(get_record_service),
) -> Dict[str, Any]:
    """Get a single record by id."""
    return await service.get_record(object_type, record_id, organization_id)
