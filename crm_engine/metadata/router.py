"""API router for object metadata."""

from fastapi import APIRouter, Depends

from crm_engine.core.dependencies import OrganizationDep, get_metadata_resolver
from crm_engine.metadata.resolver import (
    FieldMetadataResolver,
    default_display_fields,
    default_search_fields,
)
from crm_engine.metadata.schemas import ObjectMetadataResponse

router = APIRouter(prefix="/objects", tags=["metadata"])


@router.get("/{api_name}", response_model=ObjectMetadataResponse)
def get_object_metadata(
    api_name: str,
    organization_id: OrganizationDep,
    resolver: FieldMetadataResolver = Depends(get_metadata_resolver),
) -> ObjectMetadataResponse:
    """Get an object's ordered fields and its default display/search fields."""
    metadata = resolver.resolve(api_name, organization_id)
    return ObjectMetadataResponse(
        object=metadata.object,
        fields=metadata.fields,
        display_fields=default_display_fields(metadata.fields),
        search_fields=default_search_fields(metadata.fields),
    )
