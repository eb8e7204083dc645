"""Dependencies wiring sessions, metadata, storage and services together."""

from typing import Annotated, Optional
from fastapi import Depends, Header
from sqlalchemy.orm import Session
from crm_engine.core.database import get_db

# Core database dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_organization_id(x_organization_id: Annotated[Optional[str], Header()] = None) -> Optional[str]:
    """Tenant the request acts for; None means shared (single-tenant) metadata."""
    return x_organization_id


OrganizationDep = Annotated[Optional[str], Depends(get_organization_id)]


def get_metadata_resolver(db: SessionDep):
    from crm_engine.metadata.dao import ObjectMetadataDAO
    from crm_engine.metadata.resolver import FieldMetadataResolver
    return FieldMetadataResolver(ObjectMetadataDAO(db))


def get_record_storage(db: SessionDep):
    """SQL storage whose calls open their own sessions on the request's engine."""
    from sqlalchemy.orm import sessionmaker
    from crm_engine.records.storage import SqlRecordStorage
    return SqlRecordStorage(sessionmaker(bind=db.get_bind(), autocommit=False, autoflush=False))


def get_record_service(resolver=Depends(get_metadata_resolver), storage=Depends(get_record_storage)):
    """Record access facade for this request."""
    from crm_engine.records.service import RecordService
    return RecordService(resolver, storage)


def get_report_service(db: SessionDep, record_service=Depends(get_record_service)):
    from crm_engine.reporting.dao import ReportDAO
    from crm_engine.reporting.service import ReportService
    return ReportService(ReportDAO(db), record_service)
