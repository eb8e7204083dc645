"""Data Access Objects for the reporting module."""

from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Any, Dict, List, Optional
from datetime import datetime
from crm_engine.reporting.models import Report


class ReportDAO:
    """DAO for Report operations, scoped to one tenant per call."""

    def __init__(self, db_session: Session):
        self.db = db_session

    @staticmethod
    def _scoped(stmt, organization_id: Optional[str]):
        if organization_id is None:
            return stmt.where(Report.organization_id.is_(None))
        return stmt.where(Report.organization_id == organization_id)

    async def get_all(self, organization_id: Optional[str] = None) -> List[Report]:
        """Get the tenant's active reports, newest first."""
        stmt = select(Report).where(Report.is_active == True).order_by(Report.created_date.desc())  # noqa: E712
        result = self.db.execute(self._scoped(stmt, organization_id))
        return list(result.scalars().all())

    async def get_by_id(self, report_id: int, organization_id: Optional[str] = None) -> Optional[Report]:
        """Get an active report of the tenant by ID."""
        stmt = select(Report).where(Report.id == report_id).where(Report.is_active == True)  # noqa: E712
        result = self.db.execute(self._scoped(stmt, organization_id))
        return result.scalars().first()

    async def create(self, data: Dict[str, Any]) -> Report:
        """Create a new report from already-serialized definition data."""
        report = Report(**data)
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        return report

    async def update(
        self, report_id: int, data: Dict[str, Any], organization_id: Optional[str] = None
    ) -> Optional[Report]:
        """Update the given attributes of an existing report."""
        report = await self.get_by_id(report_id, organization_id)
        if not report:
            return None

        for key, value in data.items():
            if hasattr(report, key):
                setattr(report, key, value)
        report.updated_date = datetime.now()

        self.db.commit()
        self.db.refresh(report)
        return report

    async def delete(self, report_id: int, organization_id: Optional[str] = None) -> bool:
        """Soft delete a report by ID."""
        report = await self.get_by_id(report_id, organization_id)
        if report:
            report.is_active = False
            self.db.commit()
            return True
        return False
