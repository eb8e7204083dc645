# crm_engine/reporting/models.py - Saved report definitions

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON
from datetime import datetime
from crm_engine.core.database import Base


class Report(Base):
    """A saved, re-evaluable report over one object type."""

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    object_type = Column(String, nullable=False, index=True)
    # Tenant the report belongs to; NULL for shared (single-tenant) reports
    organization_id = Column(String, nullable=True, index=True)

    # Definition stored as JSON lists
    filters = Column(JSON, nullable=False, default=list)
    groupings = Column(JSON, nullable=False, default=list)
    aggregations = Column(JSON, nullable=False, default=list)
    columns = Column(JSON, nullable=False, default=list)

    created_by = Column(String, nullable=False, default="system")
    created_date = Column(DateTime, default=datetime.now)
    updated_date = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    is_active = Column(Boolean, default=True)
