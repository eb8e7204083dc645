"""Database models for administrator-authored object and field metadata."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from crm_engine.core.database import Base


class ObjectDefinition(Base):
    """A tenant-defined record type (analogous to a table)."""

    __tablename__ = "object_definitions"
    __table_args__ = (UniqueConstraint("organization_id", "api_name", name="uq_object_api_name"),)

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(String, nullable=True, index=True)
    api_name = Column(String, nullable=False, index=True)
    label = Column(String, nullable=False)
    plural_label = Column(String, nullable=False)
    description = Column(String, nullable=True)

    # Physical table; defaults to api_name when not set
    table_name = Column(String, nullable=True)

    # Filter conditions ANDed into every query against this object
    base_filters = Column(JSON, nullable=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    fields = relationship(
        "FieldDefinition",
        back_populates="object_definition",
        cascade="all, delete-orphan",
        order_by="(FieldDefinition.display_order, FieldDefinition.id)",
    )


class FieldDefinition(Base):
    """One attribute of an ObjectDefinition."""

    __tablename__ = "field_definitions"
    __table_args__ = (UniqueConstraint("object_definition_id", "api_name", name="uq_field_api_name"),)

    id = Column(Integer, primary_key=True, index=True)
    object_definition_id = Column(Integer, ForeignKey("object_definitions.id"), nullable=False)
    api_name = Column(String, nullable=False)
    label = Column(String, nullable=False)
    data_type = Column(String, nullable=False)  # FieldDataType value
    is_visible = Column(Boolean, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True)

    object_definition = relationship("ObjectDefinition", back_populates="fields")
