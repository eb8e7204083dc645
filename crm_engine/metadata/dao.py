"""Data access for object and field metadata."""

from typing import List, Optional
from sqlalchemy import select, or_
from sqlalchemy.orm import Session, selectinload

from crm_engine.metadata.models import ObjectDefinition, FieldDefinition


class ObjectMetadataDAO:
    """Reads active object definitions together with their active fields."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_api_name(self, api_name: str, organization_id: Optional[str] = None) -> Optional[ObjectDefinition]:
        """Get an active object definition; tenant-specific definitions win over shared ones."""
        stmt = (
            select(ObjectDefinition)
            .options(selectinload(ObjectDefinition.fields))
            .where(ObjectDefinition.api_name == api_name)
            .where(ObjectDefinition.is_active == True)  # noqa: E712
        )
        if organization_id is None:
            stmt = stmt.where(ObjectDefinition.organization_id.is_(None))
        else:
            stmt = stmt.where(
                or_(
                    ObjectDefinition.organization_id == organization_id,
                    ObjectDefinition.organization_id.is_(None),
                )
            ).order_by(ObjectDefinition.organization_id.is_(None))
        result = self.db.execute(stmt)
        return result.scalars().first()

    def get_active_fields(self, object_definition: ObjectDefinition) -> List[FieldDefinition]:
        """Active fields in display order."""
        return [f for f in object_definition.fields if f.is_active]

    def create_object(self, fields: List[dict], **data) -> ObjectDefinition:
        """Create an object definition with its fields."""
        obj = ObjectDefinition(**data)
        self.db.add(obj)
        self.db.flush()
        for order, field_data in enumerate(fields):
            field_data = dict(field_data)
            field_data.setdefault("display_order", order)
            self.db.add(FieldDefinition(object_definition_id=obj.id, **field_data))
        self.db.commit()
        self.db.refresh(obj)
        return obj
