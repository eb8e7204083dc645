"""
Field metadata resolution.

Looks up an object's definition and ordered fields, with a process-wide
read-through cache keyed by (tenant, api_name), and derives the default
display and search field subsets used by list pages.
"""

import logging
import os
import threading
import time
from typing import Dict, List, Optional, Sequence, Tuple

from crm_engine.core.errors import NotFoundError
from crm_engine.metadata.dao import ObjectMetadataDAO
from crm_engine.metadata.schemas import (
    FieldDataType,
    FieldDefinitionRead,
    ObjectDefinitionRead,
    ObjectMetadata,
)

logger = logging.getLogger(__name__)

RESERVED_DISPLAY_FIELDS = frozenset({"id", "created_at", "updated_at", "owner_id", "organization_id"})
MAX_DISPLAY_FIELDS = 6
MAX_SEARCH_FIELDS = 4
DISPLAY_PADDING_FIELD = "created_at"

METADATA_CACHE_TTL_SECONDS = float(os.getenv("METADATA_CACHE_TTL_SECONDS", "300"))


def default_display_fields(fields: Sequence[FieldDefinitionRead]) -> List[str]:
    """Visible, non-reserved fields in definition order, capped at six.

    When fewer than six qualify, ``created_at`` is appended.
    """
    selected = [
        f.api_name
        for f in fields
        if f.is_visible and f.api_name not in RESERVED_DISPLAY_FIELDS
    ][:MAX_DISPLAY_FIELDS]
    if len(selected) < MAX_DISPLAY_FIELDS:
        selected.append(DISPLAY_PADDING_FIELD)
    return selected


def default_search_fields(fields: Sequence[FieldDefinitionRead]) -> List[str]:
    """Visible text fields (or the ``name`` field) in definition order, capped at four."""
    return [
        f.api_name
        for f in fields
        if f.is_visible and (f.data_type == FieldDataType.TEXT or f.api_name == "name")
    ][:MAX_SEARCH_FIELDS]


def default_lookup_fields(fields: Sequence[FieldDefinitionRead]) -> Tuple[str, Optional[str]]:
    """Field shown for a lookup match and an optional secondary field.

    Taken from the default search fields; objects without any fall back to ``id``.
    """
    names = default_search_fields(fields)
    if not names:
        return "id", None
    return names[0], names[1] if len(names) > 1 else None


class MetadataCache:
    """Thread-safe cache of resolved metadata, refreshed wholesale."""

    def __init__(self, ttl_seconds: float = METADATA_CACHE_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[Tuple[Optional[str], str], Tuple[float, ObjectMetadata]] = {}
        self._lock = threading.Lock()

    def get(self, organization_id: Optional[str], api_name: str) -> Optional[ObjectMetadata]:
        if self.ttl_seconds <= 0:
            return None
        with self._lock:
            entry = self._entries.get((organization_id, api_name))
        if entry is None:
            return None
        loaded_at, metadata = entry
        if time.monotonic() - loaded_at > self.ttl_seconds:
            return None
        return metadata

    def put(self, organization_id: Optional[str], api_name: str, metadata: ObjectMetadata) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[(organization_id, api_name)] = (time.monotonic(), metadata)

    def invalidate(self) -> None:
        with self._lock:
            self._entries = {}


metadata_cache = MetadataCache()


class FieldMetadataResolver:
    """Resolves object metadata by api_name, raising NotFoundError for unknown objects."""

    def __init__(self, dao: ObjectMetadataDAO, cache: Optional[MetadataCache] = None):
        self.dao = dao
        self.cache = cache if cache is not None else metadata_cache

    def resolve(self, api_name: str, organization_id: Optional[str] = None) -> ObjectMetadata:
        cached = self.cache.get(organization_id, api_name)
        if cached is not None:
            return cached

        obj = self.dao.get_by_api_name(api_name, organization_id)
        if obj is None:
            logger.info("Unknown object type requested: %s", api_name)
            raise NotFoundError(f"Object not found: {api_name}")

        metadata = ObjectMetadata(
            object=ObjectDefinitionRead.model_validate(obj),
            fields=[FieldDefinitionRead.model_validate(f) for f in self.dao.get_active_fields(obj)],
        )
        self.cache.put(organization_id, api_name, metadata)
        return metadata
