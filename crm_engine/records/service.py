"""
Record access facade.

The one entry point every object type goes through: resolve metadata,
build and validate the query, then make a single storage call. Storage
failures come back as StorageUnavailableError / StorageTimeoutError, and a
page is only ever returned together with its total.
"""

import asyncio
import functools
import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from crm_engine.core.errors import (
    InvalidFieldError,
    NotFoundError,
    RecordEngineError,
    StorageTimeoutError,
    StorageUnavailableError,
)
from crm_engine.metadata.resolver import FieldMetadataResolver, default_lookup_fields
from crm_engine.metadata.schemas import FieldDataType, ObjectMetadata
from crm_engine.query.builder import QueryBuilder
from crm_engine.query.schemas import (
    FilterCondition,
    Operator,
    PaginationConfig,
    RecordQuery,
    SortConfig,
    SortDirection,
)
from crm_engine.query.values import as_text
from crm_engine.records.schemas import LookupRecord, LookupRequest, RecordListRequest, RecordPage
from crm_engine.records.storage import RecordStorage

logger = logging.getLogger(__name__)

STORAGE_TIMEOUT_SECONDS = float(os.getenv("STORAGE_TIMEOUT_SECONDS", "30"))

_TIMEOUT_MARKERS = ("timeout", "timed out", "canceling statement")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordService:
    """Lists and fetches records for any object type."""

    def __init__(
        self,
        resolver: FieldMetadataResolver,
        storage: RecordStorage,
        timeout_seconds: float = STORAGE_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.resolver = resolver
        self.storage = storage
        self.timeout_seconds = timeout_seconds
        self.clock = clock

    async def metadata(self, object_type: str, organization_id: Optional[str] = None) -> ObjectMetadata:
        """Resolve metadata off the event loop; a cache miss reads the database."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self.resolver.resolve, object_type, organization_id)
        )

    def query_builder(self, metadata: ObjectMetadata) -> QueryBuilder:
        return QueryBuilder(metadata, now=self.clock())

    def build_query(
        self,
        metadata: ObjectMetadata,
        request: Optional[RecordListRequest] = None,
        filters: Sequence[FilterCondition] = (),
    ) -> RecordQuery:
        """Query for one list call; ``filters`` are ANDed ahead of the request's own."""
        request = request or RecordListRequest()
        return self.query_builder(metadata).build(
            filters=list(filters) + request.filter_conditions(),
            search=request.search,
            search_fields=request.search_fields,
            sort=request.sort_config(),
            pagination=request.pagination(),
        )

    async def list_records(
        self,
        object_type: str,
        request: Optional[RecordListRequest] = None,
        organization_id: Optional[str] = None,
    ) -> RecordPage:
        """Return one page of matching records and the total match count."""
        metadata = await self.metadata(object_type, organization_id)
        return await self._fetch_page(self.build_query(metadata, request))

    async def list_related_records(
        self,
        object_type: str,
        parent_field: str,
        parent_id: str,
        request: Optional[RecordListRequest] = None,
        organization_id: Optional[str] = None,
    ) -> RecordPage:
        """Records of ``object_type`` whose reference field ``parent_field`` points at ``parent_id``."""
        metadata = await self.metadata(object_type, organization_id)
        field = self.query_builder(metadata).field(parent_field)
        if field.data_type != FieldDataType.REFERENCE:
            raise InvalidFieldError(
                f"Field '{parent_field}' on object '{object_type}' is not a reference field",
                field=parent_field,
            )
        parent = FilterCondition(field=parent_field, operator=Operator.EQUALS, value=parent_id)
        return await self._fetch_page(self.build_query(metadata, request, filters=[parent]))

    async def search_lookup(
        self,
        object_type: str,
        request: Optional[LookupRequest] = None,
        organization_id: Optional[str] = None,
    ) -> List[LookupRecord]:
        """Lookup candidates matching the term on the object's default search fields."""
        request = request or LookupRequest()
        metadata = await self.metadata(object_type, organization_id)
        display_field, secondary_field = default_lookup_fields(metadata.fields)
        query = self.query_builder(metadata).build(
            search=request.search,
            sort=SortConfig(field=display_field, direction=SortDirection.ASC),
            pagination=PaginationConfig(page=1, page_size=request.limit),
        )
        rows, _ = await self._call_storage(self.storage.fetch_page, query)
        return [self._lookup_record(row, display_field, secondary_field) for row in rows]

    async def fetch_matching(self, query: RecordQuery) -> List[Dict[str, Any]]:
        """Every record matching an already-built query (used by reports)."""
        return await self._call_storage(self.storage.fetch_all, query)

    async def get_record(
        self, object_type: str, record_id: Any, organization_id: Optional[str] = None
    ) -> Dict[str, Any]:
        metadata = await self.metadata(object_type, organization_id)
        row = await self._call_storage(
            self.storage.fetch_one, metadata.object.storage_table, metadata.fields, record_id
        )
        if row is None:
            raise NotFoundError("Record not found", field="id")
        return row

    async def _fetch_page(self, query: RecordQuery) -> RecordPage:
        rows, total = await self._call_storage(self.storage.fetch_page, query)
        return RecordPage.build(rows, total, query.pagination)

    @staticmethod
    def _lookup_record(row: Dict[str, Any], display_field: str, secondary_field: Optional[str]) -> LookupRecord:
        record_id = str(row["id"])
        display = row.get(display_field)
        secondary = row.get(secondary_field) if secondary_field else None
        return LookupRecord(
            id=record_id,
            display_value=as_text(display) if display is not None else record_id,
            secondary_value=as_text(secondary) if secondary is not None else None,
        )

    async def _call_storage(self, fn, *args):
        """Run a synchronous storage call off the event loop, bounded by the timeout.

        On timeout the executor future is abandoned; the worker thread is left
        to finish on its own, in its own storage session.
        """
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(fn, *args)), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error("Storage call %s exceeded %.1fs", getattr(fn, "__name__", fn), self.timeout_seconds)
            raise StorageTimeoutError(f"Storage did not respond within {self.timeout_seconds:g} seconds") from None
        except RecordEngineError:
            raise
        except PoolTimeoutError as exc:
            logger.error("Storage connection pool timed out", exc_info=True)
            raise StorageTimeoutError("Timed out waiting for a storage connection") from exc
        except OperationalError as exc:
            logger.error("Storage operational error", exc_info=True)
            if any(marker in str(exc).lower() for marker in _TIMEOUT_MARKERS):
                raise StorageTimeoutError("Storage query timed out") from exc
            raise StorageUnavailableError("Storage is unavailable") from exc
        except (DBAPIError, SQLAlchemyError) as exc:
            logger.error("Storage error", exc_info=True)
            raise StorageUnavailableError("Storage request failed") from exc
