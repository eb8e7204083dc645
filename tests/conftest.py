"""
Test configuration and shared fixtures for the CRM record engine test suite.
Provides database setup, seeded object metadata and records, and the API client.
"""

import pytest
from datetime import date, datetime, timezone
from typing import Any, Dict, List
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from crm_engine.app import create_app
from crm_engine.core.database import create_all_tables, drop_all_tables, get_db
from crm_engine.metadata.dao import ObjectMetadataDAO
from crm_engine.metadata.resolver import metadata_cache
from crm_engine.metadata.schemas import FieldDataType, FieldDefinitionRead, ObjectDefinitionRead, ObjectMetadata
from crm_engine.records.storage import record_table


# Fixed reference instant: Monday 2026-10-19 12:00 UTC
FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


INVOICE_FIELDS: List[Dict[str, Any]] = [
    {"api_name": "id", "label": "ID", "data_type": "text", "is_visible": False},
    {"api_name": "name", "label": "Invoice", "data_type": "text"},
    {"api_name": "status", "label": "Status", "data_type": "select"},
    {"api_name": "owner_id", "label": "Owner", "data_type": "reference"},
    {"api_name": "amount", "label": "Amount", "data_type": "currency"},
    {"api_name": "paid", "label": "Paid", "data_type": "boolean"},
    {"api_name": "due_date", "label": "Due Date", "data_type": "date"},
    {"api_name": "created_at", "label": "Created", "data_type": "datetime"},
]

LEAD_FIELDS: List[Dict[str, Any]] = [
    {"api_name": "id", "label": "ID", "data_type": "text", "is_visible": False},
    {"api_name": "name", "label": "Name", "data_type": "text"},
    {"api_name": "email", "label": "Email", "data_type": "email"},
    {"api_name": "status", "label": "Status", "data_type": "select"},
    {"api_name": "company", "label": "Company", "data_type": "text"},
    {"api_name": "created_at", "label": "Created", "data_type": "datetime"},
]

INVOICE_ROWS: List[Dict[str, Any]] = [
    {
        "id": "inv-1", "name": "Invoice 1001", "status": "open", "owner_id": "u1", "amount": 100.0,
        "paid": False, "due_date": date(2026, 10, 20), "created_at": datetime(2026, 10, 1, 10, 0),
    },
    {
        "id": "inv-2", "name": "Invoice 1002", "status": "open", "owner_id": "u1", "amount": 250.0,
        "paid": False, "due_date": date(2026, 11, 5), "created_at": datetime(2026, 10, 5, 9, 30),
    },
    {
        "id": "inv-3", "name": "Invoice 1003", "status": "paid", "owner_id": "u2", "amount": 75.5,
        "paid": True, "due_date": date(2026, 9, 30), "created_at": datetime(2026, 9, 15, 14, 0),
    },
    {
        "id": "inv-4", "name": "Invoice 1004", "status": "open", "owner_id": "u2", "amount": None,
        "paid": False, "due_date": None, "created_at": datetime(2026, 10, 10, 8, 0),
    },
    {
        "id": "inv-5", "name": "Invoice 1005", "status": "void", "owner_id": None, "amount": 40.0,
        "paid": False, "due_date": date(2026, 10, 1), "created_at": datetime(2026, 8, 1, 12, 0),
    },
]

LEAD_ROWS: List[Dict[str, Any]] = [
    {
        "id": "lead-1", "name": "Ada Lovelace", "email": "ada@example.com", "status": "new",
        "company": "Analytical Engines", "created_at": datetime(2026, 10, 1, 9, 0),
    },
    {
        "id": "lead-2", "name": "Grace Hopper", "email": "grace@navy.example", "status": "client",
        "company": "US Navy", "created_at": datetime(2026, 10, 2, 9, 0),
    },
    {
        "id": "lead-3", "name": "Alan Turing", "email": "alan@example.com", "status": "client",
        "company": None, "created_at": datetime(2026, 10, 3, 9, 0),
    },
    {
        "id": "lead-4", "name": "Edsger Dijkstra", "email": "ed@example.com", "status": "contacted",
        "company": "TU Eindhoven", "created_at": datetime(2026, 10, 4, 9, 0),
    },
]


def build_fields(seeds: List[Dict[str, Any]]) -> List[FieldDefinitionRead]:
    """FieldDefinitionRead list from the seed dicts, in definition order."""
    return [
        FieldDefinitionRead(
            api_name=seed["api_name"],
            label=seed["label"],
            data_type=FieldDataType(seed["data_type"]),
            is_visible=seed.get("is_visible", True),
            display_order=order,
        )
        for order, seed in enumerate(seeds)
    ]


def build_metadata(api_name: str, seeds: List[Dict[str, Any]], **object_data) -> ObjectMetadata:
    """In-memory ObjectMetadata for unit tests that do not touch the database."""
    object_data.setdefault("label", api_name.title())
    object_data.setdefault("plural_label", api_name.title())
    return ObjectMetadata(
        object=ObjectDefinitionRead(api_name=api_name, **object_data),
        fields=build_fields(seeds),
    )


# ===== DATABASE SETUP =====

@pytest.fixture(scope="session")
def engine():
    """Create in-memory SQLite engine shared by the whole session"""
    return create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture(scope="session")
def TestingSessionLocal(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(engine, TestingSessionLocal):
    """Create the schema, yield a session, then drop everything again"""
    create_all_tables(bind=engine)
    tables = [
        record_table("invoices", build_fields(INVOICE_FIELDS)),
        record_table("leads", build_fields(LEAD_FIELDS)),
    ]
    for table in tables:
        table.create(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        for table in tables:
            table.drop(bind=engine)
        drop_all_tables(bind=engine)
        metadata_cache.invalidate()


@pytest.fixture
def seeded_db(db_session):
    """Object metadata for invoices, leads and clients plus their records"""
    dao = ObjectMetadataDAO(db_session)
    dao.create_object(INVOICE_FIELDS, api_name="invoices", label="Invoice", plural_label="Invoices")
    dao.create_object(LEAD_FIELDS, api_name="leads", label="Lead", plural_label="Leads")
    # Clients live in the leads table, restricted to status = client
    dao.create_object(
        LEAD_FIELDS,
        api_name="clients",
        label="Client",
        plural_label="Clients",
        table_name="leads",
        base_filters=[{"field": "status", "operator": "equals", "value": "client"}],
    )

    db_session.execute(record_table("invoices", build_fields(INVOICE_FIELDS)).insert(), INVOICE_ROWS)
    db_session.execute(record_table("leads", build_fields(LEAD_FIELDS)).insert(), LEAD_ROWS)
    db_session.commit()
    return db_session


@pytest.fixture
def client(seeded_db, TestingSessionLocal):
    """Create FastAPI test client with database overrides"""
    app = create_app(init_database=False, log_session_factory=TestingSessionLocal)

    def override_get_db():
        try:
            yield seeded_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ===== SAMPLE DATA =====

@pytest.fixture
def invoice_metadata() -> ObjectMetadata:
    return build_metadata("invoices", INVOICE_FIELDS, label="Invoice", plural_label="Invoices")


@pytest.fixture
def client_metadata() -> ObjectMetadata:
    return build_metadata(
        "clients",
        LEAD_FIELDS,
        label="Client",
        plural_label="Clients",
        table_name="leads",
        base_filters=[{"field": "status", "operator": "equals", "value": "client"}],
    )


@pytest.fixture
def invoice_rows() -> List[Dict[str, Any]]:
    return [dict(row) for row in INVOICE_ROWS]


@pytest.fixture
def sample_report_payload() -> Dict[str, Any]:
    return {
        "name": "Open invoices by owner",
        "description": "Outstanding amounts per owner",
        "object_type": "invoices",
        "created_by": "test_user",
        "filters": [{"field": "status", "operator": "equals", "value": "open"}],
        "groupings": ["owner_id"],
        "aggregations": [
            {"field": "amount", "function": "sum", "label": "Total"},
            {"function": "count", "label": "Count"},
        ],
        "columns": [],
    }
