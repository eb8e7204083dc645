# crm_engine/core/database.py
"""Database configuration for the record engine: engine, sessions and declarative base."""

import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()

# One database per tenant deployment: object metadata, record tables, reports, logs.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./crm_engine.db")

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# ===== SESSION GENERATORS =====


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ===== TABLE CREATION =====


def create_all_tables(bind=None):
    """Create the metadata, report and log tables."""
    # Import models to ensure they're registered with Base
    from crm_engine.metadata.models import ObjectDefinition, FieldDefinition  # noqa: F401
    from crm_engine.reporting.models import Report  # noqa: F401
    from crm_engine.logging.models import Log  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def drop_all_tables(bind=None):
    """Drop the metadata, report and log tables (use with caution!)."""
    from crm_engine.metadata.models import ObjectDefinition, FieldDefinition  # noqa: F401
    from crm_engine.reporting.models import Report  # noqa: F401
    from crm_engine.logging.models import Log  # noqa: F401

    Base.metadata.drop_all(bind=bind or engine)


def init_db():
    """Initialize database tables on application start."""
    create_all_tables()
