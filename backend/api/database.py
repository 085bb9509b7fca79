"""
Database wiring for Sequential Blotto: engine, session factory and the declarative Base.
SQLite file next to this module by default; DATABASE_URL points at Postgres in production.
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

SQLITE_FILE = "blotto.db"
IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

Base = declarative_base()


def resolve_database_url(raw: str | None = None) -> str:
    """DATABASE_URL normalised for SQLAlchemy 2.x, or the local SQLite file when unset."""
    if raw is None:
        raw = os.environ.get("DATABASE_URL", "")
    # Heroku-style postgres:// is not accepted by SQLAlchemy 2.x
    if raw.startswith("postgres://"):
        return "postgresql://" + raw[len("postgres://"):]
    if raw:
        return raw
    db_dir = os.path.dirname(os.path.abspath(__file__))
    return f"sqlite:///{os.path.join(db_dir, SQLITE_FILE)}"


def make_engine(url: str):
    """
    Engine for url. SQLite gets check_same_thread=False (FastAPI runs sync
    routes in a threadpool); an in-memory database shares a single connection
    so every session sees the same tables.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    if url in IN_MEMORY_URLS:
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, connect_args={"check_same_thread": False})


DATABASE_URL = resolve_database_url()
engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency that yields a DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_db_file_path() -> str | None:
    """Path of the SQLite file in use, or None for other databases."""
    if not DATABASE_URL.startswith("sqlite:///") or DATABASE_URL in IN_MEMORY_URLS:
        return None
    return DATABASE_URL[len("sqlite:///"):]


def init_db(bind=None):
    """Create all tables on bind (the module engine by default)."""
    from . import models  # noqa: F401  registers tables on Base.metadata
    Base.metadata.create_all(bind=bind or engine)
