"""
Database Configuration Module
=============================

SQLAlchemy engine and session management for the audit trail.

The decision engine itself never touches the database. Audit records are
handed to a sink, and the SQLAlchemy sink writes them through the
sessions created here. SQLite is the default for portability; point
``ZT_DATABASE_URL`` at PostgreSQL or similar in production.
"""

from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Base class for declarative models
Base = declarative_base()

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def make_engine(url: str) -> Engine:
    """
    Create an engine for ``url``.

    SQLite connections are shared across the audit writer threads; an
    in-memory database needs a single static connection to survive.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    return create_engine(url, echo=False, pool_pre_ping=True)


def make_session_factory(url: str) -> sessionmaker:
    """Create a session factory bound to a fresh engine for ``url`` with tables created."""
    from . import audit_log  # noqa: F401 - Ensure models are loaded
    bind = make_engine(url)
    Base.metadata.create_all(bind=bind)
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


def get_engine() -> Engine:
    """Engine for the configured database URL, created on first use."""
    global _engine
    if _engine is None:
        from ..config import get_settings
        _engine = make_engine(get_settings().database_url)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


@contextmanager
def get_session(session_factory: Optional[sessionmaker] = None):
    """
    Context manager for database sessions.

    Commits on success, rolls back on failure.

    Usage:
        with get_session() as session:
            entry = session.query(AuditLog).first()
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db():
    """
    Initialize the database schema.

    Creates all tables if they don't exist. Safe to call multiple times.
    """
    from . import audit_log  # noqa: F401 - Ensure models are loaded
    Base.metadata.create_all(bind=get_engine())


def reset_db():
    """
    Drop and recreate all tables.

    WARNING: This destroys the audit trail. Use only for development/testing.
    """
    from . import audit_log  # noqa: F401
    Base.metadata.drop_all(bind=get_engine())
    Base.metadata.create_all(bind=get_engine())
