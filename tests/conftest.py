"""
Test configuration and fixtures for the zero trust engine.
"""
import pytest

from zerotrust.config import ZeroTrustSettings
from zerotrust.core.audit import AuditLogger, InMemoryAuditSink
from zerotrust.core.engine import ZeroTrustEngine
from zerotrust.models import database
from zerotrust.models.database import make_engine, make_session_factory
from zerotrust.scenarios.demo_data import DEMO_NOW


@pytest.fixture
def now():
    """Fixed clock reading: Monday 14:00 UTC."""
    return DEMO_NOW


@pytest.fixture
def settings() -> ZeroTrustSettings:
    """Default settings with business hours pinned to UTC."""
    return ZeroTrustSettings(business_timezone="UTC", _env_file=None)


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def engine(settings, audit_sink, now):
    """Engine with a synchronous in-memory audit trail and a fixed clock."""
    zt = ZeroTrustEngine(
        settings=settings,
        audit_logger=AuditLogger(sinks=[audit_sink], async_writes=False),
        clock=lambda: now,
    )
    yield zt
    zt.close()


@pytest.fixture
def session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    return make_session_factory("sqlite://")


@pytest.fixture
def memory_db(monkeypatch):
    """Point the module-level engine used by the CLI at an in-memory database."""
    monkeypatch.setattr(database, "_engine", make_engine("sqlite://"))
    monkeypatch.setattr(database, "_session_factory", None)
    database.init_db()
    yield
