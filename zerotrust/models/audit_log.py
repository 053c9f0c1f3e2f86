"""
Audit Log Table
===============

Durable storage for zero trust decisions.

Critical for:
- Security investigations
- Compliance reporting (NIST 800-53 AU controls)
- Insider threat detection
- Historical risk analysis

Columns are denormalized from the AuditRecord so the common queries
(by user, by decision, by time window) need no JSON parsing. The full
record is kept in ``record_json`` for SIEM export.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Float, Text, Enum as SQLEnum

from .database import Base
from .entities import AccessDecision


def _utcnow():
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """One persisted access decision."""
    __tablename__ = 'zero_trust_audit_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(64), unique=True, nullable=False, index=True)
    event_type = Column(String(50), default='access_decision')
    timestamp = Column(DateTime(timezone=True), default=_utcnow, index=True)

    # Who
    subject_id = Column(String(100), index=True)
    organization_id = Column(String(100))
    ip_address = Column(String(45))  # IPv4 or IPv6
    user_agent = Column(String(255))

    # What
    resource_type = Column(String(50))
    resource_id = Column(String(255))
    action = Column(String(20), nullable=False)

    # Decision
    decision = Column(SQLEnum(AccessDecision), nullable=False)
    risk_score = Column(Float, nullable=False)
    policy_violations = Column(Text)  # JSON list

    # Context
    network_type = Column(String(30))
    record_json = Column(Text)  # Full AuditRecord

    def __repr__(self):
        return f"<AuditLog(event_id='{self.event_id}', subject='{self.subject_id}', decision={self.decision})>"
