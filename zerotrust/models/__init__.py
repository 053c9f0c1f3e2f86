# Zero Trust Decision Engine - Models
# Request/decision value types and the audit trail table

from .database import Base, get_session, init_db, make_session_factory
from .entities import (
    AccessDecision,
    Action,
    ActionType,
    AuditRecord,
    AuditSubject,
    ClassificationLevel,
    ComplianceState,
    EnvironmentContext,
    GeoLocation,
    MonitoringLevel,
    NetworkType,
    PolicyDecision,
    RequiredAction,
    RequiredActionType,
    Resource,
    ResourceType,
    SessionConstraints,
    Subject,
    ThreatIntelligence,
    TrustLevel,
)
from .audit_log import AuditLog

__all__ = [
    'Base',
    'get_session',
    'init_db',
    'make_session_factory',
    'AccessDecision',
    'Action',
    'ActionType',
    'AuditLog',
    'AuditRecord',
    'AuditSubject',
    'ClassificationLevel',
    'ComplianceState',
    'EnvironmentContext',
    'GeoLocation',
    'MonitoringLevel',
    'NetworkType',
    'PolicyDecision',
    'RequiredAction',
    'RequiredActionType',
    'Resource',
    'ResourceType',
    'SessionConstraints',
    'Subject',
    'ThreatIntelligence',
    'TrustLevel',
]
