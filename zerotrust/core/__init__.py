# Zero Trust Decision Engine - Core Modules
# Risk, trust, policy and decision logic plus audit dispatch

from .audit import AuditLogger, AuditTrail, InMemoryAuditSink, SqlAlchemyAuditSink, build_audit_record
from .context import RequestAttributes, RequestContextBuilder
from .decision import build_decision
from .engine import ZeroTrustEngine
from .policy_engine import PolicyEvaluator, PolicyRule, default_rules
from .rbac_engine import RBACEngine
from .risk import calculate_risk_score
from .session import calculate_expiration, determine_session_constraints
from .trust import determine_trust_level

__all__ = [
    'AuditLogger',
    'AuditTrail',
    'InMemoryAuditSink',
    'SqlAlchemyAuditSink',
    'build_audit_record',
    'RequestAttributes',
    'RequestContextBuilder',
    'build_decision',
    'ZeroTrustEngine',
    'PolicyEvaluator',
    'PolicyRule',
    'default_rules',
    'RBACEngine',
    'calculate_risk_score',
    'calculate_expiration',
    'determine_session_constraints',
    'determine_trust_level',
]
