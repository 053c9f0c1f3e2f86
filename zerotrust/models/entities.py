"""
Entity Models for the Zero Trust Decision Engine
=================================================

Typed values flowing through a single access evaluation:

Request Components:
- Subject: The authenticated identity attempting access
- Resource: The protected asset (type, classification, sensitivity)
- Action: The requested operation
- EnvironmentContext: Network, device, behaviour and threat signals

Decision Components:
- PolicyDecision: allow / deny / challenge / step_up plus constraints
- AuditRecord: Immutable record of the decision for the audit trail
- SessionConstraints: Time-bounded session behaviour

Everything here is a frozen dataclass. Scores supplied by upstream
lookups are clamped into [0, 100] on construction rather than rejected,
so a malformed lookup can never break an evaluation.
"""

import enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple


def clamp_score(value: Any, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp a numeric score into [low, high]; non-numeric input becomes low."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low
    if number != number:  # NaN
        return low
    return min(high, max(low, number))


class TrustLevel(str, enum.Enum):
    """Request-scoped trust classification, ordered ascending."""
    UNTRUSTED = "untrusted"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERIFIED = "verified"

    @property
    def rank(self) -> int:
        return _TRUST_ORDER.index(self)


_TRUST_ORDER = [
    TrustLevel.UNTRUSTED,
    TrustLevel.LOW,
    TrustLevel.MEDIUM,
    TrustLevel.HIGH,
    TrustLevel.VERIFIED,
]


class AccessDecision(str, enum.Enum):
    """Possible outcomes of a zero trust evaluation."""
    ALLOW = "allow"
    DENY = "deny"
    CHALLENGE = "challenge"
    STEP_UP = "step_up"


class ResourceType(str, enum.Enum):
    EMPLOYEE_DATA = "employee_data"
    COMPLIANCE_DATA = "compliance_data"
    FINANCIAL_DATA = "financial_data"
    CONTRACT_DATA = "contract_data"
    AUDIT_DATA = "audit_data"
    SYSTEM_CONFIG = "system_config"
    API_ENDPOINT = "api_endpoint"
    AGENT_TASK = "agent_task"


class ClassificationLevel(str, enum.Enum):
    """
    Data classification tiers, least to most restrictive.

    CUI (Controlled Unclassified Information) tiers require heightened
    handling; CLASSIFIED_READY marks systems prepared for classified work.
    """
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    CUI = "cui"
    CUI_SPECIFIED = "cui_specified"
    CLASSIFIED_READY = "classified_ready"

    @property
    def rank(self) -> int:
        return list(ClassificationLevel).index(self)


class ActionType(str, enum.Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    EXECUTE = "execute"
    ADMIN = "admin"
    EXPORT = "export"
    SHARE = "share"


class NetworkType(str, enum.Enum):
    CORPORATE_VPN = "corporate_vpn"
    CORPORATE_NETWORK = "corporate_network"
    TRUSTED_NETWORK = "trusted_network"
    PUBLIC_NETWORK = "public_network"
    TOR_EXIT = "tor_exit"  # anonymizing proxy exit node
    VPN_UNKNOWN = "vpn_unknown"


class RequiredActionType(str, enum.Enum):
    MFA_CHALLENGE = "mfa_challenge"
    MANAGER_APPROVAL = "manager_approval"
    JUSTIFICATION = "justification"
    TIME_LIMITED = "time_limited"


class MonitoringLevel(str, enum.Enum):
    """Session monitoring intensity, ordered ascending."""
    STANDARD = "standard"
    ENHANCED = "enhanced"
    FORENSIC = "forensic"

    @property
    def rank(self) -> int:
        return list(MonitoringLevel).index(self)


# ============================================================================
# Request Components
# ============================================================================

DEFAULT_ROLES: Tuple[str, ...] = ("viewer",)


@dataclass(frozen=True)
class Subject:
    """
    Identity attempting access.

    Built per request from authenticated session state and never
    persisted by the engine. An empty role set collapses to the minimal
    read-only ``viewer`` role.
    """
    user_id: str
    organization_id: str
    session_id: str
    roles: Tuple[str, ...]
    ip_address: str
    user_agent: str
    mfa_verified: bool
    last_authentication: datetime
    device_id: Optional[str] = None
    clearance_level: Optional[str] = None

    def __post_init__(self):
        raw = (self.roles,) if isinstance(self.roles, str) else (self.roles or ())
        roles = tuple(r.strip() for r in raw if r and r.strip())
        object.__setattr__(self, 'roles', roles or DEFAULT_ROLES)


@dataclass(frozen=True)
class Resource:
    """Target of the requested action."""
    resource_type: ResourceType
    resource_id: str
    classification: ClassificationLevel
    sensitivity_score: float
    organization_id: Optional[str] = None
    requires_cui: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'sensitivity_score', clamp_score(self.sensitivity_score))


@dataclass(frozen=True)
class Action:
    type: ActionType
    scope: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GeoLocation:
    country: str
    region: str
    city: str
    is_allowed_location: bool


@dataclass(frozen=True)
class ThreatIntelligence:
    """Threat-intelligence snapshot for the source address."""
    ip_reputation: float = 80.0
    known_bad_actor: bool = False
    recent_threats: Tuple[str, ...] = ()
    geo_risk: float = 10.0

    def __post_init__(self):
        object.__setattr__(self, 'ip_reputation', clamp_score(self.ip_reputation))
        object.__setattr__(self, 'geo_risk', clamp_score(self.geo_risk))
        object.__setattr__(self, 'recent_threats', tuple(self.recent_threats or ()))


@dataclass(frozen=True)
class ComplianceState:
    regulatory_compliant: bool = True
    assurance_level: int = 2
    audit_mode: bool = False
    grace_period_active: bool = False


@dataclass(frozen=True)
class EnvironmentContext:
    """Ambient conditions at request time."""
    timestamp: datetime
    network_type: NetworkType
    device_trust_score: float
    behavior_score: float
    threat_intelligence: ThreatIntelligence = field(default_factory=ThreatIntelligence)
    compliance_state: ComplianceState = field(default_factory=ComplianceState)
    geo_location: Optional[GeoLocation] = None

    def __post_init__(self):
        object.__setattr__(self, 'device_trust_score', clamp_score(self.device_trust_score))
        object.__setattr__(self, 'behavior_score', clamp_score(self.behavior_score))


# ============================================================================
# Decision Components
# ============================================================================

@dataclass(frozen=True)
class RequiredAction:
    type: RequiredActionType
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SessionConstraints:
    max_duration: int  # minutes
    reauthenticate_after: int  # minutes
    monitoring_level: MonitoringLevel
    restricted_actions: Tuple[ActionType, ...] = ()


@dataclass(frozen=True)
class AuditSubject:
    """Subject as stored in the audit trail: everything except the session id."""
    user_id: str
    organization_id: str
    roles: Tuple[str, ...]
    ip_address: str
    user_agent: str
    mfa_verified: bool
    last_authentication: datetime
    device_id: Optional[str] = None

    @classmethod
    def from_subject(cls, subject: Subject) -> 'AuditSubject':
        return cls(
            user_id=subject.user_id,
            organization_id=subject.organization_id,
            roles=subject.roles,
            ip_address=subject.ip_address,
            user_agent=subject.user_agent,
            mfa_verified=subject.mfa_verified,
            last_authentication=subject.last_authentication,
            device_id=subject.device_id,
        )


@dataclass(frozen=True)
class AuditRecord:
    """
    Immutable, append-only record of one access decision.

    Handed to the audit sink after the decision is made. Persistence
    failures never alter the record.
    """
    id: str
    timestamp: datetime
    subject: AuditSubject
    resource: Resource
    action: Action
    decision: AccessDecision
    risk_score: float
    policy_violations: Tuple[str, ...]
    environment: EnvironmentContext

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe rendering (enums as values, datetimes as ISO strings)."""
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class PolicyDecision:
    decision: AccessDecision
    trust_level: TrustLevel
    risk_score: float
    reasons: Tuple[str, ...]
    expires_at: datetime
    session_constraints: SessionConstraints
    required_actions: Tuple[RequiredAction, ...] = ()
    audit_record: Optional[AuditRecord] = None

    @property
    def is_allowed(self) -> bool:
        return self.decision == AccessDecision.ALLOW


def _jsonable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return value
