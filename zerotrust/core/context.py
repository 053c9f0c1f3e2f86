"""
Context Builders
================

Turn raw request attributes (method, path, headers, cookies, query
string) into the typed Subject, Resource, Action and EnvironmentContext
values the engine evaluates.

The transport layer owns the request; these functions only read the
attributes it hands over. Lookups (geo, device, behaviour, threat) go
through the injected ports. A lookup that raises is replaced by its
neutral default, so a flaky feed degrades the signal instead of failing
the evaluation.
"""

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Optional, Tuple

from ..config import FALLBACK_RESOURCE_PROFILE, ZeroTrustSettings
from ..models.entities import (
    Action, ActionType, ComplianceState, EnvironmentContext, GeoLocation, NetworkType,
    Resource, Subject, ThreatIntelligence,
)
from ..exceptions import ContextBuildError
from ..observability import get_logger
from .lookups import (
    BehaviorAnalyzer, CountryListGeoLocator, DeviceTrustResolver, GeoLocator,
    NeutralThreatIntelProvider, StaticBehaviorAnalyzer, StaticDeviceTrustResolver,
    ThreatIntelProvider,
)

logger = get_logger(__name__)

METHOD_ACTIONS = {
    'GET': ActionType.READ,
    'HEAD': ActionType.READ,
    'OPTIONS': ActionType.READ,
    'POST': ActionType.WRITE,
    'PUT': ActionType.WRITE,
    'PATCH': ActionType.WRITE,
    'DELETE': ActionType.DELETE,
}


@dataclass(frozen=True)
class RequestAttributes:
    """Everything the transport layer extracted from an inbound request."""
    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    remote_address: Optional[str] = None
    last_authentication: Optional[datetime] = None

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class EvaluationContext:
    subject: Subject
    resource: Resource
    action: Action
    environment: EnvironmentContext


def ensure_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware clock readings."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def parse_roles(header_value: Optional[str]) -> Tuple[str, ...]:
    if not header_value:
        return ('viewer',)
    return tuple(r.strip() for r in header_value.split(',') if r.strip())


def get_client_ip(request: RequestAttributes) -> str:
    forwarded = request.header('x-forwarded-for')
    if forwarded:
        return forwarded.split(',')[0].strip()
    real_ip = request.header('x-real-ip')
    if real_ip:
        return real_ip.strip()
    return request.remote_address or '0.0.0.0'


def build_subject(request: RequestAttributes, now: datetime) -> Subject:
    """Build the Subject from identity headers and the session cookie."""
    session_id = request.cookies.get('session') or f"anon-{int(now.timestamp() * 1000)}"
    return Subject(
        user_id=request.header('x-user-id') or 'anonymous',
        organization_id=request.header('x-org-id') or 'unknown',
        session_id=session_id,
        roles=parse_roles(request.header('x-user-roles')),
        device_id=request.header('x-device-id') or None,
        ip_address=get_client_ip(request),
        user_agent=request.header('user-agent') or 'unknown',
        mfa_verified=(request.header('x-mfa-verified') or '').lower() == 'true',
        last_authentication=ensure_utc(request.last_authentication or now),
    )


def identify_resource(request: RequestAttributes, settings: ZeroTrustSettings) -> Resource:
    """
    Classify the request path with a longest-prefix match against the
    configured resource table. Unknown paths are treated as public.
    """
    path = request.path.split('?', 1)[0]
    profile = FALLBACK_RESOURCE_PROFILE
    matched = ''
    for prefix, candidate in settings.resource_profiles.items():
        if path.startswith(prefix) and len(prefix) > len(matched):
            profile = candidate
            matched = prefix

    parts = path.split('/')
    resource_id = parts[3] if len(parts) > 3 and parts[3] else 'collection'

    return Resource(
        resource_type=profile.resource_type,
        resource_id=resource_id,
        classification=profile.classification,
        sensitivity_score=profile.sensitivity,
        organization_id=request.query.get('orgId') or None,
        requires_cui=profile.cui,
    )


def determine_action(request: RequestAttributes) -> Action:
    if request.query.get('export') == 'true':
        return Action(type=ActionType.EXPORT, scope='data')
    if request.query.get('share') == 'true':
        return Action(type=ActionType.SHARE, scope='external')
    return Action(type=METHOD_ACTIONS.get(request.method.upper(), ActionType.READ))


def _in_networks(ip: str, cidrs: Iterable[str]) -> bool:
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    for cidr in cidrs:
        try:
            if address in ipaddress.ip_network(cidr, strict=False):
                return True
        except ValueError:
            logger.warning("config.invalid_cidr", cidr=cidr)
    return False


def classify_network(request: RequestAttributes, ip: str, settings: ZeroTrustSettings) -> NetworkType:
    if (request.header('x-vpn-verified') or '').lower() == 'true':
        return NetworkType.CORPORATE_VPN
    if (request.header('x-corporate-network') or '').lower() == 'true':
        return NetworkType.CORPORATE_NETWORK
    if _in_networks(ip, settings.corporate_networks):
        return NetworkType.CORPORATE_NETWORK
    if ip in settings.anonymizer_exit_addresses:
        return NetworkType.TOR_EXIT
    if _in_networks(ip, settings.trusted_networks):
        return NetworkType.TRUSTED_NETWORK
    return NetworkType.PUBLIC_NETWORK


class RequestContextBuilder:
    """
    Builds an EvaluationContext from RequestAttributes using the
    configured lookup ports.
    """

    def __init__(
        self,
        settings: ZeroTrustSettings,
        geo_locator: Optional[GeoLocator] = None,
        device_resolver: Optional[DeviceTrustResolver] = None,
        behavior_analyzer: Optional[BehaviorAnalyzer] = None,
        threat_intel: Optional[ThreatIntelProvider] = None,
    ):
        self.settings = settings
        self.geo_locator = geo_locator or CountryListGeoLocator(settings)
        self.device_resolver = device_resolver or StaticDeviceTrustResolver(settings)
        self.behavior_analyzer = behavior_analyzer or StaticBehaviorAnalyzer(settings)
        self.threat_intel = threat_intel or NeutralThreatIntelProvider()

    def build(self, request: RequestAttributes, now: datetime) -> EvaluationContext:
        """
        Raises:
            ContextBuildError: The request attributes are malformed
        """
        try:
            subject = build_subject(request, now)
            resource = identify_resource(request, self.settings)
            action = determine_action(request)
        except (AttributeError, TypeError, ValueError) as exc:
            raise ContextBuildError(f"Cannot build context for {request.method} {request.path}: {exc}") from exc
        return EvaluationContext(
            subject=subject,
            resource=resource,
            action=action,
            environment=self.build_environment(request, subject, now),
        )

    def build_environment(
        self,
        request: RequestAttributes,
        subject: Subject,
        now: datetime,
    ) -> EnvironmentContext:
        ip = subject.ip_address
        geo = self._safe('geo', lambda: self.geo_locator.locate(ip), None, (GeoLocation,))
        device = self._safe(
            'device',
            lambda: self.device_resolver.assess(subject.device_id).trust_score,
            self.settings.unknown_device_trust_score,
            (int, float),
        )
        behavior = self._safe(
            'behavior',
            lambda: self.behavior_analyzer.score(subject),
            self.settings.default_behavior_score,
            (int, float),
        )
        threat = self._safe(
            'threat_intel', lambda: self.threat_intel.lookup(ip), ThreatIntelligence(), (ThreatIntelligence,)
        )

        return EnvironmentContext(
            timestamp=now,
            geo_location=geo,
            network_type=classify_network(request, ip, self.settings),
            device_trust_score=device,
            behavior_score=behavior,
            threat_intelligence=threat,
            compliance_state=ComplianceState(),
        )

    def _safe(self, lookup: str, call: Callable, default, expected: Tuple[type, ...]):
        """Run a lookup; errors, ``None`` and results of the wrong type yield ``default``."""
        try:
            result = call()
        except Exception as exc:
            logger.warning("lookup.failed", lookup=lookup, error=str(exc))
            return default
        if isinstance(result, expected) and not isinstance(result, bool):
            return result
        if result is not None:
            logger.warning("lookup.invalid_result", lookup=lookup, result_type=type(result).__name__)
        return default
