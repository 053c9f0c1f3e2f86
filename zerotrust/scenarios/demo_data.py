"""
Demo Data
=========

Builders for realistic evaluation inputs plus a catalogue of named
scenarios with the decision each one should produce.

Models a regulated contractor environment with:

- Corporate VPN, partner and public networks
- Employee, compliance (CUI), contract and system resources
- Admin, compliance officer, analyst and viewer roles

Every scenario runs against a fixed clock so the expected decisions are
reproducible.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..models.entities import (
    AccessDecision, Action, ActionType, ClassificationLevel, EnvironmentContext,
    GeoLocation, NetworkType, Resource, ResourceType, Subject, ThreatIntelligence,
)

# Monday 2 June 2025, 14:00 UTC: inside business hours
DEMO_NOW = datetime(2025, 6, 2, 14, 0, tzinfo=timezone.utc)
DEMO_LATE = DEMO_NOW.replace(hour=23, minute=30)


def make_subject(
    roles: Sequence[str] = ('analyst',),
    mfa_verified: bool = True,
    fresh_session: bool = True,
    device_id: Optional[str] = 'LAPTOP-0042',
    organization_id: str = 'org-acme',
    user_id: str = 'jsmith',
    now: datetime = DEMO_NOW,
) -> Subject:
    last_auth = now - (timedelta(minutes=5) if fresh_session else timedelta(hours=3))
    return Subject(
        user_id=user_id,
        organization_id=organization_id,
        session_id=f'sess-{user_id}',
        roles=tuple(roles),
        device_id=device_id,
        ip_address='10.20.0.15',
        user_agent='Mozilla/5.0 (Windows NT 10.0; Win64; x64)',
        mfa_verified=mfa_verified,
        last_authentication=last_auth,
    )


def make_resource(
    resource_type: ResourceType = ResourceType.API_ENDPOINT,
    sensitivity: float = 10,
    classification: ClassificationLevel = ClassificationLevel.PUBLIC,
    requires_cui: bool = False,
    organization_id: Optional[str] = None,
    resource_id: str = 'collection',
) -> Resource:
    return Resource(
        resource_type=resource_type,
        resource_id=resource_id,
        classification=classification,
        sensitivity_score=sensitivity,
        organization_id=organization_id,
        requires_cui=requires_cui,
    )


def make_environment(
    network_type: NetworkType = NetworkType.CORPORATE_VPN,
    device_trust_score: float = 85,
    behavior_score: float = 90,
    ip_reputation: float = 90,
    known_bad_actor: bool = False,
    geo_risk: float = 0,
    country: Optional[str] = 'US',
    allowed_location: bool = True,
    now: datetime = DEMO_NOW,
) -> EnvironmentContext:
    geo = None
    if country is not None:
        geo = GeoLocation(country=country, region='Unknown', city='Unknown',
                          is_allowed_location=allowed_location)
    return EnvironmentContext(
        timestamp=now,
        network_type=network_type,
        device_trust_score=device_trust_score,
        behavior_score=behavior_score,
        threat_intelligence=ThreatIntelligence(
            ip_reputation=ip_reputation,
            known_bad_actor=known_bad_actor,
            geo_risk=geo_risk,
        ),
        geo_location=geo,
    )


def load_demo_scenarios() -> List[Dict[str, Any]]:
    """
    Named scenarios with their expected decisions.

    Each entry holds the four evaluation inputs, the accepted decisions,
    and optionally the UTC hour the engine clock should read.
    """
    return [
        {
            'name': 'trusted_read',
            'title': 'Corporate VPN, MFA, fresh session, public read',
            'subject': make_subject(),
            'resource': make_resource(),
            'action': Action(ActionType.READ),
            'environment': make_environment(),
            'expected': {AccessDecision.ALLOW},
        },
        {
            'name': 'missing_mfa',
            'title': 'No MFA on a sensitivity-60 employee record',
            'subject': make_subject(mfa_verified=False),
            'resource': make_resource(ResourceType.EMPLOYEE_DATA, 60, ClassificationLevel.CONFIDENTIAL),
            'action': Action(ActionType.READ),
            'environment': make_environment(),
            'expected': {AccessDecision.STEP_UP, AccessDecision.CHALLENGE},
        },
        {
            'name': 'cui_high_trust',
            'title': 'CUI compliance data at high (not verified) trust',
            'subject': make_subject(roles=('compliance_officer',)),
            'resource': make_resource(ResourceType.COMPLIANCE_DATA, 80, ClassificationLevel.CUI,
                                      requires_cui=True),
            'action': Action(ActionType.READ),
            'environment': make_environment(network_type=NetworkType.TRUSTED_NETWORK),
            'expected': {AccessDecision.STEP_UP},
        },
        {
            'name': 'viewer_delete',
            'title': 'Viewer tries to delete employee data',
            'subject': make_subject(roles=('viewer',)),
            'resource': make_resource(ResourceType.EMPLOYEE_DATA, 70, ClassificationLevel.CONFIDENTIAL),
            'action': Action(ActionType.DELETE),
            'environment': make_environment(),
            'expected': {AccessDecision.DENY},
        },
        {
            'name': 'residual_risk',
            'title': 'No policy fires but risk reaches 85',
            'subject': make_subject(mfa_verified=False, fresh_session=False, device_id=None),
            'resource': make_resource(ResourceType.CONTRACT_DATA, 50, ClassificationLevel.CLASSIFIED_READY),
            'action': Action(ActionType.READ),
            'environment': make_environment(network_type=NetworkType.TRUSTED_NETWORK,
                                            device_trust_score=70, country=None),
            'expected': {AccessDecision.DENY},
        },
        {
            'name': 'known_bad_actor',
            'title': 'Threat feed flags the source address',
            'subject': make_subject(roles=('admin',)),
            'resource': make_resource(),
            'action': Action(ActionType.READ),
            'environment': make_environment(known_bad_actor=True),
            'expected': {AccessDecision.DENY},
        },
        {
            'name': 'cross_org',
            'title': 'Contract owned by another organization',
            'subject': make_subject(),
            'resource': make_resource(ResourceType.CONTRACT_DATA, 20, ClassificationLevel.INTERNAL,
                                      organization_id='org-globex'),
            'action': Action(ActionType.READ),
            'environment': make_environment(),
            'expected': {AccessDecision.DENY},
        },
        {
            'name': 'export_justification',
            'title': 'Compliance officer exports audit data',
            'subject': make_subject(roles=('compliance_officer',)),
            'resource': make_resource(ResourceType.AUDIT_DATA, 40, ClassificationLevel.INTERNAL),
            'action': Action(ActionType.EXPORT, scope='data'),
            'environment': make_environment(),
            'expected': {AccessDecision.CHALLENGE},
        },
        {
            'name': 'admin_after_hours',
            'title': 'Administrator changes system config at 23:30',
            'subject': make_subject(roles=('admin',), now=DEMO_LATE),
            'resource': make_resource(ResourceType.SYSTEM_CONFIG, 40, ClassificationLevel.INTERNAL),
            'action': Action(ActionType.ADMIN),
            'environment': make_environment(now=DEMO_LATE),
            'expected': {AccessDecision.STEP_UP},
            'hour': 23,
        },
        {
            'name': 'tor_admin',
            'title': 'Admin action from a Tor exit on an unmanaged device',
            'subject': make_subject(roles=('admin',), device_id=None),
            'resource': make_resource(ResourceType.SYSTEM_CONFIG, 40, ClassificationLevel.INTERNAL),
            'action': Action(ActionType.ADMIN),
            'environment': make_environment(network_type=NetworkType.TOR_EXIT, device_trust_score=30,
                                            ip_reputation=20),
            'expected': {AccessDecision.DENY},
        },
    ]
