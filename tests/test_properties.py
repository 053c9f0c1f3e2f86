"""
Property-based tests for the decision engine.

Randomized requests run through ``ZeroTrustEngine.evaluate`` and the
decision invariants must hold for every one of them.
"""
from datetime import timedelta

from hypothesis import HealthCheck, given, settings, strategies as st

from zerotrust.config import ZeroTrustSettings
from zerotrust.core.audit import AuditLogger, InMemoryAuditSink
from zerotrust.core.engine import ZeroTrustEngine
from zerotrust.core.rbac_engine import RBACEngine
from zerotrust.core.session import (
    BASE_EXPIRATION_MINUTES, determine_session_constraints, expiration_minutes,
)
from zerotrust.models.entities import (
    AccessDecision, Action, ActionType, ClassificationLevel, EnvironmentContext, GeoLocation,
    MonitoringLevel, NetworkType, Resource, ResourceType, Subject, ThreatIntelligence, TrustLevel,
)
from zerotrust.scenarios.demo_data import DEMO_NOW

common_settings = settings(
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

ORGANIZATIONS = ('org-acme', 'org-globex')

scores = st.floats(min_value=0, max_value=100, allow_nan=False)
roles = st.lists(
    st.sampled_from(RBACEngine().known_roles() + ('contractor',)), max_size=3, unique=True
).map(tuple)

subjects = st.builds(
    Subject,
    user_id=st.sampled_from(('jsmith', 'mgarcia', 'svc-batch')),
    organization_id=st.sampled_from(ORGANIZATIONS),
    session_id=st.just('sess-1'),
    roles=roles,
    ip_address=st.sampled_from(('10.20.0.15', '203.0.113.7', '198.51.100.23')),
    user_agent=st.just('Mozilla/5.0'),
    mfa_verified=st.booleans(),
    last_authentication=st.integers(min_value=0, max_value=600).map(
        lambda minutes: DEMO_NOW - timedelta(minutes=minutes)
    ),
    device_id=st.one_of(st.none(), st.just('LAPTOP-0042')),
)

resources = st.builds(
    Resource,
    resource_type=st.sampled_from(ResourceType),
    resource_id=st.just('collection'),
    classification=st.sampled_from(ClassificationLevel),
    sensitivity_score=scores,
    organization_id=st.one_of(st.none(), st.sampled_from(ORGANIZATIONS)),
    requires_cui=st.booleans(),
)

actions = st.builds(Action, type=st.sampled_from(ActionType))

geo_locations = st.one_of(
    st.none(),
    st.builds(
        GeoLocation,
        country=st.sampled_from(('US', 'CA', 'RU')),
        region=st.just('Unknown'),
        city=st.just('Unknown'),
        is_allowed_location=st.booleans(),
    ),
)

environments = st.builds(
    EnvironmentContext,
    timestamp=st.just(DEMO_NOW),
    network_type=st.sampled_from(NetworkType),
    device_trust_score=scores,
    behavior_score=scores,
    threat_intelligence=st.builds(
        ThreatIntelligence,
        ip_reputation=scores,
        known_bad_actor=st.booleans(),
        recent_threats=st.lists(st.sampled_from(('botnet', 'scanner')), max_size=2).map(tuple),
        geo_risk=scores,
    ),
    geo_location=geo_locations,
)

requests = st.tuples(subjects, resources, actions, environments)


def make_engine():
    return ZeroTrustEngine(
        settings=ZeroTrustSettings(business_timezone="UTC", _env_file=None),
        audit_logger=AuditLogger(sinks=[InMemoryAuditSink()], async_writes=False),
        clock=lambda: DEMO_NOW,
    )


ENGINE = make_engine()


def evaluate(access_request):
    subject, resource, action, environment = access_request
    return ENGINE.evaluate(subject, resource, action, environment)


# ==== Engine invariants ====

@common_settings
@given(requests)
def test_risk_score_stays_in_range(access_request):
    decision = evaluate(access_request)
    assert 0 <= decision.risk_score <= 100
    assert decision.audit_record.risk_score == decision.risk_score


@common_settings
@given(requests)
def test_known_bad_actor_is_always_denied(access_request):
    subject, resource, action, environment = access_request
    environment = EnvironmentContext(
        timestamp=environment.timestamp,
        network_type=environment.network_type,
        device_trust_score=environment.device_trust_score,
        behavior_score=environment.behavior_score,
        threat_intelligence=ThreatIntelligence(
            ip_reputation=environment.threat_intelligence.ip_reputation,
            known_bad_actor=True,
            geo_risk=environment.threat_intelligence.geo_risk,
        ),
        geo_location=environment.geo_location,
    )
    decision = evaluate((subject, resource, action, environment))
    assert decision.decision == AccessDecision.DENY
    assert 'Access blocked: known threat actor' in decision.reasons


@common_settings
@given(requests)
def test_cui_below_high_trust_is_never_allowed(access_request):
    decision = evaluate(access_request)
    resource = access_request[1]
    if resource.requires_cui and decision.trust_level.rank <= TrustLevel.MEDIUM.rank:
        assert decision.decision == AccessDecision.DENY


@common_settings
@given(requests)
def test_cui_is_allowed_only_at_verified_trust(access_request):
    decision = evaluate(access_request)
    if access_request[1].requires_cui and decision.decision == AccessDecision.ALLOW:
        assert decision.trust_level == TrustLevel.VERIFIED


@common_settings
@given(subjects, resources, environments)
def test_admin_action_below_high_trust_is_denied(subject, resource, environment):
    decision = evaluate((subject, resource, Action(ActionType.ADMIN), environment))
    if decision.trust_level.rank < TrustLevel.HIGH.rank:
        assert decision.decision == AccessDecision.DENY


@common_settings
@given(requests)
def test_cross_organization_access_is_denied(access_request):
    subject, resource, _, _ = access_request
    decision = evaluate(access_request)
    if resource.organization_id and resource.organization_id != subject.organization_id:
        assert decision.decision == AccessDecision.DENY
        assert 'Cross-organization access denied' in decision.reasons


@common_settings
@given(requests)
def test_allow_never_exceeds_challenge_threshold(access_request):
    decision = evaluate(access_request)
    if decision.decision == AccessDecision.ALLOW:
        assert decision.risk_score <= ENGINE.settings.challenge_risk_threshold


@common_settings
@given(requests)
def test_expiry_and_monitoring_follow_the_decision(access_request):
    decision = evaluate(access_request)
    window = decision.expires_at - DEMO_NOW
    assert timedelta(minutes=1) <= window <= timedelta(minutes=BASE_EXPIRATION_MINUTES[decision.trust_level])
    if decision.risk_score > 70:
        assert decision.session_constraints.monitoring_level == MonitoringLevel.FORENSIC


@common_settings
@given(requests)
def test_evaluation_is_deterministic(access_request):
    first = evaluate(access_request)
    second = make_engine().evaluate(*access_request)
    assert first.decision == second.decision
    assert first.trust_level == second.trust_level
    assert first.risk_score == second.risk_score
    assert first.reasons == second.reasons
    assert first.required_actions == second.required_actions
    assert first.expires_at == second.expires_at
    assert first.session_constraints == second.session_constraints


# ==== Session monotonicity ====

@common_settings
@given(st.sampled_from(TrustLevel), resources, scores, scores)
def test_monitoring_never_drops_as_risk_rises(trust_level, resource, risk_a, risk_b):
    low, high = sorted((risk_a, risk_b))
    calm = determine_session_constraints(trust_level, low, resource)
    tense = determine_session_constraints(trust_level, high, resource)
    assert tense.monitoring_level.rank >= calm.monitoring_level.rank
    assert tense.reauthenticate_after <= calm.reauthenticate_after


@common_settings
@given(st.sampled_from(TrustLevel), scores, scores)
def test_expiry_never_grows_as_risk_rises(trust_level, risk_a, risk_b):
    low, high = sorted((risk_a, risk_b))
    assert expiration_minutes(trust_level, high) <= expiration_minutes(trust_level, low)
    assert expiration_minutes(trust_level, high) >= 1
