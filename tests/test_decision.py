"""
Tests for decision precedence, expiration and session constraints.
"""
from datetime import timedelta

import pytest

from zerotrust.core.decision import (
    ACCESS_GRANTED, ADDITIONAL_VERIFICATION, ELEVATED_RISK, POLICY_DENIED, RISK_EXCEEDS_THRESHOLD,
    build_decision,
)
from zerotrust.core.policy_engine import PolicyEvaluationResult
from zerotrust.core.session import (
    CUI_RESTRICTED_ACTIONS, calculate_expiration, determine_session_constraints, expiration_minutes,
)
from zerotrust.models.entities import (
    AccessDecision, ClassificationLevel, MonitoringLevel, RequiredAction, RequiredActionType,
    ResourceType, TrustLevel,
)
from zerotrust.scenarios.demo_data import make_resource

MFA = RequiredAction(RequiredActionType.MFA_CHALLENGE)
JUSTIFY = RequiredAction(RequiredActionType.JUSTIFICATION)


# ==== Precedence ====

def test_deny_wins_over_everything():
    result = PolicyEvaluationResult(
        violations=('Insufficient role permissions',),
        required_actions=(MFA,),
        should_deny=True,
        should_challenge=True,
    )
    outcome = build_decision(result, risk_score=10)
    assert outcome.decision == AccessDecision.DENY
    assert outcome.reasons == ('Insufficient role permissions',)
    assert outcome.required_actions == ()


def test_deny_without_violation_still_has_a_reason():
    outcome = build_decision(PolicyEvaluationResult(should_deny=True), risk_score=10)
    assert outcome.reasons == (POLICY_DENIED,)


def test_mfa_challenge_becomes_step_up():
    result = PolicyEvaluationResult(required_actions=(MFA,), should_challenge=True)
    outcome = build_decision(result, risk_score=95)
    assert outcome.decision == AccessDecision.STEP_UP
    assert outcome.reasons == (ADDITIONAL_VERIFICATION,)
    assert outcome.required_actions == (MFA,)


def test_other_follow_up_becomes_challenge():
    outcome = build_decision(PolicyEvaluationResult(required_actions=(JUSTIFY,)), risk_score=20)
    assert outcome.decision == AccessDecision.CHALLENGE
    assert outcome.required_actions == (JUSTIFY,)


@pytest.mark.parametrize("risk, decision, reason", [
    (80, AccessDecision.CHALLENGE, ELEVATED_RISK),
    (80.5, AccessDecision.DENY, RISK_EXCEEDS_THRESHOLD),
    (60, AccessDecision.ALLOW, ACCESS_GRANTED),
    (60.1, AccessDecision.CHALLENGE, ELEVATED_RISK),
    (0, AccessDecision.ALLOW, ACCESS_GRANTED),
])
def test_residual_risk_thresholds(risk, decision, reason):
    outcome = build_decision(PolicyEvaluationResult(), risk_score=risk)
    assert outcome.decision == decision
    assert outcome.reasons == (reason,)


def test_elevated_risk_challenge_asks_for_mfa():
    outcome = build_decision(PolicyEvaluationResult(), risk_score=70)
    assert outcome.required_actions == (MFA,)


def test_thresholds_are_configurable():
    outcome = build_decision(PolicyEvaluationResult(), risk_score=55, deny_threshold=50, challenge_threshold=40)
    assert outcome.decision == AccessDecision.DENY


# ==== Expiration ====

@pytest.mark.parametrize("trust, risk, minutes", [
    (TrustLevel.VERIFIED, 10, 60),
    (TrustLevel.HIGH, 10, 30),
    (TrustLevel.MEDIUM, 10, 15),
    (TrustLevel.LOW, 10, 5),
    (TrustLevel.UNTRUSTED, 10, 1),
    (TrustLevel.VERIFIED, 55, 30),
    (TrustLevel.VERIFIED, 75, 7.5),
    (TrustLevel.LOW, 75, 1),
])
def test_expiration_windows(trust, risk, minutes):
    assert expiration_minutes(trust, risk) == pytest.approx(minutes)


def test_expiration_is_relative_to_now(now):
    assert calculate_expiration(TrustLevel.HIGH, 10, now) == now + timedelta(minutes=30)


# ==== Session constraints ====

def test_baseline_constraints():
    constraints = determine_session_constraints(TrustLevel.VERIFIED, 10, make_resource())
    assert constraints.max_duration == 480
    assert constraints.reauthenticate_after == 60
    assert constraints.monitoring_level == MonitoringLevel.STANDARD
    assert constraints.restricted_actions == ()


@pytest.mark.parametrize("trust, risk, duration, reauth, monitoring", [
    (TrustLevel.LOW, 10, 60, 15, MonitoringLevel.ENHANCED),
    (TrustLevel.VERIFIED, 55, 480, 30, MonitoringLevel.ENHANCED),
    (TrustLevel.VERIFIED, 75, 480, 10, MonitoringLevel.FORENSIC),
    (TrustLevel.UNTRUSTED, 90, 60, 10, MonitoringLevel.FORENSIC),
])
def test_constraints_tighten(trust, risk, duration, reauth, monitoring):
    constraints = determine_session_constraints(trust, risk, make_resource())
    assert constraints.max_duration == duration
    assert constraints.reauthenticate_after == reauth
    assert constraints.monitoring_level == monitoring


def test_cui_restricts_actions_without_lowering_monitoring():
    cui = make_resource(ResourceType.COMPLIANCE_DATA, 80, ClassificationLevel.CUI, requires_cui=True)

    relaxed = determine_session_constraints(TrustLevel.VERIFIED, 10, cui)
    assert relaxed.monitoring_level == MonitoringLevel.ENHANCED
    assert relaxed.restricted_actions == CUI_RESTRICTED_ACTIONS

    risky = determine_session_constraints(TrustLevel.VERIFIED, 75, cui)
    assert risky.monitoring_level == MonitoringLevel.FORENSIC
