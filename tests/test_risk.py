"""
Tests for risk scoring and trust classification.
"""
from datetime import timedelta

import pytest

from zerotrust.core.risk import calculate_risk_score, is_session_stale
from zerotrust.core.trust import calculate_trust_points, determine_trust_level
from zerotrust.models.entities import (
    Action, ActionType, ClassificationLevel, NetworkType, ResourceType, TrustLevel,
)
from zerotrust.scenarios.demo_data import make_environment, make_resource, make_subject


def score(settings, now, subject=None, resource=None, action=ActionType.READ, environment=None):
    return calculate_risk_score(
        subject or make_subject(),
        resource or make_resource(),
        Action(action),
        environment or make_environment(),
        now,
        settings,
    )


# ==== Risk ====

def test_low_risk_baseline(settings, now):
    # sensitivity 10 -> 2, read -> 5
    assert score(settings, now) == pytest.approx(7)


def test_subject_factors_add_up(settings, now):
    subject = make_subject(mfa_verified=False, fresh_session=False, device_id=None)
    assert score(settings, now, subject=subject) == pytest.approx(7 + 25 + 15 + 10)


@pytest.mark.parametrize("action, weight", [
    (ActionType.READ, 5),
    (ActionType.WRITE, 15),
    (ActionType.DELETE, 25),
    (ActionType.EXECUTE, 20),
    (ActionType.ADMIN, 30),
    (ActionType.EXPORT, 25),
    (ActionType.SHARE, 20),
])
def test_action_weights(settings, now, action, weight):
    assert score(settings, now, action=action) == pytest.approx(2 + weight)


def test_cui_and_restrictive_classification(settings, now):
    cui = make_resource(ResourceType.COMPLIANCE_DATA, 80, ClassificationLevel.CUI, requires_cui=True)
    assert score(settings, now, resource=cui) == pytest.approx(16 + 15 + 5)

    classified = make_resource(ResourceType.CONTRACT_DATA, 50, ClassificationLevel.CLASSIFIED_READY)
    assert score(settings, now, resource=classified) == pytest.approx(10 + 20 + 5)


def test_cui_specified_is_not_restrictive_by_default(settings, now):
    specified = make_resource(ResourceType.COMPLIANCE_DATA, 50, ClassificationLevel.CUI_SPECIFIED)
    assert score(settings, now, resource=specified) == pytest.approx(15)


def test_restrictive_classifications_are_configurable(now):
    from zerotrust.config import ZeroTrustSettings
    settings = ZeroTrustSettings(restrictive_classifications=[], _env_file=None)
    classified = make_resource(ResourceType.CONTRACT_DATA, 50, ClassificationLevel.CLASSIFIED_READY)
    assert score(settings, now, resource=classified) == pytest.approx(15)


def test_environment_factors(settings, now):
    environment = make_environment(
        network_type=NetworkType.PUBLIC_NETWORK,
        device_trust_score=40,
        behavior_score=30,
        ip_reputation=10,
        geo_risk=50,
        allowed_location=False,
    )
    # 7 + public 15 + device 20 + reputation 15 + behaviour 15 + location 25 + geo 5
    assert score(settings, now, environment=environment) == 100


def test_tor_exit_weighs_more_than_public(settings, now):
    public = score(settings, now, environment=make_environment(network_type=NetworkType.PUBLIC_NETWORK))
    tor = score(settings, now, environment=make_environment(network_type=NetworkType.TOR_EXIT))
    assert public == pytest.approx(22)
    assert tor == pytest.approx(47)


def test_score_is_clamped(settings, now):
    environment = make_environment(network_type=NetworkType.TOR_EXIT, known_bad_actor=True, device_trust_score=0)
    subject = make_subject(mfa_verified=False, fresh_session=False, device_id=None)
    assert score(settings, now, subject=subject, environment=environment) == 100


def test_absent_geolocation_adds_nothing(settings, now):
    assert score(settings, now, environment=make_environment(country=None)) == pytest.approx(7)


def test_session_staleness_threshold(settings, now):
    subject = make_subject()
    assert not is_session_stale(subject, now + timedelta(minutes=55), settings)
    assert is_session_stale(subject, now + timedelta(minutes=66), settings)


# ==== Trust ====

def test_trust_points_for_trusted_request(settings, now):
    points = calculate_trust_points(make_subject(), make_environment(), 7, now, settings)
    # 30 + 20 + 17 + 15 + 13.5 - 2.1
    assert points == pytest.approx(93.4)


@pytest.mark.parametrize("mfa, risk, expected", [
    (True, 7, TrustLevel.VERIFIED),
    (True, 60, TrustLevel.HIGH),
    (False, 40, TrustLevel.MEDIUM),
    (False, 90, TrustLevel.LOW),
])
def test_risk_penalty_lowers_trust(settings, now, mfa, risk, expected):
    subject = make_subject(mfa_verified=mfa)
    assert determine_trust_level(subject, make_environment(), risk, now, settings) == expected


def test_untrusted_without_any_factors(settings, now):
    subject = make_subject(mfa_verified=False, fresh_session=False, device_id=None)
    environment = make_environment(network_type=NetworkType.PUBLIC_NETWORK, device_trust_score=0, behavior_score=0)
    assert determine_trust_level(subject, environment, 100, now, settings) == TrustLevel.UNTRUSTED


def test_corporate_network_counts_more_than_vpn(settings, now):
    vpn = calculate_trust_points(make_subject(), make_environment(), 0, now, settings)
    lan = calculate_trust_points(
        make_subject(), make_environment(network_type=NetworkType.CORPORATE_NETWORK), 0, now, settings
    )
    assert lan - vpn == pytest.approx(5)


def test_cui_specified_can_be_made_restrictive(now):
    from zerotrust.config import ZeroTrustSettings
    settings = ZeroTrustSettings(
        restrictive_classifications=[ClassificationLevel.CUI_SPECIFIED, ClassificationLevel.CLASSIFIED_READY],
        _env_file=None,
    )
    specified = make_resource(ResourceType.COMPLIANCE_DATA, 50, ClassificationLevel.CUI_SPECIFIED)
    assert score(settings, now, resource=specified) == pytest.approx(35)
