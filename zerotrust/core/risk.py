"""
Risk Scoring
============

Composite risk estimate for a single access attempt.

Additive weighted model over four factor groups:
- Subject: MFA status, session freshness, device presence
- Resource: sensitivity, CUI handling, restrictive classification
- Action: fixed weight per operation type
- Environment: network, device trust, threat intel, behaviour, geography

The result is clamped to [0, 100]. The function is pure: identical inputs
and an identical ``now`` always give the same score.
"""

from datetime import datetime, timedelta

from ..config import ZeroTrustSettings
from ..models.entities import Action, ActionType, EnvironmentContext, NetworkType, Resource, Subject
from .context import ensure_utc

ACTION_RISK = {
    ActionType.READ: 5,
    ActionType.WRITE: 15,
    ActionType.DELETE: 25,
    ActionType.EXECUTE: 20,
    ActionType.ADMIN: 30,
    ActionType.EXPORT: 25,
    ActionType.SHARE: 20,
}
UNKNOWN_ACTION_RISK = 10

NETWORK_RISK = {
    NetworkType.PUBLIC_NETWORK: 15,
    NetworkType.TOR_EXIT: 40,
}


def is_session_stale(subject: Subject, now: datetime, settings: ZeroTrustSettings) -> bool:
    """True when the last authentication is older than the staleness threshold."""
    age = ensure_utc(now) - ensure_utc(subject.last_authentication)
    return age > timedelta(minutes=settings.session_staleness_minutes)


def calculate_risk_score(
    subject: Subject,
    resource: Resource,
    action: Action,
    environment: EnvironmentContext,
    now: datetime,
    settings: ZeroTrustSettings,
) -> float:
    """
    Calculate composite risk score (0-100).

    Absent optional signals (no geolocation, empty threat list) add
    nothing; they are never treated as errors.
    """
    score = 0.0

    # Subject risk factors
    if not subject.mfa_verified:
        score += 25
    if is_session_stale(subject, now, settings):
        score += 15
    if not subject.device_id:
        score += 10

    # Resource sensitivity
    score += resource.sensitivity_score * 0.2
    if resource.requires_cui:
        score += 15
    if resource.classification in settings.restrictive_classifications:
        score += 20

    # Action risk
    score += ACTION_RISK.get(action.type, UNKNOWN_ACTION_RISK)

    # Environment risk
    score += NETWORK_RISK.get(environment.network_type, 0)
    if environment.device_trust_score < 50:
        score += 20
    threat = environment.threat_intelligence
    if threat.known_bad_actor:
        score += 50
    if threat.ip_reputation < 30:
        score += 15

    # Behavioral risk
    if environment.behavior_score < 50:
        score += 15

    # Geographic risk
    if environment.geo_location is not None and not environment.geo_location.is_allowed_location:
        score += 25
    score += threat.geo_risk * 0.1

    return min(100.0, max(0.0, score))
