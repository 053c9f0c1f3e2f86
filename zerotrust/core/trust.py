"""
Trust classification.

Trust is derived fresh on every request from authentication strength,
device and network posture, behaviour, and the request's risk score. It
is never cached or carried between requests.
"""

from datetime import datetime

from ..config import ZeroTrustSettings
from ..models.entities import EnvironmentContext, NetworkType, Subject, TrustLevel
from .risk import is_session_stale

NETWORK_TRUST = {
    NetworkType.CORPORATE_VPN: 15,
    NetworkType.CORPORATE_NETWORK: 20,
}

# (minimum points, level), checked top-down
TRUST_THRESHOLDS = (
    (80, TrustLevel.VERIFIED),
    (60, TrustLevel.HIGH),
    (40, TrustLevel.MEDIUM),
    (20, TrustLevel.LOW),
)


def calculate_trust_points(
    subject: Subject,
    environment: EnvironmentContext,
    risk_score: float,
    now: datetime,
    settings: ZeroTrustSettings,
) -> float:
    points = 0.0

    # Authentication factors
    if subject.mfa_verified:
        points += 30
    if not is_session_stale(subject, now, settings):
        points += 20

    points += environment.device_trust_score * 0.2
    points += NETWORK_TRUST.get(environment.network_type, 0)
    points += environment.behavior_score * 0.15

    # Risk penalty
    points -= risk_score * 0.3
    return points


def determine_trust_level(
    subject: Subject,
    environment: EnvironmentContext,
    risk_score: float,
    now: datetime,
    settings: ZeroTrustSettings,
) -> TrustLevel:
    points = calculate_trust_points(subject, environment, risk_score, now, settings)
    for minimum, level in TRUST_THRESHOLDS:
        if points >= minimum:
            return level
    return TrustLevel.UNTRUSTED
