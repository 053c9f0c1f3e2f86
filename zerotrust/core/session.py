"""
Session constraints and decision expiration.

Both are derived from the trust level and risk score of the evaluation
that granted access; neither is persisted by the engine.
"""

from datetime import datetime, timedelta

from ..models.entities import ActionType, MonitoringLevel, Resource, SessionConstraints, TrustLevel

BASE_EXPIRATION_MINUTES = {
    TrustLevel.VERIFIED: 60,
    TrustLevel.HIGH: 30,
    TrustLevel.MEDIUM: 15,
    TrustLevel.LOW: 5,
    TrustLevel.UNTRUSTED: 1,
}

BASELINE_MAX_DURATION = 480  # 8 hours
BASELINE_REAUTHENTICATE_AFTER = 60
CUI_RESTRICTED_ACTIONS = (ActionType.EXPORT, ActionType.SHARE, ActionType.DELETE)


def expiration_minutes(trust_level: TrustLevel, risk_score: float) -> float:
    """
    Minutes a decision stays valid. High risk halves the window, very high
    risk quarters the halved window; never below one minute.
    """
    minutes = float(BASE_EXPIRATION_MINUTES[trust_level])
    if risk_score > 50:
        minutes = max(1.0, minutes * 0.5)
    if risk_score > 70:
        minutes = max(1.0, minutes * 0.25)
    return minutes


def calculate_expiration(trust_level: TrustLevel, risk_score: float, now: datetime) -> datetime:
    return now + timedelta(minutes=expiration_minutes(trust_level, risk_score))


def _at_least(current: MonitoringLevel, floor: MonitoringLevel) -> MonitoringLevel:
    return floor if floor.rank > current.rank else current


def determine_session_constraints(
    trust_level: TrustLevel,
    risk_score: float,
    resource: Resource,
) -> SessionConstraints:
    """
    Derive session behaviour. Adjustments are cumulative and the most
    restrictive value wins per field, so monitoring never steps down.
    """
    max_duration = BASELINE_MAX_DURATION
    reauthenticate_after = BASELINE_REAUTHENTICATE_AFTER
    monitoring = MonitoringLevel.STANDARD
    restricted = ()

    if trust_level in (TrustLevel.LOW, TrustLevel.UNTRUSTED):
        max_duration = min(max_duration, 60)
        reauthenticate_after = min(reauthenticate_after, 15)
        monitoring = _at_least(monitoring, MonitoringLevel.ENHANCED)

    if risk_score > 50:
        monitoring = _at_least(monitoring, MonitoringLevel.ENHANCED)
        reauthenticate_after = min(reauthenticate_after, 30)

    if risk_score > 70:
        monitoring = _at_least(monitoring, MonitoringLevel.FORENSIC)
        reauthenticate_after = min(reauthenticate_after, 10)

    if resource.requires_cui:
        monitoring = _at_least(monitoring, MonitoringLevel.ENHANCED)
        restricted = CUI_RESTRICTED_ACTIONS

    return SessionConstraints(
        max_duration=max_duration,
        reauthenticate_after=reauthenticate_after,
        monitoring_level=monitoring,
        restricted_actions=restricted,
    )


# Applied when an evaluation fails and the request is denied fail-closed
LOCKDOWN_CONSTRAINTS = SessionConstraints(
    max_duration=0,
    reauthenticate_after=0,
    monitoring_level=MonitoringLevel.FORENSIC,
    restricted_actions=tuple(ActionType),
)
