"""
External Lookup Ports
=====================

The engine consumes already-typed output from four collaborators:

- GeoLocator: source IP -> country/region/city + allowed flag
- DeviceTrustResolver: device id -> trust score [0, 100]
- BehaviorAnalyzer: subject -> behavioural normality score [0, 100]
- ThreatIntelProvider: source IP -> reputation / bad actor / geo risk

Each port is a ``typing.Protocol`` so production adapters (MaxMind, MDM
or EDR, UEBA, threat feeds) plug in without inheriting from anything.
The static implementations below return the neutral baselines used when
no real service is wired in.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol, Tuple

from ..config import ZeroTrustSettings
from ..models.entities import GeoLocation, Subject, ThreatIntelligence, clamp_score


class GeoLocator(Protocol):
    def locate(self, ip_address: str) -> Optional[GeoLocation]:
        ...


class DeviceTrustResolver(Protocol):
    def assess(self, device_id: Optional[str]) -> 'DeviceTrustAssessment':
        ...


class BehaviorAnalyzer(Protocol):
    def score(self, subject: Subject) -> float:
        ...


class ThreatIntelProvider(Protocol):
    def lookup(self, ip_address: str) -> ThreatIntelligence:
        ...


# ============================================================================
# Device Trust
# ============================================================================

@dataclass(frozen=True)
class DevicePosture:
    """Endpoint posture as reported by MDM/EDR."""
    enrolled: bool = True
    compliant: bool = True
    encrypted: bool = True
    patch_level: str = 'current'  # current, behind, critical
    malware_protection: bool = True
    screen_lock: bool = True
    jailbroken: bool = False


@dataclass(frozen=True)
class DeviceTrustAssessment:
    device_id: Optional[str]
    trust_score: float
    last_assessment: datetime
    posture: Optional[DevicePosture] = None
    risk_indicators: Tuple[str, ...] = field(default_factory=tuple)


# Points deducted from a perfect score per failed posture check
POSTURE_PENALTIES = {
    'not_enrolled': 30,
    'non_compliant': 20,
    'unencrypted': 20,
    'patches_behind': 10,
    'patches_critical': 25,
    'no_malware_protection': 15,
    'no_screen_lock': 5,
    'jailbroken': 60,
}


def score_device_posture(posture: DevicePosture) -> Tuple[float, Tuple[str, ...]]:
    """
    Score an endpoint from its posture factors.

    Returns:
        Tuple of (trust score in [0, 100], risk indicators)
    """
    indicators = []
    if not posture.enrolled:
        indicators.append('not_enrolled')
    if not posture.compliant:
        indicators.append('non_compliant')
    if not posture.encrypted:
        indicators.append('unencrypted')
    if posture.patch_level == 'behind':
        indicators.append('patches_behind')
    elif posture.patch_level == 'critical':
        indicators.append('patches_critical')
    if not posture.malware_protection:
        indicators.append('no_malware_protection')
    if not posture.screen_lock:
        indicators.append('no_screen_lock')
    if posture.jailbroken:
        indicators.append('jailbroken')

    score = 100 - sum(POSTURE_PENALTIES[i] for i in indicators)
    return clamp_score(score), tuple(indicators)


class StaticDeviceTrustResolver:
    """
    Baseline device trust: unknown devices score low, known devices get a
    fixed score unless a posture report is registered for them.
    """

    def __init__(self, settings: ZeroTrustSettings, postures: Optional[dict] = None):
        self.unknown_score = settings.unknown_device_trust_score
        self.known_score = settings.known_device_trust_score
        self.postures = dict(postures or {})

    def assess(self, device_id: Optional[str]) -> DeviceTrustAssessment:
        now = datetime.now(timezone.utc)
        if not device_id:
            return DeviceTrustAssessment(
                device_id=None,
                trust_score=self.unknown_score,
                last_assessment=now,
                risk_indicators=('unknown_device',),
            )

        posture = self.postures.get(device_id)
        if posture is None:
            return DeviceTrustAssessment(device_id, self.known_score, now)

        score, indicators = score_device_posture(posture)
        return DeviceTrustAssessment(device_id, score, now, posture, indicators)


# ============================================================================
# Geolocation, Behaviour, Threat Intelligence
# ============================================================================

class CountryListGeoLocator:
    """
    Resolves every address to a fixed country and applies the configured
    allow/block lists. Replace with a GeoIP-backed locator in production.
    """

    def __init__(self, settings: ZeroTrustSettings, country: Optional[str] = None):
        self.settings = settings
        self.country = (country or settings.default_country).upper()

    def locate(self, ip_address: str) -> Optional[GeoLocation]:
        return GeoLocation(
            country=self.country,
            region='Unknown',
            city='Unknown',
            is_allowed_location=self.settings.is_allowed_country(self.country),
        )


class StaticBehaviorAnalyzer:
    """Reports normal behaviour for every subject."""

    def __init__(self, settings: ZeroTrustSettings):
        self.default_score = settings.default_behavior_score

    def score(self, subject: Subject) -> float:
        return self.default_score


class NeutralThreatIntelProvider:
    """Neutral reputation for every address (also the fallback when a feed is down)."""

    def lookup(self, ip_address: str) -> ThreatIntelligence:
        return ThreatIntelligence()
