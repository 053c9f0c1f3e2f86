"""
Configuration Module
====================

Settings for the zero trust engine, loaded from environment variables
(prefix ``ZT_``) or a ``.env`` file through pydantic-settings.

Policy tables that the engine used to hard-code live here so they can be
changed per deployment without touching evaluation code:

- Allowed and blocked countries for geolocation checks
- Corporate, trusted and anonymizer network ranges
- The request-path to resource classification table

Settings are frozen once loaded, so a single instance can be shared by
every concurrent evaluation.
"""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.entities import ClassificationLevel, ResourceType


class ResourceProfile(BaseModel):
    """Classification applied to every request path under a prefix."""

    model_config = {"frozen": True}

    resource_type: ResourceType
    classification: ClassificationLevel
    sensitivity: float = Field(ge=0, le=100)
    cui: bool = False


# Five Eyes + NATO allies / OFAC and ITAR restricted
DEFAULT_ALLOWED_COUNTRIES = ['US', 'CA', 'GB', 'AU', 'NZ', 'DE', 'FR', 'JP']
DEFAULT_BLOCKED_COUNTRIES = ['KP', 'IR', 'CU', 'SY', 'RU', 'CN']

DEFAULT_RESOURCE_PROFILES: Dict[str, ResourceProfile] = {
    '/api/employees': ResourceProfile(
        resource_type=ResourceType.EMPLOYEE_DATA,
        classification=ClassificationLevel.CONFIDENTIAL,
        sensitivity=70,
    ),
    '/api/compliance': ResourceProfile(
        resource_type=ResourceType.COMPLIANCE_DATA,
        classification=ClassificationLevel.CUI,
        sensitivity=80,
        cui=True,
    ),
    '/api/agents': ResourceProfile(
        resource_type=ResourceType.AGENT_TASK,
        classification=ClassificationLevel.INTERNAL,
        sensitivity=50,
    ),
    '/api/hubzone': ResourceProfile(
        resource_type=ResourceType.API_ENDPOINT,
        classification=ClassificationLevel.PUBLIC,
        sensitivity=10,
    ),
    '/api/health': ResourceProfile(
        resource_type=ResourceType.API_ENDPOINT,
        classification=ClassificationLevel.PUBLIC,
        sensitivity=0,
    ),
}

# Unmapped paths fall back to the least sensitive classification
FALLBACK_RESOURCE_PROFILE = ResourceProfile(
    resource_type=ResourceType.API_ENDPOINT,
    classification=ClassificationLevel.PUBLIC,
    sensitivity=0,
)


class ZeroTrustSettings(BaseSettings):
    """Engine, audit and logging settings."""

    model_config = SettingsConfigDict(
        env_prefix="ZT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Persistence
    database_url: str = Field(default="sqlite:///zero_trust_audit.db", description="Audit database URL")
    audit_async: bool = Field(default=True, description="Write audit records off the request path")
    audit_workers: int = Field(default=2, ge=1, description="Audit writer threads")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="console or json")

    # Session freshness and business hours
    session_staleness_minutes: int = Field(default=60, ge=1)
    business_hours_start: int = Field(default=6, ge=0, le=23)
    business_hours_end: int = Field(default=22, ge=0, le=23)
    business_timezone: Optional[str] = Field(
        default=None, description="IANA zone for business hours; system local time when unset"
    )

    # Decision thresholds
    deny_risk_threshold: float = Field(default=80, ge=0, le=100)
    challenge_risk_threshold: float = Field(default=60, ge=0, le=100)
    restrictive_classifications: List[ClassificationLevel] = Field(
        default=[ClassificationLevel.CLASSIFIED_READY],
        description="Classifications adding restrictive-tier risk; add cui_specified to also weight specified CUI",
    )

    # Geolocation
    allowed_countries: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_COUNTRIES))
    blocked_countries: List[str] = Field(default_factory=lambda: list(DEFAULT_BLOCKED_COUNTRIES))
    default_country: str = Field(default="US", description="Country assumed when no geo lookup is wired")

    # Network classification
    corporate_networks: List[str] = Field(default_factory=list, description="CIDRs of the corporate LAN")
    trusted_networks: List[str] = Field(default_factory=list, description="CIDRs of partner networks")
    anonymizer_exit_addresses: List[str] = Field(default_factory=list, description="Known Tor/proxy exits")

    # Lookup defaults
    unknown_device_trust_score: float = Field(default=30, ge=0, le=100)
    known_device_trust_score: float = Field(default=70, ge=0, le=100)
    default_behavior_score: float = Field(default=80, ge=0, le=100)

    resource_profiles: Dict[str, ResourceProfile] = Field(
        default_factory=lambda: dict(DEFAULT_RESOURCE_PROFILES)
    )

    def is_allowed_country(self, country: str) -> bool:
        code = (country or '').upper()
        return code in self.allowed_countries and code not in self.blocked_countries

    def get_logging_config(self) -> Dict[str, str]:
        return {"level": self.log_level, "format_type": self.log_format}


@lru_cache()
def get_settings() -> ZeroTrustSettings:
    """Get cached settings instance."""
    return ZeroTrustSettings()
