"""
Policy Evaluation Engine
========================

Policy Decision Point (PDP) rule set for zero trust evaluation.

Each policy is an independent rule object that inspects the evaluation
context and returns a small RuleOutcome (violation, required follow-up,
deny flag, challenge flag) or None when it does not apply. The
evaluator runs the rules in a fixed order and folds their outcomes into
one PolicyEvaluationResult.

Rule order only affects the order in which reasons accumulate. Final
precedence (deny over challenge over allow) is applied afterwards by the
decision builder.

Key Concepts (XACML terminology):
- Subject: The entity requesting access
- Resource: The entity being accessed
- Action: The operation being performed
- Environment: Contextual conditions (network, location, threat)

Reference: NIST SP 800-207 (Zero Trust Architecture)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from ..config import ZeroTrustSettings
from ..models.entities import (
    Action, ActionType, EnvironmentContext, RequiredAction, RequiredActionType,
    Resource, Subject, TrustLevel,
)
from .rbac_engine import RBACEngine


@dataclass(frozen=True)
class PolicyEvaluationContext:
    """All inputs a rule may inspect, plus the request's clock reading."""
    subject: Subject
    resource: Resource
    action: Action
    environment: EnvironmentContext
    trust_level: TrustLevel
    now: datetime
    settings: ZeroTrustSettings


@dataclass(frozen=True)
class RuleOutcome:
    violation: Optional[str] = None
    required_action: Optional[RequiredActionType] = None
    deny: bool = False
    challenge: bool = False


@dataclass(frozen=True)
class PolicyEvaluationResult:
    violations: Tuple[str, ...] = ()
    required_actions: Tuple[RequiredAction, ...] = ()
    should_deny: bool = False
    should_challenge: bool = False
    fired_rules: Tuple[str, ...] = ()

    def has_required_action(self, action_type: RequiredActionType) -> bool:
        return any(a.type == action_type for a in self.required_actions)


class PolicyRule:
    """Base class for policy rules."""

    name = 'policy'

    def evaluate(self, context: PolicyEvaluationContext) -> Optional[RuleOutcome]:
        raise NotImplementedError


class MfaForSensitiveResourceRule(PolicyRule):
    """MFA required for sensitive resources."""

    name = 'mfa_sensitive_resource'

    def __init__(self, sensitivity_threshold: float = 50):
        self.sensitivity_threshold = sensitivity_threshold

    def evaluate(self, context):
        if context.resource.sensitivity_score > self.sensitivity_threshold and not context.subject.mfa_verified:
            return RuleOutcome(
                violation='MFA required for sensitive resource access',
                required_action=RequiredActionType.MFA_CHALLENGE,
                challenge=True,
            )
        return None


class CuiTrustRule(PolicyRule):
    """
    CUI access requires verified trust. High trust may proceed after an
    MFA challenge; anything lower is denied.
    """

    name = 'cui_verified_trust'

    def evaluate(self, context):
        if not context.resource.requires_cui or context.trust_level == TrustLevel.VERIFIED:
            return None
        if context.trust_level == TrustLevel.HIGH:
            return RuleOutcome(required_action=RequiredActionType.MFA_CHALLENGE, challenge=True)
        return RuleOutcome(violation='CUI access requires verified trust level', deny=True)


class AdminTrustRule(PolicyRule):
    """Administrative actions need at least high trust."""

    name = 'admin_high_trust'

    def evaluate(self, context):
        if context.action.type == ActionType.ADMIN and context.trust_level.rank < TrustLevel.HIGH.rank:
            return RuleOutcome(violation='Administrative actions require high trust level', deny=True)
        return None


class ExportJustificationRule(PolicyRule):
    """Exporting or sharing sensitive data needs a business justification."""

    name = 'export_justification'

    def __init__(self, sensitivity_threshold: float = 30):
        self.sensitivity_threshold = sensitivity_threshold

    def evaluate(self, context):
        if (context.action.type in (ActionType.EXPORT, ActionType.SHARE)
                and context.resource.sensitivity_score > self.sensitivity_threshold):
            return RuleOutcome(required_action=RequiredActionType.JUSTIFICATION)
        return None


class DeleteApprovalRule(PolicyRule):
    """Deleting highly sensitive data needs manager approval."""

    name = 'delete_manager_approval'

    def __init__(self, sensitivity_threshold: float = 70):
        self.sensitivity_threshold = sensitivity_threshold

    def evaluate(self, context):
        if (context.action.type == ActionType.DELETE
                and context.resource.sensitivity_score > self.sensitivity_threshold):
            return RuleOutcome(required_action=RequiredActionType.MANAGER_APPROVAL)
        return None


class KnownBadActorRule(PolicyRule):
    """Sources flagged by threat intelligence are blocked."""

    name = 'known_bad_actor'

    def evaluate(self, context):
        if context.environment.threat_intelligence.known_bad_actor:
            return RuleOutcome(violation='Access blocked: known threat actor', deny=True)
        return None


class GeoRestrictionRule(PolicyRule):
    """Disallowed locations: CUI is denied outright, everything else is challenged."""

    name = 'geo_restriction'

    def evaluate(self, context):
        geo = context.environment.geo_location
        if geo is None or geo.is_allowed_location:
            return None
        if context.resource.requires_cui:
            return RuleOutcome(violation='CUI access restricted to approved locations', deny=True)
        return RuleOutcome(required_action=RequiredActionType.MFA_CHALLENGE, challenge=True)


class RoleBasedAccessRule(PolicyRule):
    """Some role must grant the action on the resource type."""

    name = 'role_based_access'

    def __init__(self, rbac: Optional[RBACEngine] = None):
        self.rbac = rbac or RBACEngine()

    def evaluate(self, context):
        if self.rbac.is_authorized(context.subject.roles, context.resource.resource_type, context.action.type):
            return None
        return RuleOutcome(violation='Insufficient role permissions', deny=True)


class OrganizationBoundaryRule(PolicyRule):
    """Resources owned by another organization are off limits."""

    name = 'organization_boundary'

    def evaluate(self, context):
        owner = context.resource.organization_id
        if owner and owner != context.subject.organization_id:
            return RuleOutcome(violation='Cross-organization access denied', deny=True)
        return None


class BusinessHoursAdminRule(PolicyRule):
    """Administrative actions outside business hours need a step-up challenge."""

    name = 'admin_business_hours'

    def evaluate(self, context):
        if context.action.type != ActionType.ADMIN:
            return None
        if is_outside_business_hours(context.now, context.settings):
            return RuleOutcome(
                violation='Administrative access outside business hours requires step-up',
                required_action=RequiredActionType.MFA_CHALLENGE,
                challenge=True,
            )
        return None


def is_outside_business_hours(now: datetime, settings: ZeroTrustSettings) -> bool:
    if settings.business_timezone:
        local = now.astimezone(ZoneInfo(settings.business_timezone))
    elif now.tzinfo is not None:
        local = now.astimezone()
    else:
        local = now
    return local.hour < settings.business_hours_start or local.hour > settings.business_hours_end


def default_rules(rbac: Optional[RBACEngine] = None) -> Tuple[PolicyRule, ...]:
    """The ten zero trust policies in evaluation order."""
    return (
        MfaForSensitiveResourceRule(),
        CuiTrustRule(),
        AdminTrustRule(),
        ExportJustificationRule(),
        DeleteApprovalRule(),
        KnownBadActorRule(),
        GeoRestrictionRule(),
        RoleBasedAccessRule(rbac),
        OrganizationBoundaryRule(),
        BusinessHoursAdminRule(),
    )


class PolicyEvaluator:
    """Runs an ordered rule set and folds the outcomes."""

    def __init__(self, rules: Optional[Sequence[PolicyRule]] = None):
        self.rules: Tuple[PolicyRule, ...] = tuple(rules) if rules is not None else default_rules()

    def evaluate(self, context: PolicyEvaluationContext) -> PolicyEvaluationResult:
        violations: List[str] = []
        required: List[RequiredAction] = []
        fired: List[str] = []
        should_deny = False
        should_challenge = False

        for rule in self.rules:
            outcome = rule.evaluate(context)
            if outcome is None:
                continue
            fired.append(rule.name)
            if outcome.violation:
                violations.append(outcome.violation)
            if outcome.required_action is not None:
                required.append(RequiredAction(type=outcome.required_action))
            should_deny = should_deny or outcome.deny
            should_challenge = should_challenge or outcome.challenge

        return PolicyEvaluationResult(
            violations=tuple(violations),
            required_actions=tuple(required),
            should_deny=should_deny,
            should_challenge=should_challenge,
            fired_rules=tuple(fired),
        )
