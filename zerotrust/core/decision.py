"""
Decision building.

Combines the folded policy result with the risk score. Precedence, first
match wins:

1. Any deny flag                      -> deny
2. Challenge flag or follow-up action -> step_up (MFA present) / challenge
3. Risk above the deny threshold      -> deny (residual fail-safe)
4. Risk above the challenge threshold -> challenge with MFA
5. Otherwise                          -> allow
"""

from dataclasses import dataclass
from typing import Tuple

from ..models.entities import AccessDecision, RequiredAction, RequiredActionType
from .policy_engine import PolicyEvaluationResult

ADDITIONAL_VERIFICATION = 'Additional verification required'
RISK_EXCEEDS_THRESHOLD = 'Risk score exceeds threshold'
ELEVATED_RISK = 'Elevated risk requires verification'
ACCESS_GRANTED = 'Access granted per policy'
POLICY_DENIED = 'Access denied by policy'


@dataclass(frozen=True)
class DecisionOutcome:
    decision: AccessDecision
    reasons: Tuple[str, ...]
    required_actions: Tuple[RequiredAction, ...] = ()


def build_decision(
    result: PolicyEvaluationResult,
    risk_score: float,
    deny_threshold: float = 80,
    challenge_threshold: float = 60,
) -> DecisionOutcome:
    if result.should_deny:
        return DecisionOutcome(AccessDecision.DENY, result.violations or (POLICY_DENIED,))

    if result.should_challenge or result.required_actions:
        decision = (
            AccessDecision.STEP_UP
            if result.has_required_action(RequiredActionType.MFA_CHALLENGE)
            else AccessDecision.CHALLENGE
        )
        reasons = result.violations or (ADDITIONAL_VERIFICATION,)
        return DecisionOutcome(decision, reasons, result.required_actions)

    if risk_score > deny_threshold:
        return DecisionOutcome(AccessDecision.DENY, (RISK_EXCEEDS_THRESHOLD,))

    if risk_score > challenge_threshold:
        return DecisionOutcome(
            AccessDecision.CHALLENGE,
            (ELEVATED_RISK,),
            (RequiredAction(type=RequiredActionType.MFA_CHALLENGE),),
        )

    return DecisionOutcome(AccessDecision.ALLOW, (ACCESS_GRANTED,))
