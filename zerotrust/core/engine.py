"""
Zero Trust Decision Engine
==========================

Single entry point for access decisions (the Policy Decision Point).

Per request:
    score risk -> classify trust -> evaluate policies -> build decision
    -> expiration and session constraints -> audit record -> emit

The engine holds only immutable configuration: settings, the ordered
rule set, the clock and the audit logger. Every evaluation works on its
own inputs, so one instance can be shared by any number of request
threads without locking.

Fail-closed contract: ``evaluate_or_deny`` and ``evaluate_request``
never let an internal failure resolve to anything but ``deny``.
"""

import time
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from ..config import ZeroTrustSettings, get_settings
from ..models.entities import (
    AccessDecision, Action, EnvironmentContext, PolicyDecision, Resource, Subject, TrustLevel,
)
from ..observability import get_logger
from .audit import AuditLogger, build_audit_record
from .context import RequestAttributes, RequestContextBuilder
from .decision import build_decision
from .policy_engine import PolicyEvaluationContext, PolicyEvaluator, PolicyRule
from .risk import calculate_risk_score
from .session import LOCKDOWN_CONSTRAINTS, calculate_expiration, determine_session_constraints
from .trust import determine_trust_level

logger = get_logger(__name__)

EVALUATION_FAILED = 'Security evaluation failed'

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ZeroTrustEngine:
    """
    Zero trust policy decision point.

    Combines risk scoring, trust classification and the ordered policy
    rules into a PolicyDecision. All decisions are handed to the audit
    logger after they are made.
    """

    def __init__(
        self,
        settings: Optional[ZeroTrustSettings] = None,
        rules: Optional[Sequence[PolicyRule]] = None,
        audit_logger: Optional[AuditLogger] = None,
        context_builder: Optional[RequestContextBuilder] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize the engine.

        Args:
            settings: Engine settings (defaults to environment settings)
            rules: Ordered policy rules (defaults to the ten built-in policies)
            audit_logger: Destination for audit records (defaults to a sink-less logger built from settings)
            context_builder: Builder used by ``evaluate_request``
            clock: Source of the current time
        """
        self.settings = settings or get_settings()
        self.evaluator = PolicyEvaluator(rules)
        self.audit = audit_logger or AuditLogger.from_settings(self.settings)
        self.context_builder = context_builder or RequestContextBuilder(self.settings)
        self.clock = clock

    def evaluate(
        self,
        subject: Subject,
        resource: Resource,
        action: Action,
        environment: EnvironmentContext,
    ) -> PolicyDecision:
        """
        Evaluate an access request.

        Raises whatever an internal step raises; callers that must never
        see an exception use ``evaluate_or_deny``.
        """
        started = time.perf_counter()
        now = self.clock()

        risk_score = calculate_risk_score(subject, resource, action, environment, now, self.settings)
        trust_level = determine_trust_level(subject, environment, risk_score, now, self.settings)

        result = self.evaluator.evaluate(PolicyEvaluationContext(
            subject=subject,
            resource=resource,
            action=action,
            environment=environment,
            trust_level=trust_level,
            now=now,
            settings=self.settings,
        ))
        outcome = build_decision(
            result,
            risk_score,
            deny_threshold=self.settings.deny_risk_threshold,
            challenge_threshold=self.settings.challenge_risk_threshold,
        )

        record = build_audit_record(
            subject, resource, action, outcome.decision, risk_score, outcome.reasons, environment, now
        )
        decision = PolicyDecision(
            decision=outcome.decision,
            trust_level=trust_level,
            risk_score=risk_score,
            reasons=outcome.reasons,
            required_actions=outcome.required_actions,
            audit_record=record,
            expires_at=calculate_expiration(trust_level, risk_score, now),
            session_constraints=determine_session_constraints(trust_level, risk_score, resource),
        )

        log = logger.warning if decision.decision == AccessDecision.DENY else logger.info
        log(
            "evaluation.completed",
            user=subject.user_id,
            resource=f"{resource.resource_type.value}:{resource.resource_id}",
            action=action.type.value,
            decision=decision.decision.value,
            risk_score=round(risk_score, 1),
            trust_level=trust_level.value,
            rules=list(result.fired_rules),
            audit_id=record.id,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )

        self._emit(record)
        return decision

    def evaluate_or_deny(
        self,
        subject: Subject,
        resource: Resource,
        action: Action,
        environment: EnvironmentContext,
    ) -> PolicyDecision:
        """Evaluate, resolving any internal failure to a deny decision."""
        try:
            return self.evaluate(subject, resource, action, environment)
        except Exception:
            logger.exception("evaluation.failed", user=getattr(subject, 'user_id', None))
            return self.fail_closed(subject, resource, action, environment)

    def evaluate_request(self, request: RequestAttributes) -> PolicyDecision:
        """
        Build the evaluation context from raw request attributes and
        evaluate it. Fails closed end to end.
        """
        try:
            context = self.context_builder.build(request, self.clock())
        except Exception:
            logger.exception("context.build_failed", method=request.method, path=request.path)
            return self.fail_closed()
        return self.evaluate_or_deny(context.subject, context.resource, context.action, context.environment)

    def fail_closed(
        self,
        subject: Optional[Subject] = None,
        resource: Optional[Resource] = None,
        action: Optional[Action] = None,
        environment: Optional[EnvironmentContext] = None,
    ) -> PolicyDecision:
        """
        Deny decision returned when evaluation could not complete.

        An audit record is attached when the full request context is
        known; a failure before the context exists is only logged.
        """
        now = self._now()
        record = None
        if subject is not None and resource is not None and action is not None and environment is not None:
            try:
                record = build_audit_record(
                    subject, resource, action, AccessDecision.DENY, 100.0,
                    (EVALUATION_FAILED,), environment, now,
                )
            except Exception:
                logger.exception("audit.build_failed")
        if record is not None:
            self._emit(record)

        return PolicyDecision(
            decision=AccessDecision.DENY,
            trust_level=TrustLevel.UNTRUSTED,
            risk_score=100.0,
            reasons=(EVALUATION_FAILED,),
            audit_record=record,
            expires_at=now,
            session_constraints=LOCKDOWN_CONSTRAINTS,
        )

    def close(self) -> None:
        self.audit.close()

    def _now(self) -> datetime:
        try:
            return self.clock()
        except Exception:
            logger.exception("clock.failed")
            return utc_now()

    def _emit(self, record) -> None:
        try:
            self.audit.emit(record)
        except Exception as exc:
            logger.error("audit.emit_failed", audit_id=record.id, error=str(exc))
