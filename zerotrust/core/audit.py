"""
Audit Logging Module
====================

Builds the immutable audit record for every zero trust decision and
hands it to the audit sinks without holding up the decision.

Critical for compliance with security frameworks:

- NIST 800-53 AU (Audit and Accountability)
- NIST SP 800-207 continuous diagnostics
- FedRAMP / CMMC audit requirements

Features:
- Immutable audit records (session id stripped from the subject)
- Fire-and-forget dispatch on a small worker pool
- Fallback log channel when a sink fails
- Subscriber callbacks for streaming records to other collaborators
- Query, statistics and export over the persisted trail
"""

import csv
import io
import json
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import AuditSinkError
from ..models.audit_log import AuditLog
from ..models.database import get_session
from ..models.entities import (
    AccessDecision, Action, AuditRecord, AuditSubject, EnvironmentContext, Resource, Subject,
)
from ..observability import get_logger

logger = get_logger(__name__)
fallback_logger = get_logger("zerotrust.audit.fallback")

AuditCallback = Callable[[AuditRecord], None]

CSV_COLUMNS = (
    'timestamp', 'event_id', 'subject_id', 'organization_id',
    'resource_type', 'action', 'decision', 'risk_score',
)


def new_audit_id(now: datetime) -> str:
    return f"ZT-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


def build_audit_record(
    subject: Subject,
    resource: Resource,
    action: Action,
    decision: AccessDecision,
    risk_score: float,
    reasons: Iterable[str],
    environment: EnvironmentContext,
    now: datetime,
) -> AuditRecord:
    """
    Create the audit record for a decision.

    The subject is copied without its session id; the reasons behind the
    decision are recorded as its policy violations.
    """
    return AuditRecord(
        id=new_audit_id(now),
        timestamp=now,
        subject=AuditSubject.from_subject(subject),
        resource=resource,
        action=action,
        decision=decision,
        risk_score=risk_score,
        policy_violations=tuple(reasons),
        environment=environment,
    )


# ============================================================================
# Sinks
# ============================================================================

class AuditSink(Protocol):
    def write(self, record: AuditRecord) -> None:
        ...


class InMemoryAuditSink:
    """Keeps records in a list. Used by tests and the CLI scenario runner."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[AuditRecord] = []

    def write(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> List[AuditRecord]:
        with self._lock:
            return list(self._records)


class SqlAlchemyAuditSink:
    """Persists records to the audit_logs table, one session per record."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def write(self, record: AuditRecord) -> None:
        try:
            self._insert(record)
        except SQLAlchemyError as exc:
            raise AuditSinkError(f"Failed to persist audit record {record.id}") from exc

    def _insert(self, record: AuditRecord) -> None:
        with get_session(self.session_factory) as session:
            session.add(AuditLog(
                event_id=record.id,
                event_type='access_decision',
                timestamp=record.timestamp,
                subject_id=record.subject.user_id,
                organization_id=record.subject.organization_id,
                ip_address=record.subject.ip_address,
                user_agent=record.subject.user_agent[:255],
                resource_type=record.resource.resource_type.value,
                resource_id=record.resource.resource_id,
                action=record.action.type.value,
                decision=record.decision,
                risk_score=record.risk_score,
                policy_violations=json.dumps(list(record.policy_violations)),
                network_type=record.environment.network_type.value,
                record_json=json.dumps(record.to_dict()),
            ))


# ============================================================================
# Dispatch
# ============================================================================

class AuditLogger:
    """
    Delivers audit records to sinks and subscribers.

    With ``async_writes`` enabled, ``emit`` only schedules the write and
    returns immediately. Every failure is caught, logged, and the record
    is written to the fallback channel; nothing propagates to the caller.
    """

    def __init__(
        self,
        sinks: Optional[Iterable[AuditSink]] = None,
        async_writes: bool = True,
        max_workers: int = 2,
    ):
        self.sinks = tuple(sinks or ())
        self.async_writes = async_writes
        self._subscribers: List[AuditCallback] = []
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="zt-audit")
            if async_writes else None
        )

    @classmethod
    def from_settings(cls, settings, sinks: Optional[Iterable[AuditSink]] = None) -> 'AuditLogger':
        return cls(sinks=sinks, async_writes=settings.audit_async, max_workers=settings.audit_workers)

    def subscribe(self, callback: AuditCallback) -> None:
        """Register a callback that receives every emitted record."""
        with self._lock:
            self._subscribers.append(callback)

    def emit(self, record: AuditRecord) -> None:
        if self._executor is None:
            self._deliver(record)
            return
        try:
            future = self._executor.submit(self._deliver, record)
        except RuntimeError as exc:  # executor already shut down
            self._fallback(record, exc)
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled writes to finish."""
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            try:
                future.result(timeout=timeout)
            except Exception as exc:
                logger.error("audit.flush_failed", error=str(exc))

    def close(self) -> None:
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _deliver(self, record: AuditRecord) -> None:
        for sink in self.sinks:
            try:
                sink.write(record)
            except Exception as exc:
                self._fallback(record, exc, sink=type(sink).__name__)

        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(record)
            except Exception as exc:
                logger.error("audit.subscriber_failed", audit_id=record.id, error=str(exc))

    def _fallback(self, record: AuditRecord, exc: Exception, sink: Optional[str] = None) -> None:
        logger.error("audit.persist_failed", audit_id=record.id, sink=sink, error=str(exc))
        fallback_logger.warning("audit.fallback", record=json.dumps(record.to_dict()))


# ============================================================================
# Trail Queries
# ============================================================================

class AuditTrail:
    """
    Query service over persisted decisions.

    Provides:
    - Filtered log retrieval for investigations
    - Recent denials for security monitoring
    - Per-user activity and overall statistics
    - JSON/CSV export for SIEM systems
    """

    def __init__(self, session: Session):
        self.session = session

    def get_logs(
        self,
        subject_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        action: Optional[str] = None,
        decision: Optional[AccessDecision] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[AuditLog]:
        query = self.session.query(AuditLog)

        if subject_id is not None:
            query = query.filter(AuditLog.subject_id == subject_id)
        if resource_type is not None:
            query = query.filter(AuditLog.resource_type == resource_type)
        if action is not None:
            query = query.filter(AuditLog.action == action)
        if decision is not None:
            query = query.filter(AuditLog.decision == decision)
        if start_time is not None:
            query = query.filter(AuditLog.timestamp >= start_time)
        if end_time is not None:
            query = query.filter(AuditLog.timestamp <= end_time)

        return query.order_by(desc(AuditLog.timestamp)).limit(limit).offset(offset).all()

    def get_recent_denials(
        self,
        hours: int = 24,
        limit: int = 50,
        now: Optional[datetime] = None
    ) -> List[AuditLog]:
        """
        Recent denials: unauthorized attempts, known threat actors,
        misconfigured role assignments.
        """
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
        return self.session.query(AuditLog).filter(
            AuditLog.decision == AccessDecision.DENY,
            AuditLog.timestamp >= cutoff
        ).order_by(desc(AuditLog.timestamp)).limit(limit).all()

    def get_user_activity(
        self,
        subject_id: str,
        hours: int = 24,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
        logs = self.session.query(AuditLog).filter(
            AuditLog.subject_id == subject_id,
            AuditLog.timestamp >= cutoff
        ).all()

        total = len(logs)
        decisions = {d.value: 0 for d in AccessDecision}
        actions: Dict[str, int] = {}
        for log in logs:
            decisions[log.decision.value] += 1
            actions[log.action] = actions.get(log.action, 0) + 1

        return {
            'subject_id': subject_id,
            'period_hours': hours,
            'total_requests': total,
            'decisions': decisions,
            'denial_rate': decisions['deny'] / total if total > 0 else 0,
            'average_risk': sum(l.risk_score for l in logs) / total if total > 0 else 0,
            'actions': actions,
        }

    def get_statistics(self, hours: int = 24, now: Optional[datetime] = None) -> Dict[str, Any]:
        """High-level metrics for security dashboards."""
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
        logs = self.session.query(AuditLog).filter(AuditLog.timestamp >= cutoff).all()

        total = len(logs)
        by_decision = {d.value: 0 for d in AccessDecision}
        by_network: Dict[str, int] = {}
        for log in logs:
            by_decision[log.decision.value] += 1
            if log.network_type:
                by_network[log.network_type] = by_network.get(log.network_type, 0) + 1

        return {
            'period_hours': hours,
            'total_decisions': total,
            'by_decision': by_decision,
            'allow_rate': by_decision['allow'] / total if total > 0 else 0,
            'denial_rate': by_decision['deny'] / total if total > 0 else 0,
            'average_risk': sum(l.risk_score for l in logs) / total if total > 0 else 0,
            'high_risk_decisions': sum(1 for l in logs if l.risk_score > 70),
            'by_network': by_network,
            'unique_subjects': len(set(l.subject_id for l in logs if l.subject_id)),
        }

    def export_logs(
        self,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        format: str = 'json'
    ) -> str:
        """
        Export for SIEM integration (Splunk, ELK, Sentinel, CloudWatch).

        Args:
            start_time: Export start time
            end_time: Export end time
            format: Output format ('json' or 'csv')

        Returns:
            Formatted log data as string
        """
        logs = self.get_logs(start_time=start_time, end_time=end_time, limit=10000)

        if format == 'json':
            return json.dumps([
                json.loads(log.record_json) if log.record_json else {
                    'id': log.event_id,
                    'decision': log.decision.value,
                    'risk_score': log.risk_score,
                }
                for log in logs
            ], indent=2)

        elif format == 'csv':
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator='\n')
            writer.writerow(CSV_COLUMNS)
            for log in logs:
                writer.writerow([
                    log.timestamp.isoformat(), log.event_id, log.subject_id,
                    log.organization_id, log.resource_type, log.action,
                    log.decision.value, f'{log.risk_score:.1f}',
                ])
            return buffer.getvalue()

        else:
            raise ValueError(f"Unsupported format: {format}")
