"""
Tests for audit dispatch, persistence and trail queries.
"""
import csv
import io
import json
import threading
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker
from structlog.testing import capture_logs

from zerotrust.core.audit import (
    AuditLogger, AuditTrail, InMemoryAuditSink, SqlAlchemyAuditSink, build_audit_record,
)
from zerotrust.core.engine import ZeroTrustEngine
from zerotrust.exceptions import AuditSinkError
from zerotrust.models.audit_log import AuditLog
from zerotrust.models.database import get_session, make_engine
from zerotrust.models.entities import AccessDecision, Action, ActionType, ResourceType
from zerotrust.scenarios.demo_data import make_environment, make_resource, make_subject


def record(now, decision=AccessDecision.ALLOW, reasons=('Access granted per policy',), user_id='jsmith'):
    return build_audit_record(
        make_subject(user_id=user_id), make_resource(), Action(ActionType.READ), decision, 12.5,
        reasons, make_environment(), now,
    )


# ==== Dispatch ====

def test_async_emit_delivers_after_flush(now):
    sink = InMemoryAuditSink()
    audit = AuditLogger(sinks=[sink], async_writes=True)
    for _ in range(5):
        audit.emit(record(now))
    audit.flush(timeout=5)
    assert len(sink.records) == 5
    audit.close()


def test_async_emit_does_not_wait_for_slow_sink(now):
    release = threading.Event()

    class SlowSink:
        def __init__(self):
            self.written = []

        def write(self, rec):
            release.wait(5)
            self.written.append(rec)

    sink = SlowSink()
    audit = AuditLogger(sinks=[sink], async_writes=True)
    audit.emit(record(now))
    assert sink.written == []
    release.set()
    audit.close()
    assert len(sink.written) == 1


def test_sink_failure_goes_to_fallback_channel(now):
    class BrokenSink:
        def write(self, rec):
            raise IOError("disk full")

    healthy = InMemoryAuditSink()
    audit = AuditLogger(sinks=[BrokenSink(), healthy], async_writes=False)
    with capture_logs() as logs:
        audit.emit(record(now))

    events = [entry['event'] for entry in logs]
    assert 'audit.persist_failed' in events
    fallback = next(entry for entry in logs if entry['event'] == 'audit.fallback')
    assert json.loads(fallback['record'])['decision'] == 'allow'
    assert len(healthy.records) == 1


def test_subscriber_failure_is_contained(now):
    received = []

    def broken(rec):
        raise ValueError("bad subscriber")

    audit = AuditLogger(async_writes=False)
    audit.subscribe(broken)
    audit.subscribe(received.append)
    audit.emit(record(now))
    assert len(received) == 1


def test_emit_after_close_uses_fallback(now):
    audit = AuditLogger(sinks=[InMemoryAuditSink()], async_writes=True)
    audit.close()
    with capture_logs() as logs:
        audit.emit(record(now))
    assert any(entry['event'] == 'audit.fallback' for entry in logs)


def test_record_is_json_serializable(now):
    data = record(now).to_dict()
    assert data['decision'] == 'allow'
    assert data['timestamp'] == now.isoformat()
    assert data['resource']['resource_type'] == 'api_endpoint'
    json.dumps(data)


# ==== Persistence ====

def test_sqlalchemy_sink_persists_records(session_factory, now):
    sink = SqlAlchemyAuditSink(session_factory)
    rec = record(now, AccessDecision.DENY, ('Insufficient role permissions',))
    sink.write(rec)

    with get_session(session_factory) as session:
        row = session.query(AuditLog).one()
        assert row.event_id == rec.id
        assert row.decision == AccessDecision.DENY
        assert row.subject_id == 'jsmith'
        assert json.loads(row.policy_violations) == ['Insufficient role permissions']
        assert json.loads(row.record_json)['id'] == rec.id


def test_sqlalchemy_sink_wraps_database_errors(now):
    # Tables never created
    factory = sessionmaker(bind=make_engine("sqlite://"))
    with pytest.raises(AuditSinkError):
        SqlAlchemyAuditSink(factory).write(record(now))


# ==== Trail queries ====

@pytest.fixture
def populated(session_factory, settings, now):
    """Audit database holding the decisions of a few evaluations."""
    engine = ZeroTrustEngine(
        settings=settings,
        audit_logger=AuditLogger(sinks=[SqlAlchemyAuditSink(session_factory)], async_writes=False),
        clock=lambda: now,
    )
    engine.evaluate(make_subject(), make_resource(), Action(ActionType.READ), make_environment())
    engine.evaluate(make_subject(user_id='mallory'), make_resource(), Action(ActionType.READ),
                    make_environment(known_bad_actor=True))
    engine.evaluate(
        make_subject(roles=('viewer',), user_id='mallory'),
        make_resource(ResourceType.EMPLOYEE_DATA, 70),
        Action(ActionType.DELETE),
        make_environment(),
    )
    engine.close()
    return session_factory


def test_get_logs_filters(populated):
    with get_session(populated) as session:
        trail = AuditTrail(session)
        assert len(trail.get_logs()) == 3
        assert len(trail.get_logs(subject_id='mallory')) == 2
        assert len(trail.get_logs(decision=AccessDecision.ALLOW)) == 1
        assert len(trail.get_logs(action='delete')) == 1
        assert len(trail.get_logs(limit=2)) == 2


def test_recent_denials(populated, now):
    with get_session(populated) as session:
        trail = AuditTrail(session)
        denials = trail.get_recent_denials(hours=1, now=now + timedelta(minutes=5))
        assert {d.subject_id for d in denials} == {'mallory'}
        assert len(denials) == 2
        assert trail.get_recent_denials(hours=1, now=now + timedelta(hours=3)) == []


def test_user_activity(populated, now):
    with get_session(populated) as session:
        activity = AuditTrail(session).get_user_activity('mallory', now=now + timedelta(minutes=5))
    assert activity['total_requests'] == 2
    assert activity['decisions']['deny'] == 2
    assert activity['denial_rate'] == 1
    assert activity['actions'] == {'read': 1, 'delete': 1}


def test_statistics(populated, now):
    with get_session(populated) as session:
        stats = AuditTrail(session).get_statistics(now=now + timedelta(minutes=5))
    assert stats['total_decisions'] == 3
    assert stats['by_decision']['allow'] == 1
    assert stats['by_decision']['deny'] == 2
    assert stats['denial_rate'] == pytest.approx(2 / 3)
    assert stats['unique_subjects'] == 2
    assert stats['by_network'] == {'corporate_vpn': 3}


def test_statistics_on_empty_trail(session_factory):
    with get_session(session_factory) as session:
        stats = AuditTrail(session).get_statistics()
    assert stats['total_decisions'] == 0
    assert stats['denial_rate'] == 0


def test_export_json_and_csv(populated):
    with get_session(populated) as session:
        trail = AuditTrail(session)
        exported = json.loads(trail.export_logs(format='json'))
        csv_lines = trail.export_logs(format='csv').splitlines()
        with pytest.raises(ValueError):
            trail.export_logs(format='xml')

    assert len(exported) == 3
    assert {entry['decision'] for entry in exported} == {'allow', 'deny'}
    assert csv_lines[0].startswith('timestamp,event_id,subject_id')
    assert len(csv_lines) == 4


def test_csv_export_quotes_hostile_identifiers(session_factory, now):
    SqlAlchemyAuditSink(session_factory).write(record(now, user_id='eve,admin,"x"\nforged'))

    with get_session(session_factory) as session:
        exported = AuditTrail(session).export_logs(format='csv')

    rows = list(csv.reader(io.StringIO(exported)))
    assert len(rows) == 2
    assert len(rows[1]) == len(rows[0])
    assert rows[1][2] == 'eve,admin,"x"\nforged'
