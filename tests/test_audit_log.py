"""Unit tests for the in-memory audit ledger."""

import dataclasses
import logging
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from guard.adapters.audit.base import AuditAction
from guard.adapters.audit.in_memory import InMemoryAuditLog


class FakeClock:
    """Deterministic clock; each call returns the current instant."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


def _record(log: InMemoryAuditLog, action: AuditAction, success: bool, **kwargs) -> None:
    log.record(action, kwargs.pop("resource", "/api/x"), "10.0.0.1", "pytest", success, **kwargs)


def test_record_returns_immutable_event() -> None:
    clock = FakeClock()
    log = InMemoryAuditLog(clock=clock)
    details = {"reason": "Invalid credentials"}

    event = log.record(
        AuditAction.LOGIN, "/api/auth/login", "1.2.3.4", "curl/8", False,
        actor_id="alice", details=details,
    )

    assert event is not None
    assert event.timestamp == clock.current
    assert event.actor_id == "alice"
    assert event.action is AuditAction.LOGIN
    assert event.success is False
    assert len(event.id) == 64

    details["reason"] = "changed"
    assert event.details["reason"] == "Invalid credentials"
    with pytest.raises(TypeError):
        event.details["reason"] = "mutated"  # type: ignore[index]
    with pytest.raises(dataclasses.FrozenInstanceError):
        event.success = True  # type: ignore[misc]


def test_record_accepts_action_names() -> None:
    log = InMemoryAuditLog()
    event = log.record("LOGOUT", "/api/auth/logout", "1.2.3.4", "ua", True)

    assert event is not None
    assert event.action is AuditAction.LOGOUT


def test_ids_are_unique() -> None:
    log = InMemoryAuditLog()
    ids = {log.record(AuditAction.API_ACCESS, "/home", "a", "b", True).id for _ in range(50)}
    assert len(ids) == 50


def test_capacity_keeps_most_recent_events() -> None:
    clock = FakeClock()
    log = InMemoryAuditLog(capacity=1000, clock=clock)

    for i in range(1, 1006):
        clock.advance(seconds=1)
        log.record(AuditAction.API_ACCESS, f"/r/{i}", "a", "b", True)

    assert len(log) == 1000
    events = log.query(limit=2000)
    resources = [e.resource for e in events]
    assert len(events) == 1000
    assert resources[0] == "/r/1005"
    assert resources[-1] == "/r/6"
    assert not {"/r/1", "/r/2", "/r/3", "/r/4", "/r/5"} & set(resources)
    assert list(reversed(resources)) == [f"/r/{i}" for i in range(6, 1006)]


def test_never_exceeds_capacity_after_each_record() -> None:
    log = InMemoryAuditLog(capacity=3)
    for i in range(10):
        log.record(AuditAction.API_ACCESS, f"/r/{i}", "a", "b", True)
        assert len(log) <= 3


def test_invalid_capacity_rejected() -> None:
    with pytest.raises(ValueError):
        InMemoryAuditLog(capacity=0)


def test_query_without_filters_respects_limit_and_order() -> None:
    clock = FakeClock()
    log = InMemoryAuditLog(clock=clock)
    for i in range(5):
        clock.advance(minutes=1)
        log.record(AuditAction.API_ACCESS, f"/r/{i}", "a", "b", True)

    events = log.query(limit=3)
    assert [e.resource for e in events] == ["/r/4", "/r/3", "/r/2"]
    assert len(log.query(limit=50)) == 5
    assert log.query(limit=0) == []


def test_query_sorts_by_timestamp_not_insertion() -> None:
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    clock = Mock(side_effect=[base + timedelta(seconds=2), base + timedelta(seconds=1), base + timedelta(seconds=3)])
    log = InMemoryAuditLog(clock=clock)
    for name in ("second", "first", "third"):
        log.record(AuditAction.API_ACCESS, name, "a", "b", True)

    assert [e.resource for e in log.query()] == ["third", "second", "first"]


def test_query_ties_return_latest_insert_first() -> None:
    log = InMemoryAuditLog(clock=FakeClock())
    log.record(AuditAction.API_ACCESS, "older", "a", "b", True)
    log.record(AuditAction.API_ACCESS, "newer", "a", "b", True)

    assert [e.resource for e in log.query()] == ["newer", "older"]


def test_query_filters_by_actor_then_action() -> None:
    log = InMemoryAuditLog()
    _record(log, AuditAction.LOGIN, True, actor_id="alice")
    _record(log, AuditAction.LOGOUT, True, actor_id="alice")
    _record(log, AuditAction.LOGIN, True, actor_id="bob")
    _record(log, AuditAction.RATE_LIMIT_EXCEEDED, False)

    assert len(log.query(actor_id="alice")) == 2
    assert len(log.query(action=AuditAction.LOGIN)) == 2
    assert len(log.query(action="LOGIN")) == 2

    only = log.query(actor_id="alice", action="LOGIN")
    assert len(only) == 1
    assert only[0].actor_id == "alice"

    assert log.query(action="NOT_AN_ACTION") == []


def test_query_negative_limit_rejected() -> None:
    with pytest.raises(ValueError):
        InMemoryAuditLog().query(limit=-1)


def test_metrics_scenario() -> None:
    log = InMemoryAuditLog()
    for _ in range(3):
        _record(log, AuditAction.LOGIN, False)
    for _ in range(2):
        _record(log, AuditAction.LOGIN, True)
    _record(log, AuditAction.RATE_LIMIT_EXCEEDED, False)

    metrics = log.metrics()

    assert metrics.failed_logins == 3
    assert metrics.successful_logins == 2
    assert metrics.suspicious_activity == 1
    assert metrics.total_events == 6
    assert metrics.api_calls == 0


def test_metrics_counts_api_prefixed_actions() -> None:
    log = InMemoryAuditLog()
    _record(log, AuditAction.API_ACCESS, True)
    _record(log, AuditAction.API_ACCESS, False)
    _record(log, AuditAction.SENSITIVE_ACCESS, True)

    metrics = log.metrics()

    assert metrics.api_calls == 2
    assert metrics.suspicious_activity == 1


def test_metrics_only_covers_lookback_window() -> None:
    clock = FakeClock()
    log = InMemoryAuditLog(clock=clock)
    _record(log, AuditAction.LOGIN, False)

    clock.advance(hours=25)
    _record(log, AuditAction.LOGIN, True)

    metrics = log.metrics()
    assert metrics.total_events == 1
    assert metrics.failed_logins == 0
    assert metrics.successful_logins == 1

    assert log.metrics(window=timedelta(days=2)).total_events == 2


def test_record_failure_is_absorbed(caplog: pytest.LogCaptureFixture) -> None:
    log = InMemoryAuditLog()

    with caplog.at_level(logging.ERROR, logger="guard.adapters.audit.in_memory"):
        assert log.record("NOT_AN_ACTION", "/x", "a", "b", True) is None
        assert log.record(AuditAction.LOGIN, "/x", "a", "b", True, details=42) is None  # type: ignore[arg-type]

    assert len(log) == 0
    assert "audit.record_failed" in caplog.text


def test_broken_clock_does_not_raise() -> None:
    log = InMemoryAuditLog(clock=Mock(side_effect=RuntimeError("clock broken")))

    assert log.record(AuditAction.LOGIN, "/x", "a", "b", True) is None


def test_concurrent_records_respect_capacity() -> None:
    log = InMemoryAuditLog(capacity=100)

    def _writer(idx: int) -> None:
        for j in range(10):
            log.record(AuditAction.API_ACCESS, f"/w/{idx}/{j}", "a", "b", True)

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(log) == 100
    assert len(log.query(limit=1000)) == 100
