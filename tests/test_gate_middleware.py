"""HTTP-level tests for the protection gate middleware."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from guard.adapters.audit.base import AuditAction
from guard.adapters.audit.in_memory import InMemoryAuditLog
from guard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from guard.core.app_factory import create_app
from guard.core.policy import LimitClass
from guard.core.security import SECURITY_HEADERS

SMALL_CLASSES = {
    "api": LimitClass(name="api", window_seconds=60, max_requests=3, message="Too many requests, please try again later"),
    "login": LimitClass(name="login", window_seconds=900, max_requests=2, message="Too many login attempts, please try again later"),
    "sensitive": LimitClass(name="sensitive", window_seconds=3600, max_requests=1, message="Rate limit exceeded for sensitive operations"),
}


class FakeTime:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def audit_log() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def app(fake_time: FakeTime, audit_log: InMemoryAuditLog) -> FastAPI:
    limiter = InMemoryFixedWindowRateLimiter(limit_classes=SMALL_CLASSES, clock=fake_time.time)
    application = create_app(rate_limiter=limiter, audit_log=audit_log)

    # Stand-ins for the dashboard's pages and API handlers
    @application.get("/api/data")
    def data() -> dict:
        return {"rows": []}

    @application.post("/api/auth/logout")
    def logout() -> dict:
        return {"success": True}

    @application.get("/finance")
    def finance() -> dict:
        return {"page": "finance"}

    @application.get("/login")
    def login_page() -> dict:
        return {"page": "login"}

    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def test_rate_limit_headers_on_allowed_api_request(client: TestClient, fake_time: FakeTime) -> None:
    resp = client.get("/api/data")

    assert resp.status_code == 200
    assert resp.headers["X-RateLimit-Limit"] == "3"
    assert resp.headers["X-RateLimit-Remaining"] == "2"
    assert resp.headers["X-RateLimit-Reset"] == str(int(fake_time.current + 60))


def test_denied_request_returns_429(client: TestClient, fake_time: FakeTime, audit_log: InMemoryAuditLog) -> None:
    for _ in range(3):
        assert client.get("/api/data").status_code == 200
    fake_time.advance(15)

    resp = client.get("/api/data")

    assert resp.status_code == 429
    assert resp.json() == {
        "success": False,
        "error": "Too many requests, please try again later",
        "retryAfter": 45,
    }
    assert resp.headers["Retry-After"] == "45"
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"

    [event] = audit_log.query(action=AuditAction.RATE_LIMIT_EXCEEDED)
    assert event.resource == "/api/data"
    assert event.details["rate_limit_type"] == "api"


def test_window_rollover_admits_again(client: TestClient, fake_time: FakeTime) -> None:
    for _ in range(2):
        client.post("/api/auth/logout")
    assert client.post("/api/auth/logout").status_code == 429

    fake_time.advance(900)

    resp = client.post("/api/auth/logout")
    assert resp.status_code == 200
    assert resp.headers["X-RateLimit-Remaining"] == "1"


def test_denied_handler_is_never_invoked(app: FastAPI, client: TestClient) -> None:
    calls: list[str] = []

    @app.post("/api/auth/login")
    def login() -> dict:
        calls.append("login")
        return {"success": True}

    assert client.post("/api/auth/login").status_code == 200
    assert client.post("/api/auth/login").status_code == 429
    assert calls == ["login"]


def test_forwarded_for_isolates_clients(client: TestClient) -> None:
    for _ in range(3):
        client.get("/api/data", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

    blocked = client.get("/api/data", headers={"X-Forwarded-For": "203.0.113.9"})
    other = client.get("/api/data", headers={"X-Forwarded-For": "198.51.100.4"})

    assert blocked.status_code == 429
    assert other.status_code == 200


def test_protected_page_redirects_anonymous_visitor(client: TestClient, audit_log: InMemoryAuditLog) -> None:
    resp = client.get("/finance", follow_redirects=False)

    assert resp.status_code == 307
    assert resp.headers["location"] == "/login"

    [event] = audit_log.query()
    assert event.action is AuditAction.API_ACCESS
    assert event.success is False


def test_protected_page_served_to_session(client: TestClient, audit_log: InMemoryAuditLog) -> None:
    resp = client.get(
        "/finance",
        headers={"Cookie": "authenticated=true; username=alice", "User-Agent": "dashboard-test"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"page": "finance"}

    [event] = audit_log.query(actor_id="alice")
    assert event.success is True
    assert event.client_agent == "dashboard-test"


def test_login_page_redirects_session_home(client: TestClient) -> None:
    resp = client.get("/login", headers={"Cookie": "authenticated=true"}, follow_redirects=False)

    assert resp.status_code == 307
    assert resp.headers["location"] == "/home"


def test_security_headers_on_every_response(client: TestClient) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    for name, value in SECURITY_HEADERS.items():
        assert resp.headers[name] == value
    assert "X-RateLimit-Limit" not in resp.headers


def test_health_is_never_rate_limited(client: TestClient) -> None:
    for _ in range(10):
        assert client.get("/health").status_code == 200


def test_request_id_echoed_on_denial(client: TestClient) -> None:
    for _ in range(3):
        client.get("/api/data")

    resp = client.get("/api/data", headers={"X-Request-ID": "req-429"})

    assert resp.status_code == 429
    assert resp.headers["X-Request-ID"] == "req-429"
