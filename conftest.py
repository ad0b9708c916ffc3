"""
Shared pytest fixtures for the quote intake test suite.

IMPORTANT: INTAKE_DATA_DIR is pointed at a throwaway directory BEFORE any
src module is imported, so src.core.paths never creates data/ in the repo.
Every test then gets its own SQLite file via the autouse temp_data_dir fixture.
"""
import os
import sys
import tempfile

import pytest

_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

os.environ.setdefault("INTAKE_DATA_DIR", tempfile.mkdtemp(prefix="intake-test-"))


# ── Temp data directory (per-test isolation) ──────────────────────────────────

@pytest.fixture(autouse=True)
def temp_data_dir(tmp_path, monkeypatch):
    """Fresh SQLite DB + catalog mirror per test; secrets reset to test values."""
    data = str(tmp_path / "data")
    os.makedirs(data, exist_ok=True)

    from src.core import db
    monkeypatch.setattr(db, "DB_PATH", os.path.join(data, "quote_intake.db"))

    monkeypatch.setenv("DISABLE_RATE_LIMIT", "true")
    monkeypatch.setenv("DISABLE_CSRF", "true")
    monkeypatch.setenv("REQUEST_STORE", "sqlite")
    monkeypatch.setenv("RESEND_API_KEY", "re_test_key_123456")
    monkeypatch.setenv("FROM_EMAIL", "noreply@oneshop.test")
    monkeypatch.setenv("ADMIN_EMAIL", "admin@oneshop.test")
    for var in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_CLIENT_NUMBERS",
                "EMAIL_PROXY_TOKEN"):
        monkeypatch.delenv(var, raising=False)

    db.init_db()
    from src.core.catalog import init_catalog
    init_catalog()

    from src.core import security
    security._limiter.reset()
    return data


# ── Fakes ─────────────────────────────────────────────────────────────────────

class FakeSender:
    """Stands in for ResendSender. Records every email; fails on request."""

    def __init__(self, fail_to=(), error="Resend API error: 500"):
        self.from_email = "noreply@oneshop.test"
        self.sent = []
        self.fail_to = set(fail_to)
        self.error = error

    def send(self, to, subject, html_body, attachments=None):
        from src.core.errors import NotificationError
        self.sent.append({"to": to, "subject": subject, "html": html_body,
                          "attachments": attachments or []})
        if to in self.fail_to or "*" in self.fail_to:
            raise NotificationError(self.error, detail="simulated", status=500)
        return {"id": f"email_{len(self.sent)}"}

    def to(self, address):
        return [m for m in self.sent if m["to"] == address]


class FakeRepository:
    """In-memory request store that counts calls and fails on request."""

    name = "fake"

    def __init__(self, fail_request=False, fail_services=False):
        self.fail_request = fail_request
        self.fail_services = fail_services
        self.requests = []
        self.services = []
        self.communications = []
        self.calls = []

    def create_request(self, record):
        from src.core.errors import PersistenceError
        self.calls.append("create_request")
        if self.fail_request:
            raise PersistenceError("Failed to save quote request", detail="insert refused")
        row = dict(record, id=f"req-{len(self.requests) + 1}",
                   request_number=f"QR202601{len(self.requests) + 1:04d}")
        self.requests.append(row)
        return row

    def add_services(self, quote_request_id, rows):
        from src.core.errors import PersistenceError
        self.calls.append("add_services")
        if self.fail_services:
            raise PersistenceError("Failed to save selected services", detail="fk violation")
        for r in rows:
            self.services.append(dict(r, quote_request_id=quote_request_id))
        return len(rows)

    def log_communication(self, quote_request_id, **entry):
        self.communications.append(dict(entry, quote_request_id=quote_request_id))
        return True


@pytest.fixture
def fake_sender(monkeypatch):
    """FakeSender wired in as the default email transport."""
    sender = FakeSender()
    from src.agents import notify_agent
    monkeypatch.setattr(notify_agent, "ResendSender", lambda *a, **kw: sender)
    return sender


@pytest.fixture
def fake_repo():
    return FakeRepository()


# ── Flask test client ─────────────────────────────────────────────────────────

@pytest.fixture
def app(temp_data_dir, fake_sender, monkeypatch):
    """Create Flask app configured for testing."""
    import logging_config
    monkeypatch.setattr(logging_config, "setup_logging", lambda *a, **kw: None)

    from app import create_app
    application = create_app()
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


# ── Sample data factories ─────────────────────────────────────────────────────

@pytest.fixture
def jane_form():
    """The reference submission: Jane Doe, Acme Corp, two services."""
    return {
        "name": "Jane Doe",
        "company": "Acme Corp",
        "email": "jane@acme.com",
        "phone": "",
        "budget": "5k-20k",
        "timeline": "1-3",
        "message": "",
    }


@pytest.fixture
def jane_services():
    return ["market-research", "logo-identity"]


@pytest.fixture
def sample_payload():
    """Notification payload as the submission pipeline builds it."""
    return {
        "name": "Jane Doe",
        "company": "Acme Corp",
        "email": "jane@acme.com",
        "phone": "+1 555 0100",
        "budget": "5k-20k",
        "timeline": "1-3",
        "message": "We need a full rebrand before Q3.",
        "selected_services": ["Market Research & Consumer Insights", "Logo & Identity"],
        "timestamp": "2026-01-15T14:30:00+00:00",
        "request_number": "QR2026010001",
    }
