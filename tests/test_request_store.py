"""Tests for the SQLite data layer and both request stores."""

import os
import sys
from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


class TestRequestNumbers:
    def test_first_of_month(self):
        from src.core.db import get_db, next_request_number
        with get_db() as conn:
            assert next_request_number(conn, datetime(2026, 3, 9)) == "QR2026030001"

    def test_increments_within_month(self):
        from src.core import db
        first = db.insert_quote_request({"name": "A", "email": "a@x.co"})
        second = db.insert_quote_request({"name": "B", "email": "b@x.co"})
        assert first["request_number"][:8] == second["request_number"][:8]
        assert int(second["request_number"][8:]) == int(first["request_number"][8:]) + 1

    def test_sequence_restarts_next_month(self):
        from src.core import db
        db.insert_quote_request({"name": "A", "email": "a@x.co",
                                 "request_number": "QR2026020007"})
        with db.get_db() as conn:
            assert db.next_request_number(conn, datetime(2026, 2, 28)) == "QR2026020008"
            assert db.next_request_number(conn, datetime(2026, 3, 1)) == "QR2026030001"

    def test_collision_from_another_writer_is_retried(self, monkeypatch):
        from src.core import db
        taken = db.insert_quote_request({"name": "A", "email": "a@x.co"})["request_number"]
        real = db.next_request_number
        calls = []

        def stale_then_real(conn, now=None):
            calls.append(now)
            return taken if len(calls) == 1 else real(conn, now)
        monkeypatch.setattr(db, "next_request_number", stale_then_real)

        row = db.insert_quote_request({"name": "B", "email": "b@x.co"})
        assert len(calls) == 2
        assert row["request_number"] != taken
        assert len(db.list_quote_requests()) == 2

    def test_explicit_duplicate_number_is_not_retried(self):
        import sqlite3
        from src.core import db
        db.insert_quote_request({"name": "A", "email": "a@x.co", "request_number": "QR2026050001"})
        with pytest.raises(sqlite3.IntegrityError):
            db.insert_quote_request({"name": "B", "email": "b@x.co",
                                     "request_number": "QR2026050001"})
        assert len(db.list_quote_requests()) == 1


class TestSqliteLayer:
    def test_insert_and_fetch(self):
        from src.core import db
        row = db.insert_quote_request({"name": "Jane", "email": "jane@acme.com",
                                       "company": "", "budget_range": "<5k"})
        assert row["status"] == "pending"
        assert row["company"] is None
        n = db.insert_quote_request_services(row["id"], [
            {"service_id": "seo", "service_name": "SEO & Listing Optimization"},
            {"service_id": "ghost", "service_name": "ghost"},
        ])
        assert n == 2
        stored = db.get_quote_request(row["request_number"])
        assert stored["budget_range"] == "<5k"
        assert [s["service_id"] for s in stored["services"]] == ["seo", None]

    def test_missing_request_returns_none(self):
        from src.core import db
        assert db.get_quote_request("QR000000000") is None

    def test_list_filters_by_status(self):
        from src.core import db
        db.insert_quote_request({"name": "A", "email": "a@x.co"})
        db.insert_quote_request({"name": "B", "email": "b@x.co", "status": "quoted"})
        assert len(db.list_quote_requests()) == 2
        assert [r["name"] for r in db.list_quote_requests(status="quoted")] == ["B"]

    def test_log_communication_roundtrip(self):
        from src.core import db
        row = db.insert_quote_request({"name": "A", "email": "a@x.co"})
        assert db.log_communication(row["id"], "Subj", "from@x.co", "to@x.co", "sent",
                                    metadata={"channel": "admin"})
        comms = db.get_communications(row["id"])
        assert comms[0]["metadata"] == {"channel": "admin"}
        assert comms[0]["direction"] == "outbound"

    def test_log_communication_swallows_fk_error(self):
        from src.core import db
        assert db.log_communication("no-such-request", "S", "f", "t", "sent") is False

    def test_stats(self):
        from src.core import db
        stats = db.get_db_stats()
        assert stats["quote_requests"] == 0
        assert stats["services"] > 40


class TestSqliteRequestStore:
    def test_wraps_sqlite_errors(self, monkeypatch):
        import sqlite3
        from src.core import db
        from src.core.errors import PersistenceError
        from src.core.request_store import SqliteRequestStore

        def broken(req):
            raise sqlite3.OperationalError("database is locked")
        monkeypatch.setattr(db, "insert_quote_request", broken)
        with pytest.raises(PersistenceError) as exc:
            SqliteRequestStore().create_request({"name": "A", "email": "a@x.co"})
        assert exc.value.message == "Failed to save quote request"
        assert "locked" in exc.value.detail

    def test_services_fk_violation(self):
        from src.core.errors import PersistenceError
        from src.core.request_store import SqliteRequestStore
        with pytest.raises(PersistenceError) as exc:
            SqliteRequestStore().add_services("missing-id", [{"service_name": "X"}])
        assert exc.value.message == "Failed to save selected services"


def _resp(status=201, body=None, text=""):
    r = MagicMock()
    r.ok = 200 <= status < 300
    r.status_code = status
    r.text = text
    r.json.return_value = body
    return r


class TestSupabaseRequestStore:
    def _store(self, **kw):
        from src.core.request_store import SupabaseRequestStore
        session = MagicMock()
        session.headers = {}
        return SupabaseRequestStore("https://proj.supabase.co/", "service-key",
                                    session=session, **kw), session

    def test_requires_config(self):
        from src.core.errors import PersistenceError
        from src.core.request_store import SupabaseRequestStore
        with pytest.raises(PersistenceError):
            SupabaseRequestStore("", "")

    def test_create_request_posts_representation(self):
        store, session = self._store()
        session.post.return_value = _resp(body=[{"id": "uuid-1", "request_number": "QR2026010003"}])
        row = store.create_request({"name": "Jane", "email": "jane@acme.com", "company": ""})
        assert row["request_number"] == "QR2026010003"
        url = session.post.call_args[0][0]
        body = session.post.call_args[1]["json"]
        assert url == "https://proj.supabase.co/rest/v1/quote_requests"
        assert body["company"] is None
        assert body["status"] == "pending"
        assert "request_number" not in body
        assert session.headers["Prefer"] == "return=representation"
        assert session.headers["Authorization"] == "Bearer service-key"

    def test_missing_number_falls_back_to_req(self):
        store, session = self._store()
        session.post.return_value = _resp(body=[{"id": "uuid-1"}])
        row = store.create_request({"name": "Jane", "email": "jane@acme.com"})
        assert row["request_number"].startswith("REQ-")

    def test_client_numbers_sent_when_enabled(self):
        store, session = self._store(client_numbers=True)
        session.post.return_value = _resp(body=[{"id": "uuid-1", "request_number": "REQ-1"}])
        store.create_request({"name": "Jane", "email": "jane@acme.com"})
        assert session.post.call_args[1]["json"]["request_number"].startswith("REQ-")

    def test_http_error_becomes_persistence_error(self):
        from src.core.errors import PersistenceError
        store, session = self._store()
        session.post.return_value = _resp(409, text="duplicate key")
        with pytest.raises(PersistenceError) as exc:
            store.create_request({"name": "Jane", "email": "jane@acme.com"})
        assert "409" in exc.value.detail

    def test_network_error_becomes_persistence_error(self):
        from src.core.errors import PersistenceError
        store, session = self._store()
        session.post.side_effect = requests.Timeout("slow")
        with pytest.raises(PersistenceError):
            store.add_services("uuid-1", [{"service_name": "X"}])

    def test_add_services_payload(self):
        store, session = self._store()
        session.post.return_value = _resp(body=[])
        n = store.add_services("uuid-1", [
            {"service_id": "seo", "service_name": "SEO & Listing Optimization",
             "custom_description": "marketplaces"}])
        assert n == 1
        body = session.post.call_args[1]["json"]
        assert body == [{"quote_request_id": "uuid-1",
                         "service_name": "SEO & Listing Optimization",
                         "custom_description": "marketplaces",
                         "estimated_price": None, "final_price": None}]

    def test_log_communication_never_raises(self):
        store, session = self._store()
        session.post.return_value = _resp(500, text="boom")
        assert store.log_communication("uuid-1", subject="s", status="sent") is False


class TestGetRepository:
    def test_default_is_sqlite(self):
        from src.core.request_store import SqliteRequestStore, get_repository
        assert isinstance(get_repository(), SqliteRequestStore)

    def test_supabase_selected_by_env(self, monkeypatch):
        from src.core.request_store import SupabaseRequestStore, get_repository
        monkeypatch.setenv("REQUEST_STORE", "supabase")
        monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "key")
        repo = get_repository()
        assert isinstance(repo, SupabaseRequestStore)
        assert repo.base_url == "https://proj.supabase.co/rest/v1"

    def test_unknown_store_falls_back(self, monkeypatch):
        from src.core.request_store import SqliteRequestStore, get_repository
        monkeypatch.setenv("REQUEST_STORE", "mongo")
        assert isinstance(get_repository(), SqliteRequestStore)
