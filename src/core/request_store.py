"""
Request repository — where submitted quote requests are persisted.

One interface, two stores:
  SqliteRequestStore    — local SQLite file (src/core/db.py), default
  SupabaseRequestStore  — hosted Postgres through the Supabase REST API

Both take the same contact dict and service rows and both raise
PersistenceError on failure, so the submission pipeline never needs to know
which one is active. Pick with REQUEST_STORE=sqlite|supabase.
"""

import time
import sqlite3
import logging

import requests

from src.core.errors import PersistenceError

log = logging.getLogger("intake.store")

REQUEST_COLUMNS = ("name", "company", "email", "phone",
                   "budget_range", "timeline", "message")


def fallback_request_number() -> str:
    """Client-side REQ-{epoch ms} number, used when the database assigns none."""
    return f"REQ-{int(time.time() * 1000)}"


class RequestRepository:
    """Interface for request persistence."""

    name = "base"

    def create_request(self, record: dict) -> dict:
        """Insert one quote_requests row. Returns it with id + request_number."""
        raise NotImplementedError

    def add_services(self, quote_request_id: str, rows: list) -> int:
        """Insert quote_request_services rows. Returns how many were written."""
        raise NotImplementedError

    def log_communication(self, quote_request_id: str, **entry) -> bool:
        """Record a notification attempt. Stores without a log table return False."""
        return False


# ═══════════════════════════════════════════════════════════════════════════════
# SQLite
# ═══════════════════════════════════════════════════════════════════════════════

class SqliteRequestStore(RequestRepository):
    name = "sqlite"

    def create_request(self, record: dict) -> dict:
        from src.core import db
        try:
            return db.insert_quote_request(record)
        except sqlite3.Error as e:
            raise PersistenceError("Failed to save quote request", detail=str(e)) from e

    def add_services(self, quote_request_id: str, rows: list) -> int:
        from src.core import db
        try:
            return db.insert_quote_request_services(quote_request_id, rows)
        except sqlite3.Error as e:
            raise PersistenceError("Failed to save selected services", detail=str(e)) from e

    def log_communication(self, quote_request_id: str, **entry) -> bool:
        from src.core import db
        return db.log_communication(quote_request_id, **entry)


# ═══════════════════════════════════════════════════════════════════════════════
# Supabase (PostgREST)
# ═══════════════════════════════════════════════════════════════════════════════

class SupabaseRequestStore(RequestRepository):
    """Writes through https://<project>.supabase.co/rest/v1 with the service key.

    The database trigger set_quote_request_number fills request_number as
    QR{YYYYMM}{seq:04d}. With client_numbers=True the store sends REQ-{ms}
    itself instead.
    """

    name = "supabase"

    def __init__(self, url: str, key: str, client_numbers: bool = False,
                 timeout: float = 15.0, session: requests.Session = None):
        if not url or not key:
            raise PersistenceError("Supabase store is not configured",
                                   detail="SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY missing")
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.client_numbers = client_numbers
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        })

    def _post(self, table: str, body, failure: str):
        try:
            resp = self.session.post(f"{self.base_url}/{table}", json=body,
                                     timeout=self.timeout)
        except requests.RequestException as e:
            raise PersistenceError(failure, detail=str(e)) from e
        if not resp.ok:
            raise PersistenceError(failure, detail=f"{resp.status_code} {resp.text[:500]}")
        try:
            return resp.json()
        except ValueError:
            return []

    def create_request(self, record: dict) -> dict:
        body = {k: (record.get(k) or None) for k in REQUEST_COLUMNS}
        body["status"] = record.get("status", "pending")
        if self.client_numbers:
            body["request_number"] = record.get("request_number") or fallback_request_number()
        data = self._post("quote_requests", body, "Failed to save quote request")
        row = data[0] if isinstance(data, list) and data else data
        if not isinstance(row, dict) or not row.get("id"):
            raise PersistenceError("Failed to save quote request",
                                   detail=f"unexpected insert response: {str(data)[:200]}")
        if not row.get("request_number"):
            row["request_number"] = body.get("request_number") or fallback_request_number()
            log.warning("Supabase returned no request_number for %s — using %s",
                        row["id"], row["request_number"])
        return row

    def add_services(self, quote_request_id: str, rows: list) -> int:
        if not rows:
            return 0
        body = [{
            "quote_request_id": quote_request_id,
            "service_name": r["service_name"],
            "custom_description": r.get("custom_description"),
            "estimated_price": r.get("estimated_price"),
            "final_price": r.get("final_price"),
        } for r in rows]
        self._post("quote_request_services", body, "Failed to save selected services")
        return len(body)

    def log_communication(self, quote_request_id: str, subject: str = "",
                          sender: str = "", recipient: str = "", status: str = "",
                          metadata: dict = None, communication_type: str = "email",
                          direction: str = "outbound") -> bool:
        try:
            self._post("communication_logs", {
                "quote_request_id": quote_request_id,
                "communication_type": communication_type,
                "direction": direction,
                "subject": subject,
                "content": status,
                "sender_email": sender,
                "recipient_email": recipient,
                "metadata": metadata or {},
            }, "Failed to log communication")
            return True
        except PersistenceError as e:
            log.warning("communication log %s: %s", quote_request_id, e.detail)
            return False


# ═══════════════════════════════════════════════════════════════════════════════
# Factory
# ═══════════════════════════════════════════════════════════════════════════════

def get_repository() -> RequestRepository:
    """Store selected by REQUEST_STORE (sqlite default)."""
    from src.core.secrets import get_key
    kind = (get_key("request_store") or "sqlite").lower()
    if kind == "supabase":
        return SupabaseRequestStore(
            get_key("supabase_url"),
            get_key("supabase_service_key"),
            client_numbers=get_key("supabase_client_numbers").lower() in ("1", "true", "yes"),
        )
    if kind != "sqlite":
        log.warning("Unknown REQUEST_STORE=%s — falling back to sqlite", kind)
    return SqliteRequestStore()
