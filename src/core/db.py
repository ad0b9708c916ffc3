"""
src/core/db.py — Persistent SQLite Database Layer

WHY THIS EXISTS:
  The default request store is a single SQLite file under DATA_DIR. It carries
  the same quote_requests / quote_request_services schema as the hosted
  Postgres database, so the intake flow behaves the same whichever store
  REQUEST_STORE selects.

TABLES:
  service_categories     — catalog categories mirrored from src/core/catalog.py
  services               — catalog services mirrored from src/core/catalog.py
  quote_requests         — one row per submitted quote request
  quote_request_services — one row per selected service per request (title snapshot)
  communication_logs     — every notification email attempt per request
"""

import os
import json
import uuid
import sqlite3
import logging
import threading
from datetime import datetime
from contextlib import contextmanager

from src.core.paths import DATA_DIR, DB_FILENAME

log = logging.getLogger("intake.db")

DB_PATH = os.path.join(DATA_DIR, DB_FILENAME)

_db_lock = threading.Lock()


# ── Connection factory ────────────────────────────────────────────────────────
@contextmanager
def get_db():
    """Thread-safe SQLite connection. Commits on success, rolls back on error."""
    with _db_lock:
        os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)
        conn = sqlite3.connect(DB_PATH, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


# ── Schema ────────────────────────────────────────────────────────────────────
SCHEMA = """
CREATE TABLE IF NOT EXISTS service_categories (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL UNIQUE,
    description     TEXT,
    display_order   INTEGER DEFAULT 0,
    is_active       INTEGER DEFAULT 1,
    created_at      TEXT NOT NULL,
    updated_at      TEXT
);

CREATE TABLE IF NOT EXISTS services (
    id              TEXT PRIMARY KEY,
    category_id     TEXT NOT NULL REFERENCES service_categories(id) ON DELETE CASCADE,
    name            TEXT NOT NULL,
    description     TEXT,
    display_order   INTEGER DEFAULT 0,
    is_active       INTEGER DEFAULT 1,
    created_at      TEXT NOT NULL,
    updated_at      TEXT
);

CREATE INDEX IF NOT EXISTS idx_services_category_id ON services(category_id);

CREATE TABLE IF NOT EXISTS quote_requests (
    id              TEXT PRIMARY KEY,
    request_number  TEXT UNIQUE NOT NULL,
    name            TEXT NOT NULL,
    company         TEXT,
    email           TEXT NOT NULL,
    phone           TEXT,
    budget_range    TEXT,
    timeline        TEXT,
    message         TEXT,
    status          TEXT DEFAULT 'pending',
    created_at      TEXT NOT NULL,
    updated_at      TEXT
);

CREATE INDEX IF NOT EXISTS idx_quote_requests_status ON quote_requests(status);
CREATE INDEX IF NOT EXISTS idx_quote_requests_email ON quote_requests(email);
CREATE INDEX IF NOT EXISTS idx_quote_requests_created_at ON quote_requests(created_at);

CREATE TABLE IF NOT EXISTS quote_request_services (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    quote_request_id    TEXT NOT NULL REFERENCES quote_requests(id) ON DELETE CASCADE,
    service_id          TEXT REFERENCES services(id) ON DELETE SET NULL,
    service_name        TEXT NOT NULL,  -- title at submission time
    custom_description  TEXT,
    estimated_price     REAL,
    final_price         REAL,
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_qrs_quote_id ON quote_request_services(quote_request_id);

CREATE TABLE IF NOT EXISTS communication_logs (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    quote_request_id    TEXT NOT NULL REFERENCES quote_requests(id) ON DELETE CASCADE,
    communication_type  TEXT NOT NULL,  -- email|phone|meeting|internal_note
    direction           TEXT NOT NULL,  -- inbound|outbound|internal
    subject             TEXT,
    content             TEXT,
    sender_email        TEXT,
    recipient_email     TEXT,
    created_at          TEXT NOT NULL,
    metadata            TEXT            -- JSON: channel, email id, error
);

CREATE INDEX IF NOT EXISTS idx_comm_logs_quote ON communication_logs(quote_request_id);
"""


def init_db():
    """Create all tables if they don't exist. Safe to call multiple times."""
    with get_db() as conn:
        conn.executescript(SCHEMA)
    log.info("DB initialized at %s", DB_PATH)
    return True


# ── Request numbers ───────────────────────────────────────────────────────────
def next_request_number(conn, now: datetime = None) -> str:
    """QR{YYYYMM}{seq:04d} — sequence restarts every calendar month."""
    now = now or datetime.now()
    prefix = "QR" + now.strftime("%Y%m")
    row = conn.execute(
        "SELECT request_number FROM quote_requests WHERE request_number LIKE ? "
        "ORDER BY length(request_number) DESC, request_number DESC LIMIT 1",
        (prefix + "%",)).fetchone()
    seq = 1
    if row:
        try:
            seq = int(row["request_number"][len(prefix):]) + 1
        except ValueError:
            seq = conn.execute(
                "SELECT COUNT(*) FROM quote_requests WHERE request_number LIKE ?",
                (prefix + "%",)).fetchone()[0] + 1
    return f"{prefix}{seq:04d}"


# ── Quote request operations ──────────────────────────────────────────────────
NUMBER_ATTEMPTS = 3


def insert_quote_request(req: dict) -> dict:
    """Insert one quote request. Generates id and request number when absent.

    A generated number that collides with a row written by another process
    is regenerated, up to NUMBER_ATTEMPTS times. Returns the stored row as a
    dict. Raises sqlite3.Error on failure.
    """
    attempts = 1 if req.get("request_number") else NUMBER_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            return _insert_quote_request(req)
        except sqlite3.IntegrityError as e:
            if attempt == attempts or "request_number" not in str(e):
                raise
            log.warning("Request number collision (attempt %d/%d): %s", attempt, attempts, e)


def _insert_quote_request(req: dict) -> dict:
    now = datetime.now()
    with get_db() as conn:
        # Take the write lock before reading the month's last number
        conn.execute("BEGIN IMMEDIATE")
        number = req.get("request_number") or next_request_number(conn, now)
        row = {
            "id": req.get("id") or uuid.uuid4().hex,
            "request_number": number,
            "name": req.get("name"),
            "company": req.get("company") or None,
            "email": req.get("email"),
            "phone": req.get("phone") or None,
            "budget_range": req.get("budget_range") or None,
            "timeline": req.get("timeline") or None,
            "message": req.get("message") or None,
            "status": req.get("status", "pending"),
            "created_at": req.get("created_at") or now.isoformat(),
            "updated_at": now.isoformat(),
        }
        conn.execute("""
            INSERT INTO quote_requests
              (id, request_number, name, company, email, phone, budget_range,
               timeline, message, status, created_at, updated_at)
            VALUES (:id, :request_number, :name, :company, :email, :phone,
                    :budget_range, :timeline, :message, :status, :created_at,
                    :updated_at)
        """, row)
    log.info("Quote request stored: %s (%s)", number, row["id"],
             extra={"request_number": number, "request_id": row["id"]})
    return row


def insert_quote_request_services(quote_request_id: str, rows: list) -> int:
    """Insert service rows for a request in one transaction. Returns count."""
    now = datetime.now().isoformat()
    with get_db() as conn:
        known = {r["id"] for r in conn.execute("SELECT id FROM services").fetchall()}
        for r in rows:
            sid = r.get("service_id")
            conn.execute("""
                INSERT INTO quote_request_services
                  (quote_request_id, service_id, service_name, custom_description,
                   estimated_price, final_price, created_at)
                VALUES (?,?,?,?,?,?,?)
            """, (
                quote_request_id,
                sid if sid in known else None,
                r["service_name"],
                r.get("custom_description"),
                r.get("estimated_price"),
                r.get("final_price"),
                now,
            ))
    return len(rows)


def get_quote_request(key: str) -> dict | None:
    """Fetch a request by id or request number, with its service rows."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM quote_requests WHERE id=? OR request_number=?",
            (key, key)).fetchone()
        if not row:
            return None
        d = dict(row)
        d["services"] = [dict(s) for s in conn.execute(
            "SELECT * FROM quote_request_services WHERE quote_request_id=? ORDER BY id",
            (d["id"],)).fetchall()]
    return d


def list_quote_requests(status: str = None, limit: int = 100) -> list:
    """Newest first."""
    with get_db() as conn:
        if status:
            rows = conn.execute(
                "SELECT * FROM quote_requests WHERE status=? ORDER BY created_at DESC LIMIT ?",
                (status, limit)).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM quote_requests ORDER BY created_at DESC LIMIT ?",
                (limit,)).fetchall()
    return [dict(r) for r in rows]


# ── Communication log ─────────────────────────────────────────────────────────
def log_communication(quote_request_id: str, subject: str, sender: str,
                      recipient: str, status: str, metadata: dict = None,
                      communication_type: str = "email",
                      direction: str = "outbound") -> bool:
    try:
        with get_db() as conn:
            conn.execute("""
                INSERT INTO communication_logs
                  (quote_request_id, communication_type, direction, subject,
                   content, sender_email, recipient_email, created_at, metadata)
                VALUES (?,?,?,?,?,?,?,?,?)
            """, (quote_request_id, communication_type, direction, subject,
                  status, sender, recipient, datetime.now().isoformat(),
                  json.dumps(metadata or {}, default=str)))
        return True
    except Exception as e:
        log.warning("log_communication %s: %s", quote_request_id, e)
        return False


def get_communications(quote_request_id: str) -> list:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM communication_logs WHERE quote_request_id=? ORDER BY id",
            (quote_request_id,)).fetchall()
    out = []
    for r in rows:
        d = dict(r)
        try:
            d["metadata"] = json.loads(d.get("metadata") or "{}")
        except (TypeError, ValueError):
            pass
        out.append(d)
    return out


def get_db_stats() -> dict:
    stats = {}
    with get_db() as conn:
        for table in ("quote_requests", "quote_request_services",
                      "communication_logs", "services"):
            try:
                stats[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            except sqlite3.Error:
                stats[table] = 0
    return stats


def startup() -> dict:
    """Called once from create_app(): schema, catalog mirror, stats."""
    init_db()
    from src.core.catalog import init_catalog
    init_catalog()
    return {"db_path": DB_PATH, "stats": get_db_stats()}
