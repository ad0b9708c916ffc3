"""
secrets.py — Centralized Secret & Config Management for the intake service

Single source of truth for every credential and env-driven setting.

Env vars:
  SUPABASE_URL               — Hosted Postgres project URL (REQUEST_STORE=supabase)
  SUPABASE_SERVICE_ROLE_KEY  — Service-role key for the REST API
  SUPABASE_CLIENT_NUMBERS    — "true" to send REQ-{ms} numbers instead of the DB trigger's
  RESEND_API_KEY             — Email API key (notifications are skipped without it)
  FROM_EMAIL                 — Sender address (default noreply@example.com)
  ADMIN_EMAIL                — Internal recipient of new-request alerts
  REQUEST_STORE              — sqlite (default) | supabase
  SECRET_KEY                 — Flask session signing key

Security:
  - Keys are never logged in full (masked to first 8 chars)
  - Health endpoint shows which keys are set (not values)
  - Validate on startup — warn loudly about missing keys
"""

import os
import logging

log = logging.getLogger("secrets")

# ─── Secret Definitions ─────────────────────────────────────────────────────

_REGISTRY = {
    # Request store
    "request_store": {
        "env": "REQUEST_STORE",
        "required": False,
        "desc": "Request store backend — sqlite | supabase",
        "used_by": ["request_store"],
        "default": "sqlite",
    },
    "supabase_url": {
        "env": "SUPABASE_URL",
        "required": False,
        "desc": "Supabase project URL",
        "used_by": ["request_store"],
    },
    "supabase_service_key": {
        "env": "SUPABASE_SERVICE_ROLE_KEY",
        "required": False,
        "desc": "Supabase service-role key",
        "used_by": ["request_store"],
        "sensitive": True,
    },
    "supabase_client_numbers": {
        "env": "SUPABASE_CLIENT_NUMBERS",
        "required": False,
        "desc": "Send client-side REQ- numbers instead of the DB trigger's",
        "used_by": ["request_store"],
        "default": "false",
    },
    # Email
    "resend_api_key": {
        "env": "RESEND_API_KEY",
        "required": True,
        "desc": "Resend email API key",
        "used_by": ["notify", "send_email"],
        "sensitive": True,
    },
    "from_email": {
        "env": "FROM_EMAIL",
        "required": False,
        "desc": "Sender address for outbound email",
        "used_by": ["notify", "send_email"],
        "default": "noreply@example.com",
    },
    "admin_email": {
        "env": "ADMIN_EMAIL",
        "required": False,
        "desc": "Recipient of new quote request alerts",
        "used_by": ["notify"],
        "default": "admin@example.com",
    },
    "email_proxy_token": {
        "env": "EMAIL_PROXY_TOKEN",
        "required": False,
        "desc": "When set, /api/send-email requires it in X-Proxy-Token",
        "used_by": ["send_email"],
        "sensitive": True,
    },
    # Web
    "secret_key": {
        "env": "SECRET_KEY",
        "required": False,
        "desc": "Flask session signing key",
        "used_by": ["web"],
        "sensitive": True,
    },
}


# ─── Public API ──────────────────────────────────────────────────────────────

def get_key(name: str) -> str:
    """Get a secret value by registry name. Returns empty string if not set."""
    entry = _REGISTRY.get(name)
    if not entry:
        log.warning("Unknown secret requested: %s", name)
        return ""

    val = os.environ.get(entry["env"], "")
    if not val and "default" in entry:
        val = entry["default"]
    return val


def mask(value: str) -> str:
    """Mask a secret for safe logging. Shows first 8 chars."""
    if not value:
        return "(not set)"
    if len(value) <= 12:
        return value[:4] + "****"
    return value[:8] + "****" + f"({len(value)} chars)"


def validate_all() -> dict:
    """Validate all secrets. Returns status report."""
    results = {}
    warnings = []
    for name, entry in _REGISTRY.items():
        val = get_key(name)
        is_set = bool(val)
        results[name] = {
            "set": is_set,
            "env": entry["env"],
            "desc": entry["desc"],
            "masked": mask(val) if not entry.get("sensitive") else ("set" if is_set else "not set"),
            "required": entry.get("required", False),
            "used_by": entry["used_by"],
        }
        if entry.get("required") and not is_set:
            warnings.append(f"REQUIRED secret missing: {entry['env']} ({entry['desc']})")

    if get_key("request_store").lower() == "supabase":
        for name in ("supabase_url", "supabase_service_key"):
            if not results[name]["set"]:
                warnings.append(f"REQUEST_STORE=supabase but {results[name]['env']} is not set")

    return {
        "secrets": results,
        "total": len(results),
        "set": sum(1 for r in results.values() if r["set"]),
        "missing": sum(1 for r in results.values() if not r["set"]),
        "warnings": warnings,
    }


def startup_check():
    """Run on startup. Logs warnings for missing critical secrets."""
    report = validate_all()
    log.info("Secrets: %d/%d configured", report["set"], report["total"])
    for w in report["warnings"]:
        log.warning("SECRET: %s", w)
    log.info("Request store: %s", get_key("request_store"))
    return report
