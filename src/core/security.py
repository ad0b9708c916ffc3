"""
Security Middleware — Rate Limiting, CSRF, CORS, Security Headers
=================================================================
The intake endpoints are public, so every write path is throttled.

Rate Limiting:
- In-memory token bucket per IP address
- Configurable limits per endpoint group
- 429 response when exceeded

CSRF Protection:
- Token-based for the HTML form POST
- Tokens stored in Flask session
- JSON API is exempt (CORS-governed, no cookies needed)

CORS:
- /api/* answers any origin for POST + OPTIONS with Content-Type
"""

import os
import time
import secrets
import logging
import functools
from collections import defaultdict
from threading import Lock

from flask import request, session, jsonify

log = logging.getLogger("intake.security")

# ═══════════════════════════════════════════════════════════════════════════════
# Rate Limiting
# ═══════════════════════════════════════════════════════════════════════════════

class RateLimiter:
    """Simple in-memory rate limiter using token bucket algorithm."""

    def __init__(self):
        self._buckets = defaultdict(lambda: {"tokens": None, "last_refill": time.time()})
        self._lock = Lock()

    def check(self, key: str, max_tokens: int = 60, refill_rate: float = 1.0) -> bool:
        """Check if request is allowed. Returns True if allowed, False if rate limited.

        Args:
            key: Unique key for the bucket (usually IP + endpoint group)
            max_tokens: Maximum burst capacity
            refill_rate: Tokens added per second
        """
        with self._lock:
            bucket = self._buckets[key]
            now = time.time()
            if bucket["tokens"] is None:
                bucket["tokens"] = float(max_tokens)
            elapsed = now - bucket["last_refill"]

            bucket["tokens"] = min(max_tokens, bucket["tokens"] + elapsed * refill_rate)
            bucket["last_refill"] = now

            if bucket["tokens"] >= 1:
                bucket["tokens"] -= 1
                return True
            return False

    def cleanup(self, max_age: int = 3600):
        """Remove stale buckets older than max_age seconds."""
        now = time.time()
        with self._lock:
            stale = [k for k, v in self._buckets.items() if now - v["last_refill"] > max_age]
            for k in stale:
                del self._buckets[k]

    def reset(self):
        with self._lock:
            self._buckets.clear()


_limiter = RateLimiter()


RATE_LIMITS = {
    "default":  {"max_tokens": 60, "refill_rate": 2.0},   # 120/min
    "submit":   {"max_tokens": 5,  "refill_rate": 0.1},   # 6/min, quote submissions
    "email":    {"max_tokens": 10, "refill_rate": 0.2},   # 12/min, email proxy
}


def rate_limit(tier: str = "default"):
    """Decorator to apply rate limiting to a route."""
    def decorator(f):
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            if os.environ.get("DISABLE_RATE_LIMIT", "").lower() == "true":
                return f(*args, **kwargs)
            if request.method == "OPTIONS":
                return f(*args, **kwargs)

            ip = request.remote_addr or "unknown"
            key = f"{ip}:{tier}"
            limits = RATE_LIMITS.get(tier, RATE_LIMITS["default"])

            if not _limiter.check(key, **limits):
                log.warning("Rate limit exceeded: %s tier=%s", ip, tier,
                            extra={"route": request.path, "status": 429})
                return jsonify({"success": False,
                                "error": "Rate limit exceeded. Please try again shortly."}), 429

            return f(*args, **kwargs)
        return wrapper
    return decorator


# ═══════════════════════════════════════════════════════════════════════════════
# CSRF Protection
# ═══════════════════════════════════════════════════════════════════════════════

def generate_csrf_token() -> str:
    """Generate a CSRF token and store it in the session."""
    if "_csrf_token" not in session:
        session["_csrf_token"] = secrets.token_hex(32)
    return session["_csrf_token"]


def validate_csrf_token() -> bool:
    """Validate CSRF token from request header or form data."""
    expected = session.get("_csrf_token", "")
    if not expected:
        return False
    token = request.headers.get("X-CSRF-Token", "") or request.form.get("_csrf_token", "")
    return secrets.compare_digest(token, expected)


def csrf_protect(f):
    """Require a CSRF token on form POSTs. DISABLE_CSRF=true turns it off."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        if os.environ.get("DISABLE_CSRF", "").lower() == "true":
            return f(*args, **kwargs)

        if request.method == "POST" and not validate_csrf_token():
            log.warning("CSRF validation failed: %s %s from %s",
                        request.method, request.path, request.remote_addr)
            return jsonify({"success": False, "error": "CSRF validation failed"}), 403

        return f(*args, **kwargs)
    return wrapper


# ═══════════════════════════════════════════════════════════════════════════════
# CORS + Security Headers
# ═══════════════════════════════════════════════════════════════════════════════

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def add_cors_headers(response):
    """Open the JSON API to browser callers on any origin."""
    if request.path.startswith("/api/"):
        for k, v in CORS_HEADERS.items():
            response.headers[k] = v
    return response


def add_security_headers(response):
    """Add security headers to every response."""
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "SAMEORIGIN"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if not response.headers.get("Cache-Control"):
        response.headers["Cache-Control"] = "no-store"
    return response


def init_security(app):
    """Initialize security middleware on the Flask app."""
    app.after_request(add_cors_headers)
    app.after_request(add_security_headers)
    app.jinja_env.globals["csrf_token"] = generate_csrf_token
    log.info("Security middleware initialized: rate limiting, CSRF, CORS, security headers")
