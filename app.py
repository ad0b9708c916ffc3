#!/usr/bin/env python3
"""
OneShopCentrale Quote Intake — Application Entry Point
Creates the Flask app and registers the intake Blueprint.
"""

import os
import logging
from flask import Flask

log = logging.getLogger("intake")


def create_app(init_storage: bool = True):
    """Application factory."""
    from logging_config import setup_logging
    setup_logging()

    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY", "oneshopcentrale-intake-dev")

    # ── Paths + secrets ───────────────────────────────────────────────────────
    from src.core.paths import validate_paths
    paths = validate_paths()
    for err in paths["errors"]:
        log.error("PATHS: %s", err)
    for warn in paths["warnings"]:
        log.warning("PATHS: %s", warn)

    from src.core.secrets import startup_check
    startup_check()

    # ── Persistent database init (schema + catalog mirror) ────────────────────
    if init_storage:
        try:
            from src.core.db import startup as db_startup
            result = db_startup()
            log.info("DB: %s | requests=%d services=%d",
                     result["db_path"],
                     result["stats"].get("quote_requests", 0),
                     result["stats"].get("services", 0))
        except Exception as e:
            log.warning("DB init skipped: %s", e)

    from src.api.dashboard import bp
    app.register_blueprint(bp)

    # ── Security middleware (rate limiting, CSRF, CORS, headers) ──────────────
    from src.core.security import init_security
    init_security(app)

    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, debug=False)
