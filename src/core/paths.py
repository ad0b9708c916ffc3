"""
src/core/paths.py — Centralized Path Configuration

Single source of truth for all directory paths in the intake service.
Every module imports from here instead of computing its own DATA_DIR.

INTAKE_DATA_DIR overrides the location (mounted volume in production);
local dev falls back to the git-ignored data/ folder at the project root.
"""

import os
import logging

log = logging.getLogger("intake.paths")

# ── Project Root ──────────────────────────────────────────────────────────────
_THIS_FILE = os.path.abspath(__file__)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(_THIS_FILE)))

_LOCAL_DATA_DIR = os.path.join(PROJECT_ROOT, "data")


def _resolve_data_dir() -> str:
    """Find the best persistent data directory."""
    env_dir = os.environ.get("INTAKE_DATA_DIR", "")
    if env_dir:
        return env_dir
    return _LOCAL_DATA_DIR


DATA_DIR = _resolve_data_dir()
LOG_DIR = os.path.join(DATA_DIR, "logs")

# ── Key File Paths ───────────────────────────────────────────────────────────
DB_FILENAME = "quote_intake.db"
DB_PATH = os.path.join(DATA_DIR, DB_FILENAME)

os.makedirs(DATA_DIR, exist_ok=True)


def validate_paths() -> dict:
    """Runtime validation — call at app startup to catch path issues early.

    Returns:
        {"ok": bool, "errors": [str], "warnings": [str], "resolved": {name: path}}
    """
    result = {"ok": True, "errors": [], "warnings": [], "resolved": {}}

    for name, path in (("PROJECT_ROOT", PROJECT_ROOT),
                       ("DATA_DIR", DATA_DIR)):
        result["resolved"][name] = path
        if not os.path.isdir(path):
            result["errors"].append(f"{name} not found: {path}")
            result["ok"] = False

    test_file = os.path.join(DATA_DIR, ".write_test")
    try:
        with open(test_file, "w") as f:
            f.write("ok")
        os.remove(test_file)
    except OSError as e:
        result["errors"].append(f"DATA_DIR not writable: {e}")
        result["ok"] = False

    if DATA_DIR == _LOCAL_DATA_DIR and os.environ.get("REQUEST_STORE", "sqlite") == "sqlite":
        result["warnings"].append(
            "SQLite store lives in the project data/ folder. "
            "Set INTAKE_DATA_DIR to a persistent volume in production.")

    return result
