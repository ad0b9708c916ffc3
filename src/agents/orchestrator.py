"""
orchestrator.py — LangGraph Submission Pipeline for quote requests

One workflow, four nodes:

  validate → save_request → save_services → notify → END

Every node records itself in steps_completed. A node that sets `error`
routes the graph straight to END, so a failed request insert never writes
service rows and a failed service insert never sends email. Notification
failures are logged and never turn a saved request into a failure.

submit_quote_request() is the entry point; it always returns an outcome dict
and never raises:

  {"ok", "message", "error_kind", "field_errors", "request_number",
   "request_id", "notification", "steps", "duration_ms"}
"""

import re
import logging
from datetime import datetime, timezone
from typing import Any, TypedDict, Optional

from langgraph.graph import StateGraph, END

from src.core.catalog import BUDGET_OPTIONS, TIMELINE_OPTIONS, service_title
from src.core.errors import IntakeError, PersistenceError

log = logging.getLogger("orchestrator")

MSG_SUCCESS = "Request sent successfully. Our team will contact you shortly."
MSG_INVALID = "Please provide your name, email and select at least one service."
MSG_FALLBACK = "We couldn't submit your request. Try again later."
MSG_NO_SERVICES = "At least one service must be selected"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ─── Workflow State ──────────────────────────────────────────────────────────

class SubmissionState(TypedDict, total=False):
    """State for one quote request submission."""
    form: dict
    service_ids: list
    descriptions: dict
    strict: bool
    repository: Any
    notifier: Any
    field_errors: dict
    request: dict
    services_saved: int
    payload: dict
    notification: dict
    error: str
    error_kind: str
    steps_completed: list
    started_at: str
    completed_at: str


# ─── Utility ─────────────────────────────────────────────────────────────────

def _step(state: dict, name: str) -> dict:
    """Record a completed step."""
    steps = state.get("steps_completed", [])
    steps.append({"step": name, "timestamp": datetime.now().isoformat()})
    state["steps_completed"] = steps
    return state


def _fail(state: dict, kind: str, message: str, step: str) -> dict:
    state["error"] = message or MSG_FALLBACK
    state["error_kind"] = kind
    return _step(state, step)


def _should_continue(state: SubmissionState) -> str:
    """Router: continue or end on error."""
    if state.get("error"):
        return END
    return "next"


def validate_submission(form: dict, service_ids: list, strict: bool = False) -> dict:
    """Field-level problems, keyed by field. Empty dict means valid.

    strict adds the email shape check and budget/timeline enum checks used
    by the JSON API.
    """
    errors = {}
    name = (form.get("name") or "").strip()
    email = (form.get("email") or "").strip()
    if not name:
        errors["name"] = "Name is required"
    if not email:
        errors["email"] = "Email is required"
    elif strict and not EMAIL_RE.match(email):
        errors["email"] = "Valid email address is required"
    if not service_ids:
        errors["services"] = MSG_NO_SERVICES
    elif not all(isinstance(sid, str) and sid.strip() for sid in service_ids):
        errors["services"] = "Service ids must be non-empty strings"
    if strict:
        budget = form.get("budget") or ""
        if budget and budget not in dict(BUDGET_OPTIONS):
            errors["budget"] = f"Unknown budget range: {budget}"
        timeline = form.get("timeline") or ""
        if timeline and timeline not in dict(TIMELINE_OPTIONS):
            errors["timeline"] = f"Unknown timeline: {timeline}"
    return errors


# ═════════════════════════════════════════════════════════════════════════════
# Submission Pipeline: Validate → Save request → Save services → Notify
# ═════════════════════════════════════════════════════════════════════════════

def _validate_node(state: SubmissionState) -> SubmissionState:
    state["started_at"] = datetime.now().isoformat()
    state["steps_completed"] = []
    errors = validate_submission(state.get("form", {}), state.get("service_ids", []),
                                 strict=state.get("strict", False))
    if errors:
        state["field_errors"] = errors
        log.info("Submission rejected: %s", ", ".join(sorted(errors)))
        return _fail(state, "validation", MSG_INVALID, "validate:failed")
    return _step(state, "validate")


def _save_request_node(state: SubmissionState) -> SubmissionState:
    form = state["form"]
    record = {
        "name": form.get("name", "").strip(),
        "company": form.get("company", ""),
        "email": form.get("email", "").strip(),
        "phone": form.get("phone", ""),
        "budget_range": form.get("budget", ""),
        "timeline": form.get("timeline", ""),
        "message": form.get("message", ""),
        "status": "pending",
    }
    try:
        state["request"] = state["repository"].create_request(record)
    except PersistenceError as e:
        log.error("Request insert failed: %s", e.detail or e)
        return _fail(state, "persistence", "Failed to save quote request", "save_request:failed")
    except Exception as e:
        log.error("Request insert crashed: %s", e, exc_info=True)
        return _fail(state, "unknown", str(e), "save_request:failed")
    return _step(state, "save_request")


def _save_services_node(state: SubmissionState) -> SubmissionState:
    request_id = state["request"]["id"]
    descriptions = state.get("descriptions") or {}
    rows = [{
        "service_id": sid,
        "service_name": service_title(sid),
        "custom_description": descriptions.get(sid) or None,
        "estimated_price": None,
        "final_price": None,
    } for sid in state["service_ids"]]
    try:
        state["services_saved"] = state["repository"].add_services(request_id, rows)
    except PersistenceError as e:
        log.error("Service rows insert failed for %s: %s", request_id, e.detail or e,
                  extra={"request_id": request_id})
        return _fail(state, "persistence", "Failed to save selected services",
                     "save_services:failed")
    except Exception as e:
        log.error("Service rows insert crashed: %s", e, exc_info=True)
        return _fail(state, "unknown", str(e), "save_services:failed")
    return _step(state, "save_services")


def _notify_node(state: SubmissionState) -> SubmissionState:
    form, req = state["form"], state["request"]
    payload = {
        "name": form.get("name", "").strip(),
        "company": form.get("company", ""),
        "email": form.get("email", "").strip(),
        "phone": form.get("phone", ""),
        "budget": form.get("budget", ""),
        "timeline": form.get("timeline", ""),
        "message": form.get("message", ""),
        "selected_services": [service_title(sid) for sid in state["service_ids"]],
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_number": req.get("request_number"),
        "request_id": req.get("id"),
    }
    state["payload"] = payload
    try:
        result = state["notifier"](payload)
        state["notification"] = result
        if not (result or {}).get("success", False):
            log.warning("Notification for %s did not go out: %s",
                        payload["request_number"], (result or {}).get("message"))
    except Exception as e:
        # Request is saved; email trouble is for the logs only
        log.error("Notification failed for %s: %s", payload["request_number"], e,
                  exc_info=True, extra={"request_number": payload["request_number"]})
        state["notification"] = {"success": False, "message": str(e)}
        return _step(state, "notify:failed")
    return _step(state, "notify")


def build_submission_pipeline() -> StateGraph:
    """Build the submission workflow graph. The store and notifier ride in state."""
    graph = StateGraph(SubmissionState)

    graph.add_node("validate", _validate_node)
    graph.add_node("save_request", _save_request_node)
    graph.add_node("save_services", _save_services_node)
    graph.add_node("notify", _notify_node)

    graph.set_entry_point("validate")
    graph.add_conditional_edges("validate", _should_continue,
                                {"next": "save_request", END: END})
    graph.add_conditional_edges("save_request", _should_continue,
                                {"next": "save_services", END: END})
    graph.add_conditional_edges("save_services", _should_continue,
                                {"next": "notify", END: END})
    graph.add_edge("notify", END)

    return graph


# ═════════════════════════════════════════════════════════════════════════════
# Runner
# ═════════════════════════════════════════════════════════════════════════════

# Compiled graph (lazy-init)
_compiled = {}


def _get_compiled():
    """Get or compile the submission graph."""
    if "submission" not in _compiled:
        _compiled["submission"] = build_submission_pipeline().compile()
    return _compiled["submission"]


def _normalize_form(form) -> dict:
    if hasattr(form, "snapshot"):
        return form.snapshot()
    return {k: ("" if v is None else str(v)) for k, v in dict(form or {}).items()}


def _normalize_ids(selection) -> list:
    ids = selection.ids if hasattr(selection, "ids") else list(selection or [])
    seen = []
    for sid in ids:
        if sid not in seen:
            seen.append(sid)
    return seen


def _default_notifier(repository):
    from src.agents.notify_agent import notify_quote_request

    def notifier(payload):
        return notify_quote_request(payload, repository=repository)
    return notifier


def submit_quote_request(form, selection, repository=None, notifier=None,
                         strict: bool = False, descriptions: Optional[dict] = None) -> dict:
    """
    Run one submission and fold it into a single user-facing outcome.

    form:      ContactForm or dict of contact fields
    selection: ServiceSelection or list of catalog service ids
    """
    start = datetime.now()
    if repository is None:
        from src.core.request_store import get_repository
        try:
            repository = get_repository()
        except IntakeError as e:
            log.error("Request store unavailable: %s", e.detail or e)
            return _outcome({"error": "Failed to save quote request",
                             "error_kind": "persistence"}, start)
    notifier = notifier or _default_notifier(repository)

    inputs = {
        "form": _normalize_form(form),
        "service_ids": _normalize_ids(selection),
        "descriptions": dict(descriptions or {}),
        "strict": strict,
        "repository": repository,
        "notifier": notifier,
    }
    try:
        graph = _get_compiled()
        result = graph.invoke(inputs)
    except Exception as e:
        log.error("Submission pipeline crashed: %s", e, exc_info=True)
        result = {"error": str(e) or MSG_FALLBACK, "error_kind": "unknown"}

    result["completed_at"] = datetime.now().isoformat()
    outcome = _outcome(result, start)
    log.info("Submission %s in %dms, steps: %s",
             "ok" if outcome["ok"] else f"failed ({outcome['error_kind']})",
             outcome["duration_ms"], outcome["steps"],
             extra={"request_number": outcome["request_number"] or "",
                    "request_id": outcome["request_id"] or "",
                    "service_count": len(inputs["service_ids"]),
                    "duration_ms": outcome["duration_ms"]})
    return outcome


def _outcome(result: dict, start: datetime) -> dict:
    request = result.get("request") or {}
    ok = not result.get("error")
    return {
        "ok": ok,
        "message": MSG_SUCCESS if ok else (result.get("error") or MSG_FALLBACK),
        "error_kind": None if ok else result.get("error_kind", "unknown"),
        "field_errors": result.get("field_errors", {}),
        "request_number": request.get("request_number"),
        "request_id": request.get("id"),
        "notification": result.get("notification"),
        "steps": [s["step"] for s in result.get("steps_completed", [])],
        "duration_ms": int((datetime.now() - start).total_seconds() * 1000),
    }
