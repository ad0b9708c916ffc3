"""
Quote Intake — Web + JSON routes
Public intake form, the JSON submission API the static site posts to,
an email proxy, catalog and health endpoints.
"""
import hmac
import time
import logging

from flask import Blueprint, request, jsonify, render_template_string

from src.agents.notify_agent import send_email
from src.agents.orchestrator import MSG_NO_SERVICES, submit_quote_request
from src.core.catalog import (BUDGET_OPTIONS, TIMELINE_OPTIONS, catalog_as_dict,
                              service_title)
from src.core.errors import IntakeError, ValidationError
from src.core.quote_cart import FORM_FIELDS, ContactForm, QuoteIntakeSession, ServiceSelection
from src.core.request_store import get_repository
from src.core.secrets import get_key, validate_all
from src.core.security import csrf_protect, rate_limit
from .templates import BASE_CSS, PAGE_INTAKE

log = logging.getLogger("dashboard")

bp = Blueprint("dashboard", __name__)

REQUIRED_FIELDS_ERROR = "Missing required fields"
INVALID_FIELDS_ERROR = "Invalid fields"


# ── Request-level structured logging ────────────────────────────────────────
@bp.before_app_request
def _log_request_start():
    request._start_time = time.time()


@bp.after_app_request
def _log_request_end(response):
    if hasattr(request, "_start_time"):
        duration_ms = round((time.time() - request._start_time) * 1000, 1)
        if request.path not in ("/api/health",) and not request.path.startswith("/static"):
            log.info("%s %s → %d (%.0fms)",
                     request.method, request.path, response.status_code, duration_ms,
                     extra={"route": request.path, "method": request.method,
                            "status": response.status_code, "duration_ms": duration_ms})
    return response


@bp.app_errorhandler(405)
def _method_not_allowed(e):
    if request.path.startswith("/api/"):
        return jsonify({"error": "Method not allowed"}), 405
    return e


# ═══════════════════════════════════════════════════════════════════════
# HTML form
# ═══════════════════════════════════════════════════════════════════════
def render(content, **kw):
    html = f"""<!DOCTYPE html><html><head><meta charset="utf-8"><meta name="viewport" content="width=device-width,initial-scale=1">
<title>OneShopCentrale — Request a Quote</title>
<link href="https://fonts.googleapis.com/css2?family=DM+Sans:wght@400;500;600;700&family=JetBrains+Mono:wght@400;500&display=swap" rel="stylesheet">
<style>{BASE_CSS}</style></head><body>
<div class="hdr"><h1>OneShopCentrale</h1><p>Pick the services you need and we'll put a quote together.</p></div>
<div class="ctr">
""" + content + """
</div></body></html>"""
    return render_template_string(html, **kw)


def _render_intake(session: QuoteIntakeSession, request_number: str = None):
    return render(
        PAGE_INTAKE,
        catalog=catalog_as_dict(),
        budget_options=BUDGET_OPTIONS,
        timeline_options=TIMELINE_OPTIONS,
        form=session.form.snapshot(),
        selected=session.selection.ids,
        selected_titles=session.selection.titles(),
        success_message=session.success_message,
        error_message=session.error_message,
        request_number=request_number,
    )


@bp.route("/", methods=["GET"])
def intake_form():
    return _render_intake(QuoteIntakeSession())


@bp.route("/", methods=["POST"])
@csrf_protect
@rate_limit("submit")
def intake_submit():
    form = ContactForm(**{k: request.form.get(k, "") for k in FORM_FIELDS})
    selection = ServiceSelection(request.form.getlist("services"))
    session = QuoteIntakeSession(selection=selection, form=form)
    outcome = session.submit()
    return _render_intake(session, request_number=outcome.get("request_number"))


# ═══════════════════════════════════════════════════════════════════════
# JSON API
# ═══════════════════════════════════════════════════════════════════════
def parse_quote_body(body) -> tuple:
    """{contact: {...}, services: [id | {id, description}]} → (form, ids, descriptions).

    Raises ValidationError when the envelope itself is unusable.
    """
    if not isinstance(body, dict) or not isinstance(body.get("contact"), dict):
        raise ValidationError(REQUIRED_FIELDS_ERROR, {"contact": "contact object is required"})
    services = body.get("services")
    if not isinstance(services, list):
        raise ValidationError(REQUIRED_FIELDS_ERROR, {"services": "services list is required"})

    contact = body["contact"]
    form = {k: contact.get(k) or "" for k in FORM_FIELDS}
    ids, descriptions = [], {}
    for entry in services:
        if isinstance(entry, dict):
            raw = entry.get("id") or entry.get("name") or ""
        else:
            raw = entry or ""
        if not isinstance(raw, (str, int)) or isinstance(raw, bool):
            raise ValidationError(INVALID_FIELDS_ERROR,
                                  {"services": f"Unusable service entry: {entry!r}"[:200]})
        sid = str(raw).strip()
        if isinstance(entry, dict) and sid and entry.get("description"):
            descriptions[sid] = str(entry["description"])
        if sid and sid not in ids:
            ids.append(sid)
    return form, ids, descriptions


def _validation_error_body(field_errors: dict) -> dict:
    missing = (field_errors.get("name")
               or field_errors.get("services") == MSG_NO_SERVICES
               or field_errors.get("email") == "Email is required")
    return {"success": False,
            "error": REQUIRED_FIELDS_ERROR if missing else INVALID_FIELDS_ERROR,
            "fields": field_errors}


@bp.route("/api/request-quote", methods=["POST", "OPTIONS"])
@rate_limit("submit")
def api_request_quote():
    if request.method == "OPTIONS":
        return jsonify({}), 200

    try:
        form, ids, descriptions = parse_quote_body(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"success": False, "error": e.message, "fields": e.field_errors}), 400

    outcome = submit_quote_request(form, ids, strict=True, descriptions=descriptions)
    if outcome["ok"]:
        return jsonify({
            "success": True,
            "requestNumber": outcome["request_number"],
            "message": "Quote request submitted successfully",
        })
    if outcome["error_kind"] == "validation":
        return jsonify(_validation_error_body(outcome["field_errors"])), 400
    if outcome["error_kind"] == "persistence":
        return jsonify({"success": False, "error": outcome["message"]}), 500
    return jsonify({"success": False, "error": "Internal server error"}), 500


@bp.route("/api/send-email", methods=["POST", "OPTIONS"])
@rate_limit("email")
def api_send_email():
    """Relay {to, subject, html, attachments?} through Resend from FROM_EMAIL.

    Open relay unless EMAIL_PROXY_TOKEN is set; then callers must send it in
    X-Proxy-Token. Deployments exposed to the internet should set it.
    """
    if request.method == "OPTIONS":
        return jsonify({"message": "OK"}), 200

    token = get_key("email_proxy_token")
    if token and not hmac.compare_digest(request.headers.get("X-Proxy-Token", ""), token):
        log.warning("send-email rejected: bad proxy token from %s", request.remote_addr,
                    extra={"route": request.path, "status": 401})
        return jsonify({"error": "Unauthorized"}), 401

    data = request.get_json(silent=True) or {}
    if not (data.get("to") and data.get("subject") and data.get("html")):
        return jsonify({"error": "Missing required fields: to, subject, html"}), 400

    try:
        result = send_email(data["to"], data["subject"], data["html"],
                            attachments=data.get("attachments") or None)
    except IntakeError as e:
        log.warning("send-email failed: %s %s", e, e.detail)
        return jsonify({"error": "Failed to send email", "details": str(e)}), 500
    except Exception as e:
        log.error("send-email crashed: %s", e, exc_info=True)
        return jsonify({"error": "Failed to send email", "details": str(e) or "Unknown error"}), 500

    return jsonify({"success": True, "message": "Email sent successfully",
                    "id": (result or {}).get("id")})


@bp.route("/api/catalog")
def api_catalog():
    return jsonify({
        "categories": catalog_as_dict(),
        "budget_options": [{"value": v, "label": l} for v, l in BUDGET_OPTIONS],
        "timeline_options": [{"value": v, "label": l} for v, l in TIMELINE_OPTIONS],
    })


@bp.route("/api/catalog/<service_id>")
def api_catalog_service(service_id):
    title = service_title(service_id)
    if title == service_id:
        return jsonify({"error": f"Unknown service: {service_id}"}), 404
    return jsonify({"id": service_id, "title": title})


@bp.route("/api/health")
def api_health():
    report = validate_all()
    try:
        store = get_repository().name
        status = "ok"
    except IntakeError as e:
        store, status = "unavailable", "degraded"
        log.warning("Health: store unavailable: %s", e.detail or e)
    return jsonify({
        "status": status,
        "store": store,
        "secrets": {"set": report["set"], "total": report["total"],
                    "warnings": report["warnings"]},
    })
