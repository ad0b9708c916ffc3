"""
notify_agent.py — Quote Request Notifications

CHANNELS (sent in this order, one after the other):
  1. admin  — ADMIN_EMAIL gets the HTML summary + PDF attachment
  2. client — the submitter gets a short confirmation, no attachment

Both go out through the Resend HTTP API (POST https://api.resend.com/emails,
bearer auth). The client email is attempted even when the admin email fails.

RESULT:
  {"success", "message", "admin": {attempted, succeeded, error, id},
   "client": {...}}
  success follows the admin channel only.

EMAIL COMMUNICATION LOG:
  When the payload carries a request_id, every attempt is written to
  communication_logs through the active request store. A failed log write
  never changes the result.

SETUP (env vars):
  RESEND_API_KEY = re_...
  FROM_EMAIL     = noreply@yourdomain.com
  ADMIN_EMAIL    = quotes@yourdomain.com
"""

import html
import logging
from datetime import datetime

import requests

from src.core.catalog import BUDGET_OPTIONS, TIMELINE_OPTIONS, option_label
from src.core.errors import NotificationError
from src.core.secrets import get_key
from src.forms.quote_request_pdf import (PRODUCT_NAME, format_submitted,
                                         generate_quote_request_pdf)

log = logging.getLogger("intake.notify")

RESEND_API_URL = "https://api.resend.com/emails"
CLIENT_SUBJECT = f"Quote Request Received - {PRODUCT_NAME}"

MSG_ALL_SENT = "Quote request emails sent successfully"
MSG_CLIENT_FAILED = "Admin notification sent, but client confirmation failed"
MSG_ADMIN_FAILED = "Failed to send quote request emails"


# ══════════════════════════════════════════════════════════════════════════════
# TRANSPORT
# ══════════════════════════════════════════════════════════════════════════════

class ResendSender:
    """Thin client for the Resend email API."""

    def __init__(self, api_key: str = None, from_email: str = None,
                 timeout: float = 15.0, session: requests.Session = None):
        self.api_key = api_key if api_key is not None else get_key("resend_api_key")
        self.from_email = from_email or get_key("from_email")
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, to, subject: str, html_body: str, attachments: list = None) -> dict:
        """POST one email. Returns the API JSON ({"id": ...}). Raises NotificationError."""
        if not self.api_key:
            raise NotificationError("Email API key not configured",
                                    detail="RESEND_API_KEY is not set")
        body = {
            "from": self.from_email,
            "to": to if isinstance(to, list) else [to],
            "subject": subject,
            "html": html_body,
        }
        if attachments:
            body["attachments"] = [{
                "filename": a["filename"],
                "content": a["content"],
                "content_type": a.get("content_type", "application/pdf"),
            } for a in attachments]

        try:
            resp = self.session.post(
                RESEND_API_URL, json=body, timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}",
                         "Content-Type": "application/json"})
        except requests.RequestException as e:
            raise NotificationError("Email API unreachable", detail=str(e)) from e

        if not resp.ok:
            raise NotificationError(f"Resend API error: {resp.status_code}",
                                    detail=resp.text[:500], status=resp.status_code)
        try:
            return resp.json()
        except ValueError:
            return {}


def send_email(to, subject: str, html_body: str, attachments: list = None,
               sender=None) -> dict:
    """Send a single email with the default (or given) transport."""
    sender = sender or ResendSender()
    result = sender.send(to, subject, html_body, attachments=attachments)
    log.info("Email sent: %s → %s", subject[:60], to, extra={"channel": "email"})
    return result


# ══════════════════════════════════════════════════════════════════════════════
# RENDERING
# ══════════════════════════════════════════════════════════════════════════════

def _e(value) -> str:
    return html.escape(str(value or ""))


def _display(payload: dict, key: str, options: tuple, default: str) -> str:
    value = payload.get(key) or ""
    return option_label(options, value) if value else default


def admin_subject(payload: dict) -> str:
    who = (payload.get("company") or "").strip() or (payload.get("name") or "").strip()
    return f"New Quote Request - {who}"


def render_admin_email_html(payload: dict) -> str:
    services = payload.get("selected_services") or []
    if services:
        services_html = "".join(f'<li style="margin:5px 0">{_e(s)}</li>' for s in services)
    else:
        services_html = '<li style="margin:5px 0;color:#6b7280">No services selected</li>'

    message = (payload.get("message") or "").strip()
    message_html = ""
    if message:
        message_html = f"""
    <div style="background:#fef7ff;padding:25px;border-radius:12px;margin-bottom:25px;border-left:4px solid #a855f7">
      <h2 style="color:#7c2d12;margin:0 0 15px;font-size:20px">Additional Message</h2>
      <p style="color:#6b21a8;margin:0;line-height:1.6;white-space:pre-wrap">{_e(message)}</p>
    </div>"""

    number = payload.get("request_number") or ""
    number_html = f'<p style="color:#e2e8f0;margin:6px 0 0;font-size:13px">Request {_e(number)}</p>' if number else ""

    return f"""<!DOCTYPE html>
<html><body style="font-family:Arial,sans-serif;background:#ffffff;margin:0">
<div style="max-width:600px;margin:0 auto">
  <div style="background:linear-gradient(135deg,#667eea 0%,#764ba2 100%);padding:30px;text-align:center">
    <h1 style="color:#fff;margin:0;font-size:28px">{PRODUCT_NAME}</h1>
    <p style="color:#e2e8f0;margin:10px 0 0;font-size:16px">New Quote Request Received</p>
    {number_html}
  </div>
  <div style="padding:30px">
    <div style="background:#f8fafc;padding:25px;border-radius:12px;margin-bottom:25px;border-left:4px solid #3b82f6">
      <h2 style="color:#1f2937;margin:0 0 20px;font-size:20px">Contact Information</h2>
      <p style="margin:0 0 12px"><strong>Name:</strong> {_e(payload.get("name"))}</p>
      <p style="margin:0 0 12px"><strong>Company:</strong> {_e(payload.get("company") or "Not provided")}</p>
      <p style="margin:0 0 12px"><strong>Email:</strong> <span style="color:#3b82f6">{_e(payload.get("email"))}</span></p>
      <p style="margin:0"><strong>Phone:</strong> {_e(payload.get("phone") or "Not provided")}</p>
    </div>
    <div style="background:#fef3c7;padding:25px;border-radius:12px;margin-bottom:25px;border-left:4px solid #f59e0b">
      <h2 style="color:#92400e;margin:0 0 20px;font-size:20px">Project Details</h2>
      <p style="margin:0 0 12px"><strong>Budget Range:</strong> {_e(_display(payload, "budget", BUDGET_OPTIONS, "Not specified"))}</p>
      <p style="margin:0"><strong>Timeline:</strong> {_e(_display(payload, "timeline", TIMELINE_OPTIONS, "Not specified"))}</p>
    </div>
    <div style="background:#ecfdf5;padding:25px;border-radius:12px;margin-bottom:25px;border-left:4px solid #10b981">
      <h2 style="color:#065f46;margin:0 0 20px;font-size:20px">Requested Services</h2>
      <ul style="margin:0;padding-left:20px;color:#047857">{services_html}</ul>
    </div>{message_html}
    <div style="background:#f1f5f9;padding:20px;border-radius:8px;border:1px solid #e2e8f0;text-align:center">
      <strong>Complete quote request details are attached as a PDF document.</strong>
    </div>
  </div>
  <div style="background:#f8fafc;padding:20px;text-align:center;border-top:1px solid #e5e7eb;color:#6b7280;font-size:12px">
    This email was automatically generated by the {PRODUCT_NAME} quote request system.<br>
    Submitted on: {_e(format_submitted(payload.get("timestamp")))}
  </div>
</div></body></html>"""


def render_client_confirmation_html(payload: dict, admin_email: str = None) -> str:
    admin_email = admin_email or get_key("admin_email")
    count = len(payload.get("selected_services") or [])
    return f"""<!DOCTYPE html>
<html><body style="font-family:Arial,sans-serif;background:#ffffff;margin:0">
<div style="max-width:600px;margin:0 auto">
  <div style="background:linear-gradient(135deg,#667eea 0%,#764ba2 100%);padding:30px;text-align:center">
    <h1 style="color:#fff;margin:0;font-size:28px">{PRODUCT_NAME}</h1>
    <p style="color:#e2e8f0;margin:10px 0 0;font-size:16px">Quote Request Confirmation</p>
  </div>
  <div style="padding:30px">
    <h2 style="color:#1f2937;margin:0 0 20px">Thank you, {_e(payload.get("name"))}!</h2>
    <p style="color:#4b5563;line-height:1.6;margin-bottom:25px">
      We've received your quote request and our team will review it shortly.
      You can expect to hear back from us within 24-48 hours.
    </p>
    <div style="background:#f0f9ff;padding:20px;border-radius:8px;border-left:4px solid #0ea5e9;margin-bottom:25px">
      <h3 style="color:#0c4a6e;margin:0 0 15px">What happens next?</h3>
      <ul style="color:#075985;margin:0;padding-left:20px">
        <li style="margin-bottom:8px">Our team will review your requirements</li>
        <li style="margin-bottom:8px">We'll prepare a customized quote for your project</li>
        <li style="margin-bottom:8px">You'll receive a detailed proposal via email</li>
        <li>We'll schedule a consultation call to discuss next steps</li>
      </ul>
    </div>
    <div style="background:#f8fafc;padding:20px;border-radius:8px;border:1px solid #e2e8f0">
      <h3 style="color:#374151;margin:0 0 15px">Your Request Summary:</h3>
      <p style="margin:5px 0;color:#6b7280"><strong>Services:</strong> {count} service(s) selected</p>
      <p style="margin:5px 0;color:#6b7280"><strong>Budget:</strong> {_e(_display(payload, "budget", BUDGET_OPTIONS, "Not specified"))}</p>
      <p style="margin:5px 0;color:#6b7280"><strong>Timeline:</strong> {_e(_display(payload, "timeline", TIMELINE_OPTIONS, "Not specified"))}</p>
    </div>
  </div>
  <div style="background:#f8fafc;padding:20px;text-align:center;border-top:1px solid #e5e7eb">
    <p style="margin:0 0 10px;color:#374151;font-weight:bold">Questions? We're here to help!</p>
    <p style="margin:0;color:#6b7280;font-size:14px">
      Email us at <a href="mailto:{_e(admin_email)}" style="color:#3b82f6">{_e(admin_email)}</a>
    </p>
  </div>
</div></body></html>"""


# ══════════════════════════════════════════════════════════════════════════════
# PIPELINE
# ══════════════════════════════════════════════════════════════════════════════

def _channel() -> dict:
    return {"attempted": False, "succeeded": False, "error": None, "id": None}


def _deliver(channel: str, sender, to, subject: str, html_body: str,
             attachments: list = None) -> dict:
    result = _channel()
    result["attempted"] = True
    try:
        resp = sender.send(to, subject, html_body, attachments=attachments)
        result["succeeded"] = True
        result["id"] = (resp or {}).get("id")
        log.info("%s email sent: %s", channel, subject[:60], extra={"channel": channel})
    except NotificationError as e:
        result["error"] = str(e)
        log.warning("%s email failed: %s %s", channel, e, e.detail, extra={"channel": channel})
    except Exception as e:
        result["error"] = str(e) or e.__class__.__name__
        log.error("%s email crashed: %s", channel, e, exc_info=True, extra={"channel": channel})
    return result


def _log_attempt(repository, payload: dict, channel: str, sender_addr: str,
                 to: str, subject: str, result: dict):
    request_id = payload.get("request_id")
    if not repository or not request_id:
        return
    try:
        repository.log_communication(
            request_id, subject=subject, sender=sender_addr, recipient=to,
            status="sent" if result["succeeded"] else "failed",
            metadata={"channel": channel, "email_id": result["id"],
                      "error": result["error"],
                      "request_number": payload.get("request_number")})
    except Exception as e:
        log.warning("communication log failed for %s: %s", request_id, e)


def notify_quote_request(payload: dict, sender=None, repository=None,
                         admin_email: str = None) -> dict:
    """
    Send the admin notification (with PDF) and the client confirmation.

    payload keys:
        name, company, email, phone, budget, timeline, message,
        selected_services: [title], timestamp, request_number?, request_id?
    """
    sender = sender or ResendSender()
    admin_email = admin_email or get_key("admin_email")
    from_addr = getattr(sender, "from_email", "") or get_key("from_email")
    payload = dict(payload)
    payload.setdefault("timestamp", datetime.now().isoformat())

    # ── admin ────────────────────────────────────────────────────────────────
    subject = admin_subject(payload)
    try:
        pdf = generate_quote_request_pdf(payload)
    except Exception as e:
        log.error("PDF generation failed: %s", e, exc_info=True)
        admin = _channel()
        admin["error"] = f"PDF generation failed: {e}"
    else:
        admin = _deliver("admin", sender, admin_email, subject,
                         render_admin_email_html(payload),
                         attachments=[{"filename": pdf["filename"],
                                       "content": pdf["pdf_base64"],
                                       "content_type": "application/pdf"}])
    _log_attempt(repository, payload, "admin", from_addr, admin_email, subject, admin)

    # ── client ───────────────────────────────────────────────────────────────
    client = _deliver("client", sender, payload.get("email"), CLIENT_SUBJECT,
                      render_client_confirmation_html(payload, admin_email))
    _log_attempt(repository, payload, "client", from_addr, payload.get("email"),
                 CLIENT_SUBJECT, client)

    if admin["succeeded"] and client["succeeded"]:
        success, message = True, MSG_ALL_SENT
    elif admin["succeeded"]:
        success, message = True, MSG_CLIENT_FAILED
    else:
        success, message = False, MSG_ADMIN_FAILED

    log.info("Notifications for %s: %s", payload.get("request_number") or payload.get("email"),
             message, extra={"request_number": payload.get("request_number", "")})
    return {"success": success, "message": message, "admin": admin, "client": client}
