"""Tests for the intake web form and JSON API routes."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


class TestIntakeForm:
    def test_form_renders_catalog(self, client):
        r = client.get("/")
        assert r.status_code == 200
        html = r.get_data(as_text=True)
        assert "Product Ideation &amp; Research" in html
        assert 'value="seo"' in html
        assert "Request a quote" in html

    def test_submit_success_clears_form(self, client, fake_sender):
        r = client.post("/", data={"name": "Jane Doe", "email": "jane@acme.com",
                                   "company": "Acme Corp", "services": ["seo", "pr"]})
        html = r.get_data(as_text=True)
        assert r.status_code == 200
        assert "Request sent successfully. Our team will contact you shortly." in html
        assert 'value="Jane Doe"' not in html
        assert "No services selected yet." in html
        assert len(fake_sender.sent) == 2

    def test_submit_invalid_keeps_input(self, client, fake_sender):
        r = client.post("/", data={"name": "Jane Doe", "email": "", "services": ["seo"]})
        html = r.get_data(as_text=True)
        assert "Please provide your name, email and select at least one service." in html
        assert 'value="Jane Doe"' in html
        assert "SEO &amp; Listing Optimization" in html
        assert fake_sender.sent == []

    def test_csrf_enforced_when_enabled(self, client, monkeypatch):
        monkeypatch.setenv("DISABLE_CSRF", "false")
        r = client.post("/", data={"name": "Jane", "email": "jane@acme.com", "services": ["seo"]})
        assert r.status_code == 403

    def test_csrf_token_from_form_accepted(self, client, monkeypatch, fake_sender):
        monkeypatch.setenv("DISABLE_CSRF", "false")
        client.get("/")
        with client.session_transaction() as sess:
            token = sess["_csrf_token"]
        r = client.post("/", data={"name": "Jane", "email": "jane@acme.com",
                                   "services": ["seo"], "_csrf_token": token})
        assert r.status_code == 200
        assert "Request sent successfully" in r.get_data(as_text=True)


class TestRequestQuoteAPI:
    def test_success(self, client, fake_sender):
        r = client.post("/api/request-quote", json={
            "contact": {"name": "Jane Doe", "email": "jane@acme.com", "company": "Acme Corp",
                        "budget": "5k-20k", "timeline": "1-3"},
            "services": ["market-research", {"id": "logo-identity", "description": "wordmark"}],
        })
        assert r.status_code == 200
        data = r.get_json()
        assert data["success"] is True
        assert data["requestNumber"].startswith("QR")
        assert data["message"] == "Quote request submitted successfully"
        assert r.headers["Access-Control-Allow-Origin"] == "*"

        from src.core import db
        stored = db.get_quote_request(data["requestNumber"])
        assert stored["services"][1]["custom_description"] == "wordmark"

    def test_missing_fields(self, client):
        r = client.post("/api/request-quote", json={"contact": {"name": "Jane"}, "services": []})
        assert r.status_code == 400
        assert r.get_json()["error"] == "Missing required fields"

    def test_no_body(self, client):
        r = client.post("/api/request-quote", data="not json", content_type="text/plain")
        assert r.status_code == 400
        assert r.get_json()["error"] == "Missing required fields"

    def test_missing_envelope_keys(self, client):
        r = client.post("/api/request-quote", json={"services": ["seo"]})
        assert r.status_code == 400
        data = r.get_json()
        assert data["error"] == "Missing required fields"
        assert "contact" in data["fields"]

        r = client.post("/api/request-quote", json={"contact": {"name": "Jane"}})
        assert r.get_json()["error"] == "Missing required fields"

    def test_malformed_service_entry_is_400_and_stores_nothing(self, client, fake_sender):
        from src.core import db
        contact = {"name": "Jane", "email": "jane@acme.com"}
        for services in ([{"id": ["seo"], "description": "x"}], [{"id": ["seo"]}], [["seo"]]):
            r = client.post("/api/request-quote", json={"contact": contact, "services": services})
            assert r.status_code == 400
            data = r.get_json()
            assert data["error"] == "Invalid fields"
            assert "services" in data["fields"]
        assert db.list_quote_requests() == []
        assert fake_sender.sent == []

    def test_invalid_email_shape(self, client):
        r = client.post("/api/request-quote", json={
            "contact": {"name": "Jane", "email": "jane-at-acme"}, "services": ["seo"]})
        assert r.status_code == 400
        data = r.get_json()
        assert data["error"] == "Invalid fields"
        assert data["fields"]["email"] == "Valid email address is required"

    def test_persistence_failure_is_500(self, client, monkeypatch):
        from conftest import FakeRepository
        from src.core import request_store
        monkeypatch.setattr(request_store, "get_repository",
                            lambda: FakeRepository(fail_request=True))
        r = client.post("/api/request-quote", json={
            "contact": {"name": "Jane", "email": "jane@acme.com"}, "services": ["seo"]})
        assert r.status_code == 500
        assert r.get_json()["error"] == "Failed to save quote request"

    def test_preflight(self, client):
        r = client.options("/api/request-quote")
        assert r.status_code == 200
        assert r.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
        assert r.headers["Access-Control-Allow-Headers"] == "Content-Type"

    def test_wrong_method_is_json_405(self, client):
        r = client.get("/api/request-quote")
        assert r.status_code == 405
        assert r.get_json() == {"error": "Method not allowed"}

    def test_rate_limited(self, client, monkeypatch):
        monkeypatch.setenv("DISABLE_RATE_LIMIT", "false")
        codes = [client.post("/api/request-quote", json={}).status_code for _ in range(7)]
        assert codes[:5] == [400] * 5
        assert codes[-1] == 429


class TestSendEmailAPI:
    def test_sends(self, client, fake_sender):
        r = client.post("/api/send-email", json={"to": "x@y.co", "subject": "Hi", "html": "<p>x</p>"})
        assert r.status_code == 200
        assert r.get_json() == {"success": True, "message": "Email sent successfully", "id": "email_1"}
        assert fake_sender.sent[0]["to"] == "x@y.co"

    def test_missing_fields(self, client):
        r = client.post("/api/send-email", json={"to": "x@y.co"})
        assert r.status_code == 400
        assert r.get_json()["error"] == "Missing required fields: to, subject, html"

    def test_proxy_token_required_when_configured(self, client, fake_sender, monkeypatch):
        monkeypatch.setenv("EMAIL_PROXY_TOKEN", "s3cret")
        body = {"to": "x@y.co", "subject": "Hi", "html": "<p>x</p>"}
        r = client.post("/api/send-email", json=body)
        assert r.status_code == 401
        assert fake_sender.sent == []
        r = client.post("/api/send-email", json=body, headers={"X-Proxy-Token": "s3cret"})
        assert r.status_code == 200

    def test_provider_failure(self, client, fake_sender):
        fake_sender.fail_to = {"*"}
        r = client.post("/api/send-email", json={"to": "x@y.co", "subject": "Hi", "html": "x"})
        assert r.status_code == 500
        data = r.get_json()
        assert data["error"] == "Failed to send email"
        assert "Resend API error" in data["details"]


class TestCatalogAndHealth:
    def test_catalog(self, client):
        data = client.get("/api/catalog").get_json()
        assert len(data["categories"]) == 10
        assert data["budget_options"][0] == {"value": "<5k", "label": "Under $5k"}

    def test_catalog_service(self, client):
        assert client.get("/api/catalog/seo").get_json()["title"] == "SEO & Listing Optimization"
        assert client.get("/api/catalog/nope").status_code == 404

    def test_health(self, client):
        data = client.get("/api/health").get_json()
        assert data["status"] == "ok"
        assert data["store"] == "sqlite"
        assert "warnings" in data["secrets"]

    def test_security_headers(self, client):
        r = client.get("/")
        assert r.headers["X-Content-Type-Options"] == "nosniff"
        assert "Access-Control-Allow-Origin" not in r.headers
