"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Sellers are denied staff endpoints (403)
- Workers are limited to delivery work
- The bot feed only accepts the shared key
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/deals"),
            ("GET", "/api/deals/1"),
            ("GET", "/api/commitments"),
            ("POST", "/api/commitments"),
            ("PUT", "/api/commitments/1"),
            ("DELETE", "/api/commitments/1"),
            ("GET", "/api/tracking"),
            ("POST", "/api/tracking"),
            ("GET", "/api/labels"),
            ("GET", "/api/invoices"),
            ("GET", "/api/warehouses"),
            ("GET", "/api/profile"),
            ("POST", "/api/profile/membership/refresh"),
            ("GET", "/api/admin/deals"),
            ("POST", "/api/admin/deals"),
            ("GET", "/api/admin/commitments"),
            ("GET", "/api/admin/tracking"),
            ("GET", "/api/admin/labels"),
            ("GET", "/api/admin/invoices"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_bad_token(self, client, db_session):
        resp = client.get("/api/deals", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"


# =============================================================================
# SELLER DENIED STAFF OPERATIONS (403)
# =============================================================================


class TestSellerDeniedStaff:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/deals"),
            ("POST", "/api/admin/deals"),
            ("PUT", "/api/admin/deals/1"),
            ("DELETE", "/api/admin/deals/1"),
            ("GET", "/api/admin/commitments"),
            ("PUT", "/api/admin/commitments/1"),
            ("GET", "/api/admin/tracking"),
            ("PATCH", "/api/admin/tracking/1"),
            ("GET", "/api/admin/labels"),
            ("PUT", "/api/admin/labels/1"),
            ("GET", "/api/admin/invoices"),
            ("PUT", "/api/admin/invoices/1"),
            ("POST", "/api/warehouses"),
            ("PUT", "/api/warehouses/1"),
            ("DELETE", "/api/warehouses/1"),
        ],
    )
    def test_forbidden(self, client, seller_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=seller_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Permission denied"


# =============================================================================
# WORKER SCOPE
# =============================================================================


class TestWorkerScope:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/deals"),
            ("POST", "/api/admin/deals"),
            ("GET", "/api/admin/labels"),
            ("GET", "/api/admin/invoices"),
            ("POST", "/api/warehouses"),
        ],
    )
    def test_admin_only(self, client, worker_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=worker_headers)
        assert resp.status_code == 403

    def test_can_list_commitments_and_tracking(self, client, worker_headers):
        assert client.get("/api/admin/commitments", headers=worker_headers).status_code == 200
        assert client.get("/api/admin/tracking", headers=worker_headers).status_code == 200


# =============================================================================
# BOT KEY
# =============================================================================


class TestBotKey:

    def test_missing_key(self, client, db_session):
        assert client.get("/api/bot/active-deals").status_code == 401

    def test_wrong_key(self, client, db_session):
        resp = client.get("/api/bot/active-deals", headers={"X-Bot-API-Key": "guess"})
        assert resp.status_code == 401

    def test_bearer_token_is_not_a_bot_key(self, client, seller_headers):
        assert client.get("/api/bot/active-deals", headers=seller_headers).status_code == 401

    def test_valid_key(self, client, db_session):
        resp = client.get("/api/bot/active-deals", headers={"X-Bot-API-Key": "test-bot-key"})
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 0

    def test_unconfigured_key_rejects(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "BOT_API_KEY", None)
        resp = client.get("/api/bot/active-deals", headers={"X-Bot-API-Key": "test-bot-key"})
        assert resp.status_code == 401
