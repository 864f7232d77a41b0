"""Tests for health check, global error handlers, and misc endpoints."""

from unittest.mock import patch


class TestHealthCheck:
    def test_healthy(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "healthy"
        assert data["checks"]["db"] == "ok"


class TestGlobalErrorHandler:
    def test_validation_error_format(self, client):
        """Validation errors should return consistent {error, detail} format."""
        r = client.post("/api/auth/login", json={"username": "alice"})
        assert r.status_code == 422
        data = r.json()
        assert data["error"] == "Validation error"
        assert "password" in data["detail"]

    def test_404_format(self, client, auth_headers):
        r = client.post("/api/tickets/free", json={"eventId": 99999}, headers=auth_headers())
        assert r.status_code == 404
        assert r.json()["detail"] == "Event not found"

    def test_unhandled_exception(self, client, create_ticket):
        ticket = create_ticket(price_cents=0)
        with patch("sgcheckout.routers.tickets.fulfill_order", side_effect=RuntimeError("db on fire")):
            r = client.post(
                "/api/tickets/free",
                json={"eventId": ticket.event_id, "ticketId": ticket.id, "guestEmail": "g@example.com"},
            )
        assert r.status_code == 500
        assert r.json() == {"error": "Internal server error", "detail": "An unexpected error occurred."}


class TestRootRedirect:
    def test_redirects_to_checkout(self, client):
        r = client.get("/", follow_redirects=False)
        assert r.status_code == 307
        assert r.headers["location"] == "/checkout"
