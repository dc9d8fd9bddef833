"""
Tests for health check endpoints.
"""


class TestHealthEndpoints:
    """Test health check API endpoints."""

    def test_health_check(self, client):
        """Basic health check should return healthy status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "shop-api"

    def test_detailed_health_check(self, client):
        """Detailed check reports the database and both gateway breakers."""
        response = client.get("/api/health/detailed")
        assert response.status_code == 200
        data = response.json()
        assert data["dependencies"]["database"]["status"] == "healthy"
        assert set(data["circuit_breakers"]) == {"paymob", "sms"}
        assert data["circuit_breakers"]["paymob"]["state"] == "closed"

    def test_correlation_id_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "req-123"})
        assert response.headers.get("X-Request-ID") == "req-123"
