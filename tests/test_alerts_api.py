"""
Tests for Alerts API
"""
import pytest
from fastapi.testclient import TestClient

from pricewatch.exceptions import SweepAborted, SweepInProgress
from pricewatch.main import app

FLIPKART_URL = "https://www.flipkart.com/puma-sneakers/p/itm0123456789"


class TestAlertsCRUD:
    """Test create, list, get and delete for alerts"""

    def test_list_alerts_empty(self, client: TestClient):
        response = client.get("/api/v1/alerts")
        assert response.status_code == 200
        assert response.json() == []

    def test_create_alert(self, client: TestClient):
        """Platform is detected from the URL"""
        payload = {
            "url": "https://www.myntra.com/tshirts/roadster/1234567/buy",
            "target_price": 499.0,
            "user_email": "shopper@example.com",
        }

        response = client.post("/api/v1/alerts", json=payload)
        assert response.status_code == 201

        data = response.json()
        assert data["platform"] == "myntra"
        assert data["target_price"] == 499.0
        assert data["last_price"] is None
        assert data["last_checked"] is None
        assert data["is_active"] is True
        assert len(data["id"]) == 36

    @pytest.mark.parametrize("url, platform", [
        ("https://www.flipkart.com/item/p/itm1", "flipkart"),
        ("https://www.ajio.com/jeans/p/4690", "ajio"),
        ("https://www.tatacliq.com/shirt/p-mp0001", "tata_cliq"),
    ])
    def test_create_alert_each_platform(self, client: TestClient, url, platform):
        payload = {"url": url, "target_price": 100, "user_email": "shopper@example.com"}
        response = client.post("/api/v1/alerts", json=payload)
        assert response.status_code == 201
        assert response.json()["platform"] == platform

    def test_create_alert_unsupported_platform(self, client: TestClient):
        payload = {
            "url": "https://www.amazon.in/dp/B0ABCDEFGH",
            "target_price": 499.0,
            "user_email": "shopper@example.com",
        }

        response = client.post("/api/v1/alerts", json=payload)
        assert response.status_code == 400
        assert "Unsupported platform" in response.json()["detail"]

    @pytest.mark.parametrize("target_price", [0, -10])
    def test_create_alert_invalid_target(self, client: TestClient, target_price):
        payload = {"url": FLIPKART_URL, "target_price": target_price, "user_email": "shopper@example.com"}
        response = client.post("/api/v1/alerts", json=payload)
        assert response.status_code == 422

    def test_create_alert_invalid_email(self, client: TestClient):
        payload = {"url": FLIPKART_URL, "target_price": 100, "user_email": "not-an-email"}
        response = client.post("/api/v1/alerts", json=payload)
        assert response.status_code == 422

    def test_create_alert_requires_http_url(self, client: TestClient):
        payload = {"url": "ftp://flipkart.com/item", "target_price": 100, "user_email": "shopper@example.com"}
        response = client.post("/api/v1/alerts", json=payload)
        assert response.status_code == 422

    def test_list_alerts_active_newest_first(self, client: TestClient, add_alert):
        older = add_alert(FLIPKART_URL, "flipkart", 100.0)
        add_alert("https://www.ajio.com/jeans/p/4690", "ajio", 100.0, is_active=False)
        newer = add_alert("https://www.myntra.com/kurta/1/buy", "myntra", 100.0)

        response = client.get("/api/v1/alerts")
        assert response.status_code == 200
        assert [a["id"] for a in response.json()] == [newer.id, older.id]

    def test_get_alert(self, client: TestClient, add_alert):
        alert = add_alert(FLIPKART_URL, "flipkart", 100.0)

        response = client.get(f"/api/v1/alerts/{alert.id}")
        assert response.status_code == 200
        assert response.json()["url"] == FLIPKART_URL

    def test_get_alert_not_found(self, client: TestClient):
        response = client.get("/api/v1/alerts/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404

    def test_delete_alert_is_soft(self, client: TestClient, add_alert, read_alert):
        alert = add_alert(FLIPKART_URL, "flipkart", 100.0)

        response = client.delete(f"/api/v1/alerts/{alert.id}")
        assert response.status_code == 204

        assert read_alert(alert.id).is_active is False
        assert client.get("/api/v1/alerts").json() == []
        assert client.get(f"/api/v1/alerts/{alert.id}").status_code == 200

    def test_delete_alert_not_found(self, client: TestClient):
        response = client.delete("/api/v1/alerts/missing")
        assert response.status_code == 404


class TestManualCheck:
    """POST /alerts/check runs a full sweep"""

    def test_check_returns_summary(self, client: TestClient, add_alert, page_server, read_alert):
        alert = add_alert(FLIPKART_URL, "flipkart", target_price=1000.0)
        page_server.set(FLIPKART_URL, '<div class="Nx9W0j">₹999</div>')

        response = client.post("/api/v1/alerts/check")
        assert response.status_code == 200

        data = response.json()
        assert data["checked"] == 1
        assert data["drops"] == 1
        assert data["failures"] == 0
        assert data["message"] == "Price check completed"
        assert read_alert(alert.id).last_price == 999.0

    def test_check_with_no_alerts(self, client: TestClient):
        response = client.post("/api/v1/alerts/check")
        assert response.status_code == 200
        assert response.json()["checked"] == 0

    def test_check_while_sweeping(self, client: TestClient):
        class BusyWorker:
            async def run_sweep_now(self):
                raise SweepInProgress("A price sweep is already running")

        app.state.worker = BusyWorker()
        response = client.post("/api/v1/alerts/check")
        assert response.status_code == 409

    def test_check_aborted(self, client: TestClient):
        class BrokenWorker:
            async def run_sweep_now(self):
                raise SweepAborted("database unavailable")

        app.state.worker = BrokenWorker()
        response = client.post("/api/v1/alerts/check")
        assert response.status_code == 503
        assert "database unavailable" in response.json()["detail"]


class TestSystem:
    def test_health(self, client: TestClient, monkeypatch):
        monkeypatch.setattr("pricewatch.main.db_health_check", lambda: True)

        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["service"] == "pricewatch"

    def test_health_degraded(self, client: TestClient, monkeypatch):
        monkeypatch.setattr("pricewatch.main.db_health_check", lambda: False)

        response = client.get("/health")
        assert response.json()["status"] == "degraded"

    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["health"] == "/health"
