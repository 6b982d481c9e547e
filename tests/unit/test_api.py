"""
Unit Tests - CRM API
"""
import json

import pytest
from fastapi.testclient import TestClient

from crm_analytics.main import create_app
from crm_analytics.realtime.change_feed import InMemoryChangeFeed
from crm_analytics.sources.memory import InMemoryDataSource

WEEK = {"date_from": "2025-01-01", "date_to": "2025-01-07"}


class UnavailableSource(InMemoryDataSource):
    async def fetch_orders(self, start, end, status=None):
        raise ConnectionError("database unreachable")


@pytest.fixture
def memory_env(monkeypatch):
    monkeypatch.setenv("DATA_SOURCE", "memory")
    monkeypatch.setenv("APP_ENV", "testing")


@pytest.fixture
def client(memory_env, sample_source):
    app = create_app(source=sample_source, change_feed=InMemoryChangeFeed(), configure_logs=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def failing_client(memory_env):
    app = create_app(source=UnavailableSource(), change_feed=InMemoryChangeFeed(), configure_logs=False)
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    """Tests for health endpoints"""

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        body = response.json()
        assert body["environment"] == "testing"
        assert body["checks"]["data_source"]["type"] == "memory"

    def test_liveness(self, client):
        assert client.get("/api/v1/health/live").json() == {"status": "alive"}

    def test_request_id_header(self, client):
        response = client.get("/api/v1/health/live", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
        assert "X-Response-Time" in response.headers


class TestOverview:
    """Tests for the dashboard overview"""

    def test_overview(self, client):
        response = client.get("/api/v1/crm/overview", params=WEEK)
        assert response.status_code == 200
        body = response.json()
        assert body["metrics"]["total_orders"] == 3
        assert body["metrics"]["total_revenue"] == 3000
        assert body["daily_revenue"][0] == {"date": "2025-01-02", "revenue": 3000, "order_count": 2}

    def test_status_filter(self, client):
        response = client.get("/api/v1/crm/overview", params={**WEEK, "status": "pending"})
        assert response.json()["metrics"]["total_orders"] == 1

    def test_inverted_period(self, client):
        response = client.get("/api/v1/crm/overview", params={"date_from": "2025-01-07", "date_to": "2025-01-01"})
        assert response.status_code == 422

    def test_unknown_status(self, client):
        response = client.get("/api/v1/crm/overview", params={**WEEK, "status": "lost"})
        assert response.status_code == 422

    def test_source_failure(self, failing_client):
        response = failing_client.get("/api/v1/crm/overview", params=WEEK)
        assert response.status_code == 503
        assert set(response.json()["collections"]) == {"orders", "previous_orders"}


class TestReports:
    """Tests for report tabs"""

    def test_filter_and_sort(self, client):
        response = client.get(
            "/api/v1/crm/reports/orders",
            params={**WEEK, "filter": "status:delivered", "sort": "total", "direction": "desc"},
        )
        assert response.status_code == 200
        body = response.json()
        assert [row["total"] for row in body["rows"]] == [2000, 1000]
        assert body["summary"] == "Showing 2 of 3 records"
        assert body["sort"] == {"key": "total", "direction": "desc"}
        assert body["filters"][0]["key"] == "status"

    def test_search(self, client):
        body = client.get("/api/v1/crm/reports/orders", params={**WEEK, "search": "ord-002"}).json()
        assert [row["order_number"] for row in body["rows"]] == ["ORD-002"]

    def test_customers(self, client):
        body = client.get("/api/v1/crm/reports/customers", params=WEEK).json()
        assert [row["full_name"] for row in body["rows"]] == ["Bilal Khan", "Amina Rahman", "Chandni Das"]

    def test_unknown_report(self, client):
        response = client.get("/api/v1/crm/reports/inventory", params=WEEK)
        assert response.status_code == 404


class TestExport:
    """Tests for report export downloads"""

    def test_csv(self, client):
        response = client.get("/api/v1/crm/reports/products/export", params=WEEK)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"].startswith('attachment; filename="products_report_')
        assert response.content.startswith(b"\xef\xbb\xbf")
        assert '"Canvas Tote"' in response.content.decode("utf-8")

    def test_json(self, client):
        response = client.get("/api/v1/crm/reports/orders/export", params={**WEEK, "format": "json"})
        records = json.loads(response.content)
        assert len(records) == 3
        assert {r["status"] for r in records} == {"delivered", "pending"}

    def test_html_inline(self, client):
        response = client.get("/api/v1/crm/reports/customers/export", params={**WEEK, "format": "html"})
        assert response.headers["content-disposition"].startswith("inline;")
        assert "<h1>Top Customers</h1>" in response.text

    def test_empty_view(self, client):
        response = client.get(
            "/api/v1/crm/reports/orders/export", params={**WEEK, "filter": "status:cancelled"}
        )
        assert response.status_code == 422

    def test_unsupported_format(self, client):
        response = client.get("/api/v1/crm/reports/orders/export", params={**WEEK, "format": "xlsx"})
        assert response.status_code == 422


class TestLive:
    """Tests for the live snapshot endpoints"""

    def test_refresh(self, client):
        response = client.post("/api/v1/crm/live/refresh")
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "idle"
        assert body["snapshot"] is not None
        assert body["last_error"] is None

    def test_ready_after_refresh(self, client):
        client.post("/api/v1/crm/live/refresh")
        assert client.get("/api/v1/health/ready").status_code == 200

    def test_pin_period(self, client):
        response = client.put("/api/v1/crm/live/period", params={**WEEK, "status": "delivered"})
        assert response.status_code == 200
        body = response.json()
        assert body["period"] == {
            "date_from": "2025-01-01",
            "date_to": "2025-01-07",
            "status": "delivered",
            "rolling": False,
        }
        assert body["snapshot"]["metrics"]["total_orders"] == 2
        assert client.get("/api/v1/crm/live").json()["period"]["date_to"] == "2025-01-07"

    def test_reset_period(self, client):
        client.put("/api/v1/crm/live/period", params=WEEK)
        body = client.delete("/api/v1/crm/live/period").json()
        assert body["period"]["rolling"] is True
        assert body["period"]["date_to"] != "2025-01-07"
        assert body["generation"] == 2

    def test_pin_inverted_period(self, client):
        response = client.put(
            "/api/v1/crm/live/period", params={"date_from": "2025-01-07", "date_to": "2025-01-01"}
        )
        assert response.status_code == 422

    def test_refresh_failure(self, failing_client):
        response = failing_client.post("/api/v1/crm/live/refresh")
        assert response.status_code == 503
        assert failing_client.get("/api/v1/health/ready").status_code == 503


class TestMetrics:
    def test_prometheus_endpoint(self, client):
        client.post("/api/v1/crm/live/refresh")
        response = client.get("/metrics/")
        assert response.status_code == 200
        assert "crm_aggregation_runs_total" in response.text
