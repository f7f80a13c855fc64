"""Tests for the order board API routes."""

from fastapi.testclient import TestClient

from src.api.main import app


class TestListOrders:
    """Tests for GET /api/v1/orders."""

    def test_pending_bucket_by_default(self, client):
        response = client.get("/api/v1/orders")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert [o["id"] for o in data["orders"]] == [1002, 1001]
        assert data["total"] == 2

    def test_all_bucket(self, client):
        data = client.get("/api/v1/orders", params={"status": "all"}).json()
        assert [o["id"] for o in data["orders"]] == [1002, 1001, 1003]

    def test_order_fields(self, client):
        order = client.get("/api/v1/orders", params={"status": "shipped"}).json()["orders"][0]
        assert order["status"] == "shipped"
        assert order["customer_name"] == "Mona Adel"
        assert order["province"] == "Cairo"
        assert order["shipping_method"] == "Shipblu"

    def test_unknown_bucket(self, client):
        response = client.get("/api/v1/orders", params={"status": "archived"})
        assert response.status_code == 400

    def test_search(self, client):
        data = client.get("/api/v1/orders", params={"status": "all", "search": "#1003"}).json()
        assert [o["id"] for o in data["orders"]] == [1003]

    def test_query_leaves_board_view_unchanged(self, client):
        board = app.state.board
        before = board.params
        client.get("/api/v1/orders", params={"status": "shipped", "search": "Mona"})
        assert board.params == before
        assert [o.id for o in board.visible] == [1002, 1001]


class TestMutations:
    """Tests for mutation endpoints."""

    def test_status_change_is_applied_before_response(self, client):
        response = client.put("/api/v1/orders/1002/status", json={"status": "confirmed"})
        assert response.status_code == 202
        body = response.json()
        assert body["accepted"] is True
        assert body["order"]["status"] == "confirmed"

    def test_status_change_reaches_platform(self, client, api_gateway):
        client.put("/api/v1/orders/1002/status", json={"status": "shipped"})
        client.post("/api/v1/orders/refresh")
        assert ("update_status", 1002, "shipped") in api_gateway.calls

    def test_invalid_status(self, client):
        response = client.put("/api/v1/orders/1002/status", json={"status": "teleported"})
        assert response.status_code == 400

    def test_unknown_order(self, client):
        response = client.put("/api/v1/orders/9999/note", json={"note": "x"})
        assert response.status_code == 404

    def test_bulk_status(self, client):
        response = client.put(
            "/api/v1/orders/bulk/status",
            json={"orderIds": [1001, 1002], "status": "order-ready"},
        )
        assert response.status_code == 202
        assert response.json()["order_ids"] == [1001, 1002]
        data = client.get("/api/v1/orders", params={"status": "order-ready"}).json()
        assert {o["id"] for o in data["orders"]} == {1001, 1002}

    def test_bulk_status_requires_ids(self, client):
        response = client.put(
            "/api/v1/orders/bulk/status", json={"orderIds": [], "status": "shipped"}
        )
        assert response.status_code == 422

    def test_note_priority_and_due_date(self, client):
        assert client.put("/api/v1/orders/1001/note", json={"note": "Gift"}).json()["order"][
            "note"
        ] == "Gift"
        assert client.put(
            "/api/v1/orders/1001/priority", json={"isPriority": True}
        ).json()["order"]["priority"] is True
        body = client.put("/api/v1/orders/1001/due-date", json={"due_date": "2024-04-01"}).json()
        assert body["order"]["due_date"] == "2024-04-01"

    def test_delete_hides_order(self, client):
        assert client.delete("/api/v1/orders/1001").status_code == 202
        ids = [o["id"] for o in client.get("/api/v1/orders", params={"status": "all"}).json()["orders"]]
        assert 1001 not in ids


class TestRefreshAndHealth:
    """Tests for refresh and health endpoints."""

    def test_refresh(self, client, api_gateway):
        response = client.post("/api/v1/orders/refresh")
        assert response.status_code == 200
        assert response.json() == {"total": 3}

    def test_refresh_failure(self, client, api_gateway):
        api_gateway.fail_next("fetch_orders", message="Bad gateway", status_code=502)
        response = client.post("/api/v1/orders/refresh")
        assert response.status_code == 502
        assert "Bad gateway" in response.json()["detail"]

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["cached_orders"] == 3

    def test_board_not_ready(self):
        """Without a lifespan the routes report 503."""
        app.state.board = None
        response = TestClient(app).get("/api/v1/orders")
        assert response.status_code == 503
