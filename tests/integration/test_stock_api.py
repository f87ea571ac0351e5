"""Integration tests for the batch, allocation and reduction endpoints."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient


def expires(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


@pytest.fixture(name="product_id")
def product_id_fixture(client: TestClient) -> int:
    response = client.post(
        "/api/products/",
        json={"product_code": "P1001", "product_name": "Ibuprofen 400mg", "reorder_level": 5},
    )
    return response.json()["id"]


def add_batch(client: TestClient, product_id: int, number: str, qty: int, days: int, **extra):
    payload = {
        "batch_number": number,
        "expiration_date": expires(days),
        "quantity_received": qty,
        "unit_cost": "1.00",
        "sale_price": "2.00",
        **extra,
    }
    return client.post(f"/api/products/{product_id}/batches", json=payload)


@pytest.fixture(name="two_batches")
def two_batches_fixture(client: TestClient, product_id: int) -> dict:
    """Batch A: 5 units expiring in 10 days; batch B: 10 units expiring in 30 days."""
    a = add_batch(client, product_id, "A", 5, 10, sale_price="2.00").json()
    b = add_batch(client, product_id, "B", 10, 30, unit_cost="1.50", sale_price="3.00").json()
    return {"A": a, "B": b}


class TestAddBatch:
    """Tests for POST /api/products/{id}/batches"""

    def test_add_batch_success(self, client: TestClient, product_id: int):
        response = add_batch(client, product_id, " LOT-0415 ", 100, 200, notes="cold chain")

        assert response.status_code == 201
        data = response.json()
        assert len(data["id"]) == 32
        assert data["batch_number"] == "LOT-0415"
        assert data["quantity_received"] == 100
        assert data["quantity_remaining"] == 100
        assert data["received_date"] == date.today().isoformat()
        assert data["notes"] == "cold chain"

        product = client.get(f"/api/products/{product_id}").json()
        assert product["stock_quantity"] == 100
        assert product["version"] == 2

    def test_add_batch_with_partial_remaining(self, client: TestClient, product_id: int):
        response = add_batch(client, product_id, "LOT-1", 10, 60, quantity_remaining=4)

        assert response.status_code == 201
        assert response.json()["quantity_remaining"] == 4

    def test_remaining_exceeding_received(self, client: TestClient, product_id: int):
        response = add_batch(client, product_id, "LOT-1", 10, 60, quantity_remaining=11)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert "Invalid batch data" in detail["message"]
        assert detail["errors"]

    def test_missing_required_field(self, client: TestClient, product_id: int):
        response = client.post(
            f"/api/products/{product_id}/batches",
            json={"batch_number": "LOT-1", "quantity_received": 5},
        )
        assert response.status_code == 422

    def test_zero_quantity_rejected(self, client: TestClient, product_id: int):
        """Receiving requires at least one unit even though a stored batch may hold zero."""
        response = add_batch(client, product_id, "LOT-1", 0, 60)

        assert response.status_code == 422
        error = response.json()["detail"][0]
        assert error["loc"] == ["body", "quantity_received"]
        assert error["type"] == "greater_than"

    def test_add_batch_unknown_product(self, client: TestClient):
        response = add_batch(client, 999, "LOT-1", 5, 60)
        assert response.status_code == 404


class TestListBatches:
    """Tests for GET /api/products/{id}/batches"""

    def test_fifo_order_and_expired_split(self, client: TestClient, product_id: int):
        add_batch(client, product_id, "LATE", 10, 90)
        add_batch(client, product_id, "OLD", 7, -5)
        add_batch(client, product_id, "EARLY", 4, 20)

        response = client.get(f"/api/products/{product_id}/batches")

        assert response.status_code == 200
        data = response.json()
        assert [b["batch_number"] for b in data["available_batches"]] == ["EARLY", "LATE"]
        assert [b["batch_number"] for b in data["expired_batches"]] == ["OLD"]
        assert data["summary"]["total_available"] == 14
        assert data["summary"]["total_expired"] == 7
        assert data["summary"]["batch_count"] == 2
        assert Decimal(data["summary"]["inventory_value"]) == Decimal("14.00")

    def test_list_batches_unknown_product(self, client: TestClient):
        assert client.get("/api/products/999/batches").status_code == 404


class TestAllocate:
    """Tests for POST /api/products/{id}/allocate"""

    def test_allocation_plan(self, client: TestClient, product_id: int, two_batches: dict):
        response = client.post(f"/api/products/{product_id}/allocate", json={"quantity": 7})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert [(b["batch_number"], b["quantity"]) for b in data["batches"]] == [
            ("A", 5),
            ("B", 2),
        ]
        assert Decimal(data["total_cost"]) == Decimal("8.00")
        assert Decimal(data["total_revenue"]) == Decimal("16.00")

    def test_allocation_does_not_consume(
        self, client: TestClient, product_id: int, two_batches: dict
    ):
        client.post(f"/api/products/{product_id}/allocate", json={"quantity": 7})

        product = client.get(f"/api/products/{product_id}").json()
        assert product["available_stock"] == 15

    def test_allocation_shortage(self, client: TestClient, product_id: int, two_batches: dict):
        response = client.post(f"/api/products/{product_id}/allocate", json={"quantity": 20})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["available"] == 15
        assert data["shortage"] == 5
        assert data["batches"] == []

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity(self, client: TestClient, product_id: int, quantity: int):
        response = client.post(
            f"/api/products/{product_id}/allocate",
            json={"quantity": quantity},
        )
        assert response.status_code == 422


class TestReduceStock:
    """Tests for POST /api/products/{id}/reduce"""

    def test_reduce_across_batches(self, client: TestClient, product_id: int, two_batches: dict):
        response = client.post(
            f"/api/products/{product_id}/reduce",
            json={"quantity": 7, "reason": "pos_sale"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reason"] == "pos_sale"
        assert data["stock_quantity"] == 8
        assert [(b["batch_id"], b["quantity"]) for b in data["batches_used"]] == [
            (two_batches["A"]["id"], 5),
            (two_batches["B"]["id"], 2),
        ]

        available = client.get(f"/api/products/{product_id}/batches").json()["available_batches"]
        assert [(b["batch_number"], b["quantity_remaining"]) for b in available] == [("B", 8)]

    def test_reduce_insufficient_stock(
        self, client: TestClient, product_id: int, two_batches: dict
    ):
        response = client.post(f"/api/products/{product_id}/reduce", json={"quantity": 16})

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["requested"] == 16
        assert detail["available"] == 15
        assert detail["shortage"] == 1

        product = client.get(f"/api/products/{product_id}").json()
        assert product["available_stock"] == 15
        assert product["version"] == 3

    def test_reduce_skips_expired(self, client: TestClient, product_id: int):
        add_batch(client, product_id, "OLD", 50, -1)
        add_batch(client, product_id, "NEW", 5, 40)

        response = client.post(f"/api/products/{product_id}/reduce", json={"quantity": 6})

        assert response.status_code == 409
        assert response.json()["detail"]["available"] == 5

    def test_reduce_unknown_product(self, client: TestClient):
        response = client.post("/api/products/999/reduce", json={"quantity": 1})
        assert response.status_code == 404

    def test_reduce_zero_quantity(self, client: TestClient, product_id: int):
        response = client.post(f"/api/products/{product_id}/reduce", json={"quantity": 0})
        assert response.status_code == 422


class TestUpdateBatch:
    """Tests for PATCH /api/products/{id}/batches/{batch_id}"""

    def test_update_fields(self, client: TestClient, product_id: int, two_batches: dict):
        batch_id = two_batches["B"]["id"]

        response = client.patch(
            f"/api/products/{product_id}/batches/{batch_id}",
            json={"quantity_remaining": 6, "sale_price": "3.25", "notes": "recount"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["quantity_remaining"] == 6
        assert Decimal(data["sale_price"]) == Decimal("3.25")
        assert data["notes"] == "recount"
        assert data["batch_number"] == "B"

        product = client.get(f"/api/products/{product_id}").json()
        assert product["stock_quantity"] == 11

    def test_update_rejects_remaining_above_received(
        self, client: TestClient, product_id: int, two_batches: dict
    ):
        batch_id = two_batches["A"]["id"]

        response = client.patch(
            f"/api/products/{product_id}/batches/{batch_id}",
            json={"quantity_remaining": 6},
        )

        assert response.status_code == 422
        assert "errors" in response.json()["detail"]

    def test_update_unknown_batch(self, client: TestClient, product_id: int):
        response = client.patch(
            f"/api/products/{product_id}/batches/missing",
            json={"notes": "x"},
        )
        assert response.status_code == 404


class TestMovements:
    """Tests for GET /api/products/{id}/movements"""

    def test_movement_log(self, client: TestClient, product_id: int, two_batches: dict):
        client.post(
            f"/api/products/{product_id}/reduce",
            json={"quantity": 7, "reason": "order_reservation", "notes": "ORD-9"},
        )

        response = client.get(f"/api/products/{product_id}/movements")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        types = sorted(m["movement_type"] for m in data["movements"])
        assert types == ["purchase", "purchase", "sale", "sale"]
        sales = [m for m in data["movements"] if m["movement_type"] == "sale"]
        assert sorted(m["quantity"] for m in sales) == [-5, -2]
        assert {m["notes"] for m in sales} == {"ORD-9"}

    def test_movement_limit(self, client: TestClient, product_id: int, two_batches: dict):
        data = client.get(f"/api/products/{product_id}/movements", params={"limit": 1}).json()
        assert data["total"] == 1

    def test_movements_unknown_product(self, client: TestClient):
        assert client.get("/api/products/999/movements").status_code == 404
