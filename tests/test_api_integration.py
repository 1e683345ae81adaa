"""
API Integration Tests
End-to-end testing of API endpoints with real HTTP requests
"""
from decimal import Decimal
from typing import Dict

from fastapi.testclient import TestClient

API = "/api/v1"


def assert_error_response(response, expected_status: int, expected_error: str = None):
    """Assert error response format"""
    assert response.status_code == expected_status
    data = response.json()
    assert "error" in data
    assert "message" in data
    if expected_error:
        assert data["error"] == expected_error


def create_item(client: TestClient, headers: Dict[str, str], **overrides) -> dict:
    payload = {
        "name": "Penicillin",
        "category": "antibiotic",
        "unit": "ml",
        "quantity_on_hand": "100",
        "cost_per_unit": "0.15",
        "reorder_point": "20",
        "withdrawal_period_days": 10,
    }
    payload.update(overrides)
    response = client.post(f"{API}/stock/items/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestSystemAPI:
    """Test system endpoints"""

    def test_health_check(self, client: TestClient):
        """Test health check endpoint"""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ["healthy", "degraded"]
        assert "version" in data

    def test_system_info(self, client: TestClient):
        response = client.get("/info")

        assert response.status_code == 200
        data = response.json()
        assert "application" in data
        assert "features" in data

    def test_protected_endpoint_without_auth(self, client: TestClient):
        response = client.get(f"{API}/stock/items/")

        assert response.status_code in (401, 403)

    def test_invalid_token(self, client: TestClient):
        response = client.get(f"{API}/stock/items/", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401


class TestStockItemsAPI:
    """Test stock item endpoints"""

    def test_create_and_get_item(self, client: TestClient, auth_headers):
        created = create_item(client, auth_headers)

        response = client.get(f"{API}/stock/items/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Penicillin"
        assert data["category_group"] == "drug"
        assert Decimal(data["quantity_on_hand"]) == Decimal("100")
        assert Decimal(data["total_value"]) == Decimal("15")

    def test_get_missing_item(self, client: TestClient, auth_headers):
        response = client.get(f"{API}/stock/items/missing", headers=auth_headers)

        assert_error_response(response, 404, "not_found")

    def test_create_invalid_category(self, client: TestClient, auth_headers):
        response = client.post(f"{API}/stock/items/", json={
            "name": "X", "category": "rocket-fuel", "unit": "ml",
        }, headers=auth_headers)

        assert response.status_code == 422

    def test_negative_purchase_is_rejected(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers)

        response = client.post(f"{API}/stock/items/{item['id']}/purchases",
                               json={"quantity": "-5"}, headers=auth_headers)

        assert_error_response(response, 400, "invalid_argument")

    def test_purchase_records_operator(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers, quantity_on_hand="100", cost_per_unit="2.00")

        response = client.post(f"{API}/stock/items/{item['id']}/purchases",
                               json={"quantity": "50", "cost_per_unit": "5.00"}, headers=auth_headers)

        assert response.status_code == 201
        txn = response.json()
        assert txn["kind"] == "purchase"
        assert txn["operator"] == "Test Operator"
        refreshed = client.get(f"{API}/stock/items/{item['id']}", headers=auth_headers).json()
        assert Decimal(refreshed["cost_per_unit"]) == Decimal("3.00")

    def test_write_off_beyond_balance(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers, quantity_on_hand="5")

        response = client.post(f"{API}/stock/items/{item['id']}/write-offs",
                               json={"quantity": "8", "reason": "Broken vial"}, headers=auth_headers)

        assert_error_response(response, 409, "insufficient_stock")
        detail = response.json()["detail"]
        assert Decimal(detail[0]["shortfall"]) == Decimal("3")

    def test_availability_and_reconciliation(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers, quantity_on_hand="10")
        client.post(f"{API}/stock/items/{item['id']}/adjustments",
                    json={"new_quantity": "8", "reason": "Count"}, headers=auth_headers)

        availability = client.get(f"{API}/stock/items/{item['id']}/availability",
                                  params={"quantity": "9"}, headers=auth_headers).json()
        reconciliation = client.get(f"{API}/stock/items/{item['id']}/reconciliation",
                                    headers=auth_headers).json()

        assert availability["available"] is False
        assert Decimal(availability["shortfall"]) == Decimal("1")
        assert reconciliation["balanced"] is True
        assert reconciliation["transaction_count"] == 1

    def test_delete_requires_empty_balance(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers)

        response = client.delete(f"{API}/stock/items/{item['id']}", headers=auth_headers)
        assert_error_response(response, 409, "conflict")

        client.post(f"{API}/stock/items/{item['id']}/adjustments",
                    json={"new_quantity": "0", "reason": "Empty"}, headers=auth_headers)
        response = client.delete(f"{API}/stock/items/{item['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_create_from_catalog(self, client: TestClient, auth_headers):
        response = client.post(f"{API}/stock/items/from-catalog",
                               json={"catalog_name": "Barley", "quantity": "800"}, headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["unit"] == "bushels"
        assert data["category_group"] == "feed"


class TestAllocationsAPI:
    """Test allocation endpoints"""

    def test_feeding(self, client: TestClient, auth_headers):
        grain = create_item(client, auth_headers, name="Grain Mix", category="grain-mix", unit="lbs",
                            quantity_on_hand="1000", cost_per_unit="0.25", reorder_point="0")

        response = client.post(f"{API}/allocations/feedings", json={
            "pen_id": "pen-1", "pen_name": "North Pen", "head_count": 10,
            "feed_items": [{"item_id": grain["id"], "quantity": "200"}],
        }, headers=auth_headers)

        assert response.status_code == 201, response.text
        event = response.json()["event"]
        assert event["event_kind"] == "feeding"
        assert Decimal(event["total_cost"]) == Decimal("50")
        assert Decimal(event["cost_per_subject"]) == Decimal("5")
        assert Decimal(event["total_weight_lbs"]) == Decimal("200")

        listed = client.get(f"{API}/allocations/", params={"event_kind": "feeding"}, headers=auth_headers)
        assert [e["id"] for e in listed.json()] == [event["id"]]
        fetched = client.get(f"{API}/allocations/{event['id']}", headers=auth_headers)
        assert fetched.status_code == 200

    def test_allocation_reports_every_shortfall(self, client: TestClient, auth_headers):
        a = create_item(client, auth_headers, name="Drug A", quantity_on_hand="10")
        b = create_item(client, auth_headers, name="Drug B", quantity_on_hand="10")

        response = client.post(f"{API}/allocations/", json={
            "event_kind": "treatment",
            "lines": [{"item_id": a["id"], "quantity": "13"}, {"item_id": b["id"], "quantity": "17"}],
        }, headers=auth_headers)

        assert_error_response(response, 409, "insufficient_stock")
        shortfalls = {d["item_name"]: Decimal(d["shortfall"]) for d in response.json()["detail"]}
        assert shortfalls == {"Drug A": Decimal("3"), "Drug B": Decimal("7")}

    def test_vaccination_bad_dose(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers)

        response = client.post(f"{API}/allocations/vaccinations", json={
            "subject_id": "calf-1", "item_id": item["id"], "dose": "a splash",
        }, headers=auth_headers)

        assert_error_response(response, 400, "invalid_argument")

    def test_bulk_treatment(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers, quantity_on_hand="100")

        response = client.post(f"{API}/allocations/bulk-treatments", json={
            "item_id": item["id"], "dose_per_head": "5",
            "subjects": [{"subject_id": "cow-1"}, {"subject_id": "cow-2"}],
        }, headers=auth_headers)

        assert response.status_code == 201, response.text
        data = response.json()
        assert len(data["transactions"]) == 1
        assert len(data["event"]["subjects"]) == 2

    def test_check_availability(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers, quantity_on_hand="10")

        response = client.post(f"{API}/allocations/availability", json={
            "lines": [{"item_id": item["id"], "quantity": "4"}, {"item_id": item["id"], "quantity": "4"}],
        }, headers=auth_headers)

        assert response.status_code == 200
        results = response.json()
        assert len(results) == 1
        assert Decimal(results[0]["required"]) == Decimal("8")
        assert results[0]["available"] is True

    def test_recover_with_nothing_pending(self, client: TestClient, auth_headers):
        response = client.post(f"{API}/allocations/recover", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"completed": [], "compensated": [], "failed": []}


class TestAlertsAPI:
    """Test alert and status endpoints"""

    def test_low_stock_alert_lifecycle(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers, quantity_on_hand="25", reorder_point="20")
        client.post(f"{API}/stock/items/{item['id']}/write-offs",
                    json={"quantity": "10", "reason": "Contaminated"}, headers=auth_headers)

        alerts = client.get(f"{API}/stock/alerts", headers=auth_headers).json()
        assert [a["alert_kind"] for a in alerts] == ["low_stock"]

        response = client.post(f"{API}/stock/alerts/{alerts[0]['id']}/resolve", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["resolved"] is True
        assert client.get(f"{API}/stock/alerts", headers=auth_headers).json() == []

    def test_status(self, client: TestClient, auth_headers):
        create_item(client, auth_headers)

        response = client.get(f"{API}/stock/status", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_items"] == 1
        assert Decimal(data["value_by_group"]["drug"]) == Decimal("15")

    def test_catalog_search(self, client: TestClient, auth_headers):
        response = client.get(f"{API}/stock/catalog", params={"query": "ivermectin"}, headers=auth_headers)

        assert response.status_code == 200
        assert [e["name"] for e in response.json()] == ["Ivomec (Ivermectin)"]

    def test_transactions_listing(self, client: TestClient, auth_headers):
        item = create_item(client, auth_headers)
        client.post(f"{API}/stock/items/{item['id']}/purchases", json={"quantity": "5"}, headers=auth_headers)

        response = client.get(f"{API}/stock/transactions/", params={"item_id": item["id"]}, headers=auth_headers)

        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        single = client.get(f"{API}/stock/transactions/{rows[0]['id']}", headers=auth_headers)
        assert single.json()["id"] == rows[0]["id"]
