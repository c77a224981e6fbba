"""
HTTP tests for the escrow API

Walks the marketplace scenario end to end and checks how domain errors map
to status codes.
"""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from escrow.api import app, get_service


def headers(caller):
    return {"X-User-Id": str(caller.user_id), "X-User-Role": caller.role.value}


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def order_payload(listing_id):
    return {
        "listing_id": str(listing_id),
        "payment_method": "bkash",
        "external_tx_id": "TX1",
        "amount": "15000",
        "payment_number": "01712345678",
    }


class TestMarketplaceScenario:

    def test_order_delivery_and_release(self, client, buyer, seller, order_payload):
        response = client.post("/orders", json=order_payload, headers=headers(buyer))
        assert response.status_code == 201
        order_id = response.json()["order"]["id"]
        assert response.json()["order"]["status"] == "paid"

        # Replayed receipt
        response = client.post("/orders", json=order_payload, headers=headers(buyer))
        assert response.status_code == 409

        delivery_a = client.post(f"/orders/{order_id}/deliveries", json={"artifact_location": "/uploads/a.zip"},
                                 headers=headers(seller)).json()
        delivery_b = client.post(f"/orders/{order_id}/deliveries", json={"artifact_location": "/uploads/b.zip"},
                                 headers=headers(seller)).json()
        assert delivery_a["status"] == "pending"
        assert delivery_a["decision"] is None

        response = client.post(f"/deliveries/{delivery_a['id']}/accept", headers=headers(buyer))
        assert response.status_code == 200
        assert response.json()["status"] == "delivered"
        assert response.json()["decision"] == "accepted"

        sibling = client.get(f"/deliveries/{delivery_b['id']}", headers=headers(buyer)).json()
        assert sibling["status"] == "rejected"
        assert sibling["decision"] == "rejected"

        order = client.get(f"/orders/{order_id}", headers=headers(buyer)).json()
        assert order["status"] == "completed"

        wallet = client.get("/wallet", headers=headers(seller)).json()
        assert float(wallet["balance"]) == 15000
        assert float(wallet["total_earned"]) == 15000

        response = client.post(f"/deliveries/{delivery_a['id']}/accept", headers=headers(buyer))
        assert response.status_code == 409

    def test_withdrawal_round_trip(self, client, store, seller, operator):
        funded = store.add_user(seller.role, balance=Decimal("5000"))
        seller_headers = {"X-User-Id": str(funded.id), "X-User-Role": "seller"}

        response = client.post("/withdrawals", json={
            "amount": "1000", "method": "bkash", "destination_number": "01712345678",
        }, headers=seller_headers)
        assert response.status_code == 201
        withdrawal_id = response.json()["withdrawal"]["id"]
        assert float(response.json()["total"]) == 1100

        response = client.post(f"/withdrawals/{withdrawal_id}/settle", json={"decision": "rejected"},
                               headers=headers(operator))
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"

        wallet = client.get("/wallet", headers=seller_headers).json()
        assert float(wallet["balance"]) == 5000


class TestErrorMapping:

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_role_error_is_forbidden(self, client, seller, order_payload):
        response = client.post("/orders", json=order_payload, headers=headers(seller))
        assert response.status_code == 403

    def test_price_mismatch_is_bad_request(self, client, buyer, order_payload):
        order_payload["amount"] = "1"
        response = client.post("/orders", json=order_payload, headers=headers(buyer))
        assert response.status_code == 400

    def test_insufficient_balance_is_bad_request(self, client, seller):
        response = client.post("/withdrawals", json={
            "amount": "1000", "method": "nagad", "destination_number": "01912345678",
        }, headers=headers(seller))
        assert response.status_code == 400

    def test_missing_delivery_is_not_found(self, client, buyer):
        response = client.post("/deliveries/00000000-0000-0000-0000-000000000000/accept", headers=headers(buyer))
        assert response.status_code == 404

    def test_missing_identity_headers(self, client):
        assert client.get("/wallet").status_code == 422

    def test_delivery_read_requires_party(self, client, store, seller, order, submit):
        delivery = submit(order.id)
        outsider = {"X-User-Id": str(store.add_user(seller.role).id), "X-User-Role": "seller"}

        assert client.get(f"/deliveries/{delivery.id}").status_code == 422
        assert client.get(f"/deliveries/{delivery.id}", headers=outsider).status_code == 403
        assert client.get(f"/orders/{order.id}/deliveries", headers=outsider).status_code == 403

    def test_buyer_cannot_submit_delivery(self, client, buyer, order):
        response = client.post(f"/orders/{order.id}/deliveries", json={"artifact_location": "/uploads/a.zip"},
                               headers=headers(buyer))
        assert response.status_code == 403

    @pytest.mark.parametrize("query", ["limit=0", "limit=-1", "offset=-1", "limit=1000"])
    def test_transaction_page_bounds(self, client, seller, query):
        assert client.get(f"/transactions?{query}", headers=headers(seller)).status_code == 422

    def test_notifications_inbox(self, client, buyer, order, submit):
        submit(order.id)

        inbox = client.get("/notifications", headers=headers(buyer)).json()
        assert inbox["unread_count"] == 1
        assert inbox["notifications"][0]["href"] == f"/orders/deliveries/{order.id}"

        response = client.patch("/notifications", json={"mark_all": True}, headers=headers(buyer))
        assert response.json() == {"success": True, "updated": 1}
        assert client.get("/notifications", headers=headers(buyer)).json()["unread_count"] == 0

    def test_settings_defaults(self, client):
        settings = client.get("/settings").json()
        assert float(settings["withdraw_fee_percentage"]) == 10
        assert float(settings["min_withdraw_amount"]) == 500


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
