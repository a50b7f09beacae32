import pytest
from bson import ObjectId


@pytest.fixture
def placed(client, customer, make_product, add_to_cart, place_order):
    """A pending order for two of a product that started with ten in stock."""
    product = make_product("Wrench", price=15.0, stock=10)
    add_to_cart(customer, product, 2)
    order = place_order(customer).json()["order"]
    return order, product


def stock_of(db, product):
    return db["product"].find_one({"_id": product["_id"]})["stock_quantity"]


class TestCustomerOrders:
    def test_list_and_detail(self, client, customer, placed):
        order, _ = placed

        listing = client.get("/api/orders", headers=customer["headers"]).json()
        assert listing["total"] == 1
        assert listing["orders"][0]["id"] == order["id"]

        detail = client.get(f"/api/orders/{order['id']}", headers=customer["headers"])
        assert detail.status_code == 200
        assert detail.json()["total"] == 30.0

    def test_other_users_order_looks_missing(self, client, make_user, placed):
        order, _ = placed
        other = make_user(email="other@example.com")

        assert client.get(f"/api/orders/{order['id']}", headers=other["headers"]).status_code == 404
        assert client.post(f"/api/orders/{order['id']}/cancel", headers=other["headers"]).status_code == 404

    @pytest.mark.parametrize("order_id", ["not-an-id", str(ObjectId())])
    def test_unknown_order(self, client, customer, order_id):
        response = client.get(f"/api/orders/{order_id}", headers=customer["headers"])
        assert response.status_code == 404
        assert response.json()["message"] == "Order not found"

    def test_pagination_bounds(self, client, customer):
        assert client.get("/api/orders?limit=101", headers=customer["headers"]).status_code == 400
        assert client.get("/api/orders?page=0", headers=customer["headers"]).status_code == 400


class TestCancel:
    def test_cancel_pending_restores_stock(self, client, db, customer, placed):
        order, product = placed
        assert stock_of(db, product) == 8

        response = client.post(f"/api/orders/{order['id']}/cancel", headers=customer["headers"])

        assert response.status_code == 200
        assert response.json()["order"]["status"] == "cancelled"
        assert stock_of(db, product) == 10

    def test_cancel_confirmed(self, client, db, customer, placed):
        order, product = placed
        db["order"].update_one({"_id": ObjectId(order["id"])}, {"$set": {"status": "confirmed"}})

        response = client.post(f"/api/orders/{order['id']}/cancel", headers=customer["headers"])

        assert response.status_code == 200
        assert stock_of(db, product) == 10

    @pytest.mark.parametrize("status", ["shipped", "delivered"])
    def test_cannot_cancel_after_shipping(self, client, db, customer, placed, status):
        order, product = placed
        db["order"].update_one({"_id": ObjectId(order["id"])}, {"$set": {"status": status}})

        response = client.post(f"/api/orders/{order['id']}/cancel", headers=customer["headers"])

        assert response.status_code == 400
        assert stock_of(db, product) == 8

    def test_second_cancel_does_not_restore_twice(self, client, db, customer, placed):
        order, product = placed
        client.post(f"/api/orders/{order['id']}/cancel", headers=customer["headers"])

        response = client.post(f"/api/orders/{order['id']}/cancel", headers=customer["headers"])

        assert response.status_code == 400
        assert stock_of(db, product) == 10


class TestAdminStatus:
    def test_progression_notifies_customer(self, client, db, admin, customer, placed, email):
        order, _ = placed
        email.sent.clear()

        response = client.put(
            f"/api/admin/orders/{order['id']}/status", json={"status": "shipped"}, headers=admin["headers"]
        )

        assert response.status_code == 200
        assert response.json()["status"] == "shipped"
        assert email.sent[0]["to"] == customer["email"]
        assert "shipped" in email.sent[0]["subject"]

    def test_admin_cancel_restores_stock(self, client, db, admin, placed):
        order, product = placed

        response = client.put(
            f"/api/admin/orders/{order['id']}/status", json={"status": "cancelled"}, headers=admin["headers"]
        )

        assert response.status_code == 200
        assert stock_of(db, product) == 10

    def test_cancelled_order_is_final(self, client, db, admin, customer, placed):
        order, product = placed
        client.post(f"/api/orders/{order['id']}/cancel", headers=customer["headers"])

        response = client.put(
            f"/api/admin/orders/{order['id']}/status", json={"status": "pending"}, headers=admin["headers"]
        )

        assert response.status_code == 409
        assert db["order"].find_one({"_id": ObjectId(order["id"])})["status"] == "cancelled"
        assert stock_of(db, product) == 10

    def test_unknown_status_rejected(self, client, admin, placed):
        order, _ = placed
        response = client.put(
            f"/api/admin/orders/{order['id']}/status", json={"status": "lost"}, headers=admin["headers"]
        )
        assert response.status_code == 400

    def test_detail_includes_customer_and_payments(self, client, admin, customer, placed):
        order, _ = placed

        detail = client.get(f"/api/admin/orders/{order['id']}", headers=admin["headers"]).json()

        assert detail["user"]["email"] == customer["email"]
        assert "password_hash" not in detail["user"]
        assert len(detail["payments"]) == 1

    def test_list_filters_by_status(self, client, admin, placed):
        assert client.get("/api/admin/orders?status=pending", headers=admin["headers"]).json()["total"] == 1
        assert client.get("/api/admin/orders?status=shipped", headers=admin["headers"]).json()["total"] == 0
