from bson import ObjectId


class TestCart:
    def test_empty_cart_created_on_first_read(self, client, customer):
        body = client.get("/api/cart", headers=customer["headers"]).json()
        assert body["items"] == []
        assert body["total"] == 0
        assert body["item_count"] == 0

    def test_add_snapshots_price_and_computes_totals(self, client, customer, make_product, add_to_cart):
        product = make_product("Spanner", price=7.25)

        body = add_to_cart(customer, product, 2)

        line = body["items"][0]
        assert line["unit_price"] == 7.25
        assert line["line_total"] == 14.5
        assert line["product"]["name"] == "Spanner"
        assert body["total"] == 14.5
        assert body["item_count"] == 2

    def test_adding_same_product_merges_quantity(self, client, customer, make_product, add_to_cart):
        product = make_product()
        add_to_cart(customer, product, 1)

        body = add_to_cart(customer, product, 2)

        assert len(body["items"]) == 1
        assert body["items"][0]["quantity"] == 3

    def test_cannot_exceed_stock(self, client, customer, make_product, add_to_cart):
        product = make_product(stock=3)
        add_to_cart(customer, product, 2)

        response = client.post(
            "/api/cart/items", json={"product_id": str(product["_id"]), "quantity": 2}, headers=customer["headers"]
        )

        assert response.status_code == 409
        assert response.json()["error"] == "InsufficientStockError"

    def test_inactive_or_unknown_product(self, client, customer, make_product):
        inactive = make_product(is_active=False)

        gone = client.post(
            "/api/cart/items", json={"product_id": str(ObjectId())}, headers=customer["headers"]
        )
        retired = client.post(
            "/api/cart/items", json={"product_id": str(inactive["_id"])}, headers=customer["headers"]
        )

        assert gone.status_code == 404
        assert retired.status_code == 409

    def test_quantity_must_be_positive(self, client, customer, make_product):
        product = make_product()
        response = client.post(
            "/api/cart/items", json={"product_id": str(product["_id"]), "quantity": 0}, headers=customer["headers"]
        )
        assert response.status_code == 400

    def test_update_and_remove_item(self, client, customer, make_product, add_to_cart):
        item_id = add_to_cart(customer, make_product(price=2.0))["items"][0]["id"]

        updated = client.put(f"/api/cart/items/{item_id}", json={"quantity": 4}, headers=customer["headers"])
        removed = client.delete(f"/api/cart/items/{item_id}", headers=customer["headers"])

        assert updated.json()["total"] == 8.0
        assert removed.json()["items"] == []

    def test_other_users_item_not_found(self, client, customer, make_user, make_product, add_to_cart):
        item_id = add_to_cart(customer, make_product())["items"][0]["id"]
        other = make_user(email="other@example.com")

        response = client.put(f"/api/cart/items/{item_id}", json={"quantity": 1}, headers=other["headers"])

        assert response.status_code == 404
        assert response.json()["message"] == "Cart item not found"

    def test_clear(self, client, customer, make_product, add_to_cart):
        add_to_cart(customer, make_product())
        client.delete("/api/cart", headers=customer["headers"])
        assert client.get("/api/cart", headers=customer["headers"]).json()["items"] == []


class TestWishlist:
    def test_add_list_remove(self, client, customer, make_product):
        product = make_product("Level")

        added = client.post("/api/wishlist/items", json={"product_id": str(product["_id"])}, headers=customer["headers"])
        listed = client.get("/api/wishlist", headers=customer["headers"]).json()
        removed = client.delete(f"/api/wishlist/items/{added.json()['id']}", headers=customer["headers"])

        assert added.status_code == 201
        assert listed["items"][0]["product"]["name"] == "Level"
        assert removed.status_code == 200
        assert client.get("/api/wishlist", headers=customer["headers"]).json()["items"] == []

    def test_duplicate_conflicts(self, client, customer, make_product):
        product = make_product()
        payload = {"product_id": str(product["_id"])}
        client.post("/api/wishlist/items", json=payload, headers=customer["headers"])

        response = client.post("/api/wishlist/items", json=payload, headers=customer["headers"])

        assert response.status_code == 409

    def test_cannot_remove_someone_elses_entry(self, client, customer, make_user, make_product):
        product = make_product()
        entry = client.post(
            "/api/wishlist/items", json={"product_id": str(product["_id"])}, headers=customer["headers"]
        ).json()
        other = make_user(email="other@example.com")

        response = client.delete(f"/api/wishlist/items/{entry['id']}", headers=other["headers"])

        assert response.status_code == 404
