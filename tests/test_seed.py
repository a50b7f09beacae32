from hardware_store.security import verify_password
from hardware_store.seed import CATEGORIES, PRODUCTS, seed_database


class TestSeed:
    def test_seeds_catalog_and_admin(self, db, settings):
        seed_database(db, settings)

        assert db["category"].count_documents({}) == len(CATEGORIES)
        assert db["product"].count_documents({}) == len(PRODUCTS)
        admin = db["user"].find_one({"email": settings.admin_email})
        assert admin["role"] == "admin"
        assert verify_password(settings.admin_password, admin["password_hash"])

    def test_is_idempotent(self, db, settings):
        seed_database(db, settings)
        seed_database(db, settings)

        assert db["category"].count_documents({}) == len(CATEGORIES)
        assert db["product"].count_documents({}) == len(PRODUCTS)
        assert db["user"].count_documents({}) == 1

    def test_products_linked_to_categories(self, db, settings):
        seed_database(db, settings)

        tools = db["category"].find_one({"slug": "tools"})
        assert {p["sku"] for p in db["product"].find({"category_id": tools["_id"]})} == {"HAM-001", "DRI-001"}

    def test_seeded_admin_can_log_in(self, client, db, settings):
        seed_database(db, settings)

        response = client.post(
            "/api/auth/login", json={"email": settings.admin_email, "password": settings.admin_password}
        )

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"
