import re
from datetime import timedelta

from hardware_store.database import utc_now
from hardware_store.security import create_access_token

REGISTRATION = {
    "email": "Jane@Example.com",
    "password": "Secret@123",
    "full_name": "Jane Doe",
    "phone": "+2348012345678",
}


def reset_code(message):
    return re.search(r"Use this code: (\S+)\. It expires", message).group(1)


class TestRegister:
    def test_register_returns_session(self, client, db, email, sms):
        response = client.post("/api/auth/register", json=REGISTRATION)

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "jane@example.com"
        assert body["user"]["role"] == "customer"
        assert "password_hash" not in body["user"]
        stored = db["user"].find_one({"email": "jane@example.com"})
        assert stored["password_hash"] != REGISTRATION["password"]
        assert email.sent[0]["subject"] == "Welcome to Hardware Store!"
        assert len(sms.sent) == 1

    def test_duplicate_email_conflicts(self, client):
        client.post("/api/auth/register", json=REGISTRATION)

        response = client.post("/api/auth/register", json={**REGISTRATION, "email": "jane@example.com"})

        assert response.status_code == 409
        assert response.json()["message"] == "Email already registered"

    def test_invalid_payload(self, client):
        response = client.post("/api/auth/register", json={**REGISTRATION, "email": "nope", "password": "short"})

        assert response.status_code == 400
        fields = {d["field"] for d in response.json()["details"]}
        assert "body.email" in fields
        assert "body.password" in fields


class TestLogin:
    def test_login_and_use_token(self, client, customer):
        response = client.post("/api/auth/login", json={"email": customer["email"], "password": "Secret@123"})

        assert response.status_code == 200
        token = response.json()["token"]
        profile = client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})
        assert profile.json()["email"] == customer["email"]

    def test_wrong_password(self, client, customer):
        response = client.post("/api/auth/login", json={"email": customer["email"], "password": "wrong-pass"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    def test_unknown_email_same_answer(self, client):
        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "Secret@123"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    def test_deactivated_account(self, client, make_user):
        user = make_user(email="gone@example.com", is_active=False)

        login = client.post("/api/auth/login", json={"email": user["email"], "password": "Secret@123"})
        existing_token = client.get("/api/profile", headers=user["headers"])

        assert login.status_code == 401
        assert existing_token.status_code == 401

    def test_logout_requires_token(self, client, customer):
        assert client.post("/api/auth/logout").status_code == 401
        assert client.post("/api/auth/logout", headers=customer["headers"]).status_code == 200


class TestBearerTokens:
    def test_missing_header(self, client):
        response = client.get("/api/profile")
        assert response.status_code == 401
        assert response.json()["message"] == "Authorization header required"

    def test_expired_token(self, client, settings, customer):
        issued = int((utc_now() - timedelta(hours=2)).timestamp())
        token = create_access_token(customer, settings.jwt_secret, 3600, now=issued)

        response = client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["message"] == "Token expired"

    def test_token_signed_with_other_secret(self, client, customer):
        token = create_access_token(customer, "someone-elses-secret", 3600)
        response = client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_non_ascii_signature_is_unauthorized(self, client):
        response = client.get("/api/profile", headers={"Authorization": b"Bearer eyJhbGciOiJIUzI1NiJ9.e30.\xe9\xe9"})

        assert response.status_code == 401
        assert response.json()["error"] == "AuthError"

    def test_token_for_deleted_user(self, client, db, customer):
        db["user"].delete_one({"_id": customer["_id"]})
        response = client.get("/api/profile", headers=customer["headers"])
        assert response.status_code == 401


class TestPasswordReset:
    def test_full_reset_flow(self, client, db, customer, email):
        response = client.post("/api/auth/password/reset", json={"email": customer["email"]})
        assert response.status_code == 200
        code = reset_code(email.sent[-1]["body"])
        assert db["user"].find_one({"_id": customer["_id"]})["reset_token"] != code

        confirm = client.post("/api/auth/password/reset/confirm", json={"token": code, "new_password": "N3wSecret!"})

        assert confirm.status_code == 200
        stored = db["user"].find_one({"_id": customer["_id"]})
        assert "reset_token" not in stored
        old = client.post("/api/auth/login", json={"email": customer["email"], "password": "Secret@123"})
        new = client.post("/api/auth/login", json={"email": customer["email"], "password": "N3wSecret!"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_code_is_single_use(self, client, customer, email):
        client.post("/api/auth/password/reset", json={"email": customer["email"]})
        code = reset_code(email.sent[-1]["body"])
        client.post("/api/auth/password/reset/confirm", json={"token": code, "new_password": "N3wSecret!"})

        again = client.post("/api/auth/password/reset/confirm", json={"token": code, "new_password": "Other@1234"})

        assert again.status_code == 400

    def test_expired_code(self, client, db, customer, email):
        client.post("/api/auth/password/reset", json={"email": customer["email"]})
        code = reset_code(email.sent[-1]["body"])
        db["user"].update_one(
            {"_id": customer["_id"]}, {"$set": {"reset_token_expiry": utc_now() - timedelta(minutes=1)}}
        )

        response = client.post("/api/auth/password/reset/confirm", json={"token": code, "new_password": "N3wSecret!"})

        assert response.status_code == 400

    def test_unknown_email_gets_same_answer(self, client, customer, email):
        known = client.post("/api/auth/password/reset", json={"email": customer["email"]})
        unknown = client.post("/api/auth/password/reset", json={"email": "ghost@example.com"})

        assert known.json() == unknown.json()
        assert len(email.sent) == 1
