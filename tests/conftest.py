"""Shared fixtures: a mongomock database, fakeredis cache and recording providers."""

import hashlib
import hmac

import fakeredis
import mongomock
import pytest
from fastapi.testclient import TestClient

from hardware_store.cache import CacheService
from hardware_store.clients.cloudinary import CloudinaryClient
from hardware_store.clients.paystack import PaystackClient
from hardware_store.config import Settings
from hardware_store.database import Database
from hardware_store.errors import UpstreamError
from hardware_store.main import create_app
from hardware_store.schemas import Category, Product, Role, User
from hardware_store.security import create_access_token, hash_password

PAYSTACK_SECRET = "sk_test_webhook_secret"
PASSWORD = "Secret@123"
ADDRESS = {"label": "Home", "line": "12 Builder Street", "city": "Lagos", "country": "NG"}


class FakeEmail:
    def __init__(self):
        self.sent = []
        self.fail = False

    def is_configured(self):
        return True

    def send_email(self, to_email, to_name, subject, html):
        if self.fail:
            raise UpstreamError("sendgrid", "status 500")
        self.sent.append({"to": to_email, "name": to_name, "subject": subject, "body": html})


class FakeSMS:
    def __init__(self):
        self.sent = []
        self.fail = False

    def is_configured(self):
        return True

    def send_sms(self, to_number, body):
        if self.fail:
            raise UpstreamError("twilio", "status 500")
        self.sent.append({"to": to_number, "body": body})


class FakePaystack(PaystackClient):
    """Real signature checks; provider calls are recorded instead of sent."""

    def __init__(self):
        super().__init__(PAYSTACK_SECRET)
        self.initialized = []
        self.provider_status = "success"

    def initialize(self, email, amount_minor, reference, callback_url, currency="NGN", metadata=None):
        self.initialized.append(
            {"email": email, "amount": amount_minor, "reference": reference, "callback_url": callback_url}
        )
        return {
            "authorization_url": f"https://checkout.paystack.com/{reference}",
            "access_code": f"ac_{reference}",
            "reference": reference,
        }

    def verify(self, reference):
        return {"reference": reference, "status": self.provider_status}


class FakeStorage(CloudinaryClient):
    def __init__(self):
        super().__init__("demo-cloud", "key", "secret", max_file_size=1024)
        self.uploaded = []
        self.destroyed = []

    def upload(self, content, filename):
        public_id = f"uploads/{filename.rsplit('.', 1)[0]}"
        self.uploaded.append((filename, len(content)))
        return {"public_id": public_id, "secure_url": self.image_url(public_id), "bytes": len(content)}

    def destroy(self, public_id):
        self.destroyed.append(public_id)

    def resource(self, public_id):
        return {"public_id": public_id, "url": self.image_url(public_id)}


@pytest.fixture
def settings():
    return Settings(
        database_url="mongodb://localhost:27017",
        database_name="hardware_store_test",
        jwt_secret="test-jwt-secret",
        jwt_expiry_seconds=3600,
        seed_database=False,
        rate_limit_requests=1000,
        auth_rate_limit_requests=1000,
        paystack_secret_key=PAYSTACK_SECRET,
        base_url="http://testserver",
        low_stock_threshold=3,
    )


@pytest.fixture
def db():
    return Database(mongomock.MongoClient(), "hardware_store_test", use_transactions=False)


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache(redis_client):
    return CacheService(redis_client)


@pytest.fixture
def email():
    return FakeEmail()


@pytest.fixture
def sms():
    return FakeSMS()


@pytest.fixture
def paystack():
    return FakePaystack()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def app(settings, db, cache, email, sms, paystack, storage):
    return create_app(settings, database=db, cache=cache, email=email, sms=sms, paystack=paystack, storage=storage)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db, settings):
    def _make(email="customer@example.com", role=Role.CUSTOMER, phone=None, is_active=True):
        doc = User(
            email=email,
            password_hash=hash_password(PASSWORD),
            full_name=email.split("@")[0].title(),
            phone=phone,
            role=role,
            is_active=is_active,
        ).model_dump()
        doc["_id"] = db["user"].insert_one(doc).inserted_id
        doc["headers"] = bearer(create_access_token(doc, settings.jwt_secret, settings.jwt_expiry_seconds))
        return doc

    return _make


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", role=Role.ADMIN)


@pytest.fixture
def category(db):
    doc = Category(name="Tools", slug="tools").model_dump()
    doc["_id"] = db["category"].insert_one(doc).inserted_id
    return doc


@pytest.fixture
def make_product(db, category):
    counter = {"n": 0}

    def _make(name=None, price=10.0, stock=10, is_active=True):
        counter["n"] += 1
        name = name or f"Product {counter['n']}"
        slug = name.lower().replace(" ", "-")
        doc = Product(
            sku=f"SKU-{counter['n']:03d}",
            name=name,
            slug=slug,
            category_id=category["_id"],
            description=f"{name} description",
            price=price,
            stock_quantity=stock,
            is_active=is_active,
        ).model_dump()
        doc["_id"] = db["product"].insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def add_to_cart(client):
    def _add(user, product, quantity=1):
        response = client.post(
            "/api/cart/items",
            json={"product_id": str(product["_id"]), "quantity": quantity},
            headers=user["headers"],
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _add


@pytest.fixture
def place_order(client):
    def _place(user, **extra):
        return client.post("/api/checkout/place", json={"address": ADDRESS, **extra}, headers=user["headers"])

    return _place


@pytest.fixture
def webhook_signature():
    def _sign(body: bytes, secret=PAYSTACK_SECRET):
        return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()

    return _sign
