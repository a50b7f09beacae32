from contextlib import contextmanager

import pytest
from bson import ObjectId

from hardware_store.database import Database, object_id, serialize
from hardware_store.errors import NotFoundError


class FakeSession:
    def __init__(self, events):
        self.events = events

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.events.append("end_session")

    @contextmanager
    def start_transaction(self):
        self.events.append("start_transaction")
        try:
            yield
        except Exception:
            self.events.append("abort")
            raise
        self.events.append("commit")


class FakeClient:
    def __init__(self):
        self.events = []

    def __getitem__(self, name):
        return {}

    def start_session(self):
        self.events.append("start_session")
        return FakeSession(self.events)


class TestTransaction:
    def test_commits_and_yields_session(self):
        client = FakeClient()
        db = Database(client, "shop")

        with db.transaction() as session:
            assert isinstance(session, FakeSession)

        assert client.events == ["start_session", "start_transaction", "commit", "end_session"]

    def test_error_aborts(self):
        client = FakeClient()
        db = Database(client, "shop")

        with pytest.raises(RuntimeError):
            with db.transaction():
                raise RuntimeError("stock decrement failed")

        assert client.events == ["start_session", "start_transaction", "abort", "end_session"]

    def test_without_transactions_yields_no_session(self):
        client = FakeClient()
        db = Database(client, "shop", use_transactions=False)

        with db.transaction() as session:
            assert session is None

        assert client.events == []


class TestIds:
    def test_object_id_parses_strings(self):
        oid = ObjectId()
        assert object_id(str(oid), "Order") == oid

    def test_bad_id_is_not_found(self):
        with pytest.raises(NotFoundError, match="Order not found"):
            object_id("not-an-id", "Order")

    def test_serialize_renames_id_and_stringifies_nested_ids(self):
        oid, product_id = ObjectId(), ObjectId()

        doc = serialize({"_id": oid, "items": [{"product_id": product_id}], "total": 10})

        assert doc == {"id": str(oid), "items": [{"product_id": str(product_id)}], "total": 10}
