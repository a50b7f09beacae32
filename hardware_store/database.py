"""MongoDB access.

``Database`` is constructed once by the app factory and handed to services
through the request context. Collection names are the lowercase entity names.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.client_session import ClientSession
from pymongo.errors import PyMongoError

from .errors import NotFoundError

logger = logging.getLogger(__name__)

COLLECTIONS = (
    "user",
    "address",
    "category",
    "product",
    "cart",
    "wishlist",
    "order",
    "payment",
    "notification",
    "service_request",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def query_time(value: datetime) -> datetime:
    """BSON dates come back as naive UTC; compare against the same."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def object_id(value: Any, label: str) -> ObjectId:
    """Parse an id from a path or body; anything unparsable is reported as not found."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFoundError(label)


def _convert(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return serialize(value)
    if isinstance(value, list):
        return [_convert(v) for v in value]
    return value


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return a JSON-ready copy of a document: ``_id`` becomes ``id``, ObjectIds become strings."""
    if doc is None:
        return None
    out: Dict[str, Any] = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        else:
            out[key] = _convert(value)
    return out


def serialize_many(docs) -> List[Dict[str, Any]]:
    return [serialize(d) for d in docs]


class Database:
    def __init__(self, client: MongoClient, name: str, use_transactions: bool = True):
        self.client = client
        self.name = name
        self.db = client[name]
        self.use_transactions = use_transactions

    @classmethod
    def connect(cls, url: str, name: str, use_transactions: bool = True) -> "Database":
        client = MongoClient(url, serverSelectionTimeoutMS=5000)
        logger.info("MongoDB client created for database %s", name)
        return cls(client, name, use_transactions)

    def __getitem__(self, collection: str):
        return self.db[collection]

    @contextmanager
    def transaction(self) -> Iterator[Optional[ClientSession]]:
        """Run the enclosed block as one multi-document transaction.

        The session is yielded so callers can pass it to every operation.
        Leaving the block with an exception aborts the transaction.
        """
        if not self.use_transactions:
            yield None
            return
        with self.client.start_session() as session:
            with session.start_transaction():
                yield session

    def ensure_indexes(self) -> None:
        self["user"].create_index([("email", ASCENDING)], unique=True)
        self["user"].create_index([("reset_token", ASCENDING)], sparse=True)
        self["category"].create_index([("slug", ASCENDING)], unique=True)
        self["product"].create_index([("sku", ASCENDING)], unique=True)
        self["product"].create_index([("slug", ASCENDING)], unique=True)
        self["product"].create_index([("category_id", ASCENDING)])
        self["cart"].create_index([("user_id", ASCENDING)], unique=True)
        self["wishlist"].create_index([("user_id", ASCENDING), ("product_id", ASCENDING)], unique=True)
        self["order"].create_index([("user_id", ASCENDING), ("placed_at", DESCENDING)])
        self["order"].create_index([("items.product_id", ASCENDING)])
        self["payment"].create_index([("reference", ASCENDING)], unique=True)
        self["payment"].create_index([("order_id", ASCENDING)])
        self["notification"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        self["service_request"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        self["address"].create_index([("user_id", ASCENDING)])

    def ping(self) -> bool:
        try:
            self.db.command("ping")
            return True
        except PyMongoError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    def close(self) -> None:
        self.client.close()
