import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..database import Database, object_id, utc_now
from ..deps import find_owned
from ..errors import ConflictError, NotFoundError, ValidationError
from ..schemas import CANCELLABLE_ORDER_STATUSES, OrderStatus

logger = logging.getLogger(__name__)


def day_range(start: Optional[date], end: Optional[date]) -> Dict[str, datetime]:
    """Mongo range filter covering whole days from ``start`` through ``end`` (naive UTC bounds)."""
    query: Dict[str, datetime] = {}
    if start:
        query["$gte"] = datetime.combine(start, time.min)
    if end:
        query["$lt"] = datetime.combine(end + timedelta(days=1), time.min)
    return query


class OrderService:
    def __init__(self, db: Database):
        self.db = db

    def list_for_user(self, user: dict, skip: int = 0, limit: int = 20) -> Tuple[List[dict], int]:
        query = {"user_id": user["_id"]}
        total = self.db["order"].count_documents(query)
        cursor = self.db["order"].find(query).sort([("placed_at", -1)]).skip(skip).limit(limit)
        return list(cursor), total

    def get_for_user(self, user: dict, order_id: Any) -> dict:
        return find_owned(self.db["order"], order_id, user, "Order")

    def cancel(self, user: dict, order_id: Any) -> dict:
        return self._cancel(self.get_for_user(user, order_id))

    def _cancel(self, order: dict) -> dict:
        if order["status"] not in CANCELLABLE_ORDER_STATUSES:
            raise ValidationError(f"Order cannot be cancelled in {order['status']} status")

        result = self.db["order"].update_one(
            {"_id": order["_id"], "status": {"$in": list(CANCELLABLE_ORDER_STATUSES)}},
            {"$set": {"status": OrderStatus.CANCELLED.value, "updated_at": utc_now()}},
        )
        if result.modified_count == 0:
            raise ConflictError("Order status changed before it could be cancelled")

        # not transactional with the status change above
        for item in order["items"]:
            self.db["product"].update_one(
                {"_id": item["product_id"]},
                {"$inc": {"stock_quantity": item["quantity"]}, "$set": {"updated_at": utc_now()}},
            )
        logger.info("Order %s cancelled; stock restored for %d items", order["_id"], len(order["items"]))
        return self.db["order"].find_one({"_id": order["_id"]})

    # Admin
    def list_all(
        self,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[dict], int]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = OrderStatus(status).value
        placed = day_range(start_date, end_date)
        if placed:
            query["placed_at"] = placed
        total = self.db["order"].count_documents(query)
        cursor = self.db["order"].find(query).sort([("placed_at", -1)]).skip(skip).limit(limit)
        return list(cursor), total

    def get(self, order_id: Any) -> dict:
        order = self.db["order"].find_one({"_id": object_id(order_id, "Order")})
        if not order:
            raise NotFoundError("Order")
        order["user"] = self.db["user"].find_one(
            {"_id": order["user_id"]}, {"password_hash": 0, "reset_token": 0, "reset_token_expiry": 0}
        )
        order["payments"] = list(self.db["payment"].find({"order_id": order["_id"]}))
        return order

    def update_status(self, order_id: Any, status: str) -> dict:
        new_status = OrderStatus(status).value
        order = self.db["order"].find_one({"_id": object_id(order_id, "Order")})
        if not order:
            raise NotFoundError("Order")
        if order["status"] == OrderStatus.CANCELLED.value:
            raise ConflictError("Cancelled orders cannot change status")
        if new_status == OrderStatus.CANCELLED.value:
            return self._cancel(order)

        result = self.db["order"].update_one(
            {"_id": order["_id"], "status": order["status"]},
            {"$set": {"status": new_status, "updated_at": utc_now()}},
        )
        if result.matched_count == 0:
            raise ConflictError("Order status changed concurrently; retry")
        logger.info("Order %s status %s -> %s", order["_id"], order["status"], new_status)
        return self.db["order"].find_one({"_id": order["_id"]})
