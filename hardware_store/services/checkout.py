"""Cart to order conversion.

Placement reads the cart and live products, then inserts the order,
decrements stock and empties the cart inside one transaction. The stock
decrement only matches while enough stock remains, so a concurrent checkout
that got there first aborts this one instead of driving stock negative.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from ..database import Database, utc_now
from ..errors import (
    EmptyCartError,
    InsufficientStockError,
    PersistenceError,
    ProductUnavailableError,
)
from ..schemas import CartItem, Order, OrderItem, Payment, ServiceSnapshot, ShippingAddress

logger = logging.getLogger(__name__)

SHIPPING_OPTIONS = [
    {"id": "standard", "name": "Standard Delivery", "price": 500, "estimated_days": "3-5 business days"},
    {"id": "express", "name": "Express Delivery", "price": 1000, "estimated_days": "1-2 business days"},
    {"id": "pickup", "name": "Store Pickup", "price": 0, "estimated_days": "Same day"},
]


@dataclass
class PlacedOrder:
    order: dict
    payment_id: Optional[ObjectId] = None
    low_stock: List[dict] = field(default_factory=list)


class CheckoutService:
    def __init__(self, db: Database, low_stock_threshold: int = 10):
        self.db = db
        self.low_stock_threshold = low_stock_threshold

    @staticmethod
    def get_shipping_options() -> List[dict]:
        return [dict(option) for option in SHIPPING_OPTIONS]

    def _priced_items(self, cart: dict) -> List[OrderItem]:
        cart_items = [CartItem(**item) for item in cart["items"]]
        products = {
            p["_id"]: p
            for p in self.db["product"].find({"_id": {"$in": [i.product_id for i in cart_items]}})
        }
        order_items = []
        for item in cart_items:
            product = products.get(item.product_id)
            if product is None:
                raise ProductUnavailableError("A product in your cart")
            if not product.get("is_active", True):
                raise ProductUnavailableError(product["name"])
            if product["stock_quantity"] < item.quantity:
                raise InsufficientStockError(product["name"], product["stock_quantity"], item.quantity)
            order_items.append(
                OrderItem(
                    product_id=item.product_id,
                    name=product["name"],
                    sku=product["sku"],
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
            )
        return order_items

    def _undo(self, order_id: ObjectId, decremented: List[OrderItem]) -> None:
        # only reached when the database runs without transactions
        for item in decremented:
            self.db["product"].update_one({"_id": item.product_id}, {"$inc": {"stock_quantity": item.quantity}})
        self.db["order"].delete_one({"_id": order_id})

    def place_order(
        self,
        user: dict,
        address: ShippingAddress,
        service_request: Optional[ServiceSnapshot] = None,
        payment_method: str = "paystack",
    ) -> PlacedOrder:
        cart = self.db["cart"].find_one({"user_id": user["_id"]})
        if not cart or not cart.get("items"):
            raise EmptyCartError()

        order_items = self._priced_items(cart)
        total = round(sum(item.line_total for item in order_items), 2)
        doc = Order(
            user_id=user["_id"],
            total=total,
            address=address,
            service_request=service_request,
            items=order_items,
        ).model_dump()
        doc["_id"] = ObjectId()

        decremented: List[OrderItem] = []
        try:
            with self.db.transaction() as session:
                self.db["order"].insert_one(doc, session=session)
                for item in order_items:
                    result = self.db["product"].update_one(
                        {"_id": item.product_id, "stock_quantity": {"$gte": item.quantity}},
                        {"$inc": {"stock_quantity": -item.quantity}, "$set": {"updated_at": utc_now()}},
                        session=session,
                    )
                    if result.matched_count == 0:
                        raise InsufficientStockError(item.name, requested=item.quantity)
                    decremented.append(item)
                self.db["cart"].update_one(
                    {"_id": cart["_id"]}, {"$set": {"items": [], "updated_at": utc_now()}}, session=session
                )
        except InsufficientStockError:
            if not self.db.use_transactions:
                self._undo(doc["_id"], decremented)
            raise
        except PyMongoError as exc:
            logger.error("Checkout for user %s failed: %s", user["_id"], exc)
            if not self.db.use_transactions:
                self._undo(doc["_id"], decremented)
            raise PersistenceError("Failed to place order")

        logger.info("Order %s placed by user %s for %.2f", doc["_id"], user["_id"], total)
        return PlacedOrder(
            order=doc,
            payment_id=self._create_payment(doc, payment_method),
            low_stock=self._low_stock(order_items),
        )

    def _create_payment(self, order: dict, payment_method: str) -> Optional[ObjectId]:
        payment = Payment(
            order_id=order["_id"],
            user_id=order["user_id"],
            provider=payment_method,
            reference=str(order["_id"]),
            amount=order["total"],
        )
        try:
            return self.db["payment"].insert_one(payment.model_dump()).inserted_id
        except PyMongoError as exc:
            logger.error("Could not create payment record for order %s: %s", order["_id"], exc)
            return None

    def _low_stock(self, order_items: List[OrderItem]) -> List[dict]:
        try:
            return list(
                self.db["product"].find(
                    {
                        "_id": {"$in": [item.product_id for item in order_items]},
                        "stock_quantity": {"$lt": self.low_stock_threshold},
                    }
                )
            )
        except PyMongoError as exc:
            logger.warning("Low stock lookup failed: %s", exc)
            return []
