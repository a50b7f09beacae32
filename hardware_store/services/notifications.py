"""Outbound email/SMS notifications.

Every user-facing message is recorded in the ``notification`` collection
before delivery and marked ``sent`` or ``failed`` afterwards.
"""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from ..database import Database, utc_now
from ..deps import find_owned
from ..errors import StoreError, UpstreamError, ValidationError
from ..schemas import Notification, NotificationChannel, NotificationStatus

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Hardware Store Notification"


def require_channel(channel: str) -> str:
    try:
        return NotificationChannel(channel).value
    except ValueError:
        raise ValidationError(f"Unsupported notification channel: {channel}")


class NotificationService:
    def __init__(self, db: Database, email, sms, settings):
        self.db = db
        self.email = email
        self.sms = sms
        self.settings = settings

    def _money(self, amount: float) -> str:
        return f"{self.settings.paystack_currency} {amount:,.2f}"

    def _user(self, user_id: ObjectId) -> Optional[dict]:
        return self.db["user"].find_one({"_id": user_id})

    def send(self, user: dict, channel: str, message: str, subject: Optional[str] = None) -> ObjectId:
        channel = require_channel(channel)
        record = Notification(user_id=user["_id"], channel=channel, subject=subject, message=message)
        notification_id = self.db["notification"].insert_one(record.model_dump()).inserted_id

        try:
            if channel == NotificationChannel.EMAIL.value:
                self.email.send_email(user["email"], user.get("full_name", ""), subject or DEFAULT_SUBJECT, message)
            else:
                if not user.get("phone"):
                    raise UpstreamError("twilio", "user has no phone number")
                self.sms.send_sms(user["phone"], message)
        except UpstreamError:
            self.db["notification"].update_one(
                {"_id": notification_id},
                {"$set": {"status": NotificationStatus.FAILED.value, "updated_at": utc_now()}},
            )
            raise

        now = utc_now()
        self.db["notification"].update_one(
            {"_id": notification_id},
            {"$set": {"status": NotificationStatus.SENT.value, "sent_at": now, "updated_at": now}},
        )
        return notification_id

    def send_multi(self, user: dict, message: str, subject: str, sms_message: Optional[str] = None) -> None:
        """Email first (failures propagate), then SMS when the user has a phone."""
        self.send(user, NotificationChannel.EMAIL.value, message, subject)
        if not user.get("phone"):
            return
        try:
            self.send(user, NotificationChannel.SMS.value, sms_message or message)
        except UpstreamError as exc:
            logger.warning("SMS notification to user %s failed: %s", user["_id"], exc)

    # Templates
    def order_confirmation(self, user: dict, order: dict) -> None:
        total = self._money(order["total"])
        self.send_multi(
            user,
            f"Your order #{order['_id']} for {total} has been placed and is being processed.",
            "Order Confirmation - Hardware Store",
            f"Order received! Order #{order['_id']} for {total} is being processed.",
        )

    def payment_confirmation(self, payment: dict) -> None:
        user = self._user(payment["user_id"])
        if user is None:
            logger.warning("Payment %s has no user to notify", payment["_id"])
            return
        message = f"Payment received! {self._money(payment['amount'])} for order #{payment['order_id']}. Your order is now being processed."
        self.send_multi(user, message, "Payment Confirmation - Hardware Store")

    def order_status_update(self, order: dict, status: str) -> None:
        user = self._user(order["user_id"])
        if user is None:
            return
        self.send_multi(
            user,
            f"Your order #{order['_id']} status has been updated to: {status}. Track your order in your account dashboard.",
            f"Order Status Update - {status}",
            f"Order #{order['_id']} status updated to: {status}.",
        )

    def service_quote(self, service_request: dict) -> None:
        user = self._user(service_request["user_id"])
        if user is None:
            return
        self.send_multi(
            user,
            f"Your {service_request['type']} request #{service_request['_id']} has been quoted at "
            f"{self._money(service_request['quote_amount'])}. Accept the quote from your account to schedule it.",
            "Service Quote - Hardware Store",
        )

    def welcome(self, user: dict) -> None:
        message = f"Welcome {user['full_name']} to Hardware Store! Your account is now active."
        self.send_multi(user, message, "Welcome to Hardware Store!")

    def password_reset(self, user: dict, token: str) -> None:
        self.send_multi(
            user,
            f"We received a request to reset your password. Use this code: {token}. It expires in 1 hour.",
            "Password Reset Request - Hardware Store",
            f"Your password reset code is: {token}. It expires in 1 hour.",
        )

    def low_stock_alert(self, product: dict) -> None:
        # admin alerts go straight to the provider; there is no user to record against
        self.email.send_email(
            self.settings.admin_email,
            "Admin",
            "Low Stock Alert - Hardware Store",
            f"LOW STOCK ALERT: {product['name']} (SKU: {product['sku']}) has only "
            f"{product['stock_quantity']} units remaining. Please restock.",
        )

    # Inbox
    def list_for_user(self, user: dict, limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        cursor = (
            self.db["notification"]
            .find({"user_id": user["_id"]})
            .sort([("created_at", -1)])
            .skip(offset)
            .limit(limit)
        )
        return list(cursor)

    def mark_read(self, user: dict, notification_id: Any) -> dict:
        notification = find_owned(self.db["notification"], notification_id, user, "Notification")
        now = utc_now()
        self.db["notification"].update_one(
            {"_id": notification["_id"]}, {"$set": {"read_at": now, "updated_at": now}}
        )
        return self.db["notification"].find_one({"_id": notification["_id"]})

    @staticmethod
    def dispatch(fn, *args) -> None:
        """Run a notification as a background task; failures are logged, never raised."""
        try:
            fn(*args)
        except (StoreError, PyMongoError) as exc:
            logger.warning("Notification %s failed: %s", getattr(fn, "__name__", fn), exc)
