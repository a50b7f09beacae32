"""Payment initiation and provider callbacks.

Provider outcomes only ever move a payment out of ``pending``, and a retried
initiation only reopens a ``failed`` one. Each update is conditional on the
current status, so a webhook delivered twice changes nothing the second time.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pymongo.errors import DuplicateKeyError

from ..database import Database, utc_now
from ..deps import find_owned
from ..errors import AuthError, ConflictError, NotFoundError, ValidationError
from ..schemas import OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

SUCCESS_EVENT = "charge.success"
FAILED_EVENT = "charge.failed"
RETRYABLE_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)


@dataclass
class WebhookResult:
    event: Optional[str]
    processed: bool
    reference: Optional[str] = None
    payment: Optional[dict] = None


class PaymentService:
    def __init__(self, db: Database, paystack, settings):
        self.db = db
        self.paystack = paystack
        self.settings = settings

    def initiate(self, user: dict, order_id: Any, payment_method: str = "paystack") -> Dict[str, Any]:
        order = find_owned(self.db["order"], order_id, user, "Order")
        if order["status"] != OrderStatus.PENDING.value:
            raise ConflictError(f"Order is {order['status']} and cannot be paid")

        reference = str(order["_id"])
        existing = self.db["payment"].find_one({"reference": reference})
        if existing and existing["status"] not in RETRYABLE_STATUSES:
            raise ConflictError(f"Payment is already {existing['status']}")

        now = utc_now()
        try:
            self.db["payment"].update_one(
                {"reference": reference, "status": {"$in": list(RETRYABLE_STATUSES)}},
                {
                    "$set": {
                        "provider": payment_method,
                        "amount": order["total"],
                        "status": PaymentStatus.PENDING.value,
                        "updated_at": now,
                    },
                    "$setOnInsert": {
                        "order_id": order["_id"],
                        "user_id": order["user_id"],
                        "reference": reference,
                        "paid_at": None,
                        "created_at": now,
                    },
                },
                upsert=True,
            )
        except DuplicateKeyError:
            # a webhook settled the payment between the read and the upsert
            raise ConflictError("Payment is no longer pending")
        payment = self.db["payment"].find_one({"reference": reference})

        data = self.paystack.initialize(
            email=user["email"],
            amount_minor=int(round(order["total"] * 100)),
            reference=reference,
            callback_url=f"{self.settings.base_url.rstrip('/')}/api/payments/callback",
            currency=self.settings.paystack_currency,
            metadata={"order_id": reference, "user_id": str(user["_id"])},
        )
        logger.info("Payment initiated for order %s", reference)
        return {
            "payment_id": str(payment["_id"]),
            "reference": reference,
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
            "amount": order["total"],
        }

    def _complete(self, payment: dict) -> bool:
        now = utc_now()
        result = self.db["payment"].update_one(
            {"_id": payment["_id"], "status": PaymentStatus.PENDING.value},
            {"$set": {"status": PaymentStatus.COMPLETED.value, "paid_at": now, "updated_at": now}},
        )
        if result.modified_count == 0:
            return False
        self.db["order"].update_one(
            {"_id": payment["order_id"], "status": OrderStatus.PENDING.value},
            {"$set": {"status": OrderStatus.CONFIRMED.value, "updated_at": now}},
        )
        logger.info("Payment %s completed; order %s confirmed", payment["reference"], payment["order_id"])
        return True

    def _fail(self, payment: dict) -> bool:
        result = self.db["payment"].update_one(
            {"_id": payment["_id"], "status": PaymentStatus.PENDING.value},
            {"$set": {"status": PaymentStatus.FAILED.value, "updated_at": utc_now()}},
        )
        if result.modified_count:
            logger.info("Payment %s failed", payment["reference"])
        return bool(result.modified_count)

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookResult:
        if not signature:
            raise AuthError("Missing webhook signature")
        if not self.paystack.verify_signature(raw_body, signature):
            logger.warning("Rejected webhook with invalid signature")
            raise AuthError("Invalid webhook signature")

        try:
            event = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Webhook body is not valid JSON")
        if not isinstance(event, dict):
            raise ValidationError("Webhook body must be a JSON object")

        event_type = event.get("event")
        if event_type not in (SUCCESS_EVENT, FAILED_EVENT):
            logger.info("Ignoring webhook event %s", event_type)
            return WebhookResult(event=event_type, processed=False)

        data = event.get("data") or {}
        if not isinstance(data, dict):
            raise ValidationError("Webhook event data must be a JSON object")
        reference = data.get("reference")
        if not reference:
            raise ValidationError("Webhook event has no reference")
        payment = self.db["payment"].find_one({"reference": str(reference)})
        if not payment:
            raise NotFoundError("Payment")

        if event_type == SUCCESS_EVENT:
            processed = self._complete(payment)
        else:
            processed = self._fail(payment)
        if not processed:
            logger.info("Webhook %s for %s already applied", event_type, reference)
        return WebhookResult(
            event=event_type,
            processed=processed,
            reference=str(reference),
            payment=self.db["payment"].find_one({"_id": payment["_id"]}),
        )

    def status(self, user: dict, payment_id: Any) -> dict:
        return find_owned(self.db["payment"], payment_id, user, "Payment")

    def apply_provider_status(self, reference: str) -> WebhookResult:
        """Ask the provider for the transaction outcome and apply it like a webhook would."""
        payment = self.db["payment"].find_one({"reference": reference})
        if not payment:
            raise NotFoundError("Payment")
        data = self.paystack.verify(reference)
        provider_status = data.get("status")
        if provider_status == "success":
            event, processed = SUCCESS_EVENT, self._complete(payment)
        elif provider_status == "failed":
            event, processed = FAILED_EVENT, self._fail(payment)
        else:
            event, processed = None, False
        return WebhookResult(
            event=event,
            processed=processed,
            reference=reference,
            payment=self.db["payment"].find_one({"_id": payment["_id"]}),
        )

    def verify(self, user: dict, reference: str) -> WebhookResult:
        if not self.db["payment"].find_one({"reference": reference, "user_id": user["_id"]}):
            raise NotFoundError("Payment")
        return self.apply_provider_status(reference)
