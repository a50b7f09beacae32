"""Paystack hosted-payment client."""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import requests

from ..errors import UpstreamError

logger = logging.getLogger(__name__)

PAYSTACK_API = "https://api.paystack.co"


class PaystackClient:
    def __init__(self, secret_key: str, timeout: float = 15):
        self.secret_key = secret_key
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "PaystackClient":
        return cls(settings.paystack_secret_key)

    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.secret_key}", "Content-Type": "application/json"}

    def _data(self, response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            raise UpstreamError("paystack", f"unreadable response (status {response.status_code})")
        if response.status_code >= 400 or not body.get("status"):
            logger.error("Paystack call failed: %s %s", response.status_code, body)
            raise UpstreamError("paystack", body.get("message") or f"status {response.status_code}")
        return body.get("data") or {}

    def initialize(
        self,
        email: str,
        amount_minor: int,
        reference: str,
        callback_url: str,
        currency: str = "NGN",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not self.is_configured():
            raise UpstreamError("paystack", "payment provider is not configured")
        payload = {
            "email": email,
            "amount": amount_minor,
            "reference": reference,
            "callback_url": callback_url,
            "currency": currency,
            "metadata": metadata or {},
        }
        try:
            response = requests.post(
                f"{PAYSTACK_API}/transaction/initialize", json=payload, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise UpstreamError("paystack", f"request failed: {exc}")
        return self._data(response)

    def verify(self, reference: str) -> Dict[str, Any]:
        if not self.is_configured():
            raise UpstreamError("paystack", "payment provider is not configured")
        try:
            response = requests.get(
                f"{PAYSTACK_API}/transaction/verify/{reference}", headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise UpstreamError("paystack", f"request failed: {exc}")
        return self._data(response)

    def verify_signature(self, payload: bytes, signature: Optional[str]) -> bool:
        """HMAC-SHA512 of the raw body, hex encoded, keyed with the secret key."""
        if not self.secret_key or not signature:
            return False
        if not signature.isascii():
            return False
        if signature.startswith("sha512="):
            signature = signature[len("sha512="):]
        expected = hmac.new(self.secret_key.encode(), payload, hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected.encode(), signature.strip().lower().encode())
