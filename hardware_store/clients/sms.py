import logging
import re

import requests

from ..errors import UpstreamError

logger = logging.getLogger(__name__)

TWILIO_API = "https://api.twilio.com/2010-04-01"


def normalize_number(number: str) -> str:
    """Strip formatting and make sure the number carries a leading ``+``."""
    digits = re.sub(r"\D", "", number or "")
    return f"+{digits}" if digits else ""


class TwilioClient:
    def __init__(self, account_sid: str, auth_token: str, from_number: str, timeout: float = 10):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "TwilioClient":
        return cls(settings.twilio_account_sid, settings.twilio_auth_token, settings.twilio_phone_number)

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @staticmethod
    def is_valid_number(number: str) -> bool:
        digits = normalize_number(number)[1:]
        return 10 <= len(digits) <= 15

    def send_sms(self, to_number: str, body: str) -> None:
        if not self.is_configured():
            raise UpstreamError("twilio", "sms service is not configured")
        to = normalize_number(to_number)
        if not self.is_valid_number(to):
            raise UpstreamError("twilio", f"invalid phone number {to_number!r}")
        url = f"{TWILIO_API}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = requests.post(
                url,
                data={"To": to, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError("twilio", f"request failed: {exc}")
        if response.status_code >= 400:
            logger.error("Twilio rejected sms to %s: %s %s", to, response.status_code, response.text)
            raise UpstreamError("twilio", f"status {response.status_code}")
        logger.info("SMS sent to %s", to)
