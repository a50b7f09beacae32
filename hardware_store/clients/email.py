import logging

import requests

from ..errors import UpstreamError

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class SendGridClient:
    def __init__(self, api_key: str, from_email: str, from_name: str = "Hardware Store", timeout: float = 10):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SendGridClient":
        return cls(settings.sendgrid_api_key, settings.sendgrid_from_email, settings.sendgrid_from_name)

    def is_configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    def send_email(self, to_email: str, to_name: str, subject: str, html: str) -> None:
        if not self.is_configured():
            raise UpstreamError("sendgrid", "email service is not configured")
        payload = {
            "personalizations": [{"to": [{"email": to_email, "name": to_name}], "subject": subject}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }
        try:
            response = requests.post(
                SENDGRID_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError("sendgrid", f"request failed: {exc}")
        if response.status_code >= 400:
            logger.error("SendGrid rejected email to %s: %s %s", to_email, response.status_code, response.text)
            raise UpstreamError("sendgrid", f"status {response.status_code}")
        logger.info("Email sent to %s: %s", to_email, subject)
