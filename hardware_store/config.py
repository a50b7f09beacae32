"""Environment-driven configuration.

Values come from the process environment, optionally seeded from a ``.env``
file. Only ``DATABASE_URL`` is mandatory; everything else has a development
default.
"""

import logging
import os
import re
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: Optional[str], default: int) -> int:
    """Parse ``90s`` / ``30m`` / ``24h`` / ``7d`` (or bare seconds) into seconds."""
    if not value:
        return default
    match = _DURATION_RE.match(value)
    if not match:
        return default
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


def _as_list(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    database_url: str
    database_name: str = "hardware_store"
    mongo_transactions: bool = True

    env: str = "development"
    port: int = 8080
    log_level: str = "INFO"
    base_url: str = "http://localhost:8080"

    jwt_secret: str = "hardware-store-jwt-secret-key-2024"
    jwt_expiry_seconds: int = 24 * 3600

    redis_addr: Optional[str] = None
    redis_password: Optional[str] = None
    redis_db: int = 0

    rate_limit_requests: int = 100
    rate_limit_window: int = 60
    auth_rate_limit_requests: int = 10
    auth_rate_limit_window: int = 60

    sendgrid_api_key: str = ""
    sendgrid_from_email: str = ""
    sendgrid_from_name: str = "Hardware Store"

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""

    paystack_secret_key: str = ""
    paystack_currency: str = "NGN"

    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = ""
    upload_allowed_formats: List[str] = ["jpg", "jpeg", "png", "gif", "webp"]
    upload_max_file_size: int = 10 * 1024 * 1024

    cors_allowed_origins: List[str] = ["*"]
    trusted_proxies: List[str] = ["127.0.0.1"]

    admin_email: str = "admin@hardwarestore.com"
    admin_password: str = "Admin@123"
    seed_database: bool = True
    low_stock_threshold: int = 10

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        if environ is None:
            load_dotenv()
            environ = os.environ
        get = environ.get

        database_url = get("DATABASE_URL")
        if not database_url:
            raise ConfigurationError("DATABASE_URL environment variable is required")

        return cls(
            database_url=database_url,
            database_name=get("DATABASE_NAME") or "hardware_store",
            mongo_transactions=_as_bool(get("MONGO_TRANSACTIONS"), True),
            env=get("ENV") or "development",
            port=_as_int(get("PORT"), 8080),
            log_level=get("LOG_LEVEL") or "INFO",
            base_url=get("BASE_URL") or "http://localhost:8080",
            jwt_secret=get("JWT_SECRET") or "hardware-store-jwt-secret-key-2024",
            jwt_expiry_seconds=parse_duration(get("JWT_EXPIRY"), 24 * 3600),
            redis_addr=get("REDIS_ADDR") or None,
            redis_password=get("REDIS_PASSWORD") or None,
            redis_db=_as_int(get("REDIS_DB"), 0),
            rate_limit_requests=_as_int(get("RATE_LIMIT_REQUESTS"), 100),
            rate_limit_window=parse_duration(get("RATE_LIMIT_WINDOW"), 60),
            auth_rate_limit_requests=_as_int(get("AUTH_RATE_LIMIT_REQUESTS"), 10),
            auth_rate_limit_window=parse_duration(get("AUTH_RATE_LIMIT_WINDOW"), 60),
            sendgrid_api_key=get("SENDGRID_API_KEY", ""),
            sendgrid_from_email=get("SENDGRID_FROM_EMAIL", ""),
            sendgrid_from_name=get("SENDGRID_FROM_NAME") or "Hardware Store",
            twilio_account_sid=get("TWILIO_ACCOUNT_SID", ""),
            twilio_auth_token=get("TWILIO_AUTH_TOKEN", ""),
            twilio_phone_number=get("TWILIO_PHONE_NUMBER", ""),
            paystack_secret_key=get("PAYSTACK_SECRET_KEY", ""),
            paystack_currency=get("PAYSTACK_CURRENCY") or "NGN",
            cloudinary_cloud_name=get("CLOUDINARY_CLOUD_NAME", ""),
            cloudinary_api_key=get("CLOUDINARY_API_KEY", ""),
            cloudinary_api_secret=get("CLOUDINARY_API_SECRET", ""),
            cloudinary_folder=get("CLOUDINARY_FOLDER", ""),
            upload_allowed_formats=[
                fmt.lower() for fmt in _as_list(get("UPLOAD_ALLOWED_FORMATS"), ["jpg", "jpeg", "png", "gif", "webp"])
            ],
            upload_max_file_size=_as_int(get("UPLOAD_MAX_FILE_SIZE"), 10 * 1024 * 1024),
            cors_allowed_origins=_as_list(get("CORS_ALLOWED_ORIGINS"), ["*"]),
            trusted_proxies=_as_list(get("TRUSTED_PROXIES"), ["127.0.0.1"]),
            admin_email=(get("ADMIN_EMAIL") or "admin@hardwarestore.com").lower(),
            admin_password=get("ADMIN_PASSWORD") or "Admin@123",
            seed_database=_as_bool(get("SEED_DATABASE"), True),
            low_stock_threshold=_as_int(get("LOW_STOCK_THRESHOLD"), 10),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
