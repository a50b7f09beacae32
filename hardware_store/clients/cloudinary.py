"""Cloudinary image storage over its REST upload and admin APIs."""

import hashlib
import logging
import os
import time
from typing import Any, Dict, Iterable, Optional

import requests

from ..errors import UpstreamError

logger = logging.getLogger(__name__)

CLOUDINARY_API = "https://api.cloudinary.com/v1_1"
DELIVERY_BASE = "https://res.cloudinary.com"

RESPONSIVE_SIZES = {
    "xs": {"w": "320", "h": "240", "c": "fill"},
    "sm": {"w": "640", "h": "480", "c": "fill"},
    "md": {"w": "1024", "h": "768", "c": "fill"},
    "lg": {"w": "1280", "h": "960", "c": "fill"},
    "xl": {"w": "1920", "h": "1440", "c": "fill"},
}


def sign_params(params: Dict[str, Any], api_secret: str) -> str:
    """SHA-1 over ``k1=v1&k2=v2...`` (keys sorted, empty values skipped) followed by the secret."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode()).hexdigest()


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


class CloudinaryClient:
    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "",
        allowed_formats: Iterable[str] = ("jpg", "jpeg", "png", "gif", "webp"),
        max_file_size: int = 10 * 1024 * 1024,
        timeout: float = 30,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.allowed_formats = [fmt.strip().lower() for fmt in allowed_formats]
        self.max_file_size = max_file_size
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "CloudinaryClient":
        return cls(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
            allowed_formats=settings.upload_allowed_formats,
            max_file_size=settings.upload_max_file_size,
        )

    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def is_allowed(self, filename: str) -> bool:
        return file_extension(filename) in self.allowed_formats

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {k: v for k, v in params.items() if v not in (None, "")}
        params["timestamp"] = int(time.time())
        params["signature"] = sign_params(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    def _check(self, response: requests.Response, action: str) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            message = (body.get("error") or {}).get("message") if isinstance(body.get("error"), dict) else None
            logger.error("Cloudinary %s failed: %s %s", action, response.status_code, response.text)
            raise UpstreamError("cloudinary", message or f"{action} failed with status {response.status_code}")
        return body

    def upload(self, content: bytes, filename: str) -> Dict[str, Any]:
        if not self.is_configured():
            raise UpstreamError("cloudinary", "storage provider is not configured")
        data = self._signed({"folder": self.folder})
        try:
            response = requests.post(
                f"{CLOUDINARY_API}/{self.cloud_name}/image/upload",
                data=data,
                files={"file": (filename, content)},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError("cloudinary", f"upload failed: {exc}")
        body = self._check(response, "upload")
        return {
            "public_id": body.get("public_id"),
            "url": body.get("url"),
            "secure_url": body.get("secure_url"),
            "format": body.get("format"),
            "width": body.get("width"),
            "height": body.get("height"),
            "bytes": body.get("bytes"),
        }

    def destroy(self, public_id: str) -> None:
        if not self.is_configured():
            raise UpstreamError("cloudinary", "storage provider is not configured")
        data = self._signed({"public_id": public_id})
        try:
            response = requests.post(
                f"{CLOUDINARY_API}/{self.cloud_name}/image/destroy", data=data, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise UpstreamError("cloudinary", f"destroy failed: {exc}")
        body = self._check(response, "destroy")
        if body.get("result") not in ("ok", None):
            raise UpstreamError("cloudinary", f"destroy returned {body.get('result')}")

    def resource(self, public_id: str) -> Dict[str, Any]:
        if not self.is_configured():
            raise UpstreamError("cloudinary", "storage provider is not configured")
        try:
            response = requests.get(
                f"{CLOUDINARY_API}/{self.cloud_name}/resources/image/upload/{public_id}",
                auth=(self.api_key, self.api_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError("cloudinary", f"lookup failed: {exc}")
        body = self._check(response, "lookup")
        return {
            "public_id": body.get("public_id", public_id),
            "url": body.get("secure_url") or self.image_url(public_id),
            "format": body.get("format"),
            "width": body.get("width"),
            "height": body.get("height"),
            "bytes": body.get("bytes"),
        }

    def image_url(self, public_id: str, transformations: Optional[Dict[str, str]] = None) -> str:
        base = f"{DELIVERY_BASE}/{self.cloud_name}/image/upload"
        if not transformations:
            return f"{base}/{public_id}"
        trans = ",".join(f"{k}_{v}" for k, v in sorted(transformations.items()))
        return f"{base}/{trans}/{public_id}"

    def thumbnail_url(self, public_id: str, width: int = 300, height: int = 300) -> str:
        return self.image_url(public_id, {"w": str(width), "h": str(height), "c": "fill", "g": "auto"})

    def responsive_urls(self, public_id: str) -> Dict[str, str]:
        return {size: self.image_url(public_id, trans) for size, trans in RESPONSIVE_SIZES.items()}
