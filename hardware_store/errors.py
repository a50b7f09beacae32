"""Error taxonomy for the store API.

Every error raised on purpose by a handler or service derives from
``StoreError`` and carries the HTTP status it maps to. The exception handlers
in ``main`` turn them into JSON responses.
"""

from typing import Optional


class StoreError(Exception):
    """Base exception for all store errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(StoreError):
    """Raised at startup when mandatory configuration is missing."""


class ValidationError(StoreError):
    """Malformed or missing input."""

    status_code = 400

    def __init__(self, message: str, details: Optional[list] = None):
        self.details = details
        super().__init__(message)


class EmptyCartError(ValidationError):
    """Raised when checking out a cart with no items."""

    def __init__(self):
        super().__init__("Cart is empty")


class AuthError(StoreError):
    """Missing, invalid or expired credentials."""

    status_code = 401


class ForbiddenError(StoreError):
    status_code = 403


class NotFoundError(StoreError):
    status_code = 404

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found")


class ConflictError(StoreError):
    """Duplicate unique field or a state that forbids the operation."""

    status_code = 409


class InsufficientStockError(ConflictError):
    """Raised when a product has less stock than requested."""

    def __init__(self, product_name: str, available: Optional[int] = None, requested: Optional[int] = None):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock for {product_name}")


class ProductUnavailableError(ConflictError):
    """Raised when a cart references a product that is gone or inactive."""

    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(f"{product_name} is no longer available")


class RateLimitError(StoreError):
    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests. Please try again later."):
        self.retry_after = retry_after
        super().__init__(message)


class PersistenceError(StoreError):
    """A database operation or transaction failed."""

    status_code = 500


class UpstreamError(StoreError):
    """A third-party provider (payment, email, SMS, storage) failed."""

    status_code = 502

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")
