"""Request-scoped dependencies shared by the routers."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Query, Request
from fastapi.security import OAuth2PasswordBearer

from .cache import CacheService
from .config import Settings
from .database import Database, object_id, serialize
from .errors import AuthError, ForbiddenError, NotFoundError
from .schemas import Role
from .security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@dataclass
class AppContext:
    settings: Settings
    db: Database
    cache: CacheService
    email: Any
    sms: Any
    paystack: Any
    storage: Any
    notifications: Any = None
    checkout: Any = None
    orders: Any = None
    payments: Any = None


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    ctx: AppContext = Depends(get_context),
) -> dict:
    if not token:
        raise AuthError("Authorization header required")
    payload = decode_access_token(token, ctx.settings.jwt_secret)
    try:
        user_id = object_id(payload["sub"], "User")
    except NotFoundError:
        raise AuthError("Invalid token")
    user = ctx.db["user"].find_one({"_id": user_id})
    if not user:
        raise AuthError("User not found")
    if not user.get("is_active", True):
        raise AuthError("Account is deactivated")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != Role.ADMIN.value:
        raise ForbiddenError("Admin access required")
    return user


class Pagination:
    def __init__(self, page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100)):
        self.page = page
        self.limit = limit

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def envelope(self, items, total: int, key: str = "items") -> Dict[str, Any]:
        return {key: items, "page": self.page, "limit": self.limit, "total": total}


def owned(user: dict, doc_id: Any, label: str) -> Dict[str, Any]:
    """Filter matching ``doc_id`` only when it belongs to ``user``.

    Every owner-scoped read, update and delete goes through this, so a
    foreign id is indistinguishable from a missing one.
    """
    return {"_id": object_id(doc_id, label), "user_id": user["_id"]}


def find_owned(collection, doc_id: Any, user: dict, label: str) -> dict:
    doc = collection.find_one(owned(user, doc_id, label))
    if doc is None:
        raise NotFoundError(label)
    return doc


PRIVATE_USER_FIELDS = ("password_hash", "reset_token", "reset_token_expiry")


def public_user(user: dict) -> dict:
    return serialize({k: v for k, v in user.items() if k not in PRIVATE_USER_FIELDS})
