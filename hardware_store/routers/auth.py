import hashlib
import logging
from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends
from pymongo.errors import DuplicateKeyError

from ..database import query_time, utc_now
from ..deps import AppContext, get_context, get_current_user, public_user
from ..errors import AuthError, ConflictError, ValidationError
from ..payloads import LoginRequest, PasswordResetConfirm, PasswordResetRequest, RegisterRequest
from ..schemas import User
from ..security import create_access_token, generate_reset_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_TOKEN_TTL = timedelta(hours=1)


def _token_digest(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _session(ctx: AppContext, user: dict) -> dict:
    token = create_access_token(user, ctx.settings.jwt_secret, ctx.settings.jwt_expiry_seconds)
    return {
        "token": token,
        "token_type": "bearer",
        "expires_in": ctx.settings.jwt_expiry_seconds,
        "user": public_user(user),
    }


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, background_tasks: BackgroundTasks, ctx: AppContext = Depends(get_context)):
    email = payload.email.lower()
    if ctx.db["user"].find_one({"email": email}):
        raise ConflictError("Email already registered")
    doc = User(
        email=email,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name,
        phone=payload.phone,
    ).model_dump()
    try:
        doc["_id"] = ctx.db["user"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise ConflictError("Email already registered")
    logger.info("Registered user %s", doc["_id"])
    background_tasks.add_task(ctx.notifications.dispatch, ctx.notifications.welcome, doc)
    return _session(ctx, doc)


@router.post("/login")
def login(payload: LoginRequest, ctx: AppContext = Depends(get_context)):
    user = ctx.db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise AuthError("Invalid email or password")
    if not user.get("is_active", True):
        raise AuthError("Account is deactivated")
    return _session(ctx, user)


@router.post("/logout")
def logout(user: dict = Depends(get_current_user)):
    # tokens are stateless; the client discards its copy
    return {"message": "Logged out"}


@router.post("/password/reset")
def request_password_reset(
    payload: PasswordResetRequest, background_tasks: BackgroundTasks, ctx: AppContext = Depends(get_context)
):
    user = ctx.db["user"].find_one({"email": payload.email.lower()})
    if user and user.get("is_active", True):
        token = generate_reset_token()
        ctx.db["user"].update_one(
            {"_id": user["_id"]},
            {
                "$set": {
                    "reset_token": _token_digest(token),
                    "reset_token_expiry": utc_now() + RESET_TOKEN_TTL,
                    "updated_at": utc_now(),
                }
            },
        )
        background_tasks.add_task(ctx.notifications.dispatch, ctx.notifications.password_reset, user, token)
    # same answer whether or not the account exists
    return {"message": "If the email is registered, a reset code has been sent"}


@router.post("/password/reset/confirm")
def confirm_password_reset(payload: PasswordResetConfirm, ctx: AppContext = Depends(get_context)):
    user = ctx.db["user"].find_one(
        {
            "reset_token": _token_digest(payload.token),
            "reset_token_expiry": {"$gt": query_time(utc_now())},
        }
    )
    if not user:
        raise ValidationError("Invalid or expired reset token")
    ctx.db["user"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password_hash": hash_password(payload.new_password), "updated_at": utc_now()},
            "$unset": {"reset_token": "", "reset_token_expiry": ""},
        },
    )
    return {"message": "Password has been reset"}
