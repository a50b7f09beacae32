import json
import hmac
import base64
import hashlib
import secrets
import time
from typing import Any, Dict, Optional

from argon2.low_level import Type, hash_secret_raw

from .errors import AuthError

# Argon2id parameters: time cost 1, 64 MiB, 4 lanes, 32 byte digest
ARGON_TIME_COST = 1
ARGON_MEMORY_COST = 64 * 1024
ARGON_PARALLELISM = 4
ARGON_HASH_LEN = 32
SALT_LEN = 32


def _argon2(password: str, salt: bytes) -> bytes:
    return hash_secret_raw(
        secret=password.encode(),
        salt=salt,
        time_cost=ARGON_TIME_COST,
        memory_cost=ARGON_MEMORY_COST,
        parallelism=ARGON_PARALLELISM,
        hash_len=ARGON_HASH_LEN,
        type=Type.ID,
    )


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(SALT_LEN)
    digest = _argon2(password, salt)
    return f"{base64.b64encode(salt).decode()}:{base64.b64encode(digest).decode()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        salt_b64, hash_b64 = stored.split(":")
        salt = base64.b64decode(salt_b64, validate=True)
        expected = base64.b64decode(hash_b64, validate=True)
    except (ValueError, AttributeError):
        return False
    if not salt or not expected:
        return False
    return hmac.compare_digest(_argon2(password, salt), expected)


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


# Simple JWT (HS256)
def _b64url_encode(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    pad = '=' * (-len(s) % 4)
    return base64.urlsafe_b64decode(s + pad)


def jwt_encode(payload: dict, secret: str) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64url_encode(json.dumps(header, separators=(',', ':')).encode())
    payload_b64 = _b64url_encode(json.dumps(payload, default=str, separators=(',', ':')).encode())
    signing_input = f"{header_b64}.{payload_b64}".encode()
    signature = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    return f"{header_b64}.{payload_b64}.{_b64url_encode(signature)}"


def jwt_decode(token: str, secret: str, now: Optional[int] = None) -> dict:
    """Verify signature and time claims, returning the payload.

    A token is accepted while ``now <= exp`` and rejected from the next second on.
    """
    try:
        header_b64, payload_b64, sig_b64 = token.split('.')
        header = json.loads(_b64url_decode(header_b64))
        payload = json.loads(_b64url_decode(payload_b64))
    except (ValueError, TypeError):
        raise AuthError("Invalid token")
    if not isinstance(header, dict) or header.get("alg") != "HS256" or not isinstance(payload, dict):
        raise AuthError("Invalid token")

    signing_input = f"{header_b64}.{payload_b64}".encode()
    expected_sig = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    if not sig_b64.isascii() or not hmac.compare_digest(_b64url_encode(expected_sig).encode(), sig_b64.encode()):
        raise AuthError("Invalid token signature")

    current = int(time.time()) if now is None else now
    exp = payload.get("exp")
    if not isinstance(exp, int) or current > exp:
        raise AuthError("Token expired")
    nbf = payload.get("nbf")
    if isinstance(nbf, int) and current < nbf:
        raise AuthError("Token not yet valid")
    return payload


def create_access_token(user: Dict[str, Any], secret: str, ttl: int, now: Optional[int] = None) -> str:
    issued = int(time.time()) if now is None else now
    claims = {
        "sub": str(user["_id"]),
        "email": user["email"],
        "role": user.get("role", "customer"),
        "iat": issued,
        "nbf": issued,
        "exp": issued + ttl,
    }
    return jwt_encode(claims, secret)


def decode_access_token(token: str, secret: str, now: Optional[int] = None) -> dict:
    payload = jwt_decode(token, secret, now)
    if not payload.get("sub"):
        raise AuthError("Invalid token")
    return payload
