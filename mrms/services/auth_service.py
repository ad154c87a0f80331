"""
Token verification for sessions issued by the external identity provider.

We never mint tokens in production; the provider signs them with its private
key and we verify with the public key configured in ``JWT_PUBLIC_KEY_PATH``.
"""

from typing import Optional

from jose import jwt, JWTError
import structlog

from mrms.config import settings

logger = structlog.get_logger()

_public_key: Optional[str] = None


def _load_public_key() -> str:
    global _public_key
    if _public_key is None:
        with open(settings.JWT_PUBLIC_KEY_PATH, "r") as f:
            _public_key = f.read()
    return _public_key


def decode_token(token: str, key: Optional[str] = None) -> dict:
    """Decode and verify a JWT. Raises JWTError on failure."""
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    return jwt.decode(
        token,
        key or _load_public_key(),
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        options=options,
    )


def verify_access_token(token: str, key: Optional[str] = None) -> dict:
    """Verify an access token and return its claims; ``sub`` must be present."""
    payload = decode_token(token, key)
    if payload.get("type", "access") != "access":
        raise JWTError("Not an access token")
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return payload
