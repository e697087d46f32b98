"""
Bearer token handling.

Tokens are issued by the identity provider and signed with the shared
HS256 secret. This service only verifies them; ``create_access_token``
exists for local tooling and tests.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, List, Optional, cast

import jwt
from jwt import PyJWTError

from .core.config import settings
from .core.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)


def _secret_value(secret_obj: Any) -> str:
    getter = getattr(secret_obj, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return cast(str, secret_obj)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify a token's signature and expiry and return its claims.

    Raises:
        UnauthorizedException: The token is malformed, expired, or has no subject
    """
    try:
        payload = jwt.decode(
            token,
            _secret_value(settings.secret_key),
            algorithms=[settings.algorithm],
            options={"require": ["sub", "exp"]},
        )
    except PyJWTError as exc:
        logger.info("Rejected access token: %s", exc)
        raise UnauthorizedException("Invalid or expired token") from exc
    if not isinstance(payload.get("sub"), str) or not payload["sub"]:
        raise UnauthorizedException("Invalid or expired token")
    return cast(Dict[str, Any], payload)


def token_roles(payload: Dict[str, Any]) -> List[str]:
    roles = payload.get("roles") or []
    if isinstance(roles, str):
        return [roles]
    return [role for role in roles if isinstance(role, str)]


def create_access_token(
    data: Dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode; ``sub`` must be the user id
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return cast(
        str,
        jwt.encode(to_encode, _secret_value(settings.secret_key), algorithm=settings.algorithm),
    )
