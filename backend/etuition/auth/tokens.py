"""
eTuition Backend - Access Token Encoding
========================================

What:  Issues and verifies the signed bearer tokens that bind an email to a role.
How:   HS256 JWT via python-jose. Payload: {"email", "role", "iat", "exp"}.
       Expiry defaults to one hour (settings.jwt_expire_minutes).
Who:   UserService issues tokens at POST /getToken; the auth dependency decodes
       them on every protected route.

Failure mode:
    decode_token() fails closed. Any problem (bad signature, expired, missing
    claim, unknown role) raises AuthenticationError and never returns a
    partially trusted Principal.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from etuition.config import settings
from etuition.exceptions import AuthenticationError
from etuition.models.enums import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as asserted by a verified token."""

    email: str
    role: Role

    def owns(self, email: Optional[str]) -> bool:
        return email is not None and email.strip().lower() == self.email


def issue_token(
    email: str,
    role: Role,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign a token for `email` carrying `role`."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "email": email.strip().lower(),
        "role": role.value,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Principal:
    """
    Verify `token` and return the Principal it asserts.

    Raises:
        AuthenticationError: expired, tampered, malformed, or missing claims.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise AuthenticationError("Unauthorized access: Invalid or expired token")
    except JWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        raise AuthenticationError("Unauthorized access: Invalid or expired token")

    email = payload.get("email")
    raw_role = payload.get("role")
    if not email or not raw_role:
        raise AuthenticationError("Unauthorized access: Token is missing required claims")

    try:
        role = Role(raw_role)
    except ValueError:
        raise AuthenticationError("Unauthorized access: Token carries an unknown role")

    return Principal(email=str(email).strip().lower(), role=role)
