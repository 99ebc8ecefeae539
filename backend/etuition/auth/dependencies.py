"""
eTuition Backend - Authentication & Role Gate Dependencies
==========================================================

What:  FastAPI dependencies that turn the Authorization header into a
       Principal and enforce role and ownership rules.

Request flow on a protected route:
    Authorization: Bearer <token>
        → get_current_principal   401 on missing header / token / bad signature
        → RoleGate(role, owner)   403 on wrong role or foreign owner
        → route handler           receives the Principal

Self-only checks:
    A role alone does not scope a student or tutor to their own records.
    RoleGate(owner_param="email") additionally compares the token email with
    the `email` path or query parameter. Record-level ownership (the owner is
    a column of the row being changed) is enforced by the services, which
    filter writes by the Principal's email.

Usage:
    @router.get("/student/stats/{email}")
    async def stats(principal: Principal = Depends(RoleGate(Role.STUDENT, owner_param="email"))):
        ...
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from etuition.auth.tokens import Principal, decode_token
from etuition.exceptions import AuthenticationError, AuthorizationError
from etuition.models.enums import Role

logger = logging.getLogger(__name__)

# auto_error=False: a missing or malformed header becomes our own 401 body
# instead of FastAPI's default response
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    """
    Decode the bearer token and attach the Principal to `request.state`.

    Raises:
        AuthenticationError: no header, no token after the scheme, or a token
            that fails verification.
    """
    if credentials is None:
        if "authorization" not in request.headers:
            raise AuthenticationError("Unauthorized access: Missing authorization header")
        raise AuthenticationError("Unauthorized access: Missing bearer token")

    principal = decode_token(credentials.credentials)
    request.state.principal = principal
    return principal


def ensure_owner(principal: Principal, email: Optional[str], resource: str = "records") -> None:
    """
    Self-only check: the token email must equal `email`.

    Raises:
        AuthorizationError: on any mismatch, including a missing email.
    """
    if not principal.owns(email):
        logger.warning(
            "Ownership check failed: %s (%s) requested %s of another user",
            principal.email,
            principal.role.value,
            resource,
        )
        raise AuthorizationError(f"Forbidden: You can only access your own {resource}")


class RoleGate:
    """
    Authorization predicate parameterized by role and owner parameter.

    Args:
        role:        Required role, or None to accept any authenticated caller.
        owner_param: Name of a path or query parameter holding an email that
                     must match the token email. None disables the check.
        resource:    Noun used in the 403 message for ownership failures.
    """

    def __init__(
        self,
        role: Optional[Role] = None,
        owner_param: Optional[str] = None,
        resource: str = "records",
    ):
        self.role = role
        self.owner_param = owner_param
        self.resource = resource

    async def __call__(
        self,
        request: Request,
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if self.role is not None and principal.role is not self.role:
            raise AuthorizationError(
                f"Forbidden: {self.role.value}s only",
                context={"required_role": self.role.value},
            )

        if self.owner_param is not None:
            claimed = request.path_params.get(self.owner_param)
            if claimed is None:
                claimed = request.query_params.get(self.owner_param)
            ensure_owner(principal, claimed, self.resource)

        return principal

    def __repr__(self) -> str:
        role = self.role.value if self.role else "any"
        return f"RoleGate(role={role}, owner_param={self.owner_param})"


require_student = RoleGate(Role.STUDENT)
require_tutor = RoleGate(Role.TUTOR)
require_admin = RoleGate(Role.ADMIN)
