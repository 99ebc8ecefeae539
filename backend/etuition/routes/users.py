"""
eTuition Backend - User & Token Route Handlers
==============================================

What:  Registration, token issuance, the dashboard role lookup, the public
       tutor listings and admin user management.
How:   Extracts path/body parameters, applies the role gate, delegates to
       UserService. Errors propagate to the global handlers.

Routes:
    POST   /users               public   register (409 on duplicate email)
    POST   /getToken            public   sign a token for a registered email
    GET    /users/{email}/role  any role, self-only
    GET    /latest-tutors       public
    GET    /all-tutors          public
    GET    /users               admin
    PATCH  /users/{user_id}     admin
    DELETE /users/{user_id}     admin
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.auth import Principal, RoleGate, require_admin
from etuition.database import get_db_session
from etuition.schemas.common import DeleteResult, ErrorResponse, InsertResult, UpdateResult
from etuition.schemas.user import (
    RoleResponse,
    TokenRequest,
    TokenResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from etuition.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Users"])


@router.post(
    "/users",
    response_model=InsertResult,
    responses={409: {"description": "Email already registered", "model": ErrorResponse}},
    summary="Register a user",
)
async def register_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db_session),
) -> InsertResult:
    return await user_service.register(db, payload)


@router.post(
    "/getToken",
    response_model=TokenResponse,
    responses={404: {"description": "Email not registered", "model": ErrorResponse}},
    summary="Issue an access token",
    description=(
        "Signs a one-hour bearer token carrying the stored role for the email. "
        "The frontend calls this right after the identity provider login."
    ),
)
async def get_token(
    payload: TokenRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    token = await user_service.issue_token(db, payload.email)
    return TokenResponse(token=token)


@router.get(
    "/users/{email}/role",
    response_model=RoleResponse,
    responses={
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        403: {"description": "Not the caller's own email", "model": ErrorResponse},
    },
    summary="Role of the signed-in user",
)
async def get_user_role(
    email: str,
    principal: Principal = Depends(RoleGate(owner_param="email", resource="role")),
    db: AsyncSession = Depends(get_db_session),
) -> RoleResponse:
    """Drives role-based rendering of the dashboard; "user" when unregistered."""
    return RoleResponse(role=await user_service.get_role(db, email))


@router.get("/latest-tutors", response_model=List[UserResponse], summary="Four newest tutors")
async def latest_tutors(db: AsyncSession = Depends(get_db_session)) -> List[UserResponse]:
    return await user_service.latest_tutors(db)


@router.get("/all-tutors", response_model=List[UserResponse], summary="All tutors, newest first")
async def all_tutors(db: AsyncSession = Depends(get_db_session)) -> List[UserResponse]:
    return await user_service.all_tutors(db)


# ── Admin ─────────────────────────────────────────────────────────────────

@router.get("/users", response_model=List[UserResponse], summary="All users (admin)")
async def list_users(
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> List[UserResponse]:
    return await user_service.list_users(db)


@router.patch(
    "/users/{user_id}",
    response_model=UpdateResult,
    summary="Update a user's role, status or profile (admin)",
)
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UpdateResult:
    return await user_service.update_user(db, user_id, payload)


@router.delete("/users/{user_id}", response_model=DeleteResult, summary="Delete a user (admin)")
async def delete_user(
    user_id: UUID,
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> DeleteResult:
    return await user_service.delete_user(db, user_id)
