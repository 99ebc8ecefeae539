"""
eTuition Backend - User & Token Schemas
=======================================

What:  Request/response models for registration, token issuance, the role
       lookup and admin user management.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from etuition.models.enums import Role, UserStatus
from etuition.schemas.common import CamelModel


def normalize_email(value: str) -> str:
    """Emails are compared case-insensitively everywhere."""
    return value.strip().lower()


class UserCreate(CamelModel):
    """
    Body of POST /users.

    role defaults to Student when the client omits it; status is always set
    server-side to Active.
    """
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=120)
    photo_url: Optional[str] = Field(default=None, max_length=500, alias="photoURL")
    phone: Optional[str] = Field(default=None, max_length=30)
    role: Role = Role.STUDENT

    @field_validator("email", mode="after")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return normalize_email(v)


class UserUpdate(CamelModel):
    """Body of PATCH /users/{id}. Only the fields sent are changed."""

    name: Optional[str] = Field(default=None, max_length=120)
    photo_url: Optional[str] = Field(default=None, max_length=500, alias="photoURL")
    phone: Optional[str] = Field(default=None, max_length=30)
    role: Optional[Role] = None
    status: Optional[UserStatus] = None


class UserResponse(CamelModel):
    id: uuid.UUID
    email: str
    name: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    phone: Optional[str] = None
    role: Role
    status: UserStatus
    created_at: datetime


class TokenRequest(CamelModel):
    """Body of POST /getToken. The identity provider already verified the user."""

    email: EmailStr

    @field_validator("email", mode="after")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return normalize_email(v)


class TokenResponse(CamelModel):
    token: str


class RoleResponse(CamelModel):
    # "user" when the email has no stored record
    role: str
