"""
Tests for access token issuance and verification.
"""

from datetime import timedelta

import pytest
from jose import jwt

from etuition.auth.tokens import Principal, decode_token, issue_token
from etuition.config import settings
from etuition.exceptions import AuthenticationError
from etuition.models.enums import Role


class TestIssueAndDecode:

    def test_roundtrip_carries_email_and_role(self):
        token = issue_token("Tutor@Example.com ", Role.TUTOR)

        principal = decode_token(token)

        assert principal == Principal(email="tutor@example.com", role=Role.TUTOR)

    def test_payload_has_expiry(self):
        token = issue_token("student@example.com", Role.STUDENT)

        claims = jwt.get_unverified_claims(token)

        assert claims["role"] == "Student"
        assert claims["exp"] > claims["iat"]

    def test_expired_token_rejected(self):
        token = issue_token("student@example.com", Role.STUDENT, expires_delta=timedelta(seconds=-5))

        with pytest.raises(AuthenticationError, match="expired"):
            decode_token(token)

    def test_wrong_signature_rejected(self):
        forged = jwt.encode(
            {"email": "admin@example.com", "role": "Admin"},
            "not-the-server-secret",
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(AuthenticationError):
            decode_token(forged)

    def test_garbage_rejected(self):
        with pytest.raises(AuthenticationError):
            decode_token("not.a.jwt")

    def test_missing_role_claim_rejected(self):
        token = jwt.encode({"email": "a@example.com"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)

        with pytest.raises(AuthenticationError, match="missing required claims"):
            decode_token(token)

    def test_unknown_role_rejected(self):
        token = jwt.encode(
            {"email": "a@example.com", "role": "Superuser"},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(AuthenticationError, match="unknown role"):
            decode_token(token)


class TestPrincipal:

    def test_owns_is_case_insensitive(self):
        principal = Principal(email="student@example.com", role=Role.STUDENT)

        assert principal.owns("Student@Example.com")
        assert not principal.owns("other@example.com")
        assert not principal.owns(None)
