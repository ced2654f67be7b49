"""
Tests for identity tokens.

Tests:
- Token creation and verification
- Expiry and tampering
- Identity extraction from claims
"""

import pytest
from datetime import timedelta
import jwt as pyjwt

from core.config import settings
from core.security import (
    Identity,
    TokenExpiredError,
    TokenInvalidError,
    create_access_token,
    identity_from_payload,
    verify_jwt_token,
)
from database.models.users import UserRole


class TestTokens:
    def test_round_trip(self):
        token = create_access_token("alice@example.com", name="Alice")
        payload = verify_jwt_token(token)

        assert payload["sub"] == "alice@example.com"
        assert payload["name"] == "Alice"
        assert payload["role"] == "candidate"
        assert "exp" in payload and "iat" in payload

    def test_expired_token(self):
        token = create_access_token("alice@example.com", expires_delta=timedelta(seconds=-1))
        with pytest.raises(TokenExpiredError):
            verify_jwt_token(token)

    def test_wrong_secret(self):
        token = create_access_token("alice@example.com", secret_key="another-secret-key-of-enough-length")
        with pytest.raises(TokenInvalidError):
            verify_jwt_token(token)

    def test_tampered_token(self):
        token = create_access_token("alice@example.com")
        header, payload, signature = token.split(".")
        with pytest.raises(TokenInvalidError):
            verify_jwt_token(f"{header}.{payload}x.{signature}")

    def test_missing_subject(self):
        token = pyjwt.encode(
            {"name": "No subject", "exp": 9999999999},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(TokenInvalidError):
            verify_jwt_token(token)

    def test_expired_is_an_invalid_token(self):
        assert issubclass(TokenExpiredError, TokenInvalidError)


class TestIdentityFromPayload:
    def test_candidate(self):
        identity = identity_from_payload({"sub": "Alice@Example.com", "name": "Alice"})
        assert identity == Identity(email="alice@example.com", name="Alice", role=UserRole.CANDIDATE)
        assert identity.is_admin is False

    def test_admin(self):
        identity = identity_from_payload({"sub": "root@example.com", "role": "admin"})
        assert identity.is_admin is True

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_default_name(self, name):
        identity = identity_from_payload({"sub": "alice@example.com", "name": name})
        assert identity.name == "Candidate"

    @pytest.mark.parametrize("subject", ["", "not-an-email", "a@"])
    def test_subject_must_be_an_email(self, subject):
        with pytest.raises(TokenInvalidError):
            identity_from_payload({"sub": subject})

    def test_unknown_role(self):
        with pytest.raises(TokenInvalidError):
            identity_from_payload({"sub": "alice@example.com", "role": "superuser"})
