"""Tests for auth security functions."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from jose import JWTError, jwt

from src.auth.permissions import UserRole
from src.auth.security import create_access_token, decode_access_token
from src.config import get_settings


def claims(role: UserRole = UserRole.STUDENT) -> dict[str, str]:
    return {"sub": str(uuid4()), "email": "test@example.com", "role": role.value}


class TestAccessToken:
    """Tests for access token creation and decoding."""

    def test_create_access_token(self) -> None:
        """Should create valid access token."""
        token = create_access_token(claims())
        assert token is not None
        assert len(token) > 0

    def test_decode_access_token(self) -> None:
        """Should decode token and return payload."""
        data = claims(UserRole.INSTRUCTOR)
        token = create_access_token(data)
        payload = decode_access_token(token)

        assert payload["sub"] == data["sub"]
        assert payload["email"] == "test@example.com"
        assert payload["role"] == "instructor"
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_access_token_expired(self) -> None:
        """Should raise JWTError for expired token."""
        token = create_access_token(claims(), expires_delta=timedelta(seconds=-1))

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        """Should raise JWTError for invalid token."""
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        settings = get_settings()
        refresh = jwt.encode(
            {
                **claims(),
                "type": "refresh",
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            settings.auth_secret_key,
            algorithm=settings.auth_algorithm,
        )

        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(refresh)

    def test_decode_access_token_missing_role(self) -> None:
        token = create_access_token({"sub": str(uuid4()), "email": "test@example.com"})

        with pytest.raises(JWTError, match="role"):
            decode_access_token(token)

    def test_foreign_signing_key_is_rejected(self) -> None:
        token = jwt.encode(
            {**claims(), "type": "access"},
            "some-other-secret-key-that-is-long-enough",
            algorithm="HS256",
        )

        with pytest.raises(JWTError):
            decode_access_token(token)


class TestTokenUniqueness:
    """Tests for token uniqueness."""

    def test_access_tokens_unique_different_users(self) -> None:
        """Access tokens for different users are unique."""
        assert create_access_token(claims()) != create_access_token(claims())


class TestBearerDependency:
    """Role checks enforced by the router dependencies."""

    def test_unknown_role_claim_is_unauthorized(self, api_client: TestClient) -> None:
        token = create_access_token(
            {"sub": str(uuid4()), "email": "test@example.com", "role": "teacher"}
        )

        response = api_client.get(
            "/enrollments/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_non_bearer_scheme_is_unauthorized(self, api_client: TestClient) -> None:
        token = create_access_token(claims())

        response = api_client.get(
            "/enrollments/me", headers={"Authorization": f"Basic {token}"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["WWW-Authenticate"] == "Bearer"
