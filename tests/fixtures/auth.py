"""
Test authentication helpers.

Provides JWT token generation and HTTP header helpers for testing the
role-gated migration endpoints.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest


# Must match the defaults in migration_manager/config.py
TEST_SECRET_KEY = "test-secret-key-for-testing-must-be-32-chars"
TEST_JWT_ISSUER = "migration-manager"
TEST_JWT_AUDIENCE = "migration-manager-client"
TEST_ALGORITHM = "HS256"

DEFAULT_USER_ID = "00000000-0000-4000-8000-000000000001"
DEFAULT_ADMIN_ID = "00000000-0000-4000-8000-000000000099"


def create_test_jwt(
    user_id: str | None = None,
    email: str = "test@example.com",
    name: str = "Test User",
    is_superuser: bool = False,
    roles: list[str] | None = None,
    token_type: str = "access",
    expires_in: timedelta = timedelta(hours=2),
    issuer: str = TEST_JWT_ISSUER,
    audience: str = TEST_JWT_AUDIENCE,
    secret: str = TEST_SECRET_KEY,
) -> str:
    """
    Create a signed test JWT.

    Args:
        user_id: Subject claim; defaults to a stable UUID per privilege level
        email: User email address
        name: User display name
        is_superuser: Whether the user bypasses role checks
        roles: Role names carried in the token
        token_type: Value of the `type` claim
        expires_in: Lifetime relative to now (negative for an expired token)
        issuer: Value of the `iss` claim
        audience: Value of the `aud` claim
        secret: Signing key

    Returns:
        str: Signed JWT token
    """
    if user_id is None:
        user_id = DEFAULT_ADMIN_ID if is_superuser else DEFAULT_USER_ID

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "name": name,
        "is_superuser": is_superuser,
        "roles": roles or [],
        "exp": now + expires_in,
        "iat": now,
        "iss": issuer,
        "aud": audience,
        "type": token_type,
    }
    return jwt.encode(payload, secret, algorithm=TEST_ALGORITHM)


def auth_headers(token: str) -> dict[str, str]:
    """Authorization headers carrying a bearer token."""
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers(create_test_jwt(email="admin@example.com", roles=["admin"]))


@pytest.fixture
def member_headers() -> dict[str, str]:
    return auth_headers(create_test_jwt(email="member@example.com", roles=["member"]))
