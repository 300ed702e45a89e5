"""
Security Utilities

JWT token handling for the migration API. Tokens are issued by the platform
and validated here with the shared secret.
"""

from typing import Any

import jwt

from migration_manager.config import get_settings


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any] | None:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string to decode
        expected_type: If provided, validates that token type matches (e.g., "access")

    Returns:
        Decoded token payload or None if invalid/expired/wrong type
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
        )

        if expected_type is not None and payload.get("type") != expected_type:
            return None

        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
