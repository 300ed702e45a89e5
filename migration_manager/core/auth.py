"""
Authentication and Authorization

Provides FastAPI dependencies for authentication and authorization.
Every migration action is restricted to administrators: superusers or
principals holding the configured admin role.
"""

import logging
from dataclasses import dataclass, field
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from migration_manager.config import get_settings
from migration_manager.core.security import decode_token

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class UserPrincipal:
    """
    Authenticated user principal.

    All user info is extracted from JWT claims (no database lookup required).
    """
    user_id: str
    email: str = ""
    name: str = ""
    is_active: bool = True
    is_superuser: bool = False
    roles: list[str] = field(default_factory=list)

    def has_role(self, role: str) -> bool:
        """Check if user has a specific role."""
        return role in self.roles


async def get_current_user_optional(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> UserPrincipal | None:
    """
    Get the current user from JWT token (optional).

    Checks the Authorization: Bearer header first, then the access_token
    cookie. Returns None if no token is provided or the token is invalid.
    """
    token = None

    if credentials:
        token = credentials.credentials
    elif "access_token" in request.cookies:
        token = request.cookies["access_token"]

    if not token:
        return None

    payload = decode_token(token, expected_type="access")
    if payload is None:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    return UserPrincipal(
        user_id=str(user_id),
        email=payload.get("email", ""),
        name=payload.get("name", ""),
        is_active=True,
        is_superuser=payload.get("is_superuser", False),
        roles=payload.get("roles", []),
    )


async def get_current_user(
    user: Annotated[UserPrincipal | None, Depends(get_current_user_optional)],
) -> UserPrincipal:
    """
    Get the current user from JWT token (required).

    Raises:
        HTTPException: If not authenticated or token is invalid
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_migration_admin(
    user: Annotated[UserPrincipal, Depends(get_current_user)],
) -> UserPrincipal:
    """
    Require a principal allowed to run migrations.

    Raises:
        HTTPException: If the user is inactive or lacks the admin capability
    """
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    admin_role = get_settings().admin_role
    if not (user.is_superuser or user.has_role(admin_role)):
        logger.warning(f"User {user.user_id} denied migration access (roles={user.roles})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{admin_role}' required"
        )
    return user


# Type aliases for dependency injection
MigrationAdmin = Annotated[UserPrincipal, Depends(get_migration_admin)]
