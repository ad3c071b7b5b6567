"""FastAPI dependency injection functions."""

import logging
from typing import Annotated

from fastapi import Depends, Header

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthenticationError, AuthorizationError
from src.core.config import get_settings
from src.schemas.auth import UserContext
from src.services.checkout_service import CheckoutService

logger = logging.getLogger(__name__)


def _bearer_token(authorization: str | None) -> str | None:
    """Extract the token from a "Bearer <token>" header value."""
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    This dependency requires a valid JWT token in the Authorization header.
    Use this for endpoints that require authentication.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        AuthenticationError: 401 if token is missing, malformed, invalid, or expired.
    """
    if not authorization:
        raise AuthenticationError("Authorization header required")

    token = _bearer_token(authorization)
    if token is None:
        raise AuthenticationError("Invalid authorization header format. Expected: Bearer <token>")

    try:
        return decode_jwt(token).to_user_context()
    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise AuthenticationError("Token has expired") from e
        raise AuthenticationError(e.message) from e


async def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
) -> UserContext | None:
    """Extract the current user if a valid bearer token is present.

    Checkout works for guests, so a missing, malformed, invalid or expired
    token yields None and the request continues down the guest path.

    Args:
        authorization: Optional Authorization header value.

    Returns:
        UserContext | None: The user context if authenticated, None otherwise.
    """
    token = _bearer_token(authorization)
    if token is None:
        return None

    try:
        return decode_jwt(token).to_user_context()
    except AuthError as e:
        logger.debug("Ignoring unusable bearer token (%s)", e.code.value)
        return None


async def get_admin_user(
    user: Annotated[UserContext, Depends(get_current_user)],
) -> UserContext:
    """Require an authenticated user carrying the configured admin role.

    Raises:
        AuthorizationError: 403 if the user is not an admin.
    """
    if user.role != get_settings().admin_role:
        raise AuthorizationError("Admin access required")
    return user


def get_checkout_service() -> CheckoutService:
    """Build the checkout service with its default collaborators."""
    return CheckoutService()


# Type aliases for cleaner dependency injection
OptionalUser = Annotated[UserContext | None, Depends(get_optional_user)]
AdminUser = Annotated[UserContext, Depends(get_admin_user)]
CheckoutServiceDep = Annotated[CheckoutService, Depends(get_checkout_service)]
