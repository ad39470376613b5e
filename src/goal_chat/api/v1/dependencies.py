"""Shared API dependencies for caller identity and chat services."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from goal_chat.core.security import InvalidTokenError, decode_caller_id
from goal_chat.services.chat import ChatServices, get_chat_services

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> str:
    """Return the caller's user id asserted by the auth service's JWT.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        The user id carried in the token subject

    Raises:
        HTTPException: If the token is invalid
    """
    try:
        return decode_caller_id(credentials.credentials)
    except InvalidTokenError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err


def get_chat_services_dep() -> ChatServices:
    """Return the process-wide chat services."""
    return get_chat_services()


# Type alias for current user dependency
CurrentUserIdDep = Annotated[str, Depends(get_current_user_id)]

# Type alias for chat services dependency
ChatServicesDep = Annotated[ChatServices, Depends(get_chat_services_dep)]
