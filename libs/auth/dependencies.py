from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from libs.auth.models import AuthUser
from libs.auth.policy import AccessPolicy, ensure
from libs.auth.tokens import decode_access_token
from libs.common.config import get_settings
from libs.common.errors import UnauthorizedError

security = HTTPBearer(auto_error=False)


async def get_current_user(
    token: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> AuthUser:
    """
    Validate the bearer token and return the authenticated user.
    """
    if token is None:
        raise UnauthorizedError("Missing bearer token")
    return decode_access_token(token.credentials)


async def get_access_policy(
    current_user: Annotated[AuthUser, Depends(get_current_user)],
) -> AccessPolicy:
    return current_user.policy


async def require_client(
    current_user: Annotated[AuthUser, Depends(get_current_user)],
) -> AuthUser:
    """
    Ensure the caller may place orders as a customer.
    """
    ensure(current_user.policy.can_place_order(), "Only clients can place orders")
    return current_user


async def get_session_user(request: Request) -> Optional[AuthUser]:
    """
    Return the web-app user from the session cookie, or None when absent or invalid.
    """
    token = request.cookies.get(get_settings().SESSION_COOKIE_NAME)
    if not token:
        return None
    try:
        return decode_access_token(token)
    except UnauthorizedError:
        return None
