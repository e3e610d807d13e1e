"""Identity provider: credential check and session claims."""

from libs.auth.models import AuthUser
from libs.auth.passwords import verify_password
from libs.auth.policy import DEFAULT_ROLE
from libs.common.errors import InvalidInputError, UnauthorizedError
from libs.common.logging import get_logger
from services.store_service.models import User
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid login or password"


async def authenticate(db: AsyncSession, login: str, password: str) -> User:
    """Return the user for valid credentials, with the role loaded.

    Unknown login and wrong password fail with the same message.
    """
    login = (login or "").strip()
    if not login or not password:
        raise InvalidInputError("Login and password are required")

    result = await db.execute(
        select(User).where(User.login == login).options(selectinload(User.role))
    )
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt for '%s'", login)
        raise UnauthorizedError(INVALID_CREDENTIALS)

    logger.info("User %s signed in", user.login)
    return user


def issue_session(user: User) -> AuthUser:
    """Build the claims carried by both the API token and the web session."""
    return AuthUser(
        login=user.login,
        user_id=user.id,
        full_name=user.full_name,
        role=user.role.name if user.role else DEFAULT_ROLE.value,
    )
