"""Signed session tokens (HS256 JWT via python-jose)."""

import uuid
from datetime import timedelta
from typing import Optional

from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import UnauthorizedError

ALGORITHM = "HS256"


def create_access_token(user: AuthUser, expires_delta: Optional[timedelta] = None) -> str:
    """Sign the user's claims into a token valid for ``expires_delta``."""
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_EXPIRY_MINUTES)

    issued_at = utc_now()
    payload = {
        **user.to_claims(),
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": issued_at + expires_delta,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> AuthUser:
    """Verify signature, expiry, issuer and audience and return the claims.

    Raises ``UnauthorizedError`` for anything that does not verify.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
        return AuthUser.model_validate(payload)
    except (JWTError, ValidationError):
        raise UnauthorizedError()
