"""API sign-in: exchange credentials for a bearer token."""

from fastapi import APIRouter, Depends, Request
from libs.auth.tokens import create_access_token
from libs.common.rate_limit import auth_limit
from libs.db.session import get_async_db
from services.store_service.schemas import AuthResponse, LoginRequest
from services.store_service.services.accounts import authenticate, issue_session
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=AuthResponse)
@auth_limit
async def login(
    request: Request,
    payload: LoginRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """Verify credentials and return a signed token with the user's claims."""
    user = await authenticate(db, payload.login, payload.password)
    claims = issue_session(user)
    return AuthResponse(
        token=create_access_token(claims),
        user_id=claims.user_id,
        login=claims.login,
        full_name=claims.full_name,
        role=claims.role,
    )
