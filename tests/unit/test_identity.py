"""Unit tests for the identity provider: passwords, tokens, authenticate."""

from datetime import timedelta

import pytest
from fastapi import HTTPException
from jose import jwt
from libs.auth.models import AuthUser
from libs.auth.passwords import hash_password, verify_password
from libs.auth.tokens import ALGORITHM, create_access_token, decode_access_token
from libs.common.config import get_settings
from services.store_service.services.accounts import authenticate, issue_session
from tests.factories import DEFAULT_PASSWORD, add_user

# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_password_hash_round_trip():
    hashed = hash_password("correct horse")

    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


@pytest.mark.unit
def test_verify_password_handles_bad_input():
    assert not verify_password("", hash_password("x"))
    assert not verify_password("x", "")
    assert not verify_password("x", "not-a-bcrypt-hash")


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def _claims(**overrides) -> AuthUser:
    data = {"login": "alice", "user_id": 7, "full_name": "Alice A", "role": "Manager"}
    data.update(overrides)
    return AuthUser(**data)


@pytest.mark.unit
def test_token_carries_four_claims():
    token = create_access_token(_claims())

    user = decode_access_token(token)

    assert user == _claims()
    payload = jwt.get_unverified_claims(token)
    assert payload["sub"] == "alice"
    assert payload["uid"] == 7
    assert payload["name"] == "Alice A"
    assert payload["role"] == "Manager"
    assert payload["iss"] == get_settings().JWT_ISSUER
    assert payload["aud"] == get_settings().JWT_AUDIENCE
    assert payload["jti"]


@pytest.mark.unit
def test_tampered_token_rejected():
    token = create_access_token(_claims(role="Client"))
    forged = jwt.encode(
        {**jwt.get_unverified_claims(token), "role": "Administrator"},
        "another-secret-key-that-is-long-enough-123",
        algorithm=ALGORITHM,
    )

    with pytest.raises(HTTPException) as exc_info:
        decode_access_token(forged)

    assert exc_info.value.status_code == 401


@pytest.mark.unit
def test_expired_token_rejected():
    token = create_access_token(_claims(), expires_delta=timedelta(seconds=-1))

    with pytest.raises(HTTPException) as exc_info:
        decode_access_token(token)

    assert exc_info.value.status_code == 401


@pytest.mark.unit
def test_wrong_audience_rejected():
    settings = get_settings()
    payload = {**_claims().to_claims(), "iss": settings.JWT_ISSUER, "aud": "someone-else"}
    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=ALGORITHM)

    with pytest.raises(HTTPException):
        decode_access_token(token)


@pytest.mark.unit
def test_garbage_token_rejected():
    with pytest.raises(HTTPException) as exc_info:
        decode_access_token("not.a.token")

    assert exc_info.value.status_code == 401
    assert exc_info.value.headers["WWW-Authenticate"] == "Bearer"


# ---------------------------------------------------------------------------
# authenticate / issue_session
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_authenticate_valid_credentials(db_session):
    await add_user(db_session, role_name="Manager", login="mgr", full_name="Mia")

    user = await authenticate(db_session, "mgr", DEFAULT_PASSWORD)
    claims = issue_session(user)

    assert claims.login == "mgr"
    assert claims.user_id == user.id
    assert claims.full_name == "Mia"
    assert claims.role == "Manager"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_authenticate_same_error_for_unknown_login_and_bad_password(db_session):
    await add_user(db_session, login="alice")

    with pytest.raises(HTTPException) as bad_password:
        await authenticate(db_session, "alice", "wrong")
    with pytest.raises(HTTPException) as unknown_login:
        await authenticate(db_session, "nobody", DEFAULT_PASSWORD)

    assert bad_password.value.status_code == unknown_login.value.status_code == 401
    assert bad_password.value.detail == unknown_login.value.detail


@pytest.mark.asyncio
@pytest.mark.unit
async def test_authenticate_requires_both_fields(db_session):
    with pytest.raises(HTTPException) as exc_info:
        await authenticate(db_session, "", "")

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
@pytest.mark.unit
async def test_session_role_defaults_to_client_without_role(db_session):
    await add_user(db_session, role_name=None, login="norole")

    user = await authenticate(db_session, "norole", DEFAULT_PASSWORD)

    assert issue_session(user).role == "Client"
