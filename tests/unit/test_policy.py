"""Unit tests for the role/capability policy."""

import pytest
from fastapi import HTTPException
from libs.auth.models import AuthUser
from libs.auth.policy import AccessPolicy, Role, ensure


@pytest.mark.unit
@pytest.mark.parametrize(
    "role, staff, can_order",
    [
        ("Administrator", True, False),
        ("Manager", True, False),
        ("Client", False, True),
        ("Courier", False, False),
        (None, False, False),
    ],
)
def test_role_matrix(role, staff, can_order):
    policy = AccessPolicy.from_claims(role, "someone")

    assert policy.is_staff is staff
    assert policy.can_mutate_catalog() is staff
    assert policy.can_mutate_order_lifecycle() is staff
    assert policy.can_place_order() is can_order


@pytest.mark.unit
def test_view_orders_of_self_or_staff():
    client = AccessPolicy(Role.CLIENT, "alice")
    manager = AccessPolicy(Role.MANAGER, "boss")
    unknown = AccessPolicy.from_claims("Courier", "carl")

    assert client.can_view_orders_of("alice")
    assert not client.can_view_orders_of("bob")
    assert manager.can_view_orders_of("alice")
    assert unknown.can_view_orders_of("carl")
    assert not unknown.can_view_orders_of("alice")


@pytest.mark.unit
def test_role_parse():
    assert Role.parse("Manager") is Role.MANAGER
    assert Role.parse(" Client ") is Role.CLIENT
    assert Role.parse("manager") is None
    assert Role.parse("") is None


@pytest.mark.unit
def test_ensure_raises_forbidden():
    ensure(True)

    with pytest.raises(HTTPException) as exc_info:
        ensure(False, "nope")

    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == "nope"


@pytest.mark.unit
def test_auth_user_role_defaults_to_client():
    user = AuthUser.model_validate({"sub": "alice", "uid": 3, "name": "Alice"})

    assert user.role == "Client"
    assert user.policy == AccessPolicy(Role.CLIENT, "alice")
