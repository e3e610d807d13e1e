"""Integration tests for the store JSON API."""

import logging
from datetime import timedelta
from decimal import Decimal

import pytest
from libs.common.datetime_utils import local_today
from libs.common.rate_limit import limiter
from services.store_service.models import Product
from sqlalchemy import select
from tests.factories import (
    DEFAULT_PASSWORD,
    ManufacturerFactory,
    add_product,
    add_user,
    auth_headers,
)

# ---------------------------------------------------------------------------
# System and auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-ID"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_request_log_carries_caller_login(client, db_session, caplog):
    user = await add_user(db_session, login="alice")
    caplog.set_level(logging.INFO, logger="libs.common.middleware")

    await client.get("/api/orders", headers=auth_headers(user))
    await client.get("/api/products")
    await client.get(
        "/api/products", headers={"Authorization": "Bearer forged.token.value"}
    )

    finished = [
        record
        for record in caplog.records
        if record.name == "libs.common.middleware" and "->" in record.getMessage()
    ]
    assert [r.extra_fields["caller"] for r in finished] == ["alice", None, None]
    assert finished[0].extra_fields["status_code"] == 200


@pytest.mark.asyncio
@pytest.mark.integration
async def test_login_returns_token_and_claims(client, db_session):
    """POST /api/auth/login - token plus userId, login, fullName, role."""
    user = await add_user(
        db_session, role_name="Manager", login="mgr", full_name="Mia Manager"
    )

    response = await client.post(
        "/api/auth/login", json={"login": "mgr", "password": DEFAULT_PASSWORD}
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["token"]
    assert data["userId"] == user.id
    assert data["login"] == "mgr"
    assert data["fullName"] == "Mia Manager"
    assert data["role"] == "Manager"

    orders = await client.get(
        "/api/orders", headers={"Authorization": f"Bearer {data['token']}"}
    )
    assert orders.status_code == 200


@pytest.mark.asyncio
@pytest.mark.integration
async def test_login_bad_password(client, db_session):
    await add_user(db_session, login="alice")

    response = await client.post(
        "/api/auth/login", json={"login": "alice", "password": "nope"}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_login_empty_fields(client):
    response = await client.post("/api/auth/login", json={"login": "", "password": ""})

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_login_is_rate_limited(client, db_session):
    """POST /api/auth/login - sixth attempt in a minute is throttled."""
    limiter.reset()
    limiter.enabled = True
    try:
        codes = []
        for _ in range(6):
            response = await client.post(
                "/api/auth/login", json={"login": "ghost", "password": "x"}
            )
            codes.append(response.status_code)
    finally:
        limiter.enabled = False
        limiter.reset()

    assert codes[:5] == [401] * 5
    assert codes[5] == 429


@pytest.mark.asyncio
@pytest.mark.integration
async def test_protected_endpoint_requires_token(client):
    response = await client.get("/api/orders")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_token_rejected(client):
    response = await client.get(
        "/api/orders", headers={"Authorization": "Bearer forged.token.value"}
    )

    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_products_with_filters(client, db_session):
    """GET /api/products - query parameters use the camelCase names."""
    acme = ManufacturerFactory.create(name="Acme")
    db_session.add(acme)
    await db_session.commit()
    await add_product(
        db_session,
        article="A-1",
        description="red running shoe",
        price=Decimal("80"),
        discount=Decimal("10"),
        stock_quantity=3,
        manufacturer=acme,
    )
    await add_product(
        db_session,
        article="A-2",
        description="red boot",
        price=Decimal("150"),
        stock_quantity=0,
        manufacturer=acme,
    )
    await add_product(db_session, article="B-1", description="blue sandal")

    response = await client.get(
        "/api/products",
        params={
            "search": "RED",
            "manufacturerId": acme.id,
            "maxPrice": "200",
            "onlyInStock": "true",
            "sortBy": "price_desc",
        },
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert [p["article"] for p in data] == ["A-1"]
    product = data[0]
    assert product["manufacturerName"] == "Acme"
    assert Decimal(str(product["effectivePrice"])) == Decimal("72.00")
    assert product["inStock"] is True
    assert product["hasDiscount"] is True


@pytest.mark.asyncio
@pytest.mark.integration
async def test_products_sorted_by_price_desc(client, db_session):
    for article, price in (("P-1", "10"), ("P-2", "30"), ("P-3", "20")):
        await add_product(db_session, article=article, price=Decimal(price))

    response = await client.get("/api/products", params={"sortBy": "price_desc"})

    prices = [Decimal(str(p["price"])) for p in response.json()]
    assert prices == sorted(prices, reverse=True)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_product_by_article(client, db_session):
    await add_product(db_session, article="ART-9", name="Boots")

    found = await client.get("/api/products/by-article/ART-9")
    missing = await client.get("/api/products/by-article/NOPE")

    assert found.status_code == 200
    assert found.json()["name"] == "Boots"
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_manufacturers(client, db_session):
    db_session.add_all(
        [ManufacturerFactory.create(name="Zeta"), ManufacturerFactory.create(name="Acme")]
    )
    await db_session.commit()

    response = await client.get("/api/manufacturers")

    assert [m["name"] for m in response.json()] == ["Acme", "Zeta"]


# ---------------------------------------------------------------------------
# Catalog management
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_crud_as_staff(client, db_session):
    admin = await add_user(db_session, role_name="Administrator")
    headers = auth_headers(admin)

    created = await client.post(
        "/api/products",
        json={"article": "NEW-1", "name": "Sneakers", "price": "59.90", "discount": 5},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    product_id = created.json()["id"]

    updated = await client.put(
        f"/api/products/{product_id}",
        json={"stockQuantity": 12},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["stockQuantity"] == 12
    assert updated.json()["name"] == "Sneakers"

    deleted = await client.delete(f"/api/products/{product_id}", headers=headers)
    assert deleted.status_code == 204

    gone = await client.get("/api/products/by-article/NEW-1")
    assert gone.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_create_errors(client, db_session):
    manager = await add_user(db_session, role_name="Manager")
    headers = auth_headers(manager)
    await add_product(db_session, article="DUP")

    duplicate = await client.post(
        "/api/products",
        json={"article": "DUP", "name": "Again", "price": "1"},
        headers=headers,
    )
    negative = await client.post(
        "/api/products",
        json={"article": "NEG", "name": "Neg", "price": "-1"},
        headers=headers,
    )
    too_much = await client.post(
        "/api/products",
        json={"article": "DIS", "name": "Dis", "price": "1", "discount": 101},
        headers=headers,
    )

    assert duplicate.status_code == 409
    assert negative.status_code == 400
    assert too_much.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_update_and_delete_missing_id(client, db_session):
    admin = await add_user(db_session, role_name="Administrator")
    headers = auth_headers(admin)

    updated = await client.put("/api/products/999", json={"name": "X"}, headers=headers)
    deleted = await client.delete("/api/products/999", headers=headers)

    assert updated.status_code == 404
    assert deleted.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_mutation_forbidden_for_client(client, db_session):
    user = await add_user(db_session, role_name="Client")
    product = await add_product(db_session, article="KEEP")

    response = await client.delete(
        f"/api/products/{product.id}", headers=auth_headers(user)
    )

    assert response.status_code == 403
    still_there = await client.get("/api/products/by-article/KEEP")
    assert still_there.status_code == 200


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_client_places_order(client, db_session):
    """POST /api/orders - 201 with New status, pickup code and total."""
    user = await add_user(db_session, role_name="Client")
    product = await add_product(
        db_session, price=Decimal("100"), discount=Decimal("10"), stock_quantity=3
    )

    response = await client.post(
        "/api/orders",
        json={"productId": product.id, "quantity": 2},
        headers=auth_headers(user),
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["statusName"] == "New"
    assert 100 <= data["pickupCode"] <= 999
    assert Decimal(str(data["total"])) == Decimal("180.00")
    assert data["items"][0]["quantity"] == 2

    stock = (
        await db_session.execute(
            select(Product.stock_quantity).where(Product.id == product.id)
        )
    ).scalar_one()
    assert stock == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_order_above_stock_rejected(client, db_session):
    user = await add_user(db_session, role_name="Client")
    product = await add_product(db_session, stock_quantity=1)

    response = await client.post(
        "/api/orders",
        json={"productId": product.id, "quantity": 5},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "insufficient_stock"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_staff_cannot_place_orders(client, db_session):
    manager = await add_user(db_session, role_name="Manager")
    product = await add_product(db_session, stock_quantity=1)

    response = await client.post(
        "/api/orders", json={"productId": product.id}, headers=auth_headers(manager)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_orders_by_user_visibility(client, db_session):
    alice = await add_user(db_session, role_name="Client", login="alice")
    bob = await add_user(db_session, role_name="Client", login="bob")
    admin = await add_user(db_session, role_name="Administrator")
    product = await add_product(db_session, stock_quantity=5)
    await client.post(
        "/api/orders", json={"productId": product.id}, headers=auth_headers(alice)
    )

    own = await client.get("/api/orders/by-user/alice", headers=auth_headers(alice))
    other = await client.get("/api/orders/by-user/alice", headers=auth_headers(bob))
    staff = await client.get("/api/orders/by-user/alice", headers=auth_headers(admin))
    bob_list = await client.get("/api/orders", headers=auth_headers(bob))

    assert own.status_code == 200 and len(own.json()) == 1
    assert other.status_code == 403
    assert staff.status_code == 200 and len(staff.json()) == 1
    assert bob_list.json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_staff_updates_status_and_delivery_date(client, db_session):
    user = await add_user(db_session, role_name="Client")
    manager = await add_user(db_session, role_name="Manager")
    product = await add_product(db_session, stock_quantity=5)
    placed = await client.post(
        "/api/orders", json={"productId": product.id}, headers=auth_headers(user)
    )
    order_id = placed.json()["id"]
    headers = auth_headers(manager)

    by_name = await client.put(
        f"/api/orders/{order_id}/status",
        json={"statusName": "Ready for pickup"},
        headers=headers,
    )
    assert by_name.status_code == 200, by_name.text
    assert by_name.json()["statusName"] == "Ready for pickup"

    new_status_id = placed.json()["statusId"]
    by_id = await client.put(
        f"/api/orders/{order_id}/status",
        json={"statusId": new_status_id},
        headers=headers,
    )
    assert by_id.json()["statusName"] == "New"

    target = (local_today() + timedelta(days=3)).isoformat()
    moved = await client.put(
        f"/api/orders/{order_id}/delivery-date", json={"date": target}, headers=headers
    )
    assert moved.status_code == 200
    assert moved.json()["deliveryDate"] == target

    filtered = await client.get(
        "/api/orders", params={"status": "New"}, headers=headers
    )
    assert [o["id"] for o in filtered.json()] == [order_id]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_past_delivery_date_rejected(client, db_session):
    user = await add_user(db_session, role_name="Client")
    admin = await add_user(db_session, role_name="Administrator")
    product = await add_product(db_session, stock_quantity=5)
    placed = await client.post(
        "/api/orders", json={"productId": product.id}, headers=auth_headers(user)
    )
    order = placed.json()

    response = await client.put(
        f"/api/orders/{order['id']}/delivery-date",
        json={"date": (local_today() - timedelta(days=1)).isoformat()},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"
    listed = await client.get("/api/orders", headers=auth_headers(admin))
    assert listed.json()[0]["deliveryDate"] == order["deliveryDate"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_status_update_forbidden_for_client_and_missing_order(client, db_session):
    user = await add_user(db_session, role_name="Client")
    admin = await add_user(db_session, role_name="Administrator")

    forbidden = await client.put(
        "/api/orders/1/status", json={"statusName": "Done"}, headers=auth_headers(user)
    )
    missing = await client.put(
        "/api/orders/999/status", json={"statusName": "Done"}, headers=auth_headers(admin)
    )
    empty = await client.put(
        "/api/orders/999/status", json={}, headers=auth_headers(admin)
    )

    assert forbidden.status_code == 403
    assert missing.status_code == 404
    assert empty.status_code == 422
