"""Order engine: placement with atomic stock decrement and order lifecycle."""

import random
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from libs.auth.policy import AccessPolicy, ensure
from libs.common.config import get_settings
from libs.common.datetime_utils import local_today, utc_now
from libs.common.errors import (
    ForbiddenError,
    InsufficientStockError,
    InternalPersistenceError,
    InvalidInputError,
    NotFoundError,
)
from libs.common.logging import get_logger
from services.store_service.models import (
    NEW_ORDER_STATUS,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    User,
)
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

PICKUP_CODE_MIN = 100
PICKUP_CODE_MAX = 999
ZERO = Decimal("0.00")
CENTS = Decimal("0.01")


# ---------------------------------------------------------------------------
# Statuses
# ---------------------------------------------------------------------------


async def _find_status(db: AsyncSession, name: str) -> Optional[OrderStatus]:
    result = await db.execute(select(OrderStatus).where(OrderStatus.name == name))
    return result.scalar_one_or_none()


async def get_or_create_status(db: AsyncSession, name: str) -> OrderStatus:
    """Return the status called ``name``, inserting it on first use.

    Does not commit. The insert runs in a savepoint so losing a race against
    another writer only discards the savepoint.
    """
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Status name is required")

    existing = await _find_status(db, name)
    if existing:
        return existing

    try:
        async with db.begin_nested():
            status = OrderStatus(name=name)
            db.add(status)
    except IntegrityError:
        status = await _find_status(db, name)
        if status is None:
            raise
        return status

    logger.info("Created order status '%s'", name)
    return status


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _order_select():
    return (
        select(Order)
        .options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.status),
            selectinload(Order.user),
        )
        .execution_options(populate_existing=True)
    )


async def get_order(db: AsyncSession, order_id: int) -> Order:
    order = (
        await db.execute(_order_select().where(Order.id == order_id))
    ).scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def list_orders(
    db: AsyncSession, caller: AccessPolicy, status_name: Optional[str] = None
) -> list[Order]:
    """Orders visible to ``caller``, newest first.

    Staff see every order; anyone else only their own. ``status_name`` is an
    exact match.
    """
    query = _order_select()
    if not caller.is_staff:
        query = query.join(User, Order.user_id == User.id).where(
            User.login == caller.login
        )
    if status_name:
        query = query.join(OrderStatus, Order.status_id == OrderStatus.id).where(
            OrderStatus.name == status_name
        )
    query = query.order_by(Order.order_date.desc(), Order.id.desc())

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_orders_for_login(
    db: AsyncSession, caller: AccessPolicy, login: str
) -> list[Order]:
    if not caller.can_view_orders_of(login):
        raise ForbiddenError("You can only view your own orders")

    query = (
        _order_select()
        .join(User, Order.user_id == User.id)
        .where(User.login == login)
        .order_by(Order.order_date.desc(), Order.id.desc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------


async def place_order(
    db: AsyncSession,
    *,
    user_id: int,
    product_id: int,
    quantity: int = 1,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
) -> Order:
    """Create an order with one line and take the stock, all or nothing.

    The stock check and decrement is a single conditional UPDATE, so two
    concurrent placements can never both take the last units.
    """
    if quantity < 1:
        raise InvalidInputError("Quantity must be at least 1")

    rng = rng or random.Random()
    today = today or local_today()
    lead_days = get_settings().DELIVERY_LEAD_DAYS

    logger.info(
        "Placing order",
        extra={
            "extra_fields": {
                "user_id": user_id,
                "product_id": product_id,
                "quantity": quantity,
            }
        },
    )

    try:
        if await db.get(User, user_id) is None:
            raise NotFoundError("User not found")
        product = await db.get(Product, product_id, populate_existing=True)
        if product is None:
            raise NotFoundError("Product not found")
        if product.stock_quantity < quantity:
            raise InsufficientStockError(
                f"Only {product.stock_quantity} left in stock for {product.article}"
            )

        taken = await db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if taken.rowcount != 1:
            raise InsufficientStockError(f"Not enough stock for {product.article}")

        status = await get_or_create_status(db, NEW_ORDER_STATUS)
        order = Order(
            user_id=user_id,
            status_id=status.id,
            order_date=utc_now(),
            delivery_date=today + timedelta(days=lead_days),
            pickup_code=rng.randint(PICKUP_CODE_MIN, PICKUP_CODE_MAX),
        )
        order.items.append(OrderItem(product_id=product_id, quantity=quantity))
        db.add(order)
        await db.commit()
    except (NotFoundError, InsufficientStockError, InvalidInputError) as exc:
        await db.rollback()
        logger.warning(
            "Order rejected for user %s, product %s: %s",
            user_id,
            product_id,
            exc.detail,
        )
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception(
            "Order placement failed for user %s, product %s", user_id, product_id
        )
        raise InternalPersistenceError() from exc

    logger.info(
        "Order %s placed (pickup code %s)",
        order.id,
        order.pickup_code,
        extra={"extra_fields": {"order_id": order.id, "user_id": user_id}},
    )
    return await get_order(db, order.id)


# ---------------------------------------------------------------------------
# Lifecycle (staff)
# ---------------------------------------------------------------------------


async def update_status(
    db: AsyncSession,
    policy: AccessPolicy,
    order_id: int,
    *,
    status_name: Optional[str] = None,
    status_id: Optional[int] = None,
) -> Order:
    """Move an order to another status, by id or by (possibly new) name."""
    ensure(policy.can_mutate_order_lifecycle(), "Only staff can change order status")

    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")

    if status_id is not None:
        status = await db.get(OrderStatus, status_id)
        if status is None:
            raise NotFoundError("Order status not found")
    elif status_name and status_name.strip():
        status = await get_or_create_status(db, status_name)
    else:
        raise InvalidInputError("A status id or name is required")

    previous = order.status_id
    order.status_id = status.id
    await db.commit()

    logger.info(
        "Order %s status %s -> %s (%s) by %s",
        order_id,
        previous,
        status.id,
        status.name,
        policy.login,
    )
    return await get_order(db, order_id)


async def update_delivery_date(
    db: AsyncSession,
    policy: AccessPolicy,
    order_id: int,
    new_date: date,
    today: Optional[date] = None,
) -> Order:
    ensure(
        policy.can_mutate_order_lifecycle(), "Only staff can change delivery dates"
    )
    if new_date is None:
        raise InvalidInputError("Delivery date is required")

    today = today or local_today()
    if new_date < today:
        raise InvalidInputError("Delivery date cannot be in the past")

    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")

    order.delivery_date = new_date
    await db.commit()

    logger.info(
        "Order %s delivery date set to %s by %s", order_id, new_date, policy.login
    )
    return await get_order(db, order_id)


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------


def line_total(item: OrderItem) -> Decimal:
    """quantity * price * (100 - discount) / 100; zero without a product."""
    product = item.product
    if product is None:
        return ZERO
    return (
        Decimal(item.quantity)
        * Decimal(product.price)
        * (Decimal(100) - Decimal(product.discount or 0))
        / Decimal(100)
    )


def calculate_order_total(order: Optional[Order]) -> Decimal:
    """Order total rounded to cents. Never raises; failures count as zero."""
    try:
        total = sum((line_total(item) for item in order.items), ZERO)
    except Exception:
        logger.warning(
            "Could not compute total for order %s",
            getattr(order, "id", None),
            exc_info=True,
        )
        return ZERO
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)
