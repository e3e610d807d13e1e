"""Catalog store: filtered/sorted product queries and staff catalog management."""

import base64
import binascii
from decimal import Decimal, InvalidOperation
from typing import Optional

from libs.auth.policy import AccessPolicy, ensure
from libs.common.errors import ConflictError, InvalidInputError, NotFoundError
from libs.common.logging import get_logger
from services.store_service.models import (
    Category,
    Manufacturer,
    OrderItem,
    OrderStatus,
    Product,
    Supplier,
)
from services.store_service.schemas import (
    ProductCreate,
    ProductFilter,
    ProductUpdate,
    ProductView,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

DEFAULT_SORT = "name_asc"
SORT_ALIASES = {
    "name": "name_asc",
    "supplier": "supplier_asc",
    "price": "price_asc",
}


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def _product_select():
    return select(Product).options(
        selectinload(Product.category),
        selectinload(Product.manufacturer),
        selectinload(Product.supplier),
    )


def normalize_sort_key(sort_by: Optional[str]) -> str:
    key = (sort_by or "").strip().lower()
    key = SORT_ALIASES.get(key, key)
    if key not in {
        "name_asc",
        "name_desc",
        "supplier_asc",
        "supplier_desc",
        "price_asc",
        "price_desc",
    }:
        return DEFAULT_SORT
    return key


def _order_by(sort_key: str):
    supplier_name = func.lower(func.coalesce(Supplier.name, ""))
    product_name = func.lower(Product.name)
    columns = {
        "name_asc": product_name.asc(),
        "name_desc": product_name.desc(),
        "supplier_asc": supplier_name.asc(),
        "supplier_desc": supplier_name.desc(),
        "price_asc": Product.price.asc(),
        "price_desc": Product.price.desc(),
    }
    return columns[sort_key], Product.id.asc()


async def query_products(
    db: AsyncSession, filters: Optional[ProductFilter] = None
) -> list[ProductView]:
    """Return the catalog listing for ``filters``.

    Search is a case-insensitive substring match on the description only.
    ``max_price`` bounds the listed (pre-discount) price, inclusive.
    """
    filters = filters or ProductFilter()

    query = _product_select().outerjoin(Supplier, Product.supplier_id == Supplier.id)

    search = (filters.search or "").strip()
    if search:
        query = query.where(
            func.lower(Product.description).contains(search.lower(), autoescape=True)
        )
    if filters.manufacturer_id is not None:
        query = query.where(Product.manufacturer_id == filters.manufacturer_id)
    if filters.max_price is not None:
        query = query.where(Product.price <= filters.max_price)
    if filters.only_with_discount:
        query = query.where(Product.discount > 0)
    if filters.only_in_stock:
        query = query.where(Product.stock_quantity > 0)

    query = query.order_by(*_order_by(normalize_sort_key(filters.sort_by)))

    result = await db.execute(query)
    return [ProductView.from_product(p) for p in result.scalars().all()]


async def get_product(db: AsyncSession, product_id: int) -> Product:
    query = (
        _product_select()
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = (await db.execute(query)).scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found")
    return product


async def get_product_by_article(db: AsyncSession, article: str) -> Product:
    query = (
        _product_select()
        .where(Product.article == article)
        .execution_options(populate_existing=True)
    )
    product = (await db.execute(query)).scalar_one_or_none()
    if product is None:
        raise NotFoundError(f"Product with article '{article}' not found")
    return product


async def list_manufacturers(db: AsyncSession) -> list[Manufacturer]:
    result = await db.execute(select(Manufacturer).order_by(Manufacturer.name))
    return list(result.scalars().all())


async def list_order_statuses(db: AsyncSession) -> list[OrderStatus]:
    result = await db.execute(select(OrderStatus).order_by(OrderStatus.id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Catalog management (staff)
# ---------------------------------------------------------------------------


def _validate_values(
    price: Optional[Decimal], discount: Optional[Decimal], stock_quantity: Optional[int]
) -> None:
    if price is not None and price < 0:
        raise InvalidInputError("Price cannot be negative")
    if discount is not None and not (0 <= discount <= 100):
        raise InvalidInputError("Discount must be between 0 and 100")
    if stock_quantity is not None and stock_quantity < 0:
        raise InvalidInputError("Stock quantity cannot be negative")


def _require_text(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidInputError(f"{field} is required")
    return value


def _decode_image(image_base64: Optional[str]) -> Optional[bytes]:
    if not image_base64:
        return None
    # Accept data URIs as produced by ProductView.image_url.
    if image_base64.startswith("data:") and "," in image_base64:
        image_base64 = image_base64.split(",", 1)[1]
    try:
        return base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInputError("Image must be base64-encoded")


async def _check_references(db: AsyncSession, values: dict) -> None:
    for field, model, label in (
        ("category_id", Category, "Category"),
        ("manufacturer_id", Manufacturer, "Manufacturer"),
        ("supplier_id", Supplier, "Supplier"),
    ):
        ref_id = values.get(field)
        if ref_id is not None and await db.get(model, ref_id) is None:
            raise InvalidInputError(f"{label} {ref_id} does not exist")


async def _article_taken(
    db: AsyncSession, article: str, exclude_id: Optional[int] = None
) -> bool:
    query = select(Product.id).where(Product.article == article)
    if exclude_id is not None:
        query = query.where(Product.id != exclude_id)
    return (await db.execute(query)).first() is not None


async def _commit_product(db: AsyncSession, product: Product) -> None:
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("Product %s rejected by constraint: %s", product.article, exc.orig)
        raise ConflictError("A product with this article already exists") from exc


async def create_product(
    db: AsyncSession, policy: AccessPolicy, data: ProductCreate
) -> Product:
    ensure(policy.can_mutate_catalog(), "Only staff can manage the catalog")

    article = _require_text(data.article, "Article")
    name = _require_text(data.name, "Name")
    _validate_values(data.price, data.discount, data.stock_quantity)

    values = data.model_dump(exclude={"image_base64", "article", "name"})
    await _check_references(db, values)
    if await _article_taken(db, article):
        raise ConflictError("A product with this article already exists")

    product = Product(
        article=article,
        name=name,
        image_data=_decode_image(data.image_base64),
        **values,
    )
    db.add(product)
    await _commit_product(db, product)

    logger.info("Product %s created by %s", product.article, policy.login)
    return await get_product(db, product.id)


async def update_product(
    db: AsyncSession, policy: AccessPolicy, product_id: int, data: ProductUpdate
) -> Product:
    """Apply a partial update; only fields present in ``data`` change."""
    ensure(policy.can_mutate_catalog(), "Only staff can manage the catalog")
    product = await get_product(db, product_id)

    values = data.model_dump(exclude_unset=True)
    if "image_base64" in values:
        values["image_data"] = _decode_image(values.pop("image_base64"))
    if "article" in values:
        values["article"] = _require_text(values["article"], "Article")
        if await _article_taken(db, values["article"], exclude_id=product.id):
            raise ConflictError("A product with this article already exists")
    if "name" in values:
        values["name"] = _require_text(values["name"], "Name")
    for required in ("price", "discount", "stock_quantity"):
        if required in values and values[required] is None:
            raise InvalidInputError(f"{required} cannot be empty")

    _validate_values(
        values.get("price"), values.get("discount"), values.get("stock_quantity")
    )
    await _check_references(db, values)

    for field, value in values.items():
        setattr(product, field, value)
    await _commit_product(db, product)

    logger.info("Product %s updated by %s", product.article, policy.login)
    return await get_product(db, product.id)


async def delete_product(db: AsyncSession, policy: AccessPolicy, product_id: int) -> None:
    """Delete a product that no order line references."""
    ensure(policy.can_mutate_catalog(), "Only staff can manage the catalog")
    product = await get_product(db, product_id)

    referenced = await db.execute(
        select(OrderItem.id).where(OrderItem.product_id == product_id).limit(1)
    )
    if referenced.first() is not None:
        raise ConflictError("Product is referenced by existing orders")

    await db.delete(product)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("Product is referenced by existing orders") from exc

    logger.info("Product %s deleted by %s", product.article, policy.login)


def parse_decimal(value: Optional[str]) -> Optional[Decimal]:
    """Parse a form/query value; blank means 'not given'."""
    if value is None or not str(value).strip():
        return None
    try:
        return Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        raise InvalidInputError(f"'{value}' is not a number")
