"""Pydantic schemas for store service."""

import base64
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

CENTS = Decimal("0.01")


def effective_price(price: Decimal, discount: Decimal) -> Decimal:
    """Unit price after the percentage discount, rounded to cents."""
    value = Decimal(price) * (Decimal(100) - Decimal(discount or 0)) / Decimal(100)
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class StoreSchema(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# ============================================================================
# AUTH SCHEMAS
# ============================================================================


class LoginRequest(StoreSchema):
    login: str = Field(..., max_length=100)
    password: str = Field(..., max_length=200)


class AuthResponse(StoreSchema):
    token: str
    user_id: int
    login: str
    full_name: str
    role: str


# ============================================================================
# CATALOG SCHEMAS
# ============================================================================


class ProductFilter(StoreSchema):
    """Catalog query. Unknown ``sort_by`` values fall back to name ascending."""

    search: Optional[str] = None
    manufacturer_id: Optional[int] = None
    max_price: Optional[Decimal] = None
    only_with_discount: bool = False
    only_in_stock: bool = False
    sort_by: str = "name_asc"


class ProductView(StoreSchema):
    id: int
    article: str
    name: str
    description: Optional[str] = None
    unit: Optional[str] = None
    category_name: Optional[str] = None
    manufacturer_name: Optional[str] = None
    supplier_name: Optional[str] = None
    price: Decimal
    discount: Decimal
    effective_price: Decimal
    stock_quantity: int
    in_stock: bool
    has_discount: bool
    image_url: Optional[str] = None

    @classmethod
    def from_product(cls, product) -> "ProductView":
        image_url = None
        if product.image_data:
            encoded = base64.b64encode(product.image_data).decode("ascii")
            image_url = f"data:image/jpeg;base64,{encoded}"

        return cls(
            id=product.id,
            article=product.article,
            name=product.name,
            description=product.description,
            unit=product.unit,
            category_name=product.category.name if product.category else None,
            manufacturer_name=(
                product.manufacturer.name if product.manufacturer else None
            ),
            supplier_name=product.supplier.name if product.supplier else None,
            price=product.price,
            discount=product.discount,
            effective_price=effective_price(product.price, product.discount),
            stock_quantity=product.stock_quantity,
            in_stock=product.stock_quantity > 0,
            has_discount=product.discount > 0,
            image_url=image_url,
        )


class ProductCreate(StoreSchema):
    # Ranges are checked by the catalog service so they surface as 400s.
    article: str = Field(..., max_length=50)
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    unit: Optional[str] = Field(None, max_length=20)
    price: Decimal
    discount: Decimal = Decimal("0")
    stock_quantity: int = 0
    category_id: Optional[int] = None
    manufacturer_id: Optional[int] = None
    supplier_id: Optional[int] = None
    image_base64: Optional[str] = None


class ProductUpdate(StoreSchema):
    article: Optional[str] = Field(None, max_length=50)
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    unit: Optional[str] = Field(None, max_length=20)
    price: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    stock_quantity: Optional[int] = None
    category_id: Optional[int] = None
    manufacturer_id: Optional[int] = None
    supplier_id: Optional[int] = None
    image_base64: Optional[str] = None


class ManufacturerResponse(StoreSchema):
    id: int
    name: str


class OrderStatusResponse(StoreSchema):
    id: int
    name: str


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class PlaceOrderRequest(StoreSchema):
    product_id: int
    quantity: int = 1


class OrderStatusUpdate(StoreSchema):
    status_id: Optional[int] = None
    status_name: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def check_one_target(self):
        if self.status_id is None and not (self.status_name or "").strip():
            raise ValueError("statusId or statusName is required")
        return self


class DeliveryDateUpdate(StoreSchema):
    delivery_date: date = Field(..., alias="date")


class OrderItemResponse(StoreSchema):
    product_id: int
    article: Optional[str] = None
    product_name: Optional[str] = None
    quantity: int
    price: Optional[Decimal] = None
    discount: Optional[Decimal] = None


class OrderResponse(StoreSchema):
    id: int
    user_id: int
    user_login: Optional[str] = None
    user_full_name: Optional[str] = None
    order_date: datetime
    delivery_date: Optional[date] = None
    pickup_code: int
    status_id: int
    status_name: Optional[str] = None
    items: list[OrderItemResponse] = []
    total: Decimal

    @classmethod
    def from_order(cls, order, total: Decimal) -> "OrderResponse":
        items = [
            OrderItemResponse(
                product_id=item.product_id,
                article=item.product.article if item.product else None,
                product_name=item.product.name if item.product else None,
                quantity=item.quantity,
                price=item.product.price if item.product else None,
                discount=item.product.discount if item.product else None,
            )
            for item in order.items
        ]
        return cls(
            id=order.id,
            user_id=order.user_id,
            user_login=order.user.login if order.user else None,
            user_full_name=order.user.full_name if order.user else None,
            order_date=order.order_date,
            delivery_date=order.delivery_date,
            pickup_code=order.pickup_code,
            status_id=order.status_id,
            status_name=order.status.name if order.status else None,
            items=items,
            total=total,
        )
